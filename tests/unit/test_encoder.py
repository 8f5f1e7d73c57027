from __future__ import annotations

import gzip
import io

import pytest
import zstandard

from axiom import encoder
from axiom.encoder import gzip_encoder, gzip_encoder_with_level, iter_chunks, zstd_encoder


class _Passthrough:
    def __init__(self, w) -> None:  # noqa: ANN001
        self._w = w

    def write(self, data: bytes) -> int:
        return self._w.write(data)

    def close(self) -> None:
        return None


class _FailingClose(_Passthrough):
    def close(self) -> None:
        raise OSError("flush failed")


def _payload(size: int = 300_000) -> bytes:
    return b"".join(b'{"n":%d,"msg":"hello"}\n' % i for i in range(size // 20))


def test_gzip_round_trip_for_large_payload():
    data = _payload()
    assert gzip.decompress(gzip_encoder(data).read()) == data


def test_gzip_round_trip_from_file_object():
    data = _payload(10_000)
    assert gzip.decompress(gzip_encoder_with_level(9)(io.BytesIO(data)).read()) == data


def test_zstd_round_trip_from_iterable():
    data = _payload()
    chunks = [data[i : i + 1000] for i in range(0, len(data), 1000)]
    compressed = zstd_encoder(iter(chunks)).read()
    assert zstandard.ZstdDecompressor().decompressobj().decompress(compressed) == data


def test_empty_source_produces_valid_stream():
    assert gzip.decompress(gzip_encoder(b"").read()) == b""


@pytest.mark.parametrize("level", [-1, 10])
def test_gzip_level_is_validated(level: int):
    with pytest.raises(ValueError):
        gzip_encoder_with_level(level)


def test_reader_is_not_seekable():
    reader = zstd_encoder(b"abc")
    assert reader.readable()
    assert not reader.seekable()
    reader.read()


def test_source_error_surfaces_after_buffered_bytes():
    def source():
        yield b"abc"
        raise RuntimeError("source broke")

    reader = encoder._start(source(), _Passthrough, "test-encoder")
    assert reader.read(3) == b"abc"
    with pytest.raises(RuntimeError, match="source broke"):
        reader.read(1)


def test_close_error_is_not_lost():
    reader = encoder._start(b"abc", _FailingClose, "test-encoder")
    assert reader.read(3) == b"abc"
    with pytest.raises(OSError, match="flush failed"):
        reader.read(1)


def test_closed_reader_breaks_the_writer():
    pipe = encoder._Pipe()
    pipe.close_reader()
    with pytest.raises(BrokenPipeError):
        pipe.write(b"data")


def test_close_with_error_is_seen_by_both_sides():
    pipe = encoder._Pipe()
    reader = encoder.PipeReader(pipe)
    reader.close_with_error(ValueError("cancelled"))

    with pytest.raises(ValueError, match="cancelled"):
        pipe.read(10)
    with pytest.raises(BrokenPipeError, match="cancelled"):
        pipe.write(b"data")


def test_iter_chunks_accepts_all_sources():
    assert list(iter_chunks(b"abc")) == [b"abc"]
    assert list(iter_chunks(b"")) == []
    assert b"".join(iter_chunks(io.BytesIO(b"x" * 10), chunk_size=3)) == b"x" * 10
    assert list(iter_chunks([b"a", b"", b"b"])) == [b"a", b"b"]
