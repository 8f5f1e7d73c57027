"""Streaming content encoders.

A content encoder wraps a byte source and returns a `PipeReader` yielding the
compressed form of that source. Compression runs on a background thread that
writes into a bounded in-memory pipe, so large payloads never need to be
materialized before upload.

Error semantics mirror a synchronous pipe:

- An error raised by the source or the compressor (including the error from
  finalizing the compressed stream) is raised from the reader once the bytes
  produced before the failure have been consumed.
- Closing the reader makes the writer's next write fail with `BrokenPipeError`,
  which stops the background thread.
"""

from __future__ import annotations

import gzip
import io
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import IO, Any, Protocol, Union

import zstandard

CHUNK_SIZE = 64 * 1024
_MAX_BUFFERED = 4 * CHUNK_SIZE

Source = Union[bytes, bytearray, memoryview, IO[bytes], Iterable[bytes]]


class _Compressor(Protocol):
    def write(self, data: bytes) -> Any: ...

    def close(self) -> None: ...


class _Pipe:
    """Bounded byte buffer shared by one writer thread and one reader."""

    def __init__(self, max_buffered: int = _MAX_BUFFERED) -> None:
        self._cond = threading.Condition()
        self._buf = bytearray()
        self._max_buffered = max_buffered
        self._writer_closed = False
        self._reader_closed = False
        self._error: BaseException | None = None

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        with self._cond:
            while view:
                while len(self._buf) >= self._max_buffered and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed:
                    if self._error is not None:
                        raise BrokenPipeError(f"pipe closed: {self._error}")
                    raise BrokenPipeError("write to closed pipe")
                room = self._max_buffered - len(self._buf)
                self._buf += view[:room]
                view = view[room:]
                self._cond.notify_all()
        return len(data)

    def read(self, size: int) -> bytes:
        with self._cond:
            while not self._buf and not self._writer_closed and not self._reader_closed:
                self._cond.wait()
            if self._reader_closed:
                if self._error is not None:
                    raise self._error
                raise ValueError("read from closed pipe")
            if self._buf:
                size = len(self._buf) if size < 0 else min(size, len(self._buf))
                chunk = bytes(self._buf[:size])
                del self._buf[:size]
                self._cond.notify_all()
                return chunk
            if self._error is not None:
                raise self._error
            return b""

    def close_writer(self, error: BaseException | None = None) -> None:
        with self._cond:
            if self._writer_closed:
                return
            self._writer_closed = True
            if self._error is None:
                self._error = error
            self._cond.notify_all()

    def close_reader(self, error: BaseException | None = None) -> None:
        with self._cond:
            self._reader_closed = True
            if error is not None:
                self._error = error
            self._buf.clear()
            self._cond.notify_all()


class _PipeWriter:
    """File-like write end handed to the compressors."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    def write(self, data: bytes) -> int:
        return self._pipe.write(data)

    def flush(self) -> None:
        return None


class PipeReader(io.RawIOBase):
    """Non-seekable read end of an encoder pipe."""

    def __init__(self, pipe: _Pipe) -> None:
        super().__init__()
        self._pipe = pipe

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._pipe.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        return n

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        return self._pipe.read(size)

    def readall(self) -> bytes:
        chunks = []
        while chunk := self._pipe.read(CHUNK_SIZE):
            chunks.append(chunk)
        return b"".join(chunks)

    def close_with_error(self, error: BaseException) -> None:
        """Close both directions; subsequent reads raise `error`."""
        self._pipe.close_reader(error)

    def close(self) -> None:
        if not self.closed:
            self._pipe.close_reader()
        super().close()


ContentEncoder = Callable[[Source], PipeReader]


def iter_chunks(source: Source, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of a source in chunks."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        if source:
            yield bytes(source)
        return
    read = getattr(source, "read", None)
    if read is not None:
        while chunk := read(chunk_size):
            yield chunk
        return
    for chunk in source:
        if chunk:
            yield bytes(chunk)


def _encode(source: Source, pipe: _Pipe, make_compressor: Callable[[_PipeWriter], _Compressor]) -> None:
    """Copy `source` through a compressor into the pipe (background thread)."""
    error: BaseException | None = None
    try:
        compressor = make_compressor(_PipeWriter(pipe))
    except Exception as exc:  # noqa: BLE001 - delivered to the reader
        pipe.close_writer(exc)
        return

    try:
        for chunk in iter_chunks(source):
            compressor.write(chunk)
    except Exception as exc:  # noqa: BLE001 - delivered to the reader
        error = exc

    try:
        compressor.close()
    except Exception as exc:  # noqa: BLE001 - a close error must not be lost
        if error is None:
            error = exc

    pipe.close_writer(error)


def _start(source: Source, make_compressor: Callable[[_PipeWriter], _Compressor], name: str) -> PipeReader:
    pipe = _Pipe()
    thread = threading.Thread(target=_encode, args=(source, pipe, make_compressor), name=name, daemon=True)
    thread.start()
    return PipeReader(pipe)


def gzip_encoder_with_level(level: int) -> ContentEncoder:
    """Return an encoder that gzip-compresses at the given level."""
    if not 0 <= level <= 9:
        raise ValueError(f"gzip level must be between 0 and 9. Got: {level}")

    def _encoder(source: Source) -> PipeReader:
        return _start(
            source,
            lambda w: gzip.GzipFile(fileobj=w, mode="wb", compresslevel=level),  # type: ignore[arg-type]
            "axiom-gzip-encoder",
        )

    return _encoder


def gzip_encoder(source: Source) -> PipeReader:
    """Gzip-compress `source` favouring speed over ratio."""
    return gzip_encoder_with_level(1)(source)


def zstd_encoder(source: Source) -> PipeReader:
    """Zstd-compress `source` at the default level."""
    return _start(
        source,
        lambda w: zstandard.ZstdCompressor().stream_writer(w, closefd=False),
        "axiom-zstd-encoder",
    )
