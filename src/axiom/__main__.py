"""Command line entrypoint: `python -m axiom ingest|query`.

Configuration is taken from the environment (`AXIOM_TOKEN`, `AXIOM_ORG_ID`,
`AXIOM_URL`, ...), including a local `.env` file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import IO

from .client import Client
from .errors import AxiomError
from .ingest import ContentEncoding, ContentType, IngestOptions, detect_content_type
from .query import QueryOptions


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m axiom", description="Ingest into and query Axiom datasets.")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="ingest JSON, NDJSON or CSV files (stdin when none given)")
    ingest.add_argument("dataset")
    ingest.add_argument("files", nargs="*")
    ingest.add_argument("--gzip", action="store_true", help="input is gzip compressed JSON")
    ingest.add_argument("--timestamp-field", default=None)
    ingest.add_argument("--timestamp-format", default=None)
    ingest.add_argument("--csv-delimiter", default=None)

    query = sub.add_parser("query", help="run an APL query and print rows tab-separated")
    query.add_argument("apl")
    query.add_argument("--start", default=None, help="start time, RFC 3339 or relative (now-1h)")
    query.add_argument("--end", default=None, help="end time, RFC 3339 or relative")

    return parser


async def _ingest_one(client: Client, args: argparse.Namespace, stream: IO[bytes], options: IngestOptions) -> int:
    if args.gzip:
        # Content type can't be sniffed from compressed bytes.
        status = await client.ingest(args.dataset, stream, ContentType.JSON, ContentEncoding.GZIP, options)
    else:
        body, content_type = detect_content_type(stream)
        status = await client.ingest(args.dataset, body, content_type, ContentEncoding.IDENTITY, options)

    print(f"ingested={status.ingested} failed={status.failed} processed_bytes={status.processed_bytes}")
    for failure in status.failures:
        print(f"failure at {failure.timestamp}: {failure.error}", file=sys.stderr)
    return 1 if status.failed else 0


async def _run_ingest(client: Client, args: argparse.Namespace) -> int:
    options = IngestOptions(
        timestamp_field=args.timestamp_field,
        timestamp_format=args.timestamp_format,
        csv_delimiter=args.csv_delimiter,
    )
    if not args.files:
        return await _ingest_one(client, args, sys.stdin.buffer, options)

    rc = 0
    for path in args.files:
        with open(path, "rb") as fh:
            rc |= await _ingest_one(client, args, fh, options)
    return rc


async def _run_query(client: Client, args: argparse.Namespace) -> int:
    result = await client.query(args.apl, QueryOptions(start_time=args.start, end_time=args.end))
    for table in result.tables:
        print("\t".join(f.name for f in table.fields))
        for row in table.rows():
            print("\t".join(v if isinstance(v, str) else json.dumps(v) for v in row))
    return 0


async def _main(argv: Sequence[str] | None) -> int:
    args = _build_parser().parse_args(argv)
    client = Client()
    try:
        if args.command == "ingest":
            return await _run_ingest(client, args)
        return await _run_query(client, args)
    finally:
        await client.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    try:
        return asyncio.run(_main(argv))
    except AxiomError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
