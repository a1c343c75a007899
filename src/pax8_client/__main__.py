from __future__ import annotations

import argparse
import asyncio
import json
import sys

from pax8_client.client import Pax8Client
from pax8_client.errors import Pax8Error
from pax8_client.utils import (
    LoggingOptions,
    configure_logging,
    describe_exception,
    get_logger,
)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pax8-client",
        description="Call a Pax8 API path using credentials from PAX8_* environment variables.",
    )
    parser.add_argument("path", help="API path relative to the base URL, e.g. /companies")
    parser.add_argument("--method", default="GET")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def _run(path: str, method: str) -> object:
    async with Pax8Client.from_env() as client:
        return await client.request_json(method, path)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(LoggingOptions(debug=args.debug, exclusive=True))
    logger = get_logger(__name__)

    try:
        payload = asyncio.run(_run(args.path, args.method))
    except Pax8Error as exc:
        descriptor = describe_exception(exc)
        logger.error(descriptor.headline, detail=descriptor.detail)
        if descriptor.suggestion:
            print(descriptor.suggestion, file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
