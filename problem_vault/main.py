"""Command-line entry point.

Archives one or more problem URLs into an in-memory vault and prints each
resulting record as JSON. Useful for checking an extractor against the live
site and for piping records into another store.
"""

import argparse
import asyncio
import json
import logging
import sys

from .core.container import get_container
from .pipeline.types import ArchiveResult

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="problem-vault",
        description="Extract competitive-programming problems into a unified record format.",
    )
    parser.add_argument("urls", nargs="+", help="Problem URLs (Codeforces, LeetCode, AtCoder, CodeChef)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--pretty", action="store_true", help="Indent JSON output")
    return parser.parse_args(argv)


def _render(result: ArchiveResult, pretty: bool) -> str:
    record = result.get("record")
    if not result.get("success") or record is None:
        return json.dumps(
            {
                "url": result.get("url"),
                "error": result.get("error"),
                "errorKind": result.get("error_kind"),
            },
            ensure_ascii=False,
        )

    payload = record.to_json_dict()
    payload["message"] = result.get("message")
    return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)


async def run(urls: list[str], pretty: bool = False) -> int:
    """Archive every URL and print the results.

    Returns:
        Process exit code: 0 when every URL was archived, 1 otherwise.
    """
    container = get_container()
    archiver = container.archiver()
    session_manager = container.session_manager()

    failures = 0
    try:
        for url in urls:
            result = await archiver.archive(url)
            if not result.get("success"):
                failures += 1
            print(_render(result, pretty))
            logger.debug(f"{url} processed in {result.get('processing_time_ms')}ms")
    finally:
        await session_manager.shutdown()
        logger.debug(f"Browser stats: {session_manager.get_stats()}")

    return 1 if failures else 0


def main(argv: list[str] | None = None) -> None:
    """Main application entry point."""
    args = _parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
    )

    sys.exit(asyncio.run(run(args.urls, pretty=args.pretty)))


if __name__ == "__main__":
    main()
