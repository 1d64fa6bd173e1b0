"""Command line entry point: scan files against an ICAP service."""

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional

from .config import load_settings
from .exception import IcapException
from .icap import IcapClient
from .response import Verdict
from .source import FileSource

logger = logging.getLogger(__name__)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure standard logging for CLI use."""
    effective_level = (level or os.getenv("ICAPSCAN_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icapscan",
        description="Scan files with an ICAP (RFC 3507) service.",
    )
    parser.add_argument("host", help="ICAP server host")
    parser.add_argument("files", nargs="+", metavar="FILE", help="files to scan")
    parser.add_argument("-p", "--port", type=int, help="ICAP server port (default: 1344)")
    parser.add_argument("-s", "--service", help="ICAP service name (default: avscan)")
    parser.add_argument("-t", "--timeout", type=float, help="connection timeout in seconds")
    parser.add_argument("--log-level", help="logging level (default: $ICAPSCAN_LOG_LEVEL or WARNING)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the scanner.

    Returns:
        0 if every file was allowed, 1 if any was not, 2 on error
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings = load_settings(args.host)
    overrides = {
        name: value
        for name, value in (("port", args.port), ("service", args.service), ("timeout", args.timeout))
        if value is not None
    }
    settings = replace(settings, **overrides)

    all_allowed = True
    try:
        with IcapClient.from_settings(settings) as client:
            for path in args.files:
                verdict = client.scan_verdict(FileSource(path))
                print(f"{path}: {verdict.value}")
                all_allowed = all_allowed and verdict is Verdict.ALLOWED
    except (IcapException, OSError) as e:
        logger.debug("Scan failed", exc_info=True)
        print(f"icapscan: error: {e}", file=sys.stderr)
        return 2
    return 0 if all_allowed else 1
