"""Entry point for running the PRTG speedtest sensor."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from speedsensor import __version__, bootstrap
from speedsensor.config import ConfigError
from speedsensor.measurements.binary import DependencyMissing

LOGGER = logging.getLogger("speedsensor.main")

EXIT_OK = 0
EXIT_WRITE_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_DEPENDENCY_MISSING = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ookla speedtest sensor for PRTG (EXE/XML)")
    parser.add_argument("--config", default=None, help="Path to config.yaml (default: next to the program)")
    parser.add_argument("--server-id", dest="server_id", default=None, help="Speedtest server id to test against")
    parser.add_argument(
        "--output",
        dest="output_path",
        default=None,
        help="Also write the XML to this file (relative paths resolve against the program directory)",
    )
    parser.add_argument("--precision", type=int, default=None, help="Decimal digits in channel values (0-8, default 1)")
    parser.add_argument("--retries", dest="max_retries", type=int, default=None, help="Retries after a failed run (0-4, default 2)")
    parser.add_argument("--accept-gdpr", dest="accept_gdpr", action="store_true", help="Pass --accept-gdpr to the speedtest CLI")
    parser.add_argument("--debug", action="store_true", help="Append diagnostics to the monthly log file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    overrides = {
        "server_id": args.server_id,
        "output_path": args.output_path,
        "precision": args.precision,
        "max_retries": args.max_retries,
        "accept_gdpr": args.accept_gdpr,
        "debug": args.debug,
    }

    try:
        context = bootstrap(args.config, overrides)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        context.run()
    except DependencyMissing as exc:
        LOGGER.error("%s", exc)
        return EXIT_DEPENDENCY_MISSING
    except OSError as exc:
        LOGGER.error("Failed to write report to %s: %s", context.params.output_path, exc)
        return EXIT_WRITE_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
