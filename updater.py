"""Download or refresh the Ookla CLI next to the sensor."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from speedsensor.config import ConfigError, load_config
from speedsensor.measurements.binary import DependencyMissing, update_ookla_binary


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download or update the Ookla speedtest CLI")
    parser.add_argument("--config", default=None, help="Path to configuration file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        binary_path = update_ookla_binary(config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except DependencyMissing as exc:
        print(exc, file=sys.stderr)
        return 3

    print(f"Ookla CLI installed at {binary_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
