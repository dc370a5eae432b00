# bledriver/cli/args.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from bledriver.model.quantity import QuantityKind

DEFAULT_CONFIG = Path("bledriver.yaml")
RECORDINGS_BASE_DIR = Path("data") / "recordings"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bledriver")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Driver config YAML.")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr.")
    common.add_argument("--log-file", type=Path, default=None, help="Append the app log to this file.")

    device = argparse.ArgumentParser(add_help=False)
    device.add_argument("--address", required=True, help="Device hardware address.")
    device.add_argument("--public", action="store_true", help="Address is public (default: random).")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_cal = sub.add_parser("calibrate", parents=[common], help="Convert raw codes offline.")
    p_cal.add_argument("--kind", required=True, choices=[k.value for k in QuantityKind])
    p_cal.add_argument("raw", type=int, nargs="+")
    p_cal.add_argument("--strict", action="store_true", help="Reject incomplete calibration tables.")

    p_read = sub.add_parser("read", parents=[common, device], help="One-shot attribute reads.")
    p_read.add_argument(
        "--kind",
        nargs="+",
        choices=[k.value for k in QuantityKind],
        default=None,
        help="Quantities to read (default: all).",
    )
    p_read.add_argument("--battery", action="store_true", help="Also read the battery level.")

    p_buzz = sub.add_parser("buzz", parents=[common, device], help="Alert a locator tag.")
    p_buzz.add_argument(
        "--identify",
        action="store_true",
        help="Return as soon as the tag is active instead of waiting for it to stop.",
    )
    p_buzz.add_argument("--timeout", type=float, default=60.0)

    p_run = sub.add_parser("run", parents=[common], help="Track and duty-cycle devices.")
    p_run.add_argument("--secs", type=float, default=None, help="Stop after this many seconds.")
    p_run.add_argument("--record", action="store_true", help=f"Record to {RECORDINGS_BASE_DIR}/<ts>/.")
    p_run.add_argument("--quiet", action="store_true", help="Do not print readings.")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
