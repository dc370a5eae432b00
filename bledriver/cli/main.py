# bledriver/cli/main.py
from __future__ import annotations

from typing import Optional

from bledriver.app.config import load_config
from bledriver.core.errors import BleDriverError

from bledriver.cli.args import parse_args
from bledriver.cli.commands import (
    cmd_buzz,
    cmd_calibrate,
    cmd_read,
    cmd_run,
    configure_logging,
)


def main(argv: Optional[list[str]] = None) -> int:
    try:
        args = parse_args(argv)
        configure_logging(verbose=args.verbose, log_file=args.log_file)
        cfg = load_config(args.config)

        if args.cmd == "calibrate":
            return cmd_calibrate(args, cfg)
        if args.cmd == "read":
            return cmd_read(args, cfg)
        if args.cmd == "buzz":
            return cmd_buzz(args, cfg)
        if args.cmd == "run":
            return cmd_run(args, cfg)

        return 2
    except BleDriverError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1
    except TimeoutError:
        print("ERROR: Timed out waiting for the device.")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
