# bledriver/cli/commands.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from bledriver.app.config import DriverConfig
from bledriver.app.runner import AppRun, load_pipeline, start_run
from bledriver.app.sinks import LoggingPublisher, PrintPublisher
from bledriver.model.identity import AddressKind, DeviceRole, PeripheralIdentity
from bledriver.model.quantity import QuantityKind
from bledriver.runtime.state import SessionStatus
from bledriver.transport.base import normalize_address

from bledriver.cli.args import RECORDINGS_BASE_DIR

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------- Logging ----------------

def configure_logging(*, verbose: bool, log_file: Optional[Path]) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)
    if log_file is not None:
        configure_file_logging(log_file)


def configure_file_logging(app_log_path: Path) -> None:
    """
    Add a file handler to the root logger (idempotent).
    """
    root = logging.getLogger()
    app_log_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(app_log_path.resolve())

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(app_log_path, encoding="utf-8", delay=True)
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)

    if root.level > logging.INFO:
        root.setLevel(logging.INFO)


# ---------------- Printing ----------------

def print_status(statuses: list[SessionStatus]) -> None:
    if not statuses:
        print("Devices:   (none)")
        return
    print("Devices:")
    for st in statuses:
        age = f"{st.last_activity_s:.1f}s" if st.last_activity_s is not None else "-"
        err = f" err={st.last_error}" if st.last_error else ""
        print(
            f"  - {st.identity.address} role={st.identity.role.value} state={st.state.value} "
            f"connects={st.connects} retries={st.retry_count} last_activity={age}{err}"
        )


# ---------------- Commands ----------------

def cmd_calibrate(args, cfg: DriverConfig) -> int:
    pipeline, _ = load_pipeline(cfg, strict=args.strict)
    kind = QuantityKind(args.kind)
    for raw in args.raw:
        key = pipeline.table_key(kind, raw)
        value = pipeline.calibrate(kind, raw)
        print(f"{kind.value} raw={raw} key={key} value={value}")
    return 0


def cmd_read(args, cfg: DriverConfig) -> int:
    run = start_run(cfg)
    run.transport.start()
    try:
        controller = run.controller
        controller.track(_identity(args, DeviceRole.TELEMETRY))
        address = normalize_address(args.address)

        kinds = [QuantityKind(k) for k in args.kind] if args.kind else list(QuantityKind)
        for kind in kinds:
            reading = controller.read_quantity(address, kind)
            if reading is None:
                print(f"{kind.value}: undecodable")
                continue
            flag = "" if reading.calibrated else " (uncalibrated)"
            print(f"{kind.value}: raw={reading.raw} value={reading.value}{flag}")

        if args.battery:
            print(f"battery: {controller.read_battery_level(address)}")
        return 0
    finally:
        run.transport.stop()
        _close_run(run)


def cmd_buzz(args, cfg: DriverConfig) -> int:
    run = start_run(cfg)
    try:
        with run.controller as controller:
            controller.track(_identity(args, DeviceRole.LOCATOR))
            address = normalize_address(args.address)
            if args.identify:
                controller.identify(address, timeout_s=args.timeout)
                print(f"BUZZ {address}: started")
            else:
                controller.set_on_off(address, timeout_s=args.timeout)
                print(f"BUZZ {address}: started, stopped")
        return 0
    finally:
        _close_run(run)


def cmd_run(args, cfg: DriverConfig) -> int:
    record_dir = None
    if args.record:
        record_dir = RECORDINGS_BASE_DIR / datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        record_dir.mkdir(parents=True, exist_ok=True)
        configure_file_logging(record_dir / "app.log")

    run = start_run(cfg, record_dir=record_dir)
    try:
        run.controller.add_sink(LoggingPublisher())
        if not args.quiet:
            run.controller.add_sink(PrintPublisher())
        if record_dir is not None:
            print(f"Recording: {record_dir}")

        with run.controller as controller:
            t0 = time.monotonic()
            try:
                while args.secs is None or time.monotonic() - t0 < args.secs:
                    time.sleep(0.2)
            except KeyboardInterrupt:
                print("Stopping...")
            print_status(controller.status())
        return 0
    finally:
        _close_run(run)


def _identity(args, role: DeviceRole) -> PeripheralIdentity:
    return PeripheralIdentity(
        address=normalize_address(args.address),
        address_kind=AddressKind.from_public_flag(args.public),
        role=role,
    )


def _close_run(run: AppRun) -> None:
    try:
        if run.recorder is not None:
            run.recorder.close()
    except Exception:
        logging.getLogger(__name__).exception("RECORDER_CLOSE_ERROR")
    try:
        run.cmd_sink.close()
    except Exception:
        logging.getLogger(__name__).exception("CMD_SINK_CLOSE_ERROR")
