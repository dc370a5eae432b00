# bledriver/app/runner.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from bledriver.app.config import DriverConfig
from bledriver.app.controller import DriverController
from bledriver.core.errors import ConfigError
from bledriver.core.recording.command import CommandTraceLogger
from bledriver.core.recording.readings import ReadingRecorder
from bledriver.interfaces.command_sink import CommandSink
from bledriver.model.calibration import CalibrationPipeline
from bledriver.model.loader import CalibrationLoader
from bledriver.runtime.clock import Clock
from bledriver.transport.base import RadioTransport
from bledriver.transport.errors import TransportError
from bledriver.transport.registry import TransportDriverRegistry


@dataclass(frozen=True)
class AppRun:
    controller: DriverController
    pipeline: CalibrationPipeline
    transport: RadioTransport
    cmd_sink: CommandSink
    recorder: Optional[ReadingRecorder]
    calibration_hashes: Dict[str, str]


def load_pipeline(cfg: DriverConfig, *, strict: bool = False) -> tuple[CalibrationPipeline, Dict[str, str]]:
    """Load the calibration tables named by the config. Bad files raise ConfigError."""
    loader = CalibrationLoader(cfg.calibration_dir, cfg.calibration_files, strict=strict)
    try:
        loader.load_all()
    except FileNotFoundError as e:
        raise ConfigError(
            str(e),
            hint="Check calibration_dir and calibration_files in the config.",
        ) from None
    except (ValueError, OSError) as e:
        raise ConfigError(
            "Calibration data is invalid.",
            hint=str(e),
            details={"calibration_dir": cfg.calibration_dir},
        ) from None
    return loader.pipeline(), dict(loader.file_hashes)


def create_transport(
    cfg: DriverConfig,
    *,
    drivers: Optional[TransportDriverRegistry] = None,
) -> RadioTransport:
    drivers = drivers or TransportDriverRegistry.default()
    try:
        return drivers.create(cfg.transport_driver, **dict(cfg.transport_params))
    except (TransportError, TypeError) as e:
        raise ConfigError(
            f"Could not create transport '{cfg.transport_driver}'.",
            hint=str(e),
            details={"driver": cfg.transport_driver, "params": dict(cfg.transport_params)},
        ) from None


def start_run(
    cfg: DriverConfig,
    *,
    record_dir: Optional[Path] = None,
    transport: Optional[RadioTransport] = None,
    drivers: Optional[TransportDriverRegistry] = None,
    clock: Optional[Clock] = None,
    strict_calibration: bool = False,
) -> AppRun:
    """
    Wire a controller from configuration. Nothing is started here.

    With record_dir, commands go to <record_dir>/commands.jsonl and readings
    to <record_dir>/readings_<ts>.jsonl.
    """
    log = logging.getLogger(__name__)

    pipeline, hashes = load_pipeline(cfg, strict=strict_calibration)
    for name, digest in sorted(hashes.items()):
        log.info("CALIBRATION_FILE name=%s sha256=%s", name, digest)

    transport = transport or create_transport(cfg, drivers=drivers)

    cmd_sink = CommandTraceLogger(
        logger=logging.getLogger("commands"),
        file_path=Path(record_dir) / "commands.jsonl" if record_dir is not None else None,
        flush_interval_s=0.5,
    )

    controller = DriverController(
        cfg,
        transport=transport,
        pipeline=pipeline,
        cmd_sink=cmd_sink,
        clock=clock,
        logger=log,
    )

    recorder = None
    if record_dir is not None:
        recorder = ReadingRecorder(Path(record_dir), flush_interval_s=0.5)
        controller.add_sink(recorder)

    return AppRun(
        controller=controller,
        pipeline=pipeline,
        transport=transport,
        cmd_sink=cmd_sink,
        recorder=recorder,
        calibration_hashes=hashes,
    )
