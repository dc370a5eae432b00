# bledriver/app/config.py
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from bledriver.core.errors import ConfigError
from bledriver.model.identity import AddressKind
from bledriver.model.loader import DEFAULT_CALIBRATION_FILES
from bledriver.model.quantity import QuantityKind


@dataclass(frozen=True)
class Timing:
    sample_window_s: float = 5.0
    # plant sensors were also run with a 30 minute sleep window
    sleep_window_s: float = 5.0
    reconnect_delay_s: float = 5.0
    connect_timeout_s: float = 10.0
    actuation_max_attempts: int = 3
    actuation_backoff_s: float = 1.0
    activation_hold_s: float = 5.0
    idle_poll_s: float = 1.0


@dataclass(frozen=True)
class LocatorConfig:
    """A locator tag known up front; tracked without waiting for an advertisement."""
    address: str
    public: bool = False

    @property
    def address_kind(self) -> AddressKind:
        return AddressKind.from_public_flag(self.public)


@dataclass(frozen=True)
class DriverConfig:
    calibration_dir: str
    calibration_files: Mapping[QuantityKind, str] = field(
        default_factory=lambda: dict(DEFAULT_CALIBRATION_FILES)
    )
    transport_driver: str = "gatttool"
    transport_params: Mapping[str, Any] = field(default_factory=dict)
    timing: Timing = field(default_factory=Timing)
    locators: Tuple[LocatorConfig, ...] = ()


_TOP_KEYS = {"calibration_dir", "calibration_files", "transport", "timing", "locators"}


def load_config(path: str | Path) -> DriverConfig:
    """
    Read a driver configuration YAML file.

    Layout:
        calibration_dir: data/calibration
        calibration_files: {illuminance: sunlight.json}   # optional overrides
        transport: {driver: gatttool, params: {security_level: medium}}
        timing: {sample_window_s: 5, sleep_window_s: 1800}
        locators:
          - {address: "C4:7C:8D:00:00:01", public: true}

    Relative calibration_dir values are resolved against the config file.
    """
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(
            f"Config file not found: {p}",
            hint="Pass --config <file.yaml> or create bledriver.yaml.",
        ) from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {p} is not valid YAML.", details={"reason": str(e)}) from None

    return config_from_dict(data, base_dir=p.parent)


def config_from_dict(data: Any, *, base_dir: str | Path = ".") -> DriverConfig:
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping.")

    unknown = sorted(set(data) - _TOP_KEYS)
    if unknown:
        raise ConfigError(
            f"Unknown config key(s): {', '.join(unknown)}",
            hint=f"Allowed keys: {', '.join(sorted(_TOP_KEYS))}",
        )

    if "calibration_dir" not in data:
        raise ConfigError(
            "Missing required key 'calibration_dir'.",
            hint="Point it at the directory holding sunlight.json, soil-moisture.json and temperature.json.",
        )
    cal_dir = Path(str(data["calibration_dir"]))
    if not cal_dir.is_absolute():
        cal_dir = Path(base_dir) / cal_dir

    driver, params = _transport(data.get("transport") or {})
    return DriverConfig(
        calibration_dir=str(cal_dir),
        calibration_files=_calibration_files(data.get("calibration_files") or {}),
        transport_driver=driver,
        transport_params=params,
        timing=_timing(data.get("timing") or {}),
        locators=_locators(data.get("locators") or []),
    )


def _calibration_files(raw: Any) -> Dict[QuantityKind, str]:
    if not isinstance(raw, dict):
        raise ConfigError("'calibration_files' must be a mapping of quantity -> filename.")
    files = dict(DEFAULT_CALIBRATION_FILES)
    for k, v in raw.items():
        try:
            kind = QuantityKind(str(k))
        except ValueError:
            raise ConfigError(
                f"Unknown quantity '{k}' in calibration_files.",
                hint=f"Use one of: {', '.join(q.value for q in QuantityKind)}",
            ) from None
        files[kind] = str(v)
    return files


def _transport(raw: Any) -> Tuple[str, Dict[str, Any]]:
    if not isinstance(raw, dict):
        raise ConfigError("'transport' must be a mapping with 'driver' and optional 'params'.")
    driver = str(raw.get("driver", "gatttool"))
    params = raw.get("params") or {}
    if not isinstance(params, dict):
        raise ConfigError("'transport.params' must be a mapping.")
    return driver, dict(params)


def _timing(raw: Any) -> Timing:
    if not isinstance(raw, dict):
        raise ConfigError("'timing' must be a mapping.")
    known = {f.name for f in fields(Timing)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(
            f"Unknown timing key(s): {', '.join(unknown)}",
            hint=f"Allowed keys: {', '.join(sorted(known))}",
        )

    values: Dict[str, Any] = {}
    for name, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"timing.{name} must be a number, got {value!r}")
        if value < 0:
            raise ConfigError(f"timing.{name} must be >= 0, got {value}")
        values[name] = int(value) if name == "actuation_max_attempts" else float(value)

    if values.get("actuation_max_attempts", 1) < 1:
        raise ConfigError("timing.actuation_max_attempts must be >= 1")
    return Timing(**values)


def _locators(raw: Any) -> Tuple[LocatorConfig, ...]:
    if not isinstance(raw, list):
        raise ConfigError("'locators' must be a list.")
    out = []
    for i, item in enumerate(raw):
        if isinstance(item, str):
            item = {"address": item}
        if not isinstance(item, dict) or "address" not in item:
            raise ConfigError(f"locators[{i}] must have an 'address'.")
        public = item.get("public", False)
        if not isinstance(public, bool):
            raise ConfigError(
                f"locators[{i}].public must be true or false, got {public!r}",
                hint="Use an unquoted YAML boolean.",
            )
        out.append(LocatorConfig(address=str(item["address"]), public=public))
    return tuple(out)
