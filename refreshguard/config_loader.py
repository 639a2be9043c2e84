"""Utilities to load :mod:`refreshguard.config` structures from YAML files."""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Mapping

import yaml

from .config import (
    BackgroundRefreshSettings,
    LoggingConfig,
    RefreshEndpointConfig,
    RefreshGuardConfig,
)

_DURATION_UNITS = {
    "m": _dt.timedelta(minutes=1),
    "h": _dt.timedelta(hours=1),
}

MIN_SCHEDULE_RATE = 1
MAX_SCHEDULE_RATE = 60


def load_config(path: Path) -> RefreshGuardConfig:
    """Load a configuration file into :class:`RefreshGuardConfig`.

    The schedule rate accepts human friendly values such as ``"15m"`` or
    ``"1h"`` as well as a bare number of minutes.  Sections omitted in the
    YAML file fall back to the defaults declared in :mod:`refreshguard.config`.
    """

    raw = _load_yaml(path)

    refresh_section = _section(raw, "background_refresh")
    defaults = BackgroundRefreshSettings()
    settings = BackgroundRefreshSettings(
        enable_background_tasks=_parse_bool(
            refresh_section.get("enabled", defaults.enable_background_tasks),
            "background_refresh.enabled",
        ),
        background_task_schedule_rate=_parse_schedule_rate(
            refresh_section.get("schedule_rate", defaults.background_task_schedule_rate)
        ),
    )

    endpoint = None
    endpoint_section = _section(raw, "refresh")
    if endpoint_section:
        if "base_url" not in endpoint_section:
            raise ValueError("refresh.base_url is required")
        endpoint = RefreshEndpointConfig(
            base_url=str(endpoint_section["base_url"]),
            path=str(endpoint_section.get("path", "/")),
            request_timeout=float(endpoint_section.get("request_timeout", 10.0)),
        )

    logging_section = _section(raw, "logging")
    logging_defaults = LoggingConfig()
    logging_cfg = LoggingConfig(
        level=str(logging_section.get("level", logging_defaults.level)).upper(),
        format=str(logging_section.get("format", logging_defaults.format)),
        history_size=int(logging_section.get("history_size", logging_defaults.history_size)),
    )
    if logging_cfg.history_size <= 0:
        raise ValueError("logging.history_size must be positive")

    return RefreshGuardConfig(
        background_refresh=settings,
        refresh=endpoint,
        logging=logging_cfg,
    )


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("configuration root must be a mapping")
    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a mapping, got {value!r}")
    return value


def _parse_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def _parse_schedule_rate(value: Any) -> int:
    minutes = _parse_minutes(value)
    if not MIN_SCHEDULE_RATE <= minutes <= MAX_SCHEDULE_RATE:
        raise ValueError(
            f"schedule_rate must be between {MIN_SCHEDULE_RATE} and "
            f"{MAX_SCHEDULE_RATE} minutes, got {minutes}"
        )
    return minutes


def _parse_minutes(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"unsupported duration value: {value!r}")
    if isinstance(value, _dt.timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, int):
        return value
    elif not isinstance(value, str):
        raise ValueError(f"unsupported duration value: {value!r}")
    else:
        value = value.strip()
        if value.isdigit():
            return int(value)
        unit = value[-1:].lower()
        if unit not in _DURATION_UNITS:
            raise ValueError(f"unknown duration unit: {value}")
        try:
            amount = float(value[:-1])
        except ValueError as exc:
            raise ValueError(f"invalid duration: {value}") from exc
        seconds = _DURATION_UNITS[unit].total_seconds() * amount
    if seconds % 60:
        raise ValueError(f"schedule_rate must be a whole number of minutes: {value!r}")
    return int(seconds // 60)
