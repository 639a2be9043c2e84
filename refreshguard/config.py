"""Configuration schema for the background refresh scheduler.

This module defines dataclasses that describe how the refresh scheduler is
configured when it runs as a standalone process.  Every section has usable
defaults so a configuration file only needs to mention what it changes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(slots=True)
class BackgroundRefreshSettings:
    """Toggle and cadence of the background refresh task.

    ``background_task_schedule_rate`` is expressed in minutes and normally
    divides an hour evenly (5, 10, 15, 20, 30, 60).
    """

    enable_background_tasks: bool = True
    background_task_schedule_rate: int = 15


@dataclass(slots=True)
class RefreshEndpointConfig:
    """HTTP endpoint polled on every background refresh."""

    base_url: str
    path: str = "/"
    request_timeout: float = 10.0


@dataclass(slots=True)
class LoggingConfig:
    """Log level and in-memory history size for refresh log lines."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    history_size: int = 100


@dataclass(slots=True)
class RefreshGuardConfig:
    """Top-level configuration bundle."""

    background_refresh: BackgroundRefreshSettings = field(
        default_factory=BackgroundRefreshSettings
    )
    refresh: Optional[RefreshEndpointConfig] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
