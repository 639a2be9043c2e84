"""Aligned background refresh scheduling."""

from .cli import main as cli_main
from .config_loader import load_config

__all__ = [
    "cli_main",
    "load_config",
    "config",
    "collectors",
    "services",
    "refresh_log",
]
