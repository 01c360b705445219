"""
Logging setup for processes embedding the sync engine.

Library modules only call ``logging.getLogger(__name__)``; handlers are
configured once here by the host process.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import ObservabilitySettings, SyncSettings


def setup_logging(settings: SyncSettings | ObservabilitySettings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Full sync settings or just the observability section
    """
    observability = settings.observability if isinstance(settings, SyncSettings) else settings
    level = getattr(logging, observability.log_level.upper(), logging.INFO)

    if observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
