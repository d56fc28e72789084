"""
Structured logging helpers for consistent log formatting.

Provides utilities for structured, clean logging without excessive decorative separators.
"""
import logging
import re
from datetime import datetime, timezone

_DEVICE_AUTH_RE = re.compile(r"(DeviceAuth=)[^&\s]+")


def log_step(logger: logging.Logger, step: int, total: int, message: str) -> None:
    """Log a numbered pipeline step, e.g. '[2/6] Fetching DeviceAuth token...'"""
    logger.info(f"[{step}/{total}] {message}")


def log_update_start(logger: logging.Logger) -> None:
    """Log EPG update operation start."""
    logger.info(f"EPG update started at {datetime.now(timezone.utc).isoformat()}")


def log_update_end(logger: logging.Logger, duration_seconds: float) -> None:
    """Log EPG update operation end."""
    logger.info(
        f"EPG update completed at {datetime.now(timezone.utc).isoformat()} "
        f"({duration_seconds:.2f}s)"
    )


def log_guide_summary(
    logger: logging.Logger,
    channels_count: int,
    programs_count: int
) -> None:
    """
    Log merged guide summary.

    Args:
        logger: Logger instance
        channels_count: Number of channels in the merged guide
        programs_count: Number of programmes in the merged guide
    """
    logger.info(f"Guide summary - Channels: {channels_count}, Programs: {programs_count}")


def sanitize_url_for_logging(url: str) -> str:
    """Mask the DeviceAuth token in a URL for safe logging."""
    return _DEVICE_AUTH_RE.sub(r"\1***", url)
