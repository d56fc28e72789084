"""
File operation utilities

This module handles versioned EPG files: atomic writes, the published
symlink, retention of old versions and temporary file cleanup.
"""
import logging
import os
import re
from datetime import date
from pathlib import Path

import aiofiles


logger = logging.getLogger(__name__)

PLACEHOLDER_SUFFIX = "-with-dummy"
_VERSIONED_NAME_RE = re.compile(rf"^epg-(\d{{4}}-\d{{2}}-\d{{2}})(?:{PLACEHOLDER_SUFFIX})?\.xml$")


def versioned_path(directory: Path, day: date, *, with_placeholders: bool = False) -> Path:
    """Path of the versioned file for `day`: epg-YYYY-MM-DD[-with-dummy].xml"""
    suffix = PLACEHOLDER_SUFFIX if with_placeholders else ""
    return directory / f"epg-{day.isoformat()}{suffix}.xml"


def plain_version_of(path: Path) -> Path:
    """Map a -with-dummy version to its plain sibling; other paths map to themselves."""
    if path.stem.endswith(PLACEHOLDER_SUFFIX):
        return path.with_name(path.stem[: -len(PLACEHOLDER_SUFFIX)] + path.suffix)
    return path


async def write_file_atomic(target: Path, content: bytes) -> Path:
    """
    Write bytes to `target` via a temporary file and rename

    Returns:
        Path to the written file

    Raises:
        OSError: If the file cannot be written; the temp file is removed
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_name(f"{target.name}.tmp")

    try:
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(content)
        os.replace(temp_path, target)
    except OSError:
        cleanup_temp_file(temp_path)
        raise

    logger.info(f"Wrote {len(content) / 1024:.0f} KB to {target}")
    return target


def update_symlink(link_path: Path, target_path: Path) -> None:
    """
    Point `link_path` at `target_path` by relative file name

    A new link is created next to the old one and renamed over it, so readers
    never see a missing file.
    """
    temp_link = link_path.with_name(f".{link_path.name}.new")
    cleanup_temp_file(temp_link)
    os.symlink(target_path.name, temp_link)
    os.replace(temp_link, link_path)
    logger.info(f"Symlink updated: {link_path} -> {target_path.name}")


def cleanup_old_versions(directory: Path, keep: int) -> list[Path]:
    """
    Delete versioned files older than the newest `keep` dates

    Plain and -with-dummy files of the same date count as one version.
    Failures are logged and skipped.

    Returns:
        Paths that were deleted
    """
    by_day: dict[str, list[Path]] = {}
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.warning(f"Failed to list {directory} for version cleanup: {e}")
        return []

    for entry in entries:
        match = _VERSIONED_NAME_RE.match(entry.name)
        if match and not entry.is_symlink():
            by_day.setdefault(match.group(1), []).append(entry)

    expired_days = sorted(by_day, reverse=True)[keep:]
    deleted = []
    if expired_days:
        logger.info(f"Cleaning up {len(expired_days)} old EPG versions...")
    for day in expired_days:
        for path in by_day[day]:
            try:
                path.unlink()
                deleted.append(path)
                logger.info(f"Deleted old version: {path.name}")
            except OSError as e:
                logger.warning(f"Failed to delete old version {path}: {e}")
    return deleted


def cleanup_temp_file(file_path: Path) -> bool:
    """
    Safely delete a temporary file

    Args:
        file_path: Path to file to delete

    Returns:
        True if deleted successfully, False otherwise
    """
    if not file_path or not (file_path.exists() or file_path.is_symlink()):
        return False

    try:
        file_path.unlink()
        logger.debug(f"Cleaned up temporary file: {file_path}")
        return True
    except (OSError, PermissionError) as e:
        logger.warning(f"Failed to delete temporary file {file_path}: {e}")
        return False
