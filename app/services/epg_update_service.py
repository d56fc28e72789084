"""
EPG Update Service

One update cycle: fetch the guide from the HDHomeRun, build and validate
the XMLTV document, write a versioned copy, optionally fill gaps with
placeholder programming, then publish it behind the epg.xml symlink.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from app.config import settings
from app.errors import StructuralError, ValidationError
from app.models import ChannelGuide, LineupItem, RosterEntry
from app.services.epg_transform_service import inject_placeholders
from app.services.fetch_coordinator import get_fetch_coordinator
from app.services.hdhomerun_client import HDHomeRunClient
from app.utils.file_operations import (
    cleanup_old_versions,
    cleanup_temp_file,
    update_symlink,
    versioned_path,
    write_file_atomic,
)
from app.utils.logging_helpers import (
    log_guide_summary,
    log_step,
    log_update_end,
    log_update_start,
)
from app.xmltv import PlaceholderSpec, XMLTVBuilder, validate_xmltv, validate_xmltv_file


logger = logging.getLogger(__name__)

TOTAL_STEPS = 6


@dataclass(slots=True)
class UpdateContext:
    started_at: datetime
    local_now: datetime
    lineup: list[LineupItem] = field(default_factory=list)
    guide: list[ChannelGuide] = field(default_factory=list)

    @property
    def programme_count(self) -> int:
        return sum(len(channel.guide) for channel in self.guide)


class EPGUpdatePipeline:
    """Runs the fetch, build, validate and publish stages of one update."""

    def __init__(
        self,
        *,
        host: str | None = None,
        output_dir: Path | None = None,
        client_factory: Callable[[str], HDHomeRunClient] = HDHomeRunClient,
        enable_dummy: bool | None = None,
    ) -> None:
        self.host = host or settings.hdhomerun_host
        self.output_dir = output_dir or settings.output_path
        self.client_factory = client_factory
        self.enable_dummy = settings.enable_dummy_programming if enable_dummy is None else enable_dummy
        self.tz = settings.tzinfo

    @property
    def link_path(self) -> Path:
        return self.output_dir / settings.epg_filename

    async def run(self) -> dict:
        started = time.monotonic()
        context = UpdateContext(
            started_at=datetime.now(timezone.utc),
            local_now=datetime.now(self.tz),
        )
        log_update_start(logger)

        async with self.client_factory(self.host) as client:
            log_step(logger, 1, TOTAL_STEPS, "Fetching DeviceAuth token...")
            await client.fetch_device_auth()

            log_step(logger, 2, TOTAL_STEPS, "Fetching channel lineup...")
            context.lineup = await client.fetch_lineup()

            log_step(logger, 3, TOTAL_STEPS, f"Fetching {settings.epg_days} days of guide data...")
            context.guide = await client.fetch_guide(settings.epg_days, settings.epg_hours_increment)

        log_guide_summary(logger, len(context.guide), context.programme_count)

        log_step(logger, 4, TOTAL_STEPS, "Building XMLTV document...")
        content = XMLTVBuilder(self.tz).generate(context.guide, context.lineup, f"http://{self.host}")

        log_step(logger, 5, TOTAL_STEPS, "Validating XMLTV document...")
        validate_xmltv(content)

        log_step(logger, 6, TOTAL_STEPS, "Writing versioned EPG file...")
        plain_path = versioned_path(self.output_dir, context.local_now.date())
        await write_file_atomic(plain_path, content)

        published = plain_path
        if self.enable_dummy:
            published = await self._add_placeholders(plain_path, context)

        update_symlink(self.link_path, published)
        deleted = cleanup_old_versions(self.output_dir, settings.epg_versions_to_keep)

        duration = time.monotonic() - started
        log_update_end(logger, duration)
        return self._build_result(context, published, published != plain_path, deleted, duration)

    async def _add_placeholders(self, plain_path: Path, context: UpdateContext) -> Path:
        """
        Write a -with-dummy version next to the plain one

        Returns:
            The placeholder version, or `plain_path` when the pass fails
        """
        target = versioned_path(self.output_dir, context.local_now.date(), with_placeholders=True)
        temp_path = target.with_name(f"{target.name}.tmp")
        roster = [RosterEntry.from_lineup_item(item) for item in context.lineup]
        spec = PlaceholderSpec(
            duration_hours=1.0,
            title=settings.dummy_program_title,
            description=settings.dummy_program_desc,
            days=settings.epg_days,
        )

        logger.info("Adding dummy programming for channels without guide data...")
        try:
            injector = await inject_placeholders(plain_path, temp_path, roster, spec, context.local_now)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, validate_xmltv_file, temp_path)
            os.replace(temp_path, target)
        except (StructuralError, ValidationError, OSError) as e:
            cleanup_temp_file(temp_path)
            logger.error(f"Dummy programming pass failed, publishing plain version: {e}")
            return plain_path

        logger.info(
            "Dummy programming: %s channels added, %s channels filled",
            injector.stats.channels_added,
            injector.stats.placeholder_channels,
        )
        return target

    def _build_result(
        self,
        context: UpdateContext,
        published: Path,
        with_placeholders: bool,
        deleted: Sequence[Path],
        duration: float,
    ) -> dict:
        return {
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "started_at": context.started_at.isoformat(),
            "duration_seconds": round(duration, 2),
            "channels": len(context.guide),
            "programmes": context.programme_count,
            "lineup_channels": len(context.lineup),
            "published_file": published.name,
            "dummy_programming": with_placeholders,
            "versions_deleted": [path.name for path in deleted],
        }


async def run_epg_update() -> dict:
    """
    Main entry point for EPG updates with concurrency protection.

    Returns:
        Dictionary with update statistics, or a skip/failure status.
    """
    return await get_fetch_coordinator().execute(_run_pipeline)


async def _run_pipeline() -> dict:
    pipeline = EPGUpdatePipeline()
    try:
        result = await pipeline.run()
        logger.info("EPG update completed successfully")
        return result
    except Exception as exc:  # Catch-all to keep the scheduler and API running
        logger.error("EPG update failed: %s", exc, exc_info=True)
        return {
            "status": "failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error": str(exc),
        }
