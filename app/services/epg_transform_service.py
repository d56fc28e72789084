"""
EPG Transform Service

Runs the date-range filter and placeholder injector over XMLTV files with
async chunked I/O, for both the serve path and the update pipeline.
"""
from __future__ import annotations

import asyncio
import codecs
import logging
import shutil
from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from pathlib import Path

import aiofiles

from app.config import settings
from app.errors import StructuralError
from app.models import RosterEntry
from app.services.hdhomerun_client import load_roster
from app.utils.file_operations import cleanup_temp_file, plain_version_of
from app.xmltv import (
    DateRangeFilter,
    PlaceholderInjector,
    PlaceholderSpec,
    StreamTransform,
    TagScanner,
    TransformPipeline,
)


logger = logging.getLogger(__name__)


async def iter_file_chunks(path: Path, chunk_size: int | None = None) -> AsyncIterator[str]:
    """Yield decoded text from `path`; multi-byte characters may span reads."""
    size = chunk_size or settings.stream_chunk_size
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        async with aiofiles.open(path, "rb") as f:
            while True:
                data = await f.read(size)
                if not data:
                    break
                text = decoder.decode(data)
                if text:
                    yield text
        tail = decoder.decode(b"", final=True)
    except UnicodeDecodeError as e:
        raise StructuralError(f"{path.name} is not valid UTF-8: {e}") from e
    if tail:
        yield tail


async def apply_transforms(
    source: Path,
    destination: Path,
    transforms: Sequence[StreamTransform],
    chunk_size: int | None = None,
) -> Path:
    """
    Stream `source` through `transforms` into `destination`

    Raises:
        StructuralError: If the input is truncated or malformed; the partial
            destination file is removed
    """
    pipeline = TransformPipeline(transforms)
    try:
        async with aiofiles.open(destination, "w", encoding="utf-8", newline="") as out:
            async for chunk in iter_file_chunks(source, chunk_size):
                for piece in pipeline.push(chunk):
                    await out.write(piece)
            for piece in pipeline.finish():
                await out.write(piece)
    except (StructuralError, OSError):
        cleanup_temp_file(destination)
        raise

    return destination


def _new_scanner() -> TagScanner:
    return TagScanner(max_element_size=settings.scanner_max_element_kb * 1024)


def build_injector(
    roster: Sequence[RosterEntry],
    spec: PlaceholderSpec,
    now: datetime | None = None,
) -> PlaceholderInjector:
    return PlaceholderInjector(
        roster,
        spec,
        now or datetime.now(settings.tzinfo),
        scanner=_new_scanner(),
    )


async def inject_placeholders(
    source: Path,
    destination: Path,
    roster: Sequence[RosterEntry],
    spec: PlaceholderSpec,
    now: datetime | None = None,
) -> PlaceholderInjector:
    """Run only the injector over a file; returns it for its statistics."""
    injector = build_injector(roster, spec, now)
    await apply_transforms(source, destination, [injector])
    return injector


async def render_epg(
    source: Path,
    destination: Path,
    *,
    days: int | None = None,
    dummy: str | None = None,
    dummy_title: str | None = None,
    dummy_desc: str | None = None,
    now: datetime | None = None,
) -> Path:
    """
    Produce the document served for one request

    With neither `days` nor `dummy` the source is copied unchanged. Otherwise
    the filter runs first (when `days` is given), then the injector (when
    `dummy` is given) using a freshly fetched roster.

    Raises:
        FileNotFoundError: If the source document does not exist
        StructuralError: If the source document is malformed
    """
    if dummy:
        plain = plain_version_of(source.resolve())
        if plain.exists():
            source = plain
    if not source.exists():
        raise FileNotFoundError(source)

    if not days and not dummy:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, shutil.copyfile, source, destination)
        return destination

    now = now or datetime.now(settings.tzinfo)
    transforms: list[StreamTransform] = []
    if days:
        transforms.append(DateRangeFilter.for_days(days, now, scanner=_new_scanner()))
    if dummy:
        roster = await load_roster(settings.hdhomerun_host)
        if settings.enable_dummy_programming:
            dummy_title = dummy_title or settings.dummy_program_title
            dummy_desc = dummy_desc or settings.dummy_program_desc
        spec = PlaceholderSpec.from_options(dummy, dummy_title, dummy_desc, days)
        transforms.append(build_injector(roster, spec, now))

    logger.info(
        "Rendering %s (days=%s, dummy=%s) with %s transform(s)",
        source.name,
        days,
        dummy,
        len(transforms),
    )
    return await apply_transforms(source, destination, transforms)
