from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated
import logging
import os
import tempfile

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse, PlainTextResponse, Response
from starlette.background import BackgroundTask

from app.config import settings
from app.errors import StructuralError
from app.schemas import EPGFileStatus, ServiceInfo, StatusResponse, UpdateStatus
from app.services import (
    epg_scheduler,
    get_fetch_coordinator,
    render_epg,
    run_epg_update,
)
from app.utils.file_operations import cleanup_temp_file


logger = logging.getLogger(__name__)

main_router = APIRouter()

XML_MEDIA_TYPE = "application/xml; charset=UTF-8"
EPG_HEADERS = {
    "Cache-Control": "public, max-age=1800",
    "Access-Control-Allow-Origin": "*",
}
ICON_PATH = Path("icon.png")
NOT_FOUND_MESSAGE = "EPG file not found. Please wait for the first update to complete or trigger one with POST /update."


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@main_router.get("/", response_model=ServiceInfo)
async def root() -> ServiceInfo:
    """Root endpoint with service information"""
    return ServiceInfo(
        service="HDHomeRun XMLTV Service",
        version="0.1.0",
        next_scheduled_update=_isoformat(epg_scheduler.get_next_run_time()),
        endpoints={
            "epg": "/epg.xml - XMLTV guide (also /xmltv.xml, /guide.xml); "
                   "query: days, dummy, dummyTitle, dummyDesc",
            "status": "/status - Service and update status",
            "update": "/update - Manually trigger an EPG update (POST)",
            "health": "/health - Health check",
        },
    )


@main_router.get("/health", response_class=PlainTextResponse)
async def health_check() -> str:
    """Health check endpoint"""
    return "OK"


@main_router.get("/status", response_model=StatusResponse)
async def status() -> StatusResponse:
    """Service status: published file, schedule and last update"""
    coordinator = get_fetch_coordinator()
    return StatusResponse(
        server_time=datetime.now(settings.tzinfo).isoformat(),
        timezone=settings.epg_timezone,
        hdhomerun_host=settings.hdhomerun_host,
        schedule=settings.epg_fetch_cron,
        next_update=_isoformat(epg_scheduler.get_next_run_time()),
        scheduler_running=epg_scheduler.running,
        dummy_programming=settings.enable_dummy_programming,
        epg_file=_file_status(settings.epg_path),
        update=UpdateStatus(
            running=coordinator.is_fetching(),
            last_status=coordinator.last_status,
            last_update_time=_isoformat(coordinator.last_update_time),
            last_error=coordinator.last_error,
        ),
    )


def _file_status(path: Path) -> EPGFileStatus:
    if not path.exists():
        return EPGFileStatus(exists=False, path=str(path))

    stat = path.stat()
    return EPGFileStatus(
        exists=True,
        path=str(path),
        target=os.readlink(path) if path.is_symlink() else None,
        size_bytes=stat.st_size,
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
    )


@main_router.get("/icon.png")
async def icon() -> FileResponse:
    if not ICON_PATH.is_file():
        raise HTTPException(status_code=404, detail="Icon not found")
    return FileResponse(ICON_PATH, media_type="image/png")


@main_router.post("/update")
async def trigger_update() -> dict:
    """
    Manually trigger an EPG update

    This will fetch the guide from the HDHomeRun, rebuild and publish epg.xml
    """
    logger.info("Manual EPG update triggered via API")
    result = await run_epg_update()

    if result.get("status") == "failed":
        raise HTTPException(status_code=500, detail=result.get("error"))

    return result


@main_router.get("/epg.xml")
@main_router.get("/xmltv.xml")
@main_router.get("/guide.xml")
async def serve_epg(
    days: Annotated[int | None, Query(ge=1, description="Keep programmes starting before midnight + days")] = None,
    dummy: Annotated[str | None, Query(description="Placeholder block length, e.g. '30min', '2hr', 'true'")] = None,
    dummy_title: Annotated[str | None, Query(alias="dummyTitle")] = None,
    dummy_desc: Annotated[str | None, Query(alias="dummyDesc")] = None,
) -> Response:
    """
    Serve the XMLTV guide

    Without query parameters the published file is served as is; otherwise it
    is streamed through the date filter and/or placeholder injector first.
    """
    source = settings.epg_path
    if not source.exists():
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)

    if not days and not dummy:
        return FileResponse(source, media_type=XML_MEDIA_TYPE, headers=EPG_HEADERS)

    fd, temp_name = tempfile.mkstemp(prefix="epg-render-", suffix=".xml")
    os.close(fd)
    rendered = Path(temp_name)

    try:
        await render_epg(
            source,
            rendered,
            days=days,
            dummy=dummy,
            dummy_title=dummy_title,
            dummy_desc=dummy_desc,
        )
    except FileNotFoundError:
        cleanup_temp_file(rendered)
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)
    except StructuralError as e:
        cleanup_temp_file(rendered)
        logger.error(f"Failed to transform {source}: {e}")
        return PlainTextResponse(f"Failed to process EPG file: {e}", status_code=500)

    return FileResponse(
        rendered,
        media_type=XML_MEDIA_TYPE,
        headers=EPG_HEADERS,
        background=BackgroundTask(cleanup_temp_file, rendered),
    )
