"""
Services package for EPG Service

This package contains the update pipeline, the file transforms served over
HTTP, the HDHomeRun client and the scheduler.
"""
from app.services.epg_transform_service import render_epg
from app.services.epg_update_service import run_epg_update
from app.services.fetch_coordinator import get_fetch_coordinator
from app.services.scheduler_service import epg_scheduler

__all__ = [
    'render_epg',
    'run_epg_update',
    'get_fetch_coordinator',
    'epg_scheduler',
]
