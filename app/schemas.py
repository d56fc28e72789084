from pydantic import BaseModel, Field


class EPGFileStatus(BaseModel):
    """Published EPG file state"""
    exists: bool = Field(..., description="Whether the published EPG file exists")
    path: str = Field(..., description="Path of the published symlink")
    target: str | None = Field(None, description="Versioned file the symlink points at")
    size_bytes: int | None = Field(None, description="File size in bytes")
    modified_at: str | None = Field(None, description="ISO8601 modification time")


class UpdateStatus(BaseModel):
    """Update cycle state"""
    running: bool = Field(..., description="Whether an update is in progress")
    last_status: str | None = Field(None, description="Status of the last update ('success', 'failed')")
    last_update_time: str | None = Field(None, description="ISO8601 time the last update finished")
    last_error: str | None = Field(None, description="Error of the last update, if it failed")


class StatusResponse(BaseModel):
    """Service status"""
    status: str = "ok"
    server_time: str = Field(..., description="Current time in the configured timezone")
    timezone: str
    hdhomerun_host: str
    schedule: str = Field(..., description="Cron expression for automatic updates")
    next_update: str | None = Field(None, description="ISO8601 time of the next scheduled update")
    scheduler_running: bool
    dummy_programming: bool
    epg_file: EPGFileStatus
    update: UpdateStatus


class ServiceInfo(BaseModel):
    """Root endpoint payload"""
    service: str
    version: str
    next_scheduled_update: str | None
    endpoints: dict[str, str]
