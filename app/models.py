"""
Data models shared by the guide fetcher, builder and stream transforms.

HDHomeRun payload models mirror the PascalCase JSON returned by the device
and the cloud guide API; unknown fields are kept so nothing is lost between
fetch and build.
"""
from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


class _HDHomeRunModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class DeviceDiscovery(_HDHomeRunModel):
    """Response of the device's discover.json"""
    device_auth: str | None = Field(None, alias="DeviceAuth")
    device_id: str | None = Field(None, alias="DeviceID")
    friendly_name: str | None = Field(None, alias="FriendlyName")
    model_number: str | None = Field(None, alias="ModelNumber")


class LineupItem(_HDHomeRunModel):
    """Single entry of the device's lineup.json"""
    guide_number: str = Field(..., alias="GuideNumber")
    guide_name: str = Field("", alias="GuideName")
    url: str | None = Field(None, alias="URL")


class GuideProgramme(_HDHomeRunModel):
    """Single programme entry of a channel guide"""
    start_time: int = Field(..., alias="StartTime")
    end_time: int = Field(..., alias="EndTime")
    title: str = Field("", alias="Title")
    synopsis: str | None = Field(None, alias="Synopsis")
    episode_number: str | None = Field(None, alias="EpisodeNumber")
    episode_title: str | None = Field(None, alias="EpisodeTitle")
    original_airdate: int | None = Field(None, alias="OriginalAirdate")
    image_url: str | None = Field(None, alias="ImageURL")
    filter: list[str] = Field(default_factory=list, alias="Filter")


class ChannelGuide(_HDHomeRunModel):
    """One channel of a guide API response"""
    guide_number: str = Field(..., alias="GuideNumber")
    guide_name: str = Field("", alias="GuideName")
    affiliate: str | None = Field(None, alias="Affiliate")
    image_url: str | None = Field(None, alias="ImageURL")
    guide: list[GuideProgramme] = Field(default_factory=list, alias="Guide")


@dataclass(frozen=True, slots=True)
class RosterEntry:
    """Channel id to display name pair from the device lineup."""
    channel_id: str
    display_name: str

    @classmethod
    def from_lineup_item(cls, item: LineupItem) -> RosterEntry:
        return cls(channel_id=item.guide_number, display_name=item.guide_name or item.guide_number)


__all__ = [
    "DeviceDiscovery",
    "LineupItem",
    "GuideProgramme",
    "ChannelGuide",
    "RosterEntry",
]
