"""
Streaming placeholder (dummy programming) injector

Fills channels that have no guide data with back-to-back placeholder
programmes, and adds channel definitions for lineup channels missing from
the document entirely.

Whether a channel needs placeholders is only known once the whole document
has been seen, so the injector forwards content in a single pass while
recording which channels exist and which have programmes, then writes all
synthesized elements just before the closing </tv> tag.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.errors import StructuralError
from app.models import RosterEntry
from app.utils.text_sanitizer import escape_xml
from app.utils.timezone import format_xmltv_timestamp, local_day_start
from app.xmltv.scanner import CHANNEL, PROGRAMME, Element, RootClose, TagScanner, Token
from app.xmltv.transform import StreamTransform

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "No Information"
DEFAULT_DESCRIPTION = "No program information is currently available for {channel}."
DEFAULT_DAYS = 7
MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 12.0

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(hr|hours?|mins?|minutes?)?")
_ONE_HOUR_TOKENS = {"true", "1", "yes"}


def parse_duration(token: str | None) -> float:
    """
    Parse a free-form block duration into hours

    Examples: '30min' -> 0.5, '2hr' -> 2.0, '90' -> 12.0 (bare numbers are
    hours), 'true' -> 1.0. Results are clamped to [0.5, 12].
    """
    normalized = (token or "").strip().lower()
    if normalized in _ONE_HOUR_TOKENS:
        return 1.0

    match = _DURATION_RE.search(normalized)
    if match is None:
        return 1.0

    value = float(match.group(1))
    unit = match.group(2) or "hr"
    hours = value / 60.0 if unit.startswith("min") else value
    return max(MIN_DURATION_HOURS, min(MAX_DURATION_HOURS, hours))


def describe_duration(hours: float) -> str:
    return f"{hours:.1f} hour" if hours >= 1 else f"{round(hours * 60)} minute"


@dataclass(frozen=True, slots=True)
class PlaceholderSpec:
    """What placeholder programmes look like and how far they reach."""
    duration_hours: float = 1.0
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    days: int = DEFAULT_DAYS

    @classmethod
    def from_options(
        cls,
        duration: str | None,
        title: str | None = None,
        description: str | None = None,
        days: int | None = None,
    ) -> PlaceholderSpec:
        return cls(
            duration_hours=parse_duration(duration),
            title=title or DEFAULT_TITLE,
            description=description or DEFAULT_DESCRIPTION,
            days=days or DEFAULT_DAYS,
        )

    def describe(self, channel_name: str) -> str:
        return self.description.replace("{channel}", channel_name)


def render_channel(entry: RosterEntry) -> str:
    return (
        f'  <channel id="{escape_xml(entry.channel_id)}">\n'
        f'    <display-name lang="en">{escape_xml(entry.display_name)}</display-name>\n'
        f"  </channel>\n"
    )


def generate_placeholder_programmes(
    entry: RosterEntry,
    spec: PlaceholderSpec,
    day_start: datetime,
) -> Iterator[str]:
    """
    Yield placeholder <programme> elements for one channel

    Blocks start at `day_start` and continue back to back until a block would
    start at or after `day_start + spec.days`; the last block may run past it.
    Steps are taken in elapsed time, so blocks keep their length across DST
    changes.
    """
    channel_id = escape_xml(entry.channel_id)
    title = escape_xml(spec.title)
    description = escape_xml(spec.describe(entry.display_name))
    step = timedelta(hours=spec.duration_hours)
    end = day_start + timedelta(days=spec.days)

    current = day_start
    while current < end:
        following = (current.astimezone(timezone.utc) + step).astimezone(day_start.tzinfo)
        yield (
            f'  <programme channel="{channel_id}" start="{format_xmltv_timestamp(current)}" '
            f'stop="{format_xmltv_timestamp(following)}">\n'
            f'    <title lang="en">{title}</title>\n'
            f'    <desc lang="en">{description}</desc>\n'
            f"  </programme>\n"
        )
        current = following


@dataclass(slots=True)
class InjectionStats:
    channels_added: int = 0
    placeholder_channels: int = 0
    programmes_added: int = 0


@dataclass(slots=True)
class _ChannelIndex:
    """Presence index built while streaming; sized by channel count."""
    names: dict[str, str] = field(default_factory=dict)
    with_programmes: set[str] = field(default_factory=set)


class PlaceholderInjector(StreamTransform):
    """
    Insert channel definitions and placeholder programmes before </tv>.

    Args:
        roster: Lineup channels, in lineup order
        spec: Placeholder appearance and horizon
        now: Invocation instant in the local timezone (aware)
    """

    def __init__(
        self,
        roster: Sequence[RosterEntry],
        spec: PlaceholderSpec,
        now: datetime,
        scanner: TagScanner | None = None,
    ) -> None:
        super().__init__(scanner)
        self.roster = list(roster)
        self.spec = spec
        self.day_start = local_day_start(now)
        self.stats = InjectionStats()
        self._index = _ChannelIndex()
        self._root_closed = False

    def handle(self, token: Token) -> Iterable[str]:
        if isinstance(token, Element):
            self._record(token)
            return (token.text,)
        if isinstance(token, RootClose) and not self._root_closed:
            self._root_closed = True
            return self._insert_before(token)
        return (token.text,)

    def at_end(self) -> Iterable[str]:
        if not self._root_closed:
            raise StructuralError("Document ended without a closing </tv> tag")
        return ()

    def _record(self, element: Element) -> None:
        channel_id = element.channel_id
        if not channel_id:
            return
        if element.kind == CHANNEL:
            if channel_id not in self._index.names:
                self._index.names[channel_id] = element.child_text("display-name") or channel_id
        elif element.kind == PROGRAMME:
            self._index.with_programmes.add(channel_id)

    def _insert_before(self, root_close: RootClose) -> Iterator[str]:
        missing_channels, needing_placeholders = self._plan()

        for entry in missing_channels:
            yield render_channel(entry)

        for entry in needing_placeholders:
            for programme in generate_placeholder_programmes(entry, self.spec, self.day_start):
                self.stats.programmes_added += 1
                yield programme

        self.stats.channels_added = len(missing_channels)
        self.stats.placeholder_channels = len(needing_placeholders)
        logger.info(
            "Added %s channel definitions and %s dummy programming for %s channels",
            self.stats.channels_added,
            describe_duration(self.spec.duration_hours),
            self.stats.placeholder_channels,
        )
        yield root_close.text

    def _plan(self) -> tuple[list[RosterEntry], list[RosterEntry]]:
        roster_names: dict[str, str] = {}
        for entry in self.roster:
            if entry.channel_id and entry.channel_id not in roster_names:
                roster_names[entry.channel_id] = entry.display_name

        missing_channels = [
            RosterEntry(channel_id, name or channel_id)
            for channel_id, name in roster_names.items()
            if channel_id not in self._index.names
        ]

        needing_placeholders = [
            RosterEntry(channel_id, roster_names.get(channel_id) or name)
            for channel_id, name in self._index.names.items()
            if channel_id not in self._index.with_programmes
        ]
        needing_placeholders.extend(
            entry for entry in missing_channels
            if entry.channel_id not in self._index.with_programmes
        )
        return missing_channels, needing_placeholders
