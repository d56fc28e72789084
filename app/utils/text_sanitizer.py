"""
Text sanitization utilities

Keeps guide text safe for XML: strips control characters that lxml refuses,
cleans HDHomeRun description noise and escapes hand-authored markup.
"""
import re
import time
import unicodedata
from dataclasses import dataclass
from xml.sax.saxutils import escape

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_FEATURE_TAG_RE = re.compile(r"\[[A-Z,]+\]")
_EMBEDDED_EPISODE_RE = re.compile(r"\(?[SE]?\d+\s?Ep\s?\d+[\d/]*\)?", re.IGNORECASE)
_EPISODE_NUMBER_RE = re.compile(r"S(\d+)E(\d+)", re.IGNORECASE)
_MULTI_SPACE_RE = re.compile(r"\s{2,}")

_XML_QUOTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}


@dataclass(frozen=True, slots=True)
class EpisodeInfo:
    xmltv_ns: str
    onscreen: str


def sanitize_text(text: str | None) -> str:
    """
    Sanitize text for XML

    Normalizes to NFC, removes control characters except tab, LF and CR,
    and trims surrounding whitespace.
    """
    if not text:
        return ""
    sanitized = unicodedata.normalize("NFC", text)
    sanitized = _CONTROL_CHARS_RE.sub("", sanitized)
    return sanitized.strip()


def clean_description(text: str | None) -> str:
    """Remove feature tags like [S,SL] and embedded 'S1 Ep3' markers from a synopsis"""
    if not text:
        return ""
    cleaned = sanitize_text(text)
    cleaned = _FEATURE_TAG_RE.sub("", cleaned)
    cleaned = _EMBEDDED_EPISODE_RE.sub("", cleaned)
    cleaned = _MULTI_SPACE_RE.sub(" ", cleaned)
    return cleaned.strip()


def escape_xml(text: str) -> str:
    """Escape the five XML metacharacters for text and attribute content"""
    return escape(sanitize_text(text), _XML_QUOTE_ENTITIES)


def parse_episode_number(episode_number: str | None) -> EpisodeInfo | None:
    """
    Parse an HDHomeRun episode number like 'S01E05'

    Returns:
        xmltv_ns (zero-based 'season.episode.0') and onscreen forms, or None
    """
    if not episode_number:
        return None
    match = _EPISODE_NUMBER_RE.search(episode_number)
    if match is None:
        return None
    season = int(match.group(1))
    episode = int(match.group(2))
    return EpisodeInfo(
        xmltv_ns=f"{max(season - 1, 0)}.{max(episode - 1, 0)}.0",
        onscreen=episode_number.upper(),
    )


def is_new_episode(original_airdate: int | None, now: float | None = None) -> bool:
    """An episode is new when it first aired within the last 24 hours"""
    if not original_airdate:
        return False
    current = time.time() if now is None else now
    return original_airdate >= current - 86400
