"""
One-shot XMLTV document builder

Materializes the merged HDHomeRun guide as a full XMLTV document with lxml.
This is the only place the whole guide is held as a tree; every later
transform works on the serialized document as a stream.
"""
from datetime import tzinfo
from typing import Optional, Sequence
import logging
import time

from lxml import etree  # type: ignore

from app.models import ChannelGuide, GuideProgramme, LineupItem
from app.utils.text_sanitizer import (
    clean_description,
    is_new_episode,
    parse_episode_number,
    sanitize_text,
)
from app.utils.timezone import unix_to_xmltv

logger = logging.getLogger(__name__)

GENERATOR_NAME = "HDHomeRun"
LANG = "en"


class XMLTVBuilder:
    """Builds XMLTV bytes from guide data, formatting times in `tz`."""

    def __init__(self, tz: tzinfo, now: Optional[float] = None):
        self.tz = tz
        self.now = now

    def generate(
        self,
        guide: Sequence[ChannelGuide],
        lineup: Sequence[LineupItem],
        device_url: str
    ) -> bytes:
        """
        Generate an XMLTV document

        Args:
            guide: Merged guide, one entry per channel
            lineup: Device lineup; its names take precedence over guide names
            device_url: Recorded as generator-info-url

        Returns:
            UTF-8 encoded document with XML declaration
        """
        lineup_names = {item.guide_number: item.guide_name for item in lineup if item.guide_name}

        root = etree.Element("tv")
        root.set("generator-info-name", GENERATOR_NAME)
        root.set("generator-info-url", device_url)

        programme_count = 0
        for channel in guide:
            root.append(self._build_channel(channel, lineup_names.get(channel.guide_number)))

        for channel in guide:
            for program in channel.guide:
                root.append(self._build_programme(program, channel.guide_number))
                programme_count += 1

        logger.info(f"Built XMLTV document: {len(guide)} channels, {programme_count} programmes")

        return etree.tostring(
            root,
            xml_declaration=True,
            encoding="UTF-8",
            pretty_print=True,
        )

    def _build_channel(self, channel: ChannelGuide, lineup_name: Optional[str]) -> etree._Element:
        element = etree.Element("channel", id=channel.guide_number)
        name = sanitize_text(lineup_name or channel.guide_name) or channel.guide_number
        _text_child(element, "display-name", name)
        if channel.image_url:
            etree.SubElement(element, "icon", src=channel.image_url)
        return element

    def _build_programme(self, program: GuideProgramme, channel_id: str) -> etree._Element:
        element = etree.Element(
            "programme",
            start=unix_to_xmltv(program.start_time, self.tz),
            stop=unix_to_xmltv(program.end_time, self.tz),
            channel=channel_id,
        )

        _text_child(element, "title", sanitize_text(program.title))

        if program.episode_title:
            _text_child(element, "sub-title", sanitize_text(program.episode_title))

        description = clean_description(program.synopsis)
        if description:
            _text_child(element, "desc", description)

        for category in program.filter:
            category_text = sanitize_text(category)
            if category_text:
                _text_child(element, "category", category_text)

        if program.image_url:
            etree.SubElement(element, "icon", src=program.image_url)

        episode = parse_episode_number(program.episode_number)
        if episode:
            etree.SubElement(element, "episode-num", system="xmltv_ns").text = episode.xmltv_ns
            etree.SubElement(element, "episode-num", system="onscreen").text = episode.onscreen

            if program.original_airdate:
                if is_new_episode(program.original_airdate, self._now()):
                    etree.SubElement(element, "new")
                else:
                    aired = unix_to_xmltv(program.original_airdate, self.tz)
                    etree.SubElement(element, "previously-shown", start=aired[:8])
            else:
                etree.SubElement(element, "previously-shown")

        return element

    def _now(self) -> float:
        return time.time() if self.now is None else self.now


def _text_child(parent: etree._Element, tag: str, text: str) -> etree._Element:
    child = etree.SubElement(parent, tag, lang=LANG)
    child.text = text
    return child
