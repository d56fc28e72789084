"""
Data merging utilities

This module folds successive time-windowed guide responses into one guide.
"""
import logging
from collections.abc import Iterable, Sequence

from app.models import ChannelGuide, GuideProgramme

logger = logging.getLogger(__name__)


def merge_guide_window(
    base_guide: list[ChannelGuide],
    window: Sequence[ChannelGuide]
) -> tuple[list[ChannelGuide], int]:
    """
    Merge one later guide window into the base guide.

    For each channel already in the base guide, programmes whose start time is
    not yet present are appended in window order. On a start-time conflict the
    entry already present wins; fields are never merged.

    Channels that only appear in the window are not added. This mirrors the
    upstream behaviour the guide was built around and is a known limitation.

    Args:
        base_guide: Guide to extend in place
        window: Guide channels returned for a later time window

    Returns:
        Tuple of (base_guide, count_of_new_programs_added)
    """
    channels_by_number = {channel.guide_number: channel for channel in base_guide}
    new_count = 0

    for window_channel in window:
        base_channel = channels_by_number.get(window_channel.guide_number)
        if base_channel is None:
            logger.debug(
                "Ignoring channel %s: not present in base guide",
                window_channel.guide_number,
            )
            continue

        seen_keys = {create_program_key(base_channel, program) for program in base_channel.guide}
        for program in window_channel.guide:
            program_key = create_program_key(base_channel, program)
            if program_key in seen_keys:
                logger.debug(
                    "Skipping duplicate program: %s on %s",
                    program.title,
                    base_channel.guide_number,
                )
                continue
            base_channel.guide.append(program)
            seen_keys.add(program_key)
            new_count += 1

    return base_guide, new_count


def merge_guide_windows(
    base_guide: list[ChannelGuide],
    windows: Iterable[Sequence[ChannelGuide]]
) -> tuple[list[ChannelGuide], int]:
    """
    Merge any number of later guide windows into the base guide, in order.

    Returns:
        Tuple of (base_guide, total_count_of_new_programs_added)
    """
    total = 0
    for window in windows:
        _, added = merge_guide_window(base_guide, window)
        total += added
    return base_guide, total


def create_program_key(channel: ChannelGuide, program: GuideProgramme) -> tuple[str, int]:
    """
    Create the deduplication key for a program: (channel, start time).

    Args:
        channel: Channel the program belongs to
        program: GuideProgramme instance

    Returns:
        Unique program key
    """
    return channel.guide_number, program.start_time
