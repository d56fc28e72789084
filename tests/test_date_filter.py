"""
Unit tests for the streaming date-range filter.
"""
from datetime import datetime

import pytest

from app.errors import StructuralError
from app.xmltv.date_filter import DateRangeFilter
from app.xmltv.scanner import TagScanner
from app.utils.timezone import day_cutoff


def programme(start: str, title: str = "Show") -> str:
    return (
        f'  <programme start="{start}" stop="{start}" channel="A">\n'
        f"    <title>{title}</title>\n"
        f"  </programme>\n"
    )


def document(*programmes: str) -> str:
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n<tv>\n"
        '  <channel id="A">\n    <display-name>Alpha</display-name>\n  </channel>\n'
        + "".join(programmes)
        + "</tv>\n"
    )


def run_filter(date_filter: DateRangeFilter, text: str, chunk_size: int | None = None) -> str:
    size = chunk_size or len(text)
    chunks = [text[offset:offset + size] for offset in range(0, len(text), size)]
    return "".join(date_filter.transform(chunks))


class TestDateRangeFilter:
    """Test cases for DateRangeFilter."""

    def test_no_cutoff_is_byte_identical(self, sample_xmltv, now):
        date_filter = DateRangeFilter.for_days(None, now)

        assert date_filter.is_identity
        assert run_filter(date_filter, sample_xmltv, 5) == sample_xmltv
        assert date_filter.scanner.buffered == 0

    def test_keeps_only_programmes_before_cutoff(self, sample_xmltv, now):
        date_filter = DateRangeFilter.for_days(2, now)
        output = run_filter(date_filter, sample_xmltv)

        assert "Morning News" in output
        assert "Tomorrow News" in output
        assert "Late Show" not in output
        assert date_filter.kept == 2
        assert date_filter.dropped == 1

    def test_non_programme_content_is_untouched(self, sample_xmltv, now):
        output = run_filter(DateRangeFilter.for_days(1, now), sample_xmltv)

        assert output.startswith("<?xml version='1.0' encoding='UTF-8'?>\n<tv generator-info-name=")
        assert '<channel id="B">' in output
        assert output.endswith("</tv>\n")

    def test_boundary_at_midnight_of_day_three(self, now):
        text = document(
            programme("20250312235959 -0600", "Just Before"),
            programme("20250313000000 -0600", "At Midnight"),
        )
        output = run_filter(DateRangeFilter.for_days(3, now), text)

        assert "Just Before" in output
        assert "At Midnight" not in output

    def test_offset_is_ignored(self, now):
        text = document(programme("20250312230000 +0000", "Other Offset"))
        output = run_filter(DateRangeFilter.for_days(3, now), text)

        assert "Other Offset" in output

    def test_unparseable_start_is_kept(self, now):
        text = document(programme("tomorrow", "Odd Start"), programme("20300101000000 -0600", "Far Future"))
        date_filter = DateRangeFilter.for_days(1, now)
        output = run_filter(date_filter, text)

        assert "Odd Start" in output
        assert "Far Future" not in output

    @pytest.mark.parametrize("chunk_size", [1, 3, 17])
    def test_chunked_output_matches_whole(self, sample_xmltv, now, chunk_size):
        whole = run_filter(DateRangeFilter.for_days(2, now), sample_xmltv)
        chunked = run_filter(DateRangeFilter.for_days(2, now), sample_xmltv, chunk_size)

        assert chunked == whole

    def test_truncated_input_raises(self, now):
        text = document(programme("20250310090000 -0600"))
        truncated = text[: text.index("</programme>")]

        with pytest.raises(StructuralError):
            run_filter(DateRangeFilter.for_days(1, now, scanner=TagScanner()), truncated)


class TestDayCutoff:
    """Cutoff calculation in local wall-clock time."""

    def test_cutoff_is_naive_midnight_plus_days(self, now):
        assert day_cutoff(3, now) == datetime(2025, 3, 13, 0, 0, 0)

    def test_one_day_keeps_only_today(self, now):
        assert day_cutoff(1, now) == datetime(2025, 3, 11)
