"""
Unit tests for guide text sanitization and episode parsing.
"""
import pytest

from app.utils.text_sanitizer import (
    clean_description,
    escape_xml,
    is_new_episode,
    parse_episode_number,
    sanitize_text,
)


class TestSanitizeText:
    """Test cases for sanitize_text."""

    def test_strips_control_characters_but_keeps_whitespace_controls(self):
        assert sanitize_text("  a\x00b\x1fc\td\ne  ") == "abc\td\ne"

    def test_normalizes_to_nfc(self):
        assert sanitize_text("Cafe\u0301") == "Caf\u00e9"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert sanitize_text(value) == ""


class TestCleanDescription:
    """Test cases for clean_description."""

    def test_removes_feature_tags_and_episode_markers(self):
        text = "A detective returns. [S,SL] S2 Ep5  More text"
        assert clean_description(text) == "A detective returns. More text"

    def test_plain_text_unchanged(self):
        assert clean_description("Nothing special here.") == "Nothing special here."


class TestEscapeXml:
    def test_escapes_all_metacharacters(self):
        assert escape_xml("""<a & 'b' "c">""") == "&lt;a &amp; &apos;b&apos; &quot;c&quot;&gt;"


class TestParseEpisodeNumber:
    """Test cases for parse_episode_number."""

    def test_zero_based_xmltv_ns(self):
        info = parse_episode_number("S01E05")
        assert info.xmltv_ns == "0.4.0"
        assert info.onscreen == "S01E05"

    def test_onscreen_is_upper_cased(self):
        assert parse_episode_number("s03e10").onscreen == "S03E10"

    @pytest.mark.parametrize("value", [None, "", "Episode 5"])
    def test_unparseable(self, value):
        assert parse_episode_number(value) is None


class TestIsNewEpisode:
    def test_within_last_day_is_new(self):
        assert is_new_episode(1_000_000, now=1_000_000 + 3600)

    def test_older_is_not_new(self):
        assert not is_new_episode(1_000_000, now=1_000_000 + 2 * 86400)

    def test_missing_airdate_is_not_new(self):
        assert not is_new_episode(None, now=1_000_000)
