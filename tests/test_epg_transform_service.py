"""
Tests for file-level transforms on the serve path.
"""
import pytest

from app.errors import StructuralError
from app.models import RosterEntry
from app.services import epg_transform_service
from app.services.epg_transform_service import apply_transforms, iter_file_chunks, render_epg
from app.xmltv import DateRangeFilter


@pytest.fixture
def roster(monkeypatch):
    """Replace the device lineup request with a fixed roster."""
    entries = [RosterEntry("A", "Alpha"), RosterEntry("B", "Bravo"), RosterEntry("C", "Charlie")]
    calls = []

    async def fake_load_roster(host, timeout=None):
        calls.append(host)
        return entries

    monkeypatch.setattr(epg_transform_service, "load_roster", fake_load_roster)
    return calls


class TestIterFileChunks:
    @pytest.mark.asyncio
    async def test_multibyte_characters_split_across_reads(self, tmp_path):
        path = tmp_path / "epg.xml"
        text = "<tv>Café – 日本</tv>"
        path.write_text(text, encoding="utf-8")

        chunks = [chunk async for chunk in iter_file_chunks(path, chunk_size=1)]

        assert "".join(chunks) == text

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_structural_error(self, tmp_path):
        path = tmp_path / "epg.xml"
        path.write_bytes(b"<tv>\xff\xfe</tv>")

        with pytest.raises(StructuralError):
            [chunk async for chunk in iter_file_chunks(path)]


class TestApplyTransforms:
    @pytest.mark.asyncio
    async def test_filters_into_destination(self, tmp_path, sample_xmltv, now):
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv, encoding="utf-8")
        destination = tmp_path / "out.xml"

        await apply_transforms(source, destination, [DateRangeFilter.for_days(1, now)], chunk_size=7)

        output = destination.read_text(encoding="utf-8")
        assert "Morning News" in output
        assert "Tomorrow News" not in output

    @pytest.mark.asyncio
    async def test_structural_error_removes_destination(self, tmp_path, sample_xmltv, now):
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv[: sample_xmltv.index("</programme>")], encoding="utf-8")
        destination = tmp_path / "out.xml"

        with pytest.raises(StructuralError):
            await apply_transforms(source, destination, [DateRangeFilter.for_days(1, now)])

        assert not destination.exists()


class TestRenderEpg:
    """Test cases for render_epg."""

    @pytest.mark.asyncio
    async def test_no_options_copies_file(self, tmp_path, sample_xmltv, roster):
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv, encoding="utf-8")
        destination = tmp_path / "out.xml"

        await render_epg(source, destination)

        assert destination.read_text(encoding="utf-8") == sample_xmltv
        assert roster == []

    @pytest.mark.asyncio
    async def test_days_and_dummy(self, tmp_path, sample_xmltv, now, roster):
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv, encoding="utf-8")
        destination = tmp_path / "out.xml"

        await render_epg(
            source,
            destination,
            days=1,
            dummy="2hr",
            dummy_title="Off Air",
            dummy_desc="Nothing on {channel}",
            now=now,
        )

        output = destination.read_text(encoding="utf-8")
        assert "Tomorrow News" not in output
        assert '<channel id="C">' in output
        assert output.count('programme channel="B"') == 12
        assert "Off Air" in output
        assert "Nothing on Charlie" in output
        assert roster == [epg_transform_service.settings.hdhomerun_host]

    @pytest.mark.asyncio
    async def test_dummy_reads_plain_sibling(self, tmp_path, sample_xmltv, now, roster):
        plain = tmp_path / "epg-2025-03-10.xml"
        plain.write_text(sample_xmltv, encoding="utf-8")
        with_dummy = tmp_path / "epg-2025-03-10-with-dummy.xml"
        with_dummy.write_text(sample_xmltv.replace("Morning News", "Stale Copy"), encoding="utf-8")
        link = tmp_path / "epg.xml"
        link.symlink_to(with_dummy.name)
        destination = tmp_path / "out.xml"

        await render_epg(link, destination, dummy="1hr", now=now)

        output = destination.read_text(encoding="utf-8")
        assert "Morning News" in output
        assert "Stale Copy" not in output

    @pytest.mark.asyncio
    async def test_dummy_uses_configured_text(self, tmp_path, sample_xmltv, now, roster, monkeypatch):
        monkeypatch.setattr(epg_transform_service.settings, "enable_dummy_programming", True)
        monkeypatch.setattr(epg_transform_service.settings, "dummy_program_title", "Configured Title")
        monkeypatch.setattr(epg_transform_service.settings, "dummy_program_desc", "Configured for {channel}")
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv, encoding="utf-8")
        destination = tmp_path / "out.xml"

        await render_epg(source, destination, dummy="1hr", now=now)

        output = destination.read_text(encoding="utf-8")
        assert '<title lang="en">Configured Title</title>' in output
        assert "Configured for Charlie" in output
        assert "No Information" not in output

    @pytest.mark.asyncio
    async def test_query_text_overrides_configured_text(self, tmp_path, sample_xmltv, now, roster, monkeypatch):
        monkeypatch.setattr(epg_transform_service.settings, "enable_dummy_programming", True)
        monkeypatch.setattr(epg_transform_service.settings, "dummy_program_title", "Configured Title")
        source = tmp_path / "epg.xml"
        source.write_text(sample_xmltv, encoding="utf-8")
        destination = tmp_path / "out.xml"

        await render_epg(source, destination, dummy="1hr", dummy_title="Off Air", now=now)

        output = destination.read_text(encoding="utf-8")
        assert "Off Air" in output
        assert "Configured Title" not in output

    @pytest.mark.asyncio
    async def test_missing_source(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await render_epg(tmp_path / "missing.xml", tmp_path / "out.xml", days=1)
