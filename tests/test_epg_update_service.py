"""
Tests for the update pipeline: fetch, build, validate, version and publish.
"""
import os
import time

import httpx
import pytest

from app.errors import StructuralError, ValidationError
from app.services import epg_update_service
from app.services.epg_update_service import EPGUpdatePipeline, run_epg_update
from app.services.fetch_coordinator import get_fetch_coordinator
from app.services.hdhomerun_client import GUIDE_API_URL, HDHomeRunClient
from app.xmltv import validate_xmltv_file


START = int(time.time()) - 600


def device_handler(guide_status: int = 200, guide: list | None = None):
    """Device and guide API stand-in: one guide window, then no more data."""
    guide_calls = []
    if guide is None:
        guide = [{
            "GuideNumber": "2.1",
            "GuideName": "KTVU",
            "Guide": [{"StartTime": START, "EndTime": START + 3600, "Title": "Evening News"}],
        }]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/discover.json":
            return httpx.Response(200, json={"DeviceAuth": "token"})
        if request.url.path == "/lineup.json":
            return httpx.Response(200, json=[
                {"GuideNumber": "2.1", "GuideName": "KTVU"},
                {"GuideNumber": "9.1", "GuideName": "Community"},
            ])
        if str(request.url).startswith(GUIDE_API_URL):
            guide_calls.append(request)
            if guide_status != 200:
                return httpx.Response(guide_status)
            return httpx.Response(200, json=guide if len(guide_calls) == 1 else [])
        return httpx.Response(404)

    return handler


def make_pipeline(output_dir, handler, enable_dummy=False) -> EPGUpdatePipeline:
    def client_factory(host):
        return HDHomeRunClient(host, retry_delay=0, transport=httpx.MockTransport(handler))

    return EPGUpdatePipeline(
        host="hdhomerun.test",
        output_dir=output_dir,
        client_factory=client_factory,
        enable_dummy=enable_dummy,
    )


class TestEPGUpdatePipeline:
    """Test cases for EPGUpdatePipeline."""

    @pytest.mark.asyncio
    async def test_publishes_versioned_file(self, output_dir):
        result = await make_pipeline(output_dir, device_handler()).run()

        assert result["status"] == "success"
        assert result["channels"] == 1
        assert result["programmes"] == 1
        assert result["dummy_programming"] is False
        assert result["published_file"].startswith("epg-")

        link = output_dir / "epg.xml"
        assert os.readlink(link) == result["published_file"]
        assert validate_xmltv_file(link) == (1, 1)

    @pytest.mark.asyncio
    async def test_dummy_programming_publishes_filled_version(self, output_dir):
        result = await make_pipeline(output_dir, device_handler(), enable_dummy=True).run()

        assert result["dummy_programming"] is True
        assert result["published_file"].endswith("-with-dummy.xml")

        link = output_dir / "epg.xml"
        content = link.read_text(encoding="utf-8")
        assert '<channel id="9.1">' in content
        assert "No program information is currently available for Community." in content
        assert (output_dir / result["published_file"].replace("-with-dummy", "")).exists()

    @pytest.mark.asyncio
    async def test_failed_dummy_pass_publishes_plain_version(self, output_dir, monkeypatch):
        async def broken_injection(*args, **kwargs):
            raise StructuralError("truncated")

        monkeypatch.setattr(epg_update_service, "inject_placeholders", broken_injection)
        result = await make_pipeline(output_dir, device_handler(), enable_dummy=True).run()

        assert result["dummy_programming"] is False
        assert not result["published_file"].endswith("-with-dummy.xml")
        assert not list(output_dir.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_empty_guide_keeps_previous_file(self, output_dir):
        previous = output_dir / "epg-2020-01-01.xml"
        previous.write_text("previous")
        os.symlink(previous.name, output_dir / "epg.xml")

        with pytest.raises(ValidationError):
            await make_pipeline(output_dir, device_handler(guide=[])).run()

        assert os.readlink(output_dir / "epg.xml") == previous.name


class TestRunEpgUpdate:
    """Top-level entry point used by the scheduler and the API."""

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, output_dir, monkeypatch):
        monkeypatch.setattr(
            epg_update_service,
            "EPGUpdatePipeline",
            lambda: make_pipeline(output_dir, device_handler(guide_status=500)),
        )

        result = await run_epg_update()

        assert result["status"] == "failed"
        assert "HTTP 500" in result["error"]
        assert get_fetch_coordinator().last_status == "failed"

    @pytest.mark.asyncio
    async def test_success_is_recorded(self, output_dir, monkeypatch):
        monkeypatch.setattr(
            epg_update_service,
            "EPGUpdatePipeline",
            lambda: make_pipeline(output_dir, device_handler()),
        )

        result = await run_epg_update()

        assert result["status"] == "success"
        assert get_fetch_coordinator().last_status == "success"
