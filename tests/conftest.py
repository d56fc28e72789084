"""
Global test configuration for the HDHomeRun XMLTV service.

Provides sample documents, a fixed local clock and an isolated output
directory for every test that touches files.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.config import settings
from app.services.fetch_coordinator import reset_fetch_coordinator


LOCAL_TZ = timezone(timedelta(hours=-6))

SAMPLE_XMLTV = """<?xml version='1.0' encoding='UTF-8'?>
<tv generator-info-name="HDHomeRun" generator-info-url="http://hdhomerun.local">
  <channel id="A">
    <display-name lang="en">Alpha</display-name>
  </channel>
  <channel id="B">
    <display-name lang="en">Bravo &amp; Co</display-name>
  </channel>
  <programme start="20250310090000 -0600" stop="20250310100000 -0600" channel="A">
    <title lang="en">Morning News</title>
  </programme>
  <programme start="20250311090000 -0600" stop="20250311100000 -0600" channel="A">
    <title lang="en">Tomorrow News</title>
  </programme>
  <programme start="20250313000000 -0600" stop="20250313010000 -0600" channel="A">
    <title lang="en">Late Show</title>
  </programme>
</tv>
"""


@pytest.fixture
def now() -> datetime:
    """Invocation instant: 2025-03-10 14:30 in a fixed UTC-6 zone."""
    return datetime(2025, 3, 10, 14, 30, tzinfo=LOCAL_TZ)


@pytest.fixture
def sample_xmltv() -> str:
    return SAMPLE_XMLTV


@pytest.fixture
def output_dir(tmp_path, monkeypatch):
    """Point the service's output directory at a temporary path."""
    directory = tmp_path / "output"
    directory.mkdir()
    monkeypatch.setattr(settings, "output_dir", str(directory))
    return directory


@pytest.fixture(autouse=True)
def _fresh_coordinator():
    reset_fetch_coordinator()
    yield
    reset_fetch_coordinator()
