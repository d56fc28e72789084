"""
HDHomeRun API Client

Handles all communication with the HDHomeRun device (discover/lineup) and the
cloud guide API, including DeviceAuth refresh and windowed guide fetching.
"""
from __future__ import annotations

import asyncio
import logging
import socket
import time
from typing import Any

import httpx
from pydantic import ValidationError as PayloadValidationError

from app.config import settings
from app.errors import GuideAuthError, GuideFetchError, MissingDataError
from app.models import ChannelGuide, DeviceDiscovery, LineupItem, RosterEntry
from app.utils.data_merging import merge_guide_window
from app.utils.logging_helpers import sanitize_url_for_logging


logger = logging.getLogger(__name__)

GUIDE_API_URL = "https://api.hdhomerun.com/api/guide"

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:144.0) Gecko/20100101 Firefox/144.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
}


def _is_name_resolution_error(exc: BaseException) -> bool:
    """Walk the exception chain looking for a DNS lookup failure."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, socket.gaierror):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


class HDHomeRunClient:
    """
    Async client for one HDHomeRun device and the cloud guide API.

    Use as an async context manager so the underlying connection pool is
    closed after each update cycle.
    """

    def __init__(
        self,
        host: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        backoff_factor: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host
        self.max_retries = settings.http_max_retries if max_retries is None else max_retries
        self.retry_delay = settings.http_retry_delay_sec if retry_delay is None else retry_delay
        self.backoff_factor = settings.http_backoff_multiplier if backoff_factor is None else backoff_factor
        self.device_auth: str | None = None
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.http_timeout_sec,
            headers=REQUEST_HEADERS,
            transport=transport,
        )

    async def __aenter__(self) -> HDHomeRunClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def discover_url(self) -> str:
        return f"http://{self.host}/discover.json"

    @property
    def lineup_url(self) -> str:
        return f"http://{self.host}/lineup.json"

    async def fetch_device_auth(self) -> str:
        """
        Fetch the DeviceAuth token from the device

        The token expires after a few hours, so it is refreshed before every
        guide fetch.

        Raises:
            GuideAuthError: If the device cannot be reached or returns no token
        """
        logger.info(f"Fetching DeviceAuth from {self.discover_url}")
        try:
            response = await self._get(self.discover_url)
            discovery = DeviceDiscovery.model_validate(response.json())
        except (httpx.HTTPError, ValueError, PayloadValidationError) as e:
            raise GuideAuthError(f"Failed to fetch DeviceAuth from {self.discover_url}: {e}") from e

        if not discovery.device_auth:
            raise GuideAuthError("DeviceAuth not found in discover.json response")

        self.device_auth = discovery.device_auth
        logger.info("DeviceAuth obtained successfully")
        return self.device_auth

    async def fetch_lineup(self) -> list[LineupItem]:
        """
        Fetch the channel lineup from the device

        Raises:
            MissingDataError: If the lineup is unavailable or malformed
        """
        logger.info(f"Fetching lineup from {self.lineup_url}")
        try:
            response = await self._get(self.lineup_url)
            payload = response.json()
            lineup = [LineupItem.model_validate(item) for item in payload]
        except (httpx.HTTPError, ValueError, TypeError, PayloadValidationError) as e:
            raise MissingDataError(f"Failed to fetch lineup from {self.lineup_url}: {e}") from e

        logger.info(f"Fetched {len(lineup)} channels from lineup")
        return lineup

    async def fetch_roster(self) -> list[RosterEntry]:
        return [RosterEntry.from_lineup_item(item) for item in await self.fetch_lineup()]

    async def fetch_guide(self, days: int, hours_increment: int, now: float | None = None) -> list[ChannelGuide]:
        """
        Fetch the guide in time windows and merge them into one guide

        The first window has no start time; later windows step forward by
        `hours_increment` until `days` ahead or until a window comes back empty.
        """
        if not self.device_auth:
            await self.fetch_device_auth()

        current = int(time.time() if now is None else now)
        max_timestamp = current + days * 86400
        increment = hours_increment * 3600

        logger.info("Fetching initial EPG window...")
        base_guide = await self.fetch_guide_window()

        next_timestamp = current + increment
        window_count = 1
        while next_timestamp <= max_timestamp:
            window_count += 1
            logger.info(f"Fetching EPG window {window_count} (start: {next_timestamp})")
            window = await self.fetch_guide_window(next_timestamp)
            if not window:
                logger.info("No more EPG data available, stopping fetch")
                break

            _, added = merge_guide_window(base_guide, window)
            logger.debug(f"Window {window_count}: merged {added} new programmes")
            next_timestamp += increment

        logger.info(f"EPG fetch complete: {window_count} windows, {len(base_guide)} channels")
        return base_guide

    async def fetch_guide_window(self, start: int | None = None) -> list[ChannelGuide]:
        """
        Fetch a single guide window

        Returns:
            Guide channels, or an empty list when the API has no data for the
            window (any 4xx other than 403)

        Raises:
            GuideAuthError: If DeviceAuth is still rejected after a refresh
            GuideFetchError: If the API stays unreachable after retries
        """
        if not self.device_auth:
            await self.fetch_device_auth()

        refreshed = False
        while True:
            try:
                response = await self._get(GUIDE_API_URL, params=self._guide_params(start))
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 403 and not refreshed:
                    logger.warning("Got 403, DeviceAuth may be expired. Refreshing...")
                    await self.fetch_device_auth()
                    refreshed = True
                    continue
                if status == 403:
                    raise GuideAuthError("Guide API rejected refreshed DeviceAuth") from e
                if 400 <= status < 500:
                    logger.warning(
                        f"Guide API returned HTTP {status} for window start={start}; "
                        "treating as no data for this window"
                    )
                    return []
                raise GuideFetchError(f"Failed to fetch EPG window: HTTP {status}") from e
            except httpx.HTTPError as e:
                raise GuideFetchError(
                    f"Failed to fetch EPG window: {type(e).__name__}: {sanitize_url_for_logging(str(e))}"
                ) from e

            try:
                payload = response.json()
                if not payload:
                    return []
                return [ChannelGuide.model_validate(channel) for channel in payload]
            except (ValueError, TypeError, PayloadValidationError) as e:
                raise GuideFetchError(f"Malformed guide response for window start={start}: {e}") from e

    def _guide_params(self, start: int | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "DeviceAuth": self.device_auth,
            "SynopsisLength": settings.guide_synopsis_length,
        }
        if start:
            params["Start"] = start
        return params

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """
        GET with exponential backoff retry logic

        Retries on transient network errors and 5xx responses. Does NOT retry
        on 4xx responses or on DNS resolution failures.

        Raises:
            httpx.HTTPError: If the request fails after all retries
        """
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                response = await self._client.get(url, params=params)
                response.raise_for_status()
                return response

            except httpx.TransportError as e:
                if _is_name_resolution_error(e):
                    logger.error(f"DNS resolution failed for {url} - not retrying")
                    raise
                if attempt >= attempts - 1:
                    logger.error(f"Request failed after {attempts} attempts (transient error)")
                    raise
                wait_time = self._backoff(attempt)
                logger.warning(
                    f"Request attempt {attempt + 1}/{attempts} failed (transient error): {type(e).__name__}. "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)

            except httpx.HTTPStatusError as e:
                # HTTP errors - don't retry on 4xx (client error), retry on 5xx (server error)
                if e.response.status_code < 500 or attempt >= attempts - 1:
                    raise
                wait_time = self._backoff(attempt)
                logger.warning(
                    f"Request attempt {attempt + 1}/{attempts} failed "
                    f"(HTTP {e.response.status_code} server error). "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)

        raise RuntimeError(f"Failed to fetch {url} after {attempts} attempts")

    def _backoff(self, attempt: int) -> float:
        return self.retry_delay * (self.backoff_factor ** attempt)


async def load_roster(host: str, timeout: float | None = None) -> list[RosterEntry]:
    """
    Fetch a fresh roster for the placeholder injector

    A missing roster only means no new channel definitions are synthesized,
    so failures are logged and an empty roster is returned.
    """
    try:
        async with HDHomeRunClient(
            host,
            timeout=timeout or settings.lineup_timeout_sec,
            max_retries=0,
        ) as client:
            return await client.fetch_roster()
    except MissingDataError as e:
        logger.warning(f"Continuing without lineup for dummy programming: {e}")
        return []
