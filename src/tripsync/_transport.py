"""HTTP transport for the routing and geocoding services."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from tripsync._constants import USER_AGENT
from tripsync.exceptions import MalformedResponseError, TripSyncTransportError

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=15)


class Transport(Protocol):
    """Structural transport interface used by the service modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any: ...


class HttpTransport:
    """GET-and-parse-JSON over an aiohttp session."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._http = http_session
        self._timeout = timeout

    async def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        """Fetch *url* and return the decoded JSON body.

        Raises
        ------
        TripSyncTransportError
            On connection failure, timeout or a non-200 status.
        MalformedResponseError
            When the body cannot be decoded as text or is not JSON.
        """
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        _logger.debug("GET %s params=%s", url, query)

        try:
            async with self._http.get(url, params=query, headers=headers, timeout=self._timeout) as resp:
                try:
                    text = await resp.text()
                except (UnicodeDecodeError, LookupError) as exc:
                    raise MalformedResponseError(
                        f"Undecodable body from {url}: {exc!r}",
                        status_code=resp.status,
                        endpoint=url,
                    ) from exc
                if resp.status != 200:
                    raise TripSyncTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except TripSyncTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TripSyncTransportError(
                f"Request to {url} failed: {exc!r}",
                endpoint=url,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(
                f"Invalid JSON from {url}: {text[:200]}",
                endpoint=url,
            ) from exc
