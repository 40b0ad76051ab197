from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest

from tripsync._transport import HttpTransport
from tripsync.exceptions import MalformedResponseError, TripSyncTransportError


@dataclass
class _FakeResponse:
    status: int
    body: str

    async def text(self) -> str:
        return self.body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


@dataclass
class _FakeSession:
    status: int = 200
    body: str = "{}"
    error: BaseException | None = None
    requests: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.body)


@pytest.mark.asyncio
async def test_get_json_returns_decoded_body_and_drops_none_params() -> None:
    session = _FakeSession(body='{"code": "Ok"}')
    transport = HttpTransport(session)  # type: ignore[arg-type]

    data = await transport.get_json("https://svc.test/route", {"limit": 5, "countrycodes": None})

    assert data == {"code": "Ok"}
    url, kwargs = session.requests[0]
    assert url == "https://svc.test/route"
    assert kwargs["params"] == {"limit": "5"}
    assert kwargs["headers"]["user-agent"].startswith("tripsync/")


@pytest.mark.asyncio
async def test_non_200_raises_transport_error_with_status() -> None:
    transport = HttpTransport(_FakeSession(status=503, body="busy"))  # type: ignore[arg-type]

    with pytest.raises(TripSyncTransportError) as exc_info:
        await transport.get_json("https://svc.test/search")

    assert exc_info.value.status_code == 503
    assert exc_info.value.endpoint == "https://svc.test/search"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
async def test_network_failures_raise_transport_error(error: BaseException) -> None:
    transport = HttpTransport(_FakeSession(error=error))  # type: ignore[arg-type]

    with pytest.raises(TripSyncTransportError):
        await transport.get_json("https://svc.test/reverse")


@pytest.mark.asyncio
async def test_invalid_json_raises_malformed_response() -> None:
    transport = HttpTransport(_FakeSession(body="<html>"))  # type: ignore[arg-type]

    with pytest.raises(MalformedResponseError):
        await transport.get_json("https://svc.test/reverse")


@dataclass
class _UndecodableResponse(_FakeResponse):
    async def text(self) -> str:
        raise UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")


@dataclass
class _UndecodableSession(_FakeSession):
    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append((url, kwargs))
        return _UndecodableResponse(self.status, self.body)


@pytest.mark.asyncio
async def test_undecodable_body_raises_malformed_response() -> None:
    transport = HttpTransport(_UndecodableSession())  # type: ignore[arg-type]

    with pytest.raises(MalformedResponseError) as exc_info:
        await transport.get_json("https://svc.test/route")

    assert exc_info.value.endpoint == "https://svc.test/route"
