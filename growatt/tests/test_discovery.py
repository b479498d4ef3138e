"""
Tests for plant and device discovery.

Tests verify:
- Plants are listed by GET and parsed with numeric coercion.
- Devices are requested per plant by form POST with page 1.
- discover() pairs every plant with its devices.
- An unexpected payload surfaces as MalformedPayload.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest
from growatt.src.cookies import CookieStore
from growatt.src.discovery import (
    PLANT_DEVICES_PATH,
    PLANT_LIST_PATH,
    discover,
    list_devices_for_plant,
    list_plants,
)
from growatt.src.errors import MalformedPayload
from growatt.src.session import Credentials, SessionClient


def _device_page(entries: list[dict], pages: int = 1) -> dict:
    return {
        "result": 1,
        "obj": {
            "currPage": 1,
            "pages": pages,
            "pageSize": 4,
            "count": len(entries),
            "datas": entries,
        },
    }


def _client(handler, tmp_path: Path) -> SessionClient:
    return SessionClient(
        base_url="https://server.growatt.com",
        credentials=Credentials("solar-user", "s3cret-pass"),
        cookie_store=CookieStore(tmp_path / "cookies.json"),
        transport=httpx.MockTransport(handler),
        sleep=AsyncMock(),
    )


@pytest.fixture()
def dashboard(make_device_entry):
    """Two plants; plant 1234 has two devices, plant 5678 has one."""
    devices = {
        "1234": [
            make_device_entry(sn="SPF0000001"),
            make_device_entry(sn="SPF0000002", alias="Shed"),
        ],
        "5678": [make_device_entry(sn="SPF0000003", plantId="5678")],
    }
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == PLANT_LIST_PATH:
            return httpx.Response(
                200,
                json=[
                    {"id": "1234", "timezone": "1", "plantName": "Home"},
                    {"id": "5678", "timezone": "1", "plantName": "Cabin"},
                ],
            )
        if request.url.path == PLANT_DEVICES_PATH:
            form = parse_qs(request.content.decode())
            return httpx.Response(200, json=_device_page(devices[form["plantId"][0]]))
        return httpx.Response(404)

    handler.requests = requests
    return handler


class TestListPlants:
    @pytest.mark.asyncio
    async def test_plants_listed_by_get(self, dashboard, tmp_path: Path) -> None:
        async with _client(dashboard, tmp_path) as client:
            plants = await list_plants(client)

        assert [(p.id, p.name) for p in plants] == [(1234, "Home"), (5678, "Cabin")]
        assert dashboard.requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_malformed(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": 0})

        async with _client(handler, tmp_path) as client:
            with pytest.raises(MalformedPayload):
                await list_plants(client)


class TestListDevices:
    @pytest.mark.asyncio
    async def test_devices_requested_by_form_post(
        self, dashboard, tmp_path: Path
    ) -> None:
        async with _client(dashboard, tmp_path) as client:
            devices = await list_devices_for_plant(client, 1234)

        assert [d.sn for d in devices] == ["SPF0000001", "SPF0000002"]
        request = dashboard.requests[0]
        assert request.method == "POST"
        assert parse_qs(request.content.decode()) == {
            "currPage": ["1"],
            "plantId": ["1234"],
        }

    @pytest.mark.asyncio
    async def test_extra_pages_logged(
        self, make_device_entry, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            page = _device_page([make_device_entry()], pages=2)
            return httpx.Response(200, json=page)

        with caplog.at_level(logging.WARNING):
            async with _client(handler, tmp_path) as client:
                devices = await list_devices_for_plant(client, 1234)

        assert len(devices) == 1
        assert "only page 1 is read" in caplog.text


class TestDiscover:
    @pytest.mark.asyncio
    async def test_every_plant_paired_with_devices(
        self, dashboard, tmp_path: Path
    ) -> None:
        async with _client(dashboard, tmp_path) as client:
            discovered = await discover(client)

        pairs = [(plant.id, [d.sn for d in devices]) for plant, devices in discovered]
        assert pairs == [
            (1234, ["SPF0000001", "SPF0000002"]),
            (5678, ["SPF0000003"]),
        ]

    @pytest.mark.asyncio
    async def test_no_plants(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[])

        async with _client(handler, tmp_path) as client:
            assert await discover(client) == []
