"""
Plant and device discovery.

Lists the account's plants and the devices of each plant through the shared
SessionClient. Retries and re-login are the client's business; this module
only maps payloads onto the typed models.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

from growatt.src.models import Device, DeviceListResponse, Plant
from growatt.src.session import SessionClient

logger = logging.getLogger(__name__)

PLANT_LIST_PATH = "/index/getPlantListTitle"
PLANT_DEVICES_PATH = "/panel/getDevicesByPlantList"


async def list_plants(client: SessionClient) -> list[Plant]:
    """Return the account's plants in dashboard order."""
    response = await client.request(PLANT_LIST_PATH)
    return response.parse(list[Plant])


async def list_devices_for_plant(client: SessionClient, plant_id: int) -> list[Device]:
    """Return the devices of one plant.

    The endpoint is paginated but the dashboard returns every device of a
    plant on page 1, so only that page is requested.
    """
    response = await client.request(
        PLANT_DEVICES_PATH,
        data={"currPage": "1", "plantId": str(plant_id)},
    )
    page = response.parse(DeviceListResponse).obj
    if page.pages > 1:
        logger.warning(
            "Plant %d reports %d device pages, only page 1 is read",
            plant_id,
            page.pages,
        )
    return page.datas


async def discover(client: SessionClient) -> list[tuple[Plant, list[Device]]]:
    """List plants, then fetch every plant's devices concurrently.

    Returns:
        ``(plant, devices)`` pairs in plant order.
    """
    plants = await list_plants(client)
    device_lists = await asyncio.gather(
        *(list_devices_for_plant(client, plant.id) for plant in plants)
    )
    total = sum(len(devices) for devices in device_lists)
    logger.info("Got %d plants with %d devices", len(plants), total)
    return list(zip(plants, device_lists))
