"""Pytest configuration and fixtures for CoilYard tests.

Every test runs against in-memory entity stores seeded with a small yard:

    bay A / zone Z1, one row of ground locations

        A001-L2-B   (layer 2, rests on A001 + A002)
    A001-L1   A002-L1   A003-L1
    [A001]    [A002]    [A003]

    bay B / zone Z1: B001 with B001-L1

Coils C1, C2, C3, C4 are incoming and unplaced; C9 has shipped.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from coilyard.deps import get_stores
from coilyard.main import app
from coilyard.models.enums import CoilStatus
from coilyard.schemas.coil import CoilRecord
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord
from coilyard.services.allocation import AllocationService
from coilyard.store.base import YardStores
from coilyard.store.memory import memory_stores


# ── Yard seed data ───────────────────────────────────────────────

def _location(loc_id: str, code: str, bay: str, col: int) -> LocationRecord:
    return LocationRecord(
        id=loc_id, location_code=code, bay=bay, zone="Z1",
        row_num=1, col_num=col, capacity_tons=50.0,
    )


def _position(pos_id: str, placeholder: str, loc: LocationRecord, layer: int = 1,
              supports: list[LocationRecord] | None = None) -> PositionRecord:
    supports = supports or [loc]
    return PositionRecord(
        id=pos_id,
        placeholder_id=placeholder,
        layer=layer,
        type="ground" if layer == 1 else "bridging",
        primary_ground_location_id=loc.id,
        primary_ground_location_code=loc.location_code,
        supported_by_ground_location_ids=[s.id for s in supports],
        supported_by_ground_location_codes=[s.location_code for s in supports],
        bay=loc.bay,
        zone=loc.zone,
    )


@pytest.fixture
def yard_locations() -> list[LocationRecord]:
    return [
        _location("loc-a1", "A001", "A", 1),
        _location("loc-a2", "A002", "A", 2),
        _location("loc-a3", "A003", "A", 3),
        _location("loc-b1", "B001", "B", 1),
    ]


@pytest.fixture
def yard_positions(yard_locations) -> list[PositionRecord]:
    a1, a2, a3, b1 = yard_locations
    return [
        _position("pos-a", "A001-L1", a1),
        _position("pos-a2", "A002-L1", a2),
        _position("pos-a3", "A003-L1", a3),
        _position("pos-b", "A001-L2-B", a1, layer=2, supports=[a1, a2]),
        _position("pos-y", "B001-L1", b1),
    ]


@pytest.fixture
def yard_coils() -> list[CoilRecord]:
    coils = [
        CoilRecord(id=f"coil-{n}", barcode=f"C{n}", weight_tons=12.5)
        for n in (1, 2, 3, 4)
    ]
    coils.append(CoilRecord(id="coil-9", barcode="C9", status=CoilStatus.SHIPPED))
    return coils


@pytest.fixture
def stores(yard_locations, yard_positions, yard_coils) -> YardStores:
    return memory_stores(
        locations=yard_locations,
        positions=yard_positions,
        coils=yard_coils,
    )


@pytest.fixture
def allocation(stores) -> AllocationService:
    return AllocationService(stores, moved_by="tester")


# ── Helpers ──────────────────────────────────────────────────────

@pytest.fixture
def find_coil(stores):
    async def _find(barcode: str) -> CoilRecord:
        return (await stores.coils.filter(barcode=barcode))[0]
    return _find


@pytest.fixture
def assert_consistent(stores):
    """coil.current_stacking_position_id == p.id  <=>  p.coil_barcode == coil.barcode"""
    async def _check() -> None:
        positions = await stores.positions.list()
        coils = await stores.coils.list()
        held = {p.coil_barcode: p.id for p in positions if p.coil_barcode}
        assert len(held) == sum(1 for p in positions if p.coil_barcode)
        for c in coils:
            assert c.current_stacking_position_id == held.get(c.barcode), c.barcode
    return _check


# ── HTTP client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(stores) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the store dependency swapped for in-memory stores."""

    async def override_get_stores():
        return stores

    app.dependency_overrides[get_stores] = override_get_stores

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
