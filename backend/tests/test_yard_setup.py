"""Yard configuration: location grids and position layout."""

import pytest

from coilyard.middleware.exceptions import PreconditionError
from coilyard.schemas.location import BulkLocationRequest, LocationCreate, LocationUpdate
from coilyard.schemas.position import PositionCreate, PositionUpdate
from coilyard.services.yard_setup import (
    YardSetupService,
    generate_ground_locations,
    selectable_support_locations,
    suggest_placeholder_id,
    validate_position_layout,
)


@pytest.fixture
def setup(stores) -> YardSetupService:
    return YardSetupService(stores)


@pytest.mark.unit
class TestGridGeneration:

    def test_row_major_layout(self):
        rows = generate_ground_locations("C", "Z1", "C", 1, 7, rows=2, cols=5, capacity_tons=40.0)

        assert [r["location_code"] for r in rows] == [f"C00{n}" for n in range(1, 8)]
        assert [(r["row_num"], r["col_num"]) for r in rows[4:7]] == [(1, 5), (2, 1), (2, 2)]
        assert all(r["capacity_tons"] == 40.0 for r in rows)

    def test_grid_too_small(self):
        with pytest.raises(PreconditionError) as exc:
            generate_ground_locations("C", "Z1", "C", 1, 11, rows=2, cols=5, capacity_tons=40.0)
        assert exc.value.error_code == "GRID_TOO_SMALL"

    def test_placeholder_suggestion(self):
        assert suggest_placeholder_id("A001", 1) == "A001-L1"
        assert suggest_placeholder_id("A001", 2) == "A001-L2-B"
        assert suggest_placeholder_id("A001", 3) == "A001-L3-B"


@pytest.mark.unit
class TestLayoutValidation:

    def test_layer_one_rests_on_primary(self, yard_locations, yard_positions):
        a1 = yard_locations[0]
        locs = {l.id: l for l in yard_locations}

        assert validate_position_layout(1, a1, [], locs, yard_positions) == ["loc-a1"]
        with pytest.raises(PreconditionError):
            validate_position_layout(1, a1, ["loc-a2"], locs, yard_positions)

    def test_bridge_support_rules(self, yard_locations, yard_positions):
        a1, a2, a3, b1 = yard_locations
        locs = {l.id: l for l in yard_locations}

        assert validate_position_layout(2, a2, ["loc-a2", "loc-a3"], locs, yard_positions) == [
            "loc-a2", "loc-a3",
        ]
        bad_layouts = [
            ["loc-a2"],                                      # too few
            ["loc-a1", "loc-a3"],                            # primary missing
            ["loc-a2", "loc-a2"],                            # repeated
            ["loc-a2", "loc-b1"],                            # other bay
        ]
        for supports in bad_layouts:
            with pytest.raises(PreconditionError) as exc:
                validate_position_layout(2, a2, supports, locs, yard_positions)
            assert exc.value.error_code == "INVALID_LAYOUT", supports

    def test_support_needs_lower_layer(self, yard_locations, yard_positions):
        a1 = yard_locations[0]
        locs = {l.id: l for l in yard_locations}
        positions = [p for p in yard_positions if p.id != "pos-a3"]

        with pytest.raises(PreconditionError) as exc:
            validate_position_layout(2, a1, ["loc-a1", "loc-a3"], locs, positions)
        assert "no layer 1 position" in exc.value.message

    def test_selectable_supports_stay_near(self, yard_locations):
        a1 = yard_locations[0]
        far = a1.model_copy(update={"id": "loc-far", "location_code": "A009", "col_num": 9})

        ids = [l.id for l in selectable_support_locations(a1, yard_locations + [far])]
        assert ids == ["loc-a1", "loc-a2", "loc-a3"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestSetupService:

    async def test_create_location_rejects_duplicate_code(self, setup):
        with pytest.raises(PreconditionError) as exc:
            await setup.create_location(LocationCreate(
                location_code="A001", bay="A", zone="Z1", capacity_tons=50,
            ))
        assert exc.value.error_code == "DUPLICATE_LOCATION_CODE"

    async def test_bulk_generate(self, setup, stores):
        created = await setup.bulk_generate(BulkLocationRequest(
            bay="D", zone="Z1", prefix="D", start_num=1, end_num=4, rows=2, cols=2,
        ))
        assert [l.location_code for l in created] == ["D001", "D002", "D003", "D004"]
        assert len(await stores.locations.filter(bay="D")) == 4

        with pytest.raises(PreconditionError) as exc:
            await setup.bulk_generate(BulkLocationRequest(
                bay="D", zone="Z1", prefix="D", start_num=4, end_num=5, rows=1, cols=2,
            ))
        assert exc.value.details == {"codes": ["D004"]}

    async def test_rename_location_updates_positions(self, setup, stores):
        await setup.update_location("loc-a2", LocationUpdate(location_code="A002X"))

        assert (await stores.positions.get("pos-a2")).primary_ground_location_code == "A002X"
        assert (await stores.positions.get("pos-b")).supported_by_ground_location_codes == ["A001", "A002X"]

    async def test_delete_location_in_use(self, setup, stores):
        with pytest.raises(PreconditionError) as exc:
            await setup.delete_location("loc-a2")
        assert exc.value.error_code == "LOCATION_IN_USE"
        assert sorted(exc.value.details["positions"]) == ["A001-L2-B", "A002-L1"]

        loc = await setup.create_location(LocationCreate(
            location_code="A010", bay="A", zone="Z1", capacity_tons=50,
        ))
        await setup.delete_location(loc.id)
        assert await stores.locations.get(loc.id) is None

    async def test_create_position_suggests_placeholder(self, setup):
        pos = await setup.create_position(PositionCreate(
            layer=2,
            primary_ground_location_id="loc-a2",
            supported_by_ground_location_ids=["loc-a2", "loc-a3"],
        ))
        assert pos.placeholder_id == "A002-L2-B"
        assert pos.type == "bridging"
        assert pos.supported_by_ground_location_codes == ["A002", "A003"]
        assert pos.bay == "A"
        assert pos.coil_barcode is None

        with pytest.raises(PreconditionError) as exc:
            await setup.create_position(PositionCreate(
                placeholder_id="A002-L2-B",
                layer=2,
                primary_ground_location_id="loc-a2",
                supported_by_ground_location_ids=["loc-a2", "loc-a3"],
            ))
        assert exc.value.error_code == "DUPLICATE_PLACEHOLDER"

    async def test_occupied_position_layout_is_locked(self, setup, allocation):
        await allocation.assign("C1", "pos-a3")

        with pytest.raises(PreconditionError) as exc:
            await setup.update_position("pos-a3", PositionUpdate(primary_ground_location_id="loc-a2"))
        assert exc.value.error_code == "POSITION_OCCUPIED"

        updated = await setup.update_position("pos-a3", PositionUpdate(is_visible=False))
        assert updated.is_visible is False

    async def test_delete_position_guards(self, setup, allocation, stores):
        with pytest.raises(PreconditionError) as exc:
            await setup.delete_position("pos-a")
        assert exc.value.error_code == "HAS_DEPENDENTS"

        await allocation.assign("C1", "pos-a3")
        with pytest.raises(PreconditionError) as exc:
            await setup.delete_position("pos-a3")
        assert exc.value.error_code == "POSITION_OCCUPIED"

        await setup.delete_position("pos-b")
        assert await stores.positions.get("pos-b") is None
