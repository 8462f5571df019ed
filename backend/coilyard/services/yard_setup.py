"""Yard configuration: ground locations and the stacking positions on them.

Layout rules checked whenever a position is created or edited:

    layer 1       rests on exactly one location, its own primary
    layer 2..3    rests on 2-3 locations, the primary among them, all in the
                  primary's bay and zone and within 2 rows / 2 columns of it;
                  each support must carry a position one layer down

Occupancy (``coil_barcode``) is never set here; see AllocationService.
"""

import logging

from coilyard.middleware.exceptions import PreconditionError, ResourceNotFoundError
from coilyard.models.enums import MAX_LAYER, PositionType
from coilyard.schemas.location import (
    BulkLocationRequest,
    LocationCreate,
    LocationRecord,
    LocationUpdate,
)
from coilyard.schemas.position import PositionCreate, PositionRecord, PositionUpdate
from coilyard.services.position_graph import build_position_graph
from coilyard.store.base import YardStores

logger = logging.getLogger(__name__)

SUPPORT_RADIUS = 2
MIN_BRIDGE_SUPPORTS = 2
MAX_BRIDGE_SUPPORTS = 3


# ── Pure helpers ─────────────────────────────────────────────

def generate_ground_locations(
    bay: str,
    zone: str,
    prefix: str,
    start: int,
    end: int,
    rows: int,
    cols: int,
    capacity_tons: float,
) -> list[dict]:
    """Lay codes ``{prefix}{n:03d}`` out row by row over a rows x cols grid."""
    count = end - start + 1
    if count > rows * cols:
        raise PreconditionError(
            f"Number of locations ({count}) exceeds grid size ({rows}x{cols})",
            error_code="GRID_TOO_SMALL",
        )
    out = []
    for offset, n in enumerate(range(start, end + 1)):
        out.append({
            "location_code": f"{prefix}{n:03d}",
            "bay": bay,
            "zone": zone,
            "row_num": offset // cols + 1,
            "col_num": offset % cols + 1,
            "capacity_tons": capacity_tons,
            "location_type": "ground",
            "is_active": True,
            "is_visible": True,
        })
    return out


def suggest_placeholder_id(location_code: str, layer: int) -> str:
    if layer == 1:
        return f"{location_code}-L1"
    return f"{location_code}-L{layer}-B"


def selectable_support_locations(
    primary: LocationRecord,
    locations: list[LocationRecord],
) -> list[LocationRecord]:
    """Locations a bridging position on ``primary`` may rest on."""
    return [
        loc for loc in locations
        if loc.bay == primary.bay
        and loc.zone == primary.zone
        and abs((loc.row_num or 0) - (primary.row_num or 0)) <= SUPPORT_RADIUS
        and abs((loc.col_num or 0) - (primary.col_num or 0)) <= SUPPORT_RADIUS
    ]


def validate_position_layout(
    layer: int,
    primary: LocationRecord,
    support_ids: list[str],
    locations: dict[str, LocationRecord],
    positions: list[PositionRecord],
) -> list[str]:
    """Return the support ids to store, or raise PreconditionError(INVALID_LAYOUT)."""

    def invalid(message: str):
        return PreconditionError(message, error_code="INVALID_LAYOUT")

    if layer < 1 or layer > MAX_LAYER:
        raise invalid(f"Layer must be between 1 and {MAX_LAYER}")
    if len(set(support_ids)) != len(support_ids):
        raise invalid("Supporting locations must be distinct")

    if layer == 1:
        if support_ids and support_ids != [primary.id]:
            raise invalid("A layer 1 position rests only on its own ground location")
        return [primary.id]

    if not MIN_BRIDGE_SUPPORTS <= len(support_ids) <= MAX_BRIDGE_SUPPORTS:
        raise invalid(
            f"A bridging position needs {MIN_BRIDGE_SUPPORTS}-{MAX_BRIDGE_SUPPORTS} "
            f"supporting locations, got {len(support_ids)}"
        )
    if primary.id not in support_ids:
        raise invalid(f"Primary location {primary.location_code} must be one of the supports")

    allowed = {loc.id for loc in selectable_support_locations(primary, list(locations.values()))}
    carried = {p.primary_ground_location_id for p in positions if p.layer == layer - 1}
    for loc_id in support_ids:
        loc = locations.get(loc_id)
        if loc is None:
            raise ResourceNotFoundError("StorageLocation", loc_id)
        if loc_id not in allowed:
            raise invalid(
                f"{loc.location_code} is not within {SUPPORT_RADIUS} rows/columns "
                f"of {primary.location_code} in bay {primary.bay} zone {primary.zone}"
            )
        if loc_id not in carried:
            raise invalid(f"{loc.location_code} has no layer {layer - 1} position to rest on")
    return list(support_ids)


# ── Service ──────────────────────────────────────────────────

class YardSetupService:

    def __init__(self, stores: YardStores):
        self.stores = stores

    async def _location(self, location_id: str) -> LocationRecord:
        loc = await self.stores.locations.get(location_id)
        if loc is None:
            raise ResourceNotFoundError("StorageLocation", location_id)
        return loc

    async def _position(self, position_id: str) -> PositionRecord:
        pos = await self.stores.positions.get(position_id)
        if pos is None:
            raise ResourceNotFoundError("StackingPosition", position_id)
        return pos

    async def _ensure_code_free(self, code: str, exclude_id: str | None = None) -> None:
        for loc in await self.stores.locations.filter(location_code=code):
            if loc.id != exclude_id:
                raise PreconditionError(
                    f"Location code '{code}' already exists",
                    error_code="DUPLICATE_LOCATION_CODE",
                )

    async def _ensure_placeholder_free(self, placeholder_id: str, exclude_id: str | None = None) -> None:
        for pos in await self.stores.positions.filter(placeholder_id=placeholder_id):
            if pos.id != exclude_id:
                raise PreconditionError(
                    f"Placeholder '{placeholder_id}' already exists",
                    error_code="DUPLICATE_PLACEHOLDER",
                )

    # ── Locations ────────────────────────────────────────────

    async def list_locations(self, bay: str | None = None, zone: str | None = None) -> list[LocationRecord]:
        criteria = {k: v for k, v in (("bay", bay), ("zone", zone)) if v is not None}
        locations = await self.stores.locations.filter(**criteria)
        return sorted(locations, key=lambda l: (l.bay, l.zone, l.row_num or 0, l.col_num or 0, l.location_code))

    async def create_location(self, data: LocationCreate) -> LocationRecord:
        await self._ensure_code_free(data.location_code)
        loc = await self.stores.locations.create(data.model_dump())
        logger.info(f"Location created: {loc.location_code}", extra={"location_id": loc.id})
        return loc

    async def bulk_generate(self, req: BulkLocationRequest) -> list[LocationRecord]:
        rows = generate_ground_locations(
            req.bay, req.zone, req.prefix, req.start_num, req.end_num,
            req.rows, req.cols, req.capacity_tons,
        )
        existing = {loc.location_code for loc in await self.stores.locations.list()}
        clashes = [r["location_code"] for r in rows if r["location_code"] in existing]
        if clashes:
            raise PreconditionError(
                f"Location codes already exist: {', '.join(clashes)}",
                error_code="DUPLICATE_LOCATION_CODE",
                details={"codes": clashes},
            )
        created = await self.stores.locations.bulk_create(rows)
        logger.info(f"{len(created)} locations created in {req.bay} -> {req.zone}")
        return created

    async def update_location(self, location_id: str, data: LocationUpdate) -> LocationRecord:
        loc = await self._location(location_id)
        changes = data.model_dump(exclude_unset=True)
        if "location_code" in changes:
            await self._ensure_code_free(changes["location_code"], exclude_id=location_id)
        await self.stores.locations.update(location_id, changes)
        updated = loc.model_copy(update=changes)

        # Keep the codes and bay/zone copied onto positions in step
        if {"location_code", "bay", "zone"} & changes.keys():
            locations = {l.id: l for l in await self.stores.locations.list()}
            for pos in await self.stores.positions.list():
                if location_id not in pos.supported_by_ground_location_ids and pos.primary_ground_location_id != location_id:
                    continue
                patch = {
                    "supported_by_ground_location_codes": [
                        locations[i].location_code if i in locations else i
                        for i in pos.supported_by_ground_location_ids
                    ],
                }
                if pos.primary_ground_location_id == location_id:
                    patch.update(
                        primary_ground_location_code=updated.location_code,
                        bay=updated.bay,
                        zone=updated.zone,
                    )
                await self.stores.positions.update(pos.id, patch)
        return updated

    async def delete_location(self, location_id: str) -> None:
        loc = await self._location(location_id)
        used_by = [
            p.placeholder_id for p in await self.stores.positions.list()
            if p.primary_ground_location_id == location_id
            or location_id in p.supported_by_ground_location_ids
        ]
        if used_by:
            raise PreconditionError(
                f"Location {loc.location_code} is used by {len(used_by)} stacking position(s)",
                error_code="LOCATION_IN_USE",
                details={"positions": used_by},
            )
        await self.stores.locations.delete(location_id)
        logger.info(f"Location deleted: {loc.location_code}", extra={"location_id": location_id})

    # ── Positions ────────────────────────────────────────────

    async def list_positions(self, bay: str | None = None, zone: str | None = None) -> list[PositionRecord]:
        criteria = {k: v for k, v in (("bay", bay), ("zone", zone)) if v is not None}
        positions = await self.stores.positions.filter(**criteria)
        return sorted(positions, key=lambda p: (p.bay or "", p.zone or "", p.layer, p.placeholder_id))

    async def _layout_fields(
        self,
        layer: int,
        primary_id: str,
        support_ids: list[str],
        exclude_id: str | None = None,
    ) -> dict:
        primary = await self._location(primary_id)
        locations = {l.id: l for l in await self.stores.locations.list()}
        others = [p for p in await self.stores.positions.list() if p.id != exclude_id]
        supports = validate_position_layout(layer, primary, support_ids, locations, others)
        return {
            "layer": layer,
            "type": PositionType.GROUND.value if layer == 1 else PositionType.BRIDGING.value,
            "primary_ground_location_id": primary.id,
            "primary_ground_location_code": primary.location_code,
            "supported_by_ground_location_ids": supports,
            "supported_by_ground_location_codes": [locations[i].location_code for i in supports],
            "bay": primary.bay,
            "zone": primary.zone,
        }

    async def create_position(self, data: PositionCreate) -> PositionRecord:
        fields = await self._layout_fields(
            data.layer, data.primary_ground_location_id, data.supported_by_ground_location_ids,
        )
        placeholder_id = data.placeholder_id or suggest_placeholder_id(
            fields["primary_ground_location_code"], data.layer,
        )
        await self._ensure_placeholder_free(placeholder_id)
        pos = await self.stores.positions.create({
            **fields,
            "placeholder_id": placeholder_id,
            "coil_barcode": None,
            "is_active": data.is_active,
            "is_visible": data.is_visible,
        })
        logger.info(f"Stacking position created: {pos.placeholder_id}", extra={"position_id": pos.id})
        return pos

    async def update_position(self, position_id: str, data: PositionUpdate) -> PositionRecord:
        pos = await self._position(position_id)
        changes = data.model_dump(exclude_unset=True)

        layout_keys = {"layer", "primary_ground_location_id", "supported_by_ground_location_ids"}
        if layout_keys & changes.keys():
            if pos.coil_barcode:
                raise PreconditionError(
                    f"Position {pos.placeholder_id} holds coil {pos.coil_barcode}; empty it before changing its layout",
                    error_code="POSITION_OCCUPIED",
                )
            layer = changes.get("layer", pos.layer)
            primary_id = changes.get("primary_ground_location_id", pos.primary_ground_location_id)
            support_ids = changes.get("supported_by_ground_location_ids")
            if support_ids is None:
                support_ids = [] if layer == 1 else pos.supported_by_ground_location_ids
            changes.update(await self._layout_fields(layer, primary_id, support_ids, exclude_id=position_id))
        if "placeholder_id" in changes:
            await self._ensure_placeholder_free(changes["placeholder_id"], exclude_id=position_id)

        await self.stores.positions.update(position_id, changes)
        return pos.model_copy(update=changes)

    async def delete_position(self, position_id: str) -> None:
        pos = await self._position(position_id)
        if pos.coil_barcode:
            raise PreconditionError(
                f"Position {pos.placeholder_id} holds coil {pos.coil_barcode}",
                error_code="POSITION_OCCUPIED",
            )
        graph = build_position_graph(
            await self.stores.positions.list(), await self.stores.locations.list(),
        )
        node = graph.node(position_id)
        if node and node.dependents:
            above = [graph.position(d).placeholder_id for d in node.dependents]
            raise PreconditionError(
                f"Position {pos.placeholder_id} carries upper-layer position(s) {', '.join(above)}",
                error_code="HAS_DEPENDENTS",
                details={"positions": above},
            )
        await self.stores.positions.delete(position_id)
        logger.info(f"Stacking position deleted: {pos.placeholder_id}", extra={"position_id": position_id})
