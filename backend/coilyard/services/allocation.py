"""Allocation service: the only writer of coil <-> position occupancy.

    assign(coil, position)        incoming coil onto an empty position
    remove(position, kind)        lift the coil off a position
    shuffle(coil, new_position)   move a placed coil in one validated step

Every rule is checked against a freshly loaded position graph before the
first write.  The writes themselves are ordered (position first, then coil,
then the movement log) and never retried.  The store gives no transaction
across entity types, so:

  - if the first write fails, nothing changed -> StoreWriteError
  - if a later write fails, coil and position disagree -> InconsistentStateError,
    logged at ERROR with the coil, position and failed step for an operator
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from coilyard.config import settings
from coilyard.middleware.exceptions import (
    InconsistentStateError,
    PreconditionError,
    ResourceNotFoundError,
    StoreWriteError,
)
from coilyard.models.enums import (
    REMOVAL_ACTIONS,
    AllocationAction,
    MovementType,
    next_status,
)
from coilyard.schemas.allocation import AllocationResult
from coilyard.schemas.coil import CoilRecord, MovementRecord
from coilyard.schemas.position import PositionRecord
from coilyard.services.layer_rules import can_occupy, can_vacate
from coilyard.services.position_graph import PositionGraph, build_position_graph
from coilyard.store.base import YardStores

logger = logging.getLogger(__name__)

Step = tuple[str, Callable[[], Awaitable[Any]]]

# Movement wording per removal kind: (to_location, default reason)
_REMOVAL_MOVEMENT = {
    AllocationAction.RETURN: (None, "Removed from stacking position"),
    AllocationAction.UNASSIGN: ("Unassigned", "Removed during reconciliation"),
    AllocationAction.MARK_MISSING: ("Missing", "Marked missing during stock take"),
}


class AllocationService:

    def __init__(self, stores: YardStores, moved_by: str | None = None):
        self.stores = stores
        self.moved_by = moved_by or settings.moved_by_default

    # ── Loading ──────────────────────────────────────────────

    async def load_graph(self) -> PositionGraph:
        positions = await self.stores.positions.list()
        locations = await self.stores.locations.list()
        return build_position_graph(positions, locations)

    async def _coil(self, barcode: str) -> CoilRecord:
        matches = await self.stores.coils.filter(barcode=barcode)
        if not matches:
            raise ResourceNotFoundError("Coil", barcode)
        return matches[0]

    @staticmethod
    def _position(graph: PositionGraph, position_id: str) -> PositionRecord:
        pos = graph.position(position_id)
        if pos is None:
            raise ResourceNotFoundError("StackingPosition", position_id)
        return pos

    @staticmethod
    def _check_in_use(target: PositionRecord) -> None:
        # Stock takes only see active, visible positions
        if not target.is_active or not target.is_visible:
            raise PreconditionError(
                f"Position {target.placeholder_id} is inactive or hidden",
                error_code="POSITION_INACTIVE",
            )

    # ── Ordered writes ───────────────────────────────────────

    async def _apply(self, coil_barcode: str, position_id: str, steps: list[Step]) -> list[Any]:
        """Run write steps in order; classify a failure by how far we got."""
        results = []
        for index, (name, write) in enumerate(steps):
            try:
                results.append(await write())
            except Exception as exc:
                if index == 0:
                    raise StoreWriteError(
                        f"Could not {name} for coil {coil_barcode}: {exc}",
                        details={"coil_barcode": coil_barcode, "position_id": position_id, "step": name},
                    ) from exc
                logger.error(
                    f"Inconsistent state: '{name}' failed for coil {coil_barcode} "
                    f"at position {position_id} after {index} successful write(s)",
                    extra={
                        "coil_barcode": coil_barcode,
                        "position_id": position_id,
                        "failed_step": name,
                        "completed_steps": [s[0] for s in steps[:index]],
                    },
                )
                raise InconsistentStateError(coil_barcode, position_id, name, str(exc)) from exc
        return results

    def _movement(self, **fields) -> dict:
        return {
            "movement_date": datetime.utcnow(),
            "moved_by": fields.pop("moved_by", None) or self.moved_by,
            **fields,
        }

    # ── Operations ───────────────────────────────────────────

    async def assign(
        self,
        coil_barcode: str,
        position_id: str,
        reason: str | None = None,
        moved_by: str | None = None,
    ) -> AllocationResult:
        """Place an unplaced coil onto an empty position."""
        coil = await self._coil(coil_barcode)
        graph = await self.load_graph()
        target = self._position(graph, position_id)

        held_at = graph.position_of_coil(coil.barcode)
        if coil.current_stacking_position_id or held_at:
            raise PreconditionError(
                f"Coil {coil.barcode} is already placed, shuffle instead",
                error_code="ALREADY_PLACED",
                details={"current_position_id": coil.current_stacking_position_id or held_at.id},
            )
        self._check_in_use(target)
        if target.coil_barcode:
            raise PreconditionError(
                f"Position {target.placeholder_id} is occupied by {target.coil_barcode}",
                error_code="POSITION_OCCUPIED",
            )
        check = can_occupy(target, graph)
        if not check:
            raise PreconditionError(
                f"Cannot place coil in layer {target.layer}: {check.reason}",
                error_code="LOWER_LAYER_INCOMPLETE",
                details={"blockers": check.blockers},
            )
        status = next_status(AllocationAction.ASSIGN, coil.status)
        if status is None:
            raise PreconditionError(
                f"Coil {coil.barcode} is {coil.status.value} and cannot be placed",
                error_code="INVALID_STATUS",
            )

        now = datetime.utcnow()
        movement_data = self._movement(
            coil_barcode=coil.barcode,
            to_location=target.placeholder_id,
            movement_type=MovementType.RECEIPT,
            moved_by=moved_by,
            reason=reason or f"Placed into position {target.placeholder_id} (Layer {target.layer})",
        )
        _, _, movement = await self._apply(coil.barcode, target.id, [
            ("update position", lambda: self.stores.positions.update(
                target.id, {"coil_barcode": coil.barcode})),
            ("update coil", lambda: self.stores.coils.update(coil.id, {
                "current_stacking_position_id": target.id,
                "storage_location": target.primary_ground_location_code,
                "status": status,
                "last_moved_date": now,
            })),
            ("log movement", lambda: self.stores.movements.create(movement_data)),
        ])

        logger.info(
            f"Assigned coil {coil.barcode} to {target.placeholder_id}",
            extra={"coil_barcode": coil.barcode, "position_id": target.id},
        )
        return AllocationResult(
            action=AllocationAction.ASSIGN,
            coil=coil.model_copy(update={
                "current_stacking_position_id": target.id,
                "storage_location": target.primary_ground_location_code,
                "status": status,
                "last_moved_date": now,
            }),
            to_position=target.model_copy(update={"coil_barcode": coil.barcode}),
            movement=movement,
        )

    async def remove(
        self,
        position_id: str,
        kind: AllocationAction = AllocationAction.RETURN,
        reason: str | None = None,
        moved_by: str | None = None,
    ) -> AllocationResult:
        """Lift the coil off a position.

        ``kind`` picks the coil's resulting status from the transition
        table: ``return`` sends it back to receiving (incoming),
        ``unassign`` keeps it in the yard without a position, and
        ``mark_missing`` resets it to incoming.
        """
        if kind not in REMOVAL_ACTIONS:
            raise PreconditionError(f"'{kind.value}' is not a removal", error_code="INVALID_ACTION")

        graph = await self.load_graph()
        source = self._position(graph, position_id)
        if not source.coil_barcode:
            raise PreconditionError(
                f"No coil in position {source.placeholder_id}",
                error_code="POSITION_EMPTY",
            )
        check = can_vacate(source, graph)
        if not check:
            raise PreconditionError(
                f"Cannot remove coil from {source.placeholder_id}: {check.reason}",
                error_code="UPPER_LAYER_DEPENDS",
                details={"blockers": check.blockers},
            )
        matches = await self.stores.coils.filter(barcode=source.coil_barcode)
        if not matches:
            return await self._clear_orphan(source, kind, reason, moved_by)
        coil = matches[0]
        status = next_status(kind, coil.status)
        if status is None:
            raise PreconditionError(
                f"Coil {coil.barcode} is {coil.status.value} and cannot be removed",
                error_code="INVALID_STATUS",
            )

        now = datetime.utcnow()
        to_location, default_reason = _REMOVAL_MOVEMENT[kind]
        movement_data = self._movement(
            coil_barcode=coil.barcode,
            from_location=source.placeholder_id,
            to_location=to_location,
            movement_type=MovementType.RETURN,
            moved_by=moved_by,
            reason=reason or default_reason,
        )
        _, _, movement = await self._apply(coil.barcode, source.id, [
            ("clear position", lambda: self.stores.positions.update(
                source.id, {"coil_barcode": None})),
            ("update coil", lambda: self.stores.coils.update(coil.id, {
                "current_stacking_position_id": None,
                "storage_location": None,
                "status": status,
                "last_moved_date": now,
            })),
            ("log movement", lambda: self.stores.movements.create(movement_data)),
        ])

        logger.info(
            f"Removed coil {coil.barcode} from {source.placeholder_id} ({kind.value})",
            extra={"coil_barcode": coil.barcode, "position_id": source.id},
        )
        return AllocationResult(
            action=kind,
            coil=coil.model_copy(update={
                "current_stacking_position_id": None,
                "storage_location": None,
                "status": status,
                "last_moved_date": now,
            }),
            from_position=source.model_copy(update={"coil_barcode": None}),
            movement=movement,
        )

    async def _clear_orphan(
        self,
        source: PositionRecord,
        kind: AllocationAction,
        reason: str | None,
        moved_by: str | None,
    ) -> AllocationResult:
        """Empty a position whose barcode matches no coil record."""
        barcode = source.coil_barcode
        logger.error(
            f"Position {source.placeholder_id} holds barcode {barcode} with no coil record; clearing it",
            extra={"coil_barcode": barcode, "position_id": source.id},
        )
        to_location, _ = _REMOVAL_MOVEMENT[kind]
        movement_data = self._movement(
            coil_barcode=barcode,
            from_location=source.placeholder_id,
            to_location=to_location,
            movement_type=MovementType.RETURN,
            moved_by=moved_by,
            reason=reason or f"Cleared barcode {barcode} with no coil record",
        )
        _, movement = await self._apply(barcode, source.id, [
            ("clear position", lambda: self.stores.positions.update(
                source.id, {"coil_barcode": None})),
            ("log movement", lambda: self.stores.movements.create(movement_data)),
        ])
        return AllocationResult(
            action=kind,
            coil=None,
            from_position=source.model_copy(update={"coil_barcode": None}),
            movement=movement,
        )

    async def shuffle(
        self,
        coil_barcode: str,
        new_position_id: str,
        reason: str,
        remarks: str | None = None,
        moved_by: str | None = None,
    ) -> AllocationResult:
        """Move a placed coil to another position.

        Validated as one unit: the old position must be vacatable, the new
        one empty and occupiable once the old one is empty.
        """
        if not reason or not reason.strip():
            raise PreconditionError("A reason is required to shuffle a coil", error_code="REASON_REQUIRED")

        coil = await self._coil(coil_barcode)
        graph = await self.load_graph()
        target = self._position(graph, new_position_id)

        source = None
        if coil.current_stacking_position_id:
            source = graph.position(coil.current_stacking_position_id)
        if source is None:
            source = graph.position_of_coil(coil.barcode)
        if source is None:
            raise PreconditionError(
                f"Coil {coil.barcode} is not placed; assign it instead",
                error_code="NOT_PLACED",
            )
        if source.id == target.id:
            raise PreconditionError(
                f"Coil {coil.barcode} is already at {target.placeholder_id}",
                error_code="SAME_POSITION",
            )
        self._check_in_use(target)
        if target.coil_barcode:
            raise PreconditionError(
                f"Position {target.placeholder_id} is occupied by {target.coil_barcode}",
                error_code="POSITION_OCCUPIED",
            )
        vacate = can_vacate(source, graph)
        if not vacate:
            raise PreconditionError(
                f"Cannot move coil off {source.placeholder_id}: {vacate.reason}",
                error_code="UPPER_LAYER_DEPENDS",
                details={"blockers": vacate.blockers},
            )
        occupy = can_occupy(target, graph, assume_empty={source.id})
        if not occupy:
            raise PreconditionError(
                f"Cannot place coil in layer {target.layer}: {occupy.reason}",
                error_code="LOWER_LAYER_INCOMPLETE",
                details={"blockers": occupy.blockers},
            )
        status = next_status(AllocationAction.SHUFFLE, coil.status)
        if status is None:
            raise PreconditionError(
                f"Coil {coil.barcode} is {coil.status.value} and cannot be shuffled",
                error_code="INVALID_STATUS",
            )

        now = datetime.utcnow()
        movement_data = self._movement(
            coil_barcode=coil.barcode,
            from_location=source.placeholder_id,
            to_location=target.placeholder_id,
            movement_type=MovementType.SHUFFLE,
            moved_by=moved_by,
            reason=reason,
            remarks=remarks,
        )
        _, _, _, movement = await self._apply(coil.barcode, target.id, [
            ("clear old position", lambda: self.stores.positions.update(
                source.id, {"coil_barcode": None})),
            ("fill new position", lambda: self.stores.positions.update(
                target.id, {"coil_barcode": coil.barcode})),
            ("update coil", lambda: self.stores.coils.update(coil.id, {
                "current_stacking_position_id": target.id,
                "storage_location": target.primary_ground_location_code,
                "status": status,
                "last_moved_date": now,
            })),
            ("log movement", lambda: self.stores.movements.create(movement_data)),
        ])

        logger.info(
            f"Shuffled coil {coil.barcode} from {source.placeholder_id} to {target.placeholder_id}",
            extra={"coil_barcode": coil.barcode, "position_id": target.id},
        )
        return AllocationResult(
            action=AllocationAction.SHUFFLE,
            coil=coil.model_copy(update={
                "current_stacking_position_id": target.id,
                "storage_location": target.primary_ground_location_code,
                "status": status,
                "last_moved_date": now,
            }),
            from_position=source.model_copy(update={"coil_barcode": None}),
            to_position=target.model_copy(update={"coil_barcode": coil.barcode}),
            movement=movement,
        )


async def movement_history(stores: YardStores, coil_barcode: str) -> list[MovementRecord]:
    """Movements for one coil, newest first."""
    movements = await stores.movements.filter(coil_barcode=coil_barcode)
    return sorted(movements, key=lambda m: m.movement_date, reverse=True)
