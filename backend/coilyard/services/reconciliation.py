"""Stock-take reconciliation: diff, stage, commit.

The diff compares what a stock take saw in a bay (or zone) against what
the system records there:

    to_place    found physically, not (or not there) in the system
    to_unplace  in the system, not found there physically
    confirmed   found exactly where the system has it
    misplaced   found at another placeholder (yields one unplace + one place)
    unassigned  coils with no position that the stock take did not see

``diff_stock_take`` is pure and can be recomputed on every request.

Acting on the diff is two-phase.  Changes are staged into a
``ReconciliationSession`` (validated against the yard as it will look once
the earlier staged changes are applied) and nothing is written until
``commit``.  The commit replays each change through the AllocationService.

Commit modes (settings.reconciliation_commit_mode):
    best_effort  apply every change, report failures, always mark reconciled
    strict       validate the whole batch first and apply nothing if any
                 change fails; stop at the first runtime failure and leave
                 the stock take 'completed'
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from coilyard.config import settings
from coilyard.middleware.exceptions import (
    CoilYardException,
    InconsistentStateError,
    PreconditionError,
    ResourceNotFoundError,
)
from coilyard.models.enums import (
    NOT_IN_YARD_STATUSES,
    AllocationAction,
    ChangeType,
    StockTakeStatus,
    next_status,
)
from coilyard.schemas.coil import CoilRecord
from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord
from coilyard.schemas.reconciliation import (
    ChangeResult,
    CommitSummary,
    DiffSummary,
    MisplacedItem,
    PendingChange,
    PlacementItem,
    ReconciliationDiff,
    UnplaceItem,
)
from coilyard.schemas.stock_take import StockTakeRecord
from coilyard.services.allocation import AllocationService
from coilyard.services.layer_rules import can_occupy, can_vacate
from coilyard.services.position_graph import PositionGraph, build_position_graph
from coilyard.store.base import YardStores

logger = logging.getLogger(__name__)

RECONCILIATION_REASON = "Stock take reconciliation"

REASON_UNASSIGNED = "unassigned in system"
REASON_MISPLACED = "misplaced"
REASON_RELOCATING = "relocating"
REASON_NOT_FOUND = "not found physically"


def _in_scope(position: PositionRecord, bay: str, zone: str | None) -> bool:
    return (
        position.bay == bay
        and (zone is None or position.zone == zone)
        and position.is_active
        and position.is_visible
    )


# ═══════════════════════════════════════════════════════════════
# DIFF
# ═══════════════════════════════════════════════════════════════

def diff_stock_take(
    stock_take: StockTakeRecord,
    coils: Iterable[CoilRecord],
    positions: Iterable[PositionRecord],
) -> ReconciliationDiff:
    coils = list(coils)
    positions = list(positions)
    coils_by_barcode = {c.barcode: c for c in coils}
    positions_by_id = {p.id: p for p in positions}

    scope = [p for p in positions if _in_scope(p, stock_take.bay, stock_take.zone)]
    by_placeholder = {p.placeholder_id: p for p in scope}

    found = {item.coil_barcode: item.found_at_placeholder_id for item in stock_take.coils_found}
    system = {p.coil_barcode: p for p in scope if p.coil_barcode}

    to_place: list[PlacementItem] = []
    to_unplace: list[UnplaceItem] = []
    confirmed: list[str] = []
    misplaced: list[MisplacedItem] = []
    unknown: list[str] = []
    orphaned: list[str] = []

    for barcode, placeholder_id in found.items():
        coil = coils_by_barcode.get(barcode)
        if coil is None:
            unknown.append(barcode)
            continue
        current = positions_by_id.get(coil.current_stacking_position_id) if coil.current_stacking_position_id else None
        target = by_placeholder.get(placeholder_id)

        if current is None:
            to_place.append(PlacementItem(
                coil=coil,
                target_placeholder_id=placeholder_id,
                target_position=target,
                reason=REASON_UNASSIGNED,
            ))
        elif current.placeholder_id != placeholder_id:
            misplaced.append(MisplacedItem(
                coil=coil,
                current_position=current,
                target_placeholder_id=placeholder_id,
                target_position=target,
            ))
        else:
            confirmed.append(barcode)

    for barcode, position in system.items():
        if barcode in found:
            continue
        coil = coils_by_barcode.get(barcode)
        if coil is None:
            orphaned.append(barcode)
            continue
        to_unplace.append(UnplaceItem(coil=coil, position=position, reason=REASON_NOT_FOUND))

    # Misplaced coils are lifted from the recorded spot, then placed where seen
    for item in misplaced:
        to_unplace.append(UnplaceItem(
            coil=item.coil,
            position=item.current_position,
            reason=REASON_MISPLACED,
            will_move_to=item.target_placeholder_id,
        ))
        to_place.append(PlacementItem(
            coil=item.coil,
            target_placeholder_id=item.target_placeholder_id,
            target_position=item.target_position,
            current_position=item.current_position,
            reason=REASON_RELOCATING,
        ))

    unassigned = [
        c for c in coils
        if not c.current_stacking_position_id
        and c.barcode not in found
        and c.status not in NOT_IN_YARD_STATUSES
    ]

    return ReconciliationDiff(
        stock_take_id=stock_take.id,
        bay=stock_take.bay,
        zone=stock_take.zone,
        scope_positions=scope,
        to_place=to_place,
        to_unplace=to_unplace,
        confirmed=confirmed,
        misplaced=misplaced,
        unassigned=unassigned,
        non_traceable=list(stock_take.non_traceable_coils),
        empty_placeholders=list(stock_take.empty_placeholders),
        unknown_barcodes=unknown,
        orphaned_barcodes=orphaned,
        summary=DiffSummary(
            to_place=len(to_place),
            to_unplace=len(to_unplace),
            confirmed=len(confirmed),
            misplaced=len(misplaced),
            unassigned=len(unassigned),
            non_traceable=len(stock_take.non_traceable_coils),
            empty_placeholders=len(stock_take.empty_placeholders),
            unknown_barcodes=len(unknown),
            orphaned_barcodes=len(orphaned),
        ),
    )


# ═══════════════════════════════════════════════════════════════
# PROJECTION (validate changes against the state they will produce)
# ═══════════════════════════════════════════════════════════════

@dataclass
class _CoilState:
    coil: CoilRecord
    position_id: str | None


class YardProjection:
    """Yard occupancy with a list of pending changes applied in memory."""

    def __init__(
        self,
        coils: Iterable[CoilRecord],
        positions: Iterable[PositionRecord],
        locations: Iterable[LocationRecord] = (),
    ):
        self.graph: PositionGraph = build_position_graph(positions, locations)
        self._coils = {
            c.barcode: _CoilState(c, c.current_stacking_position_id) for c in coils
        }

    @classmethod
    async def load(cls, stores: YardStores) -> "YardProjection":
        return cls(
            await stores.coils.list(),
            await stores.positions.list(),
            await stores.locations.list(),
        )

    def check(self, change: PendingChange) -> PreconditionError | ResourceNotFoundError | None:
        """Return the error this change would hit, or None."""
        state = self._coils.get(change.coil_barcode)
        if state is None:
            return ResourceNotFoundError("Coil", change.coil_barcode)
        position = self.graph.position(change.position_id)
        if position is None:
            return ResourceNotFoundError("StackingPosition", change.position_id)

        if change.change_type == ChangeType.ASSIGN:
            if position.coil_barcode == change.coil_barcode:
                return PreconditionError(
                    f"Coil {change.coil_barcode} is already at {position.placeholder_id}",
                    error_code="SAME_POSITION",
                )
            if not position.is_active or not position.is_visible:
                return PreconditionError(
                    f"Position {position.placeholder_id} is inactive or hidden",
                    error_code="POSITION_INACTIVE",
                )
            if position.coil_barcode:
                return PreconditionError(
                    f"Position {position.placeholder_id} is occupied by {position.coil_barcode}",
                    error_code="POSITION_OCCUPIED",
                )
            assume_empty = set()
            action = AllocationAction.ASSIGN
            if state.position_id:
                old = self.graph.position(state.position_id)
                if old is not None:
                    vacate = can_vacate(old, self.graph)
                    if not vacate:
                        return PreconditionError(
                            f"Cannot move coil off {old.placeholder_id}: {vacate.reason}",
                            error_code="UPPER_LAYER_DEPENDS",
                            details={"blockers": vacate.blockers},
                        )
                    assume_empty.add(old.id)
                action = AllocationAction.SHUFFLE
            occupy = can_occupy(position, self.graph, assume_empty=assume_empty)
            if not occupy:
                return PreconditionError(
                    f"Cannot place coil in layer {position.layer}: {occupy.reason}",
                    error_code="LOWER_LAYER_INCOMPLETE",
                    details={"blockers": occupy.blockers},
                )
            if next_status(action, state.coil.status) is None:
                return PreconditionError(
                    f"Coil {change.coil_barcode} is {state.coil.status.value} and cannot be placed",
                    error_code="INVALID_STATUS",
                )
            return None

        # unassign / mark_missing
        if position.coil_barcode != change.coil_barcode:
            return PreconditionError(
                f"Position {position.placeholder_id} does not hold coil {change.coil_barcode}",
                error_code="POSITION_MISMATCH",
            )
        vacate = can_vacate(position, self.graph)
        if not vacate:
            return PreconditionError(
                f"Cannot remove coil from {position.placeholder_id}: {vacate.reason}",
                error_code="UPPER_LAYER_DEPENDS",
                details={"blockers": vacate.blockers},
            )
        return None

    def apply(self, change: PendingChange) -> None:
        state = self._coils[change.coil_barcode]
        overrides: dict[str, str | None] = {}
        if change.change_type == ChangeType.ASSIGN:
            action = AllocationAction.SHUFFLE if state.position_id else AllocationAction.ASSIGN
            if state.position_id:
                overrides[state.position_id] = None
            overrides[change.position_id] = change.coil_barcode
            state.position_id = change.position_id
        else:
            action = AllocationAction(change.change_type.value)
            overrides[change.position_id] = None
            state.position_id = None
        status = next_status(action, state.coil.status)
        if status is not None:
            state.coil = state.coil.model_copy(update={"status": status})
        self.graph = self.graph.with_occupancy(overrides)


# ═══════════════════════════════════════════════════════════════
# STAGING SESSION
# ═══════════════════════════════════════════════════════════════

class ReconciliationSession:
    """Pending changes for one stock take, held until commit or cancel.

    Nothing touches the store until ``commit``.  ``stage`` rejects a change
    that would fail against the projected yard, so an operator sees the
    problem while choosing actions rather than in the commit report.
    """

    def __init__(
        self,
        stock_take: StockTakeRecord,
        stores: YardStores,
        coils: Iterable[CoilRecord],
        positions: Iterable[PositionRecord],
        locations: Iterable[LocationRecord] = (),
        mode: str | None = None,
    ):
        coils = list(coils)
        positions = list(positions)
        self.stock_take = stock_take
        self.stores = stores
        self.mode = mode
        self.diff = diff_stock_take(stock_take, coils, positions)
        self._projection = YardProjection(coils, positions, locations)
        self._pending: list[PendingChange] = []

    @classmethod
    async def open(cls, stores: YardStores, stock_take_id: str, mode: str | None = None) -> "ReconciliationSession":
        stock_take = await stores.stock_takes.get(stock_take_id)
        if stock_take is None:
            raise ResourceNotFoundError("StockTake", stock_take_id)
        return cls(
            stock_take,
            stores,
            await stores.coils.list(),
            await stores.positions.list(),
            await stores.locations.list(),
            mode=mode,
        )

    @property
    def pending_changes(self) -> list[PendingChange]:
        return list(self._pending)

    def stage(self, change: PendingChange) -> PendingChange:
        for staged in self._pending:
            if staged.coil_barcode == change.coil_barcode and staged.change_type == change.change_type:
                raise PreconditionError(
                    f"A {change.change_type.value} for coil {change.coil_barcode} is already staged",
                    error_code="DUPLICATE_CHANGE",
                )
        error = self._projection.check(change)
        if error is not None:
            raise error
        self._projection.apply(change)
        self._pending.append(change)
        return change

    def stage_assign(self, coil_barcode: str, position_id: str) -> PendingChange:
        return self.stage(PendingChange(
            change_type=ChangeType.ASSIGN, coil_barcode=coil_barcode, position_id=position_id,
        ))

    def stage_unassign(self, coil_barcode: str, position_id: str) -> PendingChange:
        return self.stage(PendingChange(
            change_type=ChangeType.UNASSIGN, coil_barcode=coil_barcode, position_id=position_id,
        ))

    def stage_mark_missing(self, coil_barcode: str, position_id: str) -> PendingChange:
        return self.stage(PendingChange(
            change_type=ChangeType.MARK_MISSING, coil_barcode=coil_barcode, position_id=position_id,
        ))

    def cancel(self) -> None:
        self._pending.clear()

    async def commit(self) -> CommitSummary:
        summary = await commit_pending_changes(
            self.stores, self.stock_take.id, self._pending, mode=self.mode,
        )
        self._pending.clear()
        return summary


# ═══════════════════════════════════════════════════════════════
# COMMIT
# ═══════════════════════════════════════════════════════════════

async def _replay(service: AllocationService, stores: YardStores, change: PendingChange) -> None:
    if change.change_type == ChangeType.ASSIGN:
        matches = await stores.coils.filter(barcode=change.coil_barcode)
        if not matches:
            raise ResourceNotFoundError("Coil", change.coil_barcode)
        if matches[0].current_stacking_position_id:
            await service.shuffle(change.coil_barcode, change.position_id, reason=RECONCILIATION_REASON)
        else:
            await service.assign(change.coil_barcode, change.position_id, reason=RECONCILIATION_REASON)
        return

    position = await stores.positions.get(change.position_id)
    if position is None:
        raise ResourceNotFoundError("StackingPosition", change.position_id)
    if position.coil_barcode != change.coil_barcode:
        raise PreconditionError(
            f"Position {position.placeholder_id} does not hold coil {change.coil_barcode}",
            error_code="POSITION_MISMATCH",
        )
    await service.remove(change.position_id, kind=AllocationAction(change.change_type.value))


def _result(index: int, change: PendingChange, error: Exception | None = None, code: str | None = None) -> ChangeResult:
    if error is None and code is None:
        return ChangeResult(
            index=index,
            change_type=change.change_type,
            coil_barcode=change.coil_barcode,
            position_id=change.position_id,
            success=True,
        )
    if isinstance(error, CoilYardException):
        code = code or error.error_code
        message = error.message
    else:
        code = code or "STORE_ERROR"
        message = str(error) if error else None
    return ChangeResult(
        index=index,
        change_type=change.change_type,
        coil_barcode=change.coil_barcode,
        position_id=change.position_id,
        success=False,
        error_code=code,
        error=message,
    )


async def commit_pending_changes(
    stores: YardStores,
    stock_take_id: str,
    changes: list[PendingChange],
    mode: str | None = None,
    moved_by: str | None = None,
) -> CommitSummary:
    """Apply staged changes in order and close out the stock take."""
    mode = mode or settings.reconciliation_commit_mode
    changes = list(changes)

    stock_take = await stores.stock_takes.get(stock_take_id)
    if stock_take is None:
        raise ResourceNotFoundError("StockTake", stock_take_id)
    if stock_take.status == StockTakeStatus.RECONCILED:
        raise PreconditionError(
            f"Stock take {stock_take_id} is already reconciled",
            error_code="ALREADY_RECONCILED",
        )
    if not changes:
        raise PreconditionError("No pending changes to commit", error_code="NO_CHANGES")

    results: list[ChangeResult] = []

    if mode == "strict":
        projection = await YardProjection.load(stores)
        errors: dict[int, Exception] = {}
        for index, change in enumerate(changes):
            error = projection.check(change)
            if error is not None:
                errors[index] = error
            else:
                projection.apply(change)
        if errors:
            results = [
                _result(i, c, errors[i]) if i in errors
                else _result(i, c, code="NOT_APPLIED")
                for i, c in enumerate(changes)
            ]
            logger.warning(
                f"Strict reconciliation of stock take {stock_take_id} rejected: "
                f"{len(errors)} of {len(changes)} change(s) would fail",
                extra={"stock_take_id": stock_take_id},
            )
            return _summary(stock_take, mode, results, StockTakeStatus.COMPLETED, False)

    service = AllocationService(stores, moved_by=moved_by)
    manual_review = False

    for index, change in enumerate(changes):
        try:
            await _replay(service, stores, change)
        except InconsistentStateError as exc:
            manual_review = True
            results.append(_result(index, change, exc))
        except CoilYardException as exc:
            results.append(_result(index, change, exc))
        except Exception as exc:
            logger.error(
                f"Reconciliation change {index} for coil {change.coil_barcode} failed: {exc}",
                extra={"stock_take_id": stock_take_id, "coil_barcode": change.coil_barcode},
                exc_info=True,
            )
            results.append(_result(index, change, exc))
        else:
            results.append(_result(index, change))
            continue

        if mode == "strict":
            results.extend(
                _result(i, c, code="NOT_APPLIED")
                for i, c in enumerate(changes[index + 1:], start=index + 1)
            )
            break

    all_ok = all(r.success for r in results)
    final_status = stock_take.status
    if mode == "best_effort" or all_ok:
        await stores.stock_takes.update(stock_take.id, {"status": StockTakeStatus.RECONCILED})
        final_status = StockTakeStatus.RECONCILED

    summary = _summary(stock_take, mode, results, final_status, manual_review)
    log = logger.warning if summary.failed else logger.info
    log(
        f"Reconciled stock take {stock_take_id} ({mode}): "
        f"{summary.succeeded} applied, {summary.failed} failed",
        extra={
            "stock_take_id": stock_take_id,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "requires_manual_review": manual_review,
        },
    )
    return summary


def _summary(
    stock_take: StockTakeRecord,
    mode: str,
    results: list[ChangeResult],
    status: StockTakeStatus,
    manual_review: bool,
) -> CommitSummary:
    succeeded = sum(1 for r in results if r.success)
    return CommitSummary(
        stock_take_id=stock_take.id,
        mode=mode,
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        stock_take_status=status,
        requires_manual_review=manual_review,
        results=results,
    )
