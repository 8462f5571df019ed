"""Stock-take reconciliation: diff, staging and commit."""

from datetime import datetime

import pytest

from coilyard.middleware.exceptions import PreconditionError
from coilyard.models.enums import ChangeType, CoilStatus, MovementType, StockTakeStatus
from coilyard.schemas.reconciliation import PendingChange
from coilyard.schemas.stock_take import FoundCoil, NonTraceableCoil, StockTakeRecord
from coilyard.services.reconciliation import (
    ReconciliationSession,
    commit_pending_changes,
    diff_stock_take,
)


def _take(found: dict[str, str], **extra) -> StockTakeRecord:
    return StockTakeRecord(
        id="st-1",
        stock_take_date=datetime(2026, 3, 1, 8, 0),
        location="Bay A walk",
        bay="A",
        coils_found=[
            FoundCoil(coil_barcode=b, found_at_placeholder_id=p) for b, p in found.items()
        ],
        **extra,
    )


def _change(kind: ChangeType, barcode: str, position_id: str) -> PendingChange:
    return PendingChange(change_type=kind, coil_barcode=barcode, position_id=position_id)


@pytest.fixture
def save_take(stores):
    async def _save(take: StockTakeRecord) -> StockTakeRecord:
        return await stores.stock_takes.create(take.model_dump())
    return _save


async def _diff(stores, take):
    return diff_stock_take(take, await stores.coils.list(), await stores.positions.list())


@pytest.mark.unit
@pytest.mark.asyncio
class TestDiff:

    async def test_misplaced_yields_unplace_and_place(self, stores, allocation):
        await allocation.assign("C1", "pos-a2")
        diff = await _diff(stores, _take({"C1": "A001-L1"}))

        assert len(diff.misplaced) == 1
        assert [(u.coil.barcode, u.position.placeholder_id, u.reason) for u in diff.to_unplace] == [
            ("C1", "A002-L1", "misplaced"),
        ]
        assert diff.to_unplace[0].will_move_to == "A001-L1"
        assert [(p.coil.barcode, p.target_placeholder_id, p.reason) for p in diff.to_place] == [
            ("C1", "A001-L1", "relocating"),
        ]
        assert diff.to_place[0].target_position.id == "pos-a"
        assert diff.confirmed == []

    async def test_missing_coil_is_unplaced(self, stores, allocation):
        await allocation.assign("C3", "pos-a3")
        diff = await _diff(stores, _take({}))

        assert [(u.coil.barcode, u.reason) for u in diff.to_unplace] == [("C3", "not found physically")]
        assert diff.to_place == []

    async def test_confirmed_unassigned_and_passthrough(self, stores, allocation):
        await allocation.assign("C1", "pos-a")
        take = _take(
            {"C1": "A001-L1", "C2": "A003-L1", "ZZZ": "A002-L1"},
            non_traceable_coils=[NonTraceableCoil(
                barcode="NT-1", description="rusty, no tag", estimated_weight=9.0,
                found_at_placeholder_id="A002-L1",
            )],
            empty_placeholders=["A001-L2-B"],
        )
        diff = await _diff(stores, take)

        assert diff.confirmed == ["C1"]
        assert [(p.coil.barcode, p.reason) for p in diff.to_place] == [("C2", "unassigned in system")]
        assert diff.unknown_barcodes == ["ZZZ"]
        # C3 and C4 are unplaced and unseen; C9 has shipped
        assert sorted(c.barcode for c in diff.unassigned) == ["C3", "C4"]
        assert [n.barcode for n in diff.non_traceable] == ["NT-1"]
        assert diff.empty_placeholders == ["A001-L2-B"]
        assert diff.summary.to_place == 1
        assert diff.summary.unknown_barcodes == 1

    async def test_position_barcode_without_coil_is_orphaned(self, stores):
        await stores.positions.update("pos-a3", {"coil_barcode": "GHOST"})
        diff = await _diff(stores, _take({"ZZZ": "A001-L1"}))

        assert diff.orphaned_barcodes == ["GHOST"]
        assert diff.unknown_barcodes == ["ZZZ"]
        assert diff.to_unplace == []
        assert diff.summary.orphaned_barcodes == 1

    async def test_scope_excludes_other_bays(self, stores, allocation):
        await allocation.assign("C4", "pos-y")
        diff = await _diff(stores, _take({}))

        assert diff.to_unplace == []
        assert "pos-y" not in {p.id for p in diff.scope_positions}

    async def test_diff_is_repeatable(self, stores, allocation):
        await allocation.assign("C1", "pos-a2")
        await allocation.assign("C3", "pos-a3")
        take = _take({"C1": "A001-L1", "C2": "A003-L1"})
        coils = await stores.coils.list()
        positions = await stores.positions.list()

        first = diff_stock_take(take, coils, positions)
        second = diff_stock_take(take, coils, positions)
        assert first.model_dump() == second.model_dump()


@pytest.mark.unit
@pytest.mark.asyncio
class TestCommit:

    async def test_best_effort_continues_past_failure(self, stores, save_take, find_coil):
        take = await save_take(_take({}))
        changes = [
            _change(ChangeType.ASSIGN, "C1", "pos-a"),
            _change(ChangeType.ASSIGN, "C2", "pos-b"),   # A002-L1 still empty
            _change(ChangeType.ASSIGN, "C3", "pos-a3"),
        ]
        summary = await commit_pending_changes(stores, take.id, changes, mode="best_effort")

        assert summary.total == 3
        assert [r.success for r in summary.results] == [True, False, True]
        assert summary.results[1].error_code == "LOWER_LAYER_INCOMPLETE"
        assert summary.stock_take_status == StockTakeStatus.RECONCILED
        assert (await stores.stock_takes.get(take.id)).status == StockTakeStatus.RECONCILED
        assert (await find_coil("C3")).current_stacking_position_id == "pos-a3"

    async def test_strict_rejects_whole_batch(self, stores, save_take):
        take = await save_take(_take({}))
        changes = [
            _change(ChangeType.ASSIGN, "C1", "pos-a"),
            _change(ChangeType.ASSIGN, "C2", "pos-b"),
            _change(ChangeType.ASSIGN, "C3", "pos-a3"),
        ]
        summary = await commit_pending_changes(stores, take.id, changes, mode="strict")

        assert summary.succeeded == 0
        assert [r.error_code for r in summary.results] == [
            "NOT_APPLIED", "LOWER_LAYER_INCOMPLETE", "NOT_APPLIED",
        ]
        assert summary.stock_take_status == StockTakeStatus.COMPLETED
        assert all(p.coil_barcode is None for p in await stores.positions.list())
        assert await stores.movements.list() == []

    async def test_strict_validates_against_projection(self, stores, save_take):
        take = await save_take(_take({}))
        changes = [
            _change(ChangeType.ASSIGN, "C1", "pos-a"),
            _change(ChangeType.ASSIGN, "C2", "pos-a2"),
            _change(ChangeType.ASSIGN, "C3", "pos-b"),
        ]
        summary = await commit_pending_changes(stores, take.id, changes, mode="strict")

        assert summary.succeeded == 3
        assert summary.stock_take_status == StockTakeStatus.RECONCILED

    async def test_strict_stops_at_runtime_failure(self, stores, save_take, monkeypatch):
        take = await save_take(_take({}))

        async def boom(*args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(stores.positions, "update", boom)
        changes = [
            _change(ChangeType.ASSIGN, "C1", "pos-a"),
            _change(ChangeType.ASSIGN, "C3", "pos-a3"),
        ]
        summary = await commit_pending_changes(stores, take.id, changes, mode="strict")

        assert [r.error_code for r in summary.results] == ["STORE_WRITE_FAILED", "NOT_APPLIED"]
        assert summary.stock_take_status == StockTakeStatus.COMPLETED

    async def test_inconsistent_state_flags_manual_review(self, stores, save_take, monkeypatch):
        take = await save_take(_take({}))

        async def boom(*args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(stores.movements, "create", boom)
        summary = await commit_pending_changes(
            stores, take.id, [_change(ChangeType.ASSIGN, "C1", "pos-a")], mode="best_effort",
        )
        assert summary.requires_manual_review is True
        assert summary.results[0].error_code == "INCONSISTENT_STATE"

    async def test_misplaced_coil_replays_as_shuffle(self, stores, save_take, allocation, find_coil):
        await allocation.assign("C1", "pos-a2")
        take = await save_take(_take({"C1": "A001-L1"}))

        summary = await commit_pending_changes(
            stores, take.id, [_change(ChangeType.ASSIGN, "C1", "pos-a")],
        )
        assert summary.succeeded == 1
        assert (await find_coil("C1")).current_stacking_position_id == "pos-a"
        shuffle = (await stores.movements.filter(movement_type=MovementType.SHUFFLE))[0]
        assert shuffle.reason == "Stock take reconciliation"

    async def test_unassign_and_mark_missing(self, stores, save_take, allocation, find_coil):
        await allocation.assign("C1", "pos-a")
        await allocation.assign("C3", "pos-a3")
        take = await save_take(_take({}))

        await commit_pending_changes(stores, take.id, [
            _change(ChangeType.UNASSIGN, "C1", "pos-a"),
            _change(ChangeType.MARK_MISSING, "C3", "pos-a3"),
        ])
        assert (await find_coil("C1")).status == CoilStatus.IN_YARD
        assert (await find_coil("C3")).status == CoilStatus.INCOMING
        assert all(p.coil_barcode is None for p in await stores.positions.list())

    async def test_wrong_source_position(self, stores, save_take, allocation):
        await allocation.assign("C1", "pos-a")
        take = await save_take(_take({}))

        summary = await commit_pending_changes(
            stores, take.id, [_change(ChangeType.UNASSIGN, "C1", "pos-a3")],
        )
        assert summary.results[0].error_code == "POSITION_MISMATCH"

    async def test_preconditions(self, stores, save_take):
        take = await save_take(_take({}))
        with pytest.raises(PreconditionError) as exc:
            await commit_pending_changes(stores, take.id, [])
        assert exc.value.error_code == "NO_CHANGES"

        await stores.stock_takes.update(take.id, {"status": StockTakeStatus.RECONCILED})
        with pytest.raises(PreconditionError) as exc:
            await commit_pending_changes(stores, take.id, [_change(ChangeType.ASSIGN, "C1", "pos-a")])
        assert exc.value.error_code == "ALREADY_RECONCILED"


@pytest.mark.unit
@pytest.mark.asyncio
class TestSession:

    async def test_stage_against_projected_yard(self, stores, save_take):
        take = await save_take(_take({}))
        session = await ReconciliationSession.open(stores, take.id)

        with pytest.raises(PreconditionError):
            session.stage_assign("C3", "pos-b")

        session.stage_assign("C1", "pos-a")
        session.stage_assign("C2", "pos-a2")
        session.stage_assign("C3", "pos-b")
        assert len(session.pending_changes) == 3
        # nothing written while staging
        assert await stores.movements.list() == []

        with pytest.raises(PreconditionError) as exc:
            session.stage_unassign("C1", "pos-a")
        assert exc.value.error_code == "UPPER_LAYER_DEPENDS"

    async def test_inactive_target_not_stageable(self, stores, save_take):
        await stores.positions.update("pos-a3", {"is_active": False})
        take = await save_take(_take({}))
        session = await ReconciliationSession.open(stores, take.id)

        with pytest.raises(PreconditionError) as exc:
            session.stage_assign("C1", "pos-a3")
        assert exc.value.error_code == "POSITION_INACTIVE"
        assert session.pending_changes == []

    async def test_duplicate_staging_rejected(self, stores, save_take):
        take = await save_take(_take({}))
        session = await ReconciliationSession.open(stores, take.id)
        session.stage_assign("C1", "pos-a")

        with pytest.raises(PreconditionError) as exc:
            session.stage_assign("C1", "pos-a3")
        assert exc.value.error_code == "DUPLICATE_CHANGE"

    async def test_cancel_discards(self, stores, save_take):
        take = await save_take(_take({}))
        session = await ReconciliationSession.open(stores, take.id)
        session.stage_assign("C1", "pos-a")
        session.cancel()

        assert session.pending_changes == []
        assert (await stores.stock_takes.get(take.id)).status == StockTakeStatus.COMPLETED
        assert (await stores.positions.get("pos-a")).coil_barcode is None

    async def test_commit_applies_staged(self, stores, save_take, assert_consistent):
        take = await save_take(_take({}))
        session = await ReconciliationSession.open(stores, take.id)
        session.stage_assign("C1", "pos-a")

        summary = await session.commit()
        assert summary.succeeded == 1
        assert session.pending_changes == []
        await assert_consistent()
