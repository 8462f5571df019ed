"""Stock-take drafts and submission."""

import pytest

from coilyard.middleware.exceptions import PreconditionError
from coilyard.models.enums import StockTakeStatus
from coilyard.schemas.stock_take import FoundCoil, NonTraceableCoil, StockTakeCreate
from coilyard.services.stock_take import StockTakeDraft


def _non_traceable(placeholder: str, barcode: str = "NT-1") -> NonTraceableCoil:
    return NonTraceableCoil(
        barcode=barcode, description="tag torn off", estimated_weight=11.0,
        found_at_placeholder_id=placeholder,
    )


@pytest.mark.unit
class TestDraftRules:

    def test_record_coil(self):
        draft = StockTakeDraft("North walk", "A")
        found = draft.record_coil(" C1 ", "A001-L1")

        assert found.coil_barcode == "C1"
        assert found.scanned_timestamp is not None
        assert draft.physical_count == 1

    def test_missing_fields(self):
        draft = StockTakeDraft("North walk", "A")
        for barcode, placeholder in (("", "A001-L1"), ("C1", "  ")):
            with pytest.raises(PreconditionError) as exc:
                draft.record_coil(barcode, placeholder)
            assert exc.value.error_code == "MISSING_FIELDS"

    def test_coil_recorded_once(self):
        draft = StockTakeDraft("North walk", "A")
        draft.record_coil("C1", "A001-L1")

        with pytest.raises(PreconditionError) as exc:
            draft.record_coil("C1", "A002-L1")
        assert exc.value.error_code == "DUPLICATE_COIL"

    def test_one_coil_per_placeholder(self):
        draft = StockTakeDraft("North walk", "A")
        draft.record_coil("C1", "A001-L1")

        with pytest.raises(PreconditionError) as exc:
            draft.record_coil("C2", "A001-L1")
        assert exc.value.error_code == "PLACEHOLDER_TAKEN"

        with pytest.raises(PreconditionError) as exc:
            draft.add_non_traceable(_non_traceable("A001-L1"))
        assert exc.value.error_code == "PLACEHOLDER_TAKEN"

    def test_empty_placeholders(self):
        draft = StockTakeDraft("North walk", "A")
        draft.mark_empty("A003-L1")

        with pytest.raises(PreconditionError) as exc:
            draft.mark_empty("A003-L1")
        assert exc.value.error_code == "ALREADY_MARKED_EMPTY"

        with pytest.raises(PreconditionError) as exc:
            draft.record_coil("C1", "A003-L1")
        assert exc.value.error_code == "PLACEHOLDER_MARKED_EMPTY"

        with pytest.raises(PreconditionError) as exc:
            draft.add_non_traceable(_non_traceable("A003-L1"))
        assert exc.value.error_code == "PLACEHOLDER_MARKED_EMPTY"

        draft.add_non_traceable(_non_traceable("A002-L1"))
        with pytest.raises(PreconditionError) as exc:
            draft.mark_empty("A002-L1")
        assert exc.value.error_code == "PLACEHOLDER_HAS_COIL"

    def test_remove_entries_frees_placeholder(self):
        draft = StockTakeDraft("North walk", "A")
        draft.record_coil("C1", "A001-L1")
        draft.add_non_traceable(_non_traceable("A002-L1"))

        draft.remove_coil("C1")
        removed = draft.remove_non_traceable(0)

        assert removed.barcode == "NT-1"
        assert draft.physical_count == 0
        draft.record_coil("C2", "A001-L1")
        draft.mark_empty("A002-L1")

    def test_from_payload_replays_rules(self):
        payload = StockTakeCreate(
            location="North walk",
            bay="A",
            coils_found=[
                FoundCoil(coil_barcode="C1", found_at_placeholder_id="A001-L1"),
                FoundCoil(coil_barcode="C1", found_at_placeholder_id="A002-L1"),
            ],
        )
        with pytest.raises(PreconditionError) as exc:
            StockTakeDraft.from_payload(payload)
        assert exc.value.error_code == "DUPLICATE_COIL"


@pytest.mark.unit
@pytest.mark.asyncio
class TestSubmit:

    async def test_counts_and_variance(self, stores, allocation):
        await allocation.assign("C1", "pos-a")
        await allocation.assign("C2", "pos-a2")
        await allocation.assign("C4", "pos-y")  # bay B, not counted

        draft = StockTakeDraft("North walk", "A", remarks="morning shift")
        draft.record_coil("C1", "A001-L1")
        draft.record_coil("C3", "A003-L1")
        draft.add_non_traceable(_non_traceable("A002-L1"))

        record = await draft.submit(stores)

        assert record.physical_count == 3
        assert record.system_count == 2
        assert record.variance == 1
        assert record.status == StockTakeStatus.COMPLETED
        assert record.zone is None
        stored = await stores.stock_takes.get(record.id)
        assert [c.coil_barcode for c in stored.coils_found] == ["C1", "C3"]
        assert stored.non_traceable_coils[0].added_timestamp is not None

    async def test_zone_narrows_system_count(self, stores, allocation):
        await allocation.assign("C1", "pos-a")

        record = await StockTakeDraft("North walk", "A", zone="Z2").submit(stores)
        assert record.system_count == 0
        assert record.variance == 0

    async def test_location_required(self, stores):
        with pytest.raises(PreconditionError) as exc:
            await StockTakeDraft("  ", "A").submit(stores)
        assert exc.value.error_code == "MISSING_FIELDS"
