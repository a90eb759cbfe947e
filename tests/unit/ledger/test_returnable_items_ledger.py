"""Unit tests for ReturnableItemsLedger."""

import pytest

from gatepass.core.exceptions import APIClientError, AppError, StaleWriteConflictError, ValidationError
from gatepass.schemas.workflow import ReturnState, Stage
from gatepass.services.ledger import ReturnableItemsLedger
from tests.factories import make_record, returnable, ts


@pytest.fixture
def ledger(mock_backend) -> ReturnableItemsLedger:
    return ReturnableItemsLedger(mock_backend, clock=lambda: ts(15, 14, 30))


@pytest.fixture
def record():
    return make_record(
        "GP-042",
        Stage.APPROVED,
        returnable_items=[returnable("SN1"), returnable("SN2", returned=True), returnable("SN3")],
    )


class TestMarkReturned:

    @pytest.mark.asyncio
    async def test_already_returned_items_are_left_alone(self, ledger, mock_backend, record):
        mock_backend.mark_returned.return_value = 1
        sn2_before = record.returnable_item("SN2")

        result = await ledger.mark_returned(record, {"SN1", "SN2"})

        assert result.updated_count == 1
        assert result.record.returnable_item("SN1").return_state == ReturnState.RETURNED
        assert result.record.returnable_item("SN1").returned_at == ts(15, 14, 30)
        assert result.record.returnable_item("SN2") == sn2_before
        mock_backend.mark_returned.assert_awaited_once_with("GP-042", ["SN1"], None)

    @pytest.mark.asyncio
    async def test_remarks_are_recorded(self, ledger, mock_backend, record):
        mock_backend.mark_returned.return_value = 2

        result = await ledger.mark_returned(record, ["SN3", "SN1"], remarks="Handed to store")

        assert result.updated_count == 2
        assert result.record.returnable_item("SN3").remarks == "Handed to store"
        mock_backend.mark_returned.assert_awaited_once_with("GP-042", ["SN1", "SN3"], "Handed to store")

    @pytest.mark.asyncio
    async def test_nothing_pending_skips_backend(self, ledger, mock_backend, record):
        result = await ledger.mark_returned(record, ["SN2"])

        assert result.updated_count == 0
        assert result.record == record
        mock_backend.mark_returned.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_original_record_is_not_mutated(self, ledger, mock_backend, record):
        mock_backend.mark_returned.return_value = 1

        await ledger.mark_returned(record, ["SN1"])

        assert record.returnable_item("SN1").return_state == ReturnState.RETURNABLE

    @pytest.mark.asyncio
    async def test_empty_selection_is_rejected(self, ledger, mock_backend, record):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.mark_returned(record, [])

        assert exc_info.value.field == "serial_numbers"
        mock_backend.mark_returned.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_serial_is_rejected(self, ledger, mock_backend, record):
        with pytest.raises(ValidationError, match="SN9"):
            await ledger.mark_returned(record, ["SN1", "SN9"])

        mock_backend.mark_returned.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_failure_propagates(self, ledger, mock_backend, record):
        mock_backend.mark_returned.side_effect = APIClientError("backend down")

        with pytest.raises(APIClientError):
            await ledger.mark_returned(record, ["SN1"])

        assert record.returnable_item("SN1").return_state == ReturnState.RETURNABLE

    @pytest.mark.asyncio
    async def test_short_backend_count_leaves_record_unchanged(self, ledger, mock_backend, record):
        mock_backend.mark_returned.return_value = 0

        with pytest.raises(StaleWriteConflictError) as exc_info:
            await ledger.mark_returned(record, ["SN1", "SN3"])

        assert exc_info.value.reference_number == "GP-042"
        assert record.returnable_item("SN1").return_state == ReturnState.RETURNABLE
        assert record.returnable_item("SN3").return_state == ReturnState.RETURNABLE

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(self, ledger, mock_backend, record):
        mock_backend.mark_returned.side_effect = KeyError("updatedCount")

        with pytest.raises(AppError):
            await ledger.mark_returned(record, ["SN1"])


class TestAddItem:

    @pytest.mark.asyncio
    async def test_item_is_appended_as_returnable(self, ledger, mock_backend):
        record = make_record("GP-050", Stage.AWAITING_RECEIPT, returnable_items=[returnable("SN1")])

        updated = await ledger.add_item(record, returnable("SN4", returned=True))

        assert [i.serial_number for i in updated.snapshot.returnable_items] == ["SN1", "SN4"]
        assert updated.returnable_item("SN4").return_state == ReturnState.RETURNABLE
        assert updated.returnable_item("SN4").returned_at is None
        mock_backend.add_item.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_serial_is_rejected(self, ledger, mock_backend):
        record = make_record("GP-050", Stage.AWAITING_RECEIPT, returnable_items=[returnable("SN1")])

        with pytest.raises(ValidationError):
            await ledger.add_item(record, returnable("SN1"))

        mock_backend.add_item.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", [Stage.APPROVED, Stage.REJECTED])
    async def test_terminal_request_is_rejected(self, ledger, mock_backend, stage):
        record = make_record("GP-050", stage)

        with pytest.raises(ValidationError) as exc_info:
            await ledger.add_item(record, returnable("SN5"))

        assert exc_info.value.field == "stage"
        mock_backend.add_item.assert_not_awaited()
