import pytest

from epi_backend.app.application.ports.configuration import FORCED_ADJUSTMENTS_KEY, NEGATIVE_STOCK_KEY
from epi_backend.app.application.use_cases.cancel_note import (
    REVERSAL_EFFECTS,
    CancelNoteRequest,
    ReversalEffect,
)
from epi_backend.app.application.use_cases.conclude_note import ConcludeNoteRequest
from epi_backend.app.application.use_cases.movement_ledger import MovementLedgerService
from epi_backend.app.domain.enums import AdjustmentDirection, MovementKind, NoteKind, NoteStatus
from epi_backend.app.domain.exceptions import (
    EntryNotReversibleError,
    InsufficientStockError,
    NoteNotCancellableError,
)

from conftest import ACTOR, OTHER_WAREHOUSE, WAREHOUSE


def _cancel(note, reason=None, generate_reversal=True):
    return CancelNoteRequest(note_id=note.id, actor_user_id=ACTOR, reason=reason,
                             generate_reversal=generate_reversal)


def test_every_movement_kind_has_a_reversal_effect():
    assert set(REVERSAL_EFFECTS) == set(MovementKind)
    assert REVERSAL_EFFECTS[MovementKind.ENTRY] == ReversalEffect.DECREMENT
    assert REVERSAL_EFFECTS[MovementKind.ADJUSTMENT] == ReversalEffect.RESTORE_ABSOLUTE
    assert REVERSAL_EFFECTS[MovementKind.REVERSAL] is None


async def test_cancel_draft_has_no_stock_impact(cancel, make_note, balance, helmet):
    note = await make_note(NoteKind.ENTRY, [(helmet.id, 5)], destination=WAREHOUSE)

    response = await cancel.execute(_cancel(note))

    assert response.note.status == NoteStatus.CANCELLED
    assert response.reversals == []
    assert response.stock_adjusted is False
    assert await balance(WAREHOUSE, helmet.id) == 0


async def test_cancel_concluded_entry_reverses_stock(cancel, seed_stock, balance, queries, helmet):
    concluded = await seed_stock(helmet.id, 8)

    response = await cancel.execute(_cancel(concluded.note, reason="Nota fiscal duplicada"))

    assert response.note.status == NoteStatus.CANCELLED
    assert response.stock_adjusted is True
    reversal = response.reversals[0]
    assert reversal.kind == MovementKind.REVERSAL
    assert reversal.reversal_of_entry_id == concluded.ledger_entries[0].id
    assert reversal.notes == f"Cancelación de la nota {concluded.note.number}: Nota fiscal duplicada"
    assert await balance(WAREHOUSE, helmet.id) == 0

    kardex = await queries.kardex(WAREHOUSE, helmet.id)
    assert kardex["summary"]["final_balance"] == 0
    assert kardex["summary"]["movements"] == 2


async def test_cancel_transfer_restores_both_warehouses(cancel, conclude, make_note, seed_stock,
                                                        balance, helmet):
    await seed_stock(helmet.id, 10)
    note = await make_note(NoteKind.TRANSFER, [(helmet.id, 4)], origin=WAREHOUSE, destination=OTHER_WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=note.id, actor_user_id=ACTOR))

    response = await cancel.execute(_cancel(note))

    assert len(response.reversals) == 2
    assert await balance(WAREHOUSE, helmet.id) == 10
    assert await balance(OTHER_WAREHOUSE, helmet.id) == 0


async def test_cancel_adjustment_restores_previous_balance(cancel, conclude, make_note, seed_stock,
                                                           balance, set_flag, helmet):
    await seed_stock(helmet.id, 10)
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    note = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 4, AdjustmentDirection.DECREASE)],
                           destination=WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=note.id, actor_user_id=ACTOR))
    assert await balance(WAREHOUSE, helmet.id) == 6

    response = await cancel.execute(_cancel(note))

    assert response.reversals[0].balance_after == 10
    assert await balance(WAREHOUSE, helmet.id) == 10


async def test_cancel_adjustment_below_zero_honors_negative_override(cancel, conclude, make_note, seed_stock,
                                                                   balance, set_flag, helmet):
    await seed_stock(helmet.id, 5)
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    adjustment = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 3, AdjustmentDirection.INCREASE)],
                                 destination=WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=adjustment.id, actor_user_id=ACTOR))
    disposal = await make_note(NoteKind.DISPOSAL, [(helmet.id, 7)], origin=WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=disposal.id, actor_user_id=ACTOR))
    assert await balance(WAREHOUSE, helmet.id) == 1

    with pytest.raises(InsufficientStockError):
        await cancel.execute(_cancel(adjustment))
    assert await balance(WAREHOUSE, helmet.id) == 1

    await set_flag(NEGATIVE_STOCK_KEY, "true")
    response = await cancel.execute(_cancel(adjustment))

    assert response.reversals[0].balance_after == -2
    assert await balance(WAREHOUSE, helmet.id) == -2


async def test_cancel_entry_already_consumed(cancel, conclude, make_note, seed_stock, balance, helmet):
    entry = await seed_stock(helmet.id, 5)
    disposal = await make_note(NoteKind.DISPOSAL, [(helmet.id, 4)], origin=WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=disposal.id, actor_user_id=ACTOR))

    with pytest.raises(InsufficientStockError):
        await cancel.execute(_cancel(entry.note))

    assert await balance(WAREHOUSE, helmet.id) == 1
    check = await cancel.validate_cancellation(entry.note.id)
    assert check["can_cancel"] is False


async def test_cancel_consumed_entry_with_negative_override(cancel, conclude, make_note, seed_stock,
                                                            balance, set_flag, helmet):
    entry = await seed_stock(helmet.id, 5)
    disposal = await make_note(NoteKind.DISPOSAL, [(helmet.id, 4)], origin=WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=disposal.id, actor_user_id=ACTOR))
    await set_flag(NEGATIVE_STOCK_KEY, "true")

    check = await cancel.validate_cancellation(entry.note.id)
    assert check["can_cancel"] is True
    assert any("quedaría en -4" in w for w in check["warnings"])

    await cancel.execute(_cancel(entry.note))
    assert await balance(WAREHOUSE, helmet.id) == -4


async def test_cancel_twice_is_rejected(cancel, seed_stock, balance, helmet):
    concluded = await seed_stock(helmet.id, 3)
    await cancel.execute(_cancel(concluded.note))

    with pytest.raises(NoteNotCancellableError):
        await cancel.execute(_cancel(concluded.note))
    assert await balance(WAREHOUSE, helmet.id) == 0


async def test_concluded_note_without_reversal_is_not_cancellable(cancel, seed_stock, helmet):
    concluded = await seed_stock(helmet.id, 3)
    with pytest.raises(NoteNotCancellableError):
        await cancel.execute(_cancel(concluded.note, generate_reversal=False))


async def test_entry_is_reversed_at_most_once(uow, clock, seed_stock, cancel, helmet):
    concluded = await seed_stock(helmet.id, 3)
    entry_id = concluded.ledger_entries[0].id

    async with uow:
        ledger = MovementLedgerService(uow.movements, uow.stock, clock)
        reversal = await ledger.create_reversal(entry_id, ACTOR)
        with pytest.raises(EntryNotReversibleError):
            await ledger.create_reversal(entry_id, ACTOR)
        with pytest.raises(EntryNotReversibleError):
            await ledger.create_reversal(reversal.id, ACTOR)
        await uow.commit()

    with pytest.raises(EntryNotReversibleError):
        await cancel.execute(_cancel(concluded.note))


async def test_cancellation_impact_preview(cancel, conclude, make_note, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 10)
    note = await make_note(NoteKind.TRANSFER, [(helmet.id, 4)], origin=WAREHOUSE, destination=OTHER_WAREHOUSE)
    await conclude.execute(ConcludeNoteRequest(note_id=note.id, actor_user_id=ACTOR))

    impact = {i["warehouse_id"]: i for i in await cancel.preview_cancellation_impact(note.id)}

    assert impact[WAREHOUSE]["current_balance"] == 6
    assert impact[WAREHOUSE]["balance_after_cancellation"] == 10
    assert impact[OTHER_WAREHOUSE]["difference"] == -4
    assert await balance(WAREHOUSE, helmet.id) == 6


async def test_cancellation_impact_of_draft_is_empty(cancel, make_note, helmet):
    note = await make_note(NoteKind.ENTRY, [(helmet.id, 1)], destination=WAREHOUSE)
    assert await cancel.preview_cancellation_impact(note.id) == []
    check = await cancel.validate_cancellation(note.id)
    assert check == {"can_cancel": True, "note_status": "DRAFT", "reasons": [], "warnings": []}
