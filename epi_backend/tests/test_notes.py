import asyncio

import pytest

from epi_backend.app.application.ports.configuration import FORCED_ADJUSTMENTS_KEY, NEGATIVE_STOCK_KEY
from epi_backend.app.application.use_cases.conclude_note import ConcludeNoteRequest
from epi_backend.app.application.use_cases.manage_draft_note import CreateNoteRequest
from epi_backend.app.core.exceptions import NotFoundException, ValidationException
from epi_backend.app.domain.enums import AdjustmentDirection, MovementKind, NoteKind, NoteStatus
from epi_backend.app.domain.exceptions import (
    AdjustmentNotAllowedError,
    EmptyNoteError,
    InsufficientStockError,
    NoteNotEditableError,
)
from epi_backend.app.infrastructure.dependency_container import container

from conftest import ACTOR, OTHER_WAREHOUSE, WAREHOUSE


def _conclude(note, validate_stock=True):
    return ConcludeNoteRequest(note_id=note.id, actor_user_id=ACTOR, validate_stock=validate_stock)


# ==================== RASCUNHOS ====================

async def test_note_numbers_are_sequential_per_kind(make_note, helmet):
    first = await make_note(NoteKind.ENTRY, [], destination=WAREHOUSE)
    second = await make_note(NoteKind.ENTRY, [], destination=WAREHOUSE)
    transfer = await make_note(NoteKind.TRANSFER, [], origin=WAREHOUSE, destination=OTHER_WAREHOUSE)

    assert first.number == "ENT-2025-000001"
    assert second.number == "ENT-2025-000002"
    assert transfer.number == "TRF-2025-000001"
    assert first.status == NoteStatus.DRAFT


async def test_create_note_requires_actor(drafts):
    with pytest.raises(ValidationException):
        await drafts.create_note(CreateNoteRequest(kind=NoteKind.ENTRY, actor_user_id="",
                                                   destination_warehouse_id=WAREHOUSE))


async def test_draft_edition(drafts, make_note, helmet, gloves):
    note = await make_note(NoteKind.ENTRY, [(helmet.id, 10), (gloves.id, 4)], destination=WAREHOUSE)
    assert note.total_quantity == 14

    note = await drafts.update_item_quantity(note.id, helmet.id, 6, ACTOR)
    note = await drafts.remove_item(note.id, gloves.id, ACTOR)
    note = await drafts.update_header(note.id, "Compra 2025/03", ACTOR)

    stored = await drafts.get_note(note.id)
    assert [(i.item_type_id, i.quantity) for i in stored.items] == [(helmet.id, 6)]
    assert stored.notes == "Compra 2025/03"


async def test_add_unknown_item_type(make_note):
    with pytest.raises(NotFoundException):
        await make_note(NoteKind.ENTRY, [(999, 1)], destination=WAREHOUSE)


async def test_delete_draft_only(drafts, make_note, seed_stock, helmet):
    draft = await make_note(NoteKind.ENTRY, [(helmet.id, 1)], destination=WAREHOUSE)
    await drafts.delete_draft(draft.id, ACTOR)
    with pytest.raises(NotFoundException):
        await drafts.get_note(draft.id)

    concluded = (await seed_stock(helmet.id, 3)).note
    with pytest.raises(NoteNotEditableError):
        await drafts.delete_draft(concluded.id, ACTOR)


async def test_list_notes_by_status(drafts, make_note, seed_stock, helmet):
    await make_note(NoteKind.ENTRY, [(helmet.id, 1)], destination=WAREHOUSE)
    await seed_stock(helmet.id, 2)

    assert len(await drafts.list_notes()) == 2
    concluded = await drafts.list_notes(status=NoteStatus.CONCLUDED)
    assert [n.status for n in concluded] == [NoteStatus.CONCLUDED]


# ==================== CONCLUSIÓN ====================

async def test_conclude_entry(conclude, make_note, balance, helmet, gloves):
    note = await make_note(NoteKind.ENTRY, [(helmet.id, 10), (gloves.id, 25)], destination=WAREHOUSE)

    response = await conclude.execute(_conclude(note))

    assert response.note.status == NoteStatus.CONCLUDED
    assert response.processed_items == 2
    assert [e.kind for e in response.ledger_entries] == [MovementKind.ENTRY, MovementKind.ENTRY]
    assert all(i.processed_quantity == i.quantity for i in response.note.items)
    assert await balance(WAREHOUSE, helmet.id) == 10
    assert await balance(WAREHOUSE, gloves.id) == 25


async def test_ledger_balances_are_running(conclude, make_note, seed_stock, helmet):
    await seed_stock(helmet.id, 10)
    response = await seed_stock(helmet.id, 5)

    entry = response.ledger_entries[0]
    assert (entry.balance_before, entry.balance_after) == (10, 15)


async def test_conclude_transfer_moves_between_warehouses(conclude, make_note, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 10)
    note = await make_note(NoteKind.TRANSFER, [(helmet.id, 4)], origin=WAREHOUSE, destination=OTHER_WAREHOUSE)

    response = await conclude.execute(_conclude(note))

    out_leg, in_leg = response.ledger_entries
    assert (out_leg.kind, out_leg.warehouse_id, out_leg.balance_after) == (MovementKind.TRANSFER, WAREHOUSE, 6)
    assert (in_leg.kind, in_leg.warehouse_id, in_leg.balance_after) == (MovementKind.ENTRY, OTHER_WAREHOUSE, 4)
    assert await balance(WAREHOUSE, helmet.id) == 6
    assert await balance(OTHER_WAREHOUSE, helmet.id) == 4


async def test_conclude_disposal(conclude, make_note, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 3)
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 3)], origin=WAREHOUSE)

    response = await conclude.execute(_conclude(note))

    assert response.ledger_entries[0].kind == MovementKind.DISPOSAL
    assert await balance(WAREHOUSE, helmet.id) == 0


async def test_insufficient_stock_leaves_nothing_behind(conclude, drafts, make_note, seed_stock,
                                                       balance, queries, helmet, gloves):
    await seed_stock(helmet.id, 10)
    await seed_stock(gloves.id, 1)
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 2), (gloves.id, 5)], origin=WAREHOUSE)

    with pytest.raises(InsufficientStockError) as exc_info:
        await conclude.execute(_conclude(note))

    assert exc_info.value.details["available"] == 1
    assert (await drafts.get_note(note.id)).status == NoteStatus.DRAFT
    assert await balance(WAREHOUSE, helmet.id) == 10
    kardex = await queries.kardex(WAREHOUSE, helmet.id)
    assert kardex["summary"]["movements"] == 1


async def test_failure_after_partial_writes_rolls_back(conclude, drafts, make_note, seed_stock,
                                                      balance, queries, helmet, gloves):
    await seed_stock(helmet.id, 10)
    await seed_stock(gloves.id, 1)
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 2), (gloves.id, 5)], origin=WAREHOUSE)

    # Sin verificación previa el primer ítem escribe y el segundo choca con el piso
    with pytest.raises(InsufficientStockError):
        await conclude.execute(_conclude(note, validate_stock=False))

    assert (await drafts.get_note(note.id)).status == NoteStatus.DRAFT
    assert await balance(WAREHOUSE, helmet.id) == 10
    assert await balance(WAREHOUSE, gloves.id) == 1
    assert (await queries.kardex(WAREHOUSE, helmet.id))["summary"]["movements"] == 1
    assert (await queries.kardex(WAREHOUSE, gloves.id))["summary"]["movements"] == 1


async def test_atomic_floor_applies_without_precheck(conclude, drafts, make_note, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 2)
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 5)], origin=WAREHOUSE)

    with pytest.raises(InsufficientStockError):
        await conclude.execute(_conclude(note, validate_stock=False))

    assert (await drafts.get_note(note.id)).status == NoteStatus.DRAFT
    assert await balance(WAREHOUSE, helmet.id) == 2


async def test_negative_stock_override(conclude, make_note, seed_stock, balance, set_flag, helmet):
    await seed_stock(helmet.id, 2)
    await set_flag(NEGATIVE_STOCK_KEY, "true")
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 5)], origin=WAREHOUSE)

    response = await conclude.execute(_conclude(note))

    assert response.ledger_entries[0].balance_after == -3
    assert await balance(WAREHOUSE, helmet.id) == -3


async def test_conclude_twice_is_rejected(conclude, seed_stock, balance, helmet):
    response = await seed_stock(helmet.id, 4)

    with pytest.raises(NoteNotEditableError):
        await conclude.execute(_conclude(response.note))
    assert await balance(WAREHOUSE, helmet.id) == 4


async def test_conclude_empty_note(conclude, make_note):
    note = await make_note(NoteKind.ENTRY, [], destination=WAREHOUSE)
    with pytest.raises(EmptyNoteError):
        await conclude.execute(_conclude(note))


async def test_conclude_unknown_note(conclude):
    with pytest.raises(NotFoundException):
        await conclude.execute(ConcludeNoteRequest(note_id=404, actor_user_id=ACTOR))


async def test_adjustment_note_requires_forced_adjustments(conclude, make_note, helmet):
    note = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 2)], destination=WAREHOUSE)
    with pytest.raises(AdjustmentNotAllowedError):
        await conclude.execute(_conclude(note))


async def test_adjustment_note_both_directions(conclude, make_note, seed_stock, balance, set_flag,
                                               helmet, gloves):
    await seed_stock(helmet.id, 10)
    await seed_stock(gloves.id, 10)
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    note = await make_note(
        NoteKind.ADJUSTMENT,
        [(helmet.id, 3, AdjustmentDirection.DECREASE), (gloves.id, 2, AdjustmentDirection.INCREASE)],
        destination=WAREHOUSE,
    )

    response = await conclude.execute(_conclude(note))

    decrease, increase = response.ledger_entries
    assert (decrease.direction, decrease.balance_after) == (-1, 7)
    assert (increase.direction, increase.balance_after) == (1, 12)
    assert await balance(WAREHOUSE, helmet.id) == 7
    assert await balance(WAREHOUSE, gloves.id) == 12


async def test_adjustment_decrease_beyond_balance(conclude, make_note, seed_stock, set_flag, helmet):
    await seed_stock(helmet.id, 1)
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    note = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 3, AdjustmentDirection.DECREASE)],
                           destination=WAREHOUSE)

    with pytest.raises(InsufficientStockError):
        await conclude.execute(_conclude(note))


async def test_adjustment_below_zero_with_negative_override(conclude, make_note, seed_stock, balance,
                                                           set_flag, helmet):
    await seed_stock(helmet.id, 1)
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    await set_flag(NEGATIVE_STOCK_KEY, "true")
    note = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 3, AdjustmentDirection.DECREASE)],
                           destination=WAREHOUSE)

    response = await conclude.execute(_conclude(note))

    assert response.ledger_entries[0].balance_after == -2
    assert await balance(WAREHOUSE, helmet.id) == -2


async def test_kardex_summary(seed_stock, conclude, make_note, queries, helmet):
    await seed_stock(helmet.id, 10)
    note = await make_note(NoteKind.DISPOSAL, [(helmet.id, 4)], origin=WAREHOUSE)
    await conclude.execute(_conclude(note))

    kardex = await queries.kardex(WAREHOUSE, helmet.id)

    assert kardex["summary"] == {
        "initial_balance": 0,
        "final_balance": 6,
        "total_in": 10,
        "total_out": 4,
        "movements": 2,
    }


# ==================== CONCURRENCIA ====================

async def test_concurrent_conclusions_chain_the_ledger(session_factory, clock, make_note, queries,
                                                       balance, set_flag, helmet):
    first = await make_note(NoteKind.ENTRY, [(helmet.id, 100)], destination=WAREHOUSE)
    second = await make_note(NoteKind.ENTRY, [(helmet.id, 50)], destination=WAREHOUSE)
    workers = [container.get_case_use_conclude_note(session_factory, clock) for _ in range(2)]

    await asyncio.gather(
        workers[0].execute(_conclude(first)),
        workers[1].execute(_conclude(second)),
    )

    entries = (await queries.kardex(WAREHOUSE, helmet.id))["entries"]
    assert entries[0].balance_before == 0
    assert entries[1].balance_before == entries[0].balance_after
    assert entries[1].balance_after == 150
    assert await balance(WAREHOUSE, helmet.id) == 150

    # Un ajuste posterior fija el saldo a partir del kardex: no debe perder unidades
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")
    adjustment = await make_note(NoteKind.ADJUSTMENT, [(helmet.id, 1, AdjustmentDirection.INCREASE)],
                                 destination=WAREHOUSE)
    await workers[0].execute(_conclude(adjustment))
    assert await balance(WAREHOUSE, helmet.id) == 151
