from datetime import datetime, timedelta

import pytest

from epi_backend.app.core.exceptions import ValidationException
from epi_backend.app.domain.entities.catalog import FichaEpi, ItemType
from epi_backend.app.domain.entities.entrega import Entrega, EntregaItem, derive_entrega_status
from epi_backend.app.domain.entities.movement_entry import MovementLedgerEntry, default_direction
from epi_backend.app.domain.entities.movement_note import (
    MovementNote,
    format_note_number,
    parse_note_sequence,
)
from epi_backend.app.domain.enums import (
    AdjustmentDirection,
    EntregaItemStatus,
    EntregaStatus,
    FichaStatus,
    MovementKind,
    NoteKind,
    NoteStatus,
    ReturnCondition,
    StockStatus,
)
from epi_backend.app.domain.exceptions import (
    DuplicateNoteItemError,
    EmptyNoteError,
    EntregaItemNotWithEmployeeError,
    EntregaNotModifiableError,
    FichaNotActiveError,
    InsufficientStockError,
    InvalidMovementTypeError,
    InvalidWarehouseCombinationError,
    NoteNotCancellableError,
    NoteNotEditableError,
)
from epi_backend.app.domain.value_objects.stock import StockBalance

NOW = datetime(2025, 3, 10, 8, 0, 0)


def _entry(kind=MovementKind.ENTRY, quantity=5, balance_before=10, **kwargs):
    return MovementLedgerEntry.create(
        kind, "ALM-CENTRAL", 1, quantity, balance_before, "user", NOW, **kwargs
    )


# ==================== KARDEX ====================

@pytest.mark.parametrize("kind,expected", [
    (MovementKind.ENTRY, 1),
    (MovementKind.EXIT, -1),
    (MovementKind.TRANSFER, -1),
    (MovementKind.DISPOSAL, -1),
    (MovementKind.ADJUSTMENT, 1),
])
def test_balance_after_follows_direction(kind, expected):
    entry = _entry(kind)
    assert entry.direction == expected
    assert entry.balance_after == 10 + expected * 5


def test_adjustment_accepts_negative_direction():
    entry = _entry(MovementKind.ADJUSTMENT, quantity=3, direction=-1)
    assert entry.balance_after == 7
    assert entry.signed_quantity == -3


def test_exit_rejects_positive_direction():
    with pytest.raises(ValidationException):
        _entry(MovementKind.EXIT, direction=1)


@pytest.mark.parametrize("quantity", [0, -2])
def test_quantity_must_be_positive(quantity):
    with pytest.raises(ValidationException):
        _entry(quantity=quantity)


def test_inconsistent_balance_is_rejected():
    with pytest.raises(ValidationException) as exc_info:
        MovementLedgerEntry(
            warehouse_id="ALM-CENTRAL", item_type_id=1, kind=MovementKind.ENTRY,
            quantity=5, direction=1, balance_before=10, balance_after=14, actor_user_id="user"
        )
    assert exc_info.value.details["expected_after"] == 15


def test_reversal_cancels_original_effect():
    original = _entry(MovementKind.DISPOSAL, quantity=4, balance_before=9).with_id(7)
    reversal = original.reversal(balance_before=original.balance_after, actor_user_id="auditor", created_at=NOW)

    assert reversal.kind == MovementKind.REVERSAL
    assert reversal.reversal_of_entry_id == 7
    assert reversal.quantity == original.quantity
    assert original.signed_quantity + reversal.signed_quantity == 0
    assert reversal.balance_after == original.balance_before


def test_reversal_requires_persisted_entry():
    with pytest.raises(ValidationException):
        _entry().reversal(balance_before=15, actor_user_id="user", created_at=NOW)


def test_reversal_kind_cannot_be_created_directly():
    with pytest.raises(ValidationException):
        _entry(MovementKind.REVERSAL)


def test_default_direction_of_unknown_kind():
    with pytest.raises(InvalidMovementTypeError):
        default_direction("TELEPORT")


# ==================== SALDO ====================

def test_stock_balance_remove_beyond_quantity():
    balance = StockBalance("ALM-CENTRAL", 1, quantity=3)
    with pytest.raises(InsufficientStockError) as exc_info:
        balance.remove(4)
    assert exc_info.value.details["deficit"] == 1
    assert balance.remove(4, allow_negative=True).quantity == -1


def test_stock_balance_is_immutable_value():
    balance = StockBalance("ALM-CENTRAL", 1, quantity=3)
    assert balance.add(2).quantity == 5
    assert balance.quantity == 3
    with pytest.raises(ValidationException):
        balance.set(-1)


# ==================== NOTAS ====================

def test_note_number_format_and_parse():
    number = format_note_number(NoteKind.DISPOSAL, 2025, 42)
    assert number == "DESC-2025-000042"
    assert parse_note_sequence(number) == 42
    assert parse_note_sequence("sin-numero") == 0


@pytest.mark.parametrize("kind,origin,destination", [
    (NoteKind.ENTRY, None, None),
    (NoteKind.ENTRY, "A", "B"),
    (NoteKind.TRANSFER, "A", None),
    (NoteKind.TRANSFER, "A", "A"),
    (NoteKind.DISPOSAL, None, "B"),
    (NoteKind.ADJUSTMENT, "A", None),
])
def test_invalid_warehouse_combinations(kind, origin, destination):
    with pytest.raises(InvalidWarehouseCombinationError):
        MovementNote(kind=kind, actor_user_id="user", origin_warehouse_id=origin,
                     destination_warehouse_id=destination)


def test_note_lifecycle():
    note = MovementNote(kind=NoteKind.ENTRY, actor_user_id="user", number="ENT-2025-000001",
                        destination_warehouse_id="A")
    with pytest.raises(EmptyNoteError):
        note.conclude(NOW)

    note.add_item(1, 10)
    with pytest.raises(DuplicateNoteItemError):
        note.add_item(1, 3)
    note.update_item_quantity(1, 12)
    assert note.total_quantity == 12

    note.conclude(NOW)
    assert note.status == NoteStatus.CONCLUDED
    with pytest.raises(NoteNotEditableError):
        note.add_item(2, 1)
    with pytest.raises(NoteNotEditableError):
        note.cancel(NOW)

    note.mark_cancelled_after_reversal(NOW)
    assert note.status == NoteStatus.CANCELLED
    with pytest.raises(NoteNotCancellableError):
        note.mark_cancelled_after_reversal(NOW)


def test_decrease_items_only_on_adjustment_notes():
    note = MovementNote(kind=NoteKind.ENTRY, actor_user_id="user", destination_warehouse_id="A")
    with pytest.raises(ValidationException):
        note.add_item(1, 2, direction=AdjustmentDirection.DECREASE)

    adjustment = MovementNote(kind=NoteKind.ADJUSTMENT, actor_user_id="user", destination_warehouse_id="A")
    item = adjustment.add_item(1, 2, direction=AdjustmentDirection.DECREASE)
    assert item.sign == -1


def test_note_requires_actor():
    with pytest.raises(ValidationException):
        MovementNote(kind=NoteKind.ENTRY, actor_user_id="  ", destination_warehouse_id="A")


# ==================== ENTREGAS ====================

def _entrega(units=2, signed=False):
    items = [EntregaItem(origin_stock_item_id=1, item_type_id=1, id=i + 1) for i in range(units)]
    entrega = Entrega(ficha_epi_id=1, warehouse_id="A", responsible_user_id="user", issued_at=NOW,
                      items=items, signed_at=NOW if signed else None, id=1)
    entrega.refresh_status()
    return entrega


def test_entrega_item_is_always_one_unit():
    with pytest.raises(ValidationException):
        EntregaItem(origin_stock_item_id=1, item_type_id=1, quantity=2)


def test_entrega_status_is_derived_from_items():
    entrega = _entrega(units=2)
    assert entrega.status == EntregaStatus.PENDING_SIGNATURE

    entrega.sign(NOW)
    assert entrega.status == EntregaStatus.ACTIVE

    entrega.items[0].register_return(ReturnCondition.GOOD, NOW)
    assert entrega.refresh_status() == EntregaStatus.PARTIALLY_RETURNED

    entrega.items[1].register_return(ReturnCondition.LOST, NOW)
    assert entrega.refresh_status() == EntregaStatus.FULLY_RETURNED
    assert entrega.refresh_status() == EntregaStatus.FULLY_RETURNED
    assert entrega.items[1].status == EntregaItemStatus.LOST


def test_cancelled_status_is_terminal():
    items = [EntregaItem(origin_stock_item_id=1, item_type_id=1)]
    assert derive_entrega_status(items, signed=True, current=EntregaStatus.CANCELLED) == EntregaStatus.CANCELLED


def test_closed_item_cannot_be_returned_again():
    entrega = _entrega(units=1, signed=True)
    entrega.items[0].register_return(ReturnCondition.DAMAGED, NOW)
    with pytest.raises(EntregaItemNotWithEmployeeError):
        entrega.items[0].register_return(ReturnCondition.GOOD, NOW)


def test_entrega_with_returns_cannot_be_cancelled():
    entrega = _entrega(units=2, signed=True)
    entrega.items[0].register_return(ReturnCondition.GOOD, NOW)
    with pytest.raises(EntregaNotModifiableError):
        entrega.cancel(NOW)


def test_entrega_cannot_be_signed_twice():
    entrega = _entrega(units=1, signed=True)
    with pytest.raises(EntregaNotModifiableError):
        entrega.sign(NOW)


# ==================== CATÁLOGO ====================

def test_item_type_return_deadline():
    item_type = ItemType(name="Óculos", ca_number="CA-1", lifespan_days=90)
    assert item_type.return_deadline(NOW) == NOW + timedelta(days=90)


def test_item_type_rejects_invalid_lifespan():
    with pytest.raises(ValidationException):
        ItemType(name="Óculos", ca_number="CA-1", lifespan_days=0)


def test_suspended_ficha_is_not_active():
    ficha = FichaEpi(employee_id="COL-1", status=FichaStatus.SUSPENDED, id=3)
    with pytest.raises(FichaNotActiveError):
        ficha.require_active()


def test_stock_status_values():
    assert {s.value for s in StockStatus} == {"AVAILABLE", "QUARANTINE", "AWAITING_DISPOSAL"}
