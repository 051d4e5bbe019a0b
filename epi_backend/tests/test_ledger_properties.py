"""
Propiedades del saldo corrido del kardex con Hypothesis.

Para cualquier tipo, sentido admitido, cantidad y saldo anterior:
balance_after == balance_before + direction * quantity, y el estorno
devuelve el saldo exactamente al valor previo al movimiento.
"""
from datetime import datetime

import pytest
from hypothesis import given, settings, strategies as st

from epi_backend.app.core.exceptions import ValidationException
from epi_backend.app.domain.entities.movement_entry import ALLOWED_DIRECTIONS, MovementLedgerEntry
from epi_backend.app.domain.enums import MovementKind, StockStatus

WHEN = datetime(2025, 3, 10, 8, 0)

ORIGINAL_KINDS = [kind for kind in MovementKind if kind != MovementKind.REVERSAL]

quantities = st.integers(min_value=1, max_value=10**9)
balances = st.integers(min_value=-10**9, max_value=10**9)


@st.composite
def kind_and_direction(draw):
    kind = draw(st.sampled_from(ORIGINAL_KINDS))
    direction = draw(st.sampled_from(ALLOWED_DIRECTIONS[kind]))
    return kind, direction


def _entry(kind, direction, quantity, balance_before, status=StockStatus.AVAILABLE):
    return MovementLedgerEntry.create(
        kind=kind,
        warehouse_id="ALM-CENTRAL",
        item_type_id=1,
        quantity=quantity,
        balance_before=balance_before,
        actor_user_id="almoxarife",
        created_at=WHEN,
        direction=direction,
        stock_status=status,
    )


@given(kind_and_direction(), quantities, balances, st.sampled_from(list(StockStatus)))
@settings(max_examples=300)
def test_balance_after_follows_direction(kind_direction, quantity, balance_before, status):
    kind, direction = kind_direction

    entry = _entry(kind, direction, quantity, balance_before, status)

    assert entry.balance_after == balance_before + direction * quantity
    assert entry.signed_quantity == entry.balance_after - entry.balance_before
    assert entry.stock_status == status


@given(st.sampled_from(ORIGINAL_KINDS), quantities, balances)
def test_default_direction_is_the_first_allowed(kind, quantity, balance_before):
    entry = MovementLedgerEntry.create(
        kind=kind,
        warehouse_id="ALM-CENTRAL",
        item_type_id=1,
        quantity=quantity,
        balance_before=balance_before,
        actor_user_id="almoxarife",
        created_at=WHEN,
    )
    assert entry.direction == ALLOWED_DIRECTIONS[kind][0]


@given(kind_and_direction(), quantities, balances, balances)
@settings(max_examples=300)
def test_reversal_is_the_inverse(kind_direction, quantity, balance_before, drift):
    kind, direction = kind_direction
    original = _entry(kind, direction, quantity, balance_before).with_id(1)

    # Estorno inmediato: el saldo vuelve al anterior al movimiento
    reversal = original.reversal(original.balance_after, "almoxarife", WHEN)
    assert reversal.kind == MovementKind.REVERSAL
    assert reversal.direction == -original.direction
    assert reversal.quantity == original.quantity
    assert reversal.balance_after == original.balance_before
    assert reversal.reversal_of_entry_id == original.id

    # Con movimientos intermedios el efecto neto de ambos sigue siendo cero
    later = original.reversal(drift, "almoxarife", WHEN)
    assert later.balance_after - later.balance_before == -original.signed_quantity


@given(st.sampled_from([k for k in ORIGINAL_KINDS if len(ALLOWED_DIRECTIONS[k]) == 1]), quantities, balances)
def test_fixed_direction_kinds_reject_the_other_sense(kind, quantity, balance_before):
    wrong = -ALLOWED_DIRECTIONS[kind][0]
    with pytest.raises(ValidationException):
        _entry(kind, wrong, quantity, balance_before)


@given(kind_and_direction(), st.integers(max_value=0), balances)
def test_non_positive_quantity_is_rejected(kind_direction, quantity, balance_before):
    kind, direction = kind_direction
    with pytest.raises(ValidationException):
        _entry(kind, direction, quantity, balance_before)
