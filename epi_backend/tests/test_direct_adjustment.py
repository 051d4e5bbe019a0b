import pytest

from epi_backend.app.application.ports.configuration import FORCED_ADJUSTMENTS_KEY
from epi_backend.app.application.use_cases.direct_adjustment import DirectAdjustmentRequest, InventoryCount
from epi_backend.app.core.exceptions import NotFoundException, ValidationException
from epi_backend.app.domain.enums import MovementKind
from epi_backend.app.domain.exceptions import AdjustmentNotAllowedError, NothingToAdjustError

from conftest import ACTOR, WAREHOUSE


@pytest.fixture
async def enabled(set_flag):
    await set_flag(FORCED_ADJUSTMENTS_KEY, "true")


def _request(item_type_id, new_quantity, reason="Inventario mensual", actor=ACTOR):
    return DirectAdjustmentRequest(
        warehouse_id=WAREHOUSE,
        item_type_id=item_type_id,
        new_quantity=new_quantity,
        actor_user_id=actor,
        reason=reason,
    )


async def test_adjustments_disabled_by_default(adjustments, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 10)
    with pytest.raises(AdjustmentNotAllowedError):
        await adjustments.adjust_direct(_request(helmet.id, 7))
    assert await balance(WAREHOUSE, helmet.id) == 10


async def test_adjust_down(adjustments, seed_stock, balance, enabled, helmet):
    await seed_stock(helmet.id, 10)

    result = await adjustments.adjust_direct(_request(helmet.id, 7))

    assert (result.previous_quantity, result.new_quantity, result.difference) == (10, 7, -3)
    assert result.entry.kind == MovementKind.ADJUSTMENT
    assert (result.entry.quantity, result.entry.direction) == (3, -1)
    assert result.entry.balance_after == 7
    assert await balance(WAREHOUSE, helmet.id) == 7


async def test_adjust_up_creates_missing_balance(adjustments, balance, enabled, gloves):
    result = await adjustments.adjust_direct(_request(gloves.id, 12))

    assert result.difference == 12
    assert result.entry.direction == 1
    assert await balance(WAREHOUSE, gloves.id) == 12


async def test_nothing_to_adjust(adjustments, seed_stock, queries, enabled, helmet):
    await seed_stock(helmet.id, 5)
    with pytest.raises(NothingToAdjustError):
        await adjustments.adjust_direct(_request(helmet.id, 5))
    assert (await queries.kardex(WAREHOUSE, helmet.id))["summary"]["movements"] == 1


async def test_invalid_requests_collect_errors(adjustments, enabled, helmet):
    with pytest.raises(ValidationException) as exc_info:
        await adjustments.adjust_direct(_request(helmet.id, -1, reason=" "))
    assert len(exc_info.value.details["errors"]) >= 2


async def test_adjust_unknown_item_type(adjustments, enabled):
    with pytest.raises(NotFoundException):
        await adjustments.adjust_direct(_request(999, 3))


async def test_bulk_inventory_skips_matching_counts(adjustments, seed_stock, balance, enabled,
                                                    helmet, gloves):
    await seed_stock(helmet.id, 10)
    await seed_stock(gloves.id, 4)

    result = await adjustments.adjust_bulk(
        WAREHOUSE,
        [InventoryCount(helmet.id, 8), InventoryCount(gloves.id, 4)],
        ACTOR,
        reason="Inventario trimestral",
    )

    assert result["total_items_processed"] == 2
    assert [a.item_type_id for a in result["adjustments"]] == [helmet.id]
    assert result["negative_adjustments"] == 1
    assert result["total_adjusted_quantity"] == 2
    assert await balance(WAREHOUSE, helmet.id) == 8
    assert await balance(WAREHOUSE, gloves.id) == 4


async def test_bulk_inventory_is_all_or_nothing(adjustments, seed_stock, balance, enabled, helmet):
    await seed_stock(helmet.id, 10)

    with pytest.raises(NotFoundException):
        await adjustments.adjust_bulk(
            WAREHOUSE, [InventoryCount(helmet.id, 8), InventoryCount(999, 1)], ACTOR
        )
    assert await balance(WAREHOUSE, helmet.id) == 10


async def test_simulation_does_not_write(adjustments, seed_stock, balance, helmet):
    await seed_stock(helmet.id, 10)

    simulation = await adjustments.simulate_adjustment(WAREHOUSE, helmet.id, 13)

    assert simulation["difference"] == 3
    assert simulation["would_adjust"] is True
    assert simulation["adjustments_allowed"] is False
    assert await balance(WAREHOUSE, helmet.id) == 10


async def test_inventory_divergences(adjustments, seed_stock, helmet, gloves):
    await seed_stock(helmet.id, 10)
    await seed_stock(gloves.id, 2)

    divergences = await adjustments.inventory_divergences(
        WAREHOUSE, [InventoryCount(helmet.id, 10), InventoryCount(gloves.id, 5)]
    )

    assert divergences == [{
        "item_type_id": gloves.id,
        "system_quantity": 2,
        "counted_quantity": 5,
        "difference": 3,
    }]


async def test_permission_check(adjustments, enabled):
    await adjustments.validate_adjustment_permission(ACTOR)
    with pytest.raises(AdjustmentNotAllowedError):
        await adjustments.validate_adjustment_permission("")
