"""
Router para operaciones de estoque.
Endpoints para saldos, kardex, ajustes directos e inventario.
"""
from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from datetime import datetime

from ...app.application.dtos.schemas import (
    AdjustmentSimulation, ConfigurationUpdate, DirectAdjustmentCreate,
    InventoryCountCreate, SuccessResponse
)
from ...api.dependencies import (
    get_actor, get_audit_logger, get_direct_adjustment, get_stock_queries, get_unit_of_work
)
from ...app.application.use_cases.direct_adjustment import DirectAdjustmentRequest, InventoryCount
from ...app.domain.enums import StockStatus
from ...infrastructure.logging.structured_logger import log_execution

router = APIRouter(prefix="/stock", tags=["stock"])
config_router = APIRouter(prefix="/config", tags=["config"])


@router.get("/balances", response_model=SuccessResponse)
async def list_balances(
    warehouse_id: Optional[str] = Query(None, description="Filtrar por almacén"),
    item_type_id: Optional[int] = Query(None, description="Filtrar por tipo de EPI"),
    stock_status: Optional[StockStatus] = Query(None, alias="status", description="Filtrar por situación"),
    include_zero: bool = Query(True, description="Incluir saldos en cero"),
    use_case=Depends(get_stock_queries)
):
    balances = await use_case.list_balances(
        warehouse_id=warehouse_id,
        item_type_id=item_type_id,
        status=stock_status,
        include_zero=include_zero,
    )
    return SuccessResponse(
        message=f"{len(balances)} saldos",
        data={"balances": [b.to_dict() for b in balances]}
    )


@router.get("/kardex", response_model=SuccessResponse)
async def kardex(
    warehouse_id: str = Query(..., description="Almacén"),
    item_type_id: int = Query(..., description="Tipo de EPI"),
    stock_status: StockStatus = Query(StockStatus.AVAILABLE, alias="status", description="Situación del saldo"),
    start_date: Optional[datetime] = Query(None, description="Fecha inicial (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Fecha final (ISO 8601)"),
    use_case=Depends(get_stock_queries)
):
    result = await use_case.kardex(
        warehouse_id, item_type_id, status=stock_status, start_date=start_date, end_date=end_date
    )
    result["entries"] = [e.to_dict() for e in result["entries"]]
    return SuccessResponse(message=f"{result['summary']['movements']} movimientos", data=result)


# ==================== AJUSTES ====================

@router.post("/adjustments", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@log_execution("api.stock")
async def direct_adjustment(
    adjustment: DirectAdjustmentCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_direct_adjustment),
    audit_logger=Depends(get_audit_logger)
):
    result = await use_case.adjust_direct(DirectAdjustmentRequest(
        warehouse_id=adjustment.warehouse_id,
        item_type_id=adjustment.item_type_id,
        new_quantity=adjustment.new_quantity,
        actor_user_id=actor,
        reason=adjustment.reason,
    ))
    audit_logger.log_adjustment(result.to_dict(), actor)
    return SuccessResponse(
        message=f"Saldo ajustado de {result.previous_quantity} a {result.new_quantity}",
        data=result.to_dict()
    )


@router.post("/inventory", response_model=SuccessResponse)
@log_execution("api.stock")
async def bulk_inventory(
    inventory: InventoryCountCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_direct_adjustment),
    audit_logger=Depends(get_audit_logger)
):
    result = await use_case.adjust_bulk(
        inventory.warehouse_id,
        [InventoryCount(i.item_type_id, i.counted_quantity, i.reason) for i in inventory.items],
        actor,
        reason=inventory.reason,
    )
    adjustments = [a.to_dict() for a in result["adjustments"]]
    for adjustment in adjustments:
        audit_logger.log_adjustment(adjustment, actor)
    result["adjustments"] = adjustments
    return SuccessResponse(message=f"{len(adjustments)} ajustes aplicados", data=result)


@router.post("/adjustments/simulate", response_model=SuccessResponse)
async def simulate_adjustment(
    simulation: AdjustmentSimulation,
    use_case=Depends(get_direct_adjustment)
):
    result = await use_case.simulate_adjustment(
        simulation.warehouse_id, simulation.item_type_id, simulation.new_quantity
    )
    return SuccessResponse(message="Simulación de ajuste", data=result)


@router.post("/inventory/divergences", response_model=SuccessResponse)
async def inventory_divergences(
    inventory: InventoryCountCreate,
    use_case=Depends(get_direct_adjustment)
):
    divergences = await use_case.inventory_divergences(
        inventory.warehouse_id,
        [InventoryCount(i.item_type_id, i.counted_quantity, i.reason) for i in inventory.items],
    )
    return SuccessResponse(
        message=f"{len(divergences)} divergencias",
        data={"warehouse_id": inventory.warehouse_id, "divergences": divergences}
    )


# ==================== CONFIGURACIÓN ====================

@config_router.put("", response_model=SuccessResponse)
async def update_configuration(
    config: ConfigurationUpdate,
    actor: str = Depends(get_actor),
    uow=Depends(get_unit_of_work),
    audit_logger=Depends(get_audit_logger)
):
    async with uow:
        await uow.config.set_flag(config.key, config.value)
        await uow.commit()
    audit_logger.log_system_event(
        "CONFIGURATION_CHANGED",
        {"key": config.key, "value": config.value, "actor_user_id": actor}
    )
    return SuccessResponse(message=f"Configuración {config.key} actualizada", data=config.model_dump())
