"""
Router de entregas de EPI.
Endpoints para emisión, firma, cancelación, devolución y posesión.
"""
from fastapi import APIRouter, Depends, status
from typing import Optional

from ...app.application.dtos.schemas import EntregaCancel, EntregaCreate, ReturnCreate, SuccessResponse
from ...api.dependencies import get_actor, get_audit_logger, get_issue_entrega, get_process_return
from ...app.application.use_cases.issue_entrega import IssueEntregaRequest
from ...app.application.use_cases.process_return import ProcessReturnRequest, ReturnItemRequest
from ...infrastructure.logging.structured_logger import log_execution

router = APIRouter(prefix="/entregas", tags=["entregas"])


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@log_execution("api.entregas")
async def issue_entrega(
    entrega_data: EntregaCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_issue_entrega),
    audit_logger=Depends(get_audit_logger)
):
    response = await use_case.issue(IssueEntregaRequest(
        ficha_epi_id=entrega_data.ficha_epi_id,
        origin_stock_item_ids=entrega_data.origin_stock_item_ids,
        actor_user_id=actor,
        require_signature=entrega_data.require_signature,
        notes=entrega_data.notes,
    ))
    data = response.entrega.to_dict()
    audit_logger.log_entrega("issued", data, actor)
    data["ledger_entry_ids"] = [e.id for e in response.ledger_entries]
    return SuccessResponse(message=response.message, data=data)


@router.get("/possession/{employee_id}", response_model=SuccessResponse)
async def current_possession(employee_id: str, use_case=Depends(get_issue_entrega)):
    possession = await use_case.current_possession(employee_id)
    return SuccessResponse(
        message=f"{sum(p['count'] for p in possession)} unidades en posesión",
        data={"employee_id": employee_id, "possession": possession}
    )


@router.get("/{entrega_id}", response_model=SuccessResponse)
async def get_entrega(entrega_id: int, use_case=Depends(get_issue_entrega)):
    entrega = await use_case.get_entrega(entrega_id)
    return SuccessResponse(message=f"Entrega {entrega.id}", data=entrega.to_dict())


@router.post("/{entrega_id}/sign", response_model=SuccessResponse)
async def sign_entrega(
    entrega_id: int,
    actor: str = Depends(get_actor),
    use_case=Depends(get_issue_entrega),
    audit_logger=Depends(get_audit_logger)
):
    entrega = await use_case.sign_entrega(entrega_id, actor)
    audit_logger.log_entrega("signed", {"id": entrega.id, "status": entrega.status.value}, actor)
    return SuccessResponse(message=f"Entrega {entrega.id} firmada", data=entrega.to_dict())


@router.post("/{entrega_id}/cancel", response_model=SuccessResponse)
@log_execution("api.entregas")
async def cancel_entrega(
    entrega_id: int,
    body: Optional[EntregaCancel] = None,
    actor: str = Depends(get_actor),
    use_case=Depends(get_issue_entrega),
    audit_logger=Depends(get_audit_logger)
):
    reason = body.reason if body else None
    entrega = await use_case.cancel_entrega(entrega_id, actor, reason)
    audit_logger.log_entrega("cancelled", {"id": entrega.id, "reason": reason}, actor)
    return SuccessResponse(message=f"Entrega {entrega.id} cancelada", data=entrega.to_dict())


@router.post("/{entrega_id}/refresh-status", response_model=SuccessResponse)
async def refresh_entrega_status(entrega_id: int, use_case=Depends(get_issue_entrega)):
    entrega = await use_case.refresh_entrega_status(entrega_id)
    return SuccessResponse(message=f"Entrega {entrega.id}: {entrega.status.value}", data=entrega.to_dict())


@router.post("/{entrega_id}/returns", response_model=SuccessResponse)
@log_execution("api.entregas")
async def process_return(
    entrega_id: int,
    return_data: ReturnCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_process_return),
    audit_logger=Depends(get_audit_logger)
):
    response = await use_case.execute(ProcessReturnRequest(
        entrega_id=entrega_id,
        actor_user_id=actor,
        items=[
            ReturnItemRequest(
                entrega_item_id=item.entrega_item_id,
                condition=item.condition,
                returned_quantity=item.returned_quantity,
                reason=item.reason,
                destination=item.destination,
            )
            for item in return_data.items
        ],
    ))
    audit_logger.log_return(response.entrega.id, response.returned_items, actor)
    return SuccessResponse(
        message=response.message,
        data={
            "entrega": response.entrega.to_dict(),
            "returned_items": response.returned_items,
            "ledger_entry_ids": [e.id for e in response.ledger_entries],
        }
    )


@router.post("/{entrega_id}/items/{entrega_item_id}/cancel-return", response_model=SuccessResponse)
@log_execution("api.entregas")
async def cancel_return(
    entrega_id: int,
    entrega_item_id: int,
    body: Optional[EntregaCancel] = None,
    actor: str = Depends(get_actor),
    use_case=Depends(get_process_return),
    audit_logger=Depends(get_audit_logger)
):
    reason = body.reason if body else None
    response = await use_case.cancel_return(entrega_id, entrega_item_id, actor, reason)
    audit_logger.log_return(response.entrega.id, response.returned_items, actor, cancelled=True)
    return SuccessResponse(
        message=f"Devolución del ítem {entrega_item_id} cancelada",
        data={
            "entrega": response.entrega.to_dict(),
            "restored_items": response.returned_items,
            "reversal_ids": [e.id for e in response.ledger_entries],
        }
    )
