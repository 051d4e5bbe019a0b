"""
Router para notas de movimentação.
Endpoints para rascunhos, conclusión y cancelación con estorno.
"""
from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from ...app.application.dtos.schemas import (
    NoteCancel, NoteConclude, NoteCreate, NoteHeaderUpdate,
    NoteItemCreate, NoteItemUpdate, SuccessResponse
)
from ...api.dependencies import (
    get_actor, get_audit_logger, get_cancel_note, get_conclude_note, get_manage_draft_note
)
from ...app.application.use_cases.manage_draft_note import AddNoteItemRequest, CreateNoteRequest
from ...app.application.use_cases.conclude_note import ConcludeNoteRequest
from ...app.application.use_cases.cancel_note import CancelNoteRequest
from ...app.domain.enums import NoteKind, NoteStatus
from ...infrastructure.logging.structured_logger import log_execution

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    note_data: NoteCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    note = await use_case.create_note(CreateNoteRequest(
        kind=note_data.kind,
        actor_user_id=actor,
        origin_warehouse_id=note_data.origin_warehouse_id,
        destination_warehouse_id=note_data.destination_warehouse_id,
        notes=note_data.notes,
    ))
    return SuccessResponse(message=f"Nota {note.number} creada", data=note.to_dict())


@router.get("", response_model=SuccessResponse)
async def list_notes(
    note_status: Optional[NoteStatus] = Query(None, alias="status", description="Filtrar por estado"),
    kind: Optional[NoteKind] = Query(None, description="Filtrar por tipo"),
    actor_user_id: Optional[str] = Query(None, description="Filtrar por usuario"),
    skip: int = Query(0, ge=0, description="Saltar registros"),
    limit: int = Query(100, ge=1, le=1000, description="Límite de registros"),
    use_case=Depends(get_manage_draft_note)
):
    notes = await use_case.list_notes(
        status=note_status, kind=kind, actor_user_id=actor_user_id, skip=skip, limit=limit
    )
    return SuccessResponse(
        message=f"{len(notes)} notas",
        data={"notes": [n.to_dict() for n in notes], "skip": skip, "limit": limit}
    )


@router.get("/{note_id}", response_model=SuccessResponse)
async def get_note(note_id: int, use_case=Depends(get_manage_draft_note)):
    note = await use_case.get_note(note_id)
    return SuccessResponse(message=f"Nota {note.number}", data=note.to_dict())


@router.patch("/{note_id}", response_model=SuccessResponse)
async def update_note_header(
    note_id: int,
    header: NoteHeaderUpdate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    note = await use_case.update_header(note_id, header.notes, actor)
    return SuccessResponse(message=f"Nota {note.number} actualizada", data=note.to_dict())


@router.delete("/{note_id}", response_model=SuccessResponse)
async def delete_draft(
    note_id: int,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    await use_case.delete_draft(note_id, actor)
    return SuccessResponse(message=f"Rascunho {note_id} eliminado", data={"note_id": note_id})


# ==================== ÍTEMS ====================

@router.post("/{note_id}/items", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def add_note_item(
    note_id: int,
    item: NoteItemCreate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    note = await use_case.add_item(AddNoteItemRequest(
        note_id=note_id,
        item_type_id=item.item_type_id,
        quantity=item.quantity,
        actor_user_id=actor,
        notes=item.notes,
        direction=item.direction,
    ))
    return SuccessResponse(message=f"Ítem agregado a la nota {note.number}", data=note.to_dict())


@router.put("/{note_id}/items/{item_type_id}", response_model=SuccessResponse)
async def update_note_item(
    note_id: int,
    item_type_id: int,
    item: NoteItemUpdate,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    note = await use_case.update_item_quantity(note_id, item_type_id, item.quantity, actor)
    return SuccessResponse(message=f"Ítem actualizado en la nota {note.number}", data=note.to_dict())


@router.delete("/{note_id}/items/{item_type_id}", response_model=SuccessResponse)
async def remove_note_item(
    note_id: int,
    item_type_id: int,
    actor: str = Depends(get_actor),
    use_case=Depends(get_manage_draft_note)
):
    note = await use_case.remove_item(note_id, item_type_id, actor)
    return SuccessResponse(message=f"Ítem removido de la nota {note.number}", data=note.to_dict())


# ==================== TRANSICIONES ====================

@router.post("/{note_id}/conclude", response_model=SuccessResponse)
@log_execution("api.notes")
async def conclude_note(
    note_id: int,
    body: Optional[NoteConclude] = None,
    actor: str = Depends(get_actor),
    use_case=Depends(get_conclude_note),
    audit_logger=Depends(get_audit_logger)
):
    body = body or NoteConclude()
    response = await use_case.execute(ConcludeNoteRequest(
        note_id=note_id,
        actor_user_id=actor,
        validate_stock=body.validate_stock,
    ))

    # Registrar en auditoría
    audit_logger.log_note_concluded(
        note_data={"id": response.note.id, "number": response.note.number, "kind": response.note.kind.value},
        entry_ids=[e.id for e in response.ledger_entries],
        actor_user_id=actor
    )

    return SuccessResponse(
        message=response.message,
        data={
            "note": response.note.to_dict(),
            "ledger_entries": [e.to_dict() for e in response.ledger_entries],
            "processed_items": response.processed_items,
        }
    )


@router.post("/{note_id}/cancel", response_model=SuccessResponse)
@log_execution("api.notes")
async def cancel_note(
    note_id: int,
    body: Optional[NoteCancel] = None,
    actor: str = Depends(get_actor),
    use_case=Depends(get_cancel_note),
    audit_logger=Depends(get_audit_logger)
):
    body = body or NoteCancel()
    response = await use_case.execute(CancelNoteRequest(
        note_id=note_id,
        actor_user_id=actor,
        reason=body.reason,
        generate_reversal=body.generate_reversal,
    ))

    audit_logger.log_note_cancelled(
        note_data={"id": response.note.id, "number": response.note.number, "kind": response.note.kind.value},
        reversal_ids=[r.id for r in response.reversals],
        actor_user_id=actor,
        reason=body.reason
    )

    return SuccessResponse(
        message=response.message,
        data={
            "note": response.note.to_dict(),
            "reversals": [r.to_dict() for r in response.reversals],
            "stock_adjusted": response.stock_adjusted,
        }
    )


@router.get("/{note_id}/cancellation-check", response_model=SuccessResponse)
async def validate_cancellation(note_id: int, use_case=Depends(get_cancel_note)):
    result = await use_case.validate_cancellation(note_id)
    message = "La nota puede cancelarse" if result["can_cancel"] else "La nota no puede cancelarse"
    return SuccessResponse(message=message, data=result)


@router.get("/{note_id}/cancellation-impact", response_model=SuccessResponse)
async def cancellation_impact(note_id: int, use_case=Depends(get_cancel_note)):
    impact = await use_case.preview_cancellation_impact(note_id)
    return SuccessResponse(message=f"{len(impact)} saldos afectados", data={"impact": impact})
