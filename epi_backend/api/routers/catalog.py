"""
Router de catálogo: tipos de EPI y fichas de colaboradores.
"""
from fastapi import APIRouter, Depends, Query, status

from ...app.application.dtos.schemas import FichaCreate, ItemTypeCreate, SuccessResponse
from ...api.dependencies import get_catalog

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/item-types", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_item_type(item_type: ItemTypeCreate, use_case=Depends(get_catalog)):
    created = await use_case.create_item_type(
        name=item_type.name,
        ca_number=item_type.ca_number,
        lifespan_days=item_type.lifespan_days,
        description=item_type.description,
        active=item_type.active,
    )
    return SuccessResponse(message=f"Tipo EPI {created.name} creado", data=created.to_dict())


@router.get("/item-types", response_model=SuccessResponse)
async def list_item_types(
    active_only: bool = Query(False, description="Solo tipos activos"),
    use_case=Depends(get_catalog)
):
    item_types = await use_case.list_item_types(active_only=active_only)
    return SuccessResponse(
        message=f"{len(item_types)} tipos EPI",
        data={"item_types": [t.to_dict() for t in item_types]}
    )


@router.get("/item-types/{item_type_id}", response_model=SuccessResponse)
async def get_item_type(item_type_id: int, use_case=Depends(get_catalog)):
    item_type = await use_case.get_item_type(item_type_id)
    return SuccessResponse(message=f"Tipo EPI {item_type.name}", data=item_type.to_dict())


@router.post("/fichas", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_ficha(ficha: FichaCreate, use_case=Depends(get_catalog)):
    created = await use_case.create_ficha(ficha.employee_id)
    return SuccessResponse(message=f"Ficha EPI {created.id} creada", data=created.to_dict())


@router.get("/fichas/{ficha_id}", response_model=SuccessResponse)
async def get_ficha(ficha_id: int, use_case=Depends(get_catalog)):
    ficha = await use_case.get_ficha(ficha_id)
    return SuccessResponse(message=f"Ficha EPI {ficha.id}", data=ficha.to_dict())
