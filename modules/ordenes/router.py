from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from core.database import get_db_connection
from core.permissions import require_authenticated
from core.workflow.policy import Estatus, Fase
from core.workflow.errors import PersistenceError
from .db_service import OrdenesDBService, get_ordenes_db_service
from .schemas import Orden, OrdenCabeceraUpdate, OrdenCreate
from .service import OrdenesService, get_ordenes_service

router = APIRouter(
    prefix="/ordenes",
    tags=["Órdenes de Pedido"]
)


@router.get("", response_model=List[Orden])
async def listar_ordenes(
    fase: Optional[Fase] = None,
    estatus: Optional[Estatus] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    conn = Depends(get_db_connection),
    db_service: OrdenesDBService = Depends(get_ordenes_db_service),
    _ = require_authenticated()
):
    """Lista órdenes, filtrando opcionalmente por fase (columna del tablero) y estatus."""
    rows = await db_service.fetch_ordenes(
        conn,
        fase=fase.value if fase else None,
        estatus=estatus.value if estatus else None,
        limit=limit,
        offset=offset
    )
    return [Orden.model_validate(r) for r in rows]


@router.get("/{id_orden}", response_model=Orden)
async def get_orden(
    id_orden: int,
    conn = Depends(get_db_connection),
    db_service: OrdenesDBService = Depends(get_ordenes_db_service),
    _ = require_authenticated()
):
    """Detalle de una orden."""
    row = await db_service.fetch_orden(conn, id_orden)
    if not row:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return Orden.model_validate(row)


@router.post("", response_model=Orden, status_code=201)
async def crear_orden(
    body: OrdenCreate,
    conn = Depends(get_db_connection),
    service: OrdenesService = Depends(get_ordenes_service),
    context = require_authenticated()
):
    """Crea una orden en fase comercial (solo comercial o admin)."""
    try:
        return await service.crear_orden(conn, body, context)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=f"Acceso denegado: {e}")


@router.patch("/{id_orden}", response_model=Orden)
async def actualizar_cabecera(
    id_orden: int,
    body: OrdenCabeceraUpdate,
    conn = Depends(get_db_connection),
    db_service: OrdenesDBService = Depends(get_ordenes_db_service),
    service: OrdenesService = Depends(get_ordenes_service),
    context = require_authenticated()
):
    """Edita la cabecera (cliente, proyecto, observaciones...). Solo admin o el dueño de la fase actual."""
    row = await db_service.fetch_orden(conn, id_orden)
    if not row:
        raise HTTPException(status_code=404, detail="Orden no encontrada")

    try:
        return await service.actualizar_cabecera(conn, Orden.model_validate(row), body, context.get("role"))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=f"Acceso denegado: {e}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.message)
