"""
Router del Flujo de Fases
Avance de una orden de pedido a la siguiente etapa departamental.
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from core.database import get_db_connection
from core.permissions import require_authenticated
from core.workflow.errors import (
    ForbiddenTransitionError,
    NoNextPhaseError,
    PersistenceError,
)
from core.workflow.policy import etiqueta_fase, puede_editar, siguiente_fase
from core.workflow.service import WorkflowService, get_workflow_service
from modules.ordenes.db_service import OrdenesDBService, get_ordenes_db_service
from modules.ordenes.schemas import AccionesOrden, AvanceFaseResponse, Orden

logger = logging.getLogger("WorkflowRouter")

router = APIRouter(
    prefix="/workflow",
    tags=["Workflow - Fases de la Orden"],
)


async def _get_orden_or_404(conn, db_service: OrdenesDBService, id_orden: int) -> Orden:
    row = await db_service.fetch_orden(conn, id_orden)
    if not row:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return Orden.model_validate(row)


@router.get("/ordenes/{id_orden}/acciones", response_model=AccionesOrden)
async def get_acciones_orden(
    id_orden: int,
    conn = Depends(get_db_connection),
    db_service: OrdenesDBService = Depends(get_ordenes_db_service),
    context = require_authenticated()
):
    """Indica si el actor puede avanzar la orden y a qué etapa (la UI oculta el botón en la etapa final)."""
    orden = await _get_orden_or_404(conn, db_service, id_orden)
    destino = siguiente_fase(orden.fase)
    editable = puede_editar(context.get("role"), orden.fase)

    return AccionesOrden(
        id_orden_pedido=orden.id_orden_pedido,
        fase_actual=orden.fase,
        siguiente_fase=destino,
        siguiente_fase_label=etiqueta_fase(destino) if destino else None,
        puede_editar=editable,
        puede_avanzar=editable and destino is not None,
    )


@router.post("/ordenes/{id_orden}/avanzar", response_model=AvanceFaseResponse)
async def avanzar_orden(
    id_orden: int,
    conn = Depends(get_db_connection),
    db_service: OrdenesDBService = Depends(get_ordenes_db_service),
    workflow_service: WorkflowService = Depends(get_workflow_service),
    context = require_authenticated()
):
    """
    Avanza la orden a la siguiente fase.

    Errores:
        409: La orden ya está en la etapa final (no reintentar)
        403: El rol no es dueño de la etapa actual (no reintentar)
        503: Falló la escritura; la orden no cambió (reintentable)
    """
    orden = await _get_orden_or_404(conn, db_service, id_orden)

    try:
        actualizada = await workflow_service.avanzar_fase(conn, orden, context.get("role"))
    except NoNextPhaseError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except ForbiddenTransitionError as e:
        raise HTTPException(status_code=403, detail=f"Acceso denegado: {e.message}")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return AvanceFaseResponse(
        orden=actualizada,
        mensaje=workflow_service.mensaje_avance(actualizada),
    )
