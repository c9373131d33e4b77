from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from core.workflow.policy import Fase, Estatus


class OrdenBaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class Orden(OrdenBaseSchema):
    """Orden de pedido tal como la consumen el flujo de fases y el tablero."""
    id_orden_pedido: int
    consecutivo: Optional[str] = None
    fase: Fase
    estatus: Estatus = Estatus.BORRADOR
    fecha_creacion: Optional[datetime] = None
    fecha_modificacion: Optional[datetime] = None

    # Referencias opacas (catálogos fuera del alcance de este servicio)
    id_cliente: Optional[int] = None
    id_proyecto: Optional[int] = None
    id_clase_orden: Optional[int] = None
    id_tipo_pago: Optional[int] = None
    id_metodo_despacho: Optional[int] = None
    created_by: Optional[UUID] = None
    observaciones_orden: Optional[str] = None


class AvanceFaseResponse(OrdenBaseSchema):
    """Respuesta de un avance de fase exitoso."""
    orden: Orden
    mensaje: str


class AccionesOrden(OrdenBaseSchema):
    """Qué puede hacer el actor actual sobre una orden (para habilitar botones en la UI)."""
    id_orden_pedido: int
    fase_actual: Fase
    siguiente_fase: Optional[Fase] = None
    siguiente_fase_label: Optional[str] = None
    puede_editar: bool
    puede_avanzar: bool


class OrdenCreate(OrdenBaseSchema):
    """Alta de una orden; siempre nace en fase comercial y estatus borrador."""
    id_cliente: int
    id_proyecto: Optional[int] = None
    id_clase_orden: Optional[int] = None
    id_tipo_pago: Optional[int] = None
    id_metodo_despacho: Optional[int] = None
    observaciones_orden: Optional[str] = None


class OrdenCabeceraUpdate(OrdenBaseSchema):
    """Campos de cabecera editables por el dueño de la fase (solo los enviados se actualizan)."""
    id_cliente: Optional[int] = None
    id_proyecto: Optional[int] = None
    id_clase_orden: Optional[int] = None
    id_tipo_pago: Optional[int] = None
    id_metodo_despacho: Optional[int] = None
    observaciones_orden: Optional[str] = None
