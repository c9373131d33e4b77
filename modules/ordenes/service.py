# modules/ordenes/service.py
"""
Service Layer para Órdenes de Pedido.
Alta de órdenes (comercial/admin) y edición de cabecera por el dueño de la fase.
"""
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID
import logging

from core.permissions import AppRole
from core.timezone import ahora_local
from core.workflow.errors import PersistenceError
from core.workflow.policy import Estatus, Fase, puede_editar
from .db_service import OrdenesDBService, get_ordenes_db_service
from .schemas import Orden, OrdenCabeceraUpdate, OrdenCreate

logger = logging.getLogger("OrdenesModule")

# Solo estos roles pueden dar de alta órdenes
ROLES_CREACION = (AppRole.ADMIN.value, AppRole.COMERCIAL.value)


class OrdenesService:
    """Maneja la lógica de negocio de alta y edición de órdenes."""

    def __init__(
        self,
        db_service: Optional[OrdenesDBService] = None,
        reloj: Callable[[], datetime] = ahora_local
    ):
        self.db = db_service or get_ordenes_db_service()
        self.reloj = reloj

    async def crear_orden(self, conn, data: OrdenCreate, context: dict) -> Orden:
        """
        Crea una orden en fase comercial y estatus borrador.

        Raises:
            PermissionError: El rol no es comercial ni admin
        """
        if context.get("role") not in ROLES_CREACION:
            raise PermissionError("Solo comercial o admin pueden crear órdenes.")

        row = await self.db.insert_orden(
            conn,
            data.model_dump(),
            UUID(str(context["user_id"])),
            Fase.COMERCIAL.value,
            Estatus.BORRADOR.value
        )
        logger.info(f"[ORDEN] Orden #{row['id_orden_pedido']} creada por {context.get('username')}")
        return Orden.model_validate(row)

    async def actualizar_cabecera(
        self,
        conn,
        orden: Orden,
        data: OrdenCabeceraUpdate,
        rol_actor: Optional[str]
    ) -> Orden:
        """
        Actualiza los campos enviados de la cabecera y fecha_modificacion.

        Raises:
            PermissionError: El rol no es admin ni dueño de la fase actual
            ValueError: No se envió ningún campo
            PersistenceError: Falló la escritura o la orden cambió de fase (reintentable)
        """
        if not puede_editar(rol_actor, orden.fase):
            raise PermissionError("No tienes permiso para editar esta orden en la etapa actual.")

        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise ValueError("No hay campos para actualizar")

        try:
            row = await self.db.update_cabecera(
                conn, orden.id_orden_pedido, orden.fase.value, fields, self.reloj()
            )
        except Exception as e:
            logger.error(f"[ORDEN] Error actualizando cabecera de #{orden.id_orden_pedido}: {e}")
            raise PersistenceError("No se pudo actualizar la orden. Por favor, intente de nuevo.") from e

        if row is None:
            logger.warning(f"[ORDEN] #{orden.id_orden_pedido} ya no está en {orden.fase.value}")
            raise PersistenceError("La orden cambió de etapa. Recargue e intente de nuevo.")

        logger.info(f"[ORDEN] Cabecera de #{orden.id_orden_pedido} actualizada: {sorted(fields)}")
        return Orden.model_validate(row)


def get_ordenes_service() -> OrdenesService:
    """Helper para inyeccion de dependencias."""
    return OrdenesService()
