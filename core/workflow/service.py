from datetime import datetime
from typing import Callable, Optional
import logging

from core.timezone import ahora_local
from core.workflow.errors import (
    ForbiddenTransitionError,
    NoNextPhaseError,
    PersistenceError,
)
from core.workflow.policy import (
    Estatus,
    etiqueta_fase,
    puede_editar,
    siguiente_fase,
)
from modules.ordenes.db_service import OrdenesDBService, get_ordenes_db_service
from modules.ordenes.schemas import Orden

logger = logging.getLogger("WorkflowCore")


class WorkflowService:
    """
    Servicio de transición de fases de la orden de pedido.
    Avanza una orden exactamente una fase, validando el rol del actor,
    y solo aplica el cambio en memoria cuando la BD lo confirma.
    """

    def __init__(
        self,
        db_service: Optional[OrdenesDBService] = None,
        reloj: Callable[[], datetime] = ahora_local
    ):
        self.db_service = db_service or get_ordenes_db_service()
        self.reloj = reloj

    async def avanzar_fase(self, conn, orden: Orden, rol_actor: Optional[str]) -> Orden:
        """
        1. Calcula la fase destino.
        2. Valida que el actor sea dueño de la fase ACTUAL (la que se deja).
        3. Persiste fase destino + estatus 'abierta' + fecha_modificacion.
        4. Retorna una nueva Orden; la recibida nunca se modifica.

        Args:
            conn: Conexion a la base de datos
            orden: Orden en su estado actual
            rol_actor: Rol del usuario autenticado

        Returns:
            Orden actualizada

        Raises:
            NoNextPhaseError: La orden ya está en financiera
            ForbiddenTransitionError: El rol no es admin ni dueño de la fase
            PersistenceError: Falló la escritura (reintentable)
        """
        destino = siguiente_fase(orden.fase)
        if destino is None:
            raise NoNextPhaseError(
                f"La orden #{orden.id_orden_pedido} ya está en la etapa final ({etiqueta_fase(orden.fase)})."
            )

        if not puede_editar(rol_actor, orden.fase):
            logger.warning(
                f"[AVANCE] Rol '{rol_actor}' sin permiso para avanzar orden "
                f"#{orden.id_orden_pedido} desde {orden.fase.value}"
            )
            raise ForbiddenTransitionError("No tienes permiso para avanzar esta orden desde la etapa actual.")

        fecha_modificacion = self.reloj()

        try:
            row = await self.db_service.update_fase(
                conn,
                orden.id_orden_pedido,
                orden.fase.value,
                destino.value,
                Estatus.ABIERTA.value,
                fecha_modificacion
            )
        except Exception as e:
            logger.error(f"[AVANCE] Error persistiendo orden #{orden.id_orden_pedido}: {e}")
            raise PersistenceError("No se pudo actualizar la orden. Por favor, intente de nuevo.") from e

        if row is None:
            logger.error(f"[AVANCE] Orden #{orden.id_orden_pedido} no encontrada o ya no está en {orden.fase.value}")
            raise PersistenceError("No se pudo actualizar la orden. Por favor, intente de nuevo.")

        logger.info(
            f"[AVANCE] Orden #{orden.id_orden_pedido}: {orden.fase.value} -> {destino.value} (rol {rol_actor})"
        )
        return orden.model_copy(update={
            "fase": destino,
            "estatus": Estatus.ABIERTA,
            "fecha_modificacion": fecha_modificacion,
        })

    @staticmethod
    def mensaje_avance(orden: Orden) -> str:
        """Mensaje para el usuario tras un avance exitoso."""
        return f"La orden ha avanzado a la etapa de {etiqueta_fase(orden.fase)}"


def get_workflow_service():
    """Helper para inyeccion de dependencias."""
    return WorkflowService()
