"""
Política de fases de la orden de pedido.

Tablas fijas y predicados puros: qué fase sigue a cuál, qué rol es dueño de
cada fase y quién puede editar/avanzar una orden. Sin estado ni I/O.
"""
from enum import Enum
from typing import Optional

from core.permissions import AppRole


class Fase(str, Enum):
    """Etapa departamental dueña de la orden (enum fase_orden_enum)."""
    COMERCIAL = "comercial"
    INVENTARIOS = "inventarios"
    PRODUCCION = "produccion"
    LOGISTICA = "logistica"
    FACTURACION = "facturacion"
    FINANCIERA = "financiera"


class Estatus(str, Enum):
    """Ciclo de vida de la orden, ortogonal a la fase (enum estatus_orden_enum)."""
    BORRADOR = "borrador"
    ABIERTA = "abierta"
    ENVIADA = "enviada"
    FACTURADA = "facturada"
    CERRADA = "cerrada"
    ANULADA = "anulada"


# Orden total de fases; financiera es la última
ORDEN_FASES = (
    Fase.COMERCIAL,
    Fase.INVENTARIOS,
    Fase.PRODUCCION,
    Fase.LOGISTICA,
    Fase.FACTURACION,
    Fase.FINANCIERA,
)

SIGUIENTE_FASE = {
    Fase.COMERCIAL: Fase.INVENTARIOS,
    Fase.INVENTARIOS: Fase.PRODUCCION,
    Fase.PRODUCCION: Fase.LOGISTICA,
    Fase.LOGISTICA: Fase.FACTURACION,
    Fase.FACTURACION: Fase.FINANCIERA,
    Fase.FINANCIERA: None,
}

ROL_REQUERIDO_POR_FASE = {
    Fase.COMERCIAL: AppRole.COMERCIAL,
    Fase.INVENTARIOS: AppRole.INVENTARIOS,
    Fase.PRODUCCION: AppRole.PRODUCCION,
    Fase.LOGISTICA: AppRole.LOGISTICA,
    Fase.FACTURACION: AppRole.FACTURACION,
    Fase.FINANCIERA: AppRole.FINANCIERA,
}

ETIQUETAS_FASE = {
    Fase.COMERCIAL: "Comercial",
    Fase.INVENTARIOS: "Inventarios",
    Fase.PRODUCCION: "Producción",
    Fase.LOGISTICA: "Logística",
    Fase.FACTURACION: "Facturación",
    Fase.FINANCIERA: "Financiera",
}

ESTATUS_TERMINALES = frozenset({Estatus.CERRADA, Estatus.ANULADA})


def siguiente_fase(fase) -> Optional[Fase]:
    """
    Fase que sigue a `fase` en el flujo lineal.

    Returns:
        La siguiente Fase, o None si `fase` es la terminal (financiera).

    Raises:
        ValueError: Si `fase` no es una de las seis fases conocidas.
    """
    return SIGUIENTE_FASE[Fase(fase)]


def rol_requerido(fase) -> AppRole:
    """Rol (no admin) dueño de las ediciones en `fase`."""
    return ROL_REQUERIDO_POR_FASE[Fase(fase)]


def puede_editar(rol, fase) -> bool:
    """
    True si `rol` puede editar/avanzar una orden en `fase`.
    Solo admin o el rol dueño de la fase; no hay permisos transitivos.
    """
    if not rol:
        return False
    return rol == AppRole.ADMIN.value or rol == rol_requerido(fase).value


def es_fase_terminal(fase) -> bool:
    return siguiente_fase(fase) is None


def es_estatus_terminal(estatus) -> bool:
    return Estatus(estatus) in ESTATUS_TERMINALES


def etiqueta_fase(fase) -> str:
    return ETIQUETAS_FASE[Fase(fase)]
