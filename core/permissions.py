"""
Módulo de Roles y Permisos
Roles fijos por departamento + matriz dinámica rol x permiso (tabla role_permissions).
"""
from enum import Enum
from fastapi import Depends, HTTPException, status
from typing import Callable
from core.database import get_db_connection
from core.security import get_current_user_context


class AppRole(str, Enum):
    """Roles del sistema (enum app_role en BD)."""
    ADMIN = "admin"
    COMERCIAL = "comercial"
    INVENTARIOS = "inventarios"
    PRODUCCION = "produccion"
    LOGISTICA = "logistica"
    FACTURACION = "facturacion"
    FINANCIERA = "financiera"


# Orden de columnas en la matriz de permisos
ALL_ROLES = tuple(AppRole)
# Roles sujetos a la matriz (admin siempre tiene todo)
EDITABLE_ROLES = tuple(r for r in AppRole if r is not AppRole.ADMIN)


def is_admin(role) -> bool:
    """True si el rol (str o AppRole) es admin."""
    return role == AppRole.ADMIN.value


async def user_has_permission(conn, context: dict, perm_code: str) -> bool:
    """
    Verifica si el usuario actual tiene un permiso de la matriz.

    Args:
        conn: Conexión a la base de datos
        context: Contexto del usuario (retornado por get_current_user_context)
        perm_code: Código del permiso (ej: "catalogo.cliente.manage")

    Returns:
        True si el rol del usuario tiene el permiso. Admin siempre True
        (sin consultar la BD). Sin fila en role_permissions equivale a False.
    """
    role = context.get("role")
    if not role:
        return False
    if is_admin(role):
        return True

    allowed = await conn.fetchval(
        "SELECT allowed FROM role_permissions WHERE role = $1 AND perm_code = $2",
        role, perm_code
    )
    return bool(allowed)


def _ensure_authenticated(context: dict) -> None:
    if not context.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión no válida. Inicie sesión nuevamente."
        )


def require_authenticated() -> Callable:
    """Dependency: exige un token válido con perfil asociado."""
    async def _validate(context = Depends(get_current_user_context)):
        _ensure_authenticated(context)
        if not context.get("role"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Tu usuario no tiene un rol asignado. Contacta al administrador."
            )
        return context

    return Depends(_validate)


def require_admin() -> Callable:
    """
    Dependency: solo usuarios con rol admin.

    Raises:
        HTTPException 401: Sin token o token inválido
        HTTPException 403: Usuario autenticado sin rol admin
    """
    async def _validate(context = Depends(get_current_user_context)):
        _ensure_authenticated(context)
        if not is_admin(context.get("role")):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Acceso denegado. Se requiere rol admin."
            )
        return context

    return Depends(_validate)


def require_permission(perm_code: str) -> Callable:
    """
    Dependency factory para validar un permiso de la matriz.

    Ejemplo de uso:
        @router.get("/catalogos/clientes")
        async def listar_clientes(
            context = require_permission("catalogo.cliente.manage")
        ):
            ...
    """
    async def _validate(
        conn = Depends(get_db_connection),
        context = Depends(get_current_user_context)
    ):
        _ensure_authenticated(context)
        if not await user_has_permission(conn, context, perm_code):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No tienes el permiso '{perm_code}'. Contacta al administrador."
            )
        return context

    return Depends(_validate)
