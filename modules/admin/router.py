from fastapi import APIRouter, Depends, HTTPException
from typing import List
from uuid import UUID
import logging

from core.database import get_db_connection
from core.integrations.supabase_auth import IdentityProviderError
from core.permissions import require_admin
from .service import AdminService, get_admin_service
from .schemas import (
    PasswordUpdate,
    PermissionMatrixRead,
    PermissionsUpdateRequest,
    PermissionsUpdateResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)

logger = logging.getLogger("AdminRouter")

router = APIRouter(
    prefix="/admin",
    tags=["Admin"]
)


def _identity_error(e: IdentityProviderError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)

# --- MATRIZ DE PERMISOS ---

@router.get("/permissions", response_model=PermissionMatrixRead)
async def get_permissions(
    conn = Depends(get_db_connection),
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Catálogo de permisos + matriz rol/permiso completa."""
    try:
        return await service.get_permission_matrix(conn)
    except Exception as e:
        logger.error(f"Error obteniendo la matriz de permisos: {e}")
        raise HTTPException(status_code=500, detail="No se pudieron obtener los permisos")


@router.put("/permissions", response_model=PermissionsUpdateResponse)
async def update_permissions(
    body: PermissionsUpdateRequest,
    conn = Depends(get_db_connection),
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Aplica un lote de cambios (upsert por role+perm_code) y audita cada uno."""
    try:
        message = await service.update_role_permissions(conn, context["user_id"], body.updates)
    except Exception as e:
        logger.error(f"Error actualizando permisos: {e}")
        raise HTTPException(status_code=500, detail="No se pudieron actualizar los permisos")
    return PermissionsUpdateResponse(success=True, message=message)

# --- USUARIOS ---

@router.get("/users", response_model=List[UserRead])
async def list_users(
    conn = Depends(get_db_connection),
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Lista perfiles con su último inicio de sesión."""
    try:
        return await service.list_users(conn)
    except IdentityProviderError as e:
        raise _identity_error(e)


@router.post("/users", status_code=201)
async def create_user(
    body: UserCreate,
    conn = Depends(get_db_connection),
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Crea un usuario (Auth + perfil)."""
    try:
        user_id = await service.create_user(conn, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IdentityProviderError as e:
        raise _identity_error(e)
    except Exception as e:
        logger.error(f"Error creando usuario {body.username}: {e}")
        raise HTTPException(status_code=500, detail="No se pudo crear el perfil del usuario")
    return {"success": True, "user_id": user_id}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    conn = Depends(get_db_connection),
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Actualiza nombre, rol o username de un usuario."""
    try:
        await service.update_user(conn, user_id, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IdentityProviderError as e:
        raise _identity_error(e)
    return {"success": True}


@router.put("/users/{user_id}/password")
async def update_password(
    user_id: UUID,
    body: PasswordUpdate,
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Cambia la contraseña de un usuario."""
    try:
        await service.update_password(user_id, body.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IdentityProviderError as e:
        raise _identity_error(e)
    return {"success": True}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: UUID,
    service: AdminService = Depends(get_admin_service),
    context = require_admin()
):
    """Elimina un usuario (el perfil se borra en cascada)."""
    try:
        await service.delete_user(user_id)
    except IdentityProviderError as e:
        raise _identity_error(e)
    return {"success": True}
