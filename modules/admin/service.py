# modules/admin/service.py
"""
Service Layer para el módulo Admin.
Matriz de permisos por rol (con auditoría) y administración de usuarios
sobre Supabase Auth + tabla profiles.
"""
from typing import Dict, List, Optional
from uuid import UUID
import logging

from fastapi import Depends

from core.config import settings
from core.integrations.supabase_auth import SupabaseAuthService, get_supabase_auth_service
from core.timezone import ahora_local
from .db_service import AdminDBService, get_admin_db_service
from .schemas import (
    RolePermissionUpdate,
    UserCreate,
    UserUpdate,
    validar_password,
    validar_username,
)

logger = logging.getLogger("AdminModule")


def username_to_email(username: str) -> str:
    """Email interno que Auth necesita para un username."""
    return f"{username}@{settings.AUTH_EMAIL_DOMAIN}"


class AdminService:
    """Maneja toda la lógica de negocio del módulo Admin."""

    def __init__(
        self,
        auth_service: Optional[SupabaseAuthService] = None,
        db_service: Optional[AdminDBService] = None
    ):
        self.auth_service = auth_service or get_supabase_auth_service()
        self.db = db_service or get_admin_db_service()

    # ========================================
    # MATRIZ DE PERMISOS
    # ========================================

    async def get_permission_matrix(self, conn) -> Dict:
        """
        Obtiene el catálogo de permisos y todas las filas rol/permiso.

        Returns:
            Dict: {"permissions": [...], "rolePermissions": [...]}
        """
        permissions = await self.db.fetch_permissions_catalog(conn)
        role_permissions = await self.db.fetch_role_permissions(conn)
        logger.info(f"Matriz cargada: {len(permissions)} permisos, {len(role_permissions)} filas rol/permiso")
        return {
            "permissions": permissions,
            "rolePermissions": role_permissions
        }

    async def update_role_permissions(
        self,
        conn,
        actor_id: str,
        updates: List[RolePermissionUpdate]
    ) -> str:
        """
        Aplica un lote de cambios a la matriz y registra un evento de auditoría por cambio.

        El upsert es la operación durable: si falla, la excepción se propaga y
        nada cambia. La auditoría es best-effort: si falla se loguea y el
        lote se considera exitoso.

        Args:
            conn: Conexión a la base de datos
            actor_id: user_id del admin que hace el cambio
            updates: Lista de cambios (role, perm_code, allowed)

        Returns:
            str: Mensaje de confirmación
        """
        logger.info(f"Procesando {len(updates)} cambios de permisos (actor {actor_id})")

        # Estado previo para la auditoría
        current = await self.db.fetch_role_permission_map(conn)

        now = ahora_local()
        await self.db.upsert_role_permissions(conn, [
            (u.role.value, u.perm_code, u.allowed, now) for u in updates
        ])

        events = [
            (
                UUID(str(actor_id)),
                u.role.value,
                u.perm_code,
                current.get((u.role.value, u.perm_code), False),
                u.allowed,
            )
            for u in updates
        ]
        try:
            await self.db.insert_rbac_events(conn, events)
        except Exception as e:
            logger.error(f"Error registrando auditoría de permisos ({len(events)} eventos): {e}")

        logger.info(f"Se actualizaron {len(updates)} permisos")
        return f"Se actualizaron {len(updates)} permisos correctamente"

    # ========================================
    # USUARIOS
    # ========================================

    async def list_users(self, conn) -> List[Dict]:
        """
        Obtiene perfiles enriquecidos con last_sign_in_at de Auth.

        Returns:
            List[Dict]: Perfiles (más recientes primero)
        """
        profiles = await self.db.fetch_profiles(conn)
        auth_users = await self.auth_service.list_users()
        last_sign_in = {u.get("id"): u.get("last_sign_in_at") for u in auth_users}

        users = []
        for profile in profiles:
            user = dict(profile)
            user["user_id"] = str(user["user_id"])
            user["last_sign_in_at"] = last_sign_in.get(user["user_id"])
            users.append(user)
        return users

    async def create_user(self, conn, data: UserCreate) -> str:
        """
        Crea el usuario en Auth y luego su perfil.
        Si el perfil no se puede escribir, se elimina el usuario de Auth.

        Returns:
            str: user_id del nuevo usuario

        Raises:
            ValueError: Username o contraseña inválidos, o username ya existe
        """
        username = validar_username(data.username)
        validar_password(data.password)

        if await self.db.check_username_exists(conn, username):
            raise ValueError("El nombre de usuario ya existe")

        new_user = await self.auth_service.create_user(
            username_to_email(username),
            data.password,
            {"username": username, "nombre": data.nombre or ""}
        )
        user_id = new_user["id"]

        try:
            await self.db.upsert_profile(conn, UUID(user_id), username, data.nombre or "", data.role.value)
        except Exception as e:
            logger.error(f"Error creando perfil de {username}, revirtiendo usuario de Auth: {e}")
            try:
                await self.auth_service.delete_user(user_id)
            except Exception as cleanup_error:
                logger.error(f"No se pudo eliminar el usuario huérfano {user_id}: {cleanup_error}")
            raise

        logger.info(f"Usuario creado: {username} ({data.role.value})")
        return user_id

    async def update_user(self, conn, user_id: UUID, data: UserUpdate) -> None:
        """
        Actualiza nombre, rol y/o username. Un cambio de username también
        cambia el email interno en Auth.

        Raises:
            ValueError: Username inválido o ya usado por otro usuario
            LookupError: Si el usuario no existe
        """
        fields = {}
        if data.nombre is not None:
            fields["nombre"] = data.nombre
        if data.role is not None:
            fields["role"] = data.role.value
        username = validar_username(data.username) if data.username is not None else None
        if username is not None:
            if await self.db.check_username_exists(conn, username, exclude_user_id=user_id):
                raise ValueError("El nombre de usuario ya existe")
            fields["username"] = username

        if not await self.db.update_profile(conn, user_id, fields):
            raise LookupError("Usuario no encontrado")

        if username is not None:
            metadata = {"username": username}
            if data.nombre is not None:
                metadata["nombre"] = data.nombre
            await self.auth_service.update_user(str(user_id), {
                "email": username_to_email(username),
                "user_metadata": metadata
            })

        logger.info(f"Usuario actualizado {user_id}: {sorted(fields)}")

    async def update_password(self, user_id: UUID, password: str) -> None:
        """Cambia la contraseña de un usuario. ValueError si es demasiado corta."""
        validar_password(password)
        await self.auth_service.update_user(str(user_id), {"password": password})
        logger.info(f"Contraseña actualizada para usuario {user_id}")

    async def delete_user(self, user_id: UUID) -> None:
        """Elimina el usuario de Auth (profiles se borra en cascada)."""
        await self.auth_service.delete_user(str(user_id))
        logger.info(f"Usuario eliminado: {user_id}")


def get_admin_service(
    auth_service: SupabaseAuthService = Depends(get_supabase_auth_service)
) -> AdminService:
    """Helper para inyección de dependencias."""
    return AdminService(auth_service=auth_service)
