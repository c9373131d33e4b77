# modules/admin/db_service.py
"""
Capa de Acceso a Datos para el Modulo Admin.
Todas las queries SQL puras reciben conn como primer parametro.
"""
from typing import Dict, List, Optional, Tuple
from datetime import datetime
from uuid import UUID
import logging

logger = logging.getLogger("Admin.DBService")


class AdminDBService:
    """Capa de Acceso a Datos para el Modulo Admin."""

    # ========================================
    # MATRIZ DE PERMISOS
    # ========================================

    async def fetch_permissions_catalog(self, conn) -> List[dict]:
        """Obtiene el catalogo de permisos ordenado por categoria y codigo."""
        rows = await conn.fetch(
            "SELECT perm_code, category, description, created_at FROM permission ORDER BY category, perm_code"
        )
        return [dict(r) for r in rows]

    async def fetch_role_permissions(self, conn) -> List[dict]:
        """Obtiene todas las filas rol/permiso."""
        rows = await conn.fetch(
            "SELECT role, perm_code, allowed, updated_at FROM role_permissions ORDER BY role, perm_code"
        )
        return [dict(r) for r in rows]

    async def fetch_role_permission_map(self, conn) -> Dict[Tuple[str, str], bool]:
        """Estado actual como dict (role, perm_code) -> allowed (para auditoria)."""
        rows = await conn.fetch("SELECT role, perm_code, allowed FROM role_permissions")
        return {(r['role'], r['perm_code']): r['allowed'] for r in rows}

    async def upsert_role_permissions(self, conn, rows: List[Tuple[str, str, bool, datetime]]) -> None:
        """Inserta o actualiza filas (role, perm_code, allowed, updated_at) en un solo lote."""
        await conn.executemany(
            """INSERT INTO role_permissions (role, perm_code, allowed, updated_at)
               VALUES ($1, $2, $3, $4)
               ON CONFLICT (role, perm_code)
               DO UPDATE SET allowed = EXCLUDED.allowed, updated_at = EXCLUDED.updated_at""",
            rows
        )

    async def insert_rbac_events(self, conn, events: List[Tuple[UUID, str, str, bool, bool]]) -> None:
        """Inserta eventos de auditoria (actor, role, perm_code, allowed_before, allowed_after)."""
        await conn.executemany(
            """INSERT INTO rbac_event (actor, role, perm_code, allowed_before, allowed_after)
               VALUES ($1, $2, $3, $4, $5)""",
            events
        )

    # ========================================
    # PERFILES
    # ========================================

    async def fetch_profiles(self, conn) -> List[dict]:
        """Obtiene todos los perfiles, mas recientes primero."""
        rows = await conn.fetch(
            "SELECT user_id, username, nombre, role, created_at FROM profiles ORDER BY created_at DESC"
        )
        return [dict(r) for r in rows]

    async def check_username_exists(self, conn, username: str, exclude_user_id: Optional[UUID] = None) -> bool:
        """Verifica si un username ya esta tomado (opcionalmente excluyendo un usuario)."""
        if exclude_user_id:
            exists = await conn.fetchval(
                "SELECT 1 FROM profiles WHERE username = $1 AND user_id <> $2",
                username, exclude_user_id
            )
        else:
            exists = await conn.fetchval(
                "SELECT 1 FROM profiles WHERE username = $1",
                username
            )
        return bool(exists)

    async def upsert_profile(self, conn, user_id: UUID, username: str, nombre: str, role: str) -> None:
        """Escribe el perfil de un usuario recien creado en Auth."""
        await conn.execute(
            """INSERT INTO profiles (user_id, username, nombre, role)
               VALUES ($1, $2, $3, $4)
               ON CONFLICT (user_id)
               DO UPDATE SET username = EXCLUDED.username, nombre = EXCLUDED.nombre, role = EXCLUDED.role""",
            user_id, username, nombre, role
        )

    # Columnas editables de profiles (previene SQL injection en el UPDATE dinamico)
    ALLOWED_PROFILE_FIELDS = frozenset({"username", "nombre", "role"})

    async def update_profile(self, conn, user_id: UUID, fields: Dict[str, str]) -> bool:
        """Actualiza campos del perfil. Retorna False si el usuario no existe."""
        invalid = set(fields) - self.ALLOWED_PROFILE_FIELDS
        if invalid:
            raise ValueError(f"Campos no permitidos: {', '.join(sorted(invalid))}")
        if not fields:
            return True

        columns = list(fields)
        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(columns, start=1))
        result = await conn.execute(
            f"UPDATE profiles SET {assignments} WHERE user_id = ${len(columns) + 1}",
            *[fields[c] for c in columns], user_id
        )
        return result != "UPDATE 0"


def get_admin_db_service() -> AdminDBService:
    """Helper para inyeccion de dependencias."""
    return AdminDBService()
