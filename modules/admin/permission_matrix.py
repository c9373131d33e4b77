"""
Editor de la matriz de permisos (rol x permiso).

Mantiene una copia autoritativa de la matriz y un mapa de cambios pendientes
"rol:perm_code" -> valor deseado. El mapa siempre es el diff mínimo contra la
copia autoritativa: si un valor vuelve a su estado original, la entrada se
elimina. Guardar envía todos los pendientes en un solo lote y luego recarga
la matriz desde el servidor.
"""
from typing import Dict, Iterable, List, Optional
import logging

import httpx

from core.config import settings
from core.permissions import ALL_ROLES, AppRole, is_admin
from core.timezone import ahora_local

logger = logging.getLogger("PermissionMatrix")

SIN_CAMBIOS_MSG = "No hay cambios para guardar"


class MatrixFetchError(Exception):
    """No se pudo cargar la matriz; no hay datos que mostrar."""


class MatrixSaveError(Exception):
    """Falló el guardado del lote; los cambios pendientes se conservan."""


class PermissionsApiError(Exception):
    """Error HTTP del endpoint /admin/permissions."""


class PermissionsApiClient:
    """Cliente HTTP del endpoint de permisos (GET matriz / PUT lote)."""

    def __init__(
        self,
        access_token: str,
        url: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.access_token = access_token
        self.url = url or settings.PERMISSIONS_API_URL
        self._transport = transport

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }

    @staticmethod
    def _raise_for_error(resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            if resp.status_code >= 400:
                raise PermissionsApiError(f"HTTP {resp.status_code}")
            raise PermissionsApiError("Respuesta inesperada del servidor de permisos")
        if resp.status_code >= 400 or data.get("error"):
            detail = data.get("detail") or data.get("error") or f"HTTP {resp.status_code}"
            raise PermissionsApiError(detail)
        return data

    async def fetch_matrix(self) -> dict:
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.get(self.url, headers=self._get_headers())
        data = self._raise_for_error(resp)
        return {
            "permissions": data.get("permissions") or [],
            "rolePermissions": data.get("rolePermissions") or []
        }

    async def update_permissions(self, updates: List[dict]) -> str:
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.put(self.url, headers=self._get_headers(), json={"updates": updates})
        data = self._raise_for_error(resp)
        return data.get("message") or "Permisos actualizados correctamente"


def clave(rol, perm_code: str) -> str:
    """Clave del mapa de pendientes: 'rol:perm_code'."""
    return f"{AppRole(rol).value}:{perm_code}"


class PermissionMatrixEditor:
    """
    Estado de edición de la matriz para un administrador.

    `store` debe exponer `fetch_matrix()` y `update_permissions(updates)`
    (async); normalmente un PermissionsApiClient.
    """

    def __init__(self, store, roles: Iterable = ALL_ROLES):
        self.store = store
        self.roles = tuple(AppRole(r) for r in roles)
        self.permisos: List[dict] = []
        self.pendientes: Dict[str, bool] = {}
        self.busqueda: str = ""
        self.error: Optional[str] = None
        self._autoritativo: Dict[str, bool] = {}

    # --- Carga ---

    async def cargar(self) -> None:
        """
        Carga catálogo y matriz desde el store.
        Si falla, la matriz queda vacía y se lanza MatrixFetchError.
        Tras cargar, se descartan pendientes que ya coinciden con el valor autoritativo.
        """
        try:
            data = await self.store.fetch_matrix()
        except Exception as e:
            logger.error(f"Error cargando la matriz de permisos: {e}")
            self.permisos = []
            self._autoritativo = {}
            self.error = str(e) or "No se pudieron obtener los permisos"
            raise MatrixFetchError(self.error) from e

        self.error = None
        self.permisos = list(data.get("permissions") or [])
        self._autoritativo = {
            clave(rp["role"], rp["perm_code"]): bool(rp["allowed"])
            for rp in data.get("rolePermissions") or []
        }
        self._podar_pendientes()

    refrescar = cargar

    def _podar_pendientes(self) -> None:
        self.pendientes = {
            k: v for k, v in self.pendientes.items()
            if v != self._autoritativo.get(k, False)
        }

    @property
    def cargado(self) -> bool:
        return self.error is None and bool(self.permisos)

    # --- Lectura ---

    def valor_autoritativo(self, rol, perm_code: str) -> bool:
        if is_admin(AppRole(rol).value):
            return True
        return self._autoritativo.get(clave(rol, perm_code), False)

    def valor_actual(self, rol, perm_code: str) -> bool:
        """Valor mostrado: pendiente si existe, si no el autoritativo. Admin siempre True."""
        if is_admin(AppRole(rol).value):
            return True
        k = clave(rol, perm_code)
        if k in self.pendientes:
            return self.pendientes[k]
        return self._autoritativo.get(k, False)

    @property
    def hay_cambios(self) -> bool:
        return bool(self.pendientes)

    def permisos_filtrados(self) -> List[dict]:
        """Permisos que coinciden con la búsqueda (código, descripción o categoría)."""
        termino = self.busqueda.strip().lower()
        if not termino:
            return list(self.permisos)
        return [
            p for p in self.permisos
            if termino in p["perm_code"].lower()
            or termino in (p.get("description") or "").lower()
            or termino in (p.get("category") or "").lower()
        ]

    def permisos_visibles(self) -> Dict[str, List[dict]]:
        """Permisos filtrados agrupados por categoría, en el orden del catálogo."""
        grupos: Dict[str, List[dict]] = {}
        for p in self.permisos_filtrados():
            grupos.setdefault(p.get("category") or "", []).append(p)
        return grupos

    # --- Edición ---

    def _fijar(self, rol, perm_code: str, valor: bool) -> None:
        k = clave(rol, perm_code)
        if valor == self._autoritativo.get(k, False):
            self.pendientes.pop(k, None)
        else:
            self.pendientes[k] = valor

    def toggle(self, rol, perm_code: str) -> None:
        """Invierte el valor actual de un par rol/permiso. No-op para admin."""
        if is_admin(AppRole(rol).value):
            return
        self._fijar(rol, perm_code, not self.valor_actual(rol, perm_code))

    def set_todos_para_rol(self, rol, enabled: bool) -> None:
        """Fija `enabled` en todos los permisos visibles (según búsqueda) de un rol. No-op para admin."""
        if is_admin(AppRole(rol).value):
            return
        for p in self.permisos_filtrados():
            self._fijar(rol, p["perm_code"], enabled)

    def set_todos_para_permiso(self, perm_code: str, enabled: bool) -> None:
        """Fija `enabled` para un permiso en todos los roles excepto admin."""
        for rol in self.roles:
            if is_admin(rol.value):
                continue
            self._fijar(rol, perm_code, enabled)

    def descartar(self) -> None:
        """Descarta los cambios pendientes sin contactar al servidor."""
        self.pendientes = {}

    # --- Guardado ---

    def construir_lote(self) -> List[dict]:
        updated_at = ahora_local().isoformat()
        lote = []
        for k, allowed in self.pendientes.items():
            role, perm_code = k.split(":", 1)
            lote.append({
                "role": role,
                "perm_code": perm_code,
                "allowed": allowed,
                "updated_at": updated_at,
            })
        return lote

    async def guardar(self) -> str:
        """
        Envía todos los pendientes en una sola llamada.

        Returns:
            Mensaje para el usuario. Sin pendientes no se contacta al servidor.

        Raises:
            MatrixSaveError: Si el lote falla (los pendientes se conservan)
        """
        if not self.pendientes:
            return SIN_CAMBIOS_MSG

        lote = self.construir_lote()
        try:
            message = await self.store.update_permissions(lote)
        except Exception as e:
            logger.error(f"Error guardando {len(lote)} cambios de permisos: {e}")
            raise MatrixSaveError(str(e) or "Error al guardar los permisos") from e

        # Solo se limpian los pendientes enviados; lo editado durante el guardado se conserva
        for u in lote:
            k = clave(u["role"], u["perm_code"])
            if k in self.pendientes and self.pendientes[k] == u["allowed"]:
                del self.pendientes[k]
        # El servidor es la fuente de verdad después de guardar
        try:
            await self.refrescar()
        except MatrixFetchError:
            logger.warning("Permisos guardados pero no se pudo recargar la matriz")

        return message or "Permisos actualizados correctamente"
