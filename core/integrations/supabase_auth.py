import logging
from typing import Dict, List, Optional

import httpx

from core.config import settings

logger = logging.getLogger("SupabaseAuth")


class IdentityProviderError(Exception):
    """Error devuelto por Supabase Auth (GoTrue)."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SupabaseAuthService:
    """
    Cliente de la API REST de Supabase Auth.
    Valida tokens de usuario y ejecuta operaciones administrativas
    (crear, actualizar, eliminar usuarios) con la service role key.
    """

    def __init__(
        self,
        base_url: str = None,
        anon_key: str = None,
        service_role_key: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key or settings.SUPABASE_ANON_KEY
        self.service_role_key = service_role_key or settings.SUPABASE_SERVICE_ROLE_KEY
        # Permite inyectar httpx.MockTransport en tests
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=f"{self.base_url}/auth/v1", transport=self._transport)

    def _admin_headers(self) -> dict:
        if not self.service_role_key:
            raise IdentityProviderError("SUPABASE_SERVICE_ROLE_KEY no configurada", status_code=500)
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        return data.get("msg") or data.get("message") or data.get("error_description") or data.get("error") or resp.text

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, headers=self._admin_headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Error de red contra Supabase Auth ({method} {path}): {e}")
            raise IdentityProviderError("No se pudo contactar el proveedor de identidad") from e

        if resp.status_code >= 400:
            message = self._error_message(resp)
            logger.error(f"Supabase Auth respondió {resp.status_code} en {method} {path}: {message}")
            # 4xx del proveedor se reportan como petición inválida
            raise IdentityProviderError(message, status_code=400 if resp.status_code < 500 else 502)
        return resp

    # --- Validación de sesión ---

    async def get_user(self, access_token: str) -> Optional[Dict]:
        """
        Obtiene el usuario dueño de un JWT de acceso.

        Returns:
            Dict del usuario (id, email, ...) o None si el token es inválido
        """
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token}",
        }
        try:
            async with self._client() as client:
                resp = await client.get("/user", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error de red validando token: {e}")
            raise IdentityProviderError("No se pudo validar la sesión") from e

        if resp.status_code != 200:
            logger.info(f"Token rechazado por Supabase Auth (HTTP {resp.status_code})")
            return None
        return resp.json()

    # --- Administración ---

    async def list_users(self, per_page: int = 1000) -> List[Dict]:
        """Lista usuarios de Auth (incluye last_sign_in_at)."""
        resp = await self._request("GET", "/admin/users", params={"page": 1, "per_page": per_page})
        data = resp.json()
        if isinstance(data, list):
            return data
        return data.get("users", [])

    async def create_user(self, email: str, password: str, user_metadata: Dict) -> Dict:
        """Crea un usuario ya confirmado."""
        resp = await self._request("POST", "/admin/users", json={
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": user_metadata,
        })
        return resp.json()

    async def update_user(self, user_id: str, attributes: Dict) -> Dict:
        """Actualiza email, password o metadata de un usuario."""
        resp = await self._request("PUT", f"/admin/users/{user_id}", json=attributes)
        return resp.json()

    async def delete_user(self, user_id: str) -> None:
        """Elimina el usuario de Auth (el perfil se borra en cascada)."""
        await self._request("DELETE", f"/admin/users/{user_id}")


def get_supabase_auth_service() -> SupabaseAuthService:
    """Helper para inyección de dependencias."""
    return SupabaseAuthService()
