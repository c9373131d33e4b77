import pytest
from fastapi import HTTPException
from starlette.requests import Request
from uuid import UUID

from core.integrations.supabase_auth import IdentityProviderError
from core.security import extract_bearer_token, get_current_user_context

USER_ID = "55555555-5555-5555-5555-555555555555"


def _request(authorization=None):
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestExtractBearerToken:

    def test_token_valido(self):
        assert extract_bearer_token(_request("Bearer abc.def")) == "abc.def"

    def test_esquema_case_insensitive(self):
        assert extract_bearer_token(_request("bearer abc")) == "abc"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer"])
    def test_sin_token(self, header):
        assert extract_bearer_token(_request(header)) is None


class TestCurrentUserContext:
    """Tests para la resolución del usuario a partir del JWT de Supabase."""

    @pytest.mark.asyncio
    async def test_sin_token_es_anonimo(self, mock_db_conn, fake_auth):
        context = await get_current_user_context(_request(), mock_db_conn, fake_auth)

        assert context["user_id"] is None
        assert context["is_admin"] is False
        assert mock_db_conn.calls('fetchrow') == []

    @pytest.mark.asyncio
    async def test_token_invalido_es_anonimo(self, mock_db_conn, fake_auth):
        context = await get_current_user_context(_request("Bearer vencido"), mock_db_conn, fake_auth)
        assert context["user_id"] is None

    @pytest.mark.asyncio
    async def test_rol_desde_profiles(self, mock_db_conn, fake_auth):
        """El rol se lee de profiles, nunca del token."""
        fake_auth.tokens["tok"] = {"id": USER_ID, "email": "ana@erp.local", "app_metadata": {"role": "admin"}}
        mock_db_conn.set_fetchrow_result(
            {"user_id": UUID(USER_ID), "username": "ana", "nombre": "Ana Pérez", "role": "inventarios"}
        )

        context = await get_current_user_context(_request("Bearer tok"), mock_db_conn, fake_auth)

        assert context["user_id"] == USER_ID
        assert context["role"] == "inventarios"
        assert context["is_admin"] is False
        assert context["user_name"] == "Ana Pérez"
        assert context["access_token"] == "tok"
        assert mock_db_conn.calls('fetchrow')[0][2] == (UUID(USER_ID),)

    @pytest.mark.asyncio
    async def test_usuario_sin_perfil(self, mock_db_conn, fake_auth):
        """Autenticado pero sin fila en profiles: sin rol, nombre desde el email."""
        fake_auth.tokens["tok"] = {"id": USER_ID, "email": "luis@erp.local"}

        context = await get_current_user_context(_request("Bearer tok"), mock_db_conn, fake_auth)

        assert context["user_id"] == USER_ID
        assert context["role"] is None
        assert context["user_name"] == "luis"

    @pytest.mark.asyncio
    async def test_proveedor_caido_503(self, mock_db_conn, fake_auth):
        fake_auth.error = IdentityProviderError("No se pudo validar la sesión")

        with pytest.raises(HTTPException) as exc:
            await get_current_user_context(_request("Bearer tok"), mock_db_conn, fake_auth)

        assert exc.value.status_code == 503
