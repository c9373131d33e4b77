import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.database import get_db_connection
from core.permissions import EDITABLE_ROLES, AppRole, require_permission, user_has_permission
from core.security import get_current_user_context


def _ctx(role, user_id="22222222-2222-2222-2222-222222222222"):
    return {"user_id": user_id, "role": role, "is_admin": role == "admin"}


class TestUserHasPermission:
    """Tests para la consulta de la matriz rol x permiso."""

    @pytest.mark.asyncio
    async def test_admin_no_consulta_la_bd(self, mock_db_conn):
        assert await user_has_permission(mock_db_conn, _ctx("admin"), "ordenes.export") is True
        assert mock_db_conn.calls('fetchval') == []

    @pytest.mark.asyncio
    async def test_fila_permitida(self, mock_db_conn):
        mock_db_conn.set_fetchval_result(True)

        assert await user_has_permission(mock_db_conn, _ctx("comercial"), "ordenes.export") is True
        assert mock_db_conn.calls('fetchval')[0][2] == ("comercial", "ordenes.export")

    @pytest.mark.asyncio
    async def test_sin_fila_equivale_a_denegado(self, mock_db_conn):
        assert await user_has_permission(mock_db_conn, _ctx("logistica"), "ordenes.export") is False

    @pytest.mark.asyncio
    async def test_sin_rol(self, mock_db_conn):
        assert await user_has_permission(mock_db_conn, _ctx(None), "ordenes.export") is False
        assert mock_db_conn.calls('fetchval') == []

    def test_roles_editables_excluyen_admin(self):
        assert AppRole.ADMIN not in EDITABLE_ROLES
        assert len(EDITABLE_ROLES) == 6


@pytest.fixture
def guarded_app(mock_db_conn):
    """App mínima con un endpoint protegido por require_permission."""
    app = FastAPI()

    @app.get("/exportar")
    async def exportar(context = require_permission("ordenes.export")):
        return {"ok": True, "role": context["role"]}

    async def override_db():
        yield mock_db_conn

    app.dependency_overrides[get_db_connection] = override_db
    return app


def _client_as(app, context):
    async def mock_context():
        return context

    app.dependency_overrides[get_current_user_context] = mock_context
    return TestClient(app)


class TestRequirePermission:
    """Tests para el guard basado en la matriz."""

    def test_anonimo_401(self, guarded_app):
        client = _client_as(guarded_app, _ctx(None, user_id=None))
        assert client.get("/exportar").status_code == 401

    def test_sin_permiso_403(self, guarded_app):
        client = _client_as(guarded_app, _ctx("produccion"))

        response = client.get("/exportar")

        assert response.status_code == 403
        assert "ordenes.export" in response.json()["detail"]

    def test_con_permiso(self, guarded_app, mock_db_conn):
        mock_db_conn.set_fetchval_result(True)
        client = _client_as(guarded_app, _ctx("produccion"))

        response = client.get("/exportar")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "role": "produccion"}

    def test_admin(self, guarded_app):
        client = _client_as(guarded_app, _ctx("admin"))
        assert client.get("/exportar").status_code == 200


class TestAuthRouter:
    """Tests para /auth/me y /auth/permisos."""

    def test_me_sin_token(self, db_client):
        assert db_client.get("/auth/me").status_code == 401

    def test_me_no_expone_token(self, client_comercial):
        response = client_comercial.get("/auth/me")

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "comercial"
        assert "access_token" not in data

    def test_permiso_consultado(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetchval_result(False)

        response = client_comercial.get("/auth/permisos/catalogo.cliente.manage")

        assert response.json() == {"perm_code": "catalogo.cliente.manage", "allowed": False}

    def test_permiso_admin(self, client_admin, mock_db_conn):
        response = client_admin.get("/auth/permisos/catalogo.cliente.manage")

        assert response.json()["allowed"] is True
        assert mock_db_conn.calls('fetchval') == []
