import pytest
from fastapi.testclient import TestClient
from main import app
from core.database import get_db_connection
from core.integrations.supabase_auth import get_supabase_auth_service
from core.security import get_current_user_context

ADMIN_ID = "11111111-1111-1111-1111-111111111111"
USER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


# ===== FIXTURES DE BASE DE DATOS =====

class MockDbConnection:
    """Mock de conexión asyncpg: registra llamadas y devuelve resultados encolados."""

    def __init__(self):
        self._execute_calls = []
        self._fetch_results = []
        self._fetchrow_results = []
        self._fetchval_results = []
        self._errors = {}

    def _record(self, kind, query, params):
        self._execute_calls.append((kind, query, params))
        error = self._errors.get(kind)
        if error:
            # Un error se consume si el patrón coincide (o si no hay patrón)
            pattern, exc = error
            if pattern is None or pattern.lower() in query.lower():
                del self._errors[kind]
                raise exc

    async def fetch(self, query, *params):
        self._record('fetch', query, params)
        return self._fetch_results.pop(0) if self._fetch_results else []

    async def fetchrow(self, query, *params):
        self._record('fetchrow', query, params)
        return self._fetchrow_results.pop(0) if self._fetchrow_results else None

    async def fetchval(self, query, *params):
        self._record('fetchval', query, params)
        return self._fetchval_results.pop(0) if self._fetchval_results else None

    async def execute(self, query, *params):
        self._record('execute', query, params)
        return "DONE"

    async def executemany(self, query, args):
        self._record('executemany', query, (list(args),))
        return None

    # Helpers para configurar mocks
    def set_fetch_result(self, result):
        self._fetch_results.append(result)

    def set_fetchrow_result(self, result):
        self._fetchrow_results.append(result)

    def set_fetchval_result(self, result):
        self._fetchval_results.append(result)

    def fail_on(self, kind, exc, pattern=None):
        """La próxima llamada `kind` (cuyo query contenga `pattern`) lanza `exc`."""
        self._errors[kind] = (pattern, exc)

    # Helpers para verificar llamadas
    def calls(self, kind):
        return [c for c in self._execute_calls if c[0] == kind]

    def called_with_pattern(self, kind, pattern):
        return any(pattern.lower() in c[1].lower() for c in self.calls(kind))

    def execute_called_with_pattern(self, pattern):
        """Verifica si execute fue llamado con un query que contiene el patrón."""
        return self.called_with_pattern('execute', pattern)

    def execute_called_with_params(self, *expected_params):
        """Verifica si execute fue llamado con ciertos parámetros."""
        return any(c[2] == expected_params for c in self.calls('execute'))


@pytest.fixture
def mock_db_conn():
    """Mock de conexión a BD para tests unitarios."""
    return MockDbConnection()


# ===== FIXTURES DE IDENTIDAD =====

class FakeAuthService:
    """Reemplazo de SupabaseAuthService que registra las llamadas administrativas."""

    def __init__(self):
        self.tokens = {}
        self.users = []
        self.created = []
        self.updated = []
        self.deleted = []
        self.next_id = "33333333-3333-3333-3333-333333333333"
        self.error = None

    def _maybe_fail(self):
        if self.error:
            raise self.error

    async def get_user(self, access_token):
        self._maybe_fail()
        return self.tokens.get(access_token)

    async def list_users(self, per_page=1000):
        self._maybe_fail()
        return self.users

    async def create_user(self, email, password, user_metadata):
        self._maybe_fail()
        self.created.append({"email": email, "password": password, "user_metadata": user_metadata})
        return {"id": self.next_id, "email": email}

    async def update_user(self, user_id, attributes):
        self._maybe_fail()
        self.updated.append((user_id, attributes))
        return {"id": user_id}

    async def delete_user(self, user_id):
        self._maybe_fail()
        self.deleted.append(user_id)


@pytest.fixture
def fake_auth():
    return FakeAuthService()


# ===== CLIENTES AUTENTICADOS =====

def _context(user_id, role, name):
    return {
        "user_id": user_id,
        "user_name": name,
        "username": name.lower().replace(" ", "."),
        "email": f"{name.lower().replace(' ', '.')}@erp.local",
        "role": role,
        "is_admin": role == "admin",
        "access_token": "token-test",
    }


@pytest.fixture
def db_client(client, mock_db_conn, fake_auth):
    """Cliente con la BD y Supabase Auth reemplazados por mocks."""
    async def override_db():
        yield mock_db_conn

    app.dependency_overrides[get_db_connection] = override_db
    app.dependency_overrides[get_supabase_auth_service] = lambda: fake_auth
    return client


def _as_role(client, user_id, role, name):
    async def mock_context():
        return _context(user_id, role, name)

    app.dependency_overrides[get_current_user_context] = mock_context
    return client


@pytest.fixture
def client_admin(db_client):
    """Cliente autenticado como admin."""
    return _as_role(db_client, ADMIN_ID, "admin", "Admin Test")


@pytest.fixture
def client_comercial(db_client):
    """Cliente autenticado con rol comercial."""
    return _as_role(db_client, USER_ID, "comercial", "Comercial Test")


@pytest.fixture
def client_facturacion(db_client):
    """Cliente autenticado con rol facturacion."""
    return _as_role(db_client, USER_ID, "facturacion", "Facturacion Test")
