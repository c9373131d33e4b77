from fastapi import Request, Depends, HTTPException, status
from uuid import UUID
from core.database import get_db_connection
from core.integrations.supabase_auth import (
    IdentityProviderError,
    SupabaseAuthService,
    get_supabase_auth_service,
)
import logging

logger = logging.getLogger("Security")


def _anonymous_context() -> dict:
    return {
        "user_id": None,
        "user_name": None,
        "username": None,
        "email": None,
        "role": None,
        "is_admin": False,
        "access_token": None,
    }


def extract_bearer_token(request: Request):
    """Devuelve el token del header 'Authorization: Bearer ...' o None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user_context(
    request: Request,
    conn = Depends(get_db_connection),
    auth_service: SupabaseAuthService = Depends(get_supabase_auth_service),
):
    """
    Dependency to get the current user context from the bearer token.
    Returns a dict with user_id, user_name, username, email, role, is_admin.
    Sin token (o token inválido) retorna un contexto anónimo; los guards de
    core.permissions deciden si eso es un 401.
    """
    # 1. Recuperar token
    access_token = extract_bearer_token(request)
    if not access_token:
        return _anonymous_context()

    # 2. Validar token contra Supabase Auth
    try:
        user = await auth_service.get_user(access_token)
    except IdentityProviderError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if not user or not user.get("id"):
        return _anonymous_context()

    # 3. El rol vive en profiles (nunca en el JWT)
    row = await conn.fetchrow(
        "SELECT user_id, username, nombre, role FROM profiles WHERE user_id = $1",
        UUID(user["id"])
    )

    role = None
    username = None
    user_name = None
    if row:
        role = row['role']
        username = row['username']
        user_name = row['nombre']
    else:
        logger.warning(f"Usuario autenticado sin perfil: {user['id']}")

    email = user.get("email")
    # Nombre para mostrar: perfil > username > parte local del email
    if not user_name:
        user_name = username or (email.split("@")[0] if email else None)

    return {
        "user_id": user["id"],
        "user_name": user_name,
        "username": username,
        "email": email,
        "role": role,
        "is_admin": (role == "admin"),
        "access_token": access_token,
    }
