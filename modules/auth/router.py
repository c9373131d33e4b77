from fastapi import APIRouter, Depends

from core.database import get_db_connection
from core.permissions import require_authenticated, user_has_permission

router = APIRouter(
    prefix="/auth",
    tags=["Autenticación"]
)

@router.get("/me")
async def me(context = require_authenticated()):
    """Contexto del usuario actual (sin el token)."""
    return {k: v for k, v in context.items() if k != "access_token"}

@router.get("/permisos/{perm_code}")
async def has_permission(
    perm_code: str,
    conn = Depends(get_db_connection),
    context = require_authenticated()
):
    """Indica si el rol del usuario actual tiene el permiso (admin siempre True)."""
    allowed = await user_has_permission(conn, context, perm_code)
    return {"perm_code": perm_code, "allowed": allowed}
