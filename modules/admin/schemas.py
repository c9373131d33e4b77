import re
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

from core.permissions import AppRole

USERNAME_PATTERN = re.compile(r"^[a-z0-9._-]{3,32}$")
MIN_PASSWORD_LENGTH = 8

# --- Base Configuration ---
class AdminBaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


def sanitize_username(username: str) -> str:
    """Normaliza username: minúsculas y sin espacios en los extremos."""
    return username.lower().strip()


def validar_username(v: str) -> str:
    """Normaliza y valida un username. Lanza ValueError (el router responde 400)."""
    v = sanitize_username(v)
    if not USERNAME_PATTERN.match(v):
        raise ValueError("El usuario debe tener 3-32 caracteres: letras minúsculas, números, '.', '_' o '-'")
    return v


def validar_password(v: str) -> str:
    """Lanza ValueError si la contraseña es demasiado corta."""
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")
    return v

# -----------------------------------------
# 1. MATRIZ DE PERMISOS
# -----------------------------------------
class PermissionRead(AdminBaseSchema):
    perm_code: str
    category: str
    description: str
    created_at: Optional[datetime] = None


class RolePermissionRead(AdminBaseSchema):
    role: AppRole
    perm_code: str
    allowed: bool
    updated_at: Optional[datetime] = None


class PermissionMatrixRead(AdminBaseSchema):
    """Respuesta del GET: catálogo completo + filas rol/permiso."""
    permissions: List[PermissionRead]
    rolePermissions: List[RolePermissionRead]


class RolePermissionUpdate(AdminBaseSchema):
    role: AppRole
    perm_code: str = Field(..., min_length=1)
    allowed: bool
    # El cliente puede enviarlo; el servidor usa su propia hora
    updated_at: Optional[datetime] = None

    @field_validator('role')
    @classmethod
    def validar_rol_editable(cls, v):
        if v == AppRole.ADMIN:
            raise ValueError("Los permisos del rol admin no son editables")
        return v


class PermissionsUpdateRequest(AdminBaseSchema):
    updates: List[RolePermissionUpdate] = Field(..., min_length=1)


class PermissionsUpdateResponse(AdminBaseSchema):
    success: bool = True
    message: str

# -----------------------------------------
# 2. GESTIÓN DE USUARIOS
# -----------------------------------------
class UserCreate(AdminBaseSchema):
    # username y password se validan en AdminService (400, no 422)
    username: str
    password: str
    nombre: Optional[str] = Field(None, max_length=200)
    role: AppRole = AppRole.COMERCIAL


class UserUpdate(AdminBaseSchema):
    username: Optional[str] = None
    nombre: Optional[str] = Field(None, max_length=200)
    role: Optional[AppRole] = None


class PasswordUpdate(AdminBaseSchema):
    password: str


class UserRead(AdminBaseSchema):
    user_id: str
    username: Optional[str] = None
    nombre: Optional[str] = None
    role: AppRole
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
