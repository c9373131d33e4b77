import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()

class Settings(BaseSettings):
    # --- Supabase (Auth REST + Postgres) ---
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    # Solo backend: operaciones administrativas sobre usuarios de Auth
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    # Si no se define DB_HOST se deriva del host de SUPABASE_URL
    DB_HOST: str = os.getenv("DB_HOST") or SUPABASE_URL.replace('https://', '').replace('http://', '').rstrip('/')
    DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
    DB_NAME: str = os.getenv("DB_NAME", "postgres")
    DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "2"))
    DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

    DB_URL_ASYNC: str = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

    # --- Reglas de negocio ---
    # Zona horaria para fecha_modificacion y updated_at
    TIMEZONE: str = os.getenv("TIMEZONE", "America/Bogota")
    # Los usuarios se autentican con username; Auth necesita un email interno
    AUTH_EMAIL_DOMAIN: str = os.getenv("AUTH_EMAIL_DOMAIN", "erp.local")

    # Endpoint de permisos que consume el editor de la matriz
    PERMISSIONS_API_URL: str = os.getenv("PERMISSIONS_API_URL", "http://localhost:8000/admin/permissions")

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "system_errors.log")

settings = Settings()
