# Archivo: core/database.py (Conexión Asíncrona para FastAPI)

import asyncpg
import logging
from fastapi import HTTPException
from core.config import settings
from typing import AsyncIterator, Optional

logger = logging.getLogger("Database")

# Almacenamos el pool de conexiones globalmente
_connection_pool: Optional[asyncpg.Pool] = None

async def connect_to_db():
    """Inicializa el pool de conexiones al inicio de la aplicación (startup)."""
    global _connection_pool
    if not _connection_pool:
        try:
            logger.info("Inicializando conexión a Postgres (asyncpg)...")

            _connection_pool = await asyncpg.create_pool(
                settings.DB_URL_ASYNC,
                min_size=settings.DB_POOL_MIN,
                max_size=settings.DB_POOL_MAX,
                timeout=30 # segundos
            )
            logger.info("Pool de conexiones creado exitosamente.")
        except Exception as e:
            # La app arranca igual; las peticiones fallarán con 503 hasta que haya pool.
            logger.critical(f"ERROR CRÍTICO al conectar a la base de datos: {type(e).__name__}: {e!r}")

async def close_db_connection():
    """Cierra el pool de conexiones al apagado de la aplicación (shutdown)."""
    global _connection_pool
    if _connection_pool:
        logger.info("Cerrando pool de conexiones.")
        await _connection_pool.close()
        _connection_pool = None

async def get_db_connection() -> AsyncIterator[asyncpg.Connection]:
    """Dependencia de FastAPI: entrega una conexión del pool y la libera al terminar."""
    if not _connection_pool:
        # En caso de que se intente usar antes del startup o si el startup falló
        raise HTTPException(
            status_code=503,
            detail="Base de datos no disponible. Intente de nuevo más tarde."
        )

    async with _connection_pool.acquire() as conn:
        yield conn
