# Archivo: main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from core.database import connect_to_db, close_db_connection
from core.config import settings
from core.workflow import router as workflow_router
from modules.auth import router as auth_router
from modules.admin import router as admin_router
from modules.ordenes import router as ordenes_router

# Inicialización de la app
import logging
from logging.handlers import RotatingFileHandler

# Configurar Logging Global
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(), # Consola
        RotatingFileHandler(settings.LOG_FILE, maxBytes=5*1024*1024, backupCount=3) # Archivo 5MB
    ]
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_db()
    yield
    await close_db_connection()


app = FastAPI(title="ERP Órdenes de Pedido", lifespan=lifespan)

# Registrar Routers Modulares
app.include_router(auth_router.router)
app.include_router(ordenes_router.router)
app.include_router(workflow_router.router)
app.include_router(admin_router.router)


@app.get("/health", tags=["Home"])
async def health():
    """Verificación básica para el balanceador."""
    return {"status": "ok"}

# Si quisieras levantar el servidor: uvicorn main:app --reload
