"""
Configuración de Gunicorn para la API de órdenes de pedido.
Ejecutar: gunicorn -c gunicorn.conf.py main:app
"""
import os

from core.config import settings

# Cada worker abre su propio pool asyncpg (DB_POOL_MAX conexiones como máximo),
# así que workers * DB_POOL_MAX debe caber en el límite de conexiones de Postgres.
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# Las llamadas a Supabase Auth y a la BD son cortas; 60s cubre reintentos del proveedor
timeout = 60
graceful_timeout = 30
keepalive = 5

max_requests = 1000
max_requests_jitter = 50

accesslog = "-"
errorlog = "-"
loglevel = settings.LOG_LEVEL.lower()
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

# Sin preload: el pool se crea en el startup de cada worker
preload_app = False
worker_tmp_dir = "/tmp"


def on_starting(server):
    import logging
    logger = logging.getLogger("gunicorn.error")
    logger.info(
        f"[GUNICORN] Iniciando {workers} workers "
        f"(hasta {workers * settings.DB_POOL_MAX} conexiones a Postgres)"
    )


def worker_int(worker):
    """Hook ejecutado cuando un worker recibe SIGINT; el shutdown de la app cierra el pool."""
    import logging
    logger = logging.getLogger("gunicorn.error")
    logger.info(f"[GUNICORN] Worker {worker.pid} interrumpido")
