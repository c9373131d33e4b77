"""Hora local del negocio para timestamps escritos por el backend."""
from datetime import datetime
from zoneinfo import ZoneInfo

from core.config import settings


def ahora_local() -> datetime:
    """Fecha/hora actual (aware) en la zona horaria configurada (TIMEZONE)."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))
