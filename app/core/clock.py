# app/core/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Agora em UTC, sem tzinfo (mesma convenção das colunas DateTime)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Converte datas com fuso para UTC sem tzinfo; datas ingênuas já são UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
