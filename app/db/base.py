# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base declarativa de todos os modelos ORM."""
    pass

# IMPORTANTE: importar os modelos para registrá-los em Base.metadata
from app import models  # noqa: F401