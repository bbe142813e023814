"""Declarative base for SQLAlchemy models."""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Root declarative base.

    Таблицы биллинга принадлежат внешнему движку SHM: сервис аналитики
    только читает их и никогда не создаёт схему в боевой базе.
    """
