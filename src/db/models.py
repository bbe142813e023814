"""SQLAlchemy ORM models for the SHM billing schema (read-only)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    login: Mapped[Optional[str]] = mapped_column(String(64))
    created: Mapped[Optional[datetime]] = mapped_column(DateTime)


class PayHistory(Base):
    """Платежи. pay_system_id пустой / "0" / "manual" - ручные начисления."""

    __tablename__ = "pays_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    pay_system_id: Mapped[Optional[str]] = mapped_column(String(64))
    money: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)


class WithdrawHistory(Base):
    """Списания за услуги."""

    __tablename__ = "withdraw_history"

    withdraw_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    create_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Service(Base):
    """Тариф. period - длительность в днях, может быть 0 или NULL."""

    __tablename__ = "services"

    service_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    period: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    deleted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserService(Base):
    """Подписка пользователя на услугу. expire = NULL - бессрочная."""

    __tablename__ = "user_services"

    user_service_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.service_id"), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(32))
    created: Mapped[Optional[datetime]] = mapped_column(DateTime)
    expire: Mapped[Optional[datetime]] = mapped_column(DateTime)


class Server(Base):
    __tablename__ = "servers"

    server_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    server_gid: Mapped[Optional[int]] = mapped_column(Integer)
    enabled: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class Spool(Base):
    """Очередь задач биллинга."""

    __tablename__ = "spool"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[Optional[str]] = mapped_column(String(32))
    event: Mapped[Optional[str]] = mapped_column(Text)
    created: Mapped[Optional[datetime]] = mapped_column(DateTime)
