"""
Исключения сервиса аналитики.
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Базовое исключение аналитики."""


class ConnectivityError(AnalyticsError):
    """Реляционное хранилище недоступно в момент запроса."""

    def __init__(self, message: str = "Database not connected") -> None:
        super().__init__(message)


class QueryError(AnalyticsError):
    """Один из агрегирующих запросов завершился ошибкой; отчёт не строится."""

    def __init__(self, query_name: str, message: str) -> None:
        super().__init__(message)
        self.query_name = query_name


class CacheError(AnalyticsError):
    """Ошибка Redis. Наружу из слоя кэша аналитики не пробрасывается."""
