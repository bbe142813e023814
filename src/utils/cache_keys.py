"""
Утилиты для формирования ключей кэша.
"""

from src.core.config import settings


def build_analytics_key(report_name: str, period: str | int) -> str:
    """
    Ключ кэша отчёта аналитики.

    Args:
        report_name: Имя отчёта (dashboard / detailed)
        period: Нормализованная метка периода ("7", "30", "month")

    Returns:
        str: Ключ в формате "analytics:{report}:{period}"
    """
    return f"{settings.ANALYTICS_CACHE_PREFIX}:{report_name}:{period}"


def build_admin_key(key: str) -> str:
    """Ключ общего кэша админ-панели (shm-admin:cache:{key})."""
    return f"{settings.ADMIN_CACHE_PREFIX}{key}"
