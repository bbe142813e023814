"""
Core Package
============
Конфигурация и логирование сервиса аналитики.
"""

from .config import settings

__all__ = ['settings']
