"""
Настройка логирования сервиса аналитики.

Консоль получает короткий формат, файл с ротацией - полный. Драйверы
MySQL/Redis и SQLAlchemy пишут только предупреждения, чтобы запросы
отчётов не засоряли лог.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, List

from src.core.config import settings

# Логгеры библиотек, которым достаточно WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiomysql", "redis", "watchfiles")


class SuppressWatchFilesFilter(logging.Filter):
    """Отбрасывает сообщения hot-reload вида «1 change detected»."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return "change detected" not in record.getMessage().lower()


def _logger(level: str, handlers: List[str]) -> Dict[str, Any]:
    return {"handlers": handlers, "level": level, "propagate": False}


def build_logging_config(level: str, log_file: Path) -> Dict[str, Any]:
    handlers = ["console", "file"]
    loggers: Dict[str, Any] = {
        "src": _logger(level, handlers),
        "uvicorn": _logger(level, handlers),
        "uvicorn.error": _logger(level, handlers),
        "uvicorn.access": _logger(level, handlers),
    }
    for name in QUIET_LOGGERS:
        loggers[name] = _logger("WARNING", handlers)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "suppress_watchfiles": {"()": SuppressWatchFilesFilter},
        },
        "formatters": {
            "full": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "short": {"format": "%(levelname)s: %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "short",
                "filters": ["suppress_watchfiles"],
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": level,
                "formatter": "full",
                "filename": str(log_file),
                "maxBytes": settings.LOG_MAX_SIZE_MB * 1024 * 1024,
                "backupCount": settings.LOG_BACKUP_COUNT,
                "encoding": "utf-8",
                "delay": True,
                "filters": ["suppress_watchfiles"],
            },
        },
        "root": {"handlers": handlers, "level": level},
        "loggers": loggers,
    }


def setup_logging(level: str | None = None) -> None:
    """Применяет конфигурацию логирования. Уровень по умолчанию - LOG_LEVEL."""
    level = (level or settings.LOG_LEVEL).upper()
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(level, log_file))
