"""Тесты настроек и конфигурации логирования."""

import logging
import runpy
from pathlib import Path
from unittest.mock import patch

from src.core.config import AnalyticsSettings, settings
from src.core.logging_config import SuppressWatchFilesFilter, build_logging_config


def make_settings(**overrides) -> AnalyticsSettings:
    return AnalyticsSettings(_env_file=None, **overrides)


def test_database_url_from_mysql_parts():
    settings = make_settings(MYSQL_HOST="db", MYSQL_USER="shm", MYSQL_PASS="p@ss:word", MYSQL_DATABASE="billing")

    assert settings.database_url == "mysql+aiomysql://shm:p%40ss%3Aword@db:3306/billing?charset=utf8mb4"


def test_explicit_database_url_wins():
    settings = make_settings(DATABASE_URL=" sqlite+aiosqlite:///tmp.db ", MYSQL_HOST="db")

    assert settings.database_url == "sqlite+aiosqlite:///tmp.db"


def test_redis_url():
    assert make_settings(REDIS_HOST="cache", REDIS_PORT=6380).redis_url == "redis://cache:6380/0"
    assert make_settings(REDIS_HOST="cache", REDIS_PASSWORD="secret").redis_url == "redis://:secret@cache:6379/0"


def test_defaults():
    settings = make_settings()

    assert settings.BACKEND_PORT == 3001
    assert settings.DB_POOL_SIZE == 10
    assert settings.ANALYTICS_DASHBOARD_CACHE_TTL == 60
    assert settings.ANALYTICS_REPORT_CACHE_TTL == 60
    assert settings.REDIS_MAX_RETRIES == 10


def test_cors_origins_list():
    settings = make_settings(CORS_ORIGINS="https://admin.example.com, http://localhost:5173,")

    assert settings.cors_origins_list == ["https://admin.example.com", "http://localhost:5173"]


def test_logging_config_quiets_drivers():
    config = build_logging_config("DEBUG", Path("logs/test.log"))

    assert config["loggers"]["src"]["level"] == "DEBUG"
    for name in ("sqlalchemy.engine", "aiomysql", "redis"):
        assert config["loggers"][name]["level"] == "WARNING"
    assert config["handlers"]["file"]["filename"] == str(Path("logs/test.log"))


def test_watchfiles_filter():
    noisy = logging.LogRecord("watchfiles", logging.INFO, __file__, 1, "1 change detected", None, None)
    useful = logging.LogRecord("src", logging.INFO, __file__, 1, "[Cache] hit", None, None)

    assert SuppressWatchFilesFilter().filter(noisy) is False
    assert SuppressWatchFilesFilter().filter(useful) is True


def test_run_admin_starts_uvicorn_with_settings():
    script = Path(__file__).resolve().parents[1] / "run_admin.py"

    with patch("uvicorn.run") as run:
        runpy.run_path(str(script), run_name="__main__")

    run.assert_called_once_with(
        "src.admin.main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
