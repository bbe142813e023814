"""
==============================================================================
SHM ADMIN ANALYTICS - CONFIGURATION
==============================================================================
Управление конфигурацией через переменные окружения.
Использует Pydantic Settings для валидации и загрузки из .env файла.
==============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsSettings(BaseSettings):
    """
    Настройки сервиса аналитики.

    Имена переменных совпадают с теми, что использует docker-compose
    админ-панели (MYSQL_*, REDIS_*, BACKEND_PORT).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # === Основные настройки ===
    APP_NAME: str = "SHM Admin Analytics"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # === Сервер ===
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 3001
    CORS_ORIGINS: str = "*"  # Домены через запятую

    # === MySQL ===
    # DATABASE_URL имеет приоритет над сборкой из MYSQL_*
    DATABASE_URL: str = ""
    MYSQL_HOST: str = "mysql"
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "shm"
    MYSQL_PASS: str = ""
    MYSQL_DATABASE: str = "shm"

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 0
    DB_HEALTH_CHECK_INTERVAL: float = 5.0  # Секунды между проверками, пока БД недоступна

    # === Redis ===
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    REDIS_MAX_RETRIES: int = 10  # После стольких неудачных попыток кэш отключается до рестарта
    REDIS_RETRY_STEP_MS: int = 100
    REDIS_RETRY_MAX_DELAY_MS: int = 3000

    # === Аналитика ===
    ANALYTICS_DASHBOARD_CACHE_TTL: int = 60
    ANALYTICS_REPORT_CACHE_TTL: int = 60
    ANALYTICS_REQUEST_TIMEOUT: float = 30.0
    ANALYTICS_CACHE_PREFIX: str = "analytics"
    ADMIN_CACHE_PREFIX: str = "shm-admin:cache:"
    ADMIN_CACHE_DEFAULT_TTL: int = 300

    # === Логирование ===
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/analytics.log"
    LOG_MAX_SIZE_MB: int = 50
    LOG_BACKUP_COUNT: int = 3

    @property
    def cors_origins_list(self) -> list[str]:
        """Возвращает список разрешённых CORS origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def database_url(self) -> str:
        """
        Итоговый URL подключения к MySQL.

        Приоритет:
        1) DATABASE_URL (если задан)
        2) Сборка из MYSQL_*

        Логин и пароль кодируются через URL-encoding, чтобы спецсимволы
        не ломали строку подключения.
        """
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL.strip()

        user = quote_plus((self.MYSQL_USER or "").strip().strip('"').strip("'"))
        password = quote_plus((self.MYSQL_PASS or "").strip().strip('"').strip("'"))
        host = (self.MYSQL_HOST or "mysql").strip()
        port = int(self.MYSQL_PORT or 3306)
        db = (self.MYSQL_DATABASE or "").strip()

        return f"mysql+aiomysql://{user}:{password}@{host}:{port}/{db}?charset=utf8mb4"

    @property
    def redis_url(self) -> str:
        """URL Redis в формате redis://:password@host:port/db."""
        auth = f":{quote_plus(self.REDIS_PASSWORD)}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


@lru_cache()
def get_settings() -> AnalyticsSettings:
    """Singleton экземпляр настроек."""
    return AnalyticsSettings()


settings = get_settings()
