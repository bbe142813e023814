"""
SHM Admin Analytics - Source Code Package
=========================================
Сервис аналитики админ-панели биллинга SHM.

Структура:
- admin/    - FastAPI приложение и роутеры
- core/     - Конфигурация и логирование
- db/       - Модели биллинга, движок БД, клиент Redis
- services/ - Запросы, расчёт метрик, кэш, сборка отчётов
- utils/    - Вспомогательные утилиты
"""

__version__ = "1.0.0"
