"""Админ-панель: HTTP API аналитики."""
