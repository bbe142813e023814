"""Pydantic схемы ответов."""
