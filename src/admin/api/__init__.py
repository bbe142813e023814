"""Роутеры API админ-панели."""
