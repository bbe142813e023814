"""
Общий кэш админ-панели в Redis (ключи с префиксом shm-admin:cache:).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.admin.dependencies import AdminCacheDep
from src.admin.models.schemas import CacheSetRequest
from src.services.errors import CacheError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/{key}")
async def get_cache(key: str, cache: AdminCacheDep):
    """Значение по ключу. Недоступный Redis - просто промах."""
    if not cache.available:
        return {"data": None, "cached": False}
    try:
        data = await cache.get(key)
    except CacheError as e:
        logger.error("[Cache] Get error: %s", e)
        return {"data": None, "cached": False}
    if data is None:
        return {"data": None, "cached": False}
    return {"data": data, "cached": True}


@router.post("/{key}")
async def set_cache(key: str, body: CacheSetRequest, cache: AdminCacheDep):
    if not cache.available:
        return {"success": False, "error": "Redis not connected"}
    try:
        await cache.set(key, body.data, body.ttl)
    except CacheError as e:
        logger.error("[Cache] Set error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to set cache"})
    return {"success": True}


@router.delete("/{key}")
async def delete_cache(key: str, cache: AdminCacheDep):
    if not cache.available:
        return {"success": True}
    try:
        await cache.delete(key)
    except CacheError as e:
        logger.error("[Cache] Delete error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to delete cache"})
    return {"success": True}


@router.delete("")
async def clear_cache(cache: AdminCacheDep):
    """Удаляет все ключи админ-кэша. Ключи аналитики не затрагиваются."""
    if not cache.available:
        return {"success": True, "deleted": 0}
    try:
        deleted = await cache.clear()
    except CacheError as e:
        logger.error("[Cache] Clear error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to clear cache"})
    return {"success": True, "deleted": deleted}
