"""
View Cache Service.

Redis-backed cache for read views (balances, dashboards). Every ledger
mutation invalidates the views it touches. Cache trouble is never allowed to
fail a request: errors are logged and treated as a miss.
"""

import json
import logging
from typing import Any, Iterable, Optional

from redis.exceptions import RedisError

import ledger_backend.app.core.redis_client as redis_client_module
from ledger_backend.app.core.config import settings

logger = logging.getLogger("ledger.cache")

VIEW_KEY_PREFIX = "view:"


class CacheView:
    """Names of cached views."""
    DONATIONS = "donations"
    EXPENSES = "expenses"
    CASH = "cash"
    BANK_ACCOUNTS = "bank_accounts"
    INVENTORY = "inventory"
    DASHBOARD = "dashboard"

    @staticmethod
    def volunteer_cash(volunteer_id: int) -> str:
        return f"cash:{volunteer_id}"


LEDGER_MUTATION_VIEWS = (
    CacheView.DONATIONS,
    CacheView.EXPENSES,
    CacheView.CASH,
    CacheView.BANK_ACCOUNTS,
    CacheView.INVENTORY,
    CacheView.DASHBOARD,
)


def _client():
    # Resolved per call so tests can swap the module-level client
    return redis_client_module.redis_client


class CacheService:

    @staticmethod
    async def get(view: str) -> Optional[Any]:
        try:
            raw = await _client().get(f"{VIEW_KEY_PREFIX}{view}")
        except RedisError as e:
            logger.warning("Cache read failed for %s: %s", view, e)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    @staticmethod
    async def set(view: str, data: Any, ttl_seconds: Optional[int] = None):
        ttl = ttl_seconds or settings.cache_ttl_seconds
        try:
            await _client().set(f"{VIEW_KEY_PREFIX}{view}", json.dumps(data), ex=ttl)
        except RedisError as e:
            logger.warning("Cache write failed for %s: %s", view, e)

    @staticmethod
    async def invalidate_views(views: Iterable[str]) -> int:
        """Drop cached payloads for the given views. Returns keys removed."""
        removed = 0
        for view in views:
            try:
                removed += await _client().delete(f"{VIEW_KEY_PREFIX}{view}")
            except RedisError as e:
                logger.warning("Cache invalidation failed for %s: %s", view, e)
        return removed


async def invalidate_ledger_views(*volunteer_ids: Optional[int]) -> int:
    """Invalidate every view a ledger entry mutation can affect."""
    views = list(LEDGER_MUTATION_VIEWS)
    for volunteer_id in volunteer_ids:
        if volunteer_id is not None:
            views.append(CacheView.volunteer_cash(volunteer_id))
    return await CacheService.invalidate_views(views)
