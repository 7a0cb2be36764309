from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class TenantGuard:
    """
    Serializes reconciliation passes per tenant within one process.

    Two passes for the same tenant would otherwise race on the same
    SyncRecords. Cross-process runs still rely on upsert idempotence.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, tenant_id: str) -> asyncio.Lock:
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tenant_id] = lock
        return lock

    def is_running(self, tenant_id: str) -> bool:
        lock = self._locks.get(tenant_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, tenant_id: str) -> AsyncIterator[None]:
        lock = self._lock_for(tenant_id)
        if lock.locked():
            logger.info("Reconciliation already running for tenant %s; waiting", tenant_id)
        async with lock:
            yield


tenant_guard = TenantGuard()
