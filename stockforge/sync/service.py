"""
Sync entry points with per-account serialization
"""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Dict, Optional

from ..errors import LocalStoreError
from ..history import sync_entry
from ..inventory import InventoryRecord, utcnow
from .pull import pull_from_ebay
from .push import push_to_ebay
from .results import PullResult, PushResult, SmartSyncResult
from .smart import smart_sync
from .transfer import export_record

logger = logging.getLogger(__name__)


class SyncService:
    """Runs pull, push and smart sync for connected eBay accounts"""

    def __init__(self, client, store, token_provider=None, account_store=None):
        """
        Args:
            client: EbayClient (or any object with fetch_listings/upsert_listing)
            store: InventoryStore
            token_provider: Object with get_token(account_id); checked before any item is touched
            account_store: AccountStore stamped with last_sync after each successful call
        """
        self.client = client
        self.store = store
        self.token_provider = token_provider
        self.account_store = account_store
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def is_running(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return bool(lock and lock.locked())

    async def _run(self, name: str, account_id: str, operation):
        async with self._locks[account_id]:
            if self.token_provider is not None:
                await self.token_provider.get_token(account_id)

            logger.info("=" * 60)
            logger.info(f"Starting {name} for account {account_id}")
            start_time = time.time()

            result = await operation(self.client, self.store, account_id)

            logger.info(f"{name} finished in {time.time() - start_time:.2f}s: {result.message()}")
            logger.info("=" * 60)
            await self._stamp_account(account_id)
            return result

    async def _stamp_account(self, account_id: str):
        if self.account_store is None:
            return
        if await self.account_store.get_account(account_id) is None:
            return
        await self.account_store.save_account(account_id, {"last_sync": utcnow()})

    async def pull(self, account_id: str) -> PullResult:
        return await self._run("pull", account_id, pull_from_ebay)

    async def push(self, account_id: str) -> PushResult:
        return await self._run("push", account_id, push_to_ebay)

    async def smart_sync(self, account_id: str) -> SmartSyncResult:
        return await self._run("smart sync", account_id, smart_sync)

    async def sync_item(self, account_id: str, sku: str, note: Optional[str] = None) -> InventoryRecord:
        """
        Push a single record to eBay and log it in the item's history

        Args:
            account_id: eBay account
            sku: Record to push
            note: History note, defaults to "Synced to eBay"

        Returns:
            Updated record
        """
        async with self._locks[account_id]:
            if self.token_provider is not None:
                await self.token_provider.get_token(account_id)

            record = await self.store.get_record(sku)
            if record is None:
                raise LocalStoreError(f"Item not found: {sku}")

            record = await export_record(
                self.client,
                self.store,
                account_id,
                record,
                ebay_item_id=record.ebay_sync.ebay_item_id,
                entry=sync_entry(0, record.current_qty, note=note or "Synced to eBay"),
            )
            logger.info(f"Synced {sku} to eBay account {account_id}")
            await self._stamp_account(account_id)
            return record
