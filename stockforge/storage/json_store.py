"""Local JSON file backend"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..errors import LocalStoreError
from ..inventory import EbayAccount, HistoryEntry, InventoryRecord, utcnow
from .base import AccountStore, InventoryStore, apply_update, merge_account

logger = logging.getLogger(__name__)

DATA_VERSION = "2.0"


class JsonFileStore(InventoryStore, AccountStore):
    """Keeps inventory and accounts in two JSON documents on disk"""

    def __init__(self, inventory_path: str, accounts_path: str):
        """
        Initialize JSON store

        Args:
            inventory_path: Path of the inventory document
            accounts_path: Path of the eBay accounts document
        """
        self.inventory_path = Path(inventory_path)
        self.accounts_path = Path(accounts_path)
        self._items: Optional[Dict[str, InventoryRecord]] = None
        self._accounts: Optional[Dict[str, EbayAccount]] = None
        self._lock = asyncio.Lock()

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LocalStoreError(f"Could not read {path}: {e}") from e

    def _write(self, path: Path, payload: Dict[str, Any]):
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp_path.replace(path)
        except OSError as e:
            raise LocalStoreError(f"Could not write {path}: {e}") from e

    def _load(self):
        if self._items is not None:
            return
        try:
            raw_items = self._read(self.inventory_path).get("items", {})
            items = {sku: InventoryRecord.model_validate(doc) for sku, doc in raw_items.items()}
            raw_accounts = self._read(self.accounts_path)
            accounts = {aid: EbayAccount.model_validate({**doc, "account_id": aid})
                        for aid, doc in raw_accounts.items()}
        except ValidationError as e:
            raise LocalStoreError(f"Corrupt local data: {e}") from e
        self._items, self._accounts = items, accounts
        logger.info(f"Loaded {len(self._items)} items from {self.inventory_path}")

    def _commit_items(self, items: Dict[str, InventoryRecord]):
        """Write the new item mapping, then make it current; a failed write changes nothing"""
        payload = {
            "items": {sku: record.model_dump(mode="json") for sku, record in items.items()},
            "metadata": {
                "version": DATA_VERSION,
                "lastModified": utcnow().isoformat(),
                "totalItems": len(items),
            },
        }
        self._write(self.inventory_path, payload)
        self._items = items

    def _commit_accounts(self, accounts: Dict[str, EbayAccount]):
        payload = {aid: account.model_dump(mode="json") for aid, account in accounts.items()}
        self._write(self.accounts_path, payload)
        self._accounts = accounts

    def _require(self, sku: str) -> InventoryRecord:
        record = self._items.get(sku)
        if record is None:
            raise LocalStoreError(f"Item not found: {sku}")
        return record

    # Inventory

    async def get_record(self, sku: str) -> Optional[InventoryRecord]:
        self._load()
        return self._items.get(sku)

    async def list_records(self) -> List[InventoryRecord]:
        self._load()
        return list(self._items.values())

    async def create_record(self, record: InventoryRecord) -> InventoryRecord:
        async with self._lock:
            self._load()
            if record.sku in self._items:
                raise LocalStoreError(f"Item already exists: {record.sku}")
            self._commit_items({**self._items, record.sku: record})
        return record

    async def update_record(
        self, sku: str, fields: Dict[str, Any], entry: Optional[HistoryEntry] = None
    ) -> InventoryRecord:
        async with self._lock:
            self._load()
            updated = apply_update(self._require(sku), fields, entry)
            self._commit_items({**self._items, sku: updated})
        return updated

    async def append_history(self, sku: str, entry: HistoryEntry) -> InventoryRecord:
        async with self._lock:
            self._load()
            record = self._require(sku)
            updated = record.model_copy(update={"history": [*record.history, entry]})
            self._commit_items({**self._items, sku: updated})
        return updated

    async def delete_record(self, sku: str) -> Optional[InventoryRecord]:
        async with self._lock:
            self._load()
            record = self._items.get(sku)
            if record is not None:
                self._commit_items({key: value for key, value in self._items.items() if key != sku})
        return record

    # Accounts

    async def get_account(self, account_id: str) -> Optional[EbayAccount]:
        self._load()
        return self._accounts.get(account_id)

    async def list_accounts(self) -> List[EbayAccount]:
        self._load()
        return list(self._accounts.values())

    async def save_account(self, account_id: str, fields: Dict[str, Any]) -> EbayAccount:
        async with self._lock:
            self._load()
            account = merge_account(self._accounts.get(account_id), account_id, fields)
            self._commit_accounts({**self._accounts, account_id: account})
        return account

    async def delete_account(self, account_id: str) -> bool:
        async with self._lock:
            self._load()
            removed = account_id in self._accounts
            if removed:
                self._commit_accounts(
                    {key: value for key, value in self._accounts.items() if key != account_id}
                )
        return removed
