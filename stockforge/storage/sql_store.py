"""SQL backend using SQLAlchemy's asyncio engine"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import LocalStoreError
from ..inventory import EbayAccount, HistoryEntry, InventoryRecord
from .base import AccountStore, InventoryStore, apply_update, merge_account

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS inventory_items (
        sku VARCHAR(64) PRIMARY KEY,
        document TEXT NOT NULL,
        last_modified VARCHAR(40)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ebay_accounts (
        account_id VARCHAR(64) PRIMARY KEY,
        document TEXT NOT NULL
    )
    """,
]


class SqlStore(InventoryStore, AccountStore):
    """Stores each record as a JSON document row"""

    def __init__(self, session_factory: async_sessionmaker):
        """
        Initialize SQL store

        Args:
            session_factory: async_sessionmaker bound to the application engine
        """
        self.session_factory = session_factory

    async def init_schema(self):
        """Create tables if they do not exist"""
        try:
            async with self.session_factory() as session:
                for statement in SCHEMA:
                    await session.execute(text(statement))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Schema creation failed: {str(e)}")
            raise LocalStoreError(f"Schema creation failed: {e}") from e
        logger.info("Inventory tables ready")

    @staticmethod
    def _to_record(document: str) -> InventoryRecord:
        try:
            return InventoryRecord.model_validate(json.loads(document))
        except (ValueError, ValidationError) as e:
            raise LocalStoreError(f"Corrupt inventory row: {e}") from e

    async def _fetch_record(self, session: AsyncSession, sku: str) -> Optional[InventoryRecord]:
        result = await session.execute(
            text("SELECT document FROM inventory_items WHERE sku = :sku"), {"sku": sku}
        )
        row = result.first()
        return self._to_record(row.document) if row else None

    async def _store_record(self, session: AsyncSession, record: InventoryRecord):
        await session.execute(
            text("UPDATE inventory_items SET document = :document, last_modified = :last_modified WHERE sku = :sku"),
            {
                "sku": record.sku,
                "document": record.model_dump_json(),
                "last_modified": record.last_modified.isoformat(),
            },
        )

    async def _modify(self, sku: str, change) -> InventoryRecord:
        try:
            async with self.session_factory() as session:
                record = await self._fetch_record(session, sku)
                if record is None:
                    raise LocalStoreError(f"Item not found: {sku}")
                updated = change(record)
                await self._store_record(session, updated)
                await session.commit()
                return updated
        except SQLAlchemyError as e:
            logger.error(f"Failed to update {sku}: {str(e)}")
            raise LocalStoreError(f"Failed to update {sku}: {e}") from e

    # Inventory

    async def get_record(self, sku: str) -> Optional[InventoryRecord]:
        try:
            async with self.session_factory() as session:
                return await self._fetch_record(session, sku)
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to read {sku}: {e}") from e

    async def list_records(self) -> List[InventoryRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT document FROM inventory_items ORDER BY sku"))
                return [self._to_record(row.document) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to list inventory: {e}") from e

    async def create_record(self, record: InventoryRecord) -> InventoryRecord:
        try:
            async with self.session_factory() as session:
                if await self._fetch_record(session, record.sku) is not None:
                    raise LocalStoreError(f"Item already exists: {record.sku}")
                await session.execute(
                    text("INSERT INTO inventory_items (sku, document, last_modified) "
                         "VALUES (:sku, :document, :last_modified)"),
                    {
                        "sku": record.sku,
                        "document": record.model_dump_json(),
                        "last_modified": record.last_modified.isoformat(),
                    },
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create {record.sku}: {str(e)}")
            raise LocalStoreError(f"Failed to create {record.sku}: {e}") from e
        return record

    async def update_record(
        self, sku: str, fields: Dict[str, Any], entry: Optional[HistoryEntry] = None
    ) -> InventoryRecord:
        return await self._modify(sku, lambda record: apply_update(record, fields, entry))

    async def append_history(self, sku: str, entry: HistoryEntry) -> InventoryRecord:
        return await self._modify(
            sku, lambda record: record.model_copy(update={"history": [*record.history, entry]})
        )

    async def delete_record(self, sku: str) -> Optional[InventoryRecord]:
        try:
            async with self.session_factory() as session:
                record = await self._fetch_record(session, sku)
                if record is not None:
                    await session.execute(text("DELETE FROM inventory_items WHERE sku = :sku"), {"sku": sku})
                    await session.commit()
                return record
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to delete {sku}: {e}") from e

    async def count(self) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT COUNT(*) AS total FROM inventory_items"))
                return int(result.scalar() or 0)
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to count inventory: {e}") from e

    # Accounts

    @staticmethod
    def _to_account(document: str) -> EbayAccount:
        try:
            return EbayAccount.model_validate(json.loads(document))
        except (ValueError, ValidationError) as e:
            raise LocalStoreError(f"Corrupt account row: {e}") from e

    async def get_account(self, account_id: str) -> Optional[EbayAccount]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    text("SELECT document FROM ebay_accounts WHERE account_id = :account_id"),
                    {"account_id": account_id},
                )
                row = result.first()
                return self._to_account(row.document) if row else None
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to read account {account_id}: {e}") from e

    async def list_accounts(self) -> List[EbayAccount]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT document FROM ebay_accounts ORDER BY account_id"))
                return [self._to_account(row.document) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to list accounts: {e}") from e

    async def save_account(self, account_id: str, fields: Dict[str, Any]) -> EbayAccount:
        existing = await self.get_account(account_id)
        account = merge_account(existing, account_id, fields)
        params = {"account_id": account_id, "document": account.model_dump_json()}
        if existing is None:
            query = "INSERT INTO ebay_accounts (account_id, document) VALUES (:account_id, :document)"
        else:
            query = "UPDATE ebay_accounts SET document = :document WHERE account_id = :account_id"
        try:
            async with self.session_factory() as session:
                await session.execute(text(query), params)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save account {account_id}: {str(e)}")
            raise LocalStoreError(f"Failed to save account {account_id}: {e}") from e
        return account

    async def delete_account(self, account_id: str) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    text("DELETE FROM ebay_accounts WHERE account_id = :account_id"),
                    {"account_id": account_id},
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Failed to delete account {account_id}: {e}") from e
