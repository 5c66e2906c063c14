"""Storage interface shared by the JSON file and SQL backends"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from ..errors import LocalStoreError
from ..inventory import EbayAccount, HistoryEntry, InventoryRecord, utcnow


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def apply_update(
    record: InventoryRecord,
    fields: Dict[str, Any],
    entry: Optional[HistoryEntry] = None,
) -> InventoryRecord:
    """
    Merge a partial update into a record and re-validate it

    last_modified is stamped with the current time unless the update
    carries its own value.

    Args:
        record: Current record
        fields: Attribute name -> new value (models are accepted for nested fields)
        entry: History entry appended as part of the same change

    Returns:
        New validated InventoryRecord
    """
    unknown = set(fields) - set(InventoryRecord.model_fields)
    if unknown:
        raise LocalStoreError(f"Unknown inventory fields: {', '.join(sorted(unknown))}")
    if "sku" in fields and fields["sku"] != record.sku:
        raise LocalStoreError("SKU cannot be changed through update_record")

    data = record.model_dump()
    data.update({key: _plain(value) for key, value in fields.items()})
    if fields.get("last_modified") is None:
        data["last_modified"] = utcnow()
    if entry is not None:
        data["history"] = [*data["history"], entry.model_dump()]

    try:
        return InventoryRecord.model_validate(data)
    except ValidationError as e:
        raise LocalStoreError(f"Invalid update for {record.sku}: {e}") from e


def merge_account(existing: Optional[EbayAccount], account_id: str, fields: Dict[str, Any]) -> EbayAccount:
    data = existing.model_dump() if existing else {"account_id": account_id}
    data.update({key: _plain(value) for key, value in fields.items()})
    data["account_id"] = account_id
    try:
        return EbayAccount.model_validate(data)
    except ValidationError as e:
        raise LocalStoreError(f"Invalid account data for {account_id}: {e}") from e


class InventoryStore(ABC):
    """Persistence for inventory records"""

    @abstractmethod
    async def get_record(self, sku: str) -> Optional[InventoryRecord]:
        ...

    @abstractmethod
    async def list_records(self) -> List[InventoryRecord]:
        ...

    @abstractmethod
    async def create_record(self, record: InventoryRecord) -> InventoryRecord:
        ...

    @abstractmethod
    async def update_record(
        self, sku: str, fields: Dict[str, Any], entry: Optional[HistoryEntry] = None
    ) -> InventoryRecord:
        """
        Apply a partial update; raises LocalStoreError if the SKU does not exist

        When entry is given it is appended to the history in the same write,
        so the fields and the entry are stored together or not at all.
        """

    @abstractmethod
    async def append_history(self, sku: str, entry: HistoryEntry) -> InventoryRecord:
        ...

    @abstractmethod
    async def delete_record(self, sku: str) -> Optional[InventoryRecord]:
        ...

    async def count(self) -> int:
        return len(await self.list_records())


class AccountStore(ABC):
    """Persistence for connected eBay accounts"""

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[EbayAccount]:
        ...

    @abstractmethod
    async def list_accounts(self) -> List[EbayAccount]:
        ...

    @abstractmethod
    async def save_account(self, account_id: str, fields: Dict[str, Any]) -> EbayAccount:
        """Create the account or merge fields into the existing one"""

    @abstractmethod
    async def delete_account(self, account_id: str) -> bool:
        ...
