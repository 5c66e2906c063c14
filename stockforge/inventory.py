"""
Inventory data models: warehouse records, eBay snapshots, history entries and listings
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ListingValidationError

DEFAULT_LOCATION = "000-00"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


class HistoryAction(str, Enum):
    """Actions recorded in an item's history"""
    CREATE = "CREATE"
    ADD = "ADD"
    ADJUST_UP = "ADJUST_UP"
    ADJUST_DOWN = "ADJUST_DOWN"
    REMOVE = "REMOVE"
    EBAY_SYNC = "EBAY_SYNC"
    EBAY_SALE = "EBAY_SALE"
    EBAY_IMPORT = "EBAY_IMPORT"
    EBAY_PUBLISH = "EBAY_PUBLISH"
    SKU_CHANGE = "SKU_CHANGE"
    MIGRATE = "MIGRATE"


class SyncStatus(str, Enum):
    NOT_SYNCED = "not_synced"
    SYNCED = "synced"


class HistoryEntry(BaseModel):
    """One quantity-affecting event; never modified once appended"""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    date: datetime = Field(default_factory=utcnow)
    action: HistoryAction
    qty: int
    new_total: int
    note: str = ""


class RemoteSnapshot(BaseModel):
    """eBay listing state as of the last successful sync"""
    model_config = ConfigDict(frozen=True)

    quantity: int = 0
    price: float = 0.0
    title: str = ""
    description: str = ""
    condition: str = ""
    taken_at: datetime = Field(default_factory=utcnow)


class EbaySync(BaseModel):
    """Sync bookkeeping nested inside an inventory record"""
    model_config = ConfigDict(use_enum_values=True)

    snapshot: Optional[RemoteSnapshot] = None
    last_sync_time: Optional[datetime] = None
    ebay_item_id: Optional[str] = None
    status: SyncStatus = SyncStatus.NOT_SYNCED


class InventoryRecord(BaseModel):
    """A warehouse-held SKU"""

    sku: str
    item_code: str = ""
    full_location: str = DEFAULT_LOCATION
    price: float = Field(default=0.0, ge=0)
    current_qty: int = 0
    last_synced_qty: Optional[int] = None
    description: str = ""
    condition: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    item_specifics: Dict[str, str] = Field(default_factory=dict)
    date_added: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)
    ebay_sync: EbaySync = Field(default_factory=EbaySync)
    history: List[HistoryEntry] = Field(default_factory=list)

    @field_validator("current_qty", mode="before")
    @classmethod
    def clamp_quantity(cls, value):
        # Stock on hand can never be negative
        if value is None:
            return 0
        return max(0, int(value))

    @property
    def listing_title(self) -> str:
        """Title used for the eBay listing of this record"""
        return self.description or f"Item {self.sku}"


class RemoteListing(BaseModel):
    """An active eBay listing as reported by the Trading API"""

    item_id: Optional[str] = None
    sku: Optional[str] = None
    title: str = ""
    description: str = ""
    price: float = 0.0
    currency: str = "USD"
    quantity: int = 0
    quantity_sold: int = 0
    condition: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        """SKU used to pair this listing with a local record"""
        return self.sku or self.item_id or None

    def require_key(self) -> str:
        key = self.key
        if not key:
            raise ListingValidationError(f"Listing has neither SKU nor item id: {self.title!r}")
        return key


class ListingUpdate(BaseModel):
    """Fields written to eBay for one SKU"""

    quantity: int
    price: float
    title: str
    description: str = ""
    condition: str = "NEW"
    aspects: Dict[str, List[str]] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: InventoryRecord, quantity: Optional[int] = None) -> "ListingUpdate":
        """
        Build the eBay update for a local record

        Args:
            record: Local inventory record
            quantity: Quantity to publish instead of record.current_qty

        Returns:
            ListingUpdate with the warehouse location and item specifics as aspects
        """
        aspects = {"Warehouse Location": [record.full_location]}
        for name, value in record.item_specifics.items():
            if value:
                aspects[name] = [value]

        return cls(
            quantity=record.current_qty if quantity is None else max(0, quantity),
            price=record.price or 0.0,
            title=record.listing_title,
            description=record.description or "",
            condition=record.condition or "NEW",
            aspects=aspects,
        )


class TokenSet(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: Optional[str] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        return (now or utcnow()) < self.expires_at


class EbayAccount(BaseModel):
    """A connected eBay seller account"""

    account_id: str
    name: str = ""
    tokens: Optional[TokenSet] = None
    added_at: datetime = Field(default_factory=utcnow)
    last_sync: Optional[datetime] = None

    @property
    def has_valid_token(self) -> bool:
        return bool(self.tokens and self.tokens.is_valid())
