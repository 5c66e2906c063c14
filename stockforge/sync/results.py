"""
Aggregate results returned by the sync operations
"""
from typing import Dict, List

from pydantic import BaseModel, Field


class ItemRef(BaseModel):
    sku: str
    title: str = ""


class CreatedItem(ItemRef):
    source: str = "ebay"


class FieldUpdate(BaseModel):
    sku: str
    fields: List[str]


class SkippedItem(BaseModel):
    sku: str
    reason: str


class ItemError(BaseModel):
    sku: str
    error: str


class SaleItem(BaseModel):
    sku: str
    sold: int
    new_qty: int


class QuantityUpdate(BaseModel):
    sku: str
    qty: int
    sales_detected: int = 0


class PullResult(BaseModel):
    """eBay -> local"""
    created: List[CreatedItem] = Field(default_factory=list)
    updated: List[FieldUpdate] = Field(default_factory=list)
    skipped: List[SkippedItem] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }

    def message(self) -> str:
        return (f"Pulled from eBay: {len(self.created)} imported, {len(self.updated)} updated, "
                f"{len(self.skipped)} skipped")


class PushResult(BaseModel):
    """local -> eBay"""
    created: List[ItemRef] = Field(default_factory=list)
    pushed: List[ItemRef] = Field(default_factory=list)
    skipped: List[SkippedItem] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "created": len(self.created),
            "pushed": len(self.pushed),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }

    def message(self) -> str:
        return (f"Pushed to eBay: {len(self.created)} created, {len(self.pushed)} updated, "
                f"{len(self.skipped)} skipped")


class SmartSyncResult(BaseModel):
    """Two-way sync with sales detection"""
    imported: List[ItemRef] = Field(default_factory=list)
    exported: List[ItemRef] = Field(default_factory=list)
    updated: List[QuantityUpdate] = Field(default_factory=list)
    sales: List[SaleItem] = Field(default_factory=list)
    skipped: List[SkippedItem] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    @property
    def total_sold(self) -> int:
        return sum(sale.sold for sale in self.sales)

    def summary(self) -> Dict[str, int]:
        return {
            "imported": len(self.imported),
            "exported": len(self.exported),
            "updated": len(self.updated),
            "sales": len(self.sales),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }

    def message(self) -> str:
        parts = []
        if self.imported:
            parts.append(f"{len(self.imported)} imported from eBay")
        if self.exported:
            parts.append(f"{len(self.exported)} exported to eBay")
        if self.updated:
            parts.append(f"{len(self.updated)} updated")
        if self.sales:
            parts.append(f"{self.total_sold} eBay sales detected")
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        return "Sync complete: " + (", ".join(parts) if parts else "No changes")
