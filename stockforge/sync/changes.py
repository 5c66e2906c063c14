"""Change detection between a live eBay listing and the stored snapshot"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..inventory import InventoryRecord, RemoteListing, RemoteSnapshot

TRACKED_FIELDS = ("quantity", "price", "title")
ALL_FIELDS = "all"


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any = None
    new_value: Any = None

    @property
    def is_bootstrap(self) -> bool:
        return self.field == ALL_FIELDS


# Sentinel for records that were never synced: accept every remote value
ACCEPT_ALL = FieldChange(ALL_FIELDS)


def values_differ(field: str, a: Any, b: Any) -> bool:
    if field == "quantity":
        return int(a or 0) != int(b or 0)
    if field == "price":
        # Prices compare at cent precision
        return round(float(a or 0), 2) != round(float(b or 0), 2)
    return (a or "") != (b or "")


def remote_values(listing: RemoteListing) -> Dict[str, Any]:
    return {"quantity": listing.quantity, "price": listing.price, "title": listing.title or ""}


def snapshot_values(snapshot: RemoteSnapshot) -> Dict[str, Any]:
    return {"quantity": snapshot.quantity, "price": snapshot.price, "title": snapshot.title}


def local_values(record: InventoryRecord) -> Dict[str, Any]:
    """Tracked local fields under their listing names (title is the description)"""
    return {"quantity": record.current_qty, "price": record.price, "title": record.listing_title}


def detect_changes(listing: RemoteListing, snapshot: Optional[RemoteSnapshot]) -> List[FieldChange]:
    """
    Compare a live listing with the snapshot taken at the last sync

    Args:
        listing: Listing as currently reported by eBay
        snapshot: Stored snapshot, or None if the record was never synced

    Returns:
        One FieldChange per tracked field that differs, in tracked-field
        order, or [ACCEPT_ALL] when there is no snapshot
    """
    if snapshot is None:
        return [ACCEPT_ALL]

    current = remote_values(listing)
    previous = snapshot_values(snapshot)
    return [
        FieldChange(field, previous[field], current[field])
        for field in TRACKED_FIELDS
        if values_differ(field, previous[field], current[field])
    ]


def local_matches_snapshot(record: InventoryRecord) -> bool:
    """True when no tracked local field was edited since the last snapshot"""
    snapshot = record.ebay_sync.snapshot
    if snapshot is None:
        return False
    local = local_values(record)
    previous = snapshot_values(snapshot)
    return not any(values_differ(field, local[field], previous[field]) for field in TRACKED_FIELDS)
