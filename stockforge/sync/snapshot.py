"""Snapshots of remote state and the baseline quantity used for sale detection"""

from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional

from ..inventory import EbaySync, InventoryRecord, RemoteListing, RemoteSnapshot, SyncStatus, utcnow


def capture_remote_snapshot(listing: RemoteListing, taken_at: Optional[datetime] = None) -> RemoteSnapshot:
    """Snapshot of a listing as eBay reported it"""
    return RemoteSnapshot(
        quantity=listing.quantity,
        price=listing.price,
        title=listing.title or "",
        description=listing.description or "",
        condition=listing.condition or "",
        taken_at=taken_at or utcnow(),
    )


def capture_local_snapshot(record: InventoryRecord, taken_at: Optional[datetime] = None) -> RemoteSnapshot:
    """Snapshot of what eBay holds right after this record was pushed"""
    return RemoteSnapshot(
        quantity=record.current_qty,
        price=record.price or 0.0,
        title=record.listing_title,
        description=record.description or "",
        condition=record.condition or "",
        taken_at=taken_at or utcnow(),
    )


def synced_state(
    snapshot: RemoteSnapshot,
    previous: EbaySync,
    ebay_item_id: Optional[str] = None,
) -> EbaySync:
    """Sync bookkeeping after a successful reconciliation"""
    return EbaySync(
        snapshot=snapshot,
        last_sync_time=snapshot.taken_at,
        ebay_item_id=ebay_item_id or previous.ebay_item_id,
        status=SyncStatus.SYNCED,
    )


class BaselineSource(str, Enum):
    SNAPSHOT = "snapshot"
    LAST_SYNCED = "last_synced_qty"
    CURRENT = "current_qty"


class Baseline(NamedTuple):
    quantity: int
    source: BaselineSource


def baseline_quantity(record: InventoryRecord) -> Baseline:
    """
    Quantity eBay is believed to have held at the last sync

    Precedence:
        1. the snapshot quantity, when a snapshot exists
        2. last_synced_qty, when it was ever recorded
        3. current_qty, for records that were never synced

    Args:
        record: Local inventory record

    Returns:
        Baseline with the quantity and which tier supplied it
    """
    snapshot = record.ebay_sync.snapshot
    if snapshot is not None:
        return Baseline(snapshot.quantity, BaselineSource.SNAPSHOT)
    if record.last_synced_qty is not None:
        return Baseline(record.last_synced_qty, BaselineSource.LAST_SYNCED)
    return Baseline(record.current_qty, BaselineSource.CURRENT)
