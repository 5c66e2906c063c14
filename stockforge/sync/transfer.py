"""Record-level transfers between the local store and eBay"""

import logging
from typing import Dict, List, Optional, Tuple

from ..history import import_entry, record_quantity_change, sale_entry
from ..inventory import (
    EbaySync,
    HistoryEntry,
    InventoryRecord,
    ListingUpdate,
    RemoteListing,
    SyncStatus,
    utcnow,
)
from .resolver import Sale
from .snapshot import capture_local_snapshot, capture_remote_snapshot, synced_state

logger = logging.getLogger(__name__)


def index_listings(listings: List[RemoteListing]) -> Tuple[Dict[str, RemoteListing], List[RemoteListing]]:
    """
    Key listings by SKU

    Returns:
        Tuple of (listings by key in fetch order, listings without a key)
    """
    by_key: Dict[str, RemoteListing] = {}
    invalid: List[RemoteListing] = []
    for listing in listings:
        key = listing.key
        if key:
            by_key[key] = listing
        else:
            invalid.append(listing)
    return by_key, invalid


def record_from_listing(listing: RemoteListing) -> InventoryRecord:
    """New local record for a listing that only exists on eBay"""
    sku = listing.require_key()
    quantity = max(0, listing.quantity)
    now = utcnow()
    snapshot = capture_remote_snapshot(listing, taken_at=now)
    return InventoryRecord(
        sku=sku,
        item_code=sku[:4].rjust(4, "0"),
        price=listing.price,
        current_qty=quantity,
        last_synced_qty=quantity,
        description=listing.title or f"eBay Item {sku}",
        condition=listing.condition,
        category_id=listing.category_id,
        category_name=listing.category_name,
        date_added=now,
        last_modified=now,
        ebay_sync=EbaySync(
            snapshot=snapshot,
            last_sync_time=now,
            ebay_item_id=listing.item_id,
            status=SyncStatus.SYNCED,
        ),
        history=[import_entry(quantity, listing.item_id or sku)],
    )


async def import_listing(store, listing: RemoteListing) -> InventoryRecord:
    record = await store.create_record(record_from_listing(listing))
    logger.info(f"Imported {record.sku} from eBay (qty {record.current_qty})")
    return record


async def export_record(
    client,
    store,
    account_id: str,
    record: InventoryRecord,
    ebay_item_id: Optional[str] = None,
    entry: Optional[HistoryEntry] = None,
) -> InventoryRecord:
    """
    Write a local record to eBay in full and refresh its snapshot

    Args:
        client: eBay client with upsert_listing
        store: InventoryStore
        account_id: eBay account
        record: Record to publish
        ebay_item_id: Listing id, when known
        entry: History entry stored in the same write as the snapshot

    Returns:
        Record with the new snapshot and last_synced_qty
    """
    await client.upsert_listing(account_id, record.sku, ListingUpdate.from_record(record))

    now = utcnow()
    return await store.update_record(
        record.sku,
        {
            "last_synced_qty": record.current_qty,
            "ebay_sync": synced_state(capture_local_snapshot(record, taken_at=now), record.ebay_sync, ebay_item_id),
            "last_modified": now,
        },
        entry=entry,
    )


async def apply_sale(store, record: InventoryRecord, listing: RemoteListing, sale: Sale, context: str) -> InventoryRecord:
    """
    Deduct an eBay sale locally and append its EBAY_SALE entry

    The snapshot quantity moves to the live eBay quantity in the same write
    so the same drop is never counted twice, even if a later step of the
    sync fails. Timestamps are left alone: a sale is neither a local edit
    nor a full sync, so snapshot.taken_at stays equal to last_sync_time.

    Args:
        store: InventoryStore
        record: Record before the sale
        listing: Live listing that revealed the sale
        sale: Units sold and resulting quantity
        context: Operation name for the history note

    Returns:
        Updated record
    """
    previous = record.ebay_sync.snapshot
    if previous is not None:
        snapshot = previous.model_copy(update={"quantity": listing.quantity})
        ebay_sync = record.ebay_sync.model_copy(update={"snapshot": snapshot})
    else:
        # First snapshot for this record; anchor it at the last known sync or local edit
        anchor = record.ebay_sync.last_sync_time or record.last_modified
        snapshot = capture_remote_snapshot(listing, taken_at=anchor)
        ebay_sync = record.ebay_sync.model_copy(update={"snapshot": snapshot, "last_sync_time": anchor})
    updated = await record_quantity_change(
        store,
        record.sku,
        sale.new_qty,
        sale_entry(sale.sold, sale.new_qty, context),
        last_synced_qty=sale.new_qty,
        ebay_sync=ebay_sync,
        last_modified=record.last_modified,
    )
    logger.info(f"{record.sku}: {sale.sold} sold on eBay, quantity now {sale.new_qty}")
    return updated
