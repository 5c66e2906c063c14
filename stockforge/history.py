"""History ledger: append-only audit entries for quantity-affecting events"""

import logging
from typing import List

from .inventory import HistoryAction, HistoryEntry, InventoryRecord, utcnow
from .errors import LocalStoreError

logger = logging.getLogger(__name__)


def make_entry(action: HistoryAction, qty: int, new_total: int, note: str = "") -> HistoryEntry:
    """Create a history entry stamped with the current time"""
    return HistoryEntry(date=utcnow(), action=action, qty=qty, new_total=new_total, note=note)


def sale_entry(sold: int, new_total: int, context: str) -> HistoryEntry:
    return make_entry(
        HistoryAction.EBAY_SALE,
        qty=-sold,
        new_total=new_total,
        note=f"{sold} sold on eBay (detected during {context})",
    )


def import_entry(quantity: int, listing_ref: str) -> HistoryEntry:
    return make_entry(
        HistoryAction.EBAY_IMPORT,
        qty=quantity,
        new_total=quantity,
        note=f"Imported from eBay listing {listing_ref}",
    )


def sync_entry(delta: int, new_total: int, note: str = "Synced to eBay") -> HistoryEntry:
    return make_entry(HistoryAction.EBAY_SYNC, qty=delta, new_total=new_total, note=note)


def adjustment_entry(old_qty: int, new_qty: int) -> HistoryEntry:
    diff = new_qty - old_qty
    action = HistoryAction.ADJUST_UP if diff >= 0 else HistoryAction.ADJUST_DOWN
    return make_entry(action, qty=diff, new_total=new_qty, note=f"Quantity adjusted from {old_qty} to {new_qty}")


async def record_quantity_change(store, sku: str, new_qty: int, entry: HistoryEntry, **fields) -> InventoryRecord:
    """
    Write a new quantity together with its history entry

    Both land in one store write: either the record carries the new
    quantity and the entry, or neither.

    Args:
        store: InventoryStore implementation
        sku: Record key
        new_qty: Quantity to store (clamped at 0)
        entry: History entry describing the change
        **fields: Additional record fields to write in the same update

    Returns:
        The updated record including the new entry
    """
    new_qty = max(0, new_qty)
    if entry.new_total != new_qty:
        raise LocalStoreError(f"History total {entry.new_total} does not match quantity {new_qty} for {sku}")

    record = await store.update_record(sku, {"current_qty": new_qty, **fields}, entry=entry)
    logger.debug(f"{sku}: {entry.action} {entry.qty:+d} -> {entry.new_total}")
    return record


async def adjust_quantity(store, sku: str, new_qty: int) -> InventoryRecord:
    """Local quantity edit with an ADJUST_UP/ADJUST_DOWN entry"""
    record = await store.get_record(sku)
    if record is None:
        raise LocalStoreError(f"Item not found: {sku}")
    new_qty = max(0, new_qty)
    return await record_quantity_change(store, sku, new_qty, adjustment_entry(record.current_qty, new_qty))


async def get_history(store, sku: str) -> List[HistoryEntry]:
    record = await store.get_record(sku)
    if record is None:
        raise LocalStoreError(f"Item not found: {sku}")
    return list(record.history)
