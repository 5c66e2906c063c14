"""
Smart sync: two-way reconciliation with eBay sales detection
"""
import logging

from ..errors import AccountNotAuthenticated
from ..inventory import InventoryRecord, RemoteListing
from .changes import detect_changes, local_matches_snapshot
from .resolver import compute_sale
from .results import ItemError, ItemRef, QuantityUpdate, SaleItem, SkippedItem, SmartSyncResult
from .snapshot import baseline_quantity
from .transfer import apply_sale, export_record, import_listing, index_listings

logger = logging.getLogger(__name__)


def is_in_sync(record: InventoryRecord, listing: RemoteListing) -> bool:
    """Neither eBay nor the warehouse changed a tracked field since the last snapshot"""
    snapshot = record.ebay_sync.snapshot
    if snapshot is None:
        return False
    return not detect_changes(listing, snapshot) and local_matches_snapshot(record)


async def smart_sync(client, store, account_id: str) -> SmartSyncResult:
    """
    Full bidirectional pass for one account

    1. Items on both sides: deduct eBay sales (remote below the baseline
       quantity), then push the reconciled record back to eBay
    2. eBay-only items: import
    3. Local-only items: export

    Args:
        client: eBay client
        store: InventoryStore
        account_id: eBay account

    Returns:
        SmartSyncResult with imported, exported, updated, sales, skipped and errors
    """
    result = SmartSyncResult()

    remote, invalid = index_listings(await client.fetch_listings(account_id))
    for listing in invalid:
        result.errors.append(ItemError(sku=listing.title or "unknown", error="Listing has neither SKU nor item id"))

    records = await store.list_records()
    local = {record.sku: record for record in records}
    logger.info(f"Smart sync for {account_id}: {len(remote)} eBay listings, {len(local)} local items")

    processed = set()

    # Items on both sides
    for sku, listing in remote.items():
        record = local.get(sku)
        if record is None:
            continue
        processed.add(sku)

        try:
            if is_in_sync(record, listing):
                result.skipped.append(SkippedItem(sku=sku, reason="no changes"))
                continue

            baseline = baseline_quantity(record)
            sale = compute_sale(baseline.quantity, listing.quantity, record.current_qty)
            if sale is not None:
                record = await apply_sale(store, record, listing, sale, "sync")
                result.sales.append(SaleItem(sku=sku, sold=sale.sold, new_qty=sale.new_qty))

            record = await export_record(client, store, account_id, record, ebay_item_id=listing.item_id)
            result.updated.append(
                QuantityUpdate(sku=sku, qty=record.current_qty, sales_detected=sale.sold if sale else 0)
            )

        except AccountNotAuthenticated:
            raise
        except Exception as e:
            logger.error(f"Sync failed for {sku}: {str(e)}")
            result.errors.append(ItemError(sku=sku, error=str(e)))

    # eBay-only items
    for sku, listing in remote.items():
        if sku in processed:
            continue
        try:
            await import_listing(store, listing)
            result.imported.append(ItemRef(sku=sku, title=listing.title))
        except AccountNotAuthenticated:
            raise
        except Exception as e:
            logger.error(f"Import failed for {sku}: {str(e)}")
            result.errors.append(ItemError(sku=sku, error=f"Import failed: {e}"))

    # Local-only items
    for record in records:
        if record.sku in processed or record.sku in remote:
            continue
        try:
            await export_record(client, store, account_id, record)
            result.exported.append(ItemRef(sku=record.sku, title=record.description))
        except AccountNotAuthenticated:
            raise
        except Exception as e:
            logger.error(f"Export failed for {record.sku}: {str(e)}")
            result.errors.append(ItemError(sku=record.sku, error=f"Export failed: {e}"))

    return result
