"""
Pull: reconcile eBay listings into local inventory
"""
import logging
from typing import Optional

from ..errors import AccountNotAuthenticated
from ..history import record_quantity_change, sale_entry, sync_entry
from ..inventory import InventoryRecord, RemoteListing, utcnow
from .changes import detect_changes
from .resolver import Action, resolve_all
from .results import CreatedItem, FieldUpdate, ItemError, PullResult, SkippedItem
from .snapshot import capture_remote_snapshot, synced_state
from .transfer import import_listing

logger = logging.getLogger(__name__)

FIELD_TARGETS = {"price": "price", "title": "description"}


async def reconcile_from_remote(store, record: InventoryRecord, listing: RemoteListing) -> Optional[FieldUpdate]:
    """
    Apply eBay-side changes to one existing record

    Args:
        store: InventoryStore
        record: Local record paired with the listing
        listing: Live eBay listing

    Returns:
        FieldUpdate naming the fields taken from eBay, or None when every
        changed field kept its local value
    """
    changes = detect_changes(listing, record.ebay_sync.snapshot)
    resolutions = resolve_all(changes, record, listing)

    updates = {}
    fields = []
    new_qty = record.current_qty
    entry = None

    for resolution in resolutions:
        if resolution.action == Action.KEEP_LOCAL:
            continue
        fields.append(resolution.field)

        if resolution.field == "quantity":
            new_qty = max(0, int(resolution.value))
            if resolution.action == Action.APPLY_SALE:
                entry = sale_entry(resolution.sold, new_qty, "pull")
            elif new_qty != record.current_qty:
                entry = sync_entry(new_qty - record.current_qty, new_qty, note="Quantity taken from eBay")
        else:
            updates[FIELD_TARGETS[resolution.field]] = resolution.value

    if not fields:
        return None

    now = utcnow()
    updates.update(
        last_synced_qty=new_qty,
        ebay_sync=synced_state(capture_remote_snapshot(listing, taken_at=now), record.ebay_sync, listing.item_id),
        last_modified=now,
    )

    if entry is not None:
        await record_quantity_change(store, record.sku, new_qty, entry, **updates)
    else:
        await store.update_record(record.sku, {"current_qty": new_qty, **updates})

    return FieldUpdate(sku=record.sku, fields=fields)


async def pull_from_ebay(client, store, account_id: str) -> PullResult:
    """
    eBay -> local for every active listing of an account

    Listings without a local record are imported; paired records are
    reconciled field by field. One failing listing never stops the rest.

    Args:
        client: eBay client
        store: InventoryStore
        account_id: eBay account

    Returns:
        PullResult with created, updated, skipped and errors
    """
    result = PullResult()
    listings = await client.fetch_listings(account_id)
    logger.info(f"Pulling {len(listings)} eBay listings for {account_id}")

    for listing in listings:
        key = listing.key or listing.title or "unknown"
        try:
            sku = listing.require_key()
            record = await store.get_record(sku)

            if record is None:
                await import_listing(store, listing)
                result.created.append(CreatedItem(sku=sku, title=listing.title, source="ebay"))
                continue

            if not detect_changes(listing, record.ebay_sync.snapshot):
                result.skipped.append(SkippedItem(sku=sku, reason="no changes"))
                continue

            update = await reconcile_from_remote(store, record, listing)
            if update is None:
                result.skipped.append(SkippedItem(sku=sku, reason="local changes are newer"))
            else:
                logger.info(f"Updated {sku} from eBay: {', '.join(update.fields)}")
                result.updated.append(update)

        except AccountNotAuthenticated:
            raise
        except Exception as e:
            logger.error(f"Pull failed for {key}: {str(e)}")
            result.errors.append(ItemError(sku=key, error=str(e)))

    return result
