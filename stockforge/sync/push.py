"""
Push: publish local inventory to eBay without clobbering newer eBay edits
"""
import logging
from typing import List, Optional, Tuple

from ..errors import AccountNotAuthenticated
from ..inventory import InventoryRecord, RemoteListing
from .changes import detect_changes, local_values, remote_values, values_differ
from .resolver import Action, Sale, resolve_all
from .results import ItemError, ItemRef, PushResult, SkippedItem
from .transfer import apply_sale, export_record, index_listings

logger = logging.getLogger(__name__)


def push_decision(record: InventoryRecord, listing: RemoteListing) -> Tuple[bool, List[str], Optional[Sale]]:
    """
    Decide whether a paired record should be pushed

    Args:
        record: Local record
        listing: Live eBay listing for the same SKU

    Returns:
        Tuple of (push, reasons against pushing, sale to apply first)
    """
    changes = detect_changes(listing, record.ebay_sync.snapshot)
    if not changes or changes[0].is_bootstrap:
        return True, [], None

    resolutions = resolve_all(changes, record, listing)
    sale = next(
        (Sale(sold=r.sold, new_qty=r.value) for r in resolutions if r.action == Action.APPLY_SALE),
        None,
    )

    local = local_values(record)
    if sale is not None:
        local["quantity"] = sale.new_qty
    remote = remote_values(listing)

    push_worthy = False
    reasons = []
    for resolution in resolutions:
        field = resolution.field
        if not values_differ(field, local[field], remote[field]):
            continue
        if resolution.action in (Action.KEEP_LOCAL, Action.APPLY_SALE):
            push_worthy = True
        elif resolution.local_changed:
            reasons.append(f"eBay {field} is newer")
        else:
            reasons.append(f"eBay has newer {field}")

    return push_worthy or not reasons, reasons, sale


async def push_to_ebay(client, store, account_id: str) -> PushResult:
    """
    local -> eBay for every local record

    Args:
        client: eBay client
        store: InventoryStore
        account_id: eBay account

    Returns:
        PushResult with created, pushed, skipped and errors
    """
    result = PushResult()
    remote, invalid = index_listings(await client.fetch_listings(account_id))
    if invalid:
        logger.warning(f"Ignoring {len(invalid)} eBay listings without SKU or item id")

    records = await store.list_records()
    logger.info(f"Pushing {len(records)} local items to {account_id}")

    for record in records:
        sku = record.sku
        try:
            listing = remote.get(sku)
            if listing is None:
                await export_record(client, store, account_id, record)
                result.created.append(ItemRef(sku=sku, title=record.description))
                continue

            push, reasons, sale = push_decision(record, listing)
            if sale is not None:
                record = await apply_sale(store, record, listing, sale, "push")

            if not push:
                result.skipped.append(SkippedItem(sku=sku, reason=", ".join(reasons)))
                continue

            await export_record(client, store, account_id, record, ebay_item_id=listing.item_id)
            result.pushed.append(ItemRef(sku=sku, title=record.description))

        except AccountNotAuthenticated:
            raise
        except Exception as e:
            logger.error(f"Push failed for {sku}: {str(e)}")
            result.errors.append(ItemError(sku=sku, error=str(e)))

    return result
