"""Conflict resolution for fields changed on eBay since the last sync"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from ..inventory import InventoryRecord, RemoteListing
from .changes import TRACKED_FIELDS, FieldChange, local_values, remote_values, snapshot_values, values_differ

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Action(str, Enum):
    ACCEPT_REMOTE = "ACCEPT_REMOTE"
    KEEP_LOCAL = "KEEP_LOCAL"
    APPLY_SALE = "APPLY_SALE"


@dataclass(frozen=True)
class Sale:
    sold: int
    new_qty: int


@dataclass(frozen=True)
class Resolution:
    """Decision for one field; value is the local value to end up with"""
    field: str
    action: Action
    value: Any
    sold: int = 0
    local_changed: bool = False


def compute_sale(baseline_qty: int, remote_qty: int, local_qty: int) -> Optional[Sale]:
    """
    Interpret a remote quantity drop as an eBay sale

    Args:
        baseline_qty: Quantity eBay held at the last sync
        remote_qty: Quantity eBay reports now
        local_qty: Quantity currently in the warehouse

    Returns:
        Sale with the units sold and the new local quantity, or None if
        eBay did not go down
    """
    if remote_qty >= baseline_qty:
        return None
    sold = max(0, baseline_qty - remote_qty)
    return Sale(sold=sold, new_qty=max(0, local_qty - sold))


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_wins(local_modified: Optional[datetime], last_sync_time: Optional[datetime]) -> bool:
    """Later timestamp wins; a tie keeps the local value"""
    return _aware(local_modified) >= _aware(last_sync_time)


def resolve_change(
    change: FieldChange,
    local_value: Any,
    snapshot_value: Any,
    local_modified: Optional[datetime],
    last_sync_time: Optional[datetime],
    local_qty: Optional[int] = None,
) -> Resolution:
    """
    Decide how one remotely changed field is reconciled

    Args:
        change: Change reported by detect_changes (not the bootstrap sentinel)
        local_value: Current local value of the field
        snapshot_value: Value stored in the snapshot
        local_modified: Record's last local modification time
        last_sync_time: Time of the last successful sync
        local_qty: Current local quantity (defaults to local_value for quantity)

    Returns:
        Resolution for the field
    """
    if change.is_bootstrap:
        raise ValueError("Bootstrap change must be expanded with resolve_all")

    local_changed = values_differ(change.field, local_value, snapshot_value)

    if change.field == "quantity":
        current_qty = local_value if local_qty is None else local_qty
        sale = compute_sale(int(snapshot_value or 0), int(change.new_value or 0), int(current_qty or 0))
        if sale is not None:
            return Resolution(change.field, Action.APPLY_SALE, sale.new_qty, sold=sale.sold,
                              local_changed=local_changed)

    if not local_changed:
        return Resolution(change.field, Action.ACCEPT_REMOTE, change.new_value)

    if local_wins(local_modified, last_sync_time):
        return Resolution(change.field, Action.KEEP_LOCAL, local_value, local_changed=True)
    return Resolution(change.field, Action.ACCEPT_REMOTE, change.new_value, local_changed=True)


def resolve_all(changes: List[FieldChange], record: InventoryRecord, listing: RemoteListing) -> List[Resolution]:
    """
    Resolve every detected change for a record

    The bootstrap sentinel expands to ACCEPT_REMOTE on each tracked field,
    with the remote quantity taken as the new baseline and no sale inferred.
    """
    if any(change.is_bootstrap for change in changes):
        remote = remote_values(listing)
        return [Resolution(field, Action.ACCEPT_REMOTE, remote[field]) for field in TRACKED_FIELDS]

    snapshot = snapshot_values(record.ebay_sync.snapshot)
    local = local_values(record)
    return [
        resolve_change(
            change,
            local_value=local[change.field],
            snapshot_value=snapshot[change.field],
            local_modified=record.last_modified,
            last_sync_time=record.ebay_sync.last_sync_time,
            local_qty=record.current_qty,
        )
        for change in changes
    ]
