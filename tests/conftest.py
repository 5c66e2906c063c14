"""Shared fixtures: an in-memory eBay marketplace and a temporary JSON store"""

from datetime import datetime, timedelta, timezone

import pytest

from stockforge.errors import AccountNotAuthenticated, RemoteTransportError
from stockforge.inventory import (
    EbaySync,
    InventoryRecord,
    RemoteListing,
    RemoteSnapshot,
    SyncStatus,
)
from stockforge.storage import JsonFileStore

ACCOUNT = "acc_test"
SYNCED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeMarketplace:
    """Stands in for EbayClient: listings live in a dict keyed by SKU"""

    def __init__(self, listings=None):
        self.listings = {listing.key: listing for listing in listings or []}
        self.upserts = []
        self.failing = set()
        self.authenticated = True

    async def fetch_listings(self, account_id):
        if not self.authenticated:
            raise AccountNotAuthenticated(account_id)
        return [listing.model_copy() for listing in self.listings.values()]

    async def upsert_listing(self, account_id, sku, update):
        if sku in self.failing:
            raise RemoteTransportError(f"eBay rejected {sku}", status=500)
        self.upserts.append((sku, update))

        existing = self.listings.get(sku)
        if existing is None:
            self.listings[sku] = RemoteListing(
                item_id=f"item-{sku}",
                sku=sku,
                title=update.title,
                description=update.description,
                price=update.price,
                quantity=update.quantity,
            )
        else:
            self.listings[sku] = existing.model_copy(
                update={"quantity": update.quantity, "price": update.price, "title": update.title}
            )
        return {"sku": sku, "offers_updated": 1 if existing else 0}

    def sell(self, sku, units):
        listing = self.listings[sku]
        self.listings[sku] = listing.model_copy(
            update={"quantity": listing.quantity - units, "quantity_sold": listing.quantity_sold + units}
        )

    def edit(self, sku, **fields):
        self.listings[sku] = self.listings[sku].model_copy(update=fields)


def listing(sku, quantity=5, price=9.99, title=None, item_id=None):
    return RemoteListing(
        item_id=item_id or f"item-{sku}",
        sku=sku,
        title=title if title is not None else f"Widget {sku}",
        price=price,
        quantity=quantity,
    )


def synced_record(sku, quantity=10, price=9.99, title=None, synced_at=SYNCED_AT, **overrides):
    """A record that was synced at synced_at and not touched since"""
    title = title if title is not None else f"Widget {sku}"
    fields = dict(
        sku=sku,
        price=price,
        current_qty=quantity,
        last_synced_qty=quantity,
        description=title,
        date_added=synced_at,
        last_modified=synced_at,
        ebay_sync=EbaySync(
            snapshot=RemoteSnapshot(quantity=quantity, price=price, title=title, taken_at=synced_at),
            last_sync_time=synced_at,
            ebay_item_id=f"item-{sku}",
            status=SyncStatus.SYNCED,
        ),
    )
    fields.update(overrides)
    return InventoryRecord(**fields)


def later(minutes=5):
    return SYNCED_AT + timedelta(minutes=minutes)


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "inventory.json"), str(tmp_path / ".ebay-accounts.json"))


@pytest.fixture
def market():
    return FakeMarketplace()
