"""Tests for pushing local inventory to eBay"""

from datetime import timedelta

import pytest

from stockforge.inventory import HistoryAction, InventoryRecord
from stockforge.sync.push import push_decision, push_to_ebay

from conftest import ACCOUNT, SYNCED_AT, FakeMarketplace, later, listing, synced_record


@pytest.mark.asyncio
async def test_local_price_edit_is_pushed(store):
    await store.create_record(synced_record("A", price=9.99))
    await store.update_record("A", {"price": 12.00, "last_modified": later()})
    market = FakeMarketplace([listing("A", quantity=10, price=9.99)])

    result = await push_to_ebay(market, store, ACCOUNT)

    assert [item.sku for item in result.pushed] == ["A"]
    assert market.listings["A"].price == 12.00
    record = await store.get_record("A")
    assert record.ebay_sync.snapshot.price == 12.00
    assert record.last_synced_qty == 10


@pytest.mark.asyncio
async def test_local_only_record_is_created(store):
    await store.create_record(InventoryRecord(sku="NEW", price=4.0, current_qty=3, description="Fresh"))
    market = FakeMarketplace()

    result = await push_to_ebay(market, store, ACCOUNT)

    assert [item.sku for item in result.created] == ["NEW"]
    assert market.listings["NEW"].quantity == 3
    assert market.listings["NEW"].title == "Fresh"
    record = await store.get_record("NEW")
    assert record.ebay_sync.status == "synced"


@pytest.mark.asyncio
async def test_newer_ebay_edit_blocks_push(store):
    await store.create_record(synced_record("A", price=9.99))
    market = FakeMarketplace([listing("A", quantity=10, price=15.0)])

    result = await push_to_ebay(market, store, ACCOUNT)

    assert result.pushed == []
    assert result.skipped[0].reason == "eBay has newer price"
    assert market.upserts == []


def test_remote_wins_reason_when_both_changed():
    record = synced_record("A", price=9.99).model_copy(
        update={"price": 11.0, "last_modified": SYNCED_AT - timedelta(minutes=1)}
    )
    push, reasons, sale = push_decision(record, listing("A", quantity=10, price=15.0))

    assert not push
    assert reasons == ["eBay price is newer"]
    assert sale is None


def test_newer_local_edit_wins_push_decision():
    record = synced_record("A", price=9.99).model_copy(update={"price": 11.0, "last_modified": later()})
    push, reasons, sale = push_decision(record, listing("A", quantity=10, price=15.0))

    assert push
    assert reasons == []


@pytest.mark.asyncio
async def test_sale_applied_before_push(store):
    await store.create_record(synced_record("A", quantity=10))
    market = FakeMarketplace([listing("A", quantity=10)])
    market.sell("A", 4)

    result = await push_to_ebay(market, store, ACCOUNT)

    record = await store.get_record("A")
    assert record.current_qty == 6
    assert record.history[-1].action == HistoryAction.EBAY_SALE
    assert record.history[-1].new_total == 6
    assert result.errors == []


@pytest.mark.asyncio
async def test_failed_item_does_not_stop_others(store):
    await store.create_record(InventoryRecord(sku="A", current_qty=1, description="One"))
    await store.create_record(InventoryRecord(sku="B", current_qty=2, description="Two"))
    market = FakeMarketplace()
    market.failing.add("A")

    result = await push_to_ebay(market, store, ACCOUNT)

    assert [error.sku for error in result.errors] == ["A"]
    assert [item.sku for item in result.created] == ["B"]
    assert (await store.get_record("A")).ebay_sync.status == "not_synced"


@pytest.mark.asyncio
async def test_first_sync_pushes_every_local_value(store):
    """A paired record without a snapshot overwrites eBay unconditionally"""
    await store.create_record(InventoryRecord(sku="A", current_qty=3, price=5.0, description="Local title"))
    market = FakeMarketplace([listing("A", quantity=8, price=9.99, title="Widget A")])

    result = await push_to_ebay(market, store, ACCOUNT)

    assert [item.sku for item in result.pushed] == ["A"]
    assert result.skipped == []
    remote = market.listings["A"]
    assert (remote.quantity, remote.price, remote.title) == (3, 5.0, "Local title")
    record = await store.get_record("A")
    assert record.current_qty == 3
    assert record.ebay_sync.snapshot.quantity == 3
    assert record.ebay_sync.ebay_item_id == "item-A"


@pytest.mark.asyncio
async def test_sale_then_skip_keeps_sync_timestamps_paired(store):
    await store.create_record(synced_record("A", quantity=10, price=9.99))
    market = FakeMarketplace([listing("A", quantity=10, price=9.99)])
    market.sell("A", 4)
    market.edit("A", price=15.0)

    result = await push_to_ebay(market, store, ACCOUNT)

    assert result.skipped[0].reason == "eBay has newer price"
    record = await store.get_record("A")
    assert record.current_qty == 6
    assert record.ebay_sync.snapshot.quantity == 6
    assert record.ebay_sync.snapshot.price == 9.99
    assert record.ebay_sync.snapshot.taken_at == record.ebay_sync.last_sync_time == SYNCED_AT
    assert record.last_modified == SYNCED_AT
