"""Tests for two-way smart sync"""

import pytest

from stockforge.errors import LocalStoreError
from stockforge.inventory import HistoryAction, InventoryRecord
from stockforge.storage import JsonFileStore
from stockforge.sync.smart import smart_sync

from conftest import ACCOUNT, FakeMarketplace, listing, synced_record


@pytest.mark.asyncio
async def test_imports_exports_and_updates(store):
    await store.create_record(synced_record("PAIRED", quantity=10))
    await store.create_record(InventoryRecord(sku="LOCAL", current_qty=2, price=5.0, description="Local only"))
    market = FakeMarketplace([listing("PAIRED", quantity=10), listing("REMOTE", quantity=4)])
    await store.update_record("PAIRED", {"current_qty": 12})

    result = await smart_sync(market, store, ACCOUNT)

    assert [item.sku for item in result.imported] == ["REMOTE"]
    assert [item.sku for item in result.exported] == ["LOCAL"]
    assert [(u.sku, u.qty) for u in result.updated] == [("PAIRED", 12)]
    assert market.listings["PAIRED"].quantity == 12
    assert market.listings["LOCAL"].quantity == 2
    assert (await store.get_record("REMOTE")).current_qty == 4


@pytest.mark.asyncio
async def test_sale_detected_and_pushed_back(store):
    await store.create_record(synced_record("A", quantity=10))
    market = FakeMarketplace([listing("A", quantity=10)])
    market.sell("A", 3)

    result = await smart_sync(market, store, ACCOUNT)

    assert [(s.sku, s.sold, s.new_qty) for s in result.sales] == [("A", 3, 7)]
    assert result.updated[0].sales_detected == 3
    assert result.total_sold == 3
    record = await store.get_record("A")
    assert record.current_qty == 7
    assert record.history[-1].action == HistoryAction.EBAY_SALE
    assert record.history[-1].new_total == record.current_qty
    assert market.listings["A"].quantity == 7


@pytest.mark.asyncio
async def test_second_run_changes_nothing(store):
    await store.create_record(synced_record("A", quantity=10))
    await store.create_record(InventoryRecord(sku="LOCAL", current_qty=2, description="Local only"))
    market = FakeMarketplace([listing("A", quantity=10), listing("REMOTE", quantity=4)])
    market.sell("A", 2)

    await smart_sync(market, store, ACCOUNT)
    snapshot_before = {record.sku: record.model_dump() for record in await store.list_records()}
    upserts_before = len(market.upserts)

    result = await smart_sync(market, store, ACCOUNT)

    assert result.imported == []
    assert result.exported == []
    assert result.updated == []
    assert result.sales == []
    assert sorted(item.sku for item in result.skipped) == ["A", "LOCAL", "REMOTE"]
    assert len(market.upserts) == upserts_before
    snapshot_after = {record.sku: record.model_dump() for record in await store.list_records()}
    assert snapshot_after == snapshot_before
    assert result.message() == "Sync complete: No changes"


@pytest.mark.asyncio
async def test_quantity_never_negative(store):
    await store.create_record(synced_record("A", quantity=10))
    await store.update_record("A", {"current_qty": 2})
    market = FakeMarketplace([listing("A", quantity=10)])
    market.sell("A", 5)

    result = await smart_sync(market, store, ACCOUNT)

    record = await store.get_record("A")
    assert result.sales[0].sold == 5
    assert record.current_qty == 0
    assert record.history[-1].new_total == 0
    assert market.listings["A"].quantity == 0


@pytest.mark.asyncio
async def test_export_failure_is_reported(store):
    await store.create_record(InventoryRecord(sku="LOCAL", current_qty=2, description="Local only"))
    market = FakeMarketplace()
    market.failing.add("LOCAL")

    result = await smart_sync(market, store, ACCOUNT)

    assert len(result.errors) == 1
    assert result.errors[0].error.startswith("Export failed: ")
    assert "1 errors" in result.message()


class FailingWriteStore(JsonFileStore):
    """JSON store whose next `failures` inventory writes raise"""

    failures = 0

    def _commit_items(self, items):
        if self.failures:
            self.failures -= 1
            raise LocalStoreError("disk full")
        super()._commit_items(items)


@pytest.mark.asyncio
async def test_failed_sale_write_is_retried_on_next_sync(tmp_path):
    store = FailingWriteStore(str(tmp_path / "inventory.json"), str(tmp_path / "accounts.json"))
    await store.create_record(synced_record("A", quantity=10))
    market = FakeMarketplace([listing("A", quantity=10)])
    market.sell("A", 3)

    store.failures = 1
    first = await smart_sync(market, store, ACCOUNT)

    assert [error.error for error in first.errors] == ["disk full"]
    assert first.sales == []
    record = await store.get_record("A")
    assert record.current_qty == 10
    assert record.ebay_sync.snapshot.quantity == 10
    assert record.history == []

    second = await smart_sync(market, store, ACCOUNT)

    assert [(s.sku, s.sold) for s in second.sales] == [("A", 3)]
    record = await store.get_record("A")
    sales = [entry for entry in record.history if entry.action == HistoryAction.EBAY_SALE]
    assert len(sales) == 1
    assert record.current_qty == 7
    assert record.history[-1].new_total == record.current_qty
