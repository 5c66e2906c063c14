"""Tests for the JSON file and SQL storage backends"""

import json

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stockforge.errors import LocalStoreError
from stockforge.history import adjust_quantity, get_history, record_quantity_change, sale_entry
from stockforge.inventory import HistoryAction, InventoryRecord
from stockforge.storage import JsonFileStore, SqlStore

from conftest import later, synced_record


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
    store = SqlStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await store.init_schema()
    yield store
    await engine.dispose()


@pytest.fixture(params=["json", "sql"])
def any_store(request, store, sql_store):
    return store if request.param == "json" else sql_store


@pytest.mark.asyncio
async def test_create_and_get(any_store):
    await any_store.create_record(synced_record("A", quantity=3))

    record = await any_store.get_record("A")
    assert record.current_qty == 3
    assert record.ebay_sync.snapshot.quantity == 3
    assert await any_store.get_record("missing") is None
    assert await any_store.count() == 1


@pytest.mark.asyncio
async def test_duplicate_create_rejected(any_store):
    await any_store.create_record(InventoryRecord(sku="A"))
    with pytest.raises(LocalStoreError):
        await any_store.create_record(InventoryRecord(sku="A"))


@pytest.mark.asyncio
async def test_update_missing_record(any_store):
    with pytest.raises(LocalStoreError):
        await any_store.update_record("missing", {"current_qty": 1})


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(any_store):
    await any_store.create_record(InventoryRecord(sku="A"))
    with pytest.raises(LocalStoreError):
        await any_store.update_record("A", {"colour": "red"})


@pytest.mark.asyncio
async def test_update_stamps_last_modified(any_store):
    await any_store.create_record(synced_record("A"))

    explicit = await any_store.update_record("A", {"price": 1.5, "last_modified": later(30)})
    assert explicit.last_modified == later(30)

    stamped = await any_store.update_record("A", {"price": 2.5})
    assert stamped.last_modified > later(30)


@pytest.mark.asyncio
async def test_history_is_append_only(any_store):
    await any_store.create_record(InventoryRecord(sku="A", current_qty=5))

    await adjust_quantity(any_store, "A", 8)
    await adjust_quantity(any_store, "A", 6)

    history = await get_history(any_store, "A")
    assert [entry.action for entry in history] == [HistoryAction.ADJUST_UP, HistoryAction.ADJUST_DOWN]
    assert [entry.qty for entry in history] == [3, -2]
    assert history[-1].new_total == (await any_store.get_record("A")).current_qty


@pytest.mark.asyncio
async def test_history_total_must_match_quantity(any_store):
    await any_store.create_record(InventoryRecord(sku="A", current_qty=5))
    with pytest.raises(LocalStoreError):
        await record_quantity_change(any_store, "A", 4, sale_entry(1, 3, "pull"))


@pytest.mark.asyncio
async def test_accounts_merge(any_store):
    await any_store.save_account("acc_1", {"name": "Main store"})
    account = await any_store.save_account("acc_1", {"last_sync": later()})

    assert account.name == "Main store"
    assert account.last_sync == later()
    assert [a.account_id for a in await any_store.list_accounts()] == ["acc_1"]
    assert await any_store.delete_account("acc_1")
    assert not await any_store.delete_account("acc_1")


@pytest.mark.asyncio
async def test_json_document_layout(tmp_path):
    store = JsonFileStore(str(tmp_path / "inventory.json"), str(tmp_path / "accounts.json"))
    await store.create_record(InventoryRecord(sku="A", current_qty=2))

    with open(tmp_path / "inventory.json") as f:
        document = json.load(f)
    assert list(document["items"]) == ["A"]
    assert document["metadata"]["totalItems"] == 1
    assert document["metadata"]["version"] == "2.0"

    reloaded = JsonFileStore(str(tmp_path / "inventory.json"), str(tmp_path / "accounts.json"))
    assert (await reloaded.get_record("A")).current_qty == 2


@pytest.mark.asyncio
async def test_corrupt_json_raises(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text("{not json")
    store = JsonFileStore(str(path), str(tmp_path / "accounts.json"))

    with pytest.raises(LocalStoreError):
        await store.list_records()


def test_negative_quantity_is_clamped():
    assert InventoryRecord(sku="A", current_qty=-4).current_qty == 0


@pytest.mark.asyncio
async def test_update_with_entry_writes_both(any_store):
    await any_store.create_record(synced_record("A", quantity=10))

    record = await record_quantity_change(any_store, "A", 7, sale_entry(3, 7, "sync"))

    assert record.current_qty == 7
    assert [entry.action for entry in record.history] == [HistoryAction.EBAY_SALE]
    stored = await any_store.get_record("A")
    assert stored.current_qty == 7
    assert stored.history[-1].new_total == 7


@pytest.mark.asyncio
async def test_append_history_keeps_fields(any_store):
    await any_store.create_record(InventoryRecord(sku="A", current_qty=2))

    record = await any_store.append_history("A", sale_entry(0, 2, "push"))

    assert record.current_qty == 2
    assert len(record.history) == 1


@pytest.mark.asyncio
async def test_delete_record(any_store):
    await any_store.create_record(InventoryRecord(sku="A"))

    deleted = await any_store.delete_record("A")

    assert deleted.sku == "A"
    assert await any_store.get_record("A") is None
    assert await any_store.delete_record("A") is None
    assert await any_store.count() == 0


def block_writes(store, tmp_path):
    """Point the store at paths below a regular file so every write fails"""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store.inventory_path = blocker / "inventory.json"
    store.accounts_path = blocker / "accounts.json"


@pytest.mark.asyncio
async def test_failed_json_write_leaves_record_unchanged(store, tmp_path):
    await store.create_record(synced_record("A", quantity=10))
    block_writes(store, tmp_path)

    with pytest.raises(LocalStoreError):
        await store.update_record("A", {"current_qty": 1})
    with pytest.raises(LocalStoreError):
        await record_quantity_change(store, "A", 7, sale_entry(3, 7, "sync"))
    with pytest.raises(LocalStoreError):
        await store.create_record(InventoryRecord(sku="B"))
    with pytest.raises(LocalStoreError):
        await store.delete_record("A")

    record = await store.get_record("A")
    assert record.current_qty == 10
    assert record.history == []
    assert await store.get_record("B") is None


@pytest.mark.asyncio
async def test_failed_json_write_leaves_accounts_unchanged(store, tmp_path):
    await store.save_account("acc_1", {"name": "Main store"})
    block_writes(store, tmp_path)

    with pytest.raises(LocalStoreError):
        await store.save_account("acc_1", {"name": "Renamed"})
    with pytest.raises(LocalStoreError):
        await store.delete_account("acc_1")

    assert (await store.get_account("acc_1")).name == "Main store"
