"""Inventory and account storage backends"""

from .base import InventoryStore, AccountStore
from .json_store import JsonFileStore
from .sql_store import SqlStore

__all__ = ["InventoryStore", "AccountStore", "JsonFileStore", "SqlStore"]
