"""Store implementations."""

from .base import (
    AUTHOR_PARTITION_PREFIX,
    PRIMARY_PARTITION,
    LinkStore,
    Partition,
    StoreError,
    StoreOpenError,
    StoreWriteError,
    Transaction,
    author_partition,
)
from .sqlite_store import SQLiteLinkStore, open_store

__all__ = [
    "AUTHOR_PARTITION_PREFIX",
    "PRIMARY_PARTITION",
    "LinkStore",
    "Partition",
    "SQLiteLinkStore",
    "StoreError",
    "StoreOpenError",
    "StoreWriteError",
    "Transaction",
    "author_partition",
    "open_store",
]
