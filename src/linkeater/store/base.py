from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable, Iterator, TypeVar

T = TypeVar("T")

PRIMARY_PARTITION = "urls"
AUTHOR_PARTITION_PREFIX = "author:"


def author_partition(author: str) -> str:
    return f"{AUTHOR_PARTITION_PREFIX}{author}"


class StoreError(RuntimeError):
    """Base class for link store failures."""


class StoreOpenError(StoreError):
    """Raised when the backing file cannot be opened, locked or initialized."""


class StoreWriteError(StoreError):
    """Raised when a write scope cannot be started, applied or committed."""


class Partition(ABC):
    """Named key space holding byte keys and byte values."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under key, or None."""

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate entries ascending by raw key bytes."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of entries in the partition."""

    def for_each(self, fn: Callable[[bytes, bytes], None]) -> None:
        for key, value in self.items():
            fn(key, value)


class Transaction(ABC):
    writable: bool

    @abstractmethod
    def partition(self, name: str) -> Partition | None:
        """Return the named partition, or None when it does not exist."""

    @abstractmethod
    def create_partition_if_missing(self, name: str) -> Partition:
        """Return the named partition, creating it first if needed."""

    @abstractmethod
    def partition_names(self) -> list[str]:
        """Return every partition name in ascending order."""


class LinkStore(ABC):
    """Transactional partitioned store. Backend failures surface as ``StoreError``."""

    @abstractmethod
    def read(self) -> AbstractContextManager[Transaction]:
        """Open a read-only snapshot scope."""

    @abstractmethod
    def write(self) -> AbstractContextManager[Transaction]:
        """Open the single read-write scope, committing on success."""

    @abstractmethod
    def close(self) -> None:
        """Release the backing file."""

    def view(self, fn: Callable[[Transaction], T]) -> T:
        with self.read() as tx:
            return fn(tx)

    def update(self, fn: Callable[[Transaction], T]) -> T:
        with self.write() as tx:
            return fn(tx)

    def __enter__(self) -> LinkStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
