from __future__ import annotations

import sqlite3
import threading
from contextlib import closing

import pytest

from linkeater.store import (
    PRIMARY_PARTITION,
    SQLiteLinkStore,
    StoreError,
    StoreOpenError,
    StoreWriteError,
    open_store,
)


def test_open_creates_file_and_primary_partition(tmp_path) -> None:
    db_path = tmp_path / "nested" / "links.db"

    with open_store(db_path) as store:
        names = store.view(lambda tx: tx.partition_names())

    assert db_path.exists()
    assert names == [PRIMARY_PARTITION]


def test_committed_write_is_visible_to_later_reads(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        with store.write() as tx:
            tx.create_partition_if_missing("things").put(b"k", b"v")

        with store.read() as tx:
            partition = tx.partition("things")
            assert partition is not None
            assert partition.get(b"k") == b"v"
            assert partition.get(b"missing") is None
            assert len(partition) == 1


def test_put_replaces_existing_value(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        store.update(lambda tx: tx.create_partition_if_missing("things").put(b"k", b"one"))
        store.update(lambda tx: tx.create_partition_if_missing("things").put(b"k", b"two"))

        assert store.view(lambda tx: tx.partition("things").get(b"k")) == b"two"


def test_iteration_is_ascending_by_raw_key_bytes(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        with store.write() as tx:
            partition = tx.create_partition_if_missing("things")
            for key in (b"b", b"a", b"B", b"\xc3\xa9", b"ab"):
                partition.put(key, key.upper())

        with store.read() as tx:
            keys = [key for key, _ in tx.partition("things").items()]

            seen: list[tuple[bytes, bytes]] = []
            tx.partition("things").for_each(lambda key, value: seen.append((key, value)))

    assert keys == [b"B", b"a", b"ab", b"b", b"\xc3\xa9"]
    assert seen[0] == (b"B", b"B")


def test_missing_partition_is_none(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        assert store.view(lambda tx: tx.partition("nobody")) is None


def test_exception_inside_write_discards_every_mutation(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        with pytest.raises(RuntimeError, match="boom"):
            with store.write() as tx:
                tx.create_partition_if_missing(PRIMARY_PARTITION).put(b"k", b"v")
                tx.create_partition_if_missing("things").put(b"k", b"v")
                raise RuntimeError("boom")

        with store.read() as tx:
            assert tx.partition(PRIMARY_PARTITION).get(b"k") is None
            assert tx.partition("things") is None

        # the writer is usable again after a rollback
        store.update(lambda tx: tx.create_partition_if_missing("things").put(b"k", b"v"))
        assert store.view(lambda tx: tx.partition("things").get(b"k")) == b"v"


def test_read_scope_rejects_writes(tmp_path) -> None:
    with open_store(tmp_path / "links.db") as store:
        with store.read() as tx:
            with pytest.raises(StoreWriteError):
                tx.partition(PRIMARY_PARTITION).put(b"k", b"v")
            with pytest.raises(StoreWriteError):
                tx.create_partition_if_missing("things")


def test_read_does_not_observe_uncommitted_write(tmp_path) -> None:
    written = threading.Event()
    release = threading.Event()

    with open_store(tmp_path / "links.db") as store:

        def _writer() -> None:
            with store.write() as tx:
                tx.create_partition_if_missing(PRIMARY_PARTITION).put(b"k", b"v")
                written.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=_writer)
        thread.start()
        try:
            assert written.wait(timeout=5)
            during = store.view(lambda tx: tx.partition(PRIMARY_PARTITION).get(b"k"))
        finally:
            release.set()
            thread.join(timeout=5)

        after = store.view(lambda tx: tx.partition(PRIMARY_PARTITION).get(b"k"))

    assert during is None
    assert after == b"v"


def test_second_open_of_locked_store_fails_fast(tmp_path) -> None:
    db_path = tmp_path / "links.db"

    with open_store(db_path):
        with pytest.raises(StoreOpenError, match="locked"):
            open_store(db_path, lock_timeout=0.1)

    with open_store(db_path) as reopened:
        assert reopened.is_open


def test_corrupt_file_fails_to_open_and_releases_lock(tmp_path) -> None:
    db_path = tmp_path / "links.db"
    db_path.write_bytes(b"this is definitely not a sqlite database file" * 20)

    with pytest.raises(StoreOpenError):
        open_store(db_path)

    db_path.unlink()
    with open_store(db_path, lock_timeout=0.1) as store:
        assert store.is_open


def test_data_survives_close_and_reopen(tmp_path) -> None:
    db_path = tmp_path / "links.db"

    store = open_store(db_path)
    store.update(lambda tx: tx.create_partition_if_missing("things").put(b"k", b"v"))
    store.close()

    with open_store(db_path) as reopened:
        assert reopened.view(lambda tx: tx.partition("things").get(b"k")) == b"v"


def test_scopes_require_an_open_store(tmp_path) -> None:
    store = SQLiteLinkStore(tmp_path / "links.db")

    with pytest.raises(StoreError):
        with store.read():
            pass
    with pytest.raises(StoreError):
        with store.write():
            pass


def _drop_entries_table(db_path) -> None:
    with closing(sqlite3.connect(db_path)) as raw:
        raw.execute("DROP TABLE entries")
        raw.commit()


def test_backend_failure_in_read_scope_raises_store_error(tmp_path) -> None:
    db_path = tmp_path / "links.db"

    with open_store(db_path) as store:
        _drop_entries_table(db_path)

        with store.read() as tx:
            primary = tx.partition(PRIMARY_PARTITION)
            with pytest.raises(StoreError) as get_error:
                primary.get(b"k")
            with pytest.raises(StoreError) as scan_error:
                list(primary.items())
            with pytest.raises(StoreError):
                len(primary)

    assert type(get_error.value) is StoreError
    assert type(scan_error.value) is StoreError
    assert isinstance(get_error.value.__cause__, sqlite3.Error)


def test_backend_failure_in_write_scope_raises_store_write_error(tmp_path) -> None:
    db_path = tmp_path / "links.db"

    with open_store(db_path) as store:
        _drop_entries_table(db_path)

        with pytest.raises(StoreWriteError):
            store.update(lambda tx: tx.partition(PRIMARY_PARTITION).get(b"k"))
        with pytest.raises(StoreWriteError):
            store.update(lambda tx: list(tx.partition(PRIMARY_PARTITION).items()))
