from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import datetime, timezone

import pytest

from linkeater.ingest import LinkIngestor
from linkeater.models import BadPatternError
from linkeater.query import LinkQueryEngine, is_pattern_term
from linkeater.store import PRIMARY_PARTITION, StoreError, author_partition, open_store


@pytest.fixture
def store(tmp_path):
    with open_store(tmp_path / "links.db") as opened:
        ingestor = LinkIngestor(
            opened,
            clock=lambda: datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        )
        ingestor.ingest(["http://a.com/x"], "alice")
        ingestor.ingest(["http://b.com/y"], "bob")
        yield opened


def test_pattern_search_returns_only_matching_urls(store) -> None:
    result = LinkQueryEngine(store).query(r"/a\.com/")

    assert result.ok
    assert [link.url for link in result.matches] == ["http://a.com/x"]
    assert result.matches[0].author == "alice"


def test_pattern_search_matches_anywhere_in_url(store) -> None:
    result = LinkQueryEngine(store).query("/com/")

    assert [link.url for link in result.matches] == ["http://a.com/x", "http://b.com/y"]


def test_pattern_term_is_trimmed(store) -> None:
    result = LinkQueryEngine(store).query("  /b\\.com/  ")

    assert [link.url for link in result.matches] == ["http://b.com/y"]


def test_invalid_pattern_is_an_error_not_an_empty_result(store) -> None:
    result = LinkQueryEngine(store).query("/[a-/")

    assert not result.ok
    assert isinstance(result.error, BadPatternError)
    assert result.error.pattern == "[a-"
    assert result.matches == []


def test_search_pattern_raises_bad_pattern_error(store) -> None:
    with pytest.raises(BadPatternError):
        LinkQueryEngine(store).search_pattern("(unbalanced")


def test_pattern_without_matches_is_empty(store) -> None:
    result = LinkQueryEngine(store).query("/nowhere/")

    assert result.ok
    assert result.matches == []


def test_author_search_returns_only_that_authors_links(store) -> None:
    result = LinkQueryEngine(store).query("alice")

    assert result.ok
    assert len(result.matches) == 1
    link = result.matches[0]
    assert link.url == "http://a.com/x"
    assert link.author == "alice"
    assert link.timestamp == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_author_search_for_unknown_author_is_empty(store) -> None:
    result = LinkQueryEngine(store).query("carol")

    assert result.ok
    assert result.matches == []


def test_author_named_like_primary_partition_does_not_see_all_links(store) -> None:
    assert LinkQueryEngine(store).query(PRIMARY_PARTITION).matches == []


def test_undecodable_entries_are_skipped_in_both_modes(store, caplog) -> None:
    def _corrupt(tx) -> None:
        tx.partition(PRIMARY_PARTITION).put(b"http://a.com/broken", b"\x00\x01")
        tx.partition(author_partition("alice")).put(b"http://a.com/broken", b"\x00\x01")

    store.update(_corrupt)
    engine = LinkQueryEngine(store)

    by_pattern = engine.query("/a\\.com/")
    by_author = engine.query("alice")

    assert [link.url for link in by_pattern.matches] == ["http://a.com/x"]
    assert [link.url for link in by_author.matches] == ["http://a.com/x"]
    assert "Could not decode link http://a.com/broken" in caplog.text


@pytest.mark.parametrize(
    ("term", "expected"),
    [
        ("/abc/", True),
        ("//", True),
        ("/", False),
        ("abc", False),
        ("/abc", False),
    ],
)
def test_is_pattern_term(term: str, expected: bool) -> None:
    assert is_pattern_term(term) is expected


def test_store_failure_is_logged_and_returned_as_error(tmp_path, caplog) -> None:
    db_path = tmp_path / "links.db"
    with open_store(db_path) as opened:
        LinkIngestor(opened).ingest(["http://a.com/x"], "alice")
        with closing(sqlite3.connect(db_path)) as raw:
            raw.execute("DROP TABLE entries")
            raw.commit()

        engine = LinkQueryEngine(opened)
        by_author = engine.query("alice")
        by_pattern = engine.query("/a/")

    for result in (by_author, by_pattern):
        assert not result.ok
        assert isinstance(result.error, StoreError)
        assert result.matches == []
    assert "Lookup for 'alice' failed" in caplog.text


def test_closed_store_query_returns_error(tmp_path) -> None:
    closed = open_store(tmp_path / "links.db")
    closed.close()

    result = LinkQueryEngine(closed).query("alice")

    assert isinstance(result.error, StoreError)
