from __future__ import annotations

import logging
import re
from typing import Callable

from linkeater import codec
from linkeater.models import BadPatternError, Link, QueryResult
from linkeater.store import (
    PRIMARY_PARTITION,
    LinkStore,
    Partition,
    StoreError,
    Transaction,
    author_partition,
)

logger = logging.getLogger(__name__)

_PATTERN_DELIMITER = "/"


def is_pattern_term(term: str) -> bool:
    return (
        len(term) >= 2
        and term.startswith(_PATTERN_DELIMITER)
        and term.endswith(_PATTERN_DELIMITER)
    )


class LinkQueryEngine:
    def __init__(self, store: LinkStore) -> None:
        self.store = store

    def query(self, term: str) -> QueryResult:
        """Search by ``/pattern/`` over urls, otherwise by author name.

        Bad patterns and store failures come back as ``QueryResult.error``.
        """
        normalized = term.strip()
        try:
            if is_pattern_term(normalized):
                return QueryResult(matches=self.search_pattern(normalized[1:-1]))
            return QueryResult(matches=self.search_author(normalized))
        except BadPatternError as exc:
            return QueryResult(error=exc)
        except StoreError as exc:
            logger.exception("Lookup for %r failed", normalized)
            return QueryResult(error=exc)

    def search_pattern(self, pattern: str) -> list[Link]:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise BadPatternError(pattern, str(exc)) from exc

        def _scan(tx: Transaction) -> list[Link]:
            primary = tx.partition(PRIMARY_PARTITION)
            if primary is None:
                return []
            return _decode_entries(
                primary,
                lambda key: compiled.search(key.decode("utf-8", errors="replace")) is not None,
            )

        return self.store.view(_scan)

    def search_author(self, author: str) -> list[Link]:
        def _scan(tx: Transaction) -> list[Link]:
            partition = tx.partition(author_partition(author))
            if partition is None:
                return []
            return _decode_entries(partition)

        return self.store.view(_scan)


def _decode_entries(
    partition: Partition,
    accept: Callable[[bytes], bool] | None = None,
) -> list[Link]:
    links: list[Link] = []
    for key, value in partition.items():
        if accept is not None and not accept(key):
            continue
        try:
            links.append(codec.decode(value))
        except codec.DecodeError as exc:
            logger.warning(
                "Could not decode link %s in %s: %s",
                key.decode("utf-8", errors="replace"),
                partition.name,
                exc,
            )
    return links
