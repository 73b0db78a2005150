from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from linkeater import codec
from linkeater.models import Link, Outcome, Repost, Skipped, Stored
from linkeater.store import PRIMARY_PARTITION, LinkStore, StoreError, Transaction, author_partition
from linkeater.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class LinkIngestor:
    """Records first posters of urls and reports reposts.

    Every batch runs inside a single write scope, so the existence check and
    the insert for a url can never interleave with another batch.
    """

    def __init__(self, store: LinkStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self.clock = clock

    def ingest(
        self,
        urls: Sequence[str],
        author: str,
        channel: str | None = None,
    ) -> list[Outcome]:
        if not urls:
            return []
        if not author:
            logger.warning("Ignoring %d links without an author in %s", len(urls), channel or "-")
            return [Skipped(url=url, reason="missing author") for url in urls]

        try:
            return self.store.update(lambda tx: self._ingest_batch(tx, urls, author))
        except StoreError:
            logger.exception(
                "Dropped batch of %d links from %s in %s",
                len(urls),
                author,
                channel or "-",
            )
            return []

    def _ingest_batch(self, tx: Transaction, urls: Sequence[str], author: str) -> list[Outcome]:
        primary = tx.create_partition_if_missing(PRIMARY_PARTITION)
        outcomes: list[Outcome] = []

        for url in urls:
            try:
                key = codec.url_key(url)
            except codec.EncodeError as exc:
                logger.warning("Skipping link %r: %s", url, exc)
                outcomes.append(Skipped(url=url, reason=str(exc)))
                continue

            existing = primary.get(key)
            if existing is not None:
                try:
                    original = codec.decode(existing)
                except codec.DecodeError as exc:
                    logger.warning("Error decoding link %s: %s", url, exc)
                    outcomes.append(Skipped(url=url, reason=str(exc)))
                    continue

                outcomes.append(
                    Repost(
                        url=url,
                        original_author=original.author,
                        original_time=original.timestamp,
                    )
                )
                continue

            link = Link(url=url, author=author, timestamp=self.clock())
            try:
                encoded = codec.encode(link)
            except codec.EncodeError as exc:
                logger.warning("Error encoding link %r: %s", url, exc)
                outcomes.append(Skipped(url=url, reason=str(exc)))
                continue

            logger.info("Storing link: %s", url)
            primary.put(key, encoded)
            tx.create_partition_if_missing(author_partition(author)).put(key, encoded)
            outcomes.append(Stored(url=url, link=link))

        return outcomes
