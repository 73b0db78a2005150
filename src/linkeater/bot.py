from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from linkeater.config import ChatSettings, RepliesSettings
from linkeater.extractors import Extractor
from linkeater.ingest import LinkIngestor
from linkeater.models import BadPatternError, Outcome, QueryResult, Repost
from linkeater.notifiers import Notifier
from linkeater.query import LinkQueryEngine
from linkeater.utils.datetime_utils import format_datetime

logger = logging.getLogger(__name__)


class LinkEaterBot:
    """Routes chat events to ingestion or lookup, one pool task per event."""

    def __init__(
        self,
        *,
        ingestor: LinkIngestor,
        query_engine: LinkQueryEngine,
        extractor: Extractor,
        notifier: Notifier,
        chat: ChatSettings,
        replies: RepliesSettings,
    ) -> None:
        self.ingestor = ingestor
        self.query_engine = query_engine
        self.extractor = extractor
        self.notifier = notifier
        self.chat = chat
        self.replies = replies
        self._executor = ThreadPoolExecutor(
            max_workers=chat.max_workers,
            thread_name_prefix="linkeater",
        )

    def handle_message(self, channel: str, author: str, text: str) -> Future | None:
        if self.chat.channel and channel != self.chat.channel:
            return None

        if text.startswith(self.chat.lookup_command):
            term = text[len(self.chat.lookup_command):]
            return self._submit(self.lookup, term)

        links = self.extractor.extract(text)
        if not links:
            return None
        return self._submit(self.store_links, links, author, channel)

    def store_links(self, links: list[str], author: str, channel: str | None = None) -> list[Outcome]:
        outcomes = self.ingestor.ingest(links, author, channel)
        for outcome in outcomes:
            if isinstance(outcome, Repost):
                self.notifier.notify(render_repost_notice(self.replies.repost, outcome))
        return outcomes

    def lookup(self, term: str) -> QueryResult:
        result = self.query_engine.query(term)
        for line in render_lookup_replies(result, self.replies):
            self.notifier.notify(line)
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _submit(self, fn, *args) -> Future:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(_log_task_failure)
        return future


def render_repost_notice(template: str, repost: Repost) -> str:
    return template.format(
        author=repost.original_author,
        time=format_datetime(repost.original_time),
        url=repost.url,
    )


def render_lookup_replies(result: QueryResult, replies: RepliesSettings) -> list[str]:
    if isinstance(result.error, BadPatternError):
        return [replies.bad_pattern]
    if result.error is not None:
        return [replies.store_error]
    if not result.matches:
        return [replies.no_matches]
    # store order is by key; present oldest first
    ordered = sorted(result.matches, key=lambda link: (link.timestamp, link.url))
    return [link.url for link in ordered]


def _log_task_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("chat task failed: %s", exc, exc_info=exc)
