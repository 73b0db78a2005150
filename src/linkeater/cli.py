from __future__ import annotations

import argparse
import logging
import sys
from typing import TextIO

from linkeater.bot import LinkEaterBot
from linkeater.config import AppConfig, ConfigError, load_config
from linkeater.extractors import RegexLinkExtractor
from linkeater.ingest import LinkIngestor
from linkeater.logging_config import setup_logging
from linkeater.notifiers import NotifierRegistrationError, create_notifier
from linkeater.query import LinkQueryEngine
from linkeater.store import SQLiteLinkStore, StoreOpenError, open_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkeater",
        description="Record who first posted each chat link and call out reposts.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the link store file")

    post = subparsers.add_parser("post", help="Handle one chat message and print replies")
    post.add_argument("--author", required=True, help="Nick of the message author")
    post.add_argument("--channel", help="Channel the message was sent to")
    post.add_argument("text", nargs="+", help="Message text")

    query = subparsers.add_parser("query", help="Look up links by /pattern/ or author")
    query.add_argument("term", help="Either /regex/ or an author name")

    subparsers.add_parser(
        "listen",
        help="Read channel<TAB>author<TAB>text lines from stdin until EOF",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    log_level = args.log_level or app_config.log_level
    setup_logging(log_level)

    try:
        store = open_store(
            app_config.storage.path,
            lock_timeout=app_config.storage.lock_timeout_seconds,
        )
    except StoreOpenError as exc:
        logger.error("Cannot open link store: %s", exc)
        return 2

    try:
        if args.command == "init-db":
            logger.info("Initialized link store at %s", app_config.storage.path)
            return 0

        try:
            bot = _build_bot(app_config, store)
        except (ConfigError, NotifierRegistrationError) as exc:
            logger.error("%s", exc)
            return 2

        try:
            if args.command == "post":
                channel = args.channel or app_config.chat.channel or ""
                future = bot.handle_message(channel, args.author, " ".join(args.text))
                if future is None:
                    logger.info("Message ignored: no links and no lookup command")
                    return 0
                try:
                    future.result()
                except Exception:  # noqa: BLE001
                    return 1
                return 0

            if args.command == "query":
                result = bot.lookup(args.term)
                return 0 if result.ok else 1

            return _listen(bot, sys.stdin)
        finally:
            bot.shutdown(wait=True)
    finally:
        store.close()


def _build_bot(app_config: AppConfig, store: SQLiteLinkStore) -> LinkEaterBot:
    return LinkEaterBot(
        ingestor=LinkIngestor(store),
        query_engine=LinkQueryEngine(store),
        extractor=RegexLinkExtractor(),
        notifier=create_notifier(app_config.notifier),
        chat=app_config.chat,
        replies=app_config.replies,
    )


def _listen(bot: LinkEaterBot, stream: TextIO) -> int:
    handled = 0
    for line_number, line in enumerate(stream, start=1):
        line = line.rstrip("\r\n")
        if not line:
            continue

        parts = line.split("\t", 2)
        if len(parts) != 3:
            logger.warning("Ignoring malformed line %d: expected 3 tab-separated fields", line_number)
            continue

        channel, author, text = parts
        if bot.handle_message(channel, author, text) is not None:
            handled += 1

    logger.info("Input closed | dispatched=%d", handled)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
