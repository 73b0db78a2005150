from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_PREFIX = "LE_"

DEFAULT_REPOST_TEMPLATE = "Nice repost. {author} already posted that on {time}"
DEFAULT_NO_MATCHES_REPLY = "Ain't found no matching links."
DEFAULT_BAD_PATTERN_REPLY = "That ain't a regex, mang."
DEFAULT_STORE_ERROR_REPLY = "Link store is unavailable, try again later."


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(slots=True)
class ChatSettings:
    channel: str | None = None
    lookup_command: str = "^url"
    max_workers: int = 4


@dataclass(slots=True)
class RepliesSettings:
    repost: str = DEFAULT_REPOST_TEMPLATE
    no_matches: str = DEFAULT_NO_MATCHES_REPLY
    bad_pattern: str = DEFAULT_BAD_PATTERN_REPLY
    store_error: str = DEFAULT_STORE_ERROR_REPLY


@dataclass(slots=True)
class StorageSettings:
    path: str = "linkeater.db"
    lock_timeout_seconds: float = 1.0


@dataclass(slots=True)
class NotifierSettings:
    type: str = "console"
    webhook_env_var: str = "SLACK_WEBHOOK_URL"
    timeout_seconds: int = 15
    prefix: str = ""


@dataclass(slots=True)
class AppConfig:
    chat: ChatSettings = field(default_factory=ChatSettings)
    replies: RepliesSettings = field(default_factory=RepliesSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    notifier: NotifierSettings = field(default_factory=NotifierSettings)
    log_level: str = "INFO"


def _as_mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    value = value or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_name} must be a mapping")
    return value


def _as_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_float(value: Any, *, field_name: str, minimum: float | None = None) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")

    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_text(value: Any, *, default: str) -> str:
    if value is None:
        return default
    return str(value).strip() or default


def _check_template(template: str, *, field_name: str) -> str:
    try:
        template.format(author="someone", time="1 Jan 2026 00:00", url="http://example.com")
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError(
            f"{field_name} may only use {{author}}, {{time}} and {{url}} placeholders"
        ) from exc
    return template


def _resolve_relative_path(base_dir: Path, raw_path: str) -> str:
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Load YAML config, then apply ``LE_*`` environment overrides."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            parsed = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file is not valid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    environ = os.environ if environ is None else environ

    raw_chat = _as_mapping(parsed.get("chat"), field_name="chat")
    raw_channel = environ.get(f"{ENV_PREFIX}CHANNEL", raw_chat.get("channel"))
    chat_settings = ChatSettings(
        channel=_as_text(raw_channel, default="") or None,
        lookup_command=_as_text(
            environ.get(f"{ENV_PREFIX}LOOKUPCMD", raw_chat.get("lookup_command")),
            default="^url",
        ),
        max_workers=_as_int(
            raw_chat.get("max_workers", 4),
            field_name="chat.max_workers",
            minimum=1,
        ),
    )

    raw_replies = _as_mapping(parsed.get("replies"), field_name="replies")
    replies_settings = RepliesSettings(
        repost=_check_template(
            _as_text(raw_replies.get("repost"), default=DEFAULT_REPOST_TEMPLATE),
            field_name="replies.repost",
        ),
        no_matches=_as_text(raw_replies.get("no_matches"), default=DEFAULT_NO_MATCHES_REPLY),
        bad_pattern=_as_text(raw_replies.get("bad_pattern"), default=DEFAULT_BAD_PATTERN_REPLY),
        store_error=_as_text(raw_replies.get("store_error"), default=DEFAULT_STORE_ERROR_REPLY),
    )

    raw_storage = _as_mapping(parsed.get("storage"), field_name="storage")
    env_db = environ.get(f"{ENV_PREFIX}DB", "").strip()
    if env_db:
        storage_path = _resolve_relative_path(Path.cwd(), env_db)
    else:
        storage_path = _resolve_relative_path(
            config_path.parent,
            _as_text(raw_storage.get("path"), default="linkeater.db"),
        )
    storage_settings = StorageSettings(
        path=storage_path,
        lock_timeout_seconds=_as_float(
            raw_storage.get("lock_timeout_seconds", 1.0),
            field_name="storage.lock_timeout_seconds",
            minimum=0.0,
        ),
    )

    raw_notifier = _as_mapping(parsed.get("notifier"), field_name="notifier")
    notifier_settings = NotifierSettings(
        type=_as_text(raw_notifier.get("type"), default="console"),
        webhook_env_var=_as_text(
            raw_notifier.get("webhook_env_var"),
            default="SLACK_WEBHOOK_URL",
        ),
        timeout_seconds=_as_int(
            raw_notifier.get("timeout_seconds", 15),
            field_name="notifier.timeout_seconds",
            minimum=1,
        ),
        prefix=str(raw_notifier.get("prefix") or ""),
    )

    log_level = environ.get(f"{ENV_PREFIX}LOG_LEVEL") or parsed.get("log_level", "INFO")

    return AppConfig(
        chat=chat_settings,
        replies=replies_settings,
        storage=storage_settings,
        notifier=notifier_settings,
        log_level=str(log_level).upper(),
    )
