"""Byte encoding of :class:`~linkeater.models.Link` records.

Records are stored as UTF-8 JSON objects ``{"url", "user", "time"}`` with an
ISO-8601 UTC timestamp. Keys are the raw UTF-8 bytes of the url.
"""

from __future__ import annotations

import json
from typing import Any

from linkeater.models import Link
from linkeater.utils.datetime_utils import parse_datetime_utc, to_utc


class CodecError(ValueError):
    """Base class for record encoding failures."""


class EncodeError(CodecError):
    """Raised when a link cannot be represented as bytes."""


class DecodeError(CodecError):
    """Raised when bytes are not a valid link record."""


def url_key(url: str) -> bytes:
    try:
        return url.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodeError(f"url is not encodable: {exc}") from exc


def encode(link: Link) -> bytes:
    payload = {
        "url": link.url,
        "user": link.author,
        "time": to_utc(link.timestamp).isoformat(),
    }
    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"cannot encode link {link.url!r}: {exc}") from exc


def decode(data: bytes) -> Link:
    try:
        parsed = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"not a link record: {exc}") from exc

    if not isinstance(parsed, dict):
        raise DecodeError("link record must be a JSON object")

    url = _required_string(parsed, "url")
    author = _required_string(parsed, "user")
    timestamp = parse_datetime_utc(_required_string(parsed, "time"))
    if timestamp is None:
        raise DecodeError(f"link record has an invalid time: {parsed['time']!r}")

    return Link(url=url, author=author, timestamp=timestamp)


def _required_string(parsed: dict[str, Any], field_name: str) -> str:
    value = parsed.get(field_name)
    if not isinstance(value, str) or not value:
        raise DecodeError(f"link record is missing {field_name!r}")
    return value
