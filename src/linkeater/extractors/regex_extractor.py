from __future__ import annotations

import re

from .base import Extractor

DEFAULT_LINK_PATTERN = re.compile(
    r"((ftp|git|http|https)://(\w+:?\w*@)?(\S+)(:[0-9]+)?(?:/|/([\w#!:.?+=&%@!\-/]))?)"
)


class RegexLinkExtractor(Extractor):
    def __init__(self, pattern: re.Pattern[str] = DEFAULT_LINK_PATTERN) -> None:
        self.pattern = pattern

    def extract(self, text: str) -> list[str]:
        return [match.group(0) for match in self.pattern.finditer(text)]
