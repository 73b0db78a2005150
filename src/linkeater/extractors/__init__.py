"""Link extractor implementations."""

from .base import Extractor
from .regex_extractor import RegexLinkExtractor

__all__ = ["Extractor", "RegexLinkExtractor"]
