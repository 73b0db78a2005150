from __future__ import annotations

from abc import ABC, abstractmethod


class Extractor(ABC):
    @abstractmethod
    def extract(self, text: str) -> list[str]:
        """Return candidate urls found in text, in order of appearance."""
