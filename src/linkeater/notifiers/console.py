from __future__ import annotations

import sys
import threading
from typing import TextIO

from linkeater.config import NotifierSettings

from .base import Notifier


class ConsoleNotifier(Notifier):
    notifier_type = "console"

    def __init__(self, stream: TextIO | None = None, prefix: str = "") -> None:
        self.stream = stream
        self.prefix = prefix
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> ConsoleNotifier:
        return cls(prefix=settings.prefix)

    def notify(self, text: str) -> None:
        stream = self.stream or sys.stdout
        with self._lock:
            print(f"{self.prefix}{text}", file=stream, flush=True)
