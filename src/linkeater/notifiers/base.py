from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from linkeater.config import NotifierSettings


class NotifierRegistrationError(ValueError):
    """Raised when an unknown notifier type is used."""


class Notifier(ABC):
    notifier_type: ClassVar[str]

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> Notifier:
        """Build the notifier from the ``notifier`` config section."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from settings")

    @abstractmethod
    def notify(self, text: str) -> None:
        """Deliver one reply line to the chat destination."""
