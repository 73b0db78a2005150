"""Chat reply notifiers, selected by the ``notifier.type`` setting."""

from __future__ import annotations

from linkeater.config import NotifierSettings

from .base import Notifier, NotifierRegistrationError
from .console import ConsoleNotifier
from .slack_webhook import SlackWebhookNotifier, build_slack_payload

NOTIFIER_TYPES: dict[str, type[Notifier]] = {
    cls.notifier_type: cls for cls in (ConsoleNotifier, SlackWebhookNotifier)
}


def create_notifier(settings: NotifierSettings) -> Notifier:
    notifier_cls = NOTIFIER_TYPES.get(settings.type)
    if notifier_cls is None:
        available = ", ".join(sorted(NOTIFIER_TYPES))
        raise NotifierRegistrationError(
            f"Unknown notifier type '{settings.type}'. Known notifier types: {available}"
        )
    return notifier_cls.from_settings(settings)


__all__ = [
    "NOTIFIER_TYPES",
    "ConsoleNotifier",
    "Notifier",
    "NotifierRegistrationError",
    "SlackWebhookNotifier",
    "build_slack_payload",
    "create_notifier",
]
