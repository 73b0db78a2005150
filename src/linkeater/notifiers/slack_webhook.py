from __future__ import annotations

import os

import requests

from linkeater.config import ConfigError, NotifierSettings

from .base import Notifier


class SlackWebhookNotifier(Notifier):
    notifier_type = "slack_webhook"

    def __init__(self, webhook_url: str, timeout_seconds: int = 15) -> None:
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> SlackWebhookNotifier:
        webhook_url = os.getenv(settings.webhook_env_var, "").strip()
        if not webhook_url:
            raise ConfigError(
                f"Missing Slack webhook URL in environment variable {settings.webhook_env_var}"
            )
        return cls(
            webhook_url=webhook_url,
            timeout_seconds=settings.timeout_seconds,
        )

    def notify(self, text: str) -> None:
        payload = build_slack_payload(text)
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            raise RuntimeError(
                f"Slack webhook returned {response.status_code}: {response.text}"
            )


def build_slack_payload(text: str) -> dict:
    return {
        "text": text,
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": text,
                },
            },
        ],
    }
