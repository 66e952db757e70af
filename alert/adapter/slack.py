"""Slack 웹훅 알림 채널"""
import logging
from typing import Any

import httpx

from alert.adapter.base import BaseAlertChannel
from alert.exception import AlertSendError
from alert.model import AlertMessage
from settings.model import SlackAlertConfig

logger = logging.getLogger(__name__)


def build_slack_payload(config: SlackAlertConfig, message: AlertMessage) -> dict[str, Any]:
    """Block Kit 형식 메시지 생성"""
    return {
        "channel": config.channel,
        "username": config.username,
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"\U0001F6A8 QueryPush Failure: {message.job_name}"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Database:*\n{message.database}"},
                    {"type": "mrkdwn", "text": f"*Endpoint:*\n{message.endpoint}"},
                    {"type": "mrkdwn", "text": f"*Schedule:*\n`{message.cron}`"},
                    {"type": "mrkdwn", "text": f"*Time:*\n{message.occurred_at:%Y-%m-%d %H:%M:%S}"},
                ],
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Query:*\n```sql\n{message.query_text}\n```"},
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:*\n```\n{message.error_message}\n```"},
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Exception Type: `{message.error_type}`"},
                ],
            },
        ],
    }


class SlackAlertChannel(BaseAlertChannel):
    """Slack Incoming Webhook 전송"""

    name = "slack"

    def __init__(self, config: SlackAlertConfig, client: httpx.AsyncClient):
        self._config = config
        self._client = client

    @property
    def cooldown_minutes(self) -> int:
        return self._config.alert_cooldown_minutes

    async def send(self, message: AlertMessage) -> None:
        logger.info(
            f"Sending Slack alert for query '{message.job_name}' to channel '{self._config.channel}'"
        )
        payload = build_slack_payload(self._config, message)

        try:
            response = await self._client.post(self._config.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise AlertSendError(self.name, message.job_name, f"Slack webhook request failed: {e}") from e

        if not response.is_success:
            raise AlertSendError(
                self.name,
                message.job_name,
                f"Slack webhook returned {response.status_code}: {response.reason_phrase}",
            )
