"""
Alert Service

Operational alerts for the ETL batch and the experiment calculator. Every
alert is logged at the matching level; when SLACK_WEBHOOK_URL is configured
it is also posted to Slack through slack-sdk's WebhookClient.

Sending never raises: a failed Slack post is logged and reported through the
return value so a broken webhook cannot abort a batch.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from adpulse.core.config import Settings, get_settings
from adpulse.models import Alert, AlertLevel

# Configure module logger
logger = logging.getLogger(__name__)


LOG_LEVELS: Dict[AlertLevel, int] = {
    AlertLevel.INFO: logging.INFO,
    AlertLevel.WARNING: logging.WARNING,
    AlertLevel.ERROR: logging.ERROR,
}

LEVEL_EMOJI: Dict[AlertLevel, str] = {
    AlertLevel.INFO: ':information_source:',
    AlertLevel.WARNING: ':warning:',
    AlertLevel.ERROR: ':rotating_light:',
}


def format_alert_blocks(alert: Alert) -> List[Dict[str, Any]]:
    """
    Build Slack Block Kit blocks for an alert.

    Returns:
        A header section with level and message, followed by a context block
        with the source, business and any details.
    """
    context = [f"*Source:* {alert.source}"]
    if alert.business_id:
        context.append(f"*Business:* {alert.business_id}")
    for key, value in (alert.details or {}).items():
        context.append(f"*{key}:* {value}")

    return [
        {
            'type': 'section',
            'text': {
                'type': 'mrkdwn',
                'text': f"{LEVEL_EMOJI[alert.level]} *{alert.level.value.upper()}* {alert.message}",
            },
        },
        {
            'type': 'context',
            'elements': [{'type': 'mrkdwn', 'text': ' | '.join(context)}],
        },
    ]


class AlertService:
    """
    Logs alerts and forwards them to Slack when a webhook is configured.

    Args:
        settings: Application settings; defaults to get_settings().
        client_factory: Builds the webhook client from a URL. Tests inject a fake.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Callable[[str], Any] = WebhookClient,
    ) -> None:
        self.settings = settings or get_settings()
        self._client_factory = client_factory

    async def send(self, alert: Alert) -> bool:
        """
        Emit an alert.

        Returns:
            True when the alert was delivered to Slack, False when it was only
            logged (no webhook configured or the post failed).
        """
        scope = f" [business {alert.business_id}]" if alert.business_id else ''
        logger.log(LOG_LEVELS[alert.level], f"[{alert.source}]{scope} {alert.message}")

        webhook_url = self.settings.slack_webhook_url
        if not webhook_url:
            return False

        try:
            client = self._client_factory(webhook_url)
            response = await asyncio.to_thread(
                client.send,
                text=f"[{alert.level.value}] {alert.message}",
                blocks=format_alert_blocks(alert),
            )
        except Exception:
            logger.exception("Failed to post alert to Slack")
            return False

        if response.status_code != 200:
            logger.warning(f"Slack webhook returned status {response.status_code}: {response.body}")
            return False

        return True
