"""Slack incoming-webhook notifications."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from .github.rate_limit import make_rate_limited_session

logger = logging.getLogger(__name__)


class SlackNotifier:
    """Posts plain-text messages to a Slack webhook.

    Workflow-style webhooks expect ``{"message": ...}``; classic incoming
    webhooks expect ``{"text": ...}``. Pick with ``field``.
    """

    def __init__(self, webhook_url: str, field: str = 'message',
                 session: Optional[requests.Session] = None, timeout: int = 30):
        if not webhook_url:
            raise ValueError("A Slack webhook URL is required")
        self.webhook_url = webhook_url
        self.field = field
        self.timeout = timeout
        self.session = session or make_rate_limited_session(None, user_agent='telco-bot-slack')

    def post(self, text: str) -> bool:
        """Send ``text``; True when Slack answered HTTP 200."""
        try:
            response = self.session.post(self.webhook_url, json={self.field: text}, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Slack webhook request failed: {e}")
            return False
        if response.status_code != 200:
            logger.error(f"Slack webhook returned HTTP {response.status_code}: {response.text[:200]}")
            return False
        logger.info("Slack notification sent")
        return True


def build_xcrypto_message(total_repos: int, org_count: int, using: int, outdated: int,
                          latest: Optional[str], tracking_url: Optional[str] = None) -> str:
    """Summary of golang.org/x/crypto usage; the tone depends on how many repos lag."""
    lines = []
    if outdated == 0:
        lines.append(":white_check_mark: golang.org/x/crypto check: every repository is on the latest release.")
    elif outdated < 5:
        lines.append(f":warning: golang.org/x/crypto check: {outdated} repositories are behind the latest release.")
    else:
        lines.append(f":rotating_light: golang.org/x/crypto check: {outdated} repositories need a golang.org/x/crypto update.")
    lines.append(f"Scanned {total_repos} repositories across {org_count} organizations; "
                 f"{using} depend on golang.org/x/crypto directly.")
    if latest:
        lines.append(f"Latest release: {latest}")
    if tracking_url:
        lines.append(f"Details: {tracking_url}")
    return '\n'.join(lines)
