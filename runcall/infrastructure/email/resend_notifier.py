from __future__ import annotations

import logging
import re

import resend

from runcall.application.ports.notifier import NotifierPort
from runcall.core.config import settings

_EMAIL_ONLY = re.compile(r"^[^\s<>@]+@[^\s<>@]+\.[^\s<>@]+$")
_NAME_EMAIL = re.compile(r"^.+\s<[^<>\s@]+@[^<>\s@]+\.[^<>\s@]+>$")


def normalize_from(raw: str | None) -> str | None:
    """Accept "a@b.co" or "Name <a@b.co>", tolerating pasted surrounding quotes."""
    cleaned = (raw or "").strip().strip('"').strip("'").strip()
    if _EMAIL_ONLY.match(cleaned) or _NAME_EMAIL.match(cleaned):
        return cleaned
    return None


class ResendNotifier(NotifierPort):
    def __init__(self, api_key: str | None = None, sender: str | None = None) -> None:
        self._api_key = api_key or settings.RESEND_API_KEY
        self._sender = normalize_from(sender or settings.RESEND_FROM)
        self._logger = logging.getLogger(__name__)

        if not self._api_key:
            raise ValueError("RESEND_API_KEY is required for email notifications")
        if not self._sender:
            raise ValueError("RESEND_FROM must be an address or 'Name <address>'")
        resend.api_key = self._api_key

    def send_email(self, to: str, subject: str, html: str) -> None:
        params = {"from": self._sender, "to": [to], "subject": subject, "html": html}
        resend.Emails.send(params)
        self._logger.info("Email accepted", extra={"reason": subject})
