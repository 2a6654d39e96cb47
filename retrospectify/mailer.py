"""Delivery of retrospective reports by e-mail.

No transport is wired up: messages are validated and logged, and the caller
receives a delivery record.
"""

import logging
from datetime import date
from typing import Any

from .models import utc_now_iso

logger = logging.getLogger(__name__)

LOG_BODY_PREVIEW_CHARS = 200


def report_subject(team_name: str, day: date) -> str:
    return f"Retrospective Report for {team_name} - {day:%m/%d/%Y}"


def send_email(to: list[str], subject: str, html_body: str) -> dict[str, Any]:
    """
    Send an HTML e-mail.

    Args:
        to: Recipient addresses
        subject: Subject line
        html_body: HTML body

    Returns:
        Delivery record with recipients and timestamp

    Raises:
        ValueError: If recipients, subject or body are missing
    """
    recipients = [address.strip() for address in to if address and address.strip()]
    if not recipients or not subject or not html_body:
        raise ValueError("Missing required fields: to, subject, html_body")

    logger.info(
        "E-mail queued to %s: %s (%s...)",
        ", ".join(recipients),
        subject,
        html_body[:LOG_BODY_PREVIEW_CHARS],
    )
    return {"to": recipients, "subject": subject, "sent_at": utc_now_iso()}
