from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.settings import settings

logger = logging.getLogger(__name__)


def build_transaction_message(
    event: str,
    transaction: Any,
    *,
    old_status: str | None = None,
) -> tuple[str, str] | None:
    """Map a committed lifecycle event to an email ``(subject, message)`` or None."""
    if event == "created":
        return (
            "New Transaction Submitted",
            f"A new transaction was submitted by {transaction.created_by}.",
        )
    if event == "verified":
        return (
            "Transaction Verified",
            f"Transaction {transaction.id} has been verified by {transaction.verified_by}.",
        )
    if event in {"approved", "denied"} and old_status != transaction.status:
        return (
            "Transaction Status Updated",
            f"Transaction {transaction.id} status changed to {transaction.status}.",
        )
    return None


async def send_email(subject: str, message: str) -> bool:
    if not settings.resend_api_key or not settings.notification_recipients:
        logger.debug("Notifications disabled; skipping %r", subject)
        return False
    payload = {
        "from": settings.notification_sender,
        "to": settings.notification_recipients,
        "subject": subject,
        "html": f"<strong>{message}</strong>",
    }
    headers = {"Authorization": f"Bearer {settings.resend_api_key}"}
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(settings.resend_api_url, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Notification %r failed: %s", subject, exc)
        return False
    logger.info("Notification %r sent", subject)
    return True


async def notify_transaction_event(
    event: str, transaction: Any, *, old_status: str | None = None
) -> bool:
    message = build_transaction_message(event, transaction, old_status=old_status)
    if message is None:
        return False
    subject, body = message
    return await send_email(subject, body)
