"""Push notification system — Pushover and ntfy support.

Sends best-effort push notifications when a closing transaction moves to a
new stage. Delivery is never guaranteed and failures never propagate.
"""

from __future__ import annotations

import httpx

from closing.config import Settings, get_settings
from closing.models import Notification, StageDefinition, TransactionStatus


def send_push(notification: Notification) -> bool:
    """Send a push notification via all configured providers.

    Returns True if at least one provider succeeded.
    """
    settings = get_settings()
    sent = False

    if settings.has_pushover():
        sent = _send_pushover(notification, settings) or sent

    if settings.has_ntfy():
        sent = _send_ntfy(notification, settings) or sent

    return sent


def _send_pushover(notification: Notification, settings: Settings) -> bool:
    """Send via Pushover (https://pushover.net)."""
    priority_map = {
        "low": -1,
        "normal": 0,
        "high": 1,
    }
    payload: dict = {
        "token": settings.pushover_api_token,
        "user": settings.pushover_user_key,
        "title": notification.title,
        "message": notification.body,
        "priority": priority_map.get(notification.priority, 0),
    }
    if notification.url:
        payload["url"] = notification.url
        payload["url_title"] = "Open Transaction"

    try:
        resp = httpx.post("https://api.pushover.net/1/messages.json", data=payload, timeout=10)
        return resp.status_code == 200
    except httpx.HTTPError:
        return False


def _send_ntfy(notification: Notification, settings: Settings) -> bool:
    """Send via ntfy (https://ntfy.sh)."""
    priority_map = {
        "low": "2",
        "normal": "3",
        "high": "4",
    }
    headers: dict = {
        "Title": notification.title,
        "Priority": priority_map.get(notification.priority, "3"),
        "Tags": ",".join(notification.tags or ["house"]),
    }
    if notification.url:
        headers["Click"] = notification.url

    url = f"{settings.ntfy_server}/{settings.ntfy_topic}"
    try:
        resp = httpx.post(url, content=notification.body, headers=headers, timeout=10)
        return resp.status_code == 200
    except httpx.HTTPError:
        return False


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------

def notify_stage_advanced(transaction_id: str, stage: StageDefinition) -> bool:
    """Tell the buyer their transaction moved to a new stage."""
    if stage.id == TransactionStatus.CLOSED:
        title = "Closing day!"
        priority = "high"
    else:
        title = f"Advanced to {stage.label}"
        priority = "normal"

    return send_push(Notification(
        title=title,
        body=stage.description,
        priority=priority,
        transaction_id=transaction_id,
        tags=["house", stage.icon],
    ))
