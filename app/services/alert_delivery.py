from __future__ import annotations

import logging

import httpx

from app.core.config import settings
from app.models.budget import BudgetAlert

logger = logging.getLogger(__name__)


def format_alerts(alerts: list[BudgetAlert]) -> str:
    if not alerts:
        return "No new budget alerts."
    return "\n".join(f"- [{a.alert_type.upper()}] {a.message}" for a in alerts)


async def _send_slack(client: httpx.AsyncClient, text: str) -> bool:
    if not settings.slack_webhook_url:
        return False
    r = await client.post(settings.slack_webhook_url, json={"text": text})
    return r.status_code < 300


async def _send_telegram(client: httpx.AsyncClient, text: str) -> bool:
    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        return False
    url = f"https://api.telegram.org/bot{settings.telegram_bot_token}/sendMessage"
    r = await client.post(url, data={"chat_id": settings.telegram_chat_id, "text": text})
    return r.status_code < 300


async def deliver_alerts(alerts: list[BudgetAlert], *, transport: httpx.AsyncBaseTransport | None = None) -> list[str]:
    """Push alerts to the configured chat channels; returns the channels that accepted them."""
    if not alerts:
        return []
    text = "Fint budget alerts\n" + format_alerts(alerts)
    delivered: list[str] = []
    async with httpx.AsyncClient(timeout=15, transport=transport) as client:
        for name, send in (("slack", _send_slack), ("telegram", _send_telegram)):
            try:
                if await send(client, text):
                    delivered.append(name)
            except httpx.HTTPError as e:
                logger.warning("alert_delivery_failed channel=%s error=%s", name, e)
    return delivered
