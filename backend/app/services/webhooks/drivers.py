"""
Invoicerr Backend — Webhook Drivers
=====================================

What:  One driver per WebhookType, turning (event, payload) into the HTTP
       body and headers that the receiving service expects.
Why:   Chat tools each want their own envelope (Discord embeds, Slack
       attachments, Teams adaptive cards); generic receivers want the raw
       payload and a signature they can verify.
How:   Abstract base class with `build_body()` and `build_headers()`. The
       dispatcher encodes the body once, asks the driver for headers over
       the exact bytes sent, and POSTs.

Signature (GENERIC only):
    X-Webhook-Signature: hex(HMAC-SHA256(secret, raw_body))
    Receivers recompute it over the raw request body.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from app.models.enums import WebhookType
from app.services.webhooks.formatters import format_event_description, get_event_style
from app.utils.dates import utcnow

FOOTER = "Invoicerr Webhooks"


def sign_body(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def _company_name(payload: Dict[str, Any]) -> Optional[str]:
    return (payload.get("company") or {}).get("name")


class WebhookDriver(ABC):
    """Builds the request for one webhook type."""

    @abstractmethod
    def build_body(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def build_headers(self, raw: bytes, secret: Optional[str]) -> Dict[str, str]:
        return {"Content-Type": "application/json"}


class GenericDriver(WebhookDriver):
    def build_body(self, event, payload):
        return payload

    def build_headers(self, raw, secret):
        headers = super().build_headers(raw, secret)
        if secret:
            headers["X-Webhook-Signature"] = sign_body(secret, raw)
        return headers


class ZapierDriver(WebhookDriver):
    def build_body(self, event, payload):
        return payload


class DiscordDriver(WebhookDriver):
    def build_body(self, event, payload):
        style = get_event_style(event)
        embed: Dict[str, Any] = {
            "title": f"{style.emoji} {style.title}",
            "color": int(style.color.lstrip("#"), 16),
            "timestamp": utcnow().isoformat(),
            "author": {"name": FOOTER},
            "footer": {"text": FOOTER},
        }
        description = format_event_description(event, payload)
        if description:
            embed["description"] = description
        company = _company_name(payload)
        if company:
            embed["fields"] = [{"name": "Company", "value": company, "inline": True}]
        return {"username": "Invoicerr", "embeds": [embed]}


class SlackDriver(WebhookDriver):
    """Slack-style attachments; Mattermost and Rocket.Chat accept the same shape."""

    def build_body(self, event, payload):
        style = get_event_style(event)
        attachment: Dict[str, Any] = {
            "title": f"{style.emoji} {style.title}",
            "color": style.color,
            "text": format_event_description(event, payload) or "",
            "footer": f"{FOOTER} • {utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC",
        }
        company = _company_name(payload)
        if company:
            attachment["fields"] = [{"title": "Company", "value": company, "short": True}]
        return {"username": "Invoicerr", "text": "", "attachments": [attachment]}


class TeamsDriver(WebhookDriver):
    def build_body(self, event, payload):
        style = get_event_style(event)
        body = [
            {
                "type": "TextBlock",
                "text": f"{style.emoji} {style.title}",
                "weight": "bolder",
                "size": "large",
                "color": "accent",
            }
        ]
        description = format_event_description(event, payload)
        if description:
            body.append({"type": "TextBlock", "text": description, "wrap": True})
        company = _company_name(payload)
        if company:
            body.append({"type": "FactSet", "facts": [{"title": "Company:", "value": company}]})
        body.append(
            {
                "type": "TextBlock",
                "text": f"{FOOTER} • {utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC",
                "size": "small",
                "weight": "lighter",
                "spacing": "large",
            }
        )
        card = {
            "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
            "type": "AdaptiveCard",
            "version": "1.2",
            "body": body,
        }
        return {
            "type": "message",
            "attachments": [
                {"contentType": "application/vnd.microsoft.card.adaptive", "content": card}
            ],
        }


DRIVERS: Dict[WebhookType, WebhookDriver] = {
    WebhookType.GENERIC: GenericDriver(),
    WebhookType.ZAPIER: ZapierDriver(),
    WebhookType.DISCORD: DiscordDriver(),
    WebhookType.SLACK: SlackDriver(),
    WebhookType.MATTERMOST: SlackDriver(),
    WebhookType.ROCKETCHAT: SlackDriver(),
    WebhookType.TEAMS: TeamsDriver(),
}


def get_driver(webhook_type: Any) -> WebhookDriver:
    return DRIVERS.get(WebhookType(webhook_type), DRIVERS[WebhookType.GENERIC])
