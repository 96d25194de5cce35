"""Notifications: lifecycle events and their delivery.

Provides:
- ``AssistEvent`` / ``EventCode``: event payloads
- ``NotificationService``: fan-out event bus using asyncio queues
- ``WebhookNotifier``: delivers events to a single webhook URL with retries
"""

from __future__ import annotations

from tx_assist.notifications.events import AssistEvent, CategoryCode, EventCode, WalletSnapshot
from tx_assist.notifications.service import NotificationService, Notifier
from tx_assist.notifications.webhook import WebhookConfig, WebhookNotifier

__all__ = [
    "AssistEvent",
    "CategoryCode",
    "EventCode",
    "NotificationService",
    "Notifier",
    "WalletSnapshot",
    "WebhookConfig",
    "WebhookNotifier",
]
