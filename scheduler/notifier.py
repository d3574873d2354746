"""Reminder payloads and the notifiers that deliver them."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, List, Optional

from api.models.schemas import NotificationMessage, NotificationType, utcnow
from ledger.formatting import format_instant, format_threshold, mask_code

logger = logging.getLogger(__name__)

APP_TITLE = "Promo code ledger"


@dataclass(frozen=True)
class ReminderKey:
    """Identity of one reminder: a code, a reminder kind and a threshold."""

    code_id: str
    kind: NotificationType
    threshold_minutes: int


@dataclass(frozen=True)
class Reminder:
    key: ReminderKey
    code: str
    target_at: datetime
    fire_at: datetime


def build_reminder_message(
    reminder: Reminder, tz_name: str = "UTC", delivered_at: Optional[datetime] = None
) -> NotificationMessage:
    when = format_threshold(reminder.key.threshold_minutes)
    target = format_instant(reminder.target_at, tz_name)
    masked = mask_code(reminder.code)
    if reminder.key.kind == NotificationType.EXPIRY:
        title = "Promo code expiring"
        body = f"Code {masked} expires {when}.\nExpires at: {target}"
    else:
        title = "Promo code input deadline"
        body = f"Code {masked} must be entered {when}.\nDeadline: {target}"
    return NotificationMessage(
        title=title,
        body=body,
        delivered_at=delivered_at or utcnow(),
        code_id=reminder.key.code_id,
        kind=reminder.key.kind,
        threshold_minutes=reminder.key.threshold_minutes,
    )


def build_test_message() -> NotificationMessage:
    return NotificationMessage(
        title=APP_TITLE,
        body="Test notification. Notifications are working.",
        delivered_at=utcnow(),
    )


class LogNotifier:
    """Deliver notifications to the application log."""

    def is_supported(self) -> bool:
        return True

    def deliver(self, message: NotificationMessage) -> None:
        logger.info("Notification: %s | %s", message.title, message.body.replace("\n", " | "))


class InboxNotifier(LogNotifier):
    """Log notifications and keep the most recent ones for the API to list."""

    def __init__(self, max_messages: int = 50) -> None:
        self._messages: Deque[NotificationMessage] = deque(maxlen=max_messages)

    def deliver(self, message: NotificationMessage) -> None:
        super().deliver(message)
        self._messages.append(message)

    def messages(self) -> List[NotificationMessage]:
        """Delivered messages, newest first."""

        return list(reversed(self._messages))

    def clear(self) -> None:
        self._messages.clear()
