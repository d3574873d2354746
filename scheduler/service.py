"""Reminder scheduling for expiring and soon-to-lapse promo codes.

The scheduler arms one event-loop timer per pending reminder and re-derives the
whole set whenever the codes or the settings change. Reminders are identified
by ``ReminderKey``; a key that fired once is never armed again until
``reset_fired`` is called, so rescheduling cannot produce duplicates.

A single timer cannot reach arbitrarily far into the future. Reminders beyond
``max_timer_delay`` are left unarmed and picked up by the periodic re-scan once
they come within range.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from api.models.schemas import (
    CodeRecord,
    CodeStatus,
    NotificationSettings,
    NotificationType,
    utcnow,
)
from core.exceptions import NotificationUnsupportedError
from core.settings import MAX_TIMER_DELAY_MS
from ledger.status import determine_status
from scheduler.notifier import LogNotifier, Reminder, ReminderKey, build_reminder_message

logger = logging.getLogger(__name__)

DEFAULT_RESCAN_INTERVAL = 60.0

# Status a code must still have when its reminder fires.
_EXPECTED_STATUS = {
    NotificationType.EXPIRY: CodeStatus.ACTIVE,
    NotificationType.INPUT_DEADLINE: CodeStatus.UNUSED,
}


@dataclass
class ScheduledReminder:
    reminder: Reminder
    handle: asyncio.TimerHandle


class NotificationScheduler:
    """Keep reminder timers in step with the current codes and settings.

    All public methods must be called from the thread running ``loop``.
    """

    def __init__(
        self,
        notifier: Optional[LogNotifier] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], datetime] = utcnow,
        rescan_interval: float = DEFAULT_RESCAN_INTERVAL,
        max_timer_delay: timedelta = timedelta(milliseconds=MAX_TIMER_DELAY_MS),
        display_timezone: str = "UTC",
    ) -> None:
        self._notifier = notifier or LogNotifier()
        self._explicit_loop = loop
        self._loop = loop
        self._clock = clock
        self._rescan_interval = rescan_interval
        self._max_timer_delay = max_timer_delay
        self._display_timezone = display_timezone

        self._codes: Tuple[CodeRecord, ...] = ()
        self._settings: Optional[NotificationSettings] = None
        self._scheduled: Dict[ReminderKey, ScheduledReminder] = {}
        self._fired: Set[ReminderKey] = set()
        self._rescan_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, codes: Iterable[CodeRecord], settings: NotificationSettings) -> None:
        self._loop = self._explicit_loop or asyncio.get_running_loop()
        self._codes = tuple(codes)
        self._settings = settings
        self._clear_scheduled()
        self._start_periodic_rescan()
        self._schedule_all()
        logger.info(
            "Notification scheduler started (%d codes, %d reminders armed)",
            len(self._codes),
            len(self._scheduled),
        )

    def stop(self) -> None:
        self._clear_scheduled()
        self._stop_periodic_rescan()
        logger.info("Notification scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._rescan_handle is not None

    # ------------------------------------------------------------------
    # State updates
    # ------------------------------------------------------------------
    def update_codes(self, codes: Iterable[CodeRecord]) -> None:
        self._codes = tuple(codes)
        self.reschedule()

    def update_settings(self, settings: NotificationSettings) -> None:
        self._settings = settings
        self.reschedule()

    def reschedule(self) -> None:
        """Drop every live timer and arm again from the current state.

        Timers that are due but have not run yet fire here instead of being
        dropped as past.
        """

        now = self._clock()
        due = [key for key, entry in self._scheduled.items() if entry.reminder.fire_at <= now]
        for key in due:
            self._scheduled[key].handle.cancel()
            self._fire(key)
        self._clear_scheduled()
        self._schedule_all()

    def reset_fired(self) -> None:
        self._fired.clear()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled)

    @property
    def fired_count(self) -> int:
        return len(self._fired)

    def scheduled_keys(self) -> Set[ReminderKey]:
        return set(self._scheduled)

    def scheduled_for_code(self, code_id: str) -> List[Reminder]:
        return sorted(
            (entry.reminder for key, entry in self._scheduled.items() if key.code_id == code_id),
            key=lambda reminder: reminder.fire_at,
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def _schedule_all(self) -> None:
        if self._settings is None or self._loop is None or not self.is_running:
            return

        now = self._clock()
        for code in self._codes:
            status = determine_status(code, now)
            if status == CodeStatus.ACTIVE and code.expires_at is not None:
                self._schedule_thresholds(
                    code, NotificationType.EXPIRY, code.expires_at,
                    self._settings.expiry_thresholds, now,
                )
            elif status == CodeStatus.UNUSED:
                self._schedule_thresholds(
                    code, NotificationType.INPUT_DEADLINE, code.input_deadline,
                    self._settings.input_deadline_thresholds, now,
                )

    def _schedule_thresholds(
        self,
        code: CodeRecord,
        kind: NotificationType,
        target_at: datetime,
        thresholds: Iterable[int],
        now: datetime,
    ) -> None:
        for threshold in thresholds:
            key = ReminderKey(code_id=code.id, kind=kind, threshold_minutes=threshold)
            fire_at = target_at - timedelta(minutes=threshold)
            if fire_at <= now or key in self._fired or key in self._scheduled:
                continue

            delay = fire_at - now
            if delay > self._max_timer_delay:
                logger.debug("Reminder %s is beyond the timer horizon, deferring", key)
                continue

            reminder = Reminder(key=key, code=code.code, target_at=target_at, fire_at=fire_at)
            handle = self._loop.call_later(delay.total_seconds(), self._fire, key)
            self._scheduled[key] = ScheduledReminder(reminder=reminder, handle=handle)
            logger.debug("Armed reminder %s at %s", key, fire_at.isoformat())

    def _fire(self, key: ReminderKey) -> None:
        if key in self._fired:
            return
        self._fired.add(key)
        entry = self._scheduled.pop(key, None)

        code = next((c for c in self._codes if c.id == key.code_id), None)
        if code is None:
            logger.info("Suppressed reminder %s: code no longer exists", key)
            return

        status = determine_status(code, self._clock())
        if status != _EXPECTED_STATUS[key.kind]:
            logger.info("Suppressed reminder %s: code is now %s", key, status.value)
            return

        if key.kind == NotificationType.EXPIRY:
            target_at = code.expires_at
        else:
            target_at = code.input_deadline
        if target_at is None:
            return
        fire_at = entry.reminder.fire_at if entry else self._clock()
        reminder = Reminder(key=key, code=code.code, target_at=target_at, fire_at=fire_at)
        self._deliver(reminder)

    def _deliver(self, reminder: Reminder) -> None:
        if not self._notifier.is_supported():
            logger.debug("Notifications unsupported, skipping %s", reminder.key)
            return
        message = build_reminder_message(reminder, self._display_timezone)
        try:
            self._notifier.deliver(message)
        except NotificationUnsupportedError:
            logger.debug("Notifier rejected %s as unsupported", reminder.key)
        except Exception:
            logger.warning("Failed to deliver reminder %s", reminder.key, exc_info=True)
        else:
            logger.info("Delivered reminder %s", reminder.key)

    def _clear_scheduled(self) -> None:
        for entry in self._scheduled.values():
            entry.handle.cancel()
        self._scheduled.clear()

    # ------------------------------------------------------------------
    # Periodic re-scan
    # ------------------------------------------------------------------
    def _start_periodic_rescan(self) -> None:
        self._stop_periodic_rescan()
        self._rescan_handle = self._loop.call_later(self._rescan_interval, self._on_rescan)

    def _stop_periodic_rescan(self) -> None:
        if self._rescan_handle is not None:
            self._rescan_handle.cancel()
            self._rescan_handle = None

    def _on_rescan(self) -> None:
        self._rescan_handle = self._loop.call_later(self._rescan_interval, self._on_rescan)
        self.reschedule()
