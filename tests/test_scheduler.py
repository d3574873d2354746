from __future__ import annotations

from datetime import timedelta

from api.models.schemas import NotificationMessage, NotificationSettings, NotificationType
from scheduler.notifier import InboxNotifier, LogNotifier, ReminderKey
from scheduler.service import NotificationScheduler
from tests.factories import BASE, FakeClock, FakeLoop, day, make_code

HOUR = 3600.0


def build(notifier=None, **kwargs):
    loop = FakeLoop()
    clock = FakeClock(loop)
    scheduler = NotificationScheduler(
        notifier or InboxNotifier(), loop=loop, clock=clock, **kwargs
    )
    return scheduler, loop, clock


def expiring_in(minutes: int, code_id: str = "code-1", validity: int = 24 * 60):
    started_at = BASE + timedelta(minutes=minutes) - timedelta(minutes=validity)
    return make_code(code_id, started_at=started_at, validity_minutes=validity)


def test_start_without_codes_arms_nothing() -> None:
    scheduler, _, _ = build()
    scheduler.start([], NotificationSettings())

    assert scheduler.scheduled_count == 0
    assert scheduler.is_running is True


def test_unused_code_with_default_settings_has_no_reminders() -> None:
    scheduler, _, _ = build()
    scheduler.start([make_code(input_deadline=day(2))], NotificationSettings())

    assert scheduler.scheduled_count == 0


def test_input_deadline_thresholds_are_armed() -> None:
    scheduler, _, _ = build()
    code = make_code(input_deadline=BASE + timedelta(hours=25))
    scheduler.start([code], NotificationSettings(input_deadline_thresholds=[1440, 60]))

    assert scheduler.scheduled_keys() == {
        ReminderKey("code-1", NotificationType.INPUT_DEADLINE, 1440),
        ReminderKey("code-1", NotificationType.INPUT_DEADLINE, 60),
    }


def test_active_code_gets_every_future_expiry_threshold() -> None:
    scheduler, _, _ = build()
    scheduler.start([expiring_in(25 * 60, validity=26 * 60)], NotificationSettings())

    assert scheduler.scheduled_count == 4
    fire_times = [reminder.fire_at for reminder in scheduler.scheduled_for_code("code-1")]
    assert fire_times == sorted(fire_times)
    assert fire_times[0] == BASE + timedelta(hours=1)


def test_past_thresholds_are_skipped() -> None:
    scheduler, _, _ = build()
    scheduler.start([expiring_in(45)], NotificationSettings())

    assert scheduler.scheduled_keys() == {ReminderKey("code-1", NotificationType.EXPIRY, 30)}


def test_reschedule_is_idempotent() -> None:
    scheduler, loop, _ = build()
    scheduler.start([expiring_in(25 * 60, validity=26 * 60)], NotificationSettings())
    keys = scheduler.scheduled_keys()

    scheduler.reschedule()
    scheduler.reschedule()

    assert scheduler.scheduled_keys() == keys
    assert len(loop.pending()) == len(keys) + 1  # plus the rescan timer


def test_fired_reminder_is_delivered_once() -> None:
    inbox = InboxNotifier()
    scheduler, loop, _ = build(inbox)
    scheduler.start([expiring_in(45)], NotificationSettings())

    loop.advance(15 * 60)

    [message] = inbox.messages()
    assert message.kind == NotificationType.EXPIRY
    assert message.threshold_minutes == 30
    assert message.code_id == "code-1"
    assert "TE***23" in message.body
    assert scheduler.fired_count == 1
    assert scheduler.scheduled_count == 0

    scheduler.reschedule()
    loop.advance(10 * 60)
    assert scheduler.scheduled_count == 0
    assert len(inbox.messages()) == 1


def test_reset_fired_allows_rearming() -> None:
    scheduler, loop, _ = build()
    code = make_code(input_deadline=BASE + timedelta(hours=2))
    settings = NotificationSettings(input_deadline_thresholds=[150, 60])
    scheduler.start([code], settings)
    assert scheduler.scheduled_count == 1

    loop.advance(HOUR + 1)
    assert scheduler.fired_count == 1

    # moving the deadline puts the fired threshold back in the future
    later = make_code(input_deadline=BASE + timedelta(hours=5))
    scheduler.update_codes([later])
    assert ReminderKey("code-1", NotificationType.INPUT_DEADLINE, 60) not in scheduler.scheduled_keys()

    scheduler.reset_fired()
    scheduler.reschedule()
    assert ReminderKey("code-1", NotificationType.INPUT_DEADLINE, 60) in scheduler.scheduled_keys()


def test_stale_status_suppresses_delivery() -> None:
    inbox = InboxNotifier()
    scheduler, loop, clock = build(inbox, rescan_interval=10 * 24 * HOUR)
    scheduler.start([expiring_in(45)], NotificationSettings())

    clock.skew = timedelta(hours=1)
    loop.advance(15 * 60)

    assert scheduler.fired_count == 1
    assert inbox.messages() == []


def test_deleted_code_suppresses_delivery() -> None:
    inbox = InboxNotifier()
    scheduler, loop, _ = build(inbox)
    scheduler.start([expiring_in(45)], NotificationSettings())

    scheduler.update_codes([])
    loop.advance(HOUR)

    assert scheduler.scheduled_count == 0
    assert inbox.messages() == []


def test_reminders_beyond_timer_horizon_are_armed_by_rescan() -> None:
    scheduler, loop, _ = build(rescan_interval=HOUR)
    code = make_code(input_deadline=day(40))
    scheduler.start([code], NotificationSettings(input_deadline_thresholds=[0]))

    assert scheduler.scheduled_count == 0

    loop.advance(16 * 24 * HOUR)

    assert scheduler.scheduled_keys() == {ReminderKey("code-1", NotificationType.INPUT_DEADLINE, 0)}


def test_stop_cancels_every_timer() -> None:
    scheduler, loop, _ = build()
    scheduler.start([expiring_in(25 * 60, validity=26 * 60)], NotificationSettings())
    assert loop.pending()

    scheduler.stop()

    assert loop.pending() == []
    assert scheduler.scheduled_count == 0
    assert scheduler.is_running is False


class BrokenNotifier(LogNotifier):
    def deliver(self, message: NotificationMessage) -> None:
        raise RuntimeError("notification daemon unavailable")


class SilentNotifier(InboxNotifier):
    def is_supported(self) -> bool:
        return False


def test_delivery_errors_are_swallowed() -> None:
    scheduler, loop, _ = build(BrokenNotifier())
    scheduler.start([expiring_in(45)], NotificationSettings())

    loop.advance(HOUR)

    assert scheduler.fired_count == 1
    assert scheduler.is_running is True


def test_unsupported_notifier_delivers_nothing() -> None:
    inbox = SilentNotifier()
    scheduler, loop, _ = build(inbox)
    scheduler.start([expiring_in(45)], NotificationSettings())

    loop.advance(HOUR)

    assert scheduler.fired_count == 1
    assert inbox.messages() == []


def test_update_settings_reschedules() -> None:
    scheduler, _, _ = build()
    scheduler.start([expiring_in(25 * 60, validity=26 * 60)], NotificationSettings())

    scheduler.update_settings(NotificationSettings(expiry_thresholds=[120]))

    assert scheduler.scheduled_keys() == {ReminderKey("code-1", NotificationType.EXPIRY, 120)}


def test_updates_before_start_do_nothing() -> None:
    scheduler, loop, _ = build()
    scheduler.update_codes([expiring_in(25 * 60, validity=26 * 60)])

    assert scheduler.scheduled_count == 0
    assert loop.pending() == []


def test_reminder_due_on_rescan_tick_is_delivered() -> None:
    inbox = InboxNotifier()
    scheduler, loop, _ = build(inbox, rescan_interval=60.0)
    scheduler.start([expiring_in(45)], NotificationSettings())

    # fire time of the 30-minute reminder is exactly the 15th re-scan
    loop.advance(15 * 60)

    assert [message.threshold_minutes for message in inbox.messages()] == [30]
    assert scheduler.fired_count == 1


def test_overdue_timer_fires_on_reschedule() -> None:
    inbox = InboxNotifier()
    scheduler, loop, clock = build(inbox, rescan_interval=10 * 24 * HOUR)
    scheduler.start([expiring_in(45)], NotificationSettings())

    clock.skew = timedelta(minutes=20)
    scheduler.reschedule()

    assert len(inbox.messages()) == 1
    assert scheduler.fired_count == 1
    assert scheduler.scheduled_count == 0

    loop.advance(HOUR)
    assert len(inbox.messages()) == 1


def test_updates_after_stop_arm_nothing() -> None:
    scheduler, loop, _ = build()
    scheduler.start([], NotificationSettings())
    scheduler.stop()

    scheduler.update_codes([expiring_in(25 * 60, validity=26 * 60)])
    scheduler.update_settings(NotificationSettings(expiry_thresholds=[60]))

    assert scheduler.scheduled_count == 0
    assert loop.pending() == []
