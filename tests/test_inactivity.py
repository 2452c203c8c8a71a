"""Tests for the inactivity timer and the logout countdown."""

from unittest.mock import MagicMock

from practice_dashboard.inactivity import InactivityTimer, InactivityWarning


class TestInactivityWarning:
    """Tests for the countdown dialog."""

    def test_opens_at_sixty_seconds(self):
        warning = InactivityWarning(on_logout=MagicMock())
        warning.open()
        assert warning.countdown == 60
        assert warning.display_time() == "01:00"

    def test_display_time(self):
        warning = InactivityWarning(on_logout=MagicMock())
        warning.open(remaining=9)
        assert warning.display_time() == "00:09"
        warning.open(remaining=-5)
        assert warning.display_time() == "00:00"

    def test_countdown_logs_out_exactly_once(self):
        on_logout = MagicMock()
        warning = InactivityWarning(on_logout=on_logout)
        warning.open(remaining=2)
        assert warning.tick() == 1
        on_logout.assert_not_called()
        assert warning.tick() == 0
        warning.tick()
        warning.logout_now()
        on_logout.assert_called_once()

    def test_activity_restarts_countdown(self):
        warning = InactivityWarning(on_logout=MagicMock())
        warning.open(remaining=5)
        assert warning.record_activity("mousemove") is False
        assert warning.record_activity("keydown") is True
        assert warning.countdown == 60

    def test_activity_ignored_when_closed(self):
        warning = InactivityWarning(on_logout=MagicMock())
        assert warning.record_activity("click") is False

    def test_stay_active(self):
        on_stay = MagicMock()
        warning = InactivityWarning(on_logout=MagicMock(), on_stay_active=on_stay)
        warning.open(remaining=10)
        warning.stay_active()
        assert not warning.is_open
        assert warning.countdown == 60
        on_stay.assert_called_once()

    def test_run_ticks_until_logout(self):
        on_logout = MagicMock()
        sleep = MagicMock()
        warning = InactivityWarning(on_logout=on_logout)
        warning.open(remaining=3)
        warning.run(sleep=sleep)
        assert sleep.call_count == 3
        on_logout.assert_called_once()


class TestInactivityTimer:
    """Tests for idle detection."""

    def test_warning_then_logout(self, clock):
        on_warning, on_logout = MagicMock(), MagicMock()
        timer = InactivityTimer(on_warning, on_logout, timeout_minutes=5, warning_minutes=1, clock=clock)

        clock.advance(239)
        timer.poll()
        on_warning.assert_not_called()

        clock.advance(1)
        timer.poll()
        timer.poll()
        on_warning.assert_called_once()
        assert timer.warning_time_remaining() == 60

        clock.advance(60)
        timer.poll()
        timer.poll()
        on_logout.assert_called_once()
        assert timer.warning_time_remaining() == 0

    def test_activity_is_throttled(self, clock):
        timer = InactivityTimer(MagicMock(), timeout_minutes=5, warning_minutes=1, clock=clock)
        clock.advance(1)
        assert timer.record_activity("click") is False
        clock.advance(2)
        assert timer.record_activity("click") is True
        assert timer.elapsed() == 0

    def test_untracked_events_ignored(self, clock):
        timer = InactivityTimer(MagicMock(), timeout_minutes=5, warning_minutes=1, clock=clock)
        clock.advance(100)
        assert timer.record_activity("mousemove") is False
        assert timer.elapsed() == 100

    def test_reset_rearms_warning(self, clock):
        on_warning = MagicMock()
        timer = InactivityTimer(on_warning, timeout_minutes=5, warning_minutes=1, clock=clock)
        clock.advance(250)
        timer.poll()
        timer.reset()
        clock.advance(250)
        timer.poll()
        assert on_warning.call_count == 2
