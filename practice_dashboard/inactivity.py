"""Session inactivity timer and the logout warning countdown."""

import logging
import os
import time
from collections.abc import Callable

from dotenv import load_dotenv

load_dotenv(override=True)

logger = logging.getLogger(__name__)

SESSION_TIMEOUT_MINUTES = float(os.environ.get("SESSION_TIMEOUT_MINUTES", "5"))
SESSION_WARNING_MINUTES = float(os.environ.get("SESSION_WARNING_MINUTES", "1"))

WARNING_SECONDS = 60
RESET_THROTTLE_SECONDS = 2.0

ACTIVITY_EVENTS = frozenset({
    "mousedown", "keypress", "scroll", "touchstart", "click", "keydown", "wheel",
})


class InactivityWarning:
    """
    Countdown dialog shown before an automatic logout.

    Opens at 60 seconds and loses one per tick. Reaching zero calls
    ``on_logout`` exactly once. Tracked activity while open puts the count
    back to the start.
    """

    def __init__(
        self,
        on_logout: Callable[[], None],
        on_stay_active: Callable[[], None] | None = None,
        seconds: int = WARNING_SECONDS,
    ):
        self.on_logout = on_logout
        self.on_stay_active = on_stay_active
        self.seconds = seconds
        self.countdown = seconds
        self.is_open = False
        self.logout_called = False

    def open(self, remaining: int | None = None) -> None:
        self.is_open = True
        self.countdown = self.seconds if remaining is None else min(max(remaining, 0), self.seconds)
        self.logout_called = False

    def close(self) -> None:
        self.is_open = False
        self.countdown = self.seconds

    def tick(self) -> int:
        """Advance the countdown by one second."""
        if not self.is_open or self.logout_called:
            return self.countdown

        self.countdown = max(self.countdown - 1, 0)
        if self.countdown == 0:
            self._logout()
        return self.countdown

    def record_activity(self, event: str) -> bool:
        """Restart the countdown on a tracked event; True if it was restarted."""
        if not self.is_open or self.logout_called or event not in ACTIVITY_EVENTS:
            return False
        self.countdown = self.seconds
        return True

    def stay_active(self) -> None:
        self.close()
        if self.on_stay_active:
            self.on_stay_active()

    def logout_now(self) -> None:
        self._logout()
        self.is_open = False

    def display_time(self) -> str:
        minutes, seconds = divmod(max(self.countdown, 0), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        """Tick once a second until the dialog closes or logout fires."""
        while self.is_open and not self.logout_called:
            sleep(1)
            self.tick()

    def _logout(self) -> None:
        if self.logout_called:
            return
        self.logout_called = True
        logger.info("Inactivity countdown expired, logging out")
        self.on_logout()


class InactivityTimer:
    """Tracks the last activity and fires warning and logout callbacks."""

    def __init__(
        self,
        on_warning: Callable[[], None],
        on_logout: Callable[[], None] | None = None,
        timeout_minutes: float | None = None,
        warning_minutes: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        throttle_seconds: float = RESET_THROTTLE_SECONDS,
    ):
        self.on_warning = on_warning
        self.on_logout = on_logout
        self.timeout = (timeout_minutes if timeout_minutes is not None else SESSION_TIMEOUT_MINUTES) * 60
        self.warning = (warning_minutes if warning_minutes is not None else SESSION_WARNING_MINUTES) * 60
        self.clock = clock
        self.throttle_seconds = throttle_seconds
        self.last_activity = clock()
        self.warning_shown = False
        self.logged_out = False

    def reset(self) -> None:
        self.last_activity = self.clock()
        self.warning_shown = False
        self.logged_out = False

    def record_activity(self, event: str = "keypress") -> bool:
        """Reset on a tracked event, at most once per throttle window."""
        if event not in ACTIVITY_EVENTS:
            return False
        if self.clock() - self.last_activity < self.throttle_seconds:
            return False
        self.reset()
        return True

    def elapsed(self) -> float:
        return self.clock() - self.last_activity

    def warning_time_remaining(self) -> int:
        """Seconds left before logout, clamped to the warning window."""
        remaining = int(self.timeout - self.elapsed())
        return min(max(remaining, 0), int(self.warning))

    def poll(self) -> None:
        """Fire on_warning, then on_logout, once each as their deadlines pass."""
        if self.logged_out:
            return

        elapsed = self.elapsed()
        if elapsed >= self.timeout:
            self.logged_out = True
            logger.info("Session timed out after %.0f seconds of inactivity", elapsed)
            if self.on_logout:
                self.on_logout()
        elif elapsed >= self.timeout - self.warning and not self.warning_shown:
            self.warning_shown = True
            self.on_warning()
