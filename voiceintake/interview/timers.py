"""Idle-deadline and countdown timers for a paused interview."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PauseTimer:
    """Two-phase timer: an idle deadline followed by a visible countdown.

    At most one idle handle and one countdown handle exist at a time.
    ``cancel()`` is idempotent and leaves both handles as None.
    """

    def __init__(
        self,
        idle_seconds: float = 600,
        countdown_seconds: int = 60,
        on_tick: Optional[Callable[[int], None]] = None,
        on_expire: Optional[Callable[[], None]] = None,
        tick_seconds: float = 1.0,
    ):
        """Initialize the timer.

        Args:
            idle_seconds: Paused time before the countdown starts
            countdown_seconds: Length of the countdown in ticks
            on_tick: Called with the remaining ticks each time the countdown advances
            on_expire: Called once when the countdown reaches zero
            tick_seconds: Duration of one countdown tick
        """
        self.idle_seconds = idle_seconds
        self.countdown_seconds = countdown_seconds
        self.on_tick = on_tick
        self.on_expire = on_expire
        self.tick_seconds = tick_seconds

        self.idle_handle: Optional[asyncio.TimerHandle] = None
        self.countdown_handle: Optional[asyncio.TimerHandle] = None
        self.remaining_seconds: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_active(self) -> bool:
        return self.idle_handle is not None or self.countdown_handle is not None

    @property
    def total_seconds(self) -> float:
        return self.idle_seconds + self.countdown_seconds * self.tick_seconds

    def start(self) -> None:
        """Arm the idle deadline on the running loop, replacing any previous timers."""
        self.cancel()
        self._loop = asyncio.get_running_loop()
        self.idle_handle = self._loop.call_later(self.idle_seconds, self._begin_countdown)
        logger.info(f"Pause timer started: countdown begins in {self.idle_seconds}s")

    def cancel(self) -> None:
        if self.idle_handle is not None:
            self.idle_handle.cancel()
            self.idle_handle = None
        if self.countdown_handle is not None:
            self.countdown_handle.cancel()
            self.countdown_handle = None
        if self.remaining_seconds is not None:
            logger.info(f"Pause countdown cancelled with {self.remaining_seconds} left")
        self.remaining_seconds = None

    def _begin_countdown(self) -> None:
        self.idle_handle = None
        self.remaining_seconds = self.countdown_seconds
        logger.info(f"Idle deadline reached; ending in {self.countdown_seconds} ticks unless resumed")
        if self.on_tick is not None:
            self.on_tick(self.remaining_seconds)
        self._schedule_tick()

    def _schedule_tick(self) -> None:
        if self.remaining_seconds <= 0:
            self._expire()
            return
        self.countdown_handle = self._loop.call_later(self.tick_seconds, self._tick)

    def _tick(self) -> None:
        self.countdown_handle = None
        self.remaining_seconds -= 1
        if self.on_tick is not None:
            self.on_tick(self.remaining_seconds)
        self._schedule_tick()

    def _expire(self) -> None:
        self.remaining_seconds = None
        logger.info("Pause countdown expired")
        if self.on_expire is not None:
            self.on_expire()
