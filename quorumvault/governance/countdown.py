"""
Countdown Projector

`project_countdown` is the pure time math: remaining seconds to a target
timestamp, rendered text and an urgency tier. `CountdownTimer` re-invokes it
on a fixed tick inside the running asyncio loop and fires its elapsed
callback once per transition to zero.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..constants import (
    COUNTDOWN_CALM_ABOVE,
    COUNTDOWN_CAUTION_ABOVE,
    COUNTDOWN_TICK_SECONDS,
    COUNTDOWN_URGENT_ABOVE,
)
from ..logger import get_logger

logger = get_logger(__name__)


class Urgency(IntEnum):
    CALM = 0       # more than a day left
    CAUTION = 1    # more than an hour
    URGENT = 2     # more than ten minutes
    CRITICAL = 3   # ten minutes or less, or elapsed


@dataclass(frozen=True)
class Countdown:
    target: int
    remaining: int
    text: str
    urgency: Urgency

    @property
    def elapsed(self) -> bool:
        return self.remaining <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "remaining": self.remaining,
            "text": self.text,
            "urgency": self.urgency.name,
            "elapsed": self.elapsed,
        }


def format_duration(seconds: int) -> str:
    """
    >>> format_duration(93784)
    '1d 2h 3m 4s'
    >>> format_duration(0)
    '0s'
    """
    seconds = max(0, int(seconds))
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def urgency_for(remaining: int) -> Urgency:
    if remaining > COUNTDOWN_CALM_ABOVE:
        return Urgency.CALM
    if remaining > COUNTDOWN_CAUTION_ABOVE:
        return Urgency.CAUTION
    if remaining > COUNTDOWN_URGENT_ABOVE:
        return Urgency.URGENT
    return Urgency.CRITICAL


def project_countdown(target: int, now: Union[int, float]) -> Countdown:
    """Remaining time from *now* to *target*, clamped at zero."""
    remaining = max(0, int(target) - int(now))
    return Countdown(
        target=int(target),
        remaining=remaining,
        text=format_duration(remaining),
        urgency=urgency_for(remaining),
    )


Callback = Callable[[Countdown], Union[None, Awaitable[None]]]


class CountdownTimer:
    """
    Periodic driver for `project_countdown`.

    Args:
        target:      Timestamp (seconds) to count down to
        on_tick:     Called with every new Countdown
        on_elapsed:  Called once when the countdown reaches zero
        clock:       Returns the current time in seconds
        interval:    Tick period in seconds

    The timer stops itself after firing ``on_elapsed``. `stop()` (or leaving
    the ``async with`` block) cancels it when the owning view goes away.
    Remaining time never increases between ticks for the same target, even
    if the clock steps backwards.
    """

    def __init__(
        self,
        target: int,
        on_tick: Optional[Callback] = None,
        on_elapsed: Optional[Callback] = None,
        clock: Callable[[], float] = time.time,
        interval: float = COUNTDOWN_TICK_SECONDS,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._target = int(target)
        self._on_tick = on_tick
        self._on_elapsed = on_elapsed
        self._clock = clock
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self._last: Optional[Countdown] = None
        self._failure: Optional[BaseException] = None

    # ── State ─────────────────────────────────────────────────────────

    @property
    def target(self) -> int:
        return self._target

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def last(self) -> Optional[Countdown]:
        return self._last

    @property
    def failure(self) -> Optional[BaseException]:
        """Exception a callback raised while the background task ran, if any."""
        return self._failure

    # ── Ticking ───────────────────────────────────────────────────────

    async def tick(self) -> Countdown:
        """Project once, notify listeners, and fire the elapsed callback at most once."""
        countdown = project_countdown(self._target, self._clock())
        if self._last is not None and countdown.remaining > self._last.remaining:
            countdown = self._last
        self._last = countdown

        if self._on_tick is not None:
            await _maybe_await(self._on_tick(countdown))

        if countdown.elapsed and not self._fired:
            self._fired = True
            logger.debug(f"Countdown to {self._target} elapsed")
            if self._on_elapsed is not None:
                await _maybe_await(self._on_elapsed(countdown))
        return countdown

    async def _run(self) -> None:
        while True:
            countdown = await self.tick()
            if countdown.elapsed:
                return
            await asyncio.sleep(self.interval)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> "CountdownTimer":
        """Schedule ticking on the running loop; no-op if already running or fired."""
        if self.running or self._fired:
            return self
        self._failure = None
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._collect)
        return self

    def _collect(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._failure = error
            logger.error(f"Countdown to {self._target} stopped: callback raised {error!r}")

    def retarget(self, target: int) -> None:
        """
        Point the timer at a new timestamp. A target still in the future
        re-arms the elapsed callback for the next transition.
        """
        self._target = int(target)
        self._last = None
        if project_countdown(self._target, self._clock()).remaining > 0:
            self._fired = False

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "CountdownTimer":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def __repr__(self) -> str:
        return f"<CountdownTimer target={self._target} running={self.running} fired={self._fired}>"


async def _maybe_await(result) -> None:
    if inspect.isawaitable(result):
        await result
