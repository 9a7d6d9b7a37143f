from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestOnlyDebouncer(Generic[T]):
    """Owns one cancellable timer plus the version of the input it debounces.

    Every `schedule` or `invalidate` bumps the version and cancels the pending
    timer. The call itself starts only when the timer fires, and its result is
    handed to `apply` only if the version is still the one captured when it
    was scheduled. A call that is already running is never cancelled; its
    result is simply dropped once superseded.
    """

    def __init__(self, delay_seconds: float, *, name: str = "debounce") -> None:
        self._delay_seconds = delay_seconds
        self._name = name
        self._version = 0
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._current: asyncio.Task | None = None

    @property
    def version(self) -> int:
        return self._version

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def pending(self) -> bool:
        """True while the latest version is waiting on its timer or its call.

        Superseded calls still running do not count.
        """
        if self._timer is not None:
            return True
        return self._current is not None and not self._current.done()

    def invalidate(self) -> int:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._current = None
        self._version += 1
        return self._version

    def schedule(
        self,
        call: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        *,
        on_error: Callable[[Exception], None] | None = None,
        on_superseded: Callable[[], None] | None = None,
    ) -> int:
        version = self.invalidate()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self._delay_seconds,
            self._fire,
            version,
            call,
            apply,
            on_error,
            on_superseded,
        )
        return version

    def _fire(self, version, call, apply, on_error, on_superseded) -> None:
        self._timer = None
        if version != self._version:
            return
        task = asyncio.get_running_loop().create_task(
            self._run(version, call, apply, on_error, on_superseded),
            name=f"{self._name}-v{version}",
        )
        self._in_flight.add(task)
        self._current = task
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, version, call, apply, on_error, on_superseded) -> None:
        try:
            result = await call()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if version != self._version:
                logger.debug("%s.stale_failure version=%s error=%r", self._name, version, exc)
                if on_superseded is not None:
                    on_superseded()
                return
            if on_error is not None:
                on_error(exc)
            else:
                logger.warning("%s.failed version=%s error=%r", self._name, version, exc)
            return

        if version != self._version:
            logger.debug("%s.superseded version=%s current=%s", self._name, version, self._version)
            if on_superseded is not None:
                on_superseded()
            return
        apply(result)

    async def aclose(self) -> None:
        """Cancel the timer and any running call; used on shutdown only."""
        self.invalidate()
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
