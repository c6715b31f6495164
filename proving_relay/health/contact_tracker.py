"""
Last-known connectivity of one remote session.

A session is degraded once its retry budget was exhausted within the recent
window and no successful contact has happened since. A session that never
had the opportunity to fail is not degraded.
"""

import itertools
import time
from typing import Callable

from proving_relay.models.health_snapshot import ContactSnapshot


class ContactTracker:
    def __init__(
        self,
        name: str,
        window_sec: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._window_sec = window_sec
        self._clock = clock
        self._events = itertools.count(1)

        self._last_success: float | None = None
        self._last_exhausted: float | None = None
        self._success_seq = 0
        self._exhausted_seq = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def last_success(self) -> float | None:
        return self._last_success

    @property
    def last_exhausted(self) -> float | None:
        return self._last_exhausted

    def record_success(self) -> None:
        self._last_success = self._clock()
        self._success_seq = next(self._events)

    def record_exhausted(self) -> None:
        self._last_exhausted = self._clock()
        self._exhausted_seq = next(self._events)

    def degraded(self) -> bool:
        if self._last_exhausted is None:
            return False

        if self._clock() - self._last_exhausted > self._window_sec:
            return False

        # Ordered by recording sequence, clock readings can tie.
        return self._success_seq < self._exhausted_seq

    def snapshot(self) -> ContactSnapshot:
        now = self._clock()

        return ContactSnapshot(
            name=self._name,
            degraded=self.degraded(),
            last_success_age_sec=(
                None if self._last_success is None else now - self._last_success
            ),
            last_exhausted_age_sec=(
                None if self._last_exhausted is None else now - self._last_exhausted
            ),
        )
