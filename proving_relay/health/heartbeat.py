import time
from typing import Callable


class Heartbeat:
    """Main loop and slot loops beat; a stale heartbeat means the process is wedged."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_beat = clock()

    def beat(self) -> None:
        self._last_beat = self._clock()

    @property
    def age(self) -> float:
        return self._clock() - self._last_beat

    def stale(self, timeout_sec: float) -> bool:
        return self.age > timeout_sec
