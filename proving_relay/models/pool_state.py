"""
Worker pool slot tracking.

The pool holds a fixed number of slots, so the number of busy slots can
never exceed n_workers. Each slot owns at most one Task at a time.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

from .task import Task


class SlotStatus(Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass(slots=True)
class SlotState:
    index: int
    status: SlotStatus = SlotStatus.IDLE
    task: Task | None = None
    busy_since: float | None = None
    completed_count: int = 0
    failed_count: int = 0

    @property
    def busy(self) -> bool:
        return self.status == SlotStatus.BUSY

    @property
    def completing(self) -> bool:
        """Busy with a task that already reached a terminal state."""
        return self.busy and self.task is not None and self.task.terminal

    def assign(self, task: Task) -> None:
        if self.busy:
            raise RuntimeError(
                f"Slot {self.index} already owns task {self.task.task_id if self.task else None}"
            )

        self.status = SlotStatus.BUSY
        self.task = task
        self.busy_since = time.monotonic()

    def release(self) -> Task | None:
        task = self.task
        self.status = SlotStatus.IDLE
        self.task = None
        self.busy_since = None
        return task


@dataclass(slots=True)
class PoolState:
    n_workers: int
    slots: list[SlotState] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")

        if not self.slots:
            self.slots = [SlotState(index=index) for index in range(self.n_workers)]

    @property
    def busy_count(self) -> int:
        return sum(1 for slot in self.slots if slot.busy)

    @property
    def idle_count(self) -> int:
        return self.n_workers - self.busy_count

    @property
    def completing_count(self) -> int:
        return sum(1 for slot in self.slots if slot.completing)

    def has_capacity(self) -> bool:
        """At least one slot is idle or finishing its current task."""
        return any(not slot.busy or slot.completing for slot in self.slots)
