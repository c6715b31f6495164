"""
Proving task owned by a single worker slot from claim to submission.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

from proving_relay.config import CircuitType


class TaskState(Enum):
    CLAIMED = "claimed"  # Received from the coordinator
    SUBMITTED = "submitted"  # Handed to the proving service
    PROVING = "proving"  # Accepted by the proving service
    COMPLETED = "completed"  # Proof produced
    FAILED = "failed"  # Terminal failure, reported to the coordinator


_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.CLAIMED: frozenset({TaskState.SUBMITTED, TaskState.FAILED}),
    TaskState.SUBMITTED: frozenset({TaskState.PROVING, TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.PROVING: frozenset({TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    pass


@dataclass(slots=True)
class Task:
    task_id: str
    circuit_type: int
    circuit_version: str
    witness: str
    uuid: str = ""
    hard_fork_name: str = ""
    claimed_at: float = field(default_factory=time.time)
    state: TaskState = TaskState.CLAIMED

    @property
    def circuit(self) -> CircuitType | None:
        """Known circuit type, or None for a value outside the enumeration."""
        return CircuitType.parse(self.circuit_type)

    @property
    def terminal(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.FAILED)

    def transition(self, state: TaskState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Task {self.task_id} cannot move from {self.state.value} to {state.value}"
            )

        self.state = state
