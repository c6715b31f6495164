import time
from dataclasses import dataclass, field
from enum import IntEnum


class FailureType(IntEnum):
    UNDEFINED = 0
    PANIC = 1
    NO_PANIC = 2


@dataclass(slots=True, frozen=True)
class ProofArtifact:
    """
    Proof produced by the remote proving service.

    Immutable once created. Ownership moves from the proving service client
    to the owning slot and then to the coordinator client on submission.
    """

    task_id: str
    proof_bytes: bytes
    produced_at: float = field(default_factory=time.time)
    remote_proof_id: str = ""
    compute_time_sec: float | None = None

    @property
    def proof(self) -> str:
        return self.proof_bytes.decode()


@dataclass(slots=True, frozen=True)
class FailureReport:
    """Terminal failure of a task, reported so the coordinator can reassign it."""

    task_id: str
    reason: str
    failure_type: FailureType = FailureType.NO_PANIC
    reported_at: float = field(default_factory=time.time)
