from enum import Enum
from typing import Any

import msgspec


class ProofStatus(Enum):
    QUEUED = "Queued"
    PROVING = "In Progress"
    READY = "Ready"
    FAILED = "Failed"

    @property
    def finished(self) -> bool:
        return self in (ProofStatus.READY, ProofStatus.FAILED)


class VerificationKey(msgspec.Struct, kw_only=True):
    verification_key: str


class CircuitInfoResponse(msgspec.Struct, kw_only=True):
    verification_key: VerificationKey


class ProveRequest(msgspec.Struct, kw_only=True):
    proof_input: str
    perform_verify: bool = True


class ProofInfoResponse(msgspec.Struct, kw_only=True):
    proof_id: str
    status: ProofStatus
    date_created: str = ""
    error: str | None = None
    proof: Any = None
    compute_time_sec: float | None = None
    queue_time_sec: float | None = None
    verification_key: VerificationKey | None = None
