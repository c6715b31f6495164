"""
Process-level record of failures that must not stay local to one slot.

The only escalation today is a completed proof the coordinator never
acknowledged. The artifact is kept so it is never silently dropped and can
be recovered from the process by an operator.
"""

import time
from dataclasses import dataclass, field

from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import RelayFatal
from proving_relay.models import ProofArtifact, Task


@dataclass(slots=True, frozen=True)
class Escalation:
    task_id: str
    circuit_type: int
    reason: str
    artifact: ProofArtifact
    slot: int | None = None
    escalated_at: float = field(default_factory=time.time)


class ErrorSurface:
    def __init__(
        self,
        node_id: str = "",
        logger: Logger | None = None,
    ) -> None:
        self._node_id = node_id
        self._logger = logger
        self._escalations: list[Escalation] = []

    @property
    def escalations(self) -> list[Escalation]:
        return list(self._escalations)

    @property
    def unreported_proofs(self) -> int:
        return len(self._escalations)

    async def escalate_unreported_proof(
        self,
        task: Task,
        artifact: ProofArtifact,
        error: BaseException,
        slot: int | None = None,
    ) -> Escalation:
        escalation = Escalation(
            task_id=task.task_id,
            circuit_type=task.circuit_type,
            reason=str(error),
            artifact=artifact,
            slot=slot,
        )
        self._escalations.append(escalation)

        if self._logger:
            await self._logger.log(
                RelayFatal(
                    message=(
                        f"Completed proof {artifact.remote_proof_id or '-'} for task "
                        f"{task.task_id} could not be reported: {error}"
                    ),
                    node_id=self._node_id,
                    slot=slot,
                    task_id=task.task_id,
                )
            )

        return escalation
