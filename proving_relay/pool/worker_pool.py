"""
Fixed pool of independent claim -> prove -> submit pipelines.

Each slot is its own asyncio task and owns at most one Task at a time, so
the number of busy slots can never exceed n_workers. A failure inside one
pipeline ends that task attempt only; the slot goes back to claiming.

Shutdown sets the stop event: idle slots stop polling immediately, a claim
already on the wire is allowed to finish, and a task claimed after the stop
was requested is handed back to the coordinator as a failure so it can be
reassigned. A slot that already holds a proof still submits it.
"""

from __future__ import annotations

import asyncio

from proving_relay.clients import CoordinatorClient, ProvingServiceClient
from proving_relay.config import RelayConfig
from proving_relay.errors import (
    ClaimError,
    ComputationFailureError,
    KeyLoadError,
    ProveError,
    SubmitError,
)
from proving_relay.health.heartbeat import Heartbeat
from proving_relay.keys import KeyManager
from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import (
    RelayCritical,
    RelayDebug,
    RelayError,
    RelayInfo,
    RelayWarning,
)
from proving_relay.models import (
    FailureReport,
    FailureType,
    PoolState,
    ProofArtifact,
    SlotState,
    Task,
    TaskState,
)
from proving_relay.server.error_surface import ErrorSurface


class WorkerPool:
    def __init__(
        self,
        config: RelayConfig,
        coordinator: CoordinatorClient,
        prover: ProvingServiceClient,
        key_manager: KeyManager,
        error_surface: ErrorSurface | None = None,
        heartbeat: Heartbeat | None = None,
        node_id: str = "",
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._coordinator = coordinator
        self._prover = prover
        self._key_manager = key_manager
        self._error_surface = error_surface or ErrorSurface(node_id=node_id, logger=logger)
        self._heartbeat = heartbeat or Heartbeat()
        self._node_id = node_id
        self._logger = logger

        self._state = PoolState(n_workers=config.n_workers)
        self._stop_event = asyncio.Event()
        self._slot_tasks: list[asyncio.Task] = []

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def error_surface(self) -> ErrorSurface:
        return self._error_surface

    @property
    def running(self) -> bool:
        return any(not slot_task.done() for slot_task in self._slot_tasks)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        if self._slot_tasks:
            raise RuntimeError("WorkerPool is already started")

        self._stop_event.clear()
        self._slot_tasks = [
            asyncio.create_task(
                self._run_slot(slot),
                name=f"relay-slot-{slot.index}",
            )
            for slot in self._state.slots
        ]

    async def join(self) -> None:
        await asyncio.gather(*self._slot_tasks)

    async def stop(self, grace: float | None = None) -> int:
        """
        Stop claiming and drain in-flight tasks for up to ``grace`` seconds.

        Returns the number of slots that had to be cancelled.
        """
        self._stop_event.set()

        if grace is None:
            grace = self._config.shutdown_grace_sec

        if not self._slot_tasks:
            return 0

        _, pending = await asyncio.wait(self._slot_tasks, timeout=grace)

        for slot_task in pending:
            slot_task.cancel()

        await asyncio.gather(*self._slot_tasks, return_exceptions=True)
        self._slot_tasks.clear()

        if pending:
            await self._log(
                RelayWarning,
                f"Cancelled {len(pending)} slots still busy after {grace}s",
            )

        return len(pending)

    async def _run_slot(self, slot: SlotState) -> None:
        await self._log(RelayDebug, "Slot started", slot=slot.index)

        while not self._stop_event.is_set():
            self._heartbeat.beat()

            task = await self._claim(slot)
            if task is None:
                await self._idle()
                continue

            slot.assign(task)

            try:
                if self._stop_event.is_set():
                    await self._fail(slot, task, "relay is shutting down")

                else:
                    await self.process_task(slot, task)

            except Exception as err:
                await self._recover(slot, task, err)

            finally:
                slot.release()

        await self._log(RelayDebug, "Slot stopped", slot=slot.index)

    async def _claim(self, slot: SlotState) -> Task | None:
        """Claim the next task. Any failure is logged and reported as no task."""
        try:
            return await self._coordinator.claim_task()

        except ClaimError as err:
            await self._log(
                RelayWarning,
                f"Claim failed: {err}",
                slot=slot.index,
            )

        except Exception as err:
            await self._log(
                RelayCritical,
                f"Claim crashed: {err!r}",
                slot=slot.index,
            )

        return None

    async def _recover(self, slot: SlotState, task: Task, err: Exception) -> None:
        await self._log(
            RelayCritical,
            f"Pipeline crashed: {err!r}",
            slot=slot.index,
            task_id=task.task_id,
        )

        if task.terminal:
            return

        try:
            await self._fail(slot, task, f"relay internal error: {err!r}")

        except Exception as fail_err:
            await self._log(
                RelayCritical,
                f"Failure report crashed: {fail_err!r}",
                slot=slot.index,
                task_id=task.task_id,
            )

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(
                self._stop_event.wait(),
                timeout=self._config.idle_interval_sec,
            )

        except asyncio.TimeoutError:
            pass

    async def process_task(self, slot: SlotState, task: Task) -> None:
        """Run one claimed task from key resolution through submission."""
        circuit = task.circuit

        if circuit is None or circuit not in self._config.circuit_types:
            await self._fail(slot, task, f"circuit type {task.circuit_type} is not supported")
            return

        if task.circuit_version != self._config.circuit_version:
            await self._fail(
                slot,
                task,
                f"circuit version {task.circuit_version} is not supported",
            )
            return

        try:
            key = await self._key_manager.resolve(circuit, task.circuit_version)

        except KeyLoadError as err:
            await self._fail(slot, task, str(err))
            return

        task.transition(TaskState.SUBMITTED)

        try:
            artifact = await self._prover.prove(
                task.circuit_type,
                task.circuit_version,
                key,
                task.witness,
                task_id=task.task_id,
                on_accepted=lambda _: task.transition(TaskState.PROVING),
            )

        except ComputationFailureError as err:
            await self._fail(slot, task, f"proof computation failed: {err}")
            return

        except ProveError as err:
            await self._fail(slot, task, str(err))
            return

        task.transition(TaskState.COMPLETED)
        slot.completed_count += 1

        await self._submit_proof(slot, task, artifact)

    async def _submit_proof(
        self,
        slot: SlotState,
        task: Task,
        artifact: ProofArtifact,
    ) -> None:
        try:
            await self._coordinator.submit_result(task, artifact)

        except SubmitError as err:
            await self._error_surface.escalate_unreported_proof(
                task,
                artifact,
                err,
                slot=slot.index,
            )
            return

        await self._log(
            RelayInfo,
            f"Submitted proof {artifact.remote_proof_id or '-'}",
            slot=slot.index,
            task_id=task.task_id,
        )

    async def _fail(self, slot: SlotState, task: Task, reason: str) -> None:
        task.transition(TaskState.FAILED)
        slot.failed_count += 1

        await self._log(
            RelayWarning,
            f"Task failed: {reason}",
            slot=slot.index,
            task_id=task.task_id,
        )

        report = FailureReport(
            task_id=task.task_id,
            reason=reason,
            failure_type=FailureType.NO_PANIC,
        )

        try:
            await self._coordinator.submit_result(task, report)

        except SubmitError as err:
            await self._log(
                RelayError,
                f"Failure report was not delivered: {err}",
                slot=slot.index,
                task_id=task.task_id,
            )

    async def _log(
        self,
        entry_type: type,
        message: str,
        slot: int | None = None,
        task_id: str | None = None,
    ) -> None:
        if self._logger:
            await self._logger.log(
                entry_type(
                    message=message,
                    node_id=self._node_id,
                    slot=slot,
                    task_id=task_id,
                )
            )
