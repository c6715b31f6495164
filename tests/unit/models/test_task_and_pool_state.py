import pytest

from proving_relay.config import CircuitType
from proving_relay.models import (
    InvalidTransitionError,
    PoolState,
    ProofArtifact,
    SlotStatus,
    Task,
    TaskState,
)


def make_task(task_id: str = "T1", circuit_type: int = 1) -> Task:
    return Task(task_id=task_id, circuit_type=circuit_type, circuit_version="v0.13.1", witness="{}")


class TestTaskTransitions:
    """Test the task lifecycle."""

    def test_happy_path(self):
        """A task moves claimed -> submitted -> proving -> completed."""
        task = make_task()

        task.transition(TaskState.SUBMITTED)
        task.transition(TaskState.PROVING)
        task.transition(TaskState.COMPLETED)

        assert task.terminal

    def test_failure_from_any_live_state(self):
        """Claimed, submitted and proving tasks can all fail."""
        for path in ([], [TaskState.SUBMITTED], [TaskState.SUBMITTED, TaskState.PROVING]):
            task = make_task()
            for state in path:
                task.transition(state)

            task.transition(TaskState.FAILED)

            assert task.state == TaskState.FAILED

    @pytest.mark.parametrize("terminal", [TaskState.COMPLETED, TaskState.FAILED])
    def test_terminal_states_are_final(self, terminal):
        """Nothing follows completed or failed."""
        task = make_task()
        task.transition(TaskState.SUBMITTED)
        task.transition(terminal)

        with pytest.raises(InvalidTransitionError):
            task.transition(TaskState.PROVING)

    def test_claimed_cannot_complete(self):
        """A task must be handed to the prover before it can complete."""
        with pytest.raises(InvalidTransitionError):
            make_task().transition(TaskState.COMPLETED)

    def test_circuit(self):
        """Known circuit types resolve, unknown ones do not."""
        assert make_task(circuit_type=3).circuit == CircuitType.BUNDLE
        assert make_task(circuit_type=42).circuit is None


class TestPoolState:
    """Test slot accounting."""

    def test_slots_created_per_worker(self):
        """One idle slot per worker."""
        state = PoolState(n_workers=3)

        assert [slot.index for slot in state.slots] == [0, 1, 2]
        assert state.idle_count == 3
        assert state.has_capacity()

    def test_zero_workers_rejected(self):
        """A pool needs at least one slot."""
        with pytest.raises(ValueError):
            PoolState(n_workers=0)

    def test_slot_owns_one_task(self):
        """Assigning a second task to a busy slot fails."""
        state = PoolState(n_workers=1)
        slot = state.slots[0]
        slot.assign(make_task("T1"))

        with pytest.raises(RuntimeError):
            slot.assign(make_task("T2"))

        assert slot.status == SlotStatus.BUSY
        assert state.busy_count == 1
        assert not state.has_capacity()

    def test_release_returns_task(self):
        """Releasing a slot hands back its task and frees the slot."""
        state = PoolState(n_workers=1)
        task = make_task()
        state.slots[0].assign(task)

        assert state.slots[0].release() is task
        assert state.idle_count == 1

    def test_completing_slots(self):
        """A busy slot with a terminal task counts as completing."""
        state = PoolState(n_workers=2)
        task = make_task()
        state.slots[0].assign(task)
        state.slots[1].assign(make_task("T2"))

        task.transition(TaskState.FAILED)

        assert state.completing_count == 1
        assert state.has_capacity()


class TestProofArtifact:
    """Test ProofArtifact."""

    def test_artifact_is_immutable(self):
        """Artifacts cannot be modified after creation."""
        artifact = ProofArtifact(task_id="T1", proof_bytes=b"0xABCD")

        assert artifact.proof == "0xABCD"

        with pytest.raises(AttributeError):
            artifact.proof_bytes = b"other"
