from .health_snapshot import (
    ContactSnapshot as ContactSnapshot,
    HealthSnapshot as HealthSnapshot,
)
from .key_handle import KeyHandle as KeyHandle
from .pool_state import (
    PoolState as PoolState,
    SlotState as SlotState,
    SlotStatus as SlotStatus,
)
from .proof import (
    FailureReport as FailureReport,
    FailureType as FailureType,
    ProofArtifact as ProofArtifact,
)
from .task import (
    InvalidTransitionError as InvalidTransitionError,
    Task as Task,
    TaskState as TaskState,
)
