import base64
import time
from dataclasses import dataclass, field

from proving_relay.config import CircuitType


@dataclass(slots=True, frozen=True)
class KeyHandle:
    """
    Loaded proving key. Shared read-only by every slot once loaded.
    """

    circuit_type: CircuitType
    circuit_version: str
    payload: bytes
    loaded_at: float = field(default_factory=time.time)

    @property
    def encoded(self) -> str:
        """Standard padded base64 of the key payload."""
        return base64.standard_b64encode(self.payload).decode()
