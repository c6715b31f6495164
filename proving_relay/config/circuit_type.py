from __future__ import annotations

from enum import IntEnum


class CircuitType(IntEnum):
    UNDEFINED = 0
    CHUNK = 1
    BATCH = 2
    BUNDLE = 3

    @property
    def circuit_name(self) -> str:
        """Name of the circuit on the remote proving service."""
        names = {
            CircuitType.CHUNK: "chunk_prover",
            CircuitType.BATCH: "batch_prover",
            CircuitType.BUNDLE: "bundle_prover",
        }

        if self not in names:
            raise ValueError(f"Circuit type {self.name} has no remote circuit")

        return names[self]

    @classmethod
    def parse(cls, value: int) -> CircuitType | None:
        try:
            return cls(value)

        except ValueError:
            return None
