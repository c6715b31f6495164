"""
Shared fixtures: in-process coordinator and proving service fakes, a key
directory populated with the fakes' verification keys, and a relay
configuration pointing at both.
"""

import base64
from typing import AsyncGenerator

import pytest

from proving_relay.config import CircuitType, RelayConfig
from proving_relay.keys import write_key_file
from tests.fakes import FakeCoordinator, FakeProvingService, relay_document


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture
def keys_dir(tmp_path) -> str:
    verification_keys = FakeProvingService().verification_keys
    directory = str(tmp_path / "keys")

    for circuit in (CircuitType.CHUNK, CircuitType.BATCH, CircuitType.BUNDLE):
        write_key_file(
            directory,
            circuit,
            "v0.13.1",
            base64.standard_b64encode(verification_keys[circuit.circuit_name]).decode(),
        )

    return directory


@pytest.fixture
async def fake_coordinator() -> AsyncGenerator[FakeCoordinator, None]:
    coordinator = FakeCoordinator()
    await coordinator.start()
    yield coordinator
    await coordinator.close()


@pytest.fixture
async def fake_prover() -> AsyncGenerator[FakeProvingService, None]:
    prover = FakeProvingService()
    await prover.start()
    yield prover
    await prover.close()


@pytest.fixture
def relay_config(
    fake_coordinator: FakeCoordinator,
    fake_prover: FakeProvingService,
    keys_dir: str,
) -> RelayConfig:
    return RelayConfig.from_document(
        relay_document(
            proving_url=fake_prover.base_url,
            coordinator_url=fake_coordinator.base_url,
            keys_dir=keys_dir,
        )
    )
