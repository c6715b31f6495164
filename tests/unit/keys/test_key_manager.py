"""
Tests for KeyManager single-flight loading and the on-disk key layout.

These tests verify that:
1. Concurrent resolves for the same pair load from disk exactly once
2. A failed load is delivered to every waiter and not cached
3. Absent, corrupt and mismatched key files become KeyLoadError
4. Provisioning never overwrites an existing key file
"""

import asyncio
import base64
import os

import msgspec
import pytest

from proving_relay.config import CircuitType
from proving_relay.errors import KeyLoadError
from proving_relay.keys import (
    KeyFile,
    KeyManager,
    key_file_path,
    read_key_file,
    write_key_file,
)

VERSION = "v0.13.1"


def encoded(raw: bytes) -> str:
    return base64.standard_b64encode(raw).decode()


class SlowKeyManager(KeyManager):
    """KeyManager whose disk reads block until released."""

    def __init__(self, keys_dir: str) -> None:
        super().__init__(keys_dir)
        self.release = asyncio.Event()
        self.reads = 0

    async def _read_key_file(self, path: str) -> KeyFile:
        self.reads += 1
        await self.release.wait()
        return await super()._read_key_file(path)


class TestKeyFiles:
    """Test the key file layout helpers."""

    def test_key_file_path_layout(self):
        """Key files live under <keys_dir>/<version>/<circuit_name>.json."""
        path = key_file_path("/keys", CircuitType.BATCH, VERSION)

        assert path == os.path.join("/keys", VERSION, "batch_prover.json")

    def test_write_then_read(self, tmp_path):
        """A written key file reads back with the same fields."""
        path = write_key_file(str(tmp_path), CircuitType.CHUNK, VERSION, encoded(b"key"))

        assert path is not None

        key_file = read_key_file(path)
        assert key_file.circuit_type == 1
        assert key_file.circuit_version == VERSION
        assert key_file.payload() == b"key"

    def test_write_does_not_overwrite(self, tmp_path):
        """An existing key file is left untouched."""
        first = write_key_file(str(tmp_path), CircuitType.CHUNK, VERSION, encoded(b"first"))
        second = write_key_file(str(tmp_path), CircuitType.CHUNK, VERSION, encoded(b"second"))

        assert first is not None
        assert second is None
        assert read_key_file(first).payload() == b"first"

    def test_invalid_base64_payload(self):
        """payload() rejects keys that are not base64."""
        key_file = KeyFile(circuit_type=1, circuit_version=VERSION, key="not base64!")

        with pytest.raises(ValueError):
            key_file.payload()


class TestKeyManagerResolve:
    """Test KeyManager.resolve."""

    @pytest.mark.asyncio
    async def test_resolve_loads_and_caches(self, keys_dir):
        """A resolved key is served from cache afterwards."""
        manager = KeyManager(keys_dir)

        first = await manager.resolve(CircuitType.CHUNK, VERSION)
        second = await manager.resolve(1, VERSION)

        assert first is second
        assert first.payload == b"chunk-verification-key"
        assert first.circuit_type == CircuitType.CHUNK
        assert manager.load_count == 1
        assert manager.loaded(CircuitType.CHUNK, VERSION) is first

    @pytest.mark.asyncio
    async def test_concurrent_resolves_load_once(self, keys_dir):
        """Many concurrent callers for one pair share a single disk load."""
        manager = SlowKeyManager(keys_dir)

        callers = [
            asyncio.create_task(manager.resolve(CircuitType.BATCH, VERSION))
            for _ in range(8)
        ]
        await asyncio.sleep(0.01)
        manager.release.set()

        handles = await asyncio.gather(*callers)

        assert manager.load_count == 1
        assert manager.reads == 1
        assert all(handle is handles[0] for handle in handles)

    @pytest.mark.asyncio
    async def test_different_pairs_load_independently(self, keys_dir):
        """Distinct circuit types do not share a load."""
        manager = KeyManager(keys_dir)

        await asyncio.gather(
            manager.resolve(CircuitType.CHUNK, VERSION),
            manager.resolve(CircuitType.BATCH, VERSION),
            manager.resolve(CircuitType.BUNDLE, VERSION),
        )

        assert manager.load_count == 3

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_not_cached(self, tmp_path):
        """Every concurrent waiter sees the failure, and a later call loads again."""
        keys_dir = str(tmp_path)
        manager = SlowKeyManager(keys_dir)

        callers = [
            asyncio.create_task(manager.resolve(CircuitType.CHUNK, VERSION))
            for _ in range(4)
        ]
        await asyncio.sleep(0.01)
        manager.release.set()

        results = await asyncio.gather(*callers, return_exceptions=True)

        assert manager.load_count == 1
        assert all(isinstance(result, KeyLoadError) for result in results)
        assert "absent" in results[0].reason

        write_key_file(keys_dir, CircuitType.CHUNK, VERSION, encoded(b"late-key"))

        handle = await manager.resolve(CircuitType.CHUNK, VERSION)

        assert handle.payload == b"late-key"
        assert manager.load_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_key_file(self, tmp_path):
        """A key file that is not valid JSON is a KeyLoadError."""
        path = key_file_path(str(tmp_path), CircuitType.CHUNK, VERSION)
        os.makedirs(os.path.dirname(path))
        with open(path, "w") as key_file:
            key_file.write("{truncated")

        manager = KeyManager(str(tmp_path))

        with pytest.raises(KeyLoadError) as exc_info:
            await manager.resolve(CircuitType.CHUNK, VERSION)

        assert "corrupt" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_corrupt_key_payload(self, tmp_path):
        """A key that is not base64 is a KeyLoadError."""
        write_key_file(str(tmp_path), CircuitType.CHUNK, VERSION, "@@not-base64@@")

        manager = KeyManager(str(tmp_path))

        with pytest.raises(KeyLoadError):
            await manager.resolve(CircuitType.CHUNK, VERSION)

    @pytest.mark.asyncio
    async def test_mismatched_circuit_type(self, tmp_path):
        """A key file claiming another circuit type is rejected."""
        path = key_file_path(str(tmp_path), CircuitType.BATCH, VERSION)
        os.makedirs(os.path.dirname(path))
        with open(path, "wb") as key_file:
            key_file.write(
                msgspec.json.encode(
                    KeyFile(circuit_type=1, circuit_version=VERSION, key=encoded(b"k"))
                )
            )

        manager = KeyManager(str(tmp_path))

        with pytest.raises(KeyLoadError) as exc_info:
            await manager.resolve(CircuitType.BATCH, VERSION)

        assert exc_info.value.circuit_type == 2

    @pytest.mark.asyncio
    async def test_mismatched_version(self, keys_dir):
        """A version with no key directory is a KeyLoadError."""
        manager = KeyManager(keys_dir)

        with pytest.raises(KeyLoadError) as exc_info:
            await manager.resolve(CircuitType.CHUNK, "v0.12.0")

        assert exc_info.value.circuit_version == "v0.12.0"

    @pytest.mark.asyncio
    async def test_unknown_circuit_type(self, keys_dir):
        """Circuit types outside chunk, batch and bundle have no key."""
        manager = KeyManager(keys_dir)

        with pytest.raises(KeyLoadError):
            await manager.resolve(9, VERSION)


class TestKeyManagerPreload:
    """Test KeyManager.preload and verification_keys."""

    @pytest.mark.asyncio
    async def test_preload_collects_loaded_keys(self, keys_dir):
        """preload resolves every configured circuit."""
        manager = KeyManager(keys_dir)

        handles = await manager.preload(
            [CircuitType.CHUNK, CircuitType.BATCH, CircuitType.BUNDLE],
            VERSION,
        )

        assert len(handles) == 3
        assert manager.verification_keys() == [
            encoded(b"chunk-verification-key"),
            encoded(b"batch-verification-key"),
            encoded(b"bundle-verification-key"),
        ]

    @pytest.mark.asyncio
    async def test_preload_tolerates_missing_keys(self, tmp_path):
        """A missing key is skipped and left for a later resolve."""
        write_key_file(str(tmp_path), CircuitType.CHUNK, VERSION, encoded(b"chunk"))
        manager = KeyManager(str(tmp_path))

        handles = await manager.preload([CircuitType.CHUNK, CircuitType.BATCH], VERSION)

        assert [handle.circuit_type for handle in handles] == [CircuitType.CHUNK]
        assert manager.loaded(CircuitType.BATCH, VERSION) is None
