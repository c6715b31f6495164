"""
Proving key cache with single-flight loading.

The first caller for a (circuit_type, circuit_version) pair becomes the
loader and publishes its outcome through a pending future; every concurrent
caller for the same pair awaits that future instead of touching the disk.
Successful loads are cached for the process lifetime. Failures are handed
to every waiter and then forgotten, so the next call loads again.
"""

import asyncio
from typing import Dict, Iterable, Tuple

import msgspec

from proving_relay.config import CircuitType
from proving_relay.errors import KeyLoadError
from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import KeyFailure, KeyInfo
from proving_relay.models import KeyHandle

from .key_file import KeyFile, key_file_path, read_key_file

KeyPair = Tuple[int, str]


class KeyManager:
    def __init__(
        self,
        keys_dir: str,
        node_id: str = "",
        logger: Logger | None = None,
    ) -> None:
        self._keys_dir = keys_dir
        self._node_id = node_id
        self._logger = logger

        self._handles: Dict[KeyPair, KeyHandle] = {}
        self._inflight: Dict[KeyPair, asyncio.Future[KeyHandle]] = {}
        self._load_count = 0

    @property
    def keys_dir(self) -> str:
        return self._keys_dir

    @property
    def load_count(self) -> int:
        """Number of load-from-disk operations started so far."""
        return self._load_count

    def loaded(self, circuit_type: int, circuit_version: str) -> KeyHandle | None:
        return self._handles.get((int(circuit_type), circuit_version))

    async def resolve(self, circuit_type: int, circuit_version: str) -> KeyHandle:
        pair: KeyPair = (int(circuit_type), circuit_version)

        if handle := self._handles.get(pair):
            return handle

        if pending := self._inflight.get(pair):
            return await asyncio.shield(pending)

        pending = asyncio.get_running_loop().create_future()
        self._inflight[pair] = pending

        try:
            handle = await self._load(pair)

        except asyncio.CancelledError:
            pending.set_exception(
                KeyLoadError(pair[0], pair[1], "load was cancelled")
            )
            pending.exception()
            raise

        except Exception as err:
            pending.set_exception(err)
            pending.exception()
            raise

        else:
            self._handles[pair] = handle
            pending.set_result(handle)

        finally:
            self._inflight.pop(pair, None)

        return handle

    async def preload(
        self,
        circuit_types: Iterable[CircuitType],
        circuit_version: str,
    ) -> list[KeyHandle]:
        """Resolve every given key. Failures are logged and left for a later retry."""
        results = await asyncio.gather(
            *[self.resolve(circuit, circuit_version) for circuit in circuit_types],
            return_exceptions=True,
        )

        handles: list[KeyHandle] = []
        for result in results:
            if isinstance(result, KeyLoadError):
                if self._logger:
                    await self._logger.log(
                        KeyFailure(
                            message=str(result),
                            node_id=self._node_id,
                            circuit_type=result.circuit_type,
                            circuit_version=result.circuit_version,
                        )
                    )

            elif isinstance(result, BaseException):
                raise result

            else:
                handles.append(result)

        return handles

    def verification_keys(self) -> list[str]:
        keys: list[str] = []
        for handle in self._handles.values():
            if handle.encoded not in keys:
                keys.append(handle.encoded)

        return keys

    async def _load(self, pair: KeyPair) -> KeyHandle:
        circuit_type, circuit_version = pair
        self._load_count += 1

        circuit = CircuitType.parse(circuit_type)
        if circuit is None or circuit == CircuitType.UNDEFINED:
            raise KeyLoadError(circuit_type, circuit_version, "unknown circuit type")

        path = key_file_path(self._keys_dir, circuit, circuit_version)

        try:
            key_file = await self._read_key_file(path)

        except FileNotFoundError as err:
            raise KeyLoadError(circuit_type, circuit_version, f"{path} is absent") from err

        except OSError as err:
            raise KeyLoadError(circuit_type, circuit_version, f"cannot read {path}: {err}") from err

        except msgspec.DecodeError as err:
            raise KeyLoadError(circuit_type, circuit_version, f"{path} is corrupt: {err}") from err

        if key_file.circuit_type != circuit_type:
            raise KeyLoadError(
                circuit_type,
                circuit_version,
                f"{path} holds a key for circuit type {key_file.circuit_type}",
            )

        if key_file.circuit_version != circuit_version:
            raise KeyLoadError(
                circuit_type,
                circuit_version,
                f"{path} holds a key for version {key_file.circuit_version}",
            )

        try:
            payload = key_file.payload()

        except ValueError as err:
            raise KeyLoadError(circuit_type, circuit_version, f"{path} is corrupt: {err}") from err

        handle = KeyHandle(
            circuit_type=circuit,
            circuit_version=circuit_version,
            payload=payload,
        )

        if self._logger:
            await self._logger.log(
                KeyInfo(
                    message=f"Loaded proving key from {path}",
                    node_id=self._node_id,
                    circuit_type=circuit_type,
                    circuit_version=circuit_version,
                )
            )

        return handle

    async def _read_key_file(self, path: str) -> KeyFile:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read_key_file, path)
