"""
Client for the remote proving API.

Proving is a submit + poll cycle: the circuit's ``prove`` method accepts the
witness and returns a proof id, then the proof's ``detail`` method is polled
until the remote computation is Ready or Failed. Every network call runs
under the proving-service RetryPolicy on its own, so a poll hiccup never
resubmits the witness.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import msgspec
import orjson

from proving_relay.config import CircuitType, RelayConfig
from proving_relay.errors import (
    ComputationFailureError,
    MalformedResponseError,
    PermanentRejectionError,
    ProveError,
    RelayError,
    RetryExhaustedError,
    UnsupportedCircuitError,
)
from proving_relay.health.contact_tracker import ContactTracker
from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import (
    ClientDebug,
    ClientError,
    ClientInfo,
    ClientWarning,
)
from proving_relay.models import KeyHandle, ProofArtifact
from proving_relay.models.proving_service_messages import (
    CircuitInfoResponse,
    ProofInfoResponse,
    ProofStatus,
    ProveRequest,
)
from proving_relay.reliability import RetryPolicy

from .http_session import HttpSession

T = TypeVar("T")

API_PATH = "api/v1"
CIRCUIT_OWNER = "scroll-tech"
PROOF_DETAIL_PARAMS = {
    "include_proof": "true",
    "include_public": "true",
    "include_verification_key": "true",
}
OK_STATUSES = range(200, 203)


def reformat_verification_key(verification_key: str) -> str:
    """Re-encode URL-safe unpadded base64 as standard padded base64."""
    padded = verification_key + "=" * (-len(verification_key) % 4)

    try:
        raw = base64.urlsafe_b64decode(padded.encode())

    except (binascii.Error, ValueError) as err:
        raise MalformedResponseError(
            f"Verification key is not URL-safe base64: {err}"
        ) from err

    return base64.standard_b64encode(raw).decode()


def reprocess_input(circuit: CircuitType, witness: str) -> str:
    """
    Bundle witnesses carry their batch proofs under ``batch_proofs``; the
    remote circuit expects that array as its input directly.
    """
    if circuit != CircuitType.BUNDLE:
        return witness

    try:
        bundle = orjson.loads(witness)

    except orjson.JSONDecodeError as err:
        raise ComputationFailureError(f"Bundle input is not valid JSON: {err}") from err

    if not isinstance(bundle, dict) or "batch_proofs" not in bundle:
        raise ComputationFailureError("Bundle input has no batch_proofs member")

    return orjson.dumps(bundle["batch_proofs"]).decode()


def proof_bytes(proof: Any) -> bytes:
    if isinstance(proof, str):
        return proof.encode()

    return orjson.dumps(proof)


class ProvingServiceClient:
    def __init__(
        self,
        config: RelayConfig,
        node_id: str = "",
        retry_policy: RetryPolicy | None = None,
        tracker: ContactTracker | None = None,
        session: HttpSession | None = None,
        logger: Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._node_id = node_id
        self._api_key = config.api_key
        self._circuit_types = config.circuit_types
        self._circuit_version = config.circuit_version
        self._poll_interval = config.poll_interval_sec
        self._max_proving_time = config.max_proving_time_sec

        self._retry = retry_policy or RetryPolicy(
            config.retry_config(),
            name="proving_service",
        )
        self._tracker = tracker or ContactTracker(
            "proving_service",
            window_sec=config.readiness_window_sec,
        )
        self._session = session or HttpSession(
            f"{config.base_url.rstrip('/')}/{API_PATH}",
            connection_timeout=config.connection_timeout_sec,
            compress_requests=config.compress_requests,
        )
        self._logger = logger
        self._sleep = sleep
        self._clock = clock

    @property
    def tracker(self) -> ContactTracker:
        return self._tracker

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def circuit_path(self, circuit: CircuitType, method: str) -> str:
        return f"circuit/{CIRCUIT_OWNER}/{circuit.circuit_name}:{self._circuit_version}/{method}"

    def check_circuit(self, circuit_type: int, circuit_version: str) -> CircuitType:
        circuit = CircuitType.parse(circuit_type)

        if circuit is None or circuit not in self._circuit_types:
            raise UnsupportedCircuitError(f"Circuit type {circuit_type} is not configured")

        if circuit_version != self._circuit_version:
            raise UnsupportedCircuitError(
                f"Circuit version mismatch: {circuit_version} != {self._circuit_version}"
            )

        return circuit

    async def prove(
        self,
        circuit_type: int,
        circuit_version: str,
        key: KeyHandle | None,
        witness: str,
        task_id: str = "",
        on_accepted: Callable[[ProofInfoResponse], None] | None = None,
    ) -> ProofArtifact:
        """
        Submit a witness and wait for the remote proof.

        Raises:
            ComputationFailureError: The remote prover failed the computation,
                the input could not be prepared for it, or the proof was still
                unfinished after max_proving_time_sec. Never retried.
            ProveError: Anything else ended the call (unsupported circuit,
                authentication failure, exhausted retries).
        """
        try:
            circuit = self.check_circuit(circuit_type, circuit_version)
            proof_input = reprocess_input(circuit, witness)

            info = await self._call(
                "prove",
                ProofInfoResponse,
                lambda: self._session.request_json(
                    "POST",
                    self.circuit_path(circuit, "prove"),
                    payload=msgspec.to_builtins(ProveRequest(proof_input=proof_input)),
                    headers=self._headers(),
                    ok_statuses=OK_STATUSES,
                ),
            )

            await self._log(
                ClientInfo,
                "prove",
                f"Task {task_id} accepted as proof {info.proof_id} ({info.status.value})",
            )

            if on_accepted and info.status != ProofStatus.FAILED:
                on_accepted(info)

            started = self._clock()

            while not info.status.finished:
                self._check_proving_time(info, task_id, started)
                await self._sleep(self._poll_interval)
                info = await self.query_proof(info.proof_id)

        except ComputationFailureError:
            raise

        except RelayError as err:
            raise ProveError(f"Proving task {task_id} failed: {err}", cause=err) from err

        if info.status == ProofStatus.FAILED:
            await self._log(
                ClientWarning,
                "prove",
                f"Proof {info.proof_id} for task {task_id} failed: {info.error}",
            )
            raise ComputationFailureError(
                info.error or f"Proof {info.proof_id} failed",
                proof_id=info.proof_id,
            )

        if info.proof is None:
            raise ComputationFailureError(
                f"Proof {info.proof_id} is Ready without a proof",
                proof_id=info.proof_id,
            )

        if key is not None and info.verification_key is not None:
            self._check_verification_key(info, key)

        return ProofArtifact(
            task_id=task_id,
            proof_bytes=proof_bytes(info.proof),
            remote_proof_id=info.proof_id,
            compute_time_sec=info.compute_time_sec,
        )

    def _check_proving_time(
        self,
        info: ProofInfoResponse,
        task_id: str,
        started: float,
    ) -> None:
        if self._max_proving_time is None:
            return

        if self._clock() - started >= self._max_proving_time:
            raise ComputationFailureError(
                f"Proof {info.proof_id} for task {task_id} not finished after "
                f"{self._max_proving_time}s ({info.status.value})",
                proof_id=info.proof_id,
            )

    def _check_verification_key(self, info: ProofInfoResponse, key: KeyHandle) -> None:
        try:
            remote_key = reformat_verification_key(info.verification_key.verification_key)

        except MalformedResponseError as err:
            raise ComputationFailureError(str(err), proof_id=info.proof_id) from err

        if remote_key != key.encoded:
            raise ComputationFailureError(
                f"Proof {info.proof_id} was produced with a different verification key",
                proof_id=info.proof_id,
            )

    async def query_proof(self, proof_id: str) -> ProofInfoResponse:
        info = await self._call(
            "query_proof",
            ProofInfoResponse,
            lambda: self._session.request_json(
                "GET",
                f"proof/{proof_id}/detail",
                headers=self._headers(),
                params=PROOF_DETAIL_PARAMS,
                ok_statuses=OK_STATUSES,
            ),
        )

        await self._log(
            ClientDebug,
            "query_proof",
            f"Proof {proof_id} is {info.status.value}",
        )

        return info

    async def get_verification_keys(
        self,
        circuit_types: Iterable[CircuitType] | None = None,
    ) -> list[str]:
        """Verification keys of the given circuits, standard base64, de-duplicated in order."""
        if circuit_types is None:
            circuit_types = self._circuit_types

        verification_keys: list[str] = []

        for circuit in circuit_types:
            info = await self._call(
                "get_verification_keys",
                CircuitInfoResponse,
                lambda circuit=circuit: self._session.request_json(
                    "GET",
                    self.circuit_path(circuit, "detail"),
                    headers=self._headers(),
                    ok_statuses=OK_STATUSES,
                ),
            )

            verification_key = reformat_verification_key(
                info.verification_key.verification_key
            )
            if verification_key not in verification_keys:
                verification_keys.append(verification_key)

        return verification_keys

    async def _call(
        self,
        operation_name: str,
        response_type: type[T],
        request: Callable[[], Awaitable[Any]],
    ) -> T:
        try:
            body = await self._retry.execute(request, operation_name)

        except RetryExhaustedError as err:
            self._tracker.record_exhausted()
            await self._log(ClientError, operation_name, str(err))
            raise

        except PermanentRejectionError as err:
            await self._log(ClientError, operation_name, str(err))
            raise

        self._tracker.record_success()

        try:
            return msgspec.convert(body, response_type)

        except msgspec.ValidationError as err:
            raise MalformedResponseError(
                f"Invalid {operation_name} response: {err}"
            ) from err

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _log(self, entry_type: type, operation: str, message: str) -> None:
        if self._logger:
            await self._logger.log(
                entry_type(
                    message=message,
                    node_id=self._node_id,
                    endpoint=self._session.base_url,
                    operation=operation,
                )
            )

    async def close(self) -> None:
        await self._session.close()
