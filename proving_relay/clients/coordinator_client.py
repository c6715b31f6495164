"""
Client for the rollup coordinator.

The coordinator speaks JSON envelopes ({errcode, errmsg, data}) over HTTP.
A session token is obtained through a challenge/login handshake and shared
by every slot. When the coordinator reports an expired token, the first
slot to notice performs a single re-login and every other slot reuses the
refreshed token.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import msgspec

from proving_relay import __version__
from proving_relay.config import CircuitType, RelayConfig
from proving_relay.errors import (
    AuthenticationError,
    ClaimError,
    MalformedResponseError,
    PermanentRejectionError,
    RelayError,
    RetryExhaustedError,
    SubmitError,
)
from proving_relay.health.contact_tracker import ContactTracker
from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import (
    ClientError,
    ClientInfo,
    ClientWarning,
)
from proving_relay.models import FailureReport, ProofArtifact, Task
from proving_relay.models.coordinator_messages import (
    ERR_EMPTY_TASK,
    ERR_TOKEN_EXPIRED,
    PROOF_STATUS_FAILED,
    PROOF_STATUS_OK,
    CoordinatorResponse,
    GetTaskRequest,
    LoginMessage,
    LoginRequest,
    SubmitProofRequest,
    TaskData,
    TokenData,
)
from proving_relay.reliability import RetryPolicy

from .http_session import HttpSession, classify_status, decode_body

CHALLENGE_PATH = "coordinator/v1/challenge"
LOGIN_PATH = "coordinator/v1/login"
GET_TASK_PATH = "coordinator/v1/get_task"
SUBMIT_PROOF_PATH = "coordinator/v1/submit_proof"


class SessionExpiredError(AuthenticationError):
    pass


class CoordinatorClient:
    def __init__(
        self,
        config: RelayConfig,
        node_id: str,
        verification_keys: Callable[[], list[str]] | None = None,
        retry_policy: RetryPolicy | None = None,
        tracker: ContactTracker | None = None,
        session: HttpSession | None = None,
        logger: Logger | None = None,
    ) -> None:
        coordinator = config.sdk_config.coordinator

        self._node_id = node_id
        self._prover_name = config.prover_name(node_id)
        self._circuit_types: tuple[CircuitType, ...] = config.circuit_types
        self._circuit_version = config.circuit_version
        self._verification_keys = verification_keys or list

        self._retry = retry_policy or RetryPolicy(
            coordinator.retry_config(),
            name="coordinator",
        )
        self._tracker = tracker or ContactTracker(
            "coordinator",
            window_sec=config.readiness_window_sec,
        )
        self._session = session or HttpSession(
            coordinator.base_url,
            connection_timeout=coordinator.connection_timeout_sec,
        )
        self._logger = logger

        self._token: str | None = None
        self._generation = 0
        self._login_lock = asyncio.Lock()

    @property
    def tracker(self) -> ContactTracker:
        return self._tracker

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    @property
    def prover_name(self) -> str:
        return self._prover_name

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    async def login(self) -> str:
        """
        Perform the challenge/login handshake under the coordinator retry policy.

        Concurrent callers coalesce: whoever waited on the lock while another
        caller logged in reuses that token instead of logging in again.
        """
        generation = self._generation

        async with self._login_lock:
            if self._token is not None and self._generation != generation:
                return self._token

            try:
                token = await self._retry.execute(self._login_once, "login")

            except RetryExhaustedError as err:
                self._tracker.record_exhausted()
                await self._log(ClientError, "login", f"Login exhausted retries: {err}")
                raise

            except AuthenticationError as err:
                await self._log(ClientError, "login", f"Login rejected: {err}")
                raise

            self._token = token
            self._generation += 1
            self._tracker.record_success()

        await self._log(ClientInfo, "login", f"Logged in as {self._prover_name}")
        return token

    async def claim_task(self) -> Task | None:
        """
        Ask the coordinator for a task of one of the configured circuit types.

        Returns None when the coordinator has nothing to assign. An empty
        queue is a successful contact and never consumes retry budget.
        """
        request = GetTaskRequest(task_types=[int(circuit) for circuit in self._circuit_types])

        try:
            response = await self._execute(GET_TASK_PATH, request, "claim_task")

        except RelayError as err:
            raise ClaimError(f"Claiming a task failed: {err}", cause=err) from err

        if response.errcode == ERR_EMPTY_TASK or (response.errcode == 0 and not response.data):
            return None

        if response.errcode != 0:
            err = PermanentRejectionError(
                f"Coordinator refused get_task ({response.errcode}): {response.errmsg}"
            )
            raise ClaimError(str(err), cause=err) from err

        try:
            task_data = msgspec.convert(response.data, TaskData)

        except msgspec.ValidationError as validation_error:
            err = MalformedResponseError(f"Invalid task payload: {validation_error}")
            raise ClaimError(str(err), cause=err) from validation_error

        return Task(
            task_id=task_data.task_id,
            circuit_type=task_data.task_type,
            circuit_version=task_data.circuit_version or self._circuit_version,
            witness=task_data.task_data,
            uuid=task_data.uuid,
            hard_fork_name=task_data.hard_fork_name,
        )

    async def submit_result(
        self,
        task: Task,
        outcome: ProofArtifact | FailureReport,
    ) -> CoordinatorResponse:
        """Report a proof or a terminal failure for a task. Returns the acknowledgement."""
        if isinstance(outcome, ProofArtifact):
            request = SubmitProofRequest(
                uuid=task.uuid,
                task_id=task.task_id,
                task_type=task.circuit_type,
                status=PROOF_STATUS_OK,
                proof=outcome.proof,
            )

        else:
            request = SubmitProofRequest(
                uuid=task.uuid,
                task_id=task.task_id,
                task_type=task.circuit_type,
                status=PROOF_STATUS_FAILED,
                failure_type=int(outcome.failure_type),
                failure_msg=outcome.reason,
            )

        try:
            response = await self._execute(SUBMIT_PROOF_PATH, request, "submit_result")

        except RelayError as err:
            raise SubmitError(
                f"Submitting task {task.task_id} failed: {err}",
                cause=err,
                outcome=outcome,
            ) from err

        if response.errcode != 0:
            err = PermanentRejectionError(
                f"Coordinator refused submit_proof ({response.errcode}): {response.errmsg}"
            )
            raise SubmitError(str(err), cause=err, outcome=outcome) from err

        return response

    async def _execute(
        self,
        path: str,
        request: msgspec.Struct,
        operation_name: str,
    ) -> CoordinatorResponse:
        if self._token is None:
            await self.login()

        payload = msgspec.to_builtins(request)

        try:
            response = await self._retry.execute(
                lambda: self._authorized(path, payload),
                operation_name,
            )

        except RetryExhaustedError as err:
            self._tracker.record_exhausted()
            await self._log(ClientError, operation_name, str(err))
            raise

        except PermanentRejectionError as err:
            await self._log(ClientWarning, operation_name, str(err))
            raise

        self._tracker.record_success()
        return response

    async def _authorized(self, path: str, payload: Any) -> CoordinatorResponse:
        generation = self._generation

        try:
            return await self._post(path, payload, self._token)

        except SessionExpiredError:
            await self._refresh(generation)

        try:
            return await self._post(path, payload, self._token)

        except SessionExpiredError as err:
            raise AuthenticationError(
                f"Coordinator rejected a freshly issued token: {err}"
            ) from err

    async def _refresh(self, generation: int) -> None:
        async with self._login_lock:
            if self._generation != generation:
                return

            await self._log(ClientInfo, "login", "Session expired, logging in again")

            self._token = await self._login_once()
            self._generation += 1

    async def _post(self, path: str, payload: Any, token: str | None) -> CoordinatorResponse:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        status, body = await self._session.request("POST", path, payload=payload, headers=headers)

        if status == 401:
            raise SessionExpiredError(f"HTTP 401 from {path}", status=status)

        response = self._decode_response(status, body)

        if response.errcode == ERR_TOKEN_EXPIRED:
            raise SessionExpiredError(f"Token expired: {response.errmsg}")

        return response

    async def _login_once(self) -> str:
        status, body = await self._session.request("GET", CHALLENGE_PATH)
        challenge = self._decode_token(self._decode_response(status, body))

        request = LoginRequest(
            message=LoginMessage(
                challenge=challenge,
                prover_name=self._prover_name,
                prover_version=f"proving-relay/{__version__}",
                prover_types=[int(circuit) for circuit in self._circuit_types],
                vks=self._verification_keys(),
            )
        )

        status, body = await self._session.request(
            "POST",
            LOGIN_PATH,
            payload=msgspec.to_builtins(request),
            headers={"Authorization": f"Bearer {challenge}"},
        )

        return self._decode_token(self._decode_response(status, body))

    def _decode_response(self, status: int, body: bytes) -> CoordinatorResponse:
        if error := classify_status(status, body):
            raise error

        try:
            return msgspec.convert(decode_body(body), CoordinatorResponse)

        except msgspec.ValidationError as err:
            raise MalformedResponseError(f"Invalid coordinator envelope: {err}") from err

    def _decode_token(self, response: CoordinatorResponse) -> str:
        if response.errcode != 0:
            raise AuthenticationError(
                f"Coordinator login failed ({response.errcode}): {response.errmsg}"
            )

        try:
            return msgspec.convert(response.data, TokenData).token

        except msgspec.ValidationError as err:
            raise MalformedResponseError(f"Invalid token payload: {err}") from err

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
