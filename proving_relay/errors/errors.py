"""
Error taxonomy for the proving relay.

These error types drive retry classification at the client boundaries:
- TransientNetworkError: Safe to retry (timeouts, resets, 5xx, 429)
- PermanentRejectionError: Do not retry (auth failure, malformed request,
  unsupported circuit)
- ComputationFailureError: The remote prover rejected the witness. Not
  retried, reported to the coordinator as a task failure
- RetryExhaustedError: The bounded retry budget is consumed

The client-level ClaimError, SubmitError and ProveError wrap whichever of
the above ended an operation, keeping the original on ``cause``.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base exception for the proving relay."""

    pass


class ConfigurationError(RelayError):
    """
    Configuration-level permanent rejection.

    Raised at startup for an invalid configuration document or environment
    override. Fatal to the whole process.
    """

    pass


class TransientNetworkError(RelayError):
    """
    Transient network failure - safe to retry.

    Examples:
    - Connection reset or refused
    - Request timeout
    - 5xx or 429 from a remote service
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PermanentRejectionError(RelayError):
    """
    Permanent rejection - do not retry.

    Retrying would only consume the bounded attempt budget and delay
    failure reporting.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationError(PermanentRejectionError):
    """Credentials were rejected (401/403, failed coordinator login)."""

    pass


class UnsupportedCircuitError(PermanentRejectionError):
    """Circuit type or version is outside the configured set."""

    pass


class MalformedResponseError(PermanentRejectionError):
    """A remote service answered with a body that could not be decoded."""

    pass


class ComputationFailureError(RelayError):
    """
    The remote proving service failed to compute the proof.

    Resubmitting the same witness to a deterministic prover would not
    change the outcome, so this is never retried by the client.
    """

    def __init__(self, message: str, proof_id: str | None = None) -> None:
        super().__init__(message)
        self.proof_id = proof_id


class RetryExhaustedError(RelayError):
    """All attempts of a RetryPolicy failed with transient errors."""

    def __init__(
        self,
        operation_name: str,
        attempts: int,
        last_error: BaseException | None,
    ) -> None:
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_error!r}"
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class KeyLoadError(RelayError):
    """A proving key could not be loaded from the key directory."""

    def __init__(
        self,
        circuit_type: int,
        circuit_version: str,
        reason: str,
    ) -> None:
        super().__init__(
            f"Failed to load key for circuit {circuit_type} ({circuit_version}): {reason}"
        )
        self.circuit_type = circuit_type
        self.circuit_version = circuit_version
        self.reason = reason


class _OperationError(RelayError):
    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def exhausted(self) -> bool:
        return isinstance(self.cause, RetryExhaustedError)

    @property
    def permanent(self) -> bool:
        return isinstance(self.cause, PermanentRejectionError)


class ClaimError(_OperationError):
    """Claiming a task from the coordinator failed."""

    pass


class ProveError(_OperationError):
    """The proving service call failed for a reason other than computation."""

    pass


class SubmitError(_OperationError):
    """Reporting a task outcome to the coordinator failed."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        outcome: Any = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.outcome = outcome
