"""
Bounded fixed-interval retry.

Each network client owns its own RetryPolicy built from its endpoint's
retry_count / retry_wait_time_sec / connection_timeout_sec, so a failure
domain never drains another domain's attempt budget.

The policy holds no per-call state and is safe to share between slots.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

import aiohttp

from proving_relay.errors import RetryExhaustedError, TransientNetworkError

T = TypeVar("T")


TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TransientNetworkError,
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
)


@dataclass(slots=True, frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    wait_interval: float = 5.0  # seconds, fixed between attempts
    connection_timeout: float = 60.0  # seconds, per attempt

    retryable_exceptions: tuple[type[BaseException], ...] = field(
        default_factory=lambda: TRANSIENT_EXCEPTIONS
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

        if self.wait_interval < 0:
            raise ValueError(f"wait_interval must be >= 0, got {self.wait_interval}")

        if self.connection_timeout <= 0:
            raise ValueError(
                f"connection_timeout must be > 0, got {self.connection_timeout}"
            )

    @classmethod
    def from_retry_count(
        cls,
        retry_count: int,
        retry_wait_time_sec: float,
        connection_timeout_sec: float,
    ) -> "RetryConfig":
        """retry_count counts retries after the first attempt."""
        return cls(
            max_attempts=retry_count + 1,
            wait_interval=float(retry_wait_time_sec),
            connection_timeout=float(connection_timeout_sec),
        )


class RetryPolicy:
    """
    Bounded retry with a fixed wait between attempts.

    Transient failures (network, timeout) are retried until max_attempts is
    reached, then RetryExhaustedError is raised carrying the last failure.
    Any other exception propagates on the attempt that raised it without
    consuming the remaining budget.

    Example usage:
        policy = RetryPolicy(RetryConfig(max_attempts=3, wait_interval=5.0))

        result = await policy.execute(
            lambda: client.get_task(),
            operation_name="claim_task",
        )
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        name: str = "default",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or RetryConfig()
        self._name = name
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self._config.retryable_exceptions)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """
        Execute operation with bounded retry.

        Args:
            operation: Async callable, invoked once per attempt
            operation_name: Name for error messages

        Returns:
            Result of the first successful attempt

        Raises:
            RetryExhaustedError: All attempts failed transiently
            Exception: The first non-transient failure, unchanged
        """
        last_error: BaseException | None = None
        max_attempts = self._config.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    operation(),
                    timeout=self._config.connection_timeout,
                )

            except Exception as exc:
                if not self.is_retryable(exc):
                    raise

                last_error = exc

                if attempt < max_attempts:
                    await self._sleep(self._config.wait_interval)

        raise RetryExhaustedError(
            f"{self._name}.{operation_name}",
            max_attempts,
            last_error,
        ) from last_error
