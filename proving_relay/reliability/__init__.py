"""
Reliability infrastructure for the relay's network calls.

- Fixed-interval bounded retry, one policy instance per remote endpoint
"""

from proving_relay.reliability.retry import (
    TRANSIENT_EXCEPTIONS as TRANSIENT_EXCEPTIONS,
    RetryConfig as RetryConfig,
    RetryPolicy as RetryPolicy,
)
