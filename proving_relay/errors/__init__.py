from proving_relay.errors.errors import (
    AuthenticationError as AuthenticationError,
    ClaimError as ClaimError,
    ComputationFailureError as ComputationFailureError,
    ConfigurationError as ConfigurationError,
    KeyLoadError as KeyLoadError,
    MalformedResponseError as MalformedResponseError,
    PermanentRejectionError as PermanentRejectionError,
    ProveError as ProveError,
    RelayError as RelayError,
    RetryExhaustedError as RetryExhaustedError,
    SubmitError as SubmitError,
    TransientNetworkError as TransientNetworkError,
    UnsupportedCircuitError as UnsupportedCircuitError,
)
