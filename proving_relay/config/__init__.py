from .circuit_type import CircuitType as CircuitType
from .relay_config import (
    CoordinatorConfig as CoordinatorConfig,
    EndpointConfig as EndpointConfig,
    L2GethConfig as L2GethConfig,
    ProverConfig as ProverConfig,
    RelayConfig as RelayConfig,
    SdkConfig as SdkConfig,
)
