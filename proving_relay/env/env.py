from __future__ import annotations

from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictStr

PrimaryType = Union[str, int, float, bytes, bool]


class Env(BaseModel):
    PROVING_SERVICE_BASE_URL: StrictStr | None = None
    PROVING_SERVICE_API_KEY: StrictStr | None = None
    COORDINATOR_BASE_URL: StrictStr | None = None
    L2GETH_ENDPOINT: StrictStr | None = None
    PROVER_NAME_PREFIX: StrictStr | None = None
    KEYS_DIR: StrictStr | None = None
    DB_PATH: StrictStr | None = None

    # Logging
    RELAY_LOG_LEVEL: StrictStr = "info"
    RELAY_LOG_OUTPUT: Literal["stdout", "stderr"] = "stdout"
    RELAY_LOGS_DIRECTORY: StrictStr | None = None

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "PROVING_SERVICE_BASE_URL": str,
            "PROVING_SERVICE_API_KEY": str,
            "COORDINATOR_BASE_URL": str,
            "L2GETH_ENDPOINT": str,
            "PROVER_NAME_PREFIX": str,
            "KEYS_DIR": str,
            "DB_PATH": str,
            "RELAY_LOG_LEVEL": str,
            "RELAY_LOG_OUTPUT": str,
            "RELAY_LOGS_DIRECTORY": str,
        }

    def config_overrides(self) -> Dict[tuple[str, ...], str]:
        """
        Map of configuration document paths to override values.

        Only variables that are actually set produce an override.
        """
        paths: Dict[str, tuple[str, ...]] = {
            "PROVING_SERVICE_BASE_URL": ("base_url",),
            "PROVING_SERVICE_API_KEY": ("api_key",),
            "COORDINATOR_BASE_URL": ("sdk_config", "coordinator", "base_url"),
            "L2GETH_ENDPOINT": ("sdk_config", "l2geth", "endpoint"),
            "PROVER_NAME_PREFIX": ("sdk_config", "prover_name_prefix"),
            "KEYS_DIR": ("sdk_config", "keys_dir"),
            "DB_PATH": ("sdk_config", "db_path"),
        }

        return {
            path: value
            for envar_name, path in paths.items()
            if (value := getattr(self, envar_name)) is not None
        }
