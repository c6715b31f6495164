from __future__ import annotations

import os
from typing import Any, Dict
from urllib.parse import urlparse

import orjson
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from proving_relay.env import Env, load_env
from proving_relay.errors import ConfigurationError
from proving_relay.reliability import RetryConfig

from .circuit_type import CircuitType


def _validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Expected an http(s) URL, got {url!r}")

    return url


class EndpointConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: StrictStr
    retry_count: StrictInt = Field(default=3, ge=0)
    retry_wait_time_sec: NonNegativeFloat = 5.0
    connection_timeout_sec: PositiveFloat = 60.0

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, base_url: str) -> str:
        return _validate_url(base_url)

    def retry_config(self) -> RetryConfig:
        return RetryConfig.from_retry_count(
            self.retry_count,
            self.retry_wait_time_sec,
            self.connection_timeout_sec,
        )


class CoordinatorConfig(EndpointConfig):
    pass


class L2GethConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: StrictStr


class ProverConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    circuit_types: tuple[CircuitType, ...]
    circuit_version: StrictStr
    n_workers: StrictInt = Field(default=1, ge=1)

    @field_validator("circuit_types")
    @classmethod
    def validate_circuit_types(
        cls,
        circuit_types: tuple[CircuitType, ...],
    ) -> tuple[CircuitType, ...]:
        if len(circuit_types) < 1:
            raise ValueError("At least one circuit type must be configured")

        if CircuitType.UNDEFINED in circuit_types:
            raise ValueError("Circuit type 0 (undefined) cannot be configured")

        return tuple(dict.fromkeys(circuit_types))

    @field_validator("circuit_version")
    @classmethod
    def validate_circuit_version(cls, circuit_version: str) -> str:
        if not circuit_version.strip():
            raise ValueError("circuit_version must not be empty")

        return circuit_version


class SdkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    prover_name_prefix: StrictStr = ""
    keys_dir: StrictStr = "keys"
    db_path: StrictStr = "db"
    coordinator: CoordinatorConfig
    l2geth: L2GethConfig | None = None
    prover: ProverConfig
    health_listener_addr: StrictStr = "0.0.0.0:80"

    @field_validator("health_listener_addr")
    @classmethod
    def validate_health_listener_addr(cls, health_listener_addr: str) -> str:
        host, _, port = health_listener_addr.rpartition(":")
        if not host or not port.isdigit() or not 0 <= int(port) < 65536:
            raise ValueError(
                f"health_listener_addr must be host:port, got {health_listener_addr!r}"
            )

        return health_listener_addr

    @property
    def health_listener_host(self) -> str:
        return self.health_listener_addr.rpartition(":")[0]

    @property
    def health_listener_port(self) -> int:
        return int(self.health_listener_addr.rpartition(":")[2])


class RelayConfig(EndpointConfig):
    sdk_config: SdkConfig
    api_key: StrictStr

    poll_interval_sec: PositiveFloat = 5.0
    max_proving_time_sec: PositiveFloat | None = None
    idle_interval_sec: NonNegativeFloat = 2.0
    readiness_window_sec: PositiveFloat = 300.0
    liveness_timeout_sec: PositiveFloat = 60.0
    shutdown_grace_sec: NonNegativeFloat = 30.0
    compress_requests: StrictBool = True

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, api_key: str) -> str:
        if not api_key or api_key != api_key.strip() or any(
            char.isspace() for char in api_key
        ):
            raise ValueError("api_key must be a non-empty token without whitespace")

        return api_key

    @property
    def circuit_types(self) -> tuple[CircuitType, ...]:
        return self.sdk_config.prover.circuit_types

    @property
    def circuit_version(self) -> str:
        return self.sdk_config.prover.circuit_version

    @property
    def n_workers(self) -> int:
        return self.sdk_config.prover.n_workers

    def prover_name(self, node_id: str) -> str:
        return f"{self.sdk_config.prover_name_prefix}{node_id}"

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> RelayConfig:
        try:
            return cls.model_validate(document)

        except ValidationError as err:
            raise ConfigurationError(f"Invalid relay configuration: {err}") from err

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> RelayConfig:
        return cls.from_document(cls._read_document(path))

    @classmethod
    def from_file_and_env(
        cls,
        path: str | os.PathLike,
        env: Env | None = None,
        env_file: str | None = None,
    ) -> RelayConfig:
        document = cls._read_document(path)

        if env is None:
            try:
                env = load_env(Env, env_file=env_file)

            except (ValidationError, ValueError) as err:
                raise ConfigurationError(f"Invalid environment override: {err}") from err

        for document_path, value in env.config_overrides().items():
            _set_path(document, document_path, value)

        return cls.from_document(document)

    @staticmethod
    def _read_document(path: str | os.PathLike) -> Dict[str, Any]:
        try:
            with open(path, "rb") as config_file:
                document = orjson.loads(config_file.read())

        except OSError as err:
            raise ConfigurationError(f"Cannot read configuration {path}: {err}") from err

        except orjson.JSONDecodeError as err:
            raise ConfigurationError(f"Configuration {path} is not valid JSON: {err}") from err

        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration {path} must be a JSON object")

        return document


def _set_path(document: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    *parents, leaf = path

    target = document
    for key in parents:
        child = target.get(key)
        if not isinstance(child, dict):
            child = {}
            target[key] = child

        target = child

    target[leaf] = value
