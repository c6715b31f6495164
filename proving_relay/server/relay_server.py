"""
Relay process lifecycle.

Startup order:
    clients -> key preload -> coordinator login -> health listener -> pool

Shutdown (SIGINT/SIGTERM or request_stop()):
    stop claiming -> drain slots for up to shutdown_grace_sec ->
    stop health listener -> close HTTP sessions

The configuration object is built once by the caller and shared by
reference with every component; nothing re-reads or mutates it.
"""

from __future__ import annotations

import asyncio
import signal
import uuid

from proving_relay.clients import CoordinatorClient, ProvingServiceClient
from proving_relay.config import RelayConfig
from proving_relay.errors import (
    AuthenticationError,
    ConfigurationError,
    RetryExhaustedError,
)
from proving_relay.health import HealthListener, Heartbeat
from proving_relay.keys import KeyManager
from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import (
    RelayFatal,
    RelayInfo,
    RelayWarning,
)
from proving_relay.pool import WorkerPool

from .error_surface import ErrorSurface

HEARTBEAT_INTERVAL_SEC = 1.0


class RelayServer:
    def __init__(
        self,
        config: RelayConfig,
        node_id: str | None = None,
        logger: Logger | None = None,
        coordinator: CoordinatorClient | None = None,
        prover: ProvingServiceClient | None = None,
        key_manager: KeyManager | None = None,
    ) -> None:
        self.node_id = node_id or uuid.uuid4().hex[:12]
        self._config = config
        self._logger = logger

        self.heartbeat = Heartbeat()
        self.error_surface = ErrorSurface(node_id=self.node_id, logger=logger)

        self.key_manager = key_manager or KeyManager(
            config.sdk_config.keys_dir,
            node_id=self.node_id,
            logger=logger,
        )
        self.prover = prover or ProvingServiceClient(
            config,
            node_id=self.node_id,
            logger=logger,
        )
        self.coordinator = coordinator or CoordinatorClient(
            config,
            self.node_id,
            verification_keys=self.key_manager.verification_keys,
            logger=logger,
        )

        self.pool = WorkerPool(
            config,
            self.coordinator,
            self.prover,
            self.key_manager,
            error_surface=self.error_surface,
            heartbeat=self.heartbeat,
            node_id=self.node_id,
            logger=logger,
        )

        self.health = HealthListener(
            self.pool.state,
            self.coordinator.tracker,
            self.prover.tracker,
            self.heartbeat,
            host=config.sdk_config.health_listener_host,
            port=config.sdk_config.health_listener_port,
            liveness_timeout_sec=config.liveness_timeout_sec,
            unreported_proofs=lambda: self.error_surface.unreported_proofs,
            node_id=self.node_id,
            logger=logger,
        )

        self._stop_event = asyncio.Event()
        self._heartbeat_task: asyncio.Task | None = None
        self._started = False

    @property
    def config(self) -> RelayConfig:
        return self._config

    async def start(self) -> None:
        await self._log(
            RelayInfo,
            f"Starting relay {self.coordinator.prover_name} with "
            f"{self._config.n_workers} workers for circuits "
            f"{[int(circuit) for circuit in self._config.circuit_types]} "
            f"({self._config.circuit_version})",
        )

        await self.key_manager.preload(
            self._config.circuit_types,
            self._config.circuit_version,
        )

        try:
            await self.coordinator.login()

        except AuthenticationError as err:
            await self._log(RelayFatal, f"Coordinator rejected the relay: {err}")
            raise ConfigurationError(f"Coordinator login rejected: {err}") from err

        except RetryExhaustedError as err:
            await self._log(
                RelayWarning,
                f"Coordinator unreachable at startup, login will be retried: {err}",
            )

        await self.health.start()

        self.heartbeat.beat()
        self._heartbeat_task = asyncio.create_task(self._beat())

        self.pool.start()
        self._started = True

    async def run(self) -> None:
        """Start, block until a stop is requested, then shut down."""
        self._install_signal_handlers()

        try:
            await self.start()
            await self._stop_event.wait()

        finally:
            await self.shutdown()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def shutdown(self) -> None:
        self._stop_event.set()

        if self._started:
            cancelled = await self.pool.stop(self._config.shutdown_grace_sec)
            await self._log(
                RelayInfo,
                f"Worker pool stopped ({cancelled} slots cancelled)",
            )

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            await asyncio.gather(self._heartbeat_task, return_exceptions=True)
            self._heartbeat_task = None

        await self.health.stop()
        await self.coordinator.close()
        await self.prover.close()

        self._started = False

        if self.error_surface.unreported_proofs:
            await self._log(
                RelayFatal,
                f"Exiting with {self.error_surface.unreported_proofs} unreported proofs",
            )

    async def _beat(self) -> None:
        while True:
            self.heartbeat.beat()
            await asyncio.sleep(HEARTBEAT_INTERVAL_SEC)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        for signame in ("SIGINT", "SIGTERM"):
            try:
                loop.add_signal_handler(getattr(signal, signame), self.request_stop)

            except (NotImplementedError, RuntimeError):
                # Signal handlers are unavailable on this platform or thread.
                pass

    async def _log(self, entry_type: type, message: str) -> None:
        if self._logger:
            await self._logger.log(
                entry_type(
                    message=message,
                    node_id=self.node_id,
                )
            )
