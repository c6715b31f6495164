"""
Health Listener - HTTP liveness and readiness probes for the relay.

Probe semantics:
- Liveness: the process is executing its loops. Fails only when the
  heartbeat is older than the liveness timeout (the event loop is wedged).

- Readiness: at least one slot is idle or completing its task, and the
  coordinator and proving service are not both degraded. A session is
  degraded when its retry budget ran out within the recent window and it
  has not had a successful contact since.

Routes:
- GET /       200 when live and ready, else 503. Body is the HealthSnapshot.
- GET /live   liveness only
- GET /ready  readiness only

Every request derives a fresh HealthSnapshot; nothing is persisted.
"""

from __future__ import annotations

from typing import Callable

import msgspec
import psutil
from aiohttp import web

from proving_relay.logging import Logger
from proving_relay.logging.relay_logging_models import RelayInfo
from proving_relay.models import HealthSnapshot, PoolState

from .contact_tracker import ContactTracker
from .heartbeat import Heartbeat


class HealthListener:
    def __init__(
        self,
        pool_state: PoolState,
        coordinator: ContactTracker,
        proving_service: ContactTracker,
        heartbeat: Heartbeat,
        host: str = "0.0.0.0",
        port: int = 80,
        liveness_timeout_sec: float = 60.0,
        unreported_proofs: Callable[[], int] | None = None,
        node_id: str = "",
        logger: Logger | None = None,
    ) -> None:
        self._pool_state = pool_state
        self._coordinator = coordinator
        self._proving_service = proving_service
        self._heartbeat = heartbeat
        self._host = host
        self._port = port
        self._liveness_timeout_sec = liveness_timeout_sec
        self._unreported_proofs = unreported_proofs or (lambda: 0)
        self._node_id = node_id
        self._logger = logger

        self._process = psutil.Process()
        self._runner: web.AppRunner | None = None

    def live(self) -> bool:
        return not self._heartbeat.stale(self._liveness_timeout_sec)

    def ready(self) -> bool:
        sessions_down = self._coordinator.degraded() and self._proving_service.degraded()
        return self._pool_state.has_capacity() and not sessions_down

    def snapshot(self) -> HealthSnapshot:
        try:
            rss_bytes = self._process.memory_info().rss

        except psutil.Error:
            rss_bytes = None

        return HealthSnapshot(
            live=self.live(),
            ready=self.ready(),
            n_workers=self._pool_state.n_workers,
            busy_slots=self._pool_state.busy_count,
            idle_slots=self._pool_state.idle_count,
            completing_slots=self._pool_state.completing_count,
            heartbeat_age_sec=self._heartbeat.age,
            coordinator=self._coordinator.snapshot(),
            proving_service=self._proving_service.snapshot(),
            unreported_proofs=self._unreported_proofs(),
            rss_bytes=rss_bytes,
        )

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_health)
        app.router.add_get("/live", self._handle_live)
        app.router.add_get("/ready", self._handle_ready)

        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = self.snapshot()
        return self._respond(snapshot, snapshot.live and snapshot.ready)

    async def _handle_live(self, request: web.Request) -> web.Response:
        snapshot = self.snapshot()
        return self._respond(snapshot, snapshot.live)

    async def _handle_ready(self, request: web.Request) -> web.Response:
        snapshot = self.snapshot()
        return self._respond(snapshot, snapshot.ready)

    def _respond(self, snapshot: HealthSnapshot, healthy: bool) -> web.Response:
        return web.Response(
            body=msgspec.json.encode(snapshot),
            status=200 if healthy else 503,
            content_type="application/json",
        )

    @property
    def port(self) -> int:
        """Bound port, which differs from the configured one when that was 0."""
        if self._runner and self._runner.addresses:
            return self._runner.addresses[0][1]

        return self._port

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app(), access_log=None)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

        if self._logger:
            await self._logger.log(
                RelayInfo(
                    message=f"Health listener on {self._host}:{self.port}",
                    node_id=self._node_id,
                )
            )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
