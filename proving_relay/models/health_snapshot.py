import msgspec


class ContactSnapshot(msgspec.Struct, kw_only=True):
    name: str
    degraded: bool
    last_success_age_sec: float | None = None
    last_exhausted_age_sec: float | None = None


class HealthSnapshot(msgspec.Struct, kw_only=True):
    """Derived on every probe request; never persisted."""

    live: bool
    ready: bool
    n_workers: int
    busy_slots: int
    idle_slots: int
    completing_slots: int
    heartbeat_age_sec: float
    coordinator: ContactSnapshot
    proving_service: ContactSnapshot
    unreported_proofs: int = 0
    rss_bytes: int | None = None
