from .models import Entry, LogLevel


class RelayTrace(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.TRACE


class RelayDebug(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.DEBUG


class RelayInfo(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.INFO


class RelayWarning(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.WARN


class RelayError(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.ERROR


class RelayCritical(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.CRITICAL


class RelayFatal(Entry, kw_only=True):
    node_id: str
    slot: int | None = None
    task_id: str | None = None
    level: LogLevel = LogLevel.FATAL


class ClientDebug(Entry, kw_only=True):
    node_id: str
    endpoint: str
    operation: str
    level: LogLevel = LogLevel.DEBUG


class ClientInfo(Entry, kw_only=True):
    node_id: str
    endpoint: str
    operation: str
    level: LogLevel = LogLevel.INFO


class ClientWarning(Entry, kw_only=True):
    node_id: str
    endpoint: str
    operation: str
    level: LogLevel = LogLevel.WARN


class ClientError(Entry, kw_only=True):
    node_id: str
    endpoint: str
    operation: str
    level: LogLevel = LogLevel.ERROR


class KeyInfo(Entry, kw_only=True):
    node_id: str
    circuit_type: int
    circuit_version: str
    level: LogLevel = LogLevel.INFO


class KeyFailure(Entry, kw_only=True):
    node_id: str
    circuit_type: int
    circuit_version: str
    level: LogLevel = LogLevel.ERROR
