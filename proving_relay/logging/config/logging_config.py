import contextvars
from typing import Literal

from proving_relay.logging.models import LogLevel, LogLevelName

from .log_level_map import LogLevelMap
from .stream_type import StreamType

LogOutput = Literal["stdout", "stderr"]

_global_log_level = contextvars.ContextVar("_global_log_level", default=LogLevel.INFO)
_global_disabled_loggers: contextvars.ContextVar[frozenset[str]] = contextvars.ContextVar(
    "_global_disabled_loggers",
    default=frozenset(),
)
_global_log_output_type = contextvars.ContextVar(
    "_global_log_output_type",
    default=StreamType.STDOUT,
)
_global_logging_directory: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "_global_logging_directory",
    default=None,
)

_level_map = LogLevelMap()


class LoggingConfig:
    def __init__(self) -> None:
        self._log_level = _global_log_level
        self._log_output_type = _global_log_output_type
        self._log_directory = _global_logging_directory
        self._disabled_loggers = _global_disabled_loggers

    def update(
        self,
        log_directory: str | None = None,
        log_level: LogLevelName | str | None = None,
        log_output: LogOutput | None = None,
    ) -> None:
        if log_directory:
            self._log_directory.set(log_directory)

        if log_level:
            self._log_level.set(LogLevel.to_level(log_level))

        if log_output:
            self._log_output_type.set(
                StreamType.STDOUT if log_output == "stdout" else StreamType.STDERR
            )

    def disable(self, logger_name: str) -> None:
        self._disabled_loggers.set(self._disabled_loggers.get() | {logger_name})

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        return logger_name not in self._disabled_loggers.get() and (
            _level_map[log_level] >= _level_map[self._log_level.get()]
        )

    @property
    def level(self) -> LogLevel:
        return self._log_level.get()

    @property
    def output(self) -> StreamType:
        return self._log_output_type.get()

    @property
    def directory(self) -> str | None:
        return self._log_directory.get()
