from __future__ import annotations

import asyncio
import datetime
import pathlib
import sys
import threading
from typing import BinaryIO, Callable, Dict, TypeVar

from proving_relay.logging.models import Entry, Log

from .logger_context import LoggerContext
from .logger_stream import LoggerStream

T = TypeVar("T", bound=Entry)


def _split_path(path: str | None) -> tuple[str | None, str | None]:
    if path is None:
        return None, None

    logfile_path = pathlib.Path(path)
    is_logfile = len(logfile_path.suffix) > 0

    filename = logfile_path.name if is_logfile else None
    directory = (
        str(logfile_path.parent.absolute())
        if is_logfile
        else str(logfile_path.absolute())
    )

    return filename, directory


class Logger:
    """
    Registry of named logger contexts.

    Components receive a Logger and call ``await logger.log(entry)``. The
    default context is used unless a name is given; each context lazily
    opens its stream on first use and stays open until ``close()``.
    """

    def __init__(self) -> None:
        self._contexts: Dict[str, LoggerContext] = {}

    def __getitem__(self, name: str) -> LoggerContext:
        if self._contexts.get(name) is None:
            self._contexts[name] = LoggerContext(name=name, nested=True)

        return self._contexts[name]

    def configure(
        self,
        name: str | None = None,
        template: str | None = None,
        path: str | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> LoggerContext:
        if name is None:
            name = "default"

        filename, directory = _split_path(path)

        self._contexts[name] = LoggerContext(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
            stdout=stdout,
            stderr=stderr,
            nested=True,
        )

        return self._contexts[name]

    def get_stream(self, name: str | None = None) -> LoggerStream:
        return self[name or "default"].stream

    async def log(
        self,
        entry: T,
        name: str | None = None,
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ) -> None:
        if name is None:
            name = "default"

        frame = sys._getframe(1)
        code = frame.f_code

        async with self[name] as stream:
            await stream.log(
                Log(
                    entry=entry,
                    filename=code.co_filename,
                    function_name=code.co_name,
                    line_number=frame.f_lineno,
                    thread_id=threading.get_native_id(),
                    timestamp=datetime.datetime.now(datetime.UTC).isoformat(),
                ),
                template=template,
                filter=filter,
            )

    async def close(self) -> None:
        if len(self._contexts) > 0:
            await asyncio.gather(
                *[context.stream.close() for context in self._contexts.values()]
            )
