import asyncio
import datetime
import io
import os
import pathlib
import sys
import threading
from typing import BinaryIO, Callable, Dict, TypeVar

import msgspec

from proving_relay.logging.config import LoggingConfig, StreamType
from proving_relay.logging.models import Entry, Log

T = TypeVar("T", bound=Entry)


DEFAULT_TEMPLATE = (
    "{timestamp} - {level} - {thread_id} - {filename}:{function_name}.{line_number} - {message}"
)


class LoggerStream:
    """
    Writes entries for a single named logger.

    Without a logfile, entries are rendered through the stream template and
    written to a private duplicate of stdout or stderr. With a logfile,
    each entry is appended as one JSON line. All blocking writes run in the
    default executor.
    """

    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        if name is None:
            name = "default"

        self._name = name
        self._default_template = template or DEFAULT_TEMPLATE
        self._default_logfile = filename
        self._default_log_directory = directory

        self._config = LoggingConfig()
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

        self._streams: Dict[StreamType, BinaryIO] = {}
        self._owned_streams: list[BinaryIO] = []
        self._files: Dict[str, BinaryIO] = {}
        self._default_logfile_path: str | None = None

        self._initialized = False
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(
        self,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> None:
        async with self._init_lock:
            if self._initialized:
                return

            self._loop = asyncio.get_running_loop()

            if stdout is None:
                stdout = await self._loop.run_in_executor(
                    None,
                    self._dup_stream,
                    sys.stdout,
                )

            if stderr is None:
                stderr = await self._loop.run_in_executor(
                    None,
                    self._dup_stream,
                    sys.stderr,
                )

            self._streams[StreamType.STDOUT] = stdout
            self._streams[StreamType.STDERR] = stderr

            if self._default_logfile is None and self._config.directory:
                self._default_logfile = f"{self._name}.log.json"
                self._default_log_directory = self._config.directory

            if self._default_logfile:
                self._default_logfile_path = await self.open_file(
                    self._default_logfile,
                    directory=self._default_log_directory,
                )

            self._closed = False
            self._initialized = True

    def _dup_stream(self, stream: io.TextIOBase) -> BinaryIO:
        try:
            duplicate = os.fdopen(os.dup(stream.fileno()), "wb")

        except (AttributeError, OSError, ValueError):
            # Captured or replaced streams have no usable descriptor.
            return stream.buffer if hasattr(stream, "buffer") else io.BytesIO()

        self._owned_streams.append(duplicate)
        return duplicate

    async def open_file(
        self,
        filename: str,
        directory: str | None = None,
    ) -> str:
        logfile_path = self._to_logfile_path(filename, directory=directory)

        if logfile_path not in self._files:
            self._files[logfile_path] = await self._loop.run_in_executor(
                None,
                self._open_file,
                logfile_path,
            )

        return logfile_path

    def _open_file(self, logfile_path: str) -> BinaryIO:
        resolved_path = pathlib.Path(logfile_path).absolute().resolve()
        resolved_path.parent.mkdir(parents=True, exist_ok=True)

        return open(resolved_path, "ab")

    def _to_logfile_path(self, filename: str, directory: str | None = None) -> str:
        if directory is None:
            directory = os.getcwd()

        return os.path.join(directory, filename)

    async def log(
        self,
        entry: T | Log[T],
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ) -> None:
        if not self._initialized:
            await self.initialize()

        if self._closed:
            return

        log = entry if isinstance(entry, Log) else self._to_log(entry)

        if not self._config.enabled(self._name, log.entry.level):
            return

        if filter and filter(log.entry) is False:
            return

        logfile_path = self._default_logfile_path
        if path:
            logfile_path = await self.open_file(
                pathlib.Path(path).name,
                directory=str(pathlib.Path(path).parent.absolute()),
            )

        if logfile_path:
            await self._log_to_file(log, logfile_path)

        else:
            await self._log(log, template=template)

    async def _log(self, log: Log[T], template: str | None = None) -> None:
        if template is None:
            template = self._default_template

        line = log.entry.to_template(
            template,
            context={
                "filename": log.filename,
                "function_name": log.function_name,
                "line_number": log.line_number,
                "thread_id": log.thread_id,
                "timestamp": log.timestamp,
            },
        ).encode()

        stream = self._streams[self._config.output]

        async with self._write_lock:
            await self._loop.run_in_executor(
                None,
                self._write,
                stream,
                line + b"\n",
            )

    async def _log_to_file(self, log: Log[T], logfile_path: str) -> None:
        logfile = self._files[logfile_path]

        async with self._write_lock:
            await self._loop.run_in_executor(
                None,
                self._write,
                logfile,
                msgspec.json.encode(log) + b"\n",
            )

    def _write(self, stream: BinaryIO, data: bytes) -> None:
        if stream.closed:
            return

        stream.write(data)
        stream.flush()

    def _to_log(self, entry: T) -> Log[T]:
        frame = sys._getframe(2)
        code = frame.f_code

        return Log(
            entry=entry,
            filename=code.co_filename,
            function_name=code.co_name,
            line_number=frame.f_lineno,
            thread_id=threading.get_native_id(),
            timestamp=datetime.datetime.now(datetime.UTC).isoformat(),
        )

    async def close(self) -> None:
        if self._closed or not self._initialized:
            return

        self._closed = True

        async with self._write_lock:
            await self._loop.run_in_executor(None, self._close_all)

        self._initialized = False

    def _close_all(self) -> None:
        for logfile in self._files.values():
            logfile.close()

        for stream in self._owned_streams:
            stream.close()

        self._files.clear()
        self._owned_streams.clear()
        self._streams.clear()
        self._default_logfile_path = None
