from typing import BinaryIO

from .logger_stream import LoggerStream


class LoggerContext:
    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        nested: bool = False,
    ) -> None:
        self.name = name
        self.template = template
        self.filename = filename
        self.directory = directory
        self.stream = LoggerStream(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
        )
        self.nested = nested

        self._stdout = stdout
        self._stderr = stderr

    async def __aenter__(self) -> LoggerStream:
        await self.stream.initialize(
            stdout=self._stdout,
            stderr=self._stderr,
        )

        return self.stream

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.nested is False:
            await self.stream.close()
