from __future__ import annotations

import asyncio
import pathlib
import sys
from typing import Callable, Dict

from hypersearch.logging.models import Entry, Log

from .logger_stream import LoggerStream


class Logger:
    """
    Named log streams.

    A stream is created on first use of its name with the default template
    and output. configure() replaces it, for example to send one
    component's logs to a file. Transport components log under names like
    ``hypersearch.transport`` and ``hypersearch.sniffer``.
    """

    def __init__(self) -> None:
        self._streams: Dict[str, LoggerStream] = {}

    def __getitem__(self, name: str) -> LoggerStream:
        if (stream := self._streams.get(name)) is None:
            stream = self._streams[name] = LoggerStream(name=name)

        return stream

    def __contains__(self, name: str) -> bool:
        return name in self._streams

    def configure(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
    ) -> LoggerStream:
        filename: str | None = None
        directory: str | None = None

        if path:
            location = pathlib.Path(path).absolute()

            if location.suffix:
                filename = location.name
                directory = str(location.parent)

            else:
                directory = str(location)

        if (previous := self._streams.get(name)) is not None:
            previous.abort()

        stream = self._streams[name] = LoggerStream(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
        )

        return stream

    async def log(
        self,
        entry: Entry,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[Entry], bool] | None = None,
    ) -> None:
        caller = sys._getframe(1)

        await self[name].log(
            Log(
                entry=entry,
                logger=name,
                filename=caller.f_code.co_filename,
                function_name=caller.f_code.co_name,
                line_number=caller.f_lineno,
            ),
            template=template,
            path=path,
            filter=filter,
        )

    async def close(self) -> None:
        await asyncio.gather(*[stream.close() for stream in self._streams.values()])
