import asyncio
import io
import os
import pathlib
import sys
from collections import defaultdict
from typing import Callable, Dict, TextIO

import msgspec

from hypersearch.logging.config.logging_config import LoggingConfig
from hypersearch.logging.config.stream_type import StreamType
from hypersearch.logging.models import Entry, Log


DEFAULT_TEMPLATE = "{timestamp} - {level} - {logger} - {filename}:{function_name}.{line_number} - {message}"
DEFAULT_LOGFILE = "hypersearch.json"


class LoggerStream:
    """
    Output for one named logger.

    Entries go to a JSON lines file when the stream has a filename or
    directory, or when a log directory is set in LoggingConfig. Otherwise
    they are rendered through the template to stdout or stderr. File
    writes run in the default executor, one lock per file.
    """

    def __init__(
        self,
        name: str = "default",
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        self.name = name
        self.template = template or DEFAULT_TEMPLATE
        self.filename = filename
        self.directory = directory

        self._config = LoggingConfig()
        self._files: Dict[str, io.BufferedWriter] = {}
        self._file_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def log(
        self,
        entry: Entry | Log,
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[Entry], bool] | None = None,
    ) -> None:
        log = entry if isinstance(entry, Log) else self._to_log(entry)

        if self._config.enabled(self.name, log.entry.level) is False:
            return

        if filter and filter(log.entry) is False:
            return

        logfile_path = self._to_logfile_path(path)
        if logfile_path is None:
            self._write_template(log, template or self.template)
            return

        line = msgspec.json.encode(log) + b"\n"

        async with self._file_locks[logfile_path]:
            await asyncio.get_running_loop().run_in_executor(
                None,
                self._append,
                logfile_path,
                line,
            )

        self._closed = False

    async def close(self) -> None:
        if self._files:
            await asyncio.get_running_loop().run_in_executor(None, self._close_files)

        self._closed = True

    def abort(self) -> None:
        self._close_files()
        self._closed = True

    def _to_log(self, entry: Entry) -> Log:
        # 0 is this method, 1 is log(), 2 is whoever awaited log().
        try:
            frame = sys._getframe(2)

        except ValueError:
            frame = sys._getframe(1)

        return Log(
            entry=entry,
            logger=self.name,
            filename=frame.f_code.co_filename,
            function_name=frame.f_code.co_name,
            line_number=frame.f_lineno,
        )

    def _to_logfile_path(self, path: str | None) -> str | None:
        filename = self.filename
        directory = self.directory

        if path:
            location = pathlib.Path(path)

            if location.suffix:
                filename = location.name
                directory = str(location.parent)

            else:
                directory = str(location)

        if self._config.directory:
            directory = self._config.directory

        if filename is None and directory is None:
            return None

        filename = filename or DEFAULT_LOGFILE
        if pathlib.Path(filename).suffix != ".json":
            raise ValueError(f"Err. - log files must be JSON files, got {filename!r}")

        return str(pathlib.Path(directory or os.getcwd(), filename).absolute())

    def _append(self, logfile_path: str, line: bytes) -> None:
        logfile = self._files.get(logfile_path)

        if logfile is None or logfile.closed:
            os.makedirs(os.path.dirname(logfile_path), exist_ok=True)
            logfile = open(logfile_path, "ab")
            self._files[logfile_path] = logfile

        logfile.write(line)
        logfile.flush()

    def _close_files(self) -> None:
        for logfile in self._files.values():
            if logfile.closed is False:
                logfile.close()

        self._files.clear()

    def _write_template(self, log: Log, template: str) -> None:
        stream = self._get_output_stream()
        context = {
            "logger": log.logger,
            "filename": log.filename,
            "function_name": log.function_name,
            "line_number": log.line_number,
            "thread_id": log.thread_id,
            "timestamp": log.timestamp,
        }

        try:
            stream.write(log.entry.to_template(template, context=context) + "\n")
            stream.flush()

        except (OSError, ValueError, KeyError) as err:
            sys.__stderr__.write(
                f"{log.timestamp} - {log.entry.level.value} - {self.name} - "
                f"could not write log entry: {err!r}\n"
            )

    def _get_output_stream(self) -> TextIO:
        if self._config.output == StreamType.STDOUT:
            return sys.stdout

        return sys.stderr
