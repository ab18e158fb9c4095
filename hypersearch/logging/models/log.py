import datetime
import threading

import msgspec

from .entry import Entry


def utc_timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class Log(msgspec.Struct, kw_only=True):
    """An entry plus where and when it was logged. One JSON line per Log in log files."""

    entry: Entry
    logger: str = "default"
    filename: str
    function_name: str
    line_number: int
    thread_id: int = msgspec.field(default_factory=threading.get_native_id)
    timestamp: str = msgspec.field(default_factory=utc_timestamp)
