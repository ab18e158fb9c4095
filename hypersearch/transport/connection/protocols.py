import asyncio
from typing import Dict


NEW_LINE = "\r\n"


class StaleStreamError(Exception):
    """A reused keep-alive socket was closed before the response began."""


async def read_headers(reader: asyncio.StreamReader) -> Dict[str, str]:
    headers: Dict[str, str] = {}

    while True:
        line = await reader.readline()
        if not line or line in (b"\r\n", b"\n"):
            break

        key, separator, value = line.decode("latin-1").partition(":")
        if not separator:
            continue

        key = key.strip().lower()
        value = value.strip()

        if key in headers:
            headers[key] = f"{headers[key]}, {value}"

        else:
            headers[key] = value

    return headers
