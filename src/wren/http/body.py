"""Request body reading and parsing.

``BodyReceiver`` owns the ASGI ``receive`` callable for one request. It
reads the body exactly once, enforcing the configured byte limit while
buffering, and afterwards is the only reader that may watch for the
client's ``http.disconnect`` message.

``parse_body`` turns buffered bytes into Python data by content type.
"""

import json as json_module
import logging
from typing import Any

import anyio

from wren._internal.asgi import Receive
from wren.errors import ClientDisconnect, PayloadTooLargeError, ValidationError
from wren.http.query import QueryParams

logger = logging.getLogger("wren.server")


class BodyReceiver:
    """Single reader of the ASGI receive channel for one request.

    ``read()`` buffers the body, caching the result. A declared
    ``Content-Length`` above *limit* is rejected before any byte is
    read; a streamed body is rejected as soon as the buffer passes
    *limit*, so memory stays bounded under oversized uploads.

    ``wait_disconnect()`` only starts listening once the body has been
    consumed, so the two never race for the same message.
    """

    __slots__ = ("_body", "_consumed", "_receive", "disconnected", "limit")

    def __init__(self, receive: Receive, *, limit: int | None = None) -> None:
        self._receive = receive
        self._body: bytes | None = None
        self._consumed = anyio.Event()
        self.limit = limit
        self.disconnected = False

    @property
    def consumed(self) -> bool:
        return self._consumed.is_set()

    async def read(self, declared_length: int | None = None) -> bytes:
        """Read and cache the full request body."""
        if self._body is not None:
            return self._body

        limit = self.limit
        if limit is not None and declared_length is not None and declared_length > limit:
            raise PayloadTooLargeError(
                f"Request body of {declared_length} bytes exceeds the {limit} byte limit",
                limit=limit,
            )

        chunks: list[bytes] = []
        size = 0
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.disconnected = True
                self._consumed.set()
                raise ClientDisconnect("Client disconnected while sending the body")
            chunk = message.get("body", b"")
            if chunk:
                size += len(chunk)
                if limit is not None and size > limit:
                    raise PayloadTooLargeError(
                        f"Request body exceeds the {limit} byte limit",
                        limit=limit,
                    )
                chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        self._consumed.set()
        return self._body

    async def wait_disconnect(self) -> None:
        """Return once the client has disconnected."""
        await self._consumed.wait()
        while not self.disconnected:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.disconnected = True


def media_type(content_type: str | None) -> str:
    """Return the bare, lowercased media type of a Content-Type value."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _charset(content_type: str | None) -> str:
    if content_type:
        for param in content_type.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
    return "utf-8"


def parse_body(raw: bytes, content_type: str | None) -> Any:
    """Parse *raw* according to *content_type*.

    - ``application/json`` and ``+json`` suffixes: decoded JSON value
    - ``application/x-www-form-urlencoded``: ``QueryParams``
    - ``text/*``: ``str``
    - anything else: the raw ``bytes``

    An empty body parses to ``None``. Malformed payloads raise
    ``ValidationError`` carrying the parser's message as details.
    """
    if not raw:
        return None

    mtype = media_type(content_type)

    if mtype == "application/json" or mtype.endswith("+json"):
        try:
            return json_module.loads(raw.decode(_charset(content_type)))
        except (UnicodeDecodeError, LookupError, ValueError) as exc:
            raise ValidationError("Malformed JSON body", details=str(exc)) from exc

    if mtype == "application/x-www-form-urlencoded":
        try:
            return QueryParams.parse_form(raw)
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValidationError("Malformed form body", details=str(exc)) from exc

    if mtype.startswith("text/"):
        try:
            return raw.decode(_charset(content_type))
        except (UnicodeDecodeError, LookupError) as exc:
            raise ValidationError("Undecodable text body", details=str(exc)) from exc

    return raw
