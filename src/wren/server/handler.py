"""ASGI handler: translates ASGI scope/messages to wren types.

The only component that touches raw ASGI for HTTP requests. Converts the
scope to a typed Request, runs the dispatcher beside a disconnect
watcher, and sends the Response back through ASGI send().
"""

import logging

import anyio

from wren._internal.asgi import Receive, Scope, Send
from wren.errors import ClientDisconnect
from wren.http.request import Request
from wren.http.response import Response
from wren.server.dispatch import Dispatcher
from wren.server.sender import send_response

logger = logging.getLogger("wren.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    dispatcher: Dispatcher,
    body_limit: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline.

    If the client disconnects mid-request the dispatch is cancelled,
    the context's resources are released, and no response is sent.
    """
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive, body_limit=body_limit)
    response: Response | None = None

    async def watch_disconnect(cancel_scope: anyio.CancelScope) -> None:
        await request.receiver.wait_disconnect()
        logger.info("Client disconnected during %s %s", request.method, request.path)
        cancel_scope.cancel()

    async with anyio.create_task_group() as tg:
        tg.start_soon(watch_disconnect, tg.cancel_scope)
        try:
            response = await dispatcher.dispatch(request)
        except ClientDisconnect:
            logger.info("Client disconnected while sending %s %s", request.method, request.path)
        tg.cancel_scope.cancel()

    if response is None or request.receiver.disconnected:
        return
    await send_response(response, send)
