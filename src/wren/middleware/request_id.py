"""Request ID propagation."""

import re
import uuid

from wren.context import Context
from wren.middleware.protocol import Next

_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIDMiddleware:
    """Reuse the caller's ``X-Request-ID`` or generate one.

    The id is stored in ``ctx.state["request_id"]`` and echoed on the
    response. Incoming ids that are empty, too long, or contain unsafe
    characters are replaced.
    """

    __slots__ = ("header",)

    def __init__(self, header: str = "X-Request-ID") -> None:
        self.header = header

    async def __call__(self, ctx: Context, next: Next) -> None:
        incoming = ctx.headers.get(self.header)
        request_id = incoming if incoming and _VALID_ID.match(incoming) else uuid.uuid4().hex
        ctx.state["request_id"] = request_id
        ctx.set_header(self.header, request_id)
        await next()
