"""Identity middleware.

Authentication is terminated by the gateway in front of the API, which
forwards the authenticated user's id in a header. This middleware copies
it onto ``request.state`` where the dependencies read it.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

USER_ID_HEADER = "x-user-id"


class IdentityMiddleware(BaseHTTPMiddleware):
    """Expose the forwarded user id as ``request.state.user_id``."""

    def __init__(self, app, header: str = USER_ID_HEADER):
        super().__init__(app)
        self.header = header.lower()

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = request.headers.get(self.header)
        return await call_next(request)
