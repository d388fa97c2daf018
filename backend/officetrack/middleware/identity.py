"""Request identity middleware.

Resolves the caller once per request from the auth cookie or an
``Authorization: Bearer`` header and stores the result on
``request.state.identity``. Anonymous requests proceed with ``None``;
endpoints that need a caller reject them through ``get_identity``.
"""

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from officetrack.core.security import Identity


def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    """Cookie first, then bearer header."""
    token = request.cookies.get(cookie_name)
    if token:
        return token
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


class IdentityMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        gate = request.app.state.token_gate
        settings = request.app.state.settings
        identity: Optional[Identity] = gate.resolve(
            extract_token(request, settings.AUTH_COOKIE_NAME)
        )
        request.state.identity = identity
        return await call_next(request)
