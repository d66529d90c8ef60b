"""Helpers to test handlers that use the session without the middleware."""
from typing import Optional
from datetime import timedelta
from aiohttp import web
from .buffer import ResponseBuffer
from .conf import SESSION_BUFFER, SESSION_OBJECT
from .data import SessionData


def mock_session(
    request: web.Request,
    lifetime: Optional[timedelta] = None
) -> SessionData:
    """Attach a fresh session and response buffer to a (mocked) request.

    Args:
        request: request built with aiohttp.test_utils.make_mocked_request.
        lifetime: session lifetime, one hour by default.

    Returns:
        The attached session.
    """
    session = SessionData(lifetime=lifetime or timedelta(hours=1))
    request[SESSION_OBJECT] = session
    request[SESSION_BUFFER] = ResponseBuffer()
    return session
