"""Sealed Session.

Stateless sessions for aiohttp: session data is serialized, encrypted and
authenticated into a single client-held cookie, then rehydrated on the next
request.
"""
from typing import Optional
from aiohttp import web
from .version import __version__
from .buffer import ResponseBuffer
from .conf import (
    SESSION_BUFFER,
    SESSION_OBJECT,
    SessionConfig,
    generate_key
)
from .data import SessionData, ZERO_TIME
from .exceptions import (
    CookieTooLarge,
    DestroyedSessionAccess,
    EncodeError,
    ExpiredSession,
    InvalidToken,
    MissingSessionContext,
    SessionError,
    TransportError,
    UnsupportedValueType
)
from .middleware import (
    ErrorHandler,
    SessionLifecycle,
    default_error_handler,
    session_middleware
)
from .storage import CookieStorage
from .values import register_model

SESSION_STORAGE = web.AppKey("sealed_session.storage", CookieStorage)


def setup_session(
    app: web.Application,
    config: Optional[SessionConfig] = None,
    *,
    error_handler: Optional[ErrorHandler] = None
) -> CookieStorage:
    """Install the session middleware into an aiohttp application.

    Args:
        app: application to configure.
        config: session settings, loaded from environment when omitted.
        error_handler: coroutine called with (request, error) when the
            session cannot be loaded or saved.

    Returns:
        The cookie storage used by the middleware.
    """
    storage = CookieStorage(config or SessionConfig.from_env())
    app[SESSION_STORAGE] = storage
    app.middlewares.append(session_middleware(storage, error_handler))
    return storage


def get_session(request: web.Request) -> SessionData:
    """Return the session attached to the request.

    Raises:
        MissingSessionContext: the request did not go through the session
            middleware.
    """
    session = request.get(SESSION_OBJECT)
    if session is None:
        raise MissingSessionContext(
            "session: no session attached to the request, "
            "is the session middleware installed?"
        )
    return session


def get_response_buffer(request: web.Request) -> ResponseBuffer:
    """Return the response buffer of the current session lifecycle."""
    buffer = request.get(SESSION_BUFFER)
    if buffer is None:
        raise MissingSessionContext(
            "session: no response buffer attached to the request"
        )
    return buffer


__all__ = (
    "__version__",
    "CookieStorage",
    "CookieTooLarge",
    "DestroyedSessionAccess",
    "EncodeError",
    "ErrorHandler",
    "ExpiredSession",
    "InvalidToken",
    "MissingSessionContext",
    "ResponseBuffer",
    "SESSION_STORAGE",
    "SessionConfig",
    "SessionData",
    "SessionError",
    "SessionLifecycle",
    "TransportError",
    "UnsupportedValueType",
    "ZERO_TIME",
    "default_error_handler",
    "generate_key",
    "get_response_buffer",
    "get_session",
    "register_model",
    "session_middleware",
    "setup_session",
)
