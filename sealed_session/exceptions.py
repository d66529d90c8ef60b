"""Sealed Session exceptions.

Errors derived from ``SessionError`` are runtime conditions: the lifecycle
either recovers from them locally (``InvalidToken``, ``ExpiredSession``) or
routes them to the configured error handler.

``DestroyedSessionAccess`` and ``MissingSessionContext`` are programming
errors and are never routed anywhere: they abort the request.
"""


class SessionError(Exception):
    """Base class for session cookie errors."""


class InvalidToken(SessionError):
    """Cookie could not be decoded or authenticated under any key."""


class ExpiredSession(SessionError):
    """Cookie decoded correctly but its absolute expiry has passed."""


class CookieTooLarge(SessionError):
    """Serialized session cookie exceeds the cookie size limit."""


class TransportError(SessionError):
    """Session cookie could not be read from the request."""


class EncodeError(SessionError):
    """Session data could not be serialized or sealed."""


class DestroyedSessionAccess(RuntimeError):
    """Session data was touched after the session was destroyed."""


class MissingSessionContext(RuntimeError):
    """No session is attached to the request."""


class UnsupportedValueType(TypeError):
    """Value cannot be stored into a session."""
