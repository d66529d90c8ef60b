"""
CookieStorage — loads and saves sessions from and to the session cookie.

The whole session travels inside the cookie; nothing is kept server side.
A cookie is only (re)written when the session was changed during the request.

Security Note:
    Never log cookie values or session data. Only log cookie names and
    error messages.
"""
import logging
from http.cookies import CookieError
from email.utils import format_datetime
from datetime import datetime, timezone
from aiohttp import web
from .conf import SessionConfig, MAX_COOKIE_SIZE
from .data import SessionData
from .exceptions import (
    CookieTooLarge,
    ExpiredSession,
    InvalidToken,
    TransportError
)

logger = logging.getLogger("sealed_session.storage")

# Expires value sent to make the client drop the cookie.
EXPIRED_COOKIE_DATE = "Thu, 01 Jan 1970 00:00:01 GMT"


class CookieStorage:
    """Client-side session storage using an encrypted cookie."""

    def __init__(self, config: SessionConfig) -> None:
        self._config = config

    def __repr__(self) -> str:
        return (
            f'<CookieStorage cookie={self._config.cookie_name!r} '
            f'keys={len(self._config.keys)}>'
        )

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def cookie_name(self) -> str:
        return self._config.cookie_name

    def new_session(self) -> SessionData:
        return SessionData(lifetime=self._config.lifetime)

    def _read_cookie(self, request: web.Request) -> str:
        try:
            return request.cookies.get(self.cookie_name, '')
        except CookieError as err:
            raise TransportError(
                f"session: unable to read cookie header: {err}"
            ) from err

    async def load_session(self, request: web.Request) -> SessionData:
        """Load the session carried by the request cookie.

        A missing, invalid, forged, stale-key or expired cookie gives a
        fresh session; those conditions are logged but never surfaced.

        Raises:
            TransportError: If the cookie header cannot be read.
        """
        token = self._read_cookie(request)
        if not token:
            return self.new_session()
        try:
            session = SessionData.decode(token, self._config.keys)
            if session.expired():
                raise ExpiredSession(
                    f"session: expired at {session.expiry.isoformat()}"
                )
        except InvalidToken as err:
            logger.info(
                "Discarding invalid cookie %r on %s: %s",
                self.cookie_name, request.path, err
            )
            return self.new_session()
        except ExpiredSession as err:
            logger.debug(
                "Discarding expired cookie %r on %s: %s",
                self.cookie_name, request.path, err
            )
            return self.new_session()
        return session

    def _cookie_options(self) -> dict:
        return {
            "domain": self._config.domain,
            "path": self._config.path,
            "secure": self._config.secure,
            "httponly": self._config.httponly,
            "samesite": self._config.samesite,
        }

    async def save_session(
        self,
        request: web.Request,
        response: web.StreamResponse,
        session: SessionData
    ) -> None:
        """Write the session cookie on the response, if needed.

        Raises:
            CookieTooLarge: If the cookie would exceed 4096 bytes.
            EncodeError: If the session cannot be serialized or sealed.
        """
        with session.lock:
            if not session.is_changed:
                return
            if session.destroyed:
                response.set_cookie(
                    self.cookie_name,
                    '',
                    expires=EXPIRED_COOKIE_DATE,
                    max_age=0,
                    **self._cookie_options()
                )
                return
            token = session.encode(self._config.active_key)
            expiry = session.expiry
        options = self._cookie_options()
        if self._config.persist:
            # round up to the nearest second.
            expires = datetime.fromtimestamp(
                int(expiry.timestamp()) + 1, tz=timezone.utc
            )
            remaining = expiry - datetime.now(timezone.utc)
            options["expires"] = format_datetime(expires, usegmt=True)
            options["max_age"] = int(remaining.total_seconds() + 1)
        response.set_cookie(self.cookie_name, token, **options)
        morsel = response.cookies[self.cookie_name]
        if len(morsel.OutputString()) > MAX_COOKIE_SIZE:
            del response.cookies[self.cookie_name]
            raise CookieTooLarge(
                f"session: cookie length greater than {MAX_COOKIE_SIZE} bytes"
            )
        vary = {
            item.strip().lower()
            for value in response.headers.getall('Vary', [])
            for item in value.split(',')
        }
        if 'cookie' not in vary and '*' not in vary:
            response.headers.add('Vary', 'Cookie')
