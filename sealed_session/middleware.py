"""
Session lifecycle — loads the session before a handler runs and saves it
after the handler has produced its response.

Per request:
    load     -> session from the cookie (or a fresh one)
    attach   -> request[SESSION_OBJECT], request[SESSION_BUFFER]
    execute  -> handler writes into the ResponseBuffer or returns a response
    persist  -> session cookie written when the session changed
    flush    -> response handed back to aiohttp

Errors while loading or saving go to a single error handler. Exceptions
raised by the handler itself are not caught: the session is abandoned and
nothing is persisted.
"""
import logging
from functools import wraps
from typing import Any, Optional
from collections.abc import Awaitable, Callable
from aiohttp import web
from .buffer import ResponseBuffer
from .conf import SESSION_BUFFER, SESSION_OBJECT
from .exceptions import SessionError
from .storage import CookieStorage

logger = logging.getLogger("sealed_session.middleware")

Handler = Callable[[web.Request], Awaitable[Any]]
ErrorHandler = Callable[[web.Request, Exception], Awaitable[web.StreamResponse]]


async def default_error_handler(
    request: web.Request,
    err: Exception
) -> web.StreamResponse:
    """Log the error and answer a generic 500, without any error detail."""
    logger.error(
        "Session error on %s %s: %s", request.method, request.path, err
    )
    return web.Response(status=500, text="500 Internal Server Error")


class SessionLifecycle:
    """Runs handlers inside the session load/save cycle."""

    def __init__(
        self,
        storage: CookieStorage,
        error_handler: Optional[ErrorHandler] = None
    ) -> None:
        self._storage = storage
        self._error_handler = error_handler or default_error_handler

    @property
    def storage(self) -> CookieStorage:
        return self._storage

    def _collect(self, result: Any, buffer: ResponseBuffer) -> web.StreamResponse:
        if result is None or result is buffer:
            return buffer.commit()
        if isinstance(result, web.StreamResponse):
            if not buffer.empty:
                raise RuntimeError(
                    "Handler returned a response and also wrote into the "
                    "response buffer"
                )
            return result
        raise RuntimeError(
            f"Handler returned an unsupported value: {type(result).__name__}"
        )

    async def handle(
        self,
        request: web.Request,
        handler: Handler
    ) -> web.StreamResponse:
        session = request.get(SESSION_OBJECT)
        if session is None:
            try:
                session = await self._storage.load_session(request)
            except SessionError as err:
                return await self._error_handler(request, err)
            request[SESSION_OBJECT] = session

        buffer = ResponseBuffer()
        request[SESSION_BUFFER] = buffer
        raise_response = False
        try:
            response = self._collect(await handler(request), buffer)
        except web.HTTPException as exc:
            # redirects still carry the cookie, buffered writes are dropped.
            response = exc
            raise_response = True

        if response.prepared:
            # streamed or hijacked (websocket) responses already sent headers
            if session.is_changed:
                logger.warning(
                    "Response to %s was already started, session changes "
                    "could not be saved", request.path
                )
            return response

        try:
            await self._storage.save_session(request, response, session)
        except SessionError as err:
            return await self._error_handler(request, err)

        if raise_response:
            raise response
        return response

    def enable(self, handler: Handler) -> Handler:
        """Wrap a single handler into the session lifecycle."""
        @wraps(handler)
        async def wrapped(request: web.Request) -> web.StreamResponse:
            return await self.handle(request, handler)
        return wrapped


def session_middleware(
    storage: CookieStorage,
    error_handler: Optional[ErrorHandler] = None
) -> Callable:
    """aiohttp middleware loading and saving the session cookie."""
    lifecycle = SessionLifecycle(storage, error_handler)

    @web.middleware
    async def middleware(request: web.Request, handler: Handler):
        return await lifecycle.handle(request, handler)

    return middleware
