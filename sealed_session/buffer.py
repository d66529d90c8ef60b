"""Two-phase response builder.

Session cookies are headers, and headers cannot change once the first byte
of a response has been sent. Handlers running inside the session lifecycle
may therefore write into a ResponseBuffer: status, headers and body are only
accumulated, and the lifecycle commits them into a real response after the
session cookie has been decided.
"""
from typing import Optional, Union
from aiohttp import web
from multidict import CIMultiDict


class ResponseBuffer:
    """Accumulates a response until it is committed."""

    def __init__(self) -> None:
        self._status: Optional[int] = None
        self._reason: Optional[str] = None
        self._headers: CIMultiDict[str] = CIMultiDict()
        self._body = bytearray()
        self._text = False
        self._committed = False

    def __repr__(self) -> str:
        return (
            f'<ResponseBuffer status={self._status} '
            f'size={len(self._body)} committed={self._committed}>'
        )

    def _check(self) -> None:
        if self._committed:
            raise RuntimeError("Response buffer was already committed")

    @property
    def status(self) -> Optional[int]:
        """Status captured so far, None when the handler did not set one."""
        return self._status

    @property
    def headers(self) -> CIMultiDict[str]:
        return self._headers

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def empty(self) -> bool:
        return self._status is None and not self._body and not self._headers

    def write_status(self, status: int, reason: Optional[str] = None) -> None:
        self._check()
        self._status = status
        self._reason = reason

    def write(self, data: Union[bytes, bytearray, str]) -> int:
        """Append data to the buffered body, returns the number of bytes."""
        self._check()
        if isinstance(data, str):
            data = data.encode('utf-8')
            self._text = True
        self._body.extend(data)
        return len(data)

    def commit(self) -> web.Response:
        """Freeze the buffer and build the response to be sent."""
        self._check()
        self._committed = True
        headers = CIMultiDict(self._headers)
        if 'Content-Type' not in headers:
            headers['Content-Type'] = (
                'text/plain; charset=utf-8' if self._text
                else 'application/octet-stream'
            )
        return web.Response(
            status=self._status or 200,
            reason=self._reason,
            headers=headers,
            body=bytes(self._body)
        )
