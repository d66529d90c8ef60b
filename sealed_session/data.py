import threading
from typing import Any, Optional
from datetime import datetime, timedelta, timezone
from collections.abc import Iterator, Mapping, MutableMapping, Sequence
import orjson
from .conf import SESSION_LIFETIME
from .envelope import encrypt, decrypt
from .exceptions import (
    DestroyedSessionAccess,
    EncodeError,
    InvalidToken
)
from .values import kind_of, pack, unpack


# Zero value for timestamps, also the expiry of a destroyed session.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_MISSING = object()


class SessionData(MutableMapping[str, Any]):
    """Session dict-like object.

    Holds the data of one client session for the duration of one request.
    Expiry is absolute: it is set when the session is created and never
    extended by activity.

    Every access goes through an exclusive lock, so sub-tasks of the same
    request can share the instance. Once destroyed, any further access to the
    data raises DestroyedSessionAccess.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        expiry: Optional[datetime] = None,
        *,
        lifetime: Optional[timedelta] = None
    ) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, Any] = {}
        if expiry is None:
            if lifetime is None:
                lifetime = timedelta(seconds=SESSION_LIFETIME)
            expiry = datetime.now(timezone.utc) + lifetime
        elif expiry.tzinfo is None:
            raise ValueError("Session expiry must be timezone-aware")
        self._expiry = expiry.astimezone(timezone.utc)
        self._changed = False
        self._destroyed = False
        if data:
            for key, value in data.items():
                self._data[key] = self._normalize(key, value)

    def __repr__(self) -> str:
        return (
            f'<Sealed-Session [changed:{self._changed}, '
            f'destroyed:{self._destroyed}, expiry:{self._expiry.isoformat()}] '
            f'keys={sorted(self._data)}>'
        )

    @staticmethod
    def _normalize(key: str, value: Any) -> Any:
        if not isinstance(key, str):
            raise TypeError(f"Session keys must be strings, got {type(key).__name__}")
        kind_of(value)
        if isinstance(value, bytearray):
            return bytes(value)
        return value

    def _check(self) -> None:
        if self._destroyed:
            raise DestroyedSessionAccess(
                "session: data accessed after the session was destroyed"
            )

    # --- Properties ---

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def expiry(self) -> datetime:
        with self._lock:
            return self._expiry

    @property
    def is_changed(self) -> bool:
        with self._lock:
            return self._changed

    @property
    def destroyed(self) -> bool:
        with self._lock:
            return self._destroyed

    @property
    def empty(self) -> bool:
        with self._lock:
            return not self._data

    def expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            return now > self._expiry

    # --- Accessors ---

    def put(self, key: str, value: Any) -> None:
        """Add a key and value, replacing any existing value for the key."""
        value = self._normalize(key, value)
        with self._lock:
            self._check()
            self._data[key] = value
            self._changed = True

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._check()
            return self._data.get(key, default)

    def pop(self, key: str, default: Any = None) -> Any:
        """One-time get: return the value for key and delete it.

        The session is only marked as changed when the key existed.
        """
        with self._lock:
            self._check()
            value = self._data.pop(key, _MISSING)
            if value is _MISSING:
                return default
            self._changed = True
            return value

    def remove(self, key: str) -> None:
        """Delete key if present, otherwise a no-op."""
        with self._lock:
            self._check()
            if key in self._data:
                del self._data[key]
                self._changed = True

    def exists(self, key: str) -> bool:
        with self._lock:
            self._check()
            return key in self._data

    def keys(self) -> list[str]:  # type: ignore[override]
        """Key names, sorted alphabetically."""
        with self._lock:
            self._check()
            return sorted(self._data)

    def destroy(self) -> None:
        """Clear all data and mark the session for deletion on the client."""
        with self._lock:
            self._data = {}
            self._expiry = ZERO_TIME
            self._changed = True
            self._destroyed = True

    # --- Typed accessors ---

    @staticmethod
    def _typed(value: Any, types: tuple, zero: Any) -> Any:
        if isinstance(value, types):
            return value
        return zero

    def get_string(self, key: str) -> str:
        return self._typed(self.get(key), (str,), "")

    def get_bool(self, key: str) -> bool:
        return self._typed(self.get(key), (bool,), False)

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, bool):
            return 0
        return self._typed(value, (int,), 0)

    def get_float(self, key: str) -> float:
        return self._typed(self.get(key), (float,), 0.0)

    def get_bytes(self, key: str) -> bytes:
        return self._typed(self.get(key), (bytes,), b"")

    def get_time(self, key: str) -> datetime:
        """Timestamp for key, ZERO_TIME if missing or not a datetime."""
        return self._typed(self.get(key), (datetime,), ZERO_TIME)

    def pop_string(self, key: str) -> str:
        return self._typed(self.pop(key), (str,), "")

    def pop_bool(self, key: str) -> bool:
        return self._typed(self.pop(key), (bool,), False)

    def pop_int(self, key: str) -> int:
        value = self.pop(key)
        if isinstance(value, bool):
            return 0
        return self._typed(value, (int,), 0)

    def pop_float(self, key: str) -> float:
        return self._typed(self.pop(key), (float,), 0.0)

    def pop_bytes(self, key: str) -> bytes:
        return self._typed(self.pop(key), (bytes,), b"")

    def pop_time(self, key: str) -> datetime:
        return self._typed(self.pop(key), (datetime,), ZERO_TIME)

    # --- Magic Methods ---

    def __len__(self) -> int:
        with self._lock:
            self._check()
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __contains__(self, key: object) -> bool:
        return self.exists(str(key))

    def __getitem__(self, key: str) -> Any:
        with self._lock:
            self._check()
            return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: str) -> None:
        with self._lock:
            self._check()
            del self._data[key]
            self._changed = True

    # --- Serialization ---

    def encode(self, key: bytes) -> str:
        """encode.

            Serialize the session data and expiry and seal them into a token.
            Changed/destroyed flags are not part of the token.
        Args:
            key (bytes): active 32-byte session key.

        Raises:
            EncodeError: data could not be serialized or sealed.

        Returns:
            str: session token.
        """
        with self._lock:
            self._check()
            try:
                payload = orjson.dumps({
                    'data': {k: pack(v) for k, v in self._data.items()},
                    'expiry': self._expiry.isoformat()
                })
            except Exception as err:
                raise EncodeError(f"session: cannot serialize data: {err}") from err
            return encrypt(payload, key)

    @classmethod
    def decode(cls, token: str, keys: Sequence[bytes]) -> "SessionData":
        """decode.

            Open a session token and rebuild the session it carries.
        Args:
            token (str): session cookie value.
            keys (Sequence[bytes]): key ring, active key first.

        Raises:
            InvalidToken: token cannot be opened, or its payload cannot
            be restored.

        Returns:
            SessionData: unchanged session with the decoded data.
        """
        plaintext = decrypt(token, keys)
        try:
            payload = orjson.loads(plaintext)
            data = {
                str(k): unpack(v) for k, v in payload['data'].items()
            }
            expiry = datetime.fromisoformat(payload['expiry'])
            return cls(data=data, expiry=expiry)
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise InvalidToken(f"session: malformed payload: {err}") from err
