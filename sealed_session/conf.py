"""
Session Configuration — constants, key loading and validated settings.

Reads the session secrets from environment variables in the format:
    SESSION_SECRET = <base64-encoded 32-byte key>       (active key)
    SESSION_SECRET_v{N} = <base64-encoded 32-byte key>  (retired keys)

Retired keys are only used to open cookies issued before a key rotation,
newest version first.

Security Note:
    Never log key material. Only log key counts and versions.
"""
import os
import re
import base64
import secrets
import logging
from typing import Literal, Optional
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("sealed_session.config")

# Request keys used to attach the lifecycle objects.
SESSION_OBJECT = 'sealed_session.session'
SESSION_BUFFER = 'sealed_session.buffer'

# Browsers refuse cookies above this size.
MAX_COOKIE_SIZE = 4096

KEY_LENGTH = 32

SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'session')
SESSION_LIFETIME = int(os.environ.get('SESSION_LIFETIME', 86400))

_RETIRED_KEY_PATTERN = re.compile(r"^SESSION_SECRET_v(\d+)$")


def _decode_key(name: str, value: str) -> bytes:
    key_bytes = base64.b64decode(value)
    if len(key_bytes) != KEY_LENGTH:
        raise ValueError(
            f"{name} must decode to exactly {KEY_LENGTH} bytes, "
            f"got {len(key_bytes)}"
        )
    return key_bytes


def load_session_keys() -> tuple[bytes, ...]:
    """Load the session key ring from environment variables.

    The active key comes from SESSION_SECRET; retired keys come from
    SESSION_SECRET_v{N} and are ordered from the highest version down.

    Returns:
        Key ring, active key first.

    Raises:
        RuntimeError: If SESSION_SECRET is not set.
        ValueError: If a key does not decode to exactly 32 bytes.
    """
    active = os.environ.get("SESSION_SECRET")
    if not active:
        raise RuntimeError(
            "No session secret found in environment. "
            "Set SESSION_SECRET=<base64-encoded-32-byte-key>"
        )
    retired: dict[int, bytes] = {}
    for name, value in os.environ.items():
        match = _RETIRED_KEY_PATTERN.match(name)
        if match:
            retired[int(match.group(1))] = _decode_key(name, value)
    keys = (_decode_key("SESSION_SECRET", active),) + tuple(
        retired[version] for version in sorted(retired, reverse=True)
    )
    logger.debug(
        "Loaded session key ring: 1 active, %d retired version(s): %s",
        len(retired), sorted(retired, reverse=True)
    )
    return keys


def generate_key() -> str:
    """Generate a random 32-byte session secret and return as base64 string.

    Returns:
        Base64-encoded 32-byte key string, suitable for SESSION_SECRET.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class SessionConfig(BaseModel):
    """Validated, immutable session cookie configuration."""

    keys: tuple[bytes, ...] = Field(repr=False)
    cookie_name: str = Field(default=SESSION_COOKIE_NAME, min_length=1)
    lifetime: timedelta = Field(default=timedelta(seconds=SESSION_LIFETIME))
    domain: Optional[str] = None
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: Optional[Literal["Lax", "Strict", "None"]] = "Lax"
    persist: bool = True

    model_config = ConfigDict(frozen=True)

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: tuple[bytes, ...]) -> tuple[bytes, ...]:
        """Require at least one key, every key exactly 32 bytes."""
        if not v:
            raise ValueError("At least one session key is required")
        for idx, key in enumerate(v):
            if len(key) != KEY_LENGTH:
                raise ValueError(
                    f"Session key at index {idx} must be exactly "
                    f"{KEY_LENGTH} bytes, got {len(key)}"
                )
        return v

    @field_validator("lifetime")
    @classmethod
    def validate_lifetime(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("Session lifetime must be positive")
        return v

    @property
    def active_key(self) -> bytes:
        return self.keys[0]

    @property
    def retired_keys(self) -> tuple[bytes, ...]:
        return self.keys[1:]

    @classmethod
    def from_env(cls, **kwargs) -> "SessionConfig":
        """Create SessionConfig using the key ring found in environment.

        Args:
            **kwargs: cookie policy overrides (domain, secure, ...).

        Returns:
            Populated SessionConfig instance.
        """
        return cls(keys=load_session_keys(), **kwargs)
