"""
Tests for session configuration and key loading.
"""
import base64
import pytest
from datetime import timedelta
from pydantic import ValidationError

from sealed_session.conf import (
    SessionConfig,
    generate_key,
    load_session_keys
)

from conftest import OLD_SECRET, SECRET


def _b64(key: bytes) -> str:
    return base64.b64encode(key).decode("ascii")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("SESSION_SECRET", "SESSION_SECRET_v1", "SESSION_SECRET_v2"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSessionConfig:

    def test_defaults(self):
        config = SessionConfig(keys=(SECRET,))
        assert config.active_key == SECRET
        assert config.retired_keys == ()
        assert config.path == "/"
        assert config.httponly is True
        assert config.secure is False
        assert config.samesite == "Lax"
        assert config.persist is True
        assert config.domain is None
        assert config.lifetime > timedelta(0)

    def test_key_ring_order(self):
        config = SessionConfig(keys=(SECRET, OLD_SECRET))
        assert config.active_key == SECRET
        assert config.retired_keys == (OLD_SECRET,)

    def test_short_key_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=(b"short-key",))

    def test_short_retired_key_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=(SECRET, b"x" * 31))

    def test_long_key_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=(b"x" * 33,))

    def test_empty_ring_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=())

    def test_lifetime_seconds(self):
        config = SessionConfig(keys=(SECRET,), lifetime=90)
        assert config.lifetime == timedelta(seconds=90)

    def test_lifetime_must_be_positive(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=(SECRET,), lifetime=timedelta(0))

    def test_invalid_samesite(self):
        with pytest.raises(ValidationError):
            SessionConfig(keys=(SECRET,), samesite="sometimes")

    def test_frozen(self):
        config = SessionConfig(keys=(SECRET,))
        with pytest.raises(ValidationError):
            config.secure = True

    def test_repr_hides_keys(self):
        config = SessionConfig(keys=(SECRET,))
        assert SECRET.decode() not in repr(config)


class TestKeyLoading:

    def test_missing_secret(self, clean_env):
        with pytest.raises(RuntimeError):
            load_session_keys()

    def test_active_only(self, clean_env):
        clean_env.setenv("SESSION_SECRET", _b64(SECRET))
        assert load_session_keys() == (SECRET,)

    def test_retired_keys_newest_first(self, clean_env):
        older = b"o" * 32
        clean_env.setenv("SESSION_SECRET", _b64(SECRET))
        clean_env.setenv("SESSION_SECRET_v1", _b64(older))
        clean_env.setenv("SESSION_SECRET_v2", _b64(OLD_SECRET))
        assert load_session_keys() == (SECRET, OLD_SECRET, older)

    def test_wrong_length(self, clean_env):
        clean_env.setenv("SESSION_SECRET", _b64(b"short"))
        with pytest.raises(ValueError):
            load_session_keys()

    def test_from_env(self, clean_env):
        clean_env.setenv("SESSION_SECRET", _b64(SECRET))
        config = SessionConfig.from_env(secure=True)
        assert config.active_key == SECRET
        assert config.secure is True

    def test_generate_key(self):
        key = generate_key()
        assert len(base64.b64decode(key)) == 32
        assert generate_key() != key
