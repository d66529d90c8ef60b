import pytest
from datetime import timedelta

from sealed_session import SessionConfig


SECRET = b"u46IpCV9y5Vlur8YvODJEhgOY8m9JVE4"
OLD_SECRET = b"9y5Vlur8YvODJEhgOY8m9JVE4u46IpCV"


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def old_secret():
    return OLD_SECRET


@pytest.fixture
def config():
    """Session config with a single active key."""
    return SessionConfig(keys=(SECRET,), lifetime=timedelta(hours=1))
