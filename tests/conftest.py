import os

# Settings require credentials; tests never touch a real database
os.environ.setdefault("POSTGRES_USER", "test")
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("SESSION_SECRET", "test-secret")
os.environ.setdefault("LIVE_FEED_BACKEND", "local")

import uuid
from datetime import datetime, timezone
import pytest
from unittest.mock import AsyncMock, MagicMock

from app.models.match import Connection, ConnectionStatus, make_pair_key


@pytest.fixture
def mock_session():
    session = AsyncMock()

    # Setup execute result
    mock_result = MagicMock()
    # Ensure scalar_one_or_none returns a value, not a coroutine
    mock_result.scalar_one_or_none.return_value = None
    mock_result.scalars.return_value.all.return_value = []
    mock_result.scalars.return_value.first.return_value = None
    mock_result.all.return_value = []
    mock_result.scalar.return_value = 0
    mock_result.rowcount = 1

    # Configure session.execute to return this result when awaited
    session.execute.side_effect = None
    session.execute.return_value = mock_result

    # Standard methods
    session.add = MagicMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()

    return session


@pytest.fixture
def mock_async_session_local(mock_session, monkeypatch):
    """Mock AsyncSessionLocal to return a mock session context manager."""
    mock_factory = MagicMock()
    # Mock the context manager __aenter__ / __aexit__
    mock_factory.return_value.__aenter__.return_value = mock_session
    mock_factory.return_value.__aexit__.return_value = False

    # Patch in all files that use AsyncSessionLocal
    targets = [
        "app.api.me.AsyncSessionLocal",
        "app.api.matches.AsyncSessionLocal",
        "app.api.connections.AsyncSessionLocal",
    ]
    for target in targets:
        try:
            monkeypatch.setattr(target, mock_factory)
        except (AttributeError, ImportError):
            pass

    return mock_factory


@pytest.fixture(autouse=True)
def auto_mock_db(mock_async_session_local):
    """Automatically use mock_async_session_local for all tests."""
    return mock_async_session_local


def result_with(scalar=None, rows=None, all_rows=None, rowcount=1):
    """Build an execute() result the way SQLAlchemy returns it."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = rows or []
    result.scalars.return_value.first.return_value = (rows or [None])[0]
    result.all.return_value = all_rows or []
    result.scalar.return_value = scalar
    result.rowcount = rowcount
    return result


def make_connection(user_a=None, user_b=None, status=ConnectionStatus.PENDING.value, **kwargs):
    user_a = user_a or uuid.uuid4()
    user_b = user_b or uuid.uuid4()
    return Connection(
        id=kwargs.pop("id", uuid.uuid4()),
        user_a_id=user_a,
        user_b_id=user_b,
        pair_key=make_pair_key(user_a, user_b),
        status=status,
        created_at=kwargs.pop("created_at", datetime(2026, 1, 1, tzinfo=timezone.utc)),
        **kwargs,
    )


@pytest.fixture
def make_result():
    return result_with


@pytest.fixture
def connection_factory():
    return make_connection
