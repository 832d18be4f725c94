import asyncio
import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError, OperationalError
from app.services.connection_service import ConnectionService
from app.models.match import ConnectionStatus, make_pair_key
from app.models.profile import Profile
from app.core.errors import (
    ValidationError,
    PermissionDeniedError,
    NotFoundError,
    InvalidTransitionError,
    StoreError,
)


def test_pair_key_is_order_independent():
    a, b = uuid.uuid4(), uuid.uuid4()
    assert make_pair_key(a, b) == make_pair_key(b, a)


@pytest.mark.asyncio
async def test_connect_with_self_is_rejected(mock_session):
    me = uuid.uuid4()
    with pytest.raises(ValidationError):
        await ConnectionService(mock_session).connect(me, me)
    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_connect_creates_pending_connection(mock_session):
    a, b = uuid.uuid4(), uuid.uuid4()

    connection = await ConnectionService(mock_session).connect(a, b, reason="Both into jazz")

    assert connection.user_a_id == a
    assert connection.user_b_id == b
    assert connection.status == ConnectionStatus.PENDING.value
    assert connection.reason == "Both into jazz"
    assert connection.pair_key == make_pair_key(a, b)
    mock_session.add.assert_called_once_with(connection)
    mock_session.commit.assert_called_once()


@pytest.mark.asyncio
async def test_connect_is_idempotent_in_both_directions(mock_session, make_result, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    existing = connection_factory(a, b)
    mock_session.execute.return_value = make_result(scalar=existing)
    service = ConnectionService(mock_session)

    assert await service.connect(a, b) is existing
    assert await service.connect(b, a) is existing
    mock_session.add.assert_not_called()
    mock_session.commit.assert_not_called()


def _racing_session(table, make_result):
    """Mock session over a shared one-row 'table' that enforces the pair constraint on commit."""
    session = AsyncMock()
    pending = []

    async def execute(stmt):
        await asyncio.sleep(0)
        return make_result(scalar=table.get("row"))

    async def commit():
        await asyncio.sleep(0)
        if "row" in table:
            raise IntegrityError("INSERT INTO matches", {}, Exception("duplicate key value"))
        table["row"] = pending.pop()

    session.execute.side_effect = execute
    session.add = MagicMock(side_effect=pending.append)
    session.commit = AsyncMock(side_effect=commit)
    session.rollback = AsyncMock(side_effect=pending.clear)
    session.refresh = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_concurrent_connect_yields_single_row(make_result):
    a, b = uuid.uuid4(), uuid.uuid4()
    table = {}
    first = ConnectionService(_racing_session(table, make_result))
    second = ConnectionService(_racing_session(table, make_result))

    results = await asyncio.gather(first.connect(a, b), second.connect(b, a))

    assert results[0].id == results[1].id == table["row"].id
    second.session.rollback.assert_called_once()
    first.session.rollback.assert_not_called()


@pytest.mark.asyncio
async def test_accept_by_counterpart(mock_session, make_result, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b)
    mock_session.execute.side_effect = [make_result(scalar=connection), make_result(rowcount=1)]

    result = await ConnectionService(mock_session).accept(connection.id, b)

    assert result.status == ConnectionStatus.ACCEPTED.value
    mock_session.commit.assert_called_once()


@pytest.mark.asyncio
async def test_reject_by_counterpart(mock_session, make_result, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b)
    mock_session.execute.side_effect = [make_result(scalar=connection), make_result(rowcount=1)]

    result = await ConnectionService(mock_session).reject(connection.id, b)

    assert result.status == ConnectionStatus.REJECTED.value


@pytest.mark.asyncio
async def test_initiator_cannot_accept(mock_session, make_result, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b)
    mock_session.execute.return_value = make_result(scalar=connection)

    with pytest.raises(PermissionDeniedError):
        await ConnectionService(mock_session).accept(connection.id, a)
    assert connection.status == ConnectionStatus.PENDING.value


@pytest.mark.asyncio
async def test_outsider_cannot_respond(mock_session, make_result, connection_factory):
    connection = connection_factory()
    mock_session.execute.return_value = make_result(scalar=connection)

    with pytest.raises(PermissionDeniedError):
        await ConnectionService(mock_session).reject(connection.id, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [ConnectionStatus.ACCEPTED.value, ConnectionStatus.REJECTED.value])
async def test_answered_connection_cannot_transition_again(mock_session, make_result, connection_factory, status):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b, status)
    mock_session.execute.return_value = make_result(scalar=connection)
    service = ConnectionService(mock_session)

    with pytest.raises(InvalidTransitionError):
        await service.accept(connection.id, b)
    with pytest.raises(InvalidTransitionError):
        await service.reject(connection.id, b)
    assert connection.status == status
    mock_session.commit.assert_not_called()


@pytest.mark.asyncio
async def test_lost_race_on_transition(mock_session, make_result, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b)
    # Row read as pending, but another request answered it first
    mock_session.execute.side_effect = [make_result(scalar=connection), make_result(rowcount=0)]

    with pytest.raises(InvalidTransitionError):
        await ConnectionService(mock_session).accept(connection.id, b)
    mock_session.rollback.assert_called_once()
    mock_session.commit.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_connection(mock_session):
    with pytest.raises(NotFoundError):
        await ConnectionService(mock_session).accept(uuid.uuid4(), uuid.uuid4())


@pytest.mark.asyncio
async def test_store_failure_is_wrapped(mock_session):
    mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(StoreError):
        await ConnectionService(mock_session).get(uuid.uuid4())
    mock_session.rollback.assert_called_once()


@pytest.mark.asyncio
async def test_set_reason(mock_session, make_result, connection_factory):
    connection = connection_factory()
    mock_session.execute.return_value = make_result(scalar=connection)

    result = await ConnectionService(mock_session).set_reason(connection.id, "Great fit")

    assert result.reason == "Great fit"
    mock_session.commit.assert_called_once()


@pytest.mark.asyncio
async def test_list_accepted_with_profiles(mock_session, make_result, connection_factory):
    me, friend, ghost = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    with_friend = connection_factory(me, friend, ConnectionStatus.ACCEPTED.value)
    with_ghost = connection_factory(ghost, me, ConnectionStatus.ACCEPTED.value)
    friend_profile = Profile(user_id=friend, full_name="Friend")

    mock_session.execute.side_effect = [
        make_result(rows=[with_friend, with_ghost]),
        make_result(rows=[friend_profile]),
    ]

    entries = await ConnectionService(mock_session).list_accepted_with_profiles(me)

    assert [e["connection"] for e in entries] == [with_friend, with_ghost]
    assert entries[0]["other_user"] is friend_profile
    # No profile yet for the other user
    assert entries[1]["other_user"] is None


@pytest.mark.asyncio
async def test_list_accepted_without_connections_skips_profile_read(mock_session):
    assert await ConnectionService(mock_session).list_accepted_with_profiles(uuid.uuid4()) == []
    assert mock_session.execute.call_count == 1
