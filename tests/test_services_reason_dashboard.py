import uuid
import pytest
from unittest.mock import MagicMock, AsyncMock
from app.services.reason_service import ReasonService
from app.services.dashboard_service import DashboardService
from app.schemas.profile import ProfileSummary
from app.models.match import ConnectionStatus
from app.core.errors import OracleUnavailable, OracleRateLimited, ValidationError
from app.config.constants import DEFAULT_MATCH_REASON


def _reason_service(mock_session, oracle_result):
    oracle = MagicMock()
    oracle.complete_text = AsyncMock(side_effect=[oracle_result])
    service = ReasonService(mock_session, oracle=oracle)
    service.profile_service.get_summary = AsyncMock(
        side_effect=lambda uid: ProfileSummary(user_id=uid, full_name=str(uid)[:4])
    )
    return service


@pytest.mark.asyncio
async def test_reason_saved_on_existing_connection(mock_session, connection_factory):
    a, b = uuid.uuid4(), uuid.uuid4()
    connection = connection_factory(a, b, ConnectionStatus.ACCEPTED.value)
    service = _reason_service(mock_session, "You both love jazz.")
    service.connection_service.get_for_pair = AsyncMock(return_value=connection)
    service.connection_service.set_reason = AsyncMock()

    reason = await service.generate_reason(a, b)

    assert reason == "You both love jazz."
    service.connection_service.set_reason.assert_awaited_once_with(connection.id, "You both love jazz.")


@pytest.mark.asyncio
async def test_reason_without_connection_is_not_saved(mock_session):
    service = _reason_service(mock_session, "Great pair.")
    service.connection_service.set_reason = AsyncMock()

    assert await service.generate_reason(uuid.uuid4(), uuid.uuid4()) == "Great pair."
    service.connection_service.set_reason.assert_not_called()


@pytest.mark.asyncio
async def test_reason_falls_back_when_oracle_unavailable(mock_session):
    service = _reason_service(mock_session, OracleUnavailable("timeout"))

    assert await service.generate_reason(uuid.uuid4(), uuid.uuid4()) == DEFAULT_MATCH_REASON


@pytest.mark.asyncio
async def test_reason_surfaces_rate_limit(mock_session):
    service = _reason_service(mock_session, OracleRateLimited("slow down", 429))

    with pytest.raises(OracleRateLimited):
        await service.generate_reason(uuid.uuid4(), uuid.uuid4())


@pytest.mark.asyncio
async def test_reason_for_self_is_rejected(mock_session):
    me = uuid.uuid4()
    service = _reason_service(mock_session, "unused")

    with pytest.raises(ValidationError):
        await service.generate_reason(me, me)
    service.oracle.complete_text.assert_not_called()


@pytest.mark.asyncio
async def test_dashboard_stats(mock_session, make_result):
    mock_session.execute.side_effect = [
        make_result(scalar=3),
        make_result(scalar=1),
        make_result(scalar=2),
    ]

    stats = await DashboardService(mock_session).get_stats(uuid.uuid4())

    assert stats == {"skills_offered": 3, "skills_wanted": 1, "active_matches": 2}


@pytest.mark.asyncio
async def test_dashboard_stats_for_new_user(mock_session, make_result):
    mock_session.execute.return_value = make_result(scalar=None)

    stats = await DashboardService(mock_session).get_stats(uuid.uuid4())

    assert stats == {"skills_offered": 0, "skills_wanted": 0, "active_matches": 0}
