import uuid
import pytest
from app.services.skill_service import SkillService, SkillIndex, normalize_skill
from app.models.skill import SkillOffered, SkillWanted
from app.core.errors import ValidationError, NotFoundError
from app.config.constants import MAX_SKILL_NAME_LENGTH


def test_normalize_skill():
    assert normalize_skill("  Guitar ") == "guitar"
    assert normalize_skill("STRASSE") == normalize_skill("straße")
    assert normalize_skill(None) == ""


def test_skill_index_has_no_synonym_merging():
    index = SkillIndex.from_names(["JS", "JavaScript"])
    assert index.offered == frozenset({"js", "javascript"})


@pytest.mark.asyncio
async def test_add_offered_skill(mock_session):
    user_id = uuid.uuid4()

    row = await SkillService(mock_session).add_skill(user_id, "  Watercolor ", "offered")

    assert isinstance(row, SkillOffered)
    assert row.skill_name == "Watercolor"
    assert row.user_id == user_id
    mock_session.add.assert_called_once_with(row)
    mock_session.commit.assert_called_once()


@pytest.mark.asyncio
async def test_add_wanted_skill(mock_session):
    row = await SkillService(mock_session).add_skill(uuid.uuid4(), "Pottery", "wanted")
    assert isinstance(row, SkillWanted)


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   ", "x" * (MAX_SKILL_NAME_LENGTH + 1)])
async def test_add_skill_rejects_bad_names(mock_session, name):
    with pytest.raises(ValidationError):
        await SkillService(mock_session).add_skill(uuid.uuid4(), name, "offered")
    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_kind(mock_session):
    with pytest.raises(ValidationError):
        await SkillService(mock_session).add_skill(uuid.uuid4(), "Chess", "borrowed")


@pytest.mark.asyncio
async def test_remove_missing_skill(mock_session, make_result):
    mock_session.execute.return_value = make_result(rowcount=0)

    with pytest.raises(NotFoundError):
        await SkillService(mock_session).remove_skill(uuid.uuid4(), uuid.uuid4(), "wanted")
    mock_session.rollback.assert_called_once()
    mock_session.commit.assert_not_called()


@pytest.mark.asyncio
async def test_remove_skill(mock_session, make_result):
    mock_session.execute.return_value = make_result(rowcount=1)

    await SkillService(mock_session).remove_skill(uuid.uuid4(), uuid.uuid4(), "offered")

    mock_session.commit.assert_called_once()


@pytest.mark.asyncio
async def test_get_raw_names_groups_by_user(mock_session, make_result):
    alice, bob = uuid.uuid4(), uuid.uuid4()
    mock_session.execute.side_effect = [
        make_result(all_rows=[(alice, "Guitar"), (alice, "Guitar"), (bob, "Cooking")]),
        make_result(all_rows=[(bob, "Guitar")]),
    ]

    grouped = await SkillService(mock_session).get_raw_names()

    assert grouped == {
        alice: {"offered": ["Guitar"], "wanted": []},
        bob: {"offered": ["Cooking"], "wanted": ["Guitar"]},
    }


@pytest.mark.asyncio
async def test_get_raw_names_for_no_users(mock_session):
    assert await SkillService(mock_session).get_raw_names([]) == {}
    mock_session.execute.assert_not_called()


@pytest.mark.asyncio
async def test_get_index(mock_session, make_result):
    mock_session.execute.side_effect = [
        make_result(rows=["Guitar", "guitar "]),
        make_result(rows=["Spanish"]),
    ]

    index = await SkillService(mock_session).get_index(uuid.uuid4())

    assert index == SkillIndex(offered=frozenset({"guitar"}), wanted=frozenset({"spanish"}))


@pytest.mark.asyncio
async def test_offered_trims_and_casefolds(mock_session, make_result):
    mock_session.execute.return_value = make_result(rows=["Guitar ", "guitar", "  PIANO"])

    assert await SkillService(mock_session).offered(uuid.uuid4()) == {"guitar", "piano"}
    assert "skills_offered" in str(mock_session.execute.call_args[0][0])


@pytest.mark.asyncio
async def test_wanted_trims_and_casefolds(mock_session, make_result):
    mock_session.execute.return_value = make_result(rows=[" Spanish", "SPANISH", "   "])

    assert await SkillService(mock_session).wanted(uuid.uuid4()) == {"spanish"}
    assert "skills_wanted" in str(mock_session.execute.call_args[0][0])


@pytest.mark.asyncio
async def test_find_users_offering_groups_rows(mock_session, make_result):
    me, mentor = uuid.uuid4(), uuid.uuid4()
    mock_session.execute.return_value = make_result(
        all_rows=[(mentor, "Guitar"), (mentor, "Guitar lessons")]
    )

    offering = await SkillService(mock_session).find_users_offering(" guitar ", exclude_user_id=me)

    assert offering == {mentor: ["Guitar", "Guitar lessons"]}


@pytest.mark.asyncio
async def test_find_users_offering_escapes_wildcards(mock_session):
    await SkillService(mock_session).find_users_offering("100%_sure", exclude_user_id=uuid.uuid4())

    statement = mock_session.execute.call_args[0][0]
    params = statement.compile().params
    assert "%100\\%\\_sure%" in params.values()


@pytest.mark.asyncio
async def test_find_users_offering_rejects_blank(mock_session):
    with pytest.raises(ValidationError):
        await SkillService(mock_session).find_users_offering("  ", exclude_user_id=uuid.uuid4())
