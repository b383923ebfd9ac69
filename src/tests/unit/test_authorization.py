"""Tests for the authorization guard."""

import pytest

from cafeauth.core.errors import ForbiddenError, NotAuthenticatedError
from cafeauth.services import SessionService, require_role


@pytest.mark.asyncio
async def test_valid_session_without_role_requirement(db_session, users, staff):
    created = await SessionService.create(db_session, staff["cashier"].id)

    session, user = await require_role(db_session, users, created.token)

    assert session.token == created.token
    assert user.id == staff["cashier"].id


@pytest.mark.asyncio
async def test_invalid_session_is_not_authenticated(db_session, users, staff):
    with pytest.raises(NotAuthenticatedError):
        await require_role(db_session, users, "missing", "admin")
    with pytest.raises(NotAuthenticatedError):
        await require_role(db_session, users, None)


@pytest.mark.asyncio
async def test_role_mismatch_is_forbidden(db_session, users, staff):
    created = await SessionService.create(db_session, staff["cashier"].id)

    with pytest.raises(ForbiddenError):
        await require_role(db_session, users, created.token, "admin")


@pytest.mark.asyncio
async def test_role_match_is_case_insensitive(db_session, users, staff):
    created = await SessionService.create(db_session, staff["admin"].id)

    _, user = await require_role(db_session, users, created.token, "ADMIN")
    assert user.role_name == "admin"


@pytest.mark.asyncio
async def test_any_of_several_roles(db_session, users, staff):
    cashier = await SessionService.create(db_session, staff["cashier"].id)
    admin = await SessionService.create(db_session, staff["admin"].id)

    await require_role(db_session, users, cashier.token, ["manager", "cashier"])
    await require_role(db_session, users, admin.token, ("admin", "owner"))
    with pytest.raises(ForbiddenError):
        await require_role(db_session, users, cashier.token, {"admin", "owner"})


@pytest.mark.asyncio
async def test_destroyed_session_is_not_authenticated(db_session, users, staff):
    created = await SessionService.create(db_session, staff["admin"].id)
    await SessionService.destroy(db_session, created.token)

    with pytest.raises(NotAuthenticatedError):
        await require_role(db_session, users, created.token, "admin")
