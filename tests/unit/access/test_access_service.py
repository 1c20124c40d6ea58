"""Tests for the authorization gate."""

import pytest

from uidkeeper.errors import AccessDeniedError, AuthenticationError


@pytest.fixture
def access(core):
    return core.services.access


@pytest.fixture
async def user_token(core):
    user = await core.services.user.create_user("alice", "secret")
    return core.services.session.create_session(user).auth_token


@pytest.fixture
def admin_token(core):
    return core.services.session.create_session(core.services.user.get_user("admin")).auth_token


class TestEnsureAuthenticated:
    @pytest.mark.parametrize("token", [None, "", "bogus"])
    async def test_rejects_missing_or_unknown_token(self, access, token):
        with pytest.raises(AuthenticationError):
            access.ensure_authenticated(token)

    async def test_returns_session(self, access, user_token):
        assert access.ensure_authenticated(user_token).username == "alice"

    async def test_rejects_revoked_token(self, core, access, user_token):
        core.services.session.invalidate_session(user_token)

        with pytest.raises(AuthenticationError):
            access.ensure_authenticated(user_token)


class TestEnsureAdmin:
    async def test_admin_passes(self, access, admin_token):
        assert access.ensure_admin(admin_token).username == "admin"

    async def test_user_role_is_denied(self, access, user_token):
        with pytest.raises(AccessDeniedError, match="Admin privileges required"):
            access.ensure_admin(user_token)

    async def test_unauthenticated_is_not_a_permission_error(self, access):
        with pytest.raises(AuthenticationError):
            access.ensure_admin("bogus")
