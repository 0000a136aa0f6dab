"""Tests for the authentication gateway."""

import json

import httpx
import pytest

from farmlink.auth import ROLE_KEY, TOKEN_KEY, USER_KEY
from farmlink.errors import Forbidden, ServerError, SessionStateError, UnknownError, ValidationError
from farmlink.models.enums import Role, TokenStatus
from farmlink.models.user import User
from farmlink.ui.paths import LOGIN_PATH


def _backend(routes):
    """Mock backend answering ``(method, path)`` pairs; records every request."""
    calls = []

    def handler(request):
        calls.append(request)
        key = (request.method, request.url.path.removeprefix("/api"))
        if key not in routes:
            return httpx.Response(404, json={"message": f"no route {key}"})
        status, body = routes[key]
        return httpx.Response(status, json=body)

    return handler, calls


class TestRegister:
    """Account creation."""

    async def test_end_to_end_with_fixture_backend(self, fixture_auth):
        auth = await fixture_auth.register({
            "full_name": "A",
            "phone_number": "+233500000000",
            "password": "Secret1!",
            "roles": ["buyer"],
        })

        assert auth.user.roles == [Role.BUYER]
        assert fixture_auth.get_current_user().roles == [Role.BUYER]
        assert fixture_auth.check_expiry() is TokenStatus.VALID
        assert fixture_auth.is_authenticated() is True
        assert fixture_auth.get_current_role() == "buyer"

    async def test_password_never_stored(self, fixture_auth, storage):
        await fixture_auth.register({
            "full_name": "A",
            "phone_number": "+233500000000",
            "password": "Secret1!",
            "roles": ["farmer"],
        })
        assert "Secret1!" not in storage.get_item(USER_KEY)

    @pytest.mark.parametrize("roles", [None, []])
    async def test_roles_required_without_network(self, make_auth, roles):
        handler, calls = _backend({})
        service = make_auth(handler)
        info = {"full_name": "A", "phone_number": "+233500000000", "password": "Secret1!"}
        if roles is not None:
            info["roles"] = roles

        with pytest.raises(ValidationError) as excinfo:
            await service.register(info)

        assert "roles" in excinfo.value.errors
        assert calls == []

    async def test_backend_validation_error(self, make_auth, token_store):
        handler, _ = _backend({
            ("POST", "/auth/register"): (422, {"errors": {"phone_number": ["Already registered."]}}),
        })
        with pytest.raises(ValidationError) as excinfo:
            await make_auth(handler).register({"roles": ["buyer"], "phone_number": "1"})
        assert excinfo.value.errors == {"phone_number": ["Already registered."]}
        assert token_store.get_token() is None


class TestLogin:
    """Login stores the session and picks the default role."""

    async def test_login_defaults_to_first_role(self, make_auth, make_token, user_payload, storage):
        token = make_token()
        handler, calls = _backend({("POST", "/auth/login"): (200, {"token": token, "user": user_payload})})
        service = make_auth(handler)

        auth = await service.login({"phone_number": "+233241112222", "password": "pw"})

        assert json.loads(calls[0].content) == {"phone_number": "+233241112222", "password": "pw"}
        assert service.get_current_user() == auth.user
        assert service.get_current_role() is Role.FARMER
        assert storage.get_item(TOKEN_KEY) == token
        assert storage.get_item(ROLE_KEY) == "farmer"
        assert service.is_authenticated() is True

    async def test_login_keeps_held_persisted_role(self, make_auth, make_token, user_payload, session_store):
        session_store.set_active_role(Role.BUYER)
        handler, _ = _backend({("POST", "/auth/login"): (200, {"token": make_token(), "user": user_payload})})
        service = make_auth(handler)

        await service.login({"phone_number": "x", "password": "y"})

        assert service.get_current_role() is Role.BUYER

    async def test_login_resets_role_not_held(self, make_auth, make_token, user_payload, session_store):
        session_store.set_active_role(Role.OFFICER)
        handler, _ = _backend({("POST", "/auth/login"): (200, {"token": make_token(), "user": user_payload})})
        service = make_auth(handler)

        await service.login({"phone_number": "x", "password": "y"})

        assert service.get_current_role() is Role.FARMER

    async def test_malformed_login_reply(self, make_auth, token_store):
        handler, _ = _backend({("POST", "/auth/login"): (200, {"token": "t"})})
        with pytest.raises(UnknownError):
            await make_auth(handler).login({"phone_number": "x", "password": "y"})
        assert token_store.get_token() is None

    async def test_fixture_login_matches_phone(self, fixture_auth):
        auth = await fixture_auth.login({"phone_number": "+233509876543", "password": "any"})
        assert auth.user.id == "mock-officer-1"
        assert fixture_auth.get_current_role() is Role.OFFICER
        assert fixture_auth.is_authenticated() is True


@pytest.fixture
def signed_in_service(make_auth, make_token, user_payload):
    """Factory: an ``AuthService`` logged in as the two-role farmer."""
    async def _make(extra_routes=None):
        routes = {("POST", "/auth/login"): (200, {"token": make_token(), "user": user_payload})}
        routes.update(extra_routes or {})
        handler, calls = _backend(routes)
        service = make_auth(handler)
        await service.login({"phone_number": "x", "password": "y"})
        calls.clear()
        return service, calls
    return _make


class TestLogout:
    async def test_logout_clears_and_redirects(self, signed_in_service, storage, navigator):
        service, calls = await signed_in_service()

        service.logout()

        for key in (TOKEN_KEY, USER_KEY, ROLE_KEY):
            assert storage.get_item(key) is None
        assert navigator.current_path == LOGIN_PATH
        assert service.is_authenticated() is False
        assert calls == []


class TestRoles:
    """Role switching and acquisition."""

    async def test_switch_role(self, signed_in_service, user_payload):
        service, calls = await signed_in_service({
            ("POST", "/auth/switch-role"): (200, {"success": True, "message": "Switched"}),
        })

        ack = await service.switch_role(Role.BUYER)

        assert ack.success is True
        assert json.loads(calls[0].content) == {"role": "buyer"}
        assert service.get_current_role() is Role.BUYER
        assert service.get_current_user().roles == [Role.FARMER, Role.BUYER]
        assert len(calls) == 1

    async def test_switch_role_replaces_reissued_token(self, signed_in_service, make_token, token_store):
        fresh = make_token(expires_in=7200, role="buyer")
        service, _ = await signed_in_service({
            ("POST", "/auth/switch-role"): (200, {"success": True, "token": fresh}),
        })

        await service.switch_role("buyer")

        assert token_store.get_token() == fresh

    async def test_switch_to_role_not_held(self, signed_in_service):
        service, calls = await signed_in_service()

        with pytest.raises(SessionStateError):
            await service.switch_role(Role.OFFICER)

        assert calls == []
        assert service.get_current_role() is Role.FARMER

    async def test_switch_to_unknown_role(self, signed_in_service):
        service, _ = await signed_in_service()
        with pytest.raises(SessionStateError):
            await service.switch_role("admin")

    async def test_switch_role_signed_out(self, make_auth):
        handler, calls = _backend({})
        with pytest.raises(SessionStateError):
            await make_auth(handler).switch_role(Role.BUYER)
        assert calls == []

    async def test_switch_role_rejected_by_backend(self, signed_in_service):
        service, _ = await signed_in_service({
            ("POST", "/auth/switch-role"): (403, {"message": "Role suspended"}),
        })
        with pytest.raises(Forbidden):
            await service.switch_role(Role.BUYER)
        assert service.get_current_role() is Role.FARMER

    async def test_add_role_replaces_user(self, signed_in_service, user_payload):
        upgraded = {**user_payload, "roles": ["farmer", "buyer", "officer"], "territory": "Ashanti"}
        service, calls = await signed_in_service({("POST", "/auth/add-role"): (200, upgraded)})

        user = await service.add_role(Role.OFFICER, {"territory": "Ashanti"})

        assert json.loads(calls[0].content) == {"role": "officer", "territory": "Ashanti"}
        assert user.roles == [Role.FARMER, Role.BUYER, Role.OFFICER]
        assert service.get_current_user().territory == "Ashanti"
        assert service.get_current_role() is Role.FARMER


class TestProfile:
    async def test_update_profile_overwrites_with_server_copy(self, signed_in_service, user_payload):
        server_copy = {**user_payload, "full_name": "Ama K. Mensah", "location": "Tamale"}
        service, calls = await signed_in_service({("PUT", "/auth/profile"): (200, server_copy)})

        user = await service.update_profile({"full_name": "Ama K. Mensah"})

        assert calls[0].method == "PUT"
        assert user.full_name == "Ama K. Mensah"
        assert service.get_current_user().location == "Tamale"

    async def test_failed_update_leaves_user(self, signed_in_service):
        service, _ = await signed_in_service({("PUT", "/auth/profile"): (500, {})})
        before = service.get_current_user()
        with pytest.raises(ServerError):
            await service.update_profile({"full_name": "New"})
        assert service.get_current_user() == before

    async def test_get_profile_stores_user(self, signed_in_service, user_payload):
        fresh = {**user_payload, "is_verified": True}
        service, _ = await signed_in_service({("GET", "/auth/me"): (200, fresh)})

        user = await service.get_profile()

        assert user.is_verified is True
        assert service.get_current_user().is_verified is True

    async def test_upload_profile_image_records_url(self, signed_in_service):
        service, _ = await signed_in_service({
            ("POST", "/auth/profile-image"): (200, {"success": True, "image_url": "https://cdn/me.png"}),
        })

        result = await service.upload_profile_image(("me.png", b"img", "image/png"))

        assert result.image_url == "https://cdn/me.png"
        assert service.get_current_user().profile_image_url == "https://cdn/me.png"


class TestAccountRecovery:
    """Phone verification and password flows acknowledge."""

    async def test_flows_send_expected_bodies(self, make_auth):
        ok = (200, {"success": True, "message": "OK"})
        handler, calls = _backend({
            ("POST", "/auth/verify-phone"): ok,
            ("POST", "/auth/resend-otp"): ok,
            ("POST", "/auth/forgot-password"): ok,
            ("POST", "/auth/reset-password"): ok,
            ("POST", "/auth/change-password"): ok,
        })
        service = make_auth(handler)

        await service.verify_phone("+233500000000", "123456")
        await service.resend_otp("+233500000000")
        await service.request_password_reset("ama@example.com")
        await service.reset_password("reset-token", "N3w!pass")
        ack = await service.change_password("old", "N3w!pass")

        assert ack.message == "OK"
        assert [json.loads(c.content) for c in calls] == [
            {"phone_number": "+233500000000", "otp": "123456"},
            {"phone_number": "+233500000000"},
            {"identifier": "ama@example.com"},
            {"token": "reset-token", "password": "N3w!pass"},
            {"current_password": "old", "new_password": "N3w!pass"},
        ]

    async def test_fixture_backend_acknowledges(self, fixture_auth):
        ack = await fixture_auth.request_password_reset("+233500000000")
        assert ack.success is True


class TestSessionQueries:
    """Pure queries versus the explicit reaping action."""

    def test_is_authenticated_is_pure(self, make_auth, token_store, session_store, user_payload, make_token, storage):
        handler, _ = _backend({})
        service = make_auth(handler)
        expired = make_token(expires_in=-10)
        token_store.set_token(expired)
        session_store.set_user(User.model_validate(user_payload))

        assert service.is_authenticated() is False
        assert service.check_expiry() is TokenStatus.EXPIRED
        assert storage.get_item(TOKEN_KEY) == expired
        assert storage.get_item(USER_KEY) is not None

    def test_reap_expired_session(self, make_auth, token_store, session_store, user_payload, make_token, navigator):
        handler, _ = _backend({})
        service = make_auth(handler)
        token_store.set_token(make_token(expires_in=-10))
        session_store.set_user(User.model_validate(user_payload))

        assert service.reap_session_if_expired() is True
        assert token_store.get_token() is None
        assert session_store.get_user() is None
        assert navigator.current_path == LOGIN_PATH

    def test_reap_leaves_valid_and_malformed_alone(self, make_auth, token_store, make_token, navigator):
        handler, _ = _backend({})
        service = make_auth(handler)

        token_store.set_token(make_token())
        assert service.reap_session_if_expired() is False

        token_store.set_token("garbage")
        assert service.reap_session_if_expired() is False
        assert token_store.get_token() == "garbage"
        assert navigator.history == ["/"]

    def test_valid_token_without_user(self, make_auth, token_store, make_token):
        handler, _ = _backend({})
        service = make_auth(handler)
        token_store.set_token(make_token())
        assert service.is_authenticated() is False

    def test_current_role_falls_back_to_first_role(self, make_auth, session_store, user_payload):
        handler, _ = _backend({})
        service = make_auth(handler)
        assert service.get_current_role() is None
        session_store.set_user(User.model_validate(user_payload))
        assert service.get_current_role() is Role.FARMER
