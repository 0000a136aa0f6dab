"""Unit tests for the token and session stores."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from farmlink.auth import ROLE_KEY, TOKEN_KEY, USER_KEY, TokenStore
from farmlink.models.enums import Role, TokenStatus
from farmlink.models.user import User

pytestmark = pytest.mark.unit


class TestTokenStore:
    """Token validity is decided from the ``exp`` claim alone."""

    def test_missing_token(self, token_store):
        assert token_store.get_token() is None
        assert token_store.check_expiry() is TokenStatus.MISSING
        assert token_store.is_valid() is False

    def test_valid_token(self, token_store, make_token):
        token_store.set_token(make_token(expires_in=600))
        assert token_store.check_expiry() is TokenStatus.VALID
        assert token_store.is_valid() is True

    def test_expired_token(self, token_store, make_token):
        token_store.set_token(make_token(expires_in=-60))
        assert token_store.check_expiry() is TokenStatus.EXPIRED
        assert token_store.is_valid() is False

    @pytest.mark.parametrize(
        "raw",
        ["not-a-jwt", "a.b.c", "", "eyJhbGciOiJIUzI1NiJ9.e30.sig"],
    )
    def test_malformed_tokens_never_raise(self, token_store, raw):
        token_store.set_token(raw)
        assert token_store.is_valid() is False
        assert token_store.decode_expiry() is None

    def test_token_without_exp_is_malformed(self, token_store):
        token_store.set_token(jwt.encode({"sub": "x"}, "k" * 32, algorithm="HS256"))
        assert token_store.check_expiry() is TokenStatus.MALFORMED

    def test_non_numeric_exp_is_malformed(self, token_store):
        token = jwt.encode({"exp": "tomorrow"}, "k" * 32, algorithm="HS256")
        token_store.set_token(token)
        assert token_store.check_expiry() is TokenStatus.MALFORMED

    def test_signature_is_not_verified(self, token_store):
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        token_store.set_token(jwt.encode({"exp": exp}, "some-other-secret-" * 3, algorithm="HS256"))
        assert token_store.is_valid() is True

    def test_expiry_boundary_uses_injected_clock(self, storage, logger):
        exp = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        token = jwt.encode({"exp": int(exp.timestamp())}, "k" * 32, algorithm="HS256")

        before = TokenStore(storage, logger, clock=lambda: exp - timedelta(seconds=1))
        at = TokenStore(storage, logger, clock=lambda: exp)
        before.set_token(token)

        assert before.check_expiry() is TokenStatus.VALID
        assert at.check_expiry() is TokenStatus.EXPIRED
        assert before.decode_expiry() == exp

    def test_check_expiry_is_pure(self, token_store, storage, make_token):
        token = make_token(expires_in=-60)
        token_store.set_token(token)
        token_store.check_expiry()
        assert storage.get_item(TOKEN_KEY) == token


class TestSessionStore:
    """User record and active role persistence."""

    def test_user_round_trip(self, session_store, user_payload):
        user = User.model_validate(user_payload)
        session_store.set_user(user)

        restored = session_store.get_user()
        assert restored == user
        assert restored.roles == [Role.FARMER, Role.BUYER]
        assert restored.farm_name == "Mensah Acres"

    def test_missing_user(self, session_store):
        assert session_store.get_user() is None

    def test_corrupt_user_reads_as_none(self, session_store, storage):
        storage.set_item(USER_KEY, "{not json")
        assert session_store.get_user() is None

    def test_user_without_roles_reads_as_none(self, session_store, storage):
        storage.set_item(USER_KEY, '{"id": "1", "full_name": "X", "phone_number": "1", "roles": []}')
        assert session_store.get_user() is None

    def test_active_role(self, session_store):
        assert session_store.get_active_role() is None
        session_store.set_active_role(Role.OFFICER)
        assert session_store.get_active_role() is Role.OFFICER

    def test_unknown_role_reads_as_none(self, session_store, storage):
        storage.set_item(ROLE_KEY, "admin")
        assert session_store.get_active_role() is None

    def test_clear_removes_all_three_keys(self, session_store, token_store, storage, user_payload, make_token):
        token_store.set_token(make_token())
        session_store.set_user(User.model_validate(user_payload))
        session_store.set_active_role(Role.FARMER)
        storage.set_item("unrelated", "kept")

        session_store.clear()

        assert storage.get_item(TOKEN_KEY) is None
        assert storage.get_item(USER_KEY) is None
        assert storage.get_item(ROLE_KEY) is None
        assert storage.keys() == ["unrelated"]


class TestUserModel:
    def test_duplicate_roles_dropped_in_order(self, user_payload):
        user_payload["roles"] = ["buyer", "farmer", "buyer"]
        assert User.model_validate(user_payload).roles == [Role.BUYER, Role.FARMER]

    def test_empty_roles_rejected(self, user_payload):
        user_payload["roles"] = []
        with pytest.raises(ValueError):
            User.model_validate(user_payload)

    def test_has_role_accepts_strings(self, user_payload):
        user = User.model_validate(user_payload)
        assert user.has_role("farmer")
        assert user.has_role(Role.BUYER)
        assert not user.has_role(Role.OFFICER)
