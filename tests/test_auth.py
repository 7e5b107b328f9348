"""
Authentication Tests

Tests for session JWT validation, nm_live_ API keys, user sync and the
get_current_user dependency as seen through the API.
"""

import time
from datetime import datetime, timedelta
from unittest.mock import patch
from uuid import uuid4

import jwt
import pytest

from src.auth.config import API_KEY_PREFIX, AuthConfig
from src.auth.dependencies import EXPIRED_MESSAGE, UNAUTHORIZED_MESSAGE
from src.auth.jwt import JWTError, create_token, extract_user_id, verify_token
from src.auth.keys import create_api_key, generate_key, hash_key, is_api_key, lookup_api_key, revoke_api_key
from src.auth.models import ApiKey, User
from src.auth.sync import parse_user_id, sync_user, sync_user_from_token


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def use_auth_config(auth_config):
    """Route every get_auth_config() lookup to the test config."""
    with patch("src.auth.jwt.get_auth_config", return_value=auth_config), \
            patch("src.auth.dependencies.get_auth_config", return_value=auth_config):
        yield auth_config


@pytest.fixture
def create_test_token(auth_config):
    """Factory to create test JWT tokens."""
    def _create(payload: dict, secret: str = None) -> str:
        return jwt.encode(
            payload,
            secret or auth_config.jwt_secret,
            algorithm=auth_config.jwt_algorithm,
        )
    return _create


@pytest.fixture
def valid_payload():
    now = int(time.time())
    return {
        "userId": str(uuid4()),
        "email": "member@test.com",
        "name": "Member",
        "iat": now,
        "exp": now + 3600,
    }


# =============================================================================
# JWT VALIDATION TESTS
# =============================================================================

class TestJWTValidation:
    """Tests for verify_token()."""

    def test_valid_token(self, use_auth_config, valid_payload, create_test_token):
        payload = verify_token(create_test_token(valid_payload))
        assert payload["userId"] == valid_payload["userId"]
        assert payload["email"] == "member@test.com"

    def test_expired_token(self, use_auth_config, valid_payload, create_test_token):
        token = create_test_token({**valid_payload, "exp": int(time.time()) - 10})

        with pytest.raises(JWTError) as exc_info:
            verify_token(token)

        assert exc_info.value.expired is True
        assert "expired" in str(exc_info.value)

    def test_invalid_signature(self, use_auth_config, valid_payload, create_test_token):
        token = create_test_token(valid_payload, secret="wrong-secret")

        with pytest.raises(JWTError) as exc_info:
            verify_token(token)

        assert exc_info.value.expired is False
        assert "signature" in str(exc_info.value)

    def test_garbage_token(self, use_auth_config):
        with pytest.raises(JWTError, match="decode"):
            verify_token("not.a.jwt")

    def test_missing_user_id(self, use_auth_config, valid_payload, create_test_token):
        del valid_payload["userId"]
        with pytest.raises(JWTError, match="userId"):
            verify_token(create_test_token(valid_payload))

    def test_sub_claim_fallback(self, use_auth_config, valid_payload, create_test_token):
        user_id = valid_payload.pop("userId")
        payload = verify_token(create_test_token({**valid_payload, "sub": user_id}))
        assert extract_user_id(payload) == user_id

    def test_no_jwt_secret_configured(self, valid_payload, create_test_token):
        with patch("src.auth.jwt.get_auth_config", return_value=AuthConfig(jwt_secret="")):
            with pytest.raises(JWTError, match="JWT_SECRET"):
                verify_token(create_test_token(valid_payload))

    def test_create_token_round_trip(self, use_auth_config):
        user_id = str(uuid4())
        payload = verify_token(create_token(user_id, email="a@test.com", expires_in=60))

        assert payload["userId"] == user_id
        assert payload["exp"] - payload["iat"] == 60


# =============================================================================
# API KEY TESTS
# =============================================================================

class TestApiKeys:
    """Tests for nm_live_ key management."""

    def test_generate_key_format(self):
        key = generate_key()
        assert key.startswith(API_KEY_PREFIX)
        assert len(key) == len(API_KEY_PREFIX) + 48
        assert is_api_key(key)
        assert not is_api_key("eyJhbGciOi...")
        assert not is_api_key("")

    def test_create_stores_hash_only(self, db_session, user):
        raw_key, api_key = create_api_key(db_session, user.id, "CI key")

        assert api_key.key_hash == hash_key(raw_key)
        assert api_key.key_prefix == raw_key[:12]
        assert raw_key not in (api_key.key_hash, api_key.key_prefix)
        assert api_key.expires_at is None

    def test_lookup_bumps_last_used(self, db_session, user):
        raw_key, api_key = create_api_key(db_session, user.id, "CI key")
        assert api_key.last_used_at is None

        found = lookup_api_key(db_session, raw_key)

        assert found.id == api_key.id
        assert found.last_used_at is not None
        assert found.user.id == user.id

    def test_lookup_unknown_or_malformed(self, db_session):
        assert lookup_api_key(db_session, generate_key()) is None
        assert lookup_api_key(db_session, "sk_live_abc") is None

    def test_revoked_key_rejected(self, db_session, user):
        raw_key, api_key = create_api_key(db_session, user.id, "CI key")

        assert revoke_api_key(db_session, api_key.id) is True
        assert lookup_api_key(db_session, raw_key) is None
        assert revoke_api_key(db_session, uuid4()) is False

    def test_expired_key_rejected(self, db_session, user):
        raw_key, api_key = create_api_key(db_session, user.id, "Short", expires_days=1)
        api_key.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert api_key.is_expired()
        assert lookup_api_key(db_session, raw_key) is None


# =============================================================================
# USER SYNC TESTS
# =============================================================================

class TestUserSync:
    """Tests for local user sync."""

    def test_sync_creates_new_user(self, db_session):
        user_id = uuid4()
        user = sync_user(db_session, user_id, email="new@test.com", full_name="New")

        assert user.id == user_id
        assert user.is_active is True
        assert db_session.get(User, user_id).email == "new@test.com"

    def test_sync_updates_existing_user(self, db_session, user):
        synced = sync_user(db_session, user.id, email="changed@test.com")

        assert synced.id == user.id
        assert synced.email == "changed@test.com"
        assert db_session.query(User).count() == 1

    def test_sync_without_email_keeps_existing(self, db_session, user):
        assert sync_user(db_session, user.id).email == "owner@test.com"

    def test_sync_from_token(self, db_session, valid_payload):
        user = sync_user_from_token(db_session, valid_payload)
        assert str(user.id) == valid_payload["userId"]
        assert user.full_name == "Member"

    def test_sync_from_token_rejects_non_uuid(self, db_session):
        assert sync_user_from_token(db_session, {"userId": "12345"}) is None

    @pytest.mark.parametrize("raw,valid", [(str(uuid4()), True), ("abc", False), (None, False)])
    def test_parse_user_id(self, raw, valid):
        assert (parse_user_id(raw) is not None) is valid


# =============================================================================
# DEPENDENCY TESTS
# =============================================================================

class TestGetCurrentUser:
    """Tests for get_current_user through a protected endpoint."""

    ENDPOINT = "/api/workflow-configs"

    def test_missing_credentials(self, client, use_auth_config):
        response = client.get(self.ENDPOINT)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": UNAUTHORIZED_MESSAGE}

    def test_valid_jwt_syncs_user(self, client, db_session, use_auth_config, valid_payload, create_test_token):
        token = create_test_token(valid_payload)

        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert db_session.get(User, parse_user_id(valid_payload["userId"])) is not None

    def test_expired_jwt(self, client, use_auth_config, valid_payload, create_test_token):
        token = create_test_token({**valid_payload, "exp": int(time.time()) - 10})

        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": EXPIRED_MESSAGE, "errorType": "expired"}

    def test_bad_jwt(self, client, use_auth_config):
        response = client.get(self.ENDPOINT, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert "errorType" not in response.json()

    def test_jwt_with_non_uuid_user(self, client, use_auth_config, valid_payload, create_test_token):
        token = create_test_token({**valid_payload, "userId": "42"})
        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_api_key(self, client, db_session, use_auth_config, user):
        raw_key, _ = create_api_key(db_session, user.id, "CI key")

        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {raw_key}"})

        assert response.status_code == 200

    def test_unknown_api_key(self, client, use_auth_config):
        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {generate_key()}"})
        assert response.status_code == 401

    def test_inactive_user(self, client, make_user, db_session, use_auth_config):
        inactive = make_user(is_active=False)
        raw_key, _ = create_api_key(db_session, inactive.id, "Old key")

        response = client.get(self.ENDPOINT, headers={"Authorization": f"Bearer {raw_key}"})

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden", "message": "User account is disabled"}

    def test_auth_disabled_uses_dev_user(self, client, db_session):
        config = AuthConfig(jwt_secret="", auth_enabled=False)
        with patch("src.auth.dependencies.get_auth_config", return_value=config):
            response = client.get(self.ENDPOINT)

        assert response.status_code == 200
        dev_user = db_session.get(User, parse_user_id(config.dev_user_id))
        assert dev_user.email == config.dev_user_email


class TestApiKeyModel:

    def test_is_valid(self):
        key = ApiKey(is_active=True, expires_at=datetime.utcnow() + timedelta(days=1))
        assert key.is_valid()

    def test_inactive_is_invalid(self):
        assert not ApiKey(is_active=False).is_valid()

    def test_user_repr(self):
        assert repr(User(email="a@test.com")) == "<User a@test.com>"
