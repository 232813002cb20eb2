"""Tests for the credential codec: signing, verification and type isolation."""

import jwt
import pytest

from src.config.settings import ConfigError, Settings, settings
from src.features.auth.credentials import (
    AccessClaims,
    CredentialType,
    InvalidCredential,
    RefreshClaims,
    issue_access,
    issue_pair,
    issue_refresh,
    new_token_id,
    verify,
    verify_access,
    verify_refresh,
)


def make_settings(**overrides) -> Settings:
    values = {
        "jwt_access_secret": "access-secret-for-tests",
        "jwt_refresh_secret": "refresh-secret-for-tests",
    }
    values.update(overrides)
    return Settings(**values)


class TestIssueAndVerify:
    def test_access_round_trip_carries_claims(self):
        token = issue_access("user-1", "tenant-1", "admin")
        claims = verify_access(token)

        assert isinstance(claims, AccessClaims)
        assert claims.identity == "user-1"
        assert claims.tenant == "tenant-1"
        assert claims.role == "admin"
        assert claims.type is CredentialType.ACCESS

    def test_refresh_round_trip_carries_token_id(self):
        token_id = new_token_id()
        claims = verify_refresh(issue_refresh(token_id, "user-1"))

        assert isinstance(claims, RefreshClaims)
        assert claims.identity == "user-1"
        assert claims.token_id == token_id
        assert claims.type is CredentialType.REFRESH

    def test_access_expiry_matches_configured_lifetime(self):
        claims = verify_access(issue_access("user-1", "tenant-1", "viewer"))
        payload = jwt.decode(
            issue_access("user-1", "tenant-1", "viewer"),
            settings.jwt_access_secret,
            algorithms=[settings.jwt_algorithm],
        )
        assert payload["exp"] - payload["iat"] == settings.access_token_expire_minutes * 60
        assert claims.expires_at.tzinfo is not None

    def test_issue_pair_returns_both_credentials(self):
        pair = issue_pair("user-1", "tenant-1", "viewer", "tid-1")
        assert verify_access(pair.access).identity == "user-1"
        assert verify_refresh(pair.refresh).token_id == "tid-1"

    def test_token_ids_are_unique_and_opaque(self):
        ids = {new_token_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(token_id) == 80 for token_id in ids)


class TestTypeIsolation:
    def test_access_token_rejected_as_refresh(self):
        token = issue_access("user-1", "tenant-1", "viewer")
        with pytest.raises(InvalidCredential):
            verify_refresh(token)

    def test_refresh_token_rejected_as_access(self):
        token = issue_refresh("tid-1", "user-1")
        with pytest.raises(InvalidCredential):
            verify_access(token)

    def test_type_tag_checked_even_with_matching_secret(self):
        # Same secret for both types; only the tag can tell them apart
        config = make_settings(jwt_refresh_secret="access-secret-for-tests")
        token = issue_access("user-1", "tenant-1", "viewer", config)
        with pytest.raises(InvalidCredential, match="type"):
            verify(token, CredentialType.REFRESH, config)


class TestRejection:
    def test_missing_token(self):
        with pytest.raises(InvalidCredential):
            verify_access(None)

    def test_garbage_token(self):
        with pytest.raises(InvalidCredential):
            verify_access("not-a-jwt")

    def test_tampered_signature(self):
        token = issue_access("user-1", "tenant-1", "viewer")
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[:-4]}AAAA"
        with pytest.raises(InvalidCredential):
            verify_access(tampered)

    def test_signed_with_other_secret(self):
        other = make_settings(jwt_access_secret="some-other-secret")
        token = issue_access("user-1", "tenant-1", "viewer", other)
        with pytest.raises(InvalidCredential):
            verify_access(token)

    def test_expired_access_token(self):
        config = make_settings(access_token_expire_minutes=-1)
        token = issue_access("user-1", "tenant-1", "viewer", config)
        with pytest.raises(InvalidCredential):
            verify_access(token, config)

    def test_expired_refresh_token(self):
        config = make_settings(refresh_token_expire_days=-1)
        token = issue_refresh("tid-1", "user-1", config)
        with pytest.raises(InvalidCredential):
            verify_refresh(token, config)

    def test_refresh_payload_without_token_id(self):
        config = make_settings()
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh", "exp": 4102444800},
            config.jwt_refresh_secret,
            algorithm=config.jwt_algorithm,
        )
        with pytest.raises(InvalidCredential, match="payload"):
            verify_refresh(token, config)


class TestMissingSecrets:
    def test_issue_without_access_secret_raises_config_error(self):
        config = make_settings(jwt_access_secret=None)
        with pytest.raises(ConfigError):
            issue_access("user-1", "tenant-1", "viewer", config)

    def test_verify_without_refresh_secret_raises_config_error(self):
        config = make_settings(jwt_refresh_secret="")
        with pytest.raises(ConfigError):
            verify_refresh("anything", config)
