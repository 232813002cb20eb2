"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from src.config.settings import ConfigError, Settings
from src.main import app, lifespan, settings


class TestSigningSecrets:
    def test_distinct_secrets_pass(self):
        Settings(jwt_access_secret="a" * 32, jwt_refresh_secret="b" * 32).validate_signing_secrets()

    def test_missing_access_secret(self):
        config = Settings(jwt_access_secret=None, jwt_refresh_secret="b" * 32)
        with pytest.raises(ConfigError, match="JWT_ACCESS_SECRET"):
            config.validate_signing_secrets()

    def test_missing_refresh_secret(self):
        config = Settings(jwt_access_secret="a" * 32, jwt_refresh_secret="")
        with pytest.raises(ConfigError, match="JWT_REFRESH_SECRET"):
            config.validate_signing_secrets()

    def test_shared_secret_rejected(self):
        config = Settings(jwt_access_secret="same", jwt_refresh_secret="same")
        with pytest.raises(ConfigError, match="must differ"):
            config.validate_signing_secrets()

    async def test_startup_aborts_without_secrets(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_refresh_secret", None)
        with pytest.raises(ConfigError):
            async with lifespan(app):
                pass


class TestEnvironment:
    def test_cookie_secure_only_in_production(self):
        assert Settings(environment="production").cookie_secure is True
        assert Settings(environment="staging").cookie_secure is False
        assert Settings(environment="development").cookie_secure is False

    def test_environment_is_normalized(self):
        assert Settings(environment="PRODUCTION").environment == "production"

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_cors_origins_parsed(self):
        config = Settings(cors_allow_origins="https://app.example.com/, https://admin.example.com")
        assert config.cors_origins == ["https://app.example.com", "https://admin.example.com"]

    def test_default_limits(self):
        config = Settings()
        assert config.access_token_expire_minutes == 15
        assert config.refresh_token_expire_days == 7
        assert config.max_sessions_per_identity == 5
