"""Tests for application settings."""

import pytest

from memberguard.core.config import Settings, get_settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("CONFLICT_RETRIES", "SESSION_CHECK_TIMEOUT_SECONDS", "AUDIT_POLICY_PATH"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.algorithm == "HS256"
        assert settings.conflict_retries == 1
        assert settings.session_check_timeout_seconds == 2.0
        assert settings.audit_policy_path is None
        assert settings.log_to_file is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_RETRIES", "0")
        monkeypatch.setenv("SESSION_CHECK_TIMEOUT_SECONDS", "0.5")
        monkeypatch.setenv("AUDIT_POLICY_PATH", "/etc/memberguard/audit.yaml")
        settings = Settings(_env_file=None)
        assert settings.conflict_retries == 0
        assert settings.session_check_timeout_seconds == 0.5
        assert settings.audit_policy_path == "/etc/memberguard/audit.yaml"

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("SECRET_KEY=from-env-file\nRESOLVER_WORKERS=8\n")
        settings = Settings(_env_file=str(env_file))
        assert settings.secret_key == "from-env-file"
        assert settings.resolver_workers == 8

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_RETRIES", "many")
        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
