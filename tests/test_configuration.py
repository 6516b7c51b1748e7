"""
Tests for settings loading.
"""

import pytest

from goodflag_proxy.configuration import load_settings
from goodflag_proxy.errors import ConfigurationError


@pytest.fixture
def goodflag_env(monkeypatch):
    monkeypatch.setenv("GOODFLAG_BASE_URL", "https://goodflag.test/api")
    monkeypatch.setenv("GOODFLAG_API_KEY", "key")
    monkeypatch.setenv("GOODFLAG_USER_ID", "usr_1")
    monkeypatch.setenv("GOODFLAG_SIGNATURE_PROFILE_ID", "sip_1")
    for name in [
        "GOODFLAG_CONSENT_PAGE_ID",
        "GOODFLAG_DEFAULT_LOCALE",
        "SIGNATURE_FIELD_PAGE",
        "SIGNATURE_FIELD_X",
        "SIGNATURE_FIELD_Y",
        "SIGNATURE_FIELD_WIDTH",
        "SIGNATURE_FIELD_HEIGHT",
        "PORT",
        "FRONTEND_ORIGIN",
        "JOB_TTL_SECONDS",
        "REFRESH_FAILURE_LIMIT",
        "GOODFLAG_PROXY_CONFIG",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadSettings:
    def test_defaults(self, goodflag_env):
        settings = load_settings()

        assert settings.goodflag_base_url == "https://goodflag.test/api"
        assert settings.goodflag_consent_page_id is None
        assert settings.default_locale == "en"
        assert settings.signature_field.page == -1
        assert settings.signature_field.x == 390
        assert settings.signature_field.y == 710
        assert settings.signature_field.width == 150
        assert settings.signature_field.height == 80
        assert settings.port == 8000
        assert settings.frontend_origin == "*"
        assert settings.job_ttl_seconds == 3600
        assert settings.refresh_failure_limit == 20

    def test_environment_overrides(self, goodflag_env):
        goodflag_env.setenv("SIGNATURE_FIELD_PAGE", "3")
        goodflag_env.setenv("PORT", "9001")
        goodflag_env.setenv("FRONTEND_ORIGIN", "http://localhost:5173")
        goodflag_env.setenv("GOODFLAG_CONSENT_PAGE_ID", "cop_1")

        settings = load_settings()

        assert settings.signature_field.page == 3
        assert settings.port == 9001
        assert settings.frontend_origin == "http://localhost:5173"
        assert settings.goodflag_consent_page_id == "cop_1"

    def test_blank_consent_page_is_none(self, goodflag_env):
        goodflag_env.setenv("GOODFLAG_CONSENT_PAGE_ID", "")
        assert load_settings().goodflag_consent_page_id is None

    def test_explicit_overrides_win(self, goodflag_env):
        settings = load_settings(overrides={"job_ttl_seconds": 60, "signature_field": {"width": 200}})
        assert settings.job_ttl_seconds == 60
        assert settings.signature_field.width == 200
        assert settings.signature_field.height == 80

    def test_yaml_file_is_merged(self, goodflag_env, tmp_path):
        config_file = tmp_path / "proxy.yaml"
        config_file.write_text("default_locale: fr\nsignature_field:\n  x: 12\n", encoding="utf-8")
        goodflag_env.setenv("GOODFLAG_PROXY_CONFIG", str(config_file))

        settings = load_settings()

        assert settings.default_locale == "fr"
        assert settings.signature_field.x == 12

    def test_unknown_yaml_key_is_rejected(self, goodflag_env, tmp_path):
        config_file = tmp_path / "proxy.yaml"
        config_file.write_text("no_such_setting: 1\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_settings(config_path=config_file)

    def test_missing_config_file_is_rejected(self, goodflag_env, tmp_path):
        with pytest.raises(ConfigurationError, match="Config file not found"):
            load_settings(config_path=tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "name",
        ["GOODFLAG_BASE_URL", "GOODFLAG_API_KEY", "GOODFLAG_USER_ID", "GOODFLAG_SIGNATURE_PROFILE_ID"],
    )
    def test_missing_required_variable(self, goodflag_env, name):
        goodflag_env.delenv(name)

        with pytest.raises(ConfigurationError, match=name):
            load_settings()

    def test_invalid_number_is_rejected(self, goodflag_env):
        goodflag_env.setenv("PORT", "not-a-port")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_settings()
