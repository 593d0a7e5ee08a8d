"""
Configuration Tests
===================

YAML loading and environment overrides.
"""

import pytest
from pydantic import ValidationError

from signstream.config import Settings, load_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every override variable from the environment."""
    for name in (
        "SIGNSTREAM_BASE_URL",
        "SIGNSTREAM_CATEGORY",
        "SIGNSTREAM_MODE",
        "SIGNSTREAM_MODEL",
        "SIGNSTREAM_KEEPALIVE_INTERVAL",
        "SIGNSTREAM_RECONNECT_DELAY",
        "SIGNSTREAM_RECONNECT_STRATEGY",
        "SIGNSTREAM_MAX_RECONNECT_ATTEMPTS",
        "SIGNSTREAM_CAMERA_INDEX",
        "SIGNSTREAM_API_PORT",
        "SIGNSTREAM_LOG_LEVEL",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "server:\n"
        "  base_url: https://signs.example.com\n"
        "connection:\n"
        "  keepalive_interval_seconds: 20\n"
        "practice:\n"
        "  mode: letters\n"
        "  model: ps_pro\n"
    )
    return str(path)


class TestDefaults:
    """Built-in defaults."""

    def test_default_timings(self):
        settings = Settings()

        assert settings.connection.keepalive_interval_seconds == 30.0
        assert settings.connection.reconnect_delay_seconds == 3.0
        assert settings.connection.max_reconnect_attempts == 0
        assert settings.practice.history_size == 8
        assert settings.practice.analyze_delay_seconds == 0.5

    def test_mode_defaults(self):
        settings = Settings()

        words = settings.mode_config("words")
        letters = settings.mode_config("letters")
        assert (words.path, words.default_model) == ("/practice/live-predict", "mini")
        assert (words.capture_interval_ms, words.crop_ratio, words.jpeg_quality) == (150, 1.0, 95)
        assert words.disconnect_after_result
        assert (letters.path, letters.default_model) == ("/api/v1/practice/psl-predict", "ps_mini")
        assert (letters.capture_interval_ms, letters.crop_ratio, letters.jpeg_quality) == (400, 0.6, 80)

    def test_model_variant_falls_back_to_mode_default(self):
        settings = Settings()

        assert settings.model_variant("words") == "mini"
        assert settings.model_variant("letters") == "ps_mini"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            Settings().mode_config("sentences")

    def test_reconnect_policy_from_section(self):
        settings = Settings.model_validate({
            "connection": {
                "reconnect_strategy": "exponential",
                "reconnect_delay_seconds": 2,
                "reconnect_max_delay_seconds": 20,
                "max_reconnect_attempts": 5,
            }
        })

        policy = settings.connection.reconnect_policy()

        assert policy.strategy == "exponential"
        assert policy.delay_for(4) == 16.0
        assert policy.delay_for(5) == 20.0
        assert not policy.allows(6)

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"connection": {"keepalive_interval_seconds": 0}})
        with pytest.raises(ValidationError):
            Settings.model_validate({"practice": {"mode": "sentences"}})


class TestLoadConfig:
    """load_config() precedence."""

    def test_yaml_values(self, clean_env, config_file):
        settings = load_config(config_file)

        assert settings.server.base_url == "https://signs.example.com"
        assert settings.connection.keepalive_interval_seconds == 20.0
        assert settings.practice.mode == "letters"
        assert settings.model_variant() == "ps_pro"

    def test_env_overrides_yaml(self, clean_env, config_file):
        clean_env.setenv("SIGNSTREAM_BASE_URL", "http://10.0.0.5:8000")
        clean_env.setenv("SIGNSTREAM_MODE", "words")
        clean_env.setenv("SIGNSTREAM_MODEL", "pro")
        clean_env.setenv("SIGNSTREAM_CATEGORY", "greetings")
        clean_env.setenv("SIGNSTREAM_KEEPALIVE_INTERVAL", "15")
        clean_env.setenv("SIGNSTREAM_MAX_RECONNECT_ATTEMPTS", "4")
        clean_env.setenv("SIGNSTREAM_LOG_LEVEL", "DEBUG")

        settings = load_config(config_file)

        assert settings.server.base_url == "http://10.0.0.5:8000"
        assert settings.server.category == "greetings"
        assert settings.practice.mode == "words"
        assert settings.model_variant() == "pro"
        assert settings.connection.keepalive_interval_seconds == 15.0
        assert settings.connection.max_reconnect_attempts == 4
        assert settings.logging.level == "DEBUG"

    def test_port_precedence(self, clean_env, config_file):
        clean_env.setenv("SIGNSTREAM_API_PORT", "9001")
        assert load_config(config_file).api.port == 9001

        clean_env.setenv("PORT", "8080")
        assert load_config(config_file).api.port == 8080

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings.server.base_url == "http://localhost:8000"
        assert settings.practice.mode == "words"
