"""
Tests for Configuration Module

Tests the Settings and configuration management.
"""

import os
import pytest
from unittest.mock import patch


class TestGetEnv:
    """Tests for environment variable helpers."""

    def test_get_env_with_default(self):
        """Test getting env var with default."""
        from copilot.config import get_env

        result = get_env("NONEXISTENT_VAR", "default_value")
        assert result == "default_value"

    def test_get_env_existing(self):
        """Test getting existing env var."""
        from copilot.config import get_env

        with patch.dict(os.environ, {"TEST_VAR": "test_value"}):
            result = get_env("TEST_VAR")
            assert result == "test_value"

    def test_get_env_required_missing(self):
        """Test required env var raises error when missing."""
        from copilot.config import get_env

        with pytest.raises(ValueError):
            get_env("DEFINITELY_NOT_SET", required=True)


class TestGetEnvTyped:
    """Tests for typed environment variable helpers."""

    def test_get_env_int(self):
        """Test getting int from env."""
        from copilot.config import get_env_int

        with patch.dict(os.environ, {"INT_VAR": "42"}):
            result = get_env_int("INT_VAR", 0)
            assert result == 42
            assert isinstance(result, int)

    def test_get_env_float(self):
        """Test getting float from env."""
        from copilot.config import get_env_float

        with patch.dict(os.environ, {"FLOAT_VAR": "3.14"}):
            result = get_env_float("FLOAT_VAR", 0.0)
            assert result == 3.14
            assert isinstance(result, float)

    def test_get_env_bool_true(self):
        """Test getting bool true from env."""
        from copilot.config import get_env_bool

        for true_value in ["true", "True", "TRUE", "1", "yes", "on"]:
            with patch.dict(os.environ, {"BOOL_VAR": true_value}):
                assert get_env_bool("BOOL_VAR", False) is True

    def test_get_env_bool_false(self):
        """Test getting bool false from env."""
        from copilot.config import get_env_bool

        for false_value in ["false", "False", "0", "no", "off"]:
            with patch.dict(os.environ, {"BOOL_VAR": false_value}):
                assert get_env_bool("BOOL_VAR", True) is False

    def test_get_env_list(self):
        """Test comma-separated lists drop blanks and whitespace."""
        from copilot.config import get_env_list

        with patch.dict(os.environ, {"LIST_VAR": "a, b,,c "}):
            assert get_env_list("LIST_VAR") == ["a", "b", "c"]


class TestGeminiConfig:
    """Tests for Gemini configuration."""

    def test_validate_missing_key(self):
        """Test validation fails without an API key."""
        from copilot.config import GeminiConfig

        config = GeminiConfig(api_key="")
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            config.validate()
        assert config.is_configured is False

    def test_validate_success(self):
        """Test validation passes with a key and model."""
        from copilot.config import GeminiConfig

        config = GeminiConfig(api_key="k", model="gemini-2.5-flash")
        assert config.validate() is True

    def test_generate_url(self):
        """Test the generateContent URL is built from base URL and model."""
        from copilot.config import GeminiConfig

        config = GeminiConfig(base_url="https://example.test/v1beta/", model="m1")
        assert config.generate_url() == "https://example.test/v1beta/models/m1:generateContent"
        assert config.generate_url("m2").endswith("/models/m2:generateContent")

    def test_defaults_from_env(self):
        """Test generation settings are read from the environment."""
        from copilot.config import GeminiConfig

        with patch.dict(os.environ, {"GEMINI_MAX_OUTPUT_TOKENS": "123", "GEMINI_TEMPERATURE": "0.5"}):
            config = GeminiConfig()
        assert config.max_output_tokens == 123
        assert config.temperature == 0.5


class TestTranscriptionConfig:
    """Tests for transcription configuration."""

    def test_stream_url(self):
        """Test the websocket URL carries the audio format."""
        from copilot.config import TranscriptionConfig

        config = TranscriptionConfig(url="wss://stt.test/ws", sample_rate=16000)
        assert config.stream_url == "wss://stt.test/ws?sample_rate=16000&encoding=pcm_s16le"

    def test_is_configured(self):
        """Test key presence drives is_configured."""
        from copilot.config import TranscriptionConfig

        assert TranscriptionConfig(api_key="abc").is_configured is True
        assert TranscriptionConfig(api_key="").is_configured is False


class TestPipelineConfig:
    """Tests for pipeline configuration."""

    def test_defaults(self):
        """Test default cadence and limits."""
        from copilot.config import PipelineConfig

        with patch.dict(os.environ, {}, clear=True):
            config = PipelineConfig()
        assert config.tick_interval_s == 1.0
        assert config.min_interval_s == 2.0
        assert config.min_chars == 6
        assert config.history_max_turns == 8
        assert config.qa_trigger == "code mode"
        assert config.interview_trigger == "interview mode"
        assert config.validate() is True

    def test_history_too_small(self):
        """Test a history that cannot hold one exchange is rejected."""
        from copilot.config import PipelineConfig

        with pytest.raises(ValueError, match="HISTORY_MAX_TURNS"):
            PipelineConfig(history_max_turns=1).validate()

    def test_overlapping_triggers(self):
        """Test trigger phrases must be disjoint."""
        from copilot.config import PipelineConfig

        config = PipelineConfig(qa_trigger="mode", interview_trigger="interview mode")
        with pytest.raises(ValueError, match="disjoint"):
            config.validate()

    def test_invalid_tick(self):
        """Test a non-positive tick is rejected."""
        from copilot.config import PipelineConfig

        with pytest.raises(ValueError):
            PipelineConfig(tick_interval_s=0).validate()


class TestSettings:
    """Tests for main Settings class."""

    def test_settings_singleton(self):
        """Test settings is accessible."""
        from copilot.config import settings

        assert settings is not None
        assert hasattr(settings, "gemini")
        assert hasattr(settings, "transcription")
        assert hasattr(settings, "pipeline")
        assert hasattr(settings, "api")

    def test_is_development(self):
        """Test development mode detection."""
        from copilot.config import Settings

        with patch.dict(os.environ, {"APP_ENV": "development"}):
            s = Settings()
            assert s.is_development is True
            assert s.is_production is False

    def test_is_production(self):
        """Test production mode detection."""
        from copilot.config import Settings

        with patch.dict(os.environ, {"APP_ENV": "production"}):
            s = Settings()
            assert s.is_development is False
            assert s.is_production is True

    def test_validate_all_requires_key(self):
        """Test validate_all surfaces a missing Gemini key."""
        from copilot.config import Settings

        with patch.dict(os.environ, {"GEMINI_API_KEY": ""}):
            s = Settings()
        with pytest.raises(ValueError):
            s.validate_all()
