"""
Configuration Management Module

All runtime configuration comes from environment variables with sensible
defaults, grouped into small dataclasses per concern.

Usage:
    from copilot.config import settings
    print(settings.gemini.model)

Environment variables are loaded from a .env file (if present) and can be
overridden by system environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def get_env(key: str, default: str = "", required: bool = False) -> str:
    """
    Get an environment variable with optional default and validation.

    Args:
        key: The environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        The environment variable value or default

    Raises:
        ValueError: If required=True and the variable is not set
    """
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get an environment variable as integer."""
    return int(get_env(key, str(default)))


def get_env_float(key: str, default: float) -> float:
    """Get an environment variable as float."""
    return float(get_env(key, str(default)))


def get_env_bool(key: str, default: bool) -> bool:
    """Get an environment variable as boolean."""
    value = get_env(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get a comma-separated environment variable as a list of strings."""
    raw = get_env(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class GeminiConfig:
    """
    Gemini generateContent configuration.

    Attributes:
        api_key: Gemini API key (sent as x-goog-api-key)
        model: Model name, e.g. gemini-2.5-flash
        base_url: REST base URL up to and including the API version
        max_output_tokens: Upper bound on reply length
        temperature: Sampling temperature (kept low for focused answers)
        top_p: Nucleus sampling cutoff
        top_k: Top-k sampling cutoff
        thinking_budget: Thinking tokens allowed (0 disables thinking)
        timeout_s: Total HTTP timeout for one generate call
    """
    api_key: str = field(default_factory=lambda: get_env("GEMINI_API_KEY"))
    model: str = field(default_factory=lambda: get_env("GEMINI_MODEL", "gemini-2.5-flash"))
    base_url: str = field(default_factory=lambda: get_env(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    ))
    max_output_tokens: int = field(default_factory=lambda: get_env_int("GEMINI_MAX_OUTPUT_TOKENS", 400))
    temperature: float = field(default_factory=lambda: get_env_float("GEMINI_TEMPERATURE", 0.2))
    top_p: float = field(default_factory=lambda: get_env_float("GEMINI_TOP_P", 0.8))
    top_k: int = field(default_factory=lambda: get_env_int("GEMINI_TOP_K", 40))
    thinking_budget: int = field(default_factory=lambda: get_env_int("GEMINI_THINKING_BUDGET", 0))
    timeout_s: float = field(default_factory=lambda: get_env_float("GEMINI_TIMEOUT_S", 30.0))

    def validate(self) -> bool:
        """Validate that required Gemini settings are configured."""
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is required")
        if not self.model:
            raise ValueError("GEMINI_MODEL is required")
        return True

    @property
    def is_configured(self) -> bool:
        """Check whether a key is available."""
        return bool(self.api_key)

    def generate_url(self, model: Optional[str] = None) -> str:
        """Get the full URL for generateContent calls."""
        base = self.base_url.rstrip("/")
        return f"{base}/models/{model or self.model}:generateContent"


@dataclass
class TranscriptionConfig:
    """
    Streaming transcription (AssemblyAI) and audio capture configuration.

    Attributes:
        api_key: AssemblyAI API key
        url: Streaming websocket URL without query string
        sample_rate: PCM sample rate sent to the service
        device_name: Capture device passed to ffmpeg
        ffmpeg_path: ffmpeg executable
        input_format: ffmpeg input format (dshow, pulse, avfoundation...)
    """
    api_key: str = field(default_factory=lambda: get_env("ASSEMBLYAI_API_KEY"))
    url: str = field(default_factory=lambda: get_env("ASSEMBLYAI_URL", "wss://streaming.assemblyai.com/v3/ws"))
    sample_rate: int = field(default_factory=lambda: get_env_int("TRANSCRIPTION_SAMPLE_RATE", 16000))
    device_name: str = field(default_factory=lambda: get_env(
        "AUDIO_DEVICE_NAME", "CABLE Output (VB-Audio Virtual Cable)"
    ))
    ffmpeg_path: str = field(default_factory=lambda: get_env("FFMPEG_PATH", "ffmpeg"))
    input_format: str = field(default_factory=lambda: get_env("AUDIO_INPUT_FORMAT", "dshow"))

    @property
    def is_configured(self) -> bool:
        """Check if a transcription key is available."""
        return bool(self.api_key)

    @property
    def stream_url(self) -> str:
        """Websocket URL including the audio format query."""
        return f"{self.url}?sample_rate={self.sample_rate}&encoding=pcm_s16le"


@dataclass
class PipelineConfig:
    """
    Aggregation and dispatch configuration.

    Attributes:
        tick_interval_s: Scheduler cadence
        min_interval_s: Minimum gap after a successful dispatch
        min_chars: Minimum trimmed buffer length worth a generation call
        dispatch_timeout_s: Upper bound on one in-flight generation
        history_max_turns: Rolling window size of each conversation history
        qa_trigger: Phrase that switches to QA (code) mode
        interview_trigger: Phrase that switches to interview mode
    """
    tick_interval_s: float = field(default_factory=lambda: get_env_float("SCHEDULER_TICK_INTERVAL_S", 1.0))
    min_interval_s: float = field(default_factory=lambda: get_env_float("SCHEDULER_MIN_INTERVAL_S", 2.0))
    min_chars: int = field(default_factory=lambda: get_env_int("SCHEDULER_MIN_CHARS", 6))
    dispatch_timeout_s: float = field(default_factory=lambda: get_env_float("SCHEDULER_DISPATCH_TIMEOUT_S", 30.0))
    history_max_turns: int = field(default_factory=lambda: get_env_int("HISTORY_MAX_TURNS", 8))
    qa_trigger: str = field(default_factory=lambda: get_env("QA_MODE_TRIGGER", "code mode"))
    interview_trigger: str = field(default_factory=lambda: get_env("INTERVIEW_MODE_TRIGGER", "interview mode"))

    def validate(self) -> bool:
        """Validate pipeline settings."""
        if self.tick_interval_s <= 0:
            raise ValueError("SCHEDULER_TICK_INTERVAL_S must be positive")
        if self.min_interval_s < 0:
            raise ValueError("SCHEDULER_MIN_INTERVAL_S cannot be negative")
        if self.min_chars < 1:
            raise ValueError("SCHEDULER_MIN_CHARS must be at least 1")
        if self.dispatch_timeout_s <= 0:
            raise ValueError("SCHEDULER_DISPATCH_TIMEOUT_S must be positive")
        if self.history_max_turns < 2:
            raise ValueError("HISTORY_MAX_TURNS must hold at least one exchange (2)")
        qa, interview = self.qa_trigger.lower().strip(), self.interview_trigger.lower().strip()
        if not qa or not interview:
            raise ValueError("Mode triggers cannot be empty")
        if qa in interview or interview in qa:
            raise ValueError("QA_MODE_TRIGGER and INTERVIEW_MODE_TRIGGER must be disjoint")
        return True


@dataclass
class APIConfig:
    """
    HTTP API configuration.

    Attributes:
        host: Bind address for uvicorn
        port: Bind port for uvicorn
        cors_origins: Allowed browser origins
        rate_limit_requests: Requests allowed per window per client
        rate_limit_window: Rate limit window in seconds
    """
    host: str = field(default_factory=lambda: get_env("API_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: get_env_int("API_PORT", 8000))
    cors_origins: List[str] = field(default_factory=lambda: get_env_list(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ))
    rate_limit_requests: int = field(default_factory=lambda: get_env_int("RATE_LIMIT_REQUESTS", 120))
    rate_limit_window: int = field(default_factory=lambda: get_env_int("RATE_LIMIT_WINDOW", 60))


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file: Optional log file path
    """
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE") or None)


@dataclass
class Settings:
    """
    Main settings container aggregating all configuration sections.

    Access via the singleton `settings` instance.

    Example:
        from copilot.config import settings

        settings.gemini.validate()
        url = settings.gemini.generate_url()
        cadence = settings.pipeline.tick_interval_s
    """
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_env: str = field(default_factory=lambda: get_env("APP_ENV", "development"))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    def validate_all(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all validations pass

        Raises:
            ValueError: If any validation fails
        """
        self.gemini.validate()
        self.pipeline.validate()
        return True


# Singleton settings instance
settings = Settings()
