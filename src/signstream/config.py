"""
signstream Configuration
========================

This module handles configuration loading for the streaming client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SIGNSTREAM_BASE_URL               -> server.base_url
    SIGNSTREAM_CATEGORY               -> server.category
    SIGNSTREAM_MODE                   -> practice.mode
    SIGNSTREAM_MODEL                  -> practice.model
    SIGNSTREAM_KEEPALIVE_INTERVAL     -> connection.keepalive_interval_seconds
    SIGNSTREAM_RECONNECT_DELAY        -> connection.reconnect_delay_seconds
    SIGNSTREAM_RECONNECT_STRATEGY     -> connection.reconnect_strategy
    SIGNSTREAM_MAX_RECONNECT_ATTEMPTS -> connection.max_reconnect_attempts
    SIGNSTREAM_CAMERA_INDEX           -> capture.camera_index
    SIGNSTREAM_API_PORT               -> api.port
    SIGNSTREAM_LOG_LEVEL              -> logging.level
    PORT                              -> api.port (container platforms)

Example:
    from signstream.config import settings

    print(settings.server.base_url)
    print(settings.mode_config().capture_interval_ms)
"""

import os
import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from signstream.stream.reconnect import ReconnectPolicy


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ClientConfig(BaseModel):
    """Client identification configuration."""

    name: str = Field(default="signstream-client", description="Client name")
    version: str = Field(default="v0.1.0", description="Client version")


class ServerConfig(BaseModel):
    """Inference service location."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base address of the inference service (http(s) or ws(s))",
    )
    category: Optional[str] = Field(
        default=None,
        description="Sign category query parameter (live-practice deployment)",
    )


class ConnectionConfig(BaseModel):
    """Duplex channel timing configuration."""

    keepalive_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between keep-alive pings while connected",
    )
    reconnect_delay_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Delay before reconnecting after an abnormal closure",
    )
    reconnect_strategy: Literal["fixed", "exponential"] = Field(
        default="fixed",
        description="Reconnect delay strategy",
    )
    reconnect_max_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound for exponential reconnect delays",
    )
    reconnect_jitter: float = Field(
        default=0.0,
        ge=0,
        lt=1.0,
        description="Relative jitter applied to reconnect delays",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum consecutive reconnect attempts (0 = unlimited)",
    )
    open_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the opening handshake",
    )

    def reconnect_policy(self) -> ReconnectPolicy:
        """Build the ReconnectPolicy described by this section."""
        return ReconnectPolicy(
            base_delay=self.reconnect_delay_seconds,
            strategy=self.reconnect_strategy,
            max_delay=max(self.reconnect_max_delay_seconds, self.reconnect_delay_seconds),
            jitter=self.reconnect_jitter,
            max_attempts=self.max_reconnect_attempts,
        )


class ModeConfig(BaseModel):
    """One practice mode (stream path, cadence and scoring)."""

    path: str = Field(..., description="Stream path on the inference service")
    default_model: str = Field(..., description="Model variant used when none is chosen")
    capture_interval_ms: int = Field(
        default=150,
        ge=10,
        description="Milliseconds between frame captures",
    )
    crop_ratio: float = Field(
        default=1.0,
        gt=0,
        le=1.0,
        description="Centre crop kept from each frame (1.0 = no crop)",
    )
    jpeg_quality: int = Field(
        default=95,
        ge=1,
        le=100,
        description="JPEG encode quality",
    )
    score_incremental: bool = Field(
        default=False,
        description="Score every incremental prediction against the target",
    )
    disconnect_after_result: bool = Field(
        default=False,
        description="Close the connection once a final result arrives",
    )


class ModesConfig(BaseModel):
    """The two practice call sites."""

    words: ModeConfig = Field(
        default_factory=lambda: ModeConfig(
            path="/practice/live-predict",
            default_model="mini",
            capture_interval_ms=150,
            crop_ratio=1.0,
            jpeg_quality=95,
            disconnect_after_result=True,
        )
    )
    letters: ModeConfig = Field(
        default_factory=lambda: ModeConfig(
            path="/api/v1/practice/psl-predict",
            default_model="ps_mini",
            capture_interval_ms=400,
            crop_ratio=0.6,
            jpeg_quality=80,
        )
    )


class PracticeConfig(BaseModel):
    """Practice session configuration."""

    mode: Literal["words", "letters"] = Field(default="words", description="Active mode")
    model: Optional[str] = Field(
        default=None,
        description="Model variant (defaults to the mode's default_model)",
    )
    history_size: int = Field(
        default=8,
        ge=1,
        description="Recent incremental predictions kept",
    )
    result_history_size: int = Field(
        default=10,
        ge=1,
        description="Recent final results kept",
    )
    analyze_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Delay between the stop and analyze messages",
    )


class CaptureConfig(BaseModel):
    """Local camera configuration."""

    camera_index: int = Field(default=0, ge=0, description="OpenCV camera index")
    stream_url: Optional[str] = Field(
        default=None,
        description="Video stream URL used instead of the camera index",
    )


class ApiConfig(BaseModel):
    """Control API server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")
    status_push_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Interval of /ws/status pushes",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the signstream client.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    modes: ModesConfig = Field(default_factory=ModesConfig)
    practice: PracticeConfig = Field(default_factory=PracticeConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def mode_config(self, mode: Optional[str] = None) -> ModeConfig:
        """ModeConfig for the given (or active) mode."""
        name = mode or self.practice.mode
        if name == "words":
            return self.modes.words
        if name == "letters":
            return self.modes.letters
        raise ValueError(f"Unknown practice mode: {name}")

    def model_variant(self, mode: Optional[str] = None) -> str:
        """Configured model, falling back to the mode's default."""
        return self.practice.model or self.mode_config(mode).default_model


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Server settings
    if env_url := os.environ.get("SIGNSTREAM_BASE_URL"):
        config_data.setdefault("server", {})["base_url"] = env_url
    if env_category := os.environ.get("SIGNSTREAM_CATEGORY"):
        config_data.setdefault("server", {})["category"] = env_category

    # Practice settings
    if env_mode := os.environ.get("SIGNSTREAM_MODE"):
        config_data.setdefault("practice", {})["mode"] = env_mode
    if env_model := os.environ.get("SIGNSTREAM_MODEL"):
        config_data.setdefault("practice", {})["model"] = env_model

    # Connection settings
    if env_keepalive := os.environ.get("SIGNSTREAM_KEEPALIVE_INTERVAL"):
        config_data.setdefault("connection", {})["keepalive_interval_seconds"] = float(env_keepalive)
    if env_delay := os.environ.get("SIGNSTREAM_RECONNECT_DELAY"):
        config_data.setdefault("connection", {})["reconnect_delay_seconds"] = float(env_delay)
    if env_strategy := os.environ.get("SIGNSTREAM_RECONNECT_STRATEGY"):
        config_data.setdefault("connection", {})["reconnect_strategy"] = env_strategy
    if env_attempts := os.environ.get("SIGNSTREAM_MAX_RECONNECT_ATTEMPTS"):
        config_data.setdefault("connection", {})["max_reconnect_attempts"] = int(env_attempts)

    # Capture settings
    if env_camera := os.environ.get("SIGNSTREAM_CAMERA_INDEX"):
        config_data.setdefault("capture", {})["camera_index"] = int(env_camera)

    # API settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("api", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SIGNSTREAM_API_PORT"):
        config_data.setdefault("api", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SIGNSTREAM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
