"""
Crop Relay Configuration
========================

This module handles configuration loading for the crop/decimate relay.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CROP_RELAY_CONFIG         -> path of the YAML file to load
    CROP_RELAY_STREAM_URL     -> stream.url
    CROP_RELAY_QUEUE_SIZE     -> stream.queue_size
    CROP_RELAY_MAX_FREQUENCY  -> relay.max_publish_frequency
    CROP_RELAY_STRICT_MODES   -> relay.strict_modes
    CROP_RELAY_PORT           -> server.port
    CROP_RELAY_LOG_LEVEL      -> logging.level
    PORT                      -> server.port (container platforms)

Example:
    from crop_relay.config import settings

    print(settings.stream.url)
    print(settings.relay.max_publish_frequency)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="crop-relay", description="Service name")
    version: str = Field(default="v0.1.0", description="Protocol version")


class StreamConfig(BaseModel):
    """Upstream camera stream configuration."""

    url: str = Field(
        default="ws://localhost:8000/ws/camera",
        description="WebSocket URL of the camera source",
    )
    queue_size: int = Field(
        default=5,
        ge=1,
        description="Inbound message queue depth of the source connection",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class RelayConfig(BaseModel):
    """Request handling configuration."""

    max_publish_frequency: float = Field(
        default=100.0,
        ge=0,
        description="Cap on the publish frequency of PERIODIC requests (Hz)",
    )
    strict_modes: bool = Field(
        default=False,
        description="Reject requests with an unrecognized mode instead of free-running",
    )


class OutputConfig(BaseModel):
    """Output stream configuration."""

    image_format: str = Field(
        default="png",
        pattern="^(png|jpg)$",
        description="Encoding of published images: 'png' or 'jpg'",
    )
    jpeg_quality: int = Field(
        default=90,
        ge=1,
        le=100,
        description="JPEG quality when image_format is 'jpg'",
    )
    queue_size: int = Field(
        default=1,
        ge=1,
        description="Per-consumer outbox depth (drops oldest on overflow)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8010, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the crop relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


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
        config_path: Path to config.yaml. If None, uses CROP_RELAY_CONFIG
            or searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("CROP_RELAY_CONFIG")

    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
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

    # Stream settings
    if env_url := os.environ.get("CROP_RELAY_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url
    if env_queue := os.environ.get("CROP_RELAY_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["queue_size"] = int(env_queue)

    # Relay settings
    if env_freq := os.environ.get("CROP_RELAY_MAX_FREQUENCY"):
        config_data.setdefault("relay", {})["max_publish_frequency"] = float(env_freq)
    if env_strict := os.environ.get("CROP_RELAY_STRICT_MODES"):
        config_data.setdefault("relay", {})["strict_modes"] = env_strict.lower() in ("1", "true", "yes")

    # Server settings (container platforms use PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("CROP_RELAY_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("CROP_RELAY_LOG_LEVEL"):
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
