"""MindPal Configuration System.

Backend credentials come from the environment; tuning knobs (retry policy,
probe intervals, realtime debounce) may also be overridden from
~/.mindpal/config.json. Uses Pydantic for schema validation with sensible
defaults.

Usage:
    from mindpal.config import get_config, require_configured

    config = get_config()
    if not config.backend.is_configured:
        print(config.backend.missing_keys())

    backend = require_configured(config)  # raises ConfigurationError
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError

from mindpal.errors import ConfigurationError, ErrorCode, config_missing

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".mindpal" / "config.json"

PLACEHOLDER_URL = "https://placeholder.supabase.co"
PLACEHOLDER_KEY = "placeholder-key"

# Checked in order; the first non-empty value wins.
URL_ENV_VARS = ("MINDPAL_SUPABASE_URL", "SUPABASE_URL", "VITE_SUPABASE_URL")
KEY_ENV_VARS = ("MINDPAL_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY")
SERVICE_KEY_ENV_VARS = {
    "text_api_key": ("MINDPAL_GEMINI_API_KEY", "GEMINI_API_KEY", "VITE_GEMINI_API_KEY"),
    "speech_api_key": ("MINDPAL_ELEVENLABS_API_KEY", "ELEVENLABS_API_KEY", "VITE_ELEVENLABS_API_KEY"),
    "translate_api_key": ("MINDPAL_LINGO_API_KEY", "LINGO_API_KEY", "VITE_LINGO_API_KEY"),
}


class BackendSettings(BaseModel):
    """Backend-as-a-service connection settings.

    Attributes:
        url: Project URL, e.g. ``https://abc.supabase.co``.
        anon_key: Public anon key sent as ``apikey`` header.
        client_info: Value of the ``X-Client-Info`` header.
        schema_name: Database schema exposed through the table API.
    """

    url: str = ""
    anon_key: str = ""
    client_info: str = "mindpal-app"
    schema_name: str = "public"

    @property
    def is_configured(self) -> bool:
        """True when both credentials are present, non-placeholder and well-formed."""
        if not self.url or not self.anon_key:
            return False
        if self.url == PLACEHOLDER_URL or self.anon_key == PLACEHOLDER_KEY:
            return False
        parsed = urlparse(self.url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def missing_keys(self) -> list[str]:
        """Names of the environment values that are absent."""
        missing = []
        if not self.url:
            missing.append(URL_ENV_VARS[0])
        if not self.anon_key:
            missing.append(KEY_ENV_VARS[0])
        return missing

    @property
    def rest_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.url.rstrip('/')}/auth/v1"

    @property
    def realtime_url(self) -> str:
        base = self.url.rstrip("/").replace("https://", "wss://").replace("http://", "ws://")
        return f"{base}/realtime/v1/websocket"


class RetrySettings(BaseModel):
    """Default retry policy for backend operations."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay_seconds: float = Field(default=0.5, ge=0.0, le=30.0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0, le=10.0)
    max_delay_seconds: float = Field(default=10.0, ge=0.0, le=300.0)


class ConnectivitySettings(BaseModel):
    """Backend reachability probing.

    Attributes:
        probe_timeout_seconds: Hard timeout for a single probe.
        check_interval_seconds: Period of the background re-probe loop.
        freshness_window_seconds: A healthy state older than this is re-probed.
        initial_probe_delay_seconds: Delay before the first probe after start.
    """

    probe_timeout_seconds: float = Field(default=5.0, gt=0.0, le=5.0)
    check_interval_seconds: float = Field(default=60.0, gt=0.0)
    freshness_window_seconds: float = Field(default=120.0, gt=0.0)
    initial_probe_delay_seconds: float = Field(default=1.0, ge=0.0)


class RealtimeSettings(BaseModel):
    """Realtime change-feed settings."""

    enabled: bool = True
    reload_debounce_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0.0)


class DashboardSettings(BaseModel):
    """Sequential dashboard loading."""

    inter_call_delay_seconds: float = Field(default=0.2, ge=0.0, le=5.0)


class ServicesSettings(BaseModel):
    """Generative-text, speech-synthesis and translation endpoints.

    API keys usually come from the environment; an empty key disables the
    service.
    """

    text_url: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    text_api_key: str = ""
    speech_url: str = "https://api.elevenlabs.io/v1/text-to-speech"
    speech_api_key: str = ""
    speech_voice_id: str = "EXAVITQu4vr4xnSDxMaL"
    speech_model_id: str = "eleven_monolingual_v1"
    translate_url: str = "https://api.lingoapi.com/v1/translate"
    translate_api_key: str = ""
    connect_timeout_seconds: float = Field(default=5.0, gt=0.0)
    read_timeout_seconds: float = Field(default=30.0, gt=0.0)


class MindpalConfig(BaseModel):
    """Root configuration model."""

    backend: BackendSettings = Field(default_factory=BackendSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    connectivity: ConnectivitySettings = Field(default_factory=ConnectivitySettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)
    services: ServicesSettings = Field(default_factory=ServicesSettings)


def _first_env(env: Mapping[str, str], names: tuple[str, ...]) -> str:
    for name in names:
        value = env.get(name, "").strip()
        if value:
            return value
    return ""


def backend_from_env(env: Mapping[str, str] | None = None) -> BackendSettings:
    """Read backend credentials from the environment."""
    source = os.environ if env is None else env
    return BackendSettings(
        url=_first_env(source, URL_ENV_VARS),
        anon_key=_first_env(source, KEY_ENV_VARS),
    )


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> MindpalConfig:
    """Load configuration from file and environment.

    The file is optional; a missing or invalid file falls back to defaults.
    Environment credentials override anything stored in the file.

    Args:
        config_path: Optional path to config file. Defaults to ~/.mindpal/config.json.
        env: Environment mapping. Defaults to ``os.environ``.

    Returns:
        MindpalConfig instance.
    """
    path = config_path or CONFIG_PATH
    data: dict[str, Any] = {}

    if path.exists():
        try:
            with path.open() as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file {path}: {e}, using defaults")
        except OSError as e:
            logger.warning(f"Cannot read config file {path}: {e}, using defaults")
    else:
        logger.debug(f"Config file not found at {path}, using defaults")

    try:
        config = MindpalConfig.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Config validation failed: {e}, using defaults")
        config = MindpalConfig()

    from_env = backend_from_env(env)
    if from_env.url:
        config.backend.url = from_env.url
    if from_env.anon_key:
        config.backend.anon_key = from_env.anon_key

    source = os.environ if env is None else env
    for field_name, names in SERVICE_KEY_ENV_VARS.items():
        value = _first_env(source, names)
        if value:
            setattr(config.services, field_name, value)

    if not config.backend.is_configured:
        logger.error(
            "Backend is not configured (url: %s, anon key: %s)",
            "set" if config.backend.url else "missing",
            "set" if config.backend.anon_key else "missing",
        )

    return config


SECRET_FIELDS = {
    "backend": {"anon_key"},
    "services": {"text_api_key", "speech_api_key", "translate_api_key"},
}


def save_config(config: MindpalConfig, config_path: Path | None = None) -> bool:
    """Save configuration to file.

    API keys are left out; they are read from the environment.

    Args:
        config: Configuration to save.
        config_path: Optional path to config file. Defaults to ~/.mindpal/config.json.

    Returns:
        True if saved successfully, False otherwise.
    """
    path = config_path or CONFIG_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            json.dump(config.model_dump(exclude=SECRET_FIELDS), f, indent=2)
        os.chmod(path, 0o600)
        logger.debug(f"Configuration saved to {path}")
        return True

    except OSError as e:
        logger.error(f"Failed to save config to {path}: {e}")
        return False


def require_configured(config: MindpalConfig | None = None) -> BackendSettings:
    """Return backend settings or raise when they are unusable.

    Raises:
        ConfigurationError: If credentials are missing, placeholders or malformed.
    """
    backend = (config or get_config()).backend
    missing = backend.missing_keys()
    if missing:
        raise config_missing(missing[0])
    if not backend.is_configured:
        raise ConfigurationError(
            f"Backend URL is not valid: {backend.url!r}",
            config_key=URL_ENV_VARS[0],
            code=ErrorCode.CFG_INVALID,
        )
    return backend


_config: MindpalConfig | None = None
_config_lock = threading.Lock()


def get_config() -> MindpalConfig:
    """Get singleton configuration instance.

    Uses double-check locking for thread safety.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def reset_config() -> None:
    """Reset singleton configuration for testing."""
    global _config
    with _config_lock:
        _config = None
