"""
Configuration Management for voxai.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (VOXAI_JWT_SECRET, GEMINI_API_KEY, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    billing:
      starting_balance: 20000
      max_chars: 20000
      privileged_identities:
        - owner@example.com

    model:
      provider: gemini
      sample_rate: 24000

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Billing: Credit ledger and text ceiling
        - Auth: Session tokens, cookies, identity provider
        - Model: Upstream speech/language model
        - Upload: Uploaded audio limits
        - History: Per-identity generation history
        - Preview: Voice preview synthesis and cache
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Billing
    # ─────────────────────────────────────────────────────────────────────────
    BILLING_STARTING_BALANCE = 20000        # Credits granted to new accounts
    BILLING_MAX_CHARS = 20000               # Character ceiling per generation
    BILLING_POST_DEDUCT_FAILURE = "deliver" # deliver | discard

    # ─────────────────────────────────────────────────────────────────────────
    # Auth
    # ─────────────────────────────────────────────────────────────────────────
    AUTH_JWT_SECRET = "super-secret-key-for-dev"
    AUTH_JWT_ALGORITHM = "HS256"
    AUTH_SESSION_DAYS = 7
    AUTH_SESSION_COOKIE = "session"
    AUTH_PREVIEW_COOKIE = "mock_session"
    AUTH_PREVIEW_MAX_AGE = 86400            # Preview cookie lifetime (1 day)
    AUTH_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    AUTH_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

    # ─────────────────────────────────────────────────────────────────────────
    # Model
    # ─────────────────────────────────────────────────────────────────────────
    MODEL_PROVIDER = "gemini"
    MODEL_TEXT = "gemini-2.5-flash"
    MODEL_SPEECH = "gemini-2.5-flash-preview-tts"
    MODEL_SAMPLE_RATE = 24000
    MODEL_DEFAULT_VOICE = "Puck"
    MODEL_DEFAULT_TARGET_LANGUAGE = "Hindi"

    # ─────────────────────────────────────────────────────────────────────────
    # Upload
    # ─────────────────────────────────────────────────────────────────────────
    UPLOAD_MAX_BYTES = 50 * 1024 * 1024     # 50MB decoded audio

    # ─────────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────────
    HISTORY_MAX_ITEMS = 50                  # Kept per identity
    HISTORY_PREVIEW_CHARS = 80              # Text preview before "..."

    # ─────────────────────────────────────────────────────────────────────────
    # Voice Preview
    # ─────────────────────────────────────────────────────────────────────────
    PREVIEW_TEXT = "Hello, this is a preview of my voice."
    PREVIEW_CACHE_MAX_ITEMS = 32
    PREVIEW_CACHE_TTL_SECONDS = 3600

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


POST_DEDUCT_POLICIES = ("deliver", "discard")


@dataclass
class BillingConfig:
    """
    Credit ledger configuration.

    Identities listed in privileged_identities receive an unlimited
    balance and are never metered.
    """
    starting_balance: int = Defaults.BILLING_STARTING_BALANCE
    max_chars: int = Defaults.BILLING_MAX_CHARS
    privileged_identities: List[str] = field(default_factory=list)
    post_deduct_failure: str = Defaults.BILLING_POST_DEDUCT_FAILURE


@dataclass
class AuthConfig:
    """
    Session and identity provider configuration.

    allow_preview controls whether unsigned preview cookies are honored.
    When not set explicitly it is enabled only if no Google client id is
    configured.
    """
    jwt_secret: str = Defaults.AUTH_JWT_SECRET
    jwt_algorithm: str = Defaults.AUTH_JWT_ALGORITHM
    session_days: int = Defaults.AUTH_SESSION_DAYS
    session_cookie: str = Defaults.AUTH_SESSION_COOKIE
    preview_cookie: str = Defaults.AUTH_PREVIEW_COOKIE
    preview_max_age: int = Defaults.AUTH_PREVIEW_MAX_AGE
    allow_preview: bool = True
    google_client_id: str = ""
    google_client_secret: str = ""
    google_auth_url: str = Defaults.AUTH_GOOGLE_AUTH_URL
    google_token_url: str = Defaults.AUTH_GOOGLE_TOKEN_URL

    @property
    def provider_configured(self) -> bool:
        """True when a real identity provider can be used."""
        return bool(self.google_client_id)


@dataclass
class ModelConfig:
    """Upstream speech/language model configuration."""
    provider: str = Defaults.MODEL_PROVIDER
    api_key: str = ""
    text_model: str = Defaults.MODEL_TEXT
    speech_model: str = Defaults.MODEL_SPEECH
    sample_rate: int = Defaults.MODEL_SAMPLE_RATE
    default_voice: str = Defaults.MODEL_DEFAULT_VOICE
    default_target_language: str = Defaults.MODEL_DEFAULT_TARGET_LANGUAGE


@dataclass
class UploadConfig:
    """Uploaded audio limits for convert and dub modes."""
    max_bytes: int = Defaults.UPLOAD_MAX_BYTES


@dataclass
class HistoryConfig:
    """Per-identity generation history."""
    max_items: int = Defaults.HISTORY_MAX_ITEMS
    preview_chars: int = Defaults.HISTORY_PREVIEW_CHARS


@dataclass
class PreviewConfig:
    """Voice preview synthesis and its in-memory cache."""
    text: str = Defaults.PREVIEW_TEXT
    cache_max_items: int = Defaults.PREVIEW_CACHE_MAX_ITEMS
    cache_ttl_seconds: int = Defaults.PREVIEW_CACHE_TTL_SECONDS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, billing events (default)
        3 = VERBOSE: Per-stage timing, state transitions
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class VoxServiceConfig:
    """
    Validated configuration for the generation service.

    This is the main configuration object created from Settings.
    It validates all values and provides typed access to configuration.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = VoxServiceConfig.from_settings(settings)
        print(config.billing.starting_balance)
    """
    billing: BillingConfig = field(default_factory=BillingConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "VoxServiceConfig":
        """
        Create VoxServiceConfig from Settings with validation.

        Reads raw configuration dictionary, applies environment overrides
        and defaults for missing values, validates constraints, and
        returns typed configuration.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated VoxServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Billing configuration
        # ─────────────────────────────────────────────────────────────────────
        billing_raw = raw.get("billing", {}) or {}
        privileged = [str(p) for p in (billing_raw.get("privileged_identities") or [])]
        env_privileged = os.getenv("VOXAI_PRIVILEGED_IDENTITIES")
        if env_privileged:
            privileged.extend(p.strip() for p in env_privileged.split(",") if p.strip())

        billing = BillingConfig(
            starting_balance=int(billing_raw.get("starting_balance", Defaults.BILLING_STARTING_BALANCE)),
            max_chars=int(billing_raw.get("max_chars", Defaults.BILLING_MAX_CHARS)),
            privileged_identities=list(dict.fromkeys(privileged)),
            post_deduct_failure=str(
                billing_raw.get("post_deduct_failure", Defaults.BILLING_POST_DEDUCT_FAILURE)
            ).lower(),
        )
        cls._validate_non_negative("billing.starting_balance", billing.starting_balance)
        cls._validate_positive("billing.max_chars", billing.max_chars)
        cls._validate_choice("billing.post_deduct_failure", billing.post_deduct_failure, POST_DEDUCT_POLICIES)

        # ─────────────────────────────────────────────────────────────────────
        # Auth configuration (secrets come from the environment first)
        # ─────────────────────────────────────────────────────────────────────
        auth_raw = raw.get("auth", {}) or {}
        client_id = os.getenv("GOOGLE_CLIENT_ID") or str(auth_raw.get("google_client_id", "") or "")
        client_secret = os.getenv("GOOGLE_CLIENT_SECRET") or str(auth_raw.get("google_client_secret", "") or "")

        allow_preview_env = os.getenv("VOXAI_ALLOW_PREVIEW")
        if allow_preview_env is not None:
            allow_preview = allow_preview_env != "0"
        elif "allow_preview" in auth_raw:
            allow_preview = bool(auth_raw["allow_preview"])
        else:
            allow_preview = not client_id

        auth = AuthConfig(
            jwt_secret=os.getenv("VOXAI_JWT_SECRET") or str(auth_raw.get("jwt_secret", Defaults.AUTH_JWT_SECRET)),
            jwt_algorithm=str(auth_raw.get("jwt_algorithm", Defaults.AUTH_JWT_ALGORITHM)),
            session_days=int(auth_raw.get("session_days", Defaults.AUTH_SESSION_DAYS)),
            session_cookie=str(auth_raw.get("session_cookie", Defaults.AUTH_SESSION_COOKIE)),
            preview_cookie=str(auth_raw.get("preview_cookie", Defaults.AUTH_PREVIEW_COOKIE)),
            preview_max_age=int(auth_raw.get("preview_max_age", Defaults.AUTH_PREVIEW_MAX_AGE)),
            allow_preview=allow_preview,
            google_client_id=client_id,
            google_client_secret=client_secret,
            google_auth_url=str(auth_raw.get("google_auth_url", Defaults.AUTH_GOOGLE_AUTH_URL)),
            google_token_url=str(auth_raw.get("google_token_url", Defaults.AUTH_GOOGLE_TOKEN_URL)),
        )
        cls._validate_positive("auth.session_days", auth.session_days)
        cls._validate_positive("auth.preview_max_age", auth.preview_max_age)
        if not auth.jwt_secret:
            raise ConfigValidationError("auth.jwt_secret must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Model configuration
        # ─────────────────────────────────────────────────────────────────────
        model_raw = raw.get("model", {}) or {}
        model = ModelConfig(
            provider=str(os.getenv("VOXAI_MODEL_PROVIDER") or model_raw.get("provider", Defaults.MODEL_PROVIDER)).lower(),
            api_key=os.getenv("GEMINI_API_KEY") or str(model_raw.get("api_key", "") or ""),
            text_model=str(model_raw.get("text_model", Defaults.MODEL_TEXT)),
            speech_model=str(model_raw.get("speech_model", Defaults.MODEL_SPEECH)),
            sample_rate=int(model_raw.get("sample_rate", Defaults.MODEL_SAMPLE_RATE)),
            default_voice=str(model_raw.get("default_voice", Defaults.MODEL_DEFAULT_VOICE)),
            default_target_language=str(
                model_raw.get("default_target_language", Defaults.MODEL_DEFAULT_TARGET_LANGUAGE)
            ),
        )
        cls._validate_positive("model.sample_rate", model.sample_rate)

        # ─────────────────────────────────────────────────────────────────────
        # Upload, history and preview configuration
        # ─────────────────────────────────────────────────────────────────────
        upload_raw = raw.get("upload", {}) or {}
        upload = UploadConfig(
            max_bytes=int(upload_raw.get("max_bytes", Defaults.UPLOAD_MAX_BYTES)),
        )
        cls._validate_positive("upload.max_bytes", upload.max_bytes)

        history_raw = raw.get("history", {}) or {}
        history = HistoryConfig(
            max_items=int(history_raw.get("max_items", Defaults.HISTORY_MAX_ITEMS)),
            preview_chars=int(history_raw.get("preview_chars", Defaults.HISTORY_PREVIEW_CHARS)),
        )
        cls._validate_positive("history.max_items", history.max_items)
        cls._validate_positive("history.preview_chars", history.preview_chars)

        preview_raw = raw.get("preview", {}) or {}
        preview = PreviewConfig(
            text=str(preview_raw.get("text", Defaults.PREVIEW_TEXT)),
            cache_max_items=int(preview_raw.get("cache_max_items", Defaults.PREVIEW_CACHE_MAX_ITEMS)),
            cache_ttl_seconds=int(preview_raw.get("cache_ttl_seconds", Defaults.PREVIEW_CACHE_TTL_SECONDS)),
        )
        cls._validate_positive("preview.cache_max_items", preview.cache_max_items)
        cls._validate_non_negative("preview.cache_ttl_seconds", preview.cache_ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            billing=billing,
            auth=auth,
            model=model,
            upload=upload,
            history=history,
            preview=preview,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
        """Validate that a value is one of the allowed choices."""
        if value not in choices:
            raise ConfigValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get validated VoxServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def model_provider(self) -> str:
        """Get the upstream model provider name."""
        return str(self.raw.get("model", {}).get("provider", Defaults.MODEL_PROVIDER))

    @property
    def sample_rate(self) -> int:
        """Get the sample rate of PCM returned by the speech model."""
        return int(self.raw.get("model", {}).get("sample_rate", Defaults.MODEL_SAMPLE_RATE))

    @property
    def default_voice(self) -> str:
        """Get the default voice id."""
        return str(self.raw.get("model", {}).get("default_voice", Defaults.MODEL_DEFAULT_VOICE))

    def get_service_config(self) -> VoxServiceConfig:
        """
        Get validated VoxServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return VoxServiceConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Return empty settings instead of raising when the
            file does not exist.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and
            missing_ok is False.
    """
    p = Path(path)
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)


def settings_path(default: str = "config/settings.yaml") -> str:
    """Resolve the settings file path (VOXAI_SETTINGS overrides)."""
    return os.getenv("VOXAI_SETTINGS", default)
