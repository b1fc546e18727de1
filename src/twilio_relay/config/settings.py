"""
Relay configuration loaded once from the environment.
Required values are checked at startup; the process refuses to serve without them.
"""

from typing import Any

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.exceptions import create_missing_env_error

FORWARD_PATH = "/api/twilio/webhook"

TRUTHY_VALUES = ("true", "1", "yes", "y", "on")


class RelaySettings(BaseSettings):
    """
    Immutable process-wide configuration.

    Values come from environment variables (case-insensitive) or a local
    ``.env`` file. Constructor keyword arguments take priority over both.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    # === Downstream application ===
    main_app_url: str | None = Field(
        default=None, description="Base URL of the main application"
    )
    supabase_anon_key: str | None = Field(
        default=None, description="Bearer credential sent to the main application"
    )
    forward_timeout: float = Field(
        default=30.0, gt=0, description="Forward request timeout in seconds"
    )

    # === Server ===
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, ge=1, le=65535, description="Server port")
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024, gt=0, description="Maximum inbound body size"
    )

    # === Logging ===
    debug_mode: bool = Field(default=False, description="Verbose request logging")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator("debug_mode", "log_json", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> bool:
        """Accept boolean-ish strings; anything unrecognised is False."""
        if isinstance(v, bool):
            return v
        if v is None:
            return False
        return str(v).strip().lower() in TRUTHY_VALUES

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @property
    def forward_url(self) -> str:
        """Webhook ingestion endpoint of the main application."""
        return f"{(self.main_app_url or '').rstrip('/')}{FORWARD_PATH}"

    def missing_required(self) -> list[str]:
        """Names of required environment variables that are absent or empty."""
        required = {
            "MAIN_APP_URL": self.main_app_url,
            "SUPABASE_ANON_KEY": self.supabase_anon_key,
        }
        return [name for name, value in required.items() if not value]

    def log_configuration(self) -> None:
        """Log configuration (without sensitive data)."""
        logger.info("=== TWILIO RELAY CONFIGURATION ===")
        logger.info("Server: {}:{}", self.host, self.port)
        logger.info("Log Level: {}", self.log_level)
        logger.info("Main App URL: {}", self.main_app_url or "Not configured")
        logger.info(
            "Main App Key: {}",
            "Configured" if self.supabase_anon_key else "Not configured",
        )
        logger.info("Forward Timeout: {}s", self.forward_timeout)
        logger.info("Debug Mode: {}", "enabled" if self.debug_mode else "disabled")
        logger.info("==================================")

    def as_table_rows(self) -> list[tuple[str, str]]:
        """Settings as display rows, credential redacted."""
        return [
            ("MAIN_APP_URL", self.main_app_url or "-"),
            ("SUPABASE_ANON_KEY", "********" if self.supabase_anon_key else "-"),
            ("FORWARD_TIMEOUT", f"{self.forward_timeout}s"),
            ("HOST", self.host),
            ("PORT", str(self.port)),
            ("MAX_BODY_BYTES", str(self.max_body_bytes)),
            ("DEBUG_MODE", str(self.debug_mode).lower()),
            ("LOG_LEVEL", self.log_level),
            ("LOG_JSON", str(self.log_json).lower()),
        ]


def load_settings(**overrides: Any) -> RelaySettings:
    """
    Load settings and fail fast when required values are missing.

    Args:
        **overrides: Explicit field values (e.g. from CLI options)

    Returns:
        Validated, immutable settings

    Raises:
        ConfigurationError: If MAIN_APP_URL or SUPABASE_ANON_KEY is missing
        pydantic.ValidationError: If a typed value cannot be parsed
    """
    settings = RelaySettings(**overrides)

    missing = settings.missing_required()
    if missing:
        raise create_missing_env_error(missing)

    return settings
