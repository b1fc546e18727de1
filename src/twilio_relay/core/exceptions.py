"""
Custom exception classes for the Twilio relay.
"""

from typing import Any


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(RelayError):
    """Raised when configuration is invalid. Fatal at startup."""

    pass


class ForwardError(RelayError):
    """Raised when the forward call to the main application fails."""

    @property
    def status_code(self) -> int | None:
        return self.details.get("status_code")

    @property
    def response_body(self) -> str | None:
        return self.details.get("response")

    @property
    def elapsed_ms(self) -> int | None:
        return self.details.get("elapsed_ms")


class PayloadTooLargeError(RelayError):
    """Raised while reading a request body that outgrows the size limit."""

    pass


def create_missing_env_error(missing: list[str]) -> ConfigurationError:
    """Create a configuration error listing missing environment variables."""
    return ConfigurationError(
        message=f"Missing required environment variables: {', '.join(missing)}",
        error_code="MISSING_ENV_VARS",
        details={"missing": missing},
    )


def create_payload_too_large_error(
    received: int, max_body_bytes: int
) -> PayloadTooLargeError:
    """Create an error for a body that passed the configured limit."""
    return PayloadTooLargeError(
        message=f"Request body of at least {received} bytes exceeds {max_body_bytes}",
        error_code="PAYLOAD_TOO_LARGE",
        details={"received": received, "max_body_bytes": max_body_bytes},
    )


def create_forward_error(
    url: str,
    reason: str,
    status_code: int | None = None,
    response: str | None = None,
    elapsed_ms: int | None = None,
) -> ForwardError:
    """Create a forward error with downstream context."""
    details: dict[str, Any] = {"url": url, "reason": reason}
    if elapsed_ms is not None:
        details["elapsed_ms"] = elapsed_ms
    if status_code is not None:
        details["status_code"] = status_code
    if response is not None:
        details["response"] = response

    return ForwardError(
        message=f"Forward to main app failed: {reason}",
        error_code="FORWARD_FAILED",
        details=details,
    )
