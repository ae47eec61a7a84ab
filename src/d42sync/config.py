"""Provider configuration with validation.

The client configuration is constructed once, validated at construction
time, and passed by reference into every reconciler call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Environment variables the provider recognizes
HOST_ENV = "D42_HOST"
USERNAME_ENV = "D42_USER"
PASSWORD_ENV = "D42_PASS"
TLS_INSECURE_ENV = "D42_TLS_INSECURE"
TIMEOUT_ENV = "D42_TIMEOUT"
MAX_RETRIES_ENV = "D42_MAX_RETRIES"
RETRY_BACKOFF_ENV = "D42_RETRY_BACKOFF"
READ_ERRORS_AS_ABSENT_ENV = "D42_READ_ERRORS_AS_ABSENT"
STRICT_DELETE_ENV = "D42_STRICT_DELETE"

# Configuration constants with documented bounds
DEFAULT_TIMEOUT_SECONDS = 30
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 300

DEFAULT_MAX_RETRIES = 0
MAX_RETRIES_LIMIT = 5
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5

# hostname or IPv4 address with optional port, no scheme and no path
VALID_HOST_PATTERN = r"^[A-Za-z0-9]([A-Za-z0-9.-]*[A-Za-z0-9])?(:[0-9]{1,5})?$"


@dataclass(frozen=True)
class ClientConfig:
    """Device42 API client configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing on the first
    request.
    """

    # Required
    host: str

    # Basic auth, both optional
    username: str = ""
    password: str = ""

    # Skip TLS certificate verification of the server
    tls_insecure: bool = False

    # Transport
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    # Failure policies
    # Read treats transport failures as "resource missing" when set
    read_errors_as_absent: bool = True
    # Delete propagates remote failures when set, otherwise logs them
    strict_delete: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.host:
            errors.append(f"no Device42 host was provided ({HOST_ENV} is required)")
        elif not re.match(VALID_HOST_PATTERN, self.host):
            errors.append(
                f"{HOST_ENV} must be a bare hostname with optional port "
                f"(no scheme or path): {self.host}"
            )

        if self.password and not self.username:
            errors.append(f"{PASSWORD_ENV} is set but {USERNAME_ENV} is empty")

        if not (MIN_TIMEOUT_SECONDS <= self.timeout_seconds <= MAX_TIMEOUT_SECONDS):
            errors.append(
                f"{TIMEOUT_ENV} must be between {MIN_TIMEOUT_SECONDS} "
                f"and {MAX_TIMEOUT_SECONDS} seconds"
            )

        if not (0 <= self.max_retries <= MAX_RETRIES_LIMIT):
            errors.append(f"{MAX_RETRIES_ENV} must be between 0 and {MAX_RETRIES_LIMIT}")

        if self.retry_backoff_seconds < 0:
            errors.append(f"{RETRY_BACKOFF_ENV} cannot be negative")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def base_url(self) -> str:
        """Root URL every API path is appended to."""
        return f"https://{self.host}/api"

    @property
    def auth(self) -> tuple[str, str] | None:
        """Basic auth credentials, or None when no username is configured."""
        if not self.username:
            return None
        return (self.username, self.password)

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Load configuration from environment variables.

        Environment Variables:
            D42_HOST: Device42 appliance host (required)
            D42_USER: Basic auth username
            D42_PASS: Basic auth password
            D42_TLS_INSECURE: If "true", skip certificate verification (default: false)
            D42_TIMEOUT: Per-request timeout in seconds (default: 30)
            D42_MAX_RETRIES: Retries for read requests (default: 0)
            D42_RETRY_BACKOFF: Base delay in seconds between read retries (default: 0.5)
            D42_READ_ERRORS_AS_ABSENT: Read degrades to absent on failure (default: true)
            D42_STRICT_DELETE: Propagate remote delete failures (default: false)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            host=os.environ.get(HOST_ENV, ""),
            username=os.environ.get(USERNAME_ENV, ""),
            password=os.environ.get(PASSWORD_ENV, ""),
            tls_insecure=get_bool(TLS_INSECURE_ENV, False),
            timeout_seconds=get_int(TIMEOUT_ENV, DEFAULT_TIMEOUT_SECONDS),
            max_retries=get_int(MAX_RETRIES_ENV, DEFAULT_MAX_RETRIES),
            retry_backoff_seconds=get_float(RETRY_BACKOFF_ENV, DEFAULT_RETRY_BACKOFF_SECONDS),
            read_errors_as_absent=get_bool(READ_ERRORS_AS_ABSENT_ENV, True),
            strict_delete=get_bool(STRICT_DELETE_ENV, False),
        )

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks
        return (
            f"ClientConfig(host={self.host!r}, username={self.username!r}, "
            f"password={'***' if self.password else ''!r}, "
            f"tls_insecure={self.tls_insecure!r}, timeout_seconds={self.timeout_seconds!r}, "
            f"max_retries={self.max_retries!r}, "
            f"retry_backoff_seconds={self.retry_backoff_seconds!r})"
        )
