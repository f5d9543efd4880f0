"""Configuration management with validation.

Bounds are enforced at load time so a misconfigured reconciler fails
fast instead of polling forever or hammering the control plane.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import DeploySyncError


class ConfigurationError(DeploySyncError):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_API_URL = "https://api.verda.com/v1"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 600

DEFAULT_POLL_INTERVAL_SECONDS = 10
MIN_POLL_INTERVAL_SECONDS = 1
MAX_POLL_INTERVAL_SECONDS = 60

DEFAULT_DELETE_DEADLINE_SECONDS = 300
MIN_DELETE_DEADLINE_SECONDS = 30
MAX_DELETE_DEADLINE_SECONDS = 3600

# Server-side timeout hints passed on the initial delete call
DEFAULT_DELETE_TIMEOUT_MS = 60_000
DEFAULT_JOB_DELETE_TIMEOUT_MS = 300_000
MAX_DELETE_TIMEOUT_MS = 600_000

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max declared config file
MAX_DEPLOYMENT_NAME_LENGTH = 63

# Input validation patterns
VALID_DEPLOYMENT_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"
VALID_API_URL_PATTERN = r"^https?://[^\s/]+(/[^\s]*)?$"


@dataclass(frozen=True)
class Config:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    api_url: str = DEFAULT_API_URL
    api_token: str = field(default="", repr=False)

    # Timing
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    delete_deadline_seconds: int = DEFAULT_DELETE_DEADLINE_SECONDS
    delete_timeout_ms: int = DEFAULT_DELETE_TIMEOUT_MS
    job_delete_timeout_ms: int = DEFAULT_JOB_DELETE_TIMEOUT_MS

    # Declared configuration files
    specs_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        import re

        errors: list[str] = []

        if not self.api_url:
            errors.append("DEPLOYSYNC_API_URL is required")
        elif not re.match(VALID_API_URL_PATTERN, self.api_url):
            errors.append(f"DEPLOYSYNC_API_URL must be an http(s) URL: {self.api_url}")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"DEPLOYSYNC_REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if not (
            MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"DEPLOYSYNC_POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if not (
            MIN_DELETE_DEADLINE_SECONDS
            <= self.delete_deadline_seconds
            <= MAX_DELETE_DEADLINE_SECONDS
        ):
            errors.append(
                f"DEPLOYSYNC_DELETE_DEADLINE must be between {MIN_DELETE_DEADLINE_SECONDS} "
                f"and {MAX_DELETE_DEADLINE_SECONDS} seconds"
            )
        elif self.poll_interval_seconds > self.delete_deadline_seconds:
            errors.append("DEPLOYSYNC_POLL_INTERVAL cannot exceed DEPLOYSYNC_DELETE_DEADLINE")

        for key, value in (
            ("DEPLOYSYNC_DELETE_TIMEOUT_MS", self.delete_timeout_ms),
            ("DEPLOYSYNC_JOB_DELETE_TIMEOUT_MS", self.job_delete_timeout_ms),
        ):
            if not (0 < value <= MAX_DELETE_TIMEOUT_MS):
                errors.append(f"{key} must be between 1 and {MAX_DELETE_TIMEOUT_MS}")

        if self.specs_dir is not None and not self.specs_dir.exists():
            errors.append(f"Specs directory does not exist: {self.specs_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            DEPLOYSYNC_API_URL: Control-plane base URL
            DEPLOYSYNC_API_TOKEN: Bearer token for the control plane
            DEPLOYSYNC_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 60)
            DEPLOYSYNC_POLL_INTERVAL: Seconds between deletion polls (default: 10)
            DEPLOYSYNC_DELETE_DEADLINE: Seconds before deletion polling gives up (default: 300)
            DEPLOYSYNC_DELETE_TIMEOUT_MS: Server-side delete hint for deployments (default: 60000)
            DEPLOYSYNC_JOB_DELETE_TIMEOUT_MS: Server-side delete hint for jobs (default: 300000)
            DEPLOYSYNC_SPECS_DIR: Directory of declared YAML configurations (optional)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        specs_dir = os.environ.get("DEPLOYSYNC_SPECS_DIR")

        return cls(
            api_url=os.environ.get("DEPLOYSYNC_API_URL", DEFAULT_API_URL),
            api_token=os.environ.get("DEPLOYSYNC_API_TOKEN", ""),
            request_timeout_seconds=get_int(
                "DEPLOYSYNC_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            poll_interval_seconds=get_int(
                "DEPLOYSYNC_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            delete_deadline_seconds=get_int(
                "DEPLOYSYNC_DELETE_DEADLINE", DEFAULT_DELETE_DEADLINE_SECONDS
            ),
            delete_timeout_ms=get_int("DEPLOYSYNC_DELETE_TIMEOUT_MS", DEFAULT_DELETE_TIMEOUT_MS),
            job_delete_timeout_ms=get_int(
                "DEPLOYSYNC_JOB_DELETE_TIMEOUT_MS", DEFAULT_JOB_DELETE_TIMEOUT_MS
            ),
            specs_dir=Path(specs_dir) if specs_dir else None,
        )
