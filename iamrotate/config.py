# iamrotate/config.py
"""
Centralized configuration for iamrotate.

Defaults are read from environment variables once, at import. Command line
flags override them; see ``iamrotate.cli``.

Environment Variables:
    IAMROTATE_MAX_DAYS_ALLOWED: Days before a key is rotated (default: 30)
    IAMROTATE_MAX_KEYS_ALLOWED: Keys allowed on the IAM user (default: 1)
    IAMROTATE_FILENAME: Where to write a new key (default: new-aws-access-key.json)
    IAMROTATE_ENDPOINT_URL: IAM endpoint override, e.g. http://localstack:4566
    AWS_REGION: Default for --region
    AWS_PROFILE: Default for --profile
    CIRCLECI_TOKEN: Enables the CircleCI context sink
    CIRCLECI_CONTEXT_ID: CircleCI context receiving the new key
    CIRCLECI_API_URL: CircleCI API base (default: https://circleci.com/api/v2)
"""

import os
from dataclasses import dataclass
from typing import Final, Optional

from iamrotate.errors import ConfigError

# Malformed numeric environment values, reported by the CLI before it runs
ENV_ERRORS: Final[list] = []


def _env_number(name: str, default, cast):
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name} must be a number, got {raw!r}")
        return default


# =============================================================================
# Rotation Policy
# =============================================================================

MAX_DAYS_ALLOWED: Final[int] = _env_number("IAMROTATE_MAX_DAYS_ALLOWED", 30, int)

MAX_KEYS_ALLOWED: Final[int] = _env_number("IAMROTATE_MAX_KEYS_ALLOWED", 1, int)

# =============================================================================
# AWS
# =============================================================================

REGION: Final[str] = os.getenv("AWS_REGION", "")

PROFILE: Final[str] = os.getenv("AWS_PROFILE", "")

# Point IAM at a LocalStack-style endpoint in test environments
ENDPOINT_URL: Final[Optional[str]] = os.getenv("IAMROTATE_ENDPOINT_URL") or None

# =============================================================================
# Sinks
# =============================================================================

FILENAME: Final[str] = os.getenv("IAMROTATE_FILENAME", "new-aws-access-key.json")

CIRCLECI_TOKEN: Final[str] = os.getenv("CIRCLECI_TOKEN", "")

CIRCLECI_CONTEXT_ID: Final[str] = os.getenv("CIRCLECI_CONTEXT_ID", "")

CIRCLECI_API_URL: Final[str] = os.getenv("CIRCLECI_API_URL", "https://circleci.com/api/v2")

# Seconds
HTTP_TIMEOUT: Final[float] = _env_number("IAMROTATE_HTTP_TIMEOUT", 10.0, float)

PROFILE_COMMAND_TIMEOUT: Final[float] = 60.0

# =============================================================================
# Settings
# =============================================================================

FLAG_USAGES: Final[dict] = {
    "maxDaysAllowed": "Maximum age in days before the IAM key/secret pair is removed or rotated.",
    "maxKeysAllowed": "Maximum number of keys that should exist on the IAM user.",
    "filename": "Path of a file to store a new IAM key/secret pair.",
    "region": "An AWS region (required).",
    "profile": "Shared config profile used to authenticate and to receive the new key.",
    "circleci": "CircleCI API token; when set, the new key is saved to a CircleCI context "
    "instead of the local profile.",
    "circleci_context_id": "Id of the CircleCI context to update.",
    "endpoint_url": "Override the IAM endpoint URL.",
    "dry_run": "Show what would be deleted or created without changing anything.",
}


def check_environment() -> None:
    """Raise ConfigError for the first malformed environment value."""
    if ENV_ERRORS:
        raise ConfigError(ENV_ERRORS[0])


@dataclass
class RotationSettings:
    """Everything one invocation needs, after flags and environment are merged."""

    region: str = REGION
    profile: str = PROFILE
    max_days_allowed: int = MAX_DAYS_ALLOWED
    max_keys_allowed: int = MAX_KEYS_ALLOWED
    filename: str = FILENAME
    circleci_token: str = CIRCLECI_TOKEN
    circleci_context_id: str = CIRCLECI_CONTEXT_ID
    endpoint_url: Optional[str] = ENDPOINT_URL
    dry_run: bool = False

    def validate(self) -> "RotationSettings":
        """
        Check that all settings are usable.

        Returns:
            self, so calls can be chained.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not self.region:
            raise ConfigError("the --region flag is required and must not be an empty string")
        if self.max_keys_allowed < 1:
            raise ConfigError(
                f"--maxKeysAllowed must be at least 1, got {self.max_keys_allowed}"
            )
        if self.max_days_allowed < 0:
            raise ConfigError(
                f"--maxDaysAllowed must not be negative, got {self.max_days_allowed}"
            )
        if not self.filename:
            raise ConfigError("the --filename flag must not be an empty string")
        if self.circleci_token and not self.circleci_context_id:
            raise ConfigError("--circleci-context-id is required when a CircleCI token is set")
        return self

    def __repr__(self) -> str:
        token = "***" if self.circleci_token else ""
        return (
            f"RotationSettings(region={self.region!r}, profile={self.profile!r}, "
            f"max_days_allowed={self.max_days_allowed}, max_keys_allowed={self.max_keys_allowed}, "
            f"filename={self.filename!r}, circleci_token={token!r}, "
            f"circleci_context_id={self.circleci_context_id!r}, "
            f"endpoint_url={self.endpoint_url!r}, dry_run={self.dry_run})"
        )
