"""
Configuration data models for adosync.

These models define the structure of .adosync.json and
~/.config/adosync/config.json files, with validation and type safety
via Pydantic.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from adosync.core.exceptions import ConfigError
from adosync.core.retry import RetryPolicy

# Azure DevOps rejects $batch requests with more sub-requests than this
PROVIDER_MAX_BATCH_SIZE = 200


def default_worker_count() -> int:
    return min(os.cpu_count() or 4, 500)


class RetrySettings(BaseModel):
    """
    Retry settings for remote calls.

    Retries are disabled by default (max_retries=0).
    """
    max_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retry attempts after the first call (0 disables retries)"
    )
    base_delay: float = Field(
        default=1.0,
        gt=0,
        description="Initial backoff delay in seconds"
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Backoff multiplier per attempt"
    )
    jitter: bool = Field(
        default=True,
        description="Add ±20% random variance to delays"
    )

    def build_policy(self) -> Optional[RetryPolicy]:
        """Return a RetryPolicy, or None when retries are disabled."""
        if self.max_retries == 0:
            return None
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
            jitter=self.jitter,
        )


class SyncConfig(BaseModel):
    """
    Top-level adosync configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = SyncConfig(organization="contoso", project="web", pat="xxx")
        >>> config.max_batch_size
        200
    """
    # Provider identity
    organization: Optional[str] = Field(
        default=None,
        description="Azure DevOps organization name"
    )
    project: Optional[str] = Field(
        default=None,
        description="Azure DevOps project name"
    )
    pat: Optional[str] = Field(
        default=None,
        description="Personal access token",
        repr=False,
    )
    base_url: str = Field(
        default="https://dev.azure.com",
        min_length=8,
        description="Service root URL"
    )
    api_version: str = Field(
        default="7.0",
        description="REST API version sent with every request"
    )

    # Batching
    max_batch_size: int = Field(
        default=PROVIDER_MAX_BATCH_SIZE,
        ge=1,
        le=PROVIDER_MAX_BATCH_SIZE,
        description="Maximum sub-requests per batch envelope"
    )

    # Fan-out
    max_workers: int = Field(
        default_factory=default_worker_count,
        ge=1,
        le=500,
        description="Concurrency limit used to size fan-out chunks"
    )
    bounded_concurrency: bool = Field(
        default=False,
        description="Gate fan-out dispatch so at most max_workers items are in flight"
    )
    show_progress: bool = Field(
        default=True,
        description="Render progress while fanning out"
    )

    # Timeouts (seconds)
    fetch_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Per-item timeout when fetching work items one by one"
    )
    query_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-query timeout when running WIQL queries"
    )
    item_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default per-item timeout for other fan-out runs"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single request or batch envelope"
    )

    retry: RetrySettings = Field(
        default_factory=RetrySettings,
        description="Retry settings"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def require_credentials(self) -> tuple[str, str, str]:
        """
        Return (organization, project, pat) or raise ConfigError.

        Raises:
            ConfigError: If any of the three is missing
        """
        missing = [
            name
            for name, value in (
                ("organization", self.organization),
                ("project", self.project),
                ("pat", self.pat),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )
        assert self.organization and self.project and self.pat
        return self.organization, self.project, self.pat
