"""Configuration management for the monorepo release tool."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

from .constants import (
    DEFAULT_DIST_TAG,
    DEFAULT_IGNORE_CHANGES,
    DEFAULT_MAX_CONCURRENT_PUBLISHES,
    DEFAULT_REGISTRY_URL,
    DEFAULT_RELEASE_TAG_PATTERN,
    DEFAULT_TAG_VERSION_PREFIX,
    RELEASE_DEPENDENCY_KINDS,
)


class FailurePolicy(str, Enum):
    """Policy for handling publish failures during a release."""

    FAIL_FAST = "fail_fast"  # Stop scheduling new batches after a failure
    FAIL_GROUP = "fail_group"  # Skip dependents of a failed package, keep the rest going
    CONTINUE = "continue"  # Attempt every package regardless of failures


@dataclass
class ReleasePolicyConfig:
    """
    Policy configuration for version bumps and publishing.

    Controls failure handling, concurrency and tag naming.
    """

    failure_policy: FailurePolicy = FailurePolicy.FAIL_GROUP
    max_concurrent_publishes: int = DEFAULT_MAX_CONCURRENT_PUBLISHES
    tag_version_prefix: str = DEFAULT_TAG_VERSION_PREFIX
    release_tag_pattern: str = DEFAULT_RELEASE_TAG_PATTERN
    dist_tag: str = DEFAULT_DIST_TAG
    skip_published: bool = True  # Re-runs skip versions the registry already has
    dependency_kinds: list[str] = field(default_factory=lambda: list(RELEASE_DEPENDENCY_KINDS))

    def __post_init__(self) -> None:
        # YAML hands us plain strings
        if not isinstance(self.failure_policy, FailurePolicy):
            self.failure_policy = FailurePolicy(self.failure_policy)
        if self.max_concurrent_publishes < 1:
            raise ValueError(
                f"max_concurrent_publishes must be >= 1, got {self.max_concurrent_publishes}"
            )


@dataclass
class RegistryConfig:
    """Package registry connection configuration."""

    url: str = DEFAULT_REGISTRY_URL
    token: str | None = None
    timeout: int = 60
    verify_ssl: bool = True
    max_connections: int = 10
    access: str | None = None  # "public" / "restricted", None = registry default
    retry_attempts: int = 3
    retry_wait_min: float = 2.0
    retry_wait_max: float = 10.0


@dataclass
class ChangeDetectionConfig:
    """
    Inputs for change-set resolution.

    Attributes:
        ignore_changes: Glob patterns for files that never trigger a release
        implicit_dependencies: package name -> names of packages it implicitly
            requires (build or compile-time coupling not in any manifest)
    """

    ignore_changes: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_CHANGES))
    implicit_dependencies: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class ThrottleConfig:
    """Publish throttle configuration."""

    max_concurrency: int = DEFAULT_MAX_CONCURRENT_PUBLISHES


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file: Path | None = None


@dataclass
class ReleaseConfig:
    """
    Complete configuration for the release tool.

    This combines all configuration sections.
    """

    policy: ReleasePolicyConfig = field(default_factory=ReleasePolicyConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    changes: ChangeDetectionConfig = field(default_factory=ChangeDetectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    throttle: ThrottleConfig | None = None

    def __post_init__(self) -> None:
        # The throttle follows the policy bound unless configured explicitly
        if self.throttle is None:
            self.throttle = ThrottleConfig(max_concurrency=self.policy.max_concurrent_publishes)

    @classmethod
    def from_file(cls, config_path: Path) -> "ReleaseConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            ReleaseConfig instance
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        policy = ReleasePolicyConfig(**data.get("policy", {}))
        registry = RegistryConfig(**data.get("registry", {}))
        # Tokens normally stay out of checked-in files
        if not registry.token:
            registry.token = os.environ.get("RELEASE_REGISTRY_TOKEN") or os.environ.get(
                "NPM_TOKEN"
            )
        changes = ChangeDetectionConfig(**data.get("changes", {}))

        logging_data = data.get("logging", {})
        # Convert file path string to Path if present
        if "file" in logging_data and logging_data["file"]:
            logging_data["file"] = Path(logging_data["file"])
        logging = LoggingConfig(**logging_data)

        throttle_data = data.get("throttle")
        throttle = ThrottleConfig(**throttle_data) if throttle_data else None

        return cls(
            policy=policy,
            registry=registry,
            changes=changes,
            logging=logging,
            throttle=throttle,
        )

    @classmethod
    def from_env(cls) -> "ReleaseConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            RELEASE_REGISTRY_URL: Registry base URL
            RELEASE_REGISTRY_TOKEN: Registry auth token (falls back to NPM_TOKEN)
            RELEASE_MAX_CONCURRENCY: Concurrent publishes (default: 4)
            RELEASE_FAILURE_POLICY: fail_fast / fail_group / continue
            LOG_LEVEL: Logging level (default: INFO)
            LOG_FORMAT: console or json (default: console)

        Returns:
            ReleaseConfig instance

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        concurrency_str = os.environ.get(
            "RELEASE_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENT_PUBLISHES)
        )
        try:
            max_concurrency = int(concurrency_str)
        except ValueError as e:
            raise ValueError(
                f"RELEASE_MAX_CONCURRENCY must be an integer, got {concurrency_str!r}"
            ) from e

        policy = ReleasePolicyConfig(
            failure_policy=FailurePolicy(
                os.environ.get("RELEASE_FAILURE_POLICY", FailurePolicy.FAIL_GROUP.value)
            ),
            max_concurrent_publishes=max_concurrency,
        )

        # Parse verify_ssl from env (default True, set to 'false' to disable)
        verify_ssl_str = os.environ.get("RELEASE_REGISTRY_VERIFY_SSL", "true").lower()
        registry = RegistryConfig(
            url=os.environ.get("RELEASE_REGISTRY_URL", DEFAULT_REGISTRY_URL),
            token=os.environ.get("RELEASE_REGISTRY_TOKEN") or os.environ.get("NPM_TOKEN"),
            verify_ssl=verify_ssl_str not in ("false", "0", "no", "off"),
        )

        logging_config = LoggingConfig(
            level=os.environ.get("LOG_LEVEL", "INFO"),
            format=os.environ.get("LOG_FORMAT", "console"),
        )

        return cls(policy=policy, registry=registry, logging=logging_config)


def load_config(config_file: Path | None = None) -> ReleaseConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        ReleaseConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return ReleaseConfig.from_file(config_file)
    return ReleaseConfig.from_env()
