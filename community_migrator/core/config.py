"""
Configuration module for the community migration tool.

This module provides functions for loading configuration settings from YAML
files into typed dataclasses, validating them, and creating a default
configuration file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from community_migrator.constants import DEFAULT_MESSAGE_LIMIT, MAX_BATCH_SIZE
from community_migrator.exceptions import ConfigError
from community_migrator.utils.logging import log_with_context


class ReimportPolicy(str, Enum):
    """What to do when a bundle's community was already imported."""

    CREATE = "create"
    SKIP = "skip"
    UPDATE = "update"


class EmailConflictPolicy(str, Enum):
    """What to do when two source users resolve to one identity by email."""

    MERGE = "merge"
    FAIL = "fail"


@dataclass
class SourceConfig:
    """Legacy MongoDB store plus the Firebase project holding enriched users and media."""

    mongo_uri: str = "mongodb://localhost:27017"
    database: str = ""
    firebase_creds_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SourceConfig:
        if not data:
            return cls()
        return cls(
            mongo_uri=data.get("mongo_uri", cls.mongo_uri),
            database=data.get("database", cls.database),
            firebase_creds_path=data.get("firebase_creds_path"),
        )


@dataclass
class TargetConfig:
    """Firebase project receiving the imported communities."""

    firebase_creds_path: str | None = None
    storage_bucket: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TargetConfig:
        if not data:
            return cls()
        return cls(
            firebase_creds_path=data.get("firebase_creds_path"),
            storage_bucket=data.get("storage_bucket"),
        )


@dataclass
class ImportOwnerConfig:
    """Identity that owns every imported community in the target project."""

    email: str = "importer@example.com"
    display_name: str = "Community Importer"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ImportOwnerConfig:
        if not data:
            return cls()
        return cls(
            email=data.get("email", cls.email),
            display_name=data.get("display_name", cls.display_name),
        )


@dataclass
class MigrationConfig:
    """Typed configuration for the migration tool."""

    source: SourceConfig = field(default_factory=SourceConfig)
    target: TargetConfig = field(default_factory=TargetConfig)
    import_owner: ImportOwnerConfig = field(default_factory=ImportOwnerConfig)

    # Import behaviour
    batch_size: int = MAX_BATCH_SIZE
    max_workers: int = 4
    message_limit: int = DEFAULT_MESSAGE_LIMIT
    reimport_policy: ReimportPolicy = ReimportPolicy.CREATE
    email_conflict_policy: EmailConflictPolicy = EmailConflictPolicy.MERGE
    rollback_on_failure: bool = False

    # Retry (Cloud Storage API calls)
    max_retries: int = 3
    retry_delay: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """Create a MigrationConfig from a raw config dictionary."""
        try:
            reimport_policy = ReimportPolicy(data.get("reimport_policy", "create"))
            email_conflict_policy = EmailConflictPolicy(
                data.get("email_conflict_policy", "merge")
            )
        except ValueError as e:
            raise ConfigError(f"Invalid policy in configuration: {e}") from e

        return cls(
            source=SourceConfig.from_dict(data.get("source")),
            target=TargetConfig.from_dict(data.get("target")),
            import_owner=ImportOwnerConfig.from_dict(data.get("import_owner")),
            batch_size=data.get("batch_size", MAX_BATCH_SIZE),
            max_workers=data.get("max_workers", 4),
            message_limit=data.get("message_limit", DEFAULT_MESSAGE_LIMIT),
            reimport_policy=reimport_policy,
            email_conflict_policy=email_conflict_policy,
            rollback_on_failure=data.get("rollback_on_failure", False),
            max_retries=data.get("max_retries", 3),
            retry_delay=data.get("retry_delay", 2),
        )

    @property
    def retry_config(self) -> dict[str, int]:
        return {"max_retries": self.max_retries, "retry_delay": self.retry_delay}

    def validate(self) -> None:
        """Raise ConfigError if any setting is out of range."""
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}"
            )
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.message_limit < 1:
            raise ConfigError(
                f"message_limit must be at least 1, got {self.message_limit}"
            )
        if not self.import_owner.email:
            raise ConfigError("import_owner.email must not be empty")


def load_config(config_path: Path) -> MigrationConfig:
    """
    Load configuration from YAML file and apply default values.

    If the file doesn't exist or cannot be parsed, a warning is logged and
    default settings are used. Values that are present but invalid raise
    ConfigError.

    Args:
        config_path: Path to the config YAML file

    Returns:
        MigrationConfig with all necessary defaults applied
    """
    raw: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                loaded_config = yaml.safe_load(f)
                # Handle None result from empty file
                if loaded_config is not None:
                    raw = loaded_config
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        except (yaml.YAMLError, OSError) as e:
            log_with_context(
                logging.WARNING, f"Failed to load config file {config_path}: {e}"
            )
    else:
        log_with_context(
            logging.WARNING,
            f"Config file {config_path} not found, using default settings",
        )

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = MigrationConfig.from_dict(raw)
    config.validate()
    return config


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    The function will not overwrite an existing configuration file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        "source": {
            "mongo_uri": "mongodb://localhost:27017",
            "database": "legacy",
            "firebase_creds_path": "source-service-account.json",
        },
        "target": {
            "firebase_creds_path": "target-service-account.json",
            "storage_bucket": "target-project.appspot.com",
        },
        "import_owner": {
            "email": "importer@example.com",
            "display_name": "Community Importer",
        },
        "batch_size": MAX_BATCH_SIZE,
        "max_workers": 4,
        "message_limit": DEFAULT_MESSAGE_LIMIT,
        # create | skip | update
        "reimport_policy": ReimportPolicy.CREATE.value,
        # merge | fail
        "email_conflict_policy": EmailConflictPolicy.MERGE.value,
        "rollback_on_failure": False,
        "max_retries": 3,
        "retry_delay": 2,
    }

    try:
        with open(output_path, "w") as f:
            yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False
