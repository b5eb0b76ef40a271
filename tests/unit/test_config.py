"""Unit tests for the config module."""

import tempfile
from pathlib import Path

import pytest
import yaml

from community_migrator.core.config import (
    EmailConflictPolicy,
    MigrationConfig,
    ReimportPolicy,
    create_default_config,
    load_config,
)
from community_migrator.exceptions import ConfigError


def test_load_config_with_empty_file():
    """Test loading config from an empty file."""
    with tempfile.NamedTemporaryFile(suffix=".yaml") as temp_file:
        config = load_config(Path(temp_file.name))

        assert config.source.mongo_uri == "mongodb://localhost:27017"
        assert config.target.firebase_creds_path is None
        assert config.import_owner.email == "importer@example.com"
        assert config.batch_size == 500
        assert config.message_limit == 100
        assert config.reimport_policy is ReimportPolicy.CREATE
        assert config.email_conflict_policy is EmailConflictPolicy.MERGE
        assert config.rollback_on_failure is False
        assert config.max_retries == 3
        assert config.retry_delay == 2


def test_load_config_with_values(tmp_path, config_dict):
    """Test loading config with specific values."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config_dict))

    config = load_config(path)

    assert config.source.database == "legacy"
    assert config.source.firebase_creds_path == "source.json"
    assert config.target.storage_bucket == "new-app.appspot.com"
    assert config.import_owner.display_name == "New Owner"
    assert config.batch_size == 100
    assert config.max_workers == 2
    assert config.reimport_policy is ReimportPolicy.UPDATE
    assert config.email_conflict_policy is EmailConflictPolicy.FAIL
    assert config.rollback_on_failure is True
    assert config.retry_config == {"max_retries": 5, "retry_delay": 1}


def test_load_config_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    assert config == MigrationConfig()


def test_load_config_invalid_yaml_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("source: [unclosed")
    assert load_config(path) == MigrationConfig()


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"batch_size": 0},
        {"batch_size": 501},
        {"max_workers": 0},
        {"message_limit": 0},
        {"reimport_policy": "overwrite"},
        {"email_conflict_policy": "ignore"},
        {"import_owner": {"email": ""}},
    ],
)
def test_invalid_values_raise(tmp_path, overrides):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(overrides))
    with pytest.raises(ConfigError):
        load_config(path)


def test_create_default_config(tmp_path):
    path = tmp_path / "config.yaml"

    assert create_default_config(path) is True
    config = load_config(path)
    assert config.source.database == "legacy"
    assert config.batch_size == 500


def test_create_default_config_does_not_overwrite(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("batch_size: 10\n")

    assert create_default_config(path) is False
    assert path.read_text() == "batch_size: 10\n"
