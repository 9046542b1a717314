"""Tests for the configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

from plan_dispatch.config import Config, _apply_env_overrides, _apply_toml, load_config


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.db_path == config.data_dir / "plans.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.summary_max_length == 800
	assert config.cors_origins == ["*"]
	assert config.environment == "development"


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"PLAN_DISPATCH_DATA_DIR": "/tmp/test-data",
		"PLAN_DISPATCH_CONFIG_DIR": "/tmp/test-config",
		"PLAN_DISPATCH_ENV": "production",
		"PLAN_DISPATCH_PORT": "9000",
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		assert config.config_dir == Path("/tmp/test-config")
		assert config.environment == "production"
		assert config.port == 9000
		# Derived paths should be recomputed
		assert config.db_path == Path("/tmp/test-data/plans.db")


def test_db_path_override_wins_over_data_dir():
	config = Config()
	with patch.dict(os.environ, {"PLAN_DISPATCH_DB_PATH": "/srv/plans/live.db"}):
		config = _apply_env_overrides(config)
	assert config.db_path == Path("/srv/plans/live.db")


def test_toml_overrides(tmp_path: Path):
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	config.config_dir.mkdir(parents=True)
	(config.config_dir / "config.toml").write_text(
		'environment = "staging"\n'
		"summary_max_length = 500\n"
		'cors_origins = ["https://app.example.com"]\n'
		f'db_path = "{tmp_path / "other.db"}"\n'
	)

	config = _apply_toml(config)

	assert config.environment == "staging"
	assert config.summary_max_length == 500
	assert config.cors_origins == ["https://app.example.com"]
	assert config.db_path == tmp_path / "other.db"


def test_env_beats_toml(tmp_path: Path):
	config_dir = tmp_path / "config"
	config_dir.mkdir()
	(config_dir / "config.toml").write_text('environment = "staging"\n')

	with patch.dict(os.environ, {
		"PLAN_DISPATCH_CONFIG_DIR": str(config_dir),
		"PLAN_DISPATCH_DATA_DIR": str(tmp_path / "data"),
		"PLAN_DISPATCH_ENV": "production",
	}):
		config = load_config()

	assert config.environment == "production"


def test_config_ensure_dirs(tmp_path: Path):
	"""ensure_dirs should create all required directories."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
	)
	assert not config.config_dir.exists()
	assert not config.data_dir.exists()

	config.ensure_dirs()

	assert config.config_dir.exists()
	assert config.data_dir.exists()
	assert config.log_dir.exists()


def test_load_config_creates_dirs(tmp_path: Path):
	"""load_config should create directories."""
	with patch.dict(os.environ, {
		"PLAN_DISPATCH_DATA_DIR": str(tmp_path / "data"),
		"PLAN_DISPATCH_CONFIG_DIR": str(tmp_path / "config"),
	}):
		config = load_config()
		assert config.data_dir.exists()
		assert config.config_dir.exists()
