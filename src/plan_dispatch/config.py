"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "plan-dispatch"
APP_AUTHOR = "plan-dispatch"

DEFAULT_SUMMARY_MAX_LENGTH = 800


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Explicit database location, wins over data_dir / "plans.db"
	db_path_override: Path | None = None

	# Server
	environment: str = "development"
	host: str = "127.0.0.1"
	port: int = 8430
	cors_origins: list[str] = field(default_factory=lambda: ["*"])

	# Plans
	summary_max_length: int = DEFAULT_SUMMARY_MAX_LENGTH

	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.db_path = self.db_path_override or self.data_dir / "plans.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)


def _apply_env_overrides(config: Config) -> Config:
	"""Apply PLAN_DISPATCH_* environment variable overrides."""
	path_map = {
		"PLAN_DISPATCH_CONFIG_DIR": "config_dir",
		"PLAN_DISPATCH_DATA_DIR": "data_dir",
		"PLAN_DISPATCH_DB_PATH": "db_path_override",
	}
	for env_key, attr in path_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	str_map = {
		"PLAN_DISPATCH_ENV": "environment",
		"PLAN_DISPATCH_HOST": "host",
		"PLAN_DISPATCH_LOG_LEVEL": "log_level",
	}
	for env_key, attr in str_map.items():
		val = os.getenv(env_key, "").strip()
		if val:
			setattr(config, attr, val)

	port = os.getenv("PLAN_DISPATCH_PORT", "").strip()
	if port:
		config.port = int(port)

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if key == "db_path":
			config.db_path_override = Path(os.path.expanduser(val))
		elif key in path_fields:
			setattr(config, key, Path(os.path.expanduser(val)))
		elif hasattr(config, key):
			setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
