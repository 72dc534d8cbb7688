import os
from pathlib import Path
from typing import Optional

import yaml

from ghactivity_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "storage_type": "json",
    "storage_dir": None,  # None = ./data under the current directory
    "output": None,  # file name inside storage_dir; extension added from storage_type if missing
    "log_level": "info",
    "max_pages": 10,
    "github_api_url": None,  # None = https://api.github.com; set for GitHub Enterprise
}

STORAGE_TYPES = ("json", "sqlite")
LOG_LEVELS = ("debug", "info", "warn", "warning", "error")

_EXTENSIONS = {"json": ".json", "sqlite": ".db"}
_DEFAULT_FILENAME = "activities"

# Environment variable -> config key. Applied after the YAML file, before CLI overrides.
_ENV_KEYS = {
    "GITHUB_TOKEN": "github_token",
    "GITHUB_USERNAME": "github_username",
    "STORAGE_TYPE": "storage_type",
    "LOG_LEVEL": "log_level",
}


def load_config(config_path: str = ".gh-activity.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .gh-activity.yml in the current directory
      3. Environment variables (GITHUB_TOKEN, GITHUB_USERNAME, STORAGE_TYPE,
         STORAGE_PATH, LOG_LEVEL)
      4. CLI argument overrides

    The resolved storage file path is stored under ``storage_path``.
    """
    config = {**DEFAULT_CONFIG, "github_token": None, "github_username": None}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level")
        config.update(file_config)

    for env_name, key in _ENV_KEYS.items():
        value = os.environ.get(env_name)
        if value:
            config[key] = value

    cli_overrides = cli_overrides or {}
    for key, value in cli_overrides.items():
        if value is not None:
            config[key] = value

    config["storage_type"] = str(config["storage_type"]).lower()
    config["log_level"] = str(config["log_level"]).lower()
    config["storage_path"] = build_storage_path(
        config["storage_type"],
        storage_dir=cli_overrides.get("storage_dir") or config.get("storage_dir"),
        output=cli_overrides.get("output") or config.get("output"),
        env_path=os.environ.get("STORAGE_PATH"),
        explicit=bool(cli_overrides.get("storage_dir") or cli_overrides.get("output")),
    )
    return config


def build_storage_path(
    storage_type: str,
    storage_dir: Optional[str] = None,
    output: Optional[str] = None,
    env_path: Optional[str] = None,
    explicit: bool = False,
) -> str:
    """
    Resolve the snapshot file path.

    STORAGE_PATH on its own (no --path/--output on the command line) is taken
    as a full file path. Otherwise the path is ``<dir>/<name>``: the directory
    comes from --path, STORAGE_PATH, the config file or ./data; the name from
    --output or ``activities``, with ``.json``/``.db`` appended when it has no
    extension.
    """
    if env_path and not explicit:
        return env_path

    extension = _EXTENSIONS.get(storage_type, ".json")
    directory = storage_dir or env_path or str(Path.cwd() / "data")
    if output:
        filename = output if "." in output else f"{output}{extension}"
    else:
        filename = f"{_DEFAULT_FILENAME}{extension}"
    return str(Path(directory) / filename)


def validate_config(config: dict, require_credentials: bool = True) -> list[str]:
    """Return a list of human-readable problems; empty when the config is usable.

    Commands that only read the local store pass ``require_credentials=False``.
    """
    errors: list[str] = []

    if require_credentials:
        token = config.get("github_token")
        if not token or not str(token).strip():
            errors.append("GitHub token is missing or empty")

        username = config.get("github_username")
        if not username or not str(username).strip():
            errors.append("GitHub username is missing or empty")

    if config.get("storage_type") not in STORAGE_TYPES:
        errors.append('Storage type must be either "json" or "sqlite"')

    if config.get("log_level") not in LOG_LEVELS:
        errors.append("Log level must be one of: debug, info, warn, error")

    try:
        if int(config.get("max_pages", 10)) < 1:
            errors.append("max_pages must be a positive integer")
    except (TypeError, ValueError):
        errors.append("max_pages must be a positive integer")

    return errors
