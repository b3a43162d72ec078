# settings.py
# Process-level settings: environment flags, config directory layout and the
# persisted app config (credentials + model selection).

import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from x_cli.errors import ConfigError

load_dotenv()

APP_DIR_NAME = "x"
CONFIG_FILE_NAME = "config.json"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-sonnet-4.5"

DEFAULT_MAX_TOKENS = 1024
AGENTIC_MAX_TOKENS = 4096
DEFAULT_MAX_ITERATIONS = 10

DIR_PERMS = 0o755
CONFIG_FILE_PERMS = 0o600


# ---------------------------------------------------------------------------
# Environment flags
# ---------------------------------------------------------------------------


def env_flag(name: str) -> bool:
    """Truthy unless unset, empty, "0" or "false"."""
    value = os.getenv(name, "")
    return value not in ("", "0", "false")


def is_debug() -> bool:
    return env_flag("DEBUG")


def is_dry_run() -> bool:
    return env_flag("DRYRUN")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def user_config_dir() -> Path:
    """Platform config root: XDG on Linux, Application Support on macOS, APPDATA on Windows."""
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise ConfigError("%APPDATA% is not set")
        return Path(appdata)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def app_config_dir() -> Path:
    return user_config_dir() / APP_DIR_NAME


def config_path() -> Path:
    return app_config_dir() / CONFIG_FILE_NAME


# ---------------------------------------------------------------------------
# App config
# ---------------------------------------------------------------------------


class AppConfig(BaseModel):
    """Credentials and model selection for the OpenAI-compatible endpoint."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL

    def validate_ready(self) -> None:
        if not self.api_key:
            raise ConfigError("API key is required. Run 'x configure' or set X_API_KEY.")

    def save(self, path: Path | None = None) -> Path:
        path = path or config_path()
        path.parent.mkdir(mode=DIR_PERMS, parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        os.chmod(path, CONFIG_FILE_PERMS)
        return path


def load_app_config(path: Path | None = None) -> AppConfig:
    """
    Read config.json (if present) and apply environment overrides.

    X_API_KEY / OPENROUTER_API_KEY, X_BASE_URL and X_MODEL take precedence over
    the file so the tool can run with no config on disk.
    """
    path = path or config_path()
    data: dict = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read {path}: {exc}") from exc

    api_key = os.getenv("X_API_KEY") or os.getenv("OPENROUTER_API_KEY")
    if api_key:
        data["api_key"] = api_key
    if os.getenv("X_BASE_URL"):
        data["base_url"] = os.environ["X_BASE_URL"]
    if os.getenv("X_MODEL"):
        data["model"] = os.environ["X_MODEL"]

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {path}: {exc}") from exc
