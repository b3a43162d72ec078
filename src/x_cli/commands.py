# commands.py
# Command configuration: loading, merging and editing.
#
# Sources, merged in order (later overrides earlier by command name):
#   1. builtins.yaml shipped with the package       source "built-in"
#   2. <config dir>/x/commands.yaml                  source "global"
#   3. every xcommands.yaml from / down to the cwd   source = directory name
#
# Reserved names belong to the CLI itself and are never taken from config.

import logging
import os
import shutil
import subprocess
import sys
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from x_cli.errors import ConfigError
from x_cli.models import Command, CommandsConfig
from x_cli.settings import DIR_PERMS, app_config_dir

logger = logging.getLogger(__name__)

COMMANDS_FILE_NAME = "commands.yaml"
LOCAL_COMMANDS_FILE_NAME = "xcommands.yaml"
COMMANDS_PERMS = 0o644

SOURCE_BUILTIN = "built-in"
SOURCE_GLOBAL = "global"

RESERVED_COMMANDS = frozenset({"configure", "commands", "usage", "version", "help"})

_FALLBACK_EDITORS = ("nano", "vim", "vi")


def is_reserved(name: str) -> bool:
    return name in RESERVED_COMMANDS


def commands_path() -> Path:
    return app_config_dir() / COMMANDS_FILE_NAME


def _package_text(name: str) -> str:
    return resources.files("x_cli").joinpath(name).read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Parsing / merging
# ---------------------------------------------------------------------------


def parse_commands(text: str, source: str) -> tuple[str | None, dict[str, Command]]:
    """
    Parse one YAML document into (default, commands).

    Invalid steps raise InvalidStepError; any other schema problem raises
    ConfigError naming the command.
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {source} commands: {exc}") from exc

    if raw is None:
        return None, {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{source} commands must be a mapping of command names")

    default = raw.pop("default", None)
    if default is not None and not isinstance(default, str):
        raise ConfigError(f"'default' in {source} commands must be a command name")

    commands: dict[str, Command] = {}
    for name, value in raw.items():
        name = str(name)
        if is_reserved(name):
            logger.warning("ignoring reserved command name %r in %s config", name, source)
            continue
        if not isinstance(value, dict):
            raise ConfigError(f"command {name!r} in {source} config must be a mapping")
        try:
            command = Command.model_validate(value)
        except ValidationError as exc:
            raise ConfigError(f"invalid command {name!r} in {source} config: {exc}") from exc
        command.source = source
        commands[name] = command
    return default, commands


def merge_into(config: CommandsConfig, text: str, source: str) -> None:
    default, commands = parse_commands(text, source)
    if default:
        config.default = default
    config.commands.update(commands)


def find_local_commands_files(start: Path | None = None) -> list[Path]:
    """xcommands.yaml files from the filesystem root down to start (the cwd)."""
    start = (start or Path.cwd()).resolve()
    dirs = [start, *start.parents]
    return [d / LOCAL_COMMANDS_FILE_NAME for d in reversed(dirs) if (d / LOCAL_COMMANDS_FILE_NAME).is_file()]


def _local_source(path: Path) -> str:
    return path.parent.name or "local"


def ensure_commands_file(path: Path | None = None) -> Path:
    """Create the global commands file from the commented template if missing."""
    path = path or commands_path()
    path.parent.mkdir(mode=DIR_PERMS, parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(_package_text("commands_template.yaml"), encoding="utf-8")
        os.chmod(path, COMMANDS_PERMS)
        logger.debug("created %s", path)
    return path


def load_commands_config(
    global_path: Path | None = None,
    cwd: Path | None = None,
) -> CommandsConfig:
    """Build the merged command set for this invocation."""
    config = CommandsConfig()

    merge_into(config, _package_text("builtins.yaml"), SOURCE_BUILTIN)

    global_path = ensure_commands_file(global_path)
    try:
        merge_into(config, global_path.read_text(encoding="utf-8"), SOURCE_GLOBAL)
    except OSError as exc:
        raise ConfigError(f"failed to read {global_path}: {exc}") from exc

    for path in find_local_commands_files(cwd):
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"failed to read {path}: {exc}") from exc
        merge_into(config, text, _local_source(path))
        logger.debug("merged %s", path)

    return config


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------


def find_editor() -> str | None:
    for var in ("EDITOR", "VISUAL"):
        editor = os.getenv(var)
        if editor:
            return editor
    for editor in _FALLBACK_EDITORS:
        if shutil.which(editor):
            return editor
    return None


def open_editor(path: Path) -> None:
    """Open path in the user's editor (open -t on macOS, notepad on Windows)."""
    if sys.platform == "darwin":
        subprocess.Popen(["open", "-t", str(path)])
        return
    if sys.platform.startswith("win"):
        subprocess.Popen(["notepad", str(path)])
        return

    editor = find_editor()
    if editor is None:
        raise ConfigError("no editor found; set $EDITOR environment variable")
    subprocess.run([*editor.split(), str(path)], check=False)
