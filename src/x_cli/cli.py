# cli.py
# Entry point. Argument dispatch, wiring and exit codes. No pipeline logic
# lives here.
#
#   x                      help
#   x configure            store API key / endpoint / model
#   x commands             edit the global commands.yaml
#   x usage                token usage and estimated cost
#   x version              print version
#   x <command> [args]     run a configured command
#   x <anything else>      run the default command with every token

import logging

import typer
from rich.logging import RichHandler

from x_cli import __version__, display
from x_cli.commands import ensure_commands_file, load_commands_config, open_editor
from x_cli.errors import ShellExecutionError, XError
from x_cli.llm import LLMClient
from x_cli.pipeline import Pipeline
from x_cli.settings import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    AppConfig,
    is_debug,
    is_dry_run,
    load_app_config,
)
from x_cli.usage import UsageRecorder, load_usage, show_usage

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="x",
    help="Turn natural language into shell commands and step-based pipelines.",
    add_completion=False,
)

_HELP_FLAGS = ("--help", "-h")


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.err_console, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Built-in commands
# ---------------------------------------------------------------------------


def run_configure() -> int:
    current = load_app_config()
    display.info("Configure the OpenAI-compatible endpoint used by x.")
    api_key = display.ask("API key: ", password=True).strip()
    base_url = display.ask(f"Base URL [{current.base_url or DEFAULT_BASE_URL}]: ").strip()
    model = display.ask(f"Model [{current.model or DEFAULT_MODEL}]: ").strip()

    config = AppConfig(
        api_key=api_key or current.api_key,
        base_url=base_url or current.base_url,
        model=model or current.model,
    )
    config.validate_ready()
    path = config.save()
    display.info(f"Configuration saved to {path}")
    return 0


def run_commands_editor() -> int:
    path = ensure_commands_file()
    display.info(f"Opening {path}")
    open_editor(path)
    return 0


def run_usage() -> int:
    show_usage(load_usage(), load_app_config().model)
    return 0


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _root_shell_error(exc: BaseException) -> ShellExecutionError | None:
    while exc is not None:
        if isinstance(exc, ShellExecutionError):
            return exc
        exc = exc.__cause__
    return None


def run_command(argv: list[str]) -> int:
    config = load_commands_config()

    if not argv or argv[0] in _HELP_FLAGS or argv[0] == "help":
        display.help_overview(config)
        return 0 if argv else 1

    name, args = argv[0], argv[1:]
    command = config.commands.get(name)
    if command is None:
        name, args = config.default, argv
        command = config.commands.get(name)
        if command is None:
            raise XError(f"default command not found: {name}")
    elif args and args[0] in _HELP_FLAGS:
        display.command_help(name, command)
        return 0

    logger.debug("running %s (source=%s) with %r", name, command.source, args)

    dry_run = is_dry_run()
    client = None
    if not dry_run:
        app_config = load_app_config()
        app_config.validate_ready()
        client = LLMClient.from_config(app_config)

    pipeline = Pipeline(client, config, dry_run=dry_run, on_usage=UsageRecorder())
    result = pipeline.run(command, args)
    if result.cancelled:
        logger.debug("%s cancelled by user", name)
    return 0


def dispatch(argv: list[str]) -> int:
    configure_logging(is_debug())

    builtins = {
        "configure": run_configure,
        "commands": run_commands_editor,
        "usage": run_usage,
    }

    try:
        if argv and argv[0] == "version":
            display.version(__version__)
            return 0
        if argv and argv[0] in builtins:
            return builtins[argv[0]]()
        return run_command(argv)
    except KeyboardInterrupt:
        display.info("")
        return 130
    except XError as exc:
        shell_error = _root_shell_error(exc)
        if shell_error is not None and shell_error.interactive and shell_error.exit_code:
            return shell_error.exit_code
        display.error(str(exc))
        return 1


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    }
)
def main(ctx: typer.Context) -> None:
    raise typer.Exit(dispatch(list(ctx.args)))


if __name__ == "__main__":
    app()
