# display.py
# All terminal output for the x CLI.
#
# This module owns presentation entirely. The pipeline, steps and agent loop
# never format strings; they call named functions here. Command output from
# streamed shell execution is the one exception: it is raw bytes and is
# written by shell.py.
#
# Colour language:
#   blue     commands about to run
#   magenta  nested command calls
#   yellow   warnings, dry-run previews, medium risk
#   red      errors, high risk
#   dim      secondary detail

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from x_cli.models import Command, CommandsConfig

console = Console()
err_console = Console(stderr=True)

BUILTIN_HELP = [
    ("configure", "Configure authentication"),
    ("commands", "Edit custom commands"),
    ("usage", "Show token usage and cost"),
    ("version", "Show current version"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _risk_style(risk: str) -> str:
    lowered = risk.lower()
    if lowered.startswith("high"):
        return "red"
    if lowered.startswith("medium"):
        return "dark_orange"
    return "default"


def ask(prompt: str, password: bool = False) -> str:
    """Read one line from the user. EOF counts as an empty answer."""
    try:
        return console.input(escape(prompt), password=password)
    except EOFError:
        return ""


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def exec_command(command: str) -> None:
    console.print()
    console.print(Text.assemble(("❯ Executing: ", "bold blue"), command))


def command_for_confirm(command: str) -> None:
    console.print()
    console.print(
        Panel(
            Syntax(command, "bash", word_wrap=True, background_color="default"),
            box=box.MINIMAL,
            padding=(0, 1),
        )
    )


def confirm_info(summary: str, risk: str, safer: str, risky: bool) -> None:
    """Summary always; risk and safer alternative only for medium/high risk."""
    if summary:
        console.print()
        console.print(Text.assemble(("Summary: ", "bold"), summary))
    if not risky:
        return
    console.print(Text.assemble(("Risk: ", "bold"), (risk, _risk_style(risk))))
    if safer:
        console.print(Text.assemble(("Safer alternative: ", "bold"), safer))


def cancelled() -> None:
    console.print("Cancelled.")


def subcommand_call(name: str, args: list[str]) -> None:
    console.print()
    console.print(Text.assemble(("❯ Running command: ", "bold magenta"), " ".join([name, *args])))


def markdown(text: str) -> None:
    console.print(Markdown(text))


def warning(message: str) -> None:
    console.print()
    console.print(Text(f"⚠ {message}", style="yellow"))


def dry_run(message: str) -> None:
    console.print(Text.assemble(("[DRYRUN] ", "bold yellow"), message))


def error(message: str) -> None:
    err_console.print(Text.assemble(("Error: ", "bold red"), message))


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------


def _source_order(source: str) -> tuple[int, str]:
    if source == "built-in":
        return (0, source)
    if source == "global":
        return (1, source)
    return (2, source)


def help_overview(config: CommandsConfig) -> None:
    console.print("Usage: x <command> [args]")
    console.print()
    console.print("[bold]Built-in commands:[/bold]")
    builtin = Table(box=None, show_header=False, padding=(0, 2))
    for name, description in BUILTIN_HELP:
        builtin.add_row(name, description)
    console.print(builtin)
    console.print()

    by_source: dict[str, list[str]] = {}
    for name, command in config.commands.items():
        by_source.setdefault(command.source, []).append(name)

    for source in sorted(by_source, key=_source_order):
        console.print(f"[bold]Commands ({escape(source)}):[/bold]")
        table = Table(box=None, show_header=False, padding=(0, 2))
        for name in sorted(by_source[source]):
            description = config.commands[name].description or "(no description)"
            suffix = " [dim](default)[/dim]" if name == config.default else ""
            table.add_row(escape(name), escape(description) + suffix)
        console.print(table)
        console.print()

    console.print("Run 'x <command> --help' for command-specific help.")


def command_help(name: str, command: Command) -> None:
    console.print(f"[bold]{escape(name)}[/bold]: {escape(command.description or '(no description)')}")

    if command.args:
        console.print()
        console.print("Arguments:")
        table = Table(box=None, show_header=False, padding=(0, 2))
        for arg in command.args:
            description = arg.description or "(no description)"
            if arg.rest:
                description += " (captures remaining args)"
            table.add_row(escape(arg.name), escape(description))
        console.print(table)

    usage = " ".join(f"<{a.name}>..." if a.rest else f"<{a.name}>" for a in command.args)
    console.print()
    console.print(Text(f"Usage: x {name} {usage}".rstrip()))


# ---------------------------------------------------------------------------
# Usage / configure
# ---------------------------------------------------------------------------


def usage_summary(rows: list[tuple[str, str]], cost_rows: list[tuple[str, str]] | None) -> None:
    table = Table(box=box.SIMPLE_HEAVY, show_header=False, padding=(0, 1))
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for label, value in rows:
        table.add_row(label, value)
    console.print(Panel(table, title=_label("TOKEN USAGE", "blue"), border_style="blue"))

    if cost_rows is None:
        console.print("[dim]Cost: (unable to fetch pricing)[/dim]")
        return

    cost = Table(box=box.SIMPLE_HEAVY, show_header=False, padding=(0, 1))
    cost.add_column("Item", style="bold")
    cost.add_column("USD", justify="right", style="green")
    for label, value in cost_rows:
        cost.add_row(label, value)
    console.print(Panel(cost, title=_label("ESTIMATED COST", "green"), border_style="green"))


def info(message: str) -> None:
    console.print(Text(message))


def version(value: str) -> None:
    console.print(f"[bold]x[/bold] version {escape(value)}")
