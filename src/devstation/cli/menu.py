"""Interactive menus for the CLI layer.

This module is responsible for:

* Rendering a Rich table of the installer tasks.
* Prompting for a task or a VM command via questionary arrow keys.
* Prompting for an API key without echoing it.

questionary is imported lazily.  When it is missing, a numbered plain
``input()`` prompt is used instead so the menus keep working on a bare
interpreter.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from devstation.cli.console import console
from devstation.exceptions import EnvironmentError
from devstation.tasks import Task

QUIT = "quit"
"""Sentinel choice value; questionary falls back to the title for ``None``."""


def _import_questionary() -> Any:
    """Import questionary lazily for interactive selection."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "questionary is not installed. Install with: pip install questionary",
        ) from exc
    return questionary


def _import_rich_table() -> type[Any]:
    """Import rich table lazily for menu rendering."""
    try:
        from rich.table import Table
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Table


# ---------------------------------------------------------------------------
# Plain fallback
# ---------------------------------------------------------------------------

def parse_choice(reply: str, options: Sequence[str]) -> str | None:
    """Resolve a typed reply (1-based number or exact name) to an option.

    Returns ``None`` for anything that matches no option.
    """
    reply = reply.strip()
    if not reply:
        return None
    if reply.isdigit():
        index = int(reply) - 1
        if 0 <= index < len(options):
            return options[index]
        return None
    return reply if reply in options else None


def _plain_select(message: str, options: Sequence[str], labels: Sequence[str]) -> str:
    """Numbered ``input()`` menu; loops until a valid reply.

    EOF (Ctrl+D) counts as quit.
    """
    while True:
        print("Available commands:")
        for number, label in enumerate(labels, start=1):
            print(f"{number}) {label}")
        try:
            reply = input(f"{message} (number or name): ")
        except EOFError:
            return QUIT
        choice = parse_choice(reply, options)
        if choice is not None:
            return choice
        print("Invalid selection. Try again.")


def _select(message: str, options: Sequence[str], labels: Sequence[str]) -> str:
    try:
        questionary = _import_questionary()
    except EnvironmentError:
        return _plain_select(message, options, labels)

    choices = [
        questionary.Choice(title=label, value=option)
        for option, label in zip(options, labels)
    ]
    selected: str | None = questionary.select(
        message,
        choices=choices,
        use_arrow_keys=True,
        use_shortcuts=False,
    ).ask()  # Returns None on Ctrl+C / Esc
    return QUIT if selected is None else selected


# ---------------------------------------------------------------------------
# Task menu
# ---------------------------------------------------------------------------

def _display_task_table(tasks: Sequence[Task]) -> None:
    try:
        table_class = _import_rich_table()
    except EnvironmentError:
        return

    table = table_class(
        title="devstation",
        show_header=True,
        header_style="bold magenta",
        border_style="dim",
    )
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("Task", justify="left", min_width=10)
    table.add_column("Installs", justify="left")

    for number, task in enumerate(tasks, start=1):
        table.add_row(str(number), task.name, task.summary or task.title)

    console.print()
    console.print(table)
    console.print()


def prompt_task_selection(tasks: Sequence[Task]) -> str:
    """Show the task menu and return the chosen task name, or :data:`QUIT`."""
    _display_task_table(tasks)
    options = [task.name for task in tasks] + [QUIT]
    labels = [f"{number:>2}. {task.title}" for number, task in enumerate(tasks, start=1)]
    labels.append(" q. Quit")
    return _select("Select a task to run:", options, labels)


def prompt_kvm_command(commands: Sequence[str]) -> str:
    """Prompt for a VM command; returns :data:`QUIT` on quit or cancel."""
    options = [*commands, QUIT]
    return _select("Select a command:", options, options)


def prompt_secret(message: str) -> str | None:
    """Ask for a secret without echo; ``None`` when the user cancels."""
    try:
        questionary = _import_questionary()
    except EnvironmentError:
        import getpass

        try:
            return getpass.getpass(f"{message} ")
        except EOFError:
            return None
    return questionary.password(message).ask()
