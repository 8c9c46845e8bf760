"""Console output for both entry points, with Rich optional.

Rich is imported on first use, so ``--help``, ``--version`` and the
plain-text menus keep working on an interpreter without it.  In that
case style tags such as ``[bold red]`` are stripped before printing.
"""

from __future__ import annotations

import re
import sys
from typing import Any

from devstation.exceptions import EnvironmentError

_STYLE_TAG = re.compile(r"\[/?(?:bold|dim|italic|red|green|yellow|blue|magenta|cyan)(?: [a-z]+)*\]")


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``EnvironmentError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise EnvironmentError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True)


def strip_markup(text: str) -> str:
	"""Remove the Rich style tags devstation emits; other brackets stay."""
	return _STYLE_TAG.sub("", text)


class _ConsoleProxy:
	"""``print``-compatible stderr writer; Rich when available."""

	def print(self, *objects: object, markup: bool = True) -> None:
		try:
			rich_console = get_rich_console()
		except EnvironmentError:
			plain = [strip_markup(obj) if markup and isinstance(obj, str) else obj for obj in objects]
			print(*plain, file=sys.stderr)
			return
		rich_console.print(*objects, markup=markup)


console = _ConsoleProxy()


def _escape(text: str) -> str:
	"""Escape Rich markup in *text*; identity when Rich is missing."""
	try:
		from rich.markup import escape
	except ModuleNotFoundError:
		return text
	return escape(text)


def print_error(message: str, hint: str | None = None) -> None:
	"""Render an error line plus an optional hint.

	*message* and *hint* are printed literally, so text such as
	``[user]`` in a usage string survives.
	"""
	console.print(f"[bold red]Error:[/bold red] {_escape(message)}")
	if hint:
		console.print(f"[yellow]Hint:[/yellow] {_escape(hint)}")
