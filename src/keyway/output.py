"""Diagnostic output for keyway.

keyway is a library, so nothing it prints is program output: every
message is a diagnostic and goes to **stderr** through a Rich
:class:`~rich.console.Console`.  Colour is off when ``NO_COLOR`` is set
or ``TERM=dumb``, in which case plain ``print`` is used instead.

Levels:

========  ===========================  ==========================
Level     Shown when                   Plain-text prefix
========  ===========================  ==========================
debug     ``verbose`` is on            ``[debug]``
info      ``quiet`` is off             (none)
warning   always                       ``Warning:``
error     always                       ``Error:``
========  ===========================  ==========================

The client core logs logins, renewals and retries at debug level.
``KEYWAY_DEBUG`` turns verbose on for the lazily created default manager.
Secrets must never be passed to any of these functions.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

from rich.console import Console


class OutputManager:
    """Writes leveled diagnostics to stderr.

    Args:
        no_color: Disable colour and Rich markup.
        quiet: Drop info messages.
        verbose: Emit debug messages.
    """

    def __init__(
        self,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._plain = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._console = Console(file=sys.stderr, stderr=True, no_color=self._plain)

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    def _emit(self, message: str, prefix: str = "", markup: str = "") -> None:
        if self._plain:
            text = f"{prefix} {message}" if prefix else message
            print(text, file=sys.stderr, flush=True)
        elif markup:
            self._console.print(markup.format(prefix=prefix, message=message))
        else:
            self._console.print(message)

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message)

    def warning(self, message: str) -> None:
        self._emit(message, "Warning:", "[yellow]{prefix}[/yellow] {message}")

    def error(self, message: str) -> None:
        self._emit(message, "Error:", "[bold red]{prefix}[/bold red] {message}")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit(message, "[debug]", "[dim]\\{prefix} {message}[/dim]")


def _should_disable_color() -> bool:
    """Return True when NO_COLOR is set (any value) or TERM=dumb."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global output instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager(verbose=bool(os.environ.get("KEYWAY_DEBUG")))
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager`."""
    global _output
    _output = output


def reset_output() -> None:
    """Drop the global :class:`OutputManager`; tests use this to start clean."""
    global _output
    _output = None
