"""Interactive credential entry.

:func:`obtain_secret` is the only place keyway reads a secret from a
terminal; it never echoes the input and the value is never logged.
:func:`interactive_text` reads echoed input and must not be used for
sensitive data.
"""

from __future__ import annotations

import getpass
from typing import Callable

from keyway.models import LoginCredentials
from keyway.output import get_output


def interactive_text(prompt: str) -> str:
    """Prompt for text echoed in the terminal -- *do not use for sensitive data*."""
    return input(prompt).rstrip("\n")


def obtain_secret(prompt: str) -> str:
    """Prompt for a secret without echoing it."""
    return getpass.getpass(prompt)


def prompt_login(
    need_2fa: bool = False,
    ask: Callable[[str], str] = interactive_text,
    ask_secret: Callable[[str], str] = obtain_secret,
) -> LoginCredentials:
    """Interactively collect a username and password, plus a passcode if *need_2fa*.

    Args:
        need_2fa: Also prompt for a two-factor passcode.
        ask: Reads echoed input.
        ask_secret: Reads hidden input.
    """
    get_output().info("Please enter credentials to proceed")
    username = ask("Username: ")
    password = ask_secret("Password: ")
    passcode = ask("2FA: ") if need_2fa else None
    return LoginCredentials(username=username, password=password, passcode=passcode)
