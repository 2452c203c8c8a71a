"""Toast notifications and friendly backend error messages."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from rich.console import Console

logger = logging.getLogger(__name__)


@dataclass
class Toast:
    title: str
    description: str = ""
    variant: str = "default"  # default, destructive


# (pattern, friendly message) checked in order against the error text
BACKEND_ERROR_PATTERNS = [
    (
        re.compile(r"no such table|does not exist|42P01|PGRST116", re.IGNORECASE),
        "A required table is missing. Please run the database setup and try again.",
    ),
    (
        re.compile(r"permission denied|row-level security|42501|readonly database", re.IGNORECASE),
        "You do not have permission to perform this action.",
    ),
    (
        re.compile(r"CHECK constraint failed|invalid input value for enum|22P02", re.IGNORECASE),
        "One of the values is not allowed. Please check the selected options.",
    ),
    (
        re.compile(r"no such column|has no column named|42703|PGRST204", re.IGNORECASE),
        "The database is missing a column this form needs. Please update the schema.",
    ),
]


def describe_backend_error(error: Exception | str) -> str:
    """Friendlier text for known backend failures, else the raw message."""
    text = str(error)
    for pattern, message in BACKEND_ERROR_PATTERNS:
        if pattern.search(text):
            return message
    return text or "An unexpected error occurred."


class Notifier:
    """Collects toasts and prints them to the console."""

    STYLES = {"default": "bold green", "destructive": "bold red"}

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.toasts: list[Toast] = []

    def toast(self, title: str, description: str = "", variant: str = "default") -> Toast:
        toast = Toast(title, description, variant)
        self.toasts.append(toast)
        style = self.STYLES.get(variant, "bold")
        line = f"[{style}]{title}[/{style}]"
        if description:
            line += f" {description}"
        self.console.print(line)
        return toast

    def success(self, title: str, description: str = "") -> Toast:
        return self.toast(title, description)

    def error(self, title: str, description: str = "") -> Toast:
        return self.toast(title, description, "destructive")


def run_backend_call(notifier: Notifier, title: str, func: Callable, *args, **kwargs):
    """
    Run one backend call, turning any failure into a destructive toast.

    There is no retry. On failure the error is logged and None is returned.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.exception("%s failed", title)
        notifier.error(title, describe_backend_error(e))
        return None
