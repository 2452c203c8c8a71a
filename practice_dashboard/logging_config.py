"""Logging setup for the dashboard."""

import logging
import os

from dotenv import load_dotenv
from rich.logging import RichHandler

load_dotenv(override=True)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root logger once with a rich handler."""
    root = logging.getLogger()
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return root

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.setLevel((level or LOG_LEVEL).upper())
    return root
