"""GitHub Actions runner integration: inputs, outputs and workflow commands.

See: https://docs.github.com/actions/using-workflows/workflow-commands-for-github-actions
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from canyon_uploader.errors import InputError

if TYPE_CHECKING:
    from collections.abc import Mapping

_TRUE_VALUES = frozenset({"true", "True", "TRUE"})
_FALSE_VALUES = frozenset({"false", "False", "FALSE"})

_LEVEL_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def input_env_name(name: str) -> str:
    """Return the variable the runner uses for action input *name*."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(
    name: str,
    *,
    required: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Read an action input, trimmed of surrounding whitespace.

    Raises:
        InputError: If *required* and the input is empty or unset.
    """
    environ = os.environ if env is None else env
    value = environ.get(input_env_name(name), "").strip()
    if required and not value:
        raise InputError(f"Input required and not supplied: {name}")
    return value


def parse_boolean(name: str, value: str, *, default: bool) -> bool:
    """Parse a boolean input using the runner's YAML 1.2 core schema.

    An empty value yields *default*.
    """
    value = value.strip()
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InputError(
        f"Input does not meet YAML 1.2 'Core Schema' specification: {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def escape_data(value: str) -> str:
    """Escape a workflow command message."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def issue_command(command: str, message: str, *, stream: TextIO | None = None) -> None:
    """Write a ``::command::message`` line for the runner to interpret."""
    out = stream or sys.stdout
    out.write(f"::{command}::{escape_data(message)}\n")
    out.flush()


def mask_value(value: str, *, stream: TextIO | None = None) -> None:
    """Ask the runner to redact *value* from all subsequent log output."""
    if value:
        issue_command("add-mask", value, stream=stream)


def set_output(
    name: str,
    value: str,
    *,
    env: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
) -> None:
    """Publish a step output.

    Appends a heredoc block to ``$GITHUB_OUTPUT`` when the runner provides it,
    otherwise writes a plain ``name=value`` line to *stream*.
    """
    environ = os.environ if env is None else env
    output_path = environ.get("GITHUB_OUTPUT", "")
    if not output_path:
        out = stream or sys.stdout
        out.write(f"{name}={value}\n")
        out.flush()
        return

    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with Path(output_path).open("a", encoding="utf-8") as f:
        f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


class ActionsLogHandler(logging.Handler):
    """Render log records as workflow commands so the runner annotates them."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self._stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            out = self._stream or sys.stdout
            command = _LEVEL_COMMANDS.get(record.levelno)
            if command is None:
                out.write(f"{message}\n")
                out.flush()
            else:
                issue_command(command, message, stream=out)
        except Exception:
            self.handleError(record)
