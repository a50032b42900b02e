"""Reporting of unrecoverable conditions.

Code that hits a configuration invariant violation calls
:py:func:`report_fatal`. The reporter decides what happens to the process and
:py:class:`opgraph.exceptions.FatalError` is raised afterwards regardless, so
the failing operation never hands back a partial result.
"""

from __future__ import annotations

import sys
from logging import getLogger
from typing import Callable, Literal, NoReturn, Optional

from typing_extensions import TypeAlias

from opgraph.exceptions import FatalError

logger = getLogger("opgraph")

FatalReporter: TypeAlias = Callable[[str], None]
"""Callable notified with the message of every fatal condition."""

FatalAction = Literal["raise", "exit"]


def log_fatal(message: str) -> None:
    """Log the message at critical level.

    This is the default reporter. The caller then raises
    :py:class:`opgraph.exceptions.FatalError`.
    """
    logger.critical(message)


def exit_process(message: str) -> None:
    """Log the message at critical level and exit the process with status 1."""
    logger.critical(message)
    sys.exit(1)


def reporter_for_action(action: str) -> FatalReporter:
    """Return the reporter for a configured fatal action.

    Args:
        action: ``"raise"`` to log and raise, ``"exit"`` to log and exit.

    Raises:
        ValueError: Unknown action.
    """
    if action == "raise":
        return log_fatal
    if action == "exit":
        return exit_process
    raise ValueError(f"Unknown fatal action {action!r}, expected 'raise' or 'exit'")


def report_fatal(message: str, reporter: Optional[FatalReporter] = None) -> NoReturn:
    """Notify the reporter of a fatal condition, then raise.

    Args:
        message: Description of the violated invariant.
        reporter: Reporter to notify. Defaults to :py:func:`log_fatal`.

    Raises:
        FatalError: Always, unless the reporter itself raises or exits first.
    """
    (reporter or log_fatal)(message)
    raise FatalError(message)
