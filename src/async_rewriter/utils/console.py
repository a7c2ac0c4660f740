"""
Logging and Console Output.

All diagnostic output of the rewriter goes through the standard ``logging``
module, rendered by a ``rich`` handler bound to a swappable console.

The console is held behind a proxy so that tests (or a host build tool) can
redirect output with :func:`set_console` while modules keep importing the same
``console`` object.

Attributes:
    console (_ConsoleProxy): Process-wide reference to the active Rich Console.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

LOGGER_NAME = "async_rewriter"

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "path": "bold blue",
    "code": "bold magenta",
  }
)

logger = logging.getLogger(LOGGER_NAME)


class _ConsoleProxy:
  """
  Forwards printing to a replaceable ``rich.console.Console`` backend.

  Replacing the backend also re-binds the package logger's ``RichHandler`` so
  that log records follow the console.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME, stderr=True)
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    self._backend = Console(theme=_THEME, stderr=True)
    self._configure_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def _configure_logging(self) -> None:
    """
    Attaches exactly one RichHandler, bound to the current backend, to the package logger.
    """
    for handler in list(logger.handlers):
      if isinstance(handler, RichHandler):
        logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      show_path=False,
      markup=False,
      rich_tracebacks=True,
    )
    logger.setLevel(logging.INFO)
    logger.addHandler(rich_handler)
    logger.propagate = False

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Redirects console output and logging to another Rich console.

  Args:
      new_console (Console): The console to use from now on.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Restores the default stderr console."""
  console.reset()


def get_console() -> Console:
  """
  Returns:
      Console: The active Rich console backend.
  """
  return console.backend


def set_verbose(verbose: bool) -> None:
  """
  Toggles debug-level output for the package logger.

  Args:
      verbose (bool): True to show debug records.
  """
  logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def log_debug(msg: str) -> None:
  logger.debug(msg)


def log_info(msg: str) -> None:
  logger.info(msg)


def log_success(msg: str) -> None:
  logger.log(SUCCESS_LEVEL_NUM, msg)


def log_warning(msg: str) -> None:
  logger.warning(msg)


def log_error(msg: str) -> None:
  logger.error(msg)
