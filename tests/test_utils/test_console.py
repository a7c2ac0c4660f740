"""
Tests for Console and Logging Utilities.

Verifies:
1. The console proxy forwards to a real Rich console.
2. Injected consoles receive log records.
3. Verbosity toggles debug output.
"""

import io
import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from async_rewriter.utils.console import (
  LOGGER_NAME,
  console,
  get_console,
  log_debug,
  log_error,
  log_info,
  log_success,
  log_warning,
  reset_console,
  set_console,
  set_verbose,
)


@pytest.fixture
def capture():
  recorder = Console(record=True, file=io.StringIO(), width=200)
  set_console(recorder)
  yield recorder
  set_verbose(False)
  reset_console()


def test_console_proxy_forwards():
  assert callable(console.print)
  assert hasattr(console, "export_text")
  assert isinstance(get_console(), Console)


def test_injected_console_receives_logs(capture):
  log_info("Indexed 3 modules")
  log_warning("Careful")
  log_error("Broken")
  log_success("Done")

  output = capture.export_text()
  assert "Indexed 3 modules" in output
  assert "Careful" in output
  assert "Broken" in output
  assert "Done" in output
  assert "SUCCESS" in output


def test_debug_hidden_unless_verbose(capture):
  log_debug("hidden detail")
  assert "hidden detail" not in capture.export_text()

  set_verbose(True)
  log_debug("shown detail")
  assert "shown detail" in capture.export_text()


def test_single_handler_after_reinjection(capture):
  set_console(Console(record=True, file=io.StringIO()))
  set_console(capture)

  # pytest attaches its own capture handlers to the logger as well.
  handlers = [h for h in logging.getLogger(LOGGER_NAME).handlers if isinstance(h, RichHandler)]
  assert len(handlers) == 1
  assert handlers[0].console is capture


def test_proxy_print_goes_to_backend(capture):
  console.print("hello table")

  assert "hello table" in capture.export_text()
