"""
Rewrite Command Handler.

Implements ``async-rewriter rewrite``, the build-tool collaborator:

1. Loads configuration (``[tool.async_rewriter]`` plus CLI overrides).
2. Runs the engine once over all given sources.
3. Writes the merged output to ``--out`` or prints it.
4. Reports success or failure through the exit code.
"""

import sys
from pathlib import Path
from typing import List, Optional

import libcst as cst
from rich.table import Table

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.engine import RewriteEngine, RewriteResult
from async_rewriter.errors import AsyncRewriterError
from async_rewriter.utils.console import console, log_error, log_info, log_success, log_warning, set_verbose


def handle_rewrite(
  paths: List[Path],
  output_path: Optional[Path] = None,
  references: Optional[List[str]] = None,
  excluded_types: Optional[List[str]] = None,
  async_suffix: Optional[str] = None,
  forwarding_suffix: Optional[str] = None,
  verbose: bool = False,
) -> int:
  """
  Handles the 'rewrite' command execution.

  Args:
      paths: Source files or directories.
      output_path: Where to write the merged module; printed to stdout if None.
      references: Extra reference files, directories or module names.
      excluded_types: Fully-qualified names of excluded types.
      async_suffix: Override for the cancellable variant suffix.
      forwarding_suffix: Override for the forwarding variant suffix.
      verbose: Enable debug logging.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  set_verbose(verbose)

  missing = [p for p in paths if not p.exists()]
  if missing:
    log_error(f"Input not found: {missing[0]}")
    return 1

  first = paths[0]
  try:
    config = RuntimeConfig.load(
      excluded_types=excluded_types,
      references=references,
      async_suffix=async_suffix,
      forwarding_suffix=forwarding_suffix,
      search_path=first if first.is_dir() else first.parent,
    )
  except ValueError as e:
    log_error(str(e))
    return 1

  engine = RewriteEngine(config=config)
  try:
    result = engine.run(paths)
  except (AsyncRewriterError, cst.ParserSyntaxError, OSError, UnicodeDecodeError) as e:
    log_error(f"Rewrite failed: {e}")
    return 1

  if result.is_empty:
    log_warning("No marked methods found; nothing generated.")

  if output_path is not None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.code, encoding="utf-8")
    log_info(f"Wrote {output_path}")
  else:
    sys.stdout.write(result.code)

  _print_summary(result)
  log_success(f"Generated {len(result.generated)} method(s) from {len(result.units)} file(s).")
  return 0


def _print_summary(result: RewriteResult) -> None:
  """
  Renders the generated methods as a table on the log console.
  """
  if result.is_empty:
    return
  table = Table(title="Generated Methods")
  table.add_column("Method", style="cyan")
  for name in result.generated:
    table.add_row(name)
  console.print(table)
