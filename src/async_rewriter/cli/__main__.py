"""
Main Entry Point for the async-rewriter CLI.

Parses arguments and dispatches to the handlers in
``async_rewriter.cli.handlers``.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from async_rewriter import __version__
from async_rewriter.cli.handlers import handle_rewrite


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="async-rewriter: Async Variant Synthesizer")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: REWRITE ---
  cmd_rewrite = subparsers.add_parser("rewrite", help="Generate async variants of marked methods")
  cmd_rewrite.add_argument("paths", type=Path, nargs="+", help="Source files or directories")
  cmd_rewrite.add_argument("--out", type=Path, default=None, help="Output file (default: print to stdout)")
  cmd_rewrite.add_argument(
    "--reference",
    dest="references",
    action="append",
    default=[],
    help="Extra file, directory or module name used only to resolve symbols (repeatable)",
  )
  cmd_rewrite.add_argument(
    "--exclude",
    dest="excluded_types",
    action="append",
    default=[],
    help="Fully-qualified type whose methods are never rewritten (repeatable)",
  )
  cmd_rewrite.add_argument("--async-suffix", default=None, help="Suffix of the cancellable variant (default: _async)")
  cmd_rewrite.add_argument(
    "--forwarding-suffix", default=None, help="Suffix of the forwarding variant (default: _async_nocancel)"
  )
  cmd_rewrite.add_argument("-v", "--verbose", action="store_true", help="Show debug output")

  args = parser.parse_args(argv)

  if args.command == "rewrite":
    return handle_rewrite(
      paths=args.paths,
      output_path=args.out,
      references=args.references,
      excluded_types=args.excluded_types,
      async_suffix=args.async_suffix,
      forwarding_suffix=args.forwarding_suffix,
      verbose=args.verbose,
    )

  return 1
