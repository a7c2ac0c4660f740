"""
CLI Subpackage.

Argument parsing and command handlers of the ``async-rewriter`` command line.
"""
