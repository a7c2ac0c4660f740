"""
Command handlers of the ``async-rewriter`` CLI.
"""

from async_rewriter.cli.handlers.rewrite import handle_rewrite

__all__ = ["handle_rewrite"]
