"""
async-rewriter Package.

Synthesizes asynchronous twins of synchronous Python methods. Mark a method
with ``@rewrite_async`` and the rewriter generates, into a separate module:

*   ``name_async(..., cancellation_token)``: an ``async def`` whose body is the
    original body with every call that has an async counterpart awaited.
*   ``name_async_nocancel(...)``: a forwarding method calling the above with
    ``CancellationToken.NONE``.

Usage
-----

Marking Code
^^^^^^^^^^^^

.. code-block:: python

    from async_rewriter import rewrite_async

    class Repository:
      @rewrite_async
      def load(self, key: str) -> bytes:
        return self.store.read(key)

Generating
^^^^^^^^^^

.. code-block:: python

    import async_rewriter

    code = async_rewriter.rewrite_and_merge(["src/myapp"])
    Path("src/myapp/_async.py").write_text(code)

Or from the command line: ``async-rewriter rewrite src/myapp --out src/myapp/_async.py``.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

from async_rewriter.cancellation import CancellationToken, CancellationTokenSource
from async_rewriter.config import RuntimeConfig
from async_rewriter.core.engine import RewriteEngine, RewriteResult
from async_rewriter.errors import (
  AsyncRewriterError,
  ConfigurationError,
  MissingSemanticBinding,
  UnsupportedExpressionShape,
)
from async_rewriter.markers import rewrite_async

__version__ = "0.1.0"


def rewrite_and_merge(
  paths: Sequence[Union[str, Path]],
  references: Optional[Sequence[str]] = None,
  excluded_types: Optional[Sequence[str]] = None,
  config: Optional[RuntimeConfig] = None,
) -> str:
  """
  Generates the async variants of every marked method under ``paths``.

  This is a convenience wrapper around ``RewriteEngine.rewrite_paths``.

  Args:
      paths: Source files or directories to rewrite.
      references: Extra files, directories or module names used only to
          resolve symbols (e.g. a library whose ``*_async`` methods are called).
      excluded_types: Fully-qualified names of types whose methods are never rewritten.
      config: Run configuration. Defaults to ``RuntimeConfig()``.

  Returns:
      str: The merged generated module (empty if nothing is marked).

  Raises:
      ConfigurationError: If an excluded type does not resolve.
      UnsupportedExpressionShape: If a rewritable call has an unsupported callee.
  """
  engine = RewriteEngine(config=config)
  return engine.rewrite_paths(paths, references=references, excluded_types=excluded_types)


__all__ = [
  "AsyncRewriterError",
  "CancellationToken",
  "CancellationTokenSource",
  "ConfigurationError",
  "MissingSemanticBinding",
  "RewriteEngine",
  "RewriteResult",
  "RuntimeConfig",
  "UnsupportedExpressionShape",
  "__version__",
  "rewrite_and_merge",
  "rewrite_async",
]
