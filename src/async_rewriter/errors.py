"""
Fatal Error Types.

Every error defined here aborts the whole rewrite run. The engine never emits a
partially rewritten unit: callers either receive the complete merged output or
one of these exceptions.

A call that has no async counterpart is *not* an error; it is simply left
unchanged by the Call Rewriter.
"""

from pathlib import Path
from typing import Optional, Union


class AsyncRewriterError(Exception):
  """
  Base class for all fatal rewrite failures.
  """


class ConfigurationError(AsyncRewriterError, ValueError):
  """
  Raised when run configuration cannot be resolved against the semantic context.

  Typically an excluded type name that does not resolve to a known type.

  Attributes:
      type_name (Optional[str]): The offending fully-qualified name, if any.
  """

  def __init__(self, message: str, type_name: Optional[str] = None):
    super().__init__(message)
    self.type_name = type_name


class UnsupportedExpressionShape(AsyncRewriterError):
  """
  Raised when a rewritable call uses a callee form the Call Rewriter cannot rename.

  Attributes:
      node_type (str): The libcst node class name of the callee expression.
  """

  def __init__(self, node_type: str, code: str = ""):
    detail = f" in '{code}'" if code else ""
    super().__init__(f"Unsupported callee expression type '{node_type}'{detail}")
    self.node_type = node_type


class MissingSemanticBinding(AsyncRewriterError):
  """
  Raised when a source unit handed to the engine is not part of the semantic context.

  Attributes:
      path (str): Path of the unbound unit.
  """

  def __init__(self, path: Union[str, Path]):
    super().__init__(f"Source unit '{path}' is not bound in the provided semantic context")
    self.path = str(path)
