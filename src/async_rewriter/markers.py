"""
Rewrite Marker.

Decorate a synchronous method with ``@rewrite_async`` to have the rewriter
synthesize two async twins for it:

.. code-block:: python

    from async_rewriter import rewrite_async

    class Client:
      @rewrite_async
      def fetch(self, key: str) -> bytes:
        return self.transport.read(key)

      @rewrite_async(force_public=True)
      def _flush(self) -> None:
        self.transport.flush()

At runtime the decorator does nothing beyond tagging the function, so marked
code keeps working unchanged in synchronous callers.
"""

from typing import Any, Callable, Optional, TypeVar, Union, overload

F = TypeVar("F", bound=Callable[..., Any])

MARKER_NAME = "rewrite_async"
MARKER_ATTRIBUTE = "__rewrite_async__"


@overload
def rewrite_async(func: F) -> F: ...


@overload
def rewrite_async(func: bool = False, *, force_public: bool = False) -> Callable[[F], F]: ...


def rewrite_async(
  func: Union[F, bool, None] = None, *, force_public: Optional[bool] = None
) -> Union[F, Callable[[F], F]]:
  """
  Marks a method for async synthesis.

  Supports bare use (``@rewrite_async``), a positional flag
  (``@rewrite_async(True)``) and the keyword form
  (``@rewrite_async(force_public=True)``).

  Args:
      func: The decorated function, or the positional force-public flag.
      force_public: Whether generated methods lose their leading underscores.

  Returns:
      The function itself, or a decorator when called with arguments.
  """
  if callable(func):
    setattr(func, MARKER_ATTRIBUTE, {"force_public": bool(force_public)})
    return func

  flag = bool(force_public) if force_public is not None else bool(func)

  def decorator(inner: F) -> F:
    setattr(inner, MARKER_ATTRIBUTE, {"force_public": flag})
    return inner

  return decorator
