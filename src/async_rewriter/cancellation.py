"""
Cooperative Cancellation Primitives.

``CancellationToken`` is the well-known type threaded through every generated
cancellable method. Generated forwarding methods pass ``CancellationToken.NONE``,
a token that can never be cancelled.
"""

import asyncio
from typing import Callable, List


class CancellationToken:
  """
  A read-only view of a cancellation request.

  Tokens are created by a :class:`CancellationTokenSource`; user code observes
  them via :attr:`is_cancellation_requested` or
  :meth:`raise_if_cancellation_requested`.
  """

  NONE: "CancellationToken"

  def __init__(self, source: "CancellationTokenSource | None" = None):
    self._source = source

  @property
  def can_be_cancelled(self) -> bool:
    return self._source is not None

  @property
  def is_cancellation_requested(self) -> bool:
    return self._source is not None and self._source.is_cancellation_requested

  def raise_if_cancellation_requested(self) -> None:
    """
    Raises ``asyncio.CancelledError`` if cancellation has been requested.
    """
    if self.is_cancellation_requested:
      raise asyncio.CancelledError()

  def register(self, callback: Callable[[], None]) -> None:
    """
    Registers a callback run once when cancellation is requested.

    Callbacks registered after cancellation run immediately. Registering on
    ``CancellationToken.NONE`` is a no-op.

    Args:
        callback: Zero-argument callable.
    """
    if self._source is None:
      return
    self._source._register(callback)

  def __repr__(self) -> str:
    if self._source is None:
      return "CancellationToken.NONE"
    return f"CancellationToken(cancelled={self.is_cancellation_requested})"


CancellationToken.NONE = CancellationToken()


class CancellationTokenSource:
  """
  Owner side of a cancellation request.
  """

  def __init__(self) -> None:
    self._cancelled = False
    self._callbacks: List[Callable[[], None]] = []
    self.token = CancellationToken(self)

  @property
  def is_cancellation_requested(self) -> bool:
    return self._cancelled

  def cancel(self) -> None:
    """
    Requests cancellation and runs registered callbacks in registration order.
    """
    if self._cancelled:
      return
    self._cancelled = True
    callbacks, self._callbacks = self._callbacks, []
    for callback in callbacks:
      callback()

  def _register(self, callback: Callable[[], None]) -> None:
    if self._cancelled:
      callback()
    else:
      self._callbacks.append(callback)
