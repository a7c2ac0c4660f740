"""
Tests for the runtime helpers shipped with the package: the marker and the
cancellation primitives.
"""

import asyncio

import pytest

from async_rewriter import CancellationToken, CancellationTokenSource, rewrite_async
from async_rewriter.markers import MARKER_ATTRIBUTE


def test_bare_marker():
  @rewrite_async
  def f(x):
    return x + 1

  assert f(1) == 2
  assert getattr(f, MARKER_ATTRIBUTE) == {"force_public": False}


@pytest.mark.parametrize(
  "decorator, expected",
  [
    (rewrite_async(), False),
    (rewrite_async(True), True),
    (rewrite_async(force_public=True), True),
    (rewrite_async(False, force_public=True), True),
  ],
)
def test_marker_arguments(decorator, expected):
  @decorator
  def _g():
    return "ok"

  assert _g() == "ok"
  assert getattr(_g, MARKER_ATTRIBUTE)["force_public"] is expected


def test_none_token_never_cancels():
  token = CancellationToken.NONE

  assert not token.can_be_cancelled
  assert not token.is_cancellation_requested
  token.raise_if_cancellation_requested()
  token.register(lambda: pytest.fail("callback on NONE"))
  assert repr(token) == "CancellationToken.NONE"


def test_source_cancel_runs_callbacks_once():
  source = CancellationTokenSource()
  calls = []
  source.token.register(lambda: calls.append("a"))
  source.token.register(lambda: calls.append("b"))

  assert source.token.can_be_cancelled
  assert not source.token.is_cancellation_requested

  source.cancel()
  source.cancel()

  assert calls == ["a", "b"]
  assert source.token.is_cancellation_requested
  assert repr(source.token) == "CancellationToken(cancelled=True)"


def test_register_after_cancel_runs_immediately():
  source = CancellationTokenSource()
  source.cancel()
  calls = []

  source.token.register(lambda: calls.append(1))

  assert calls == [1]


def test_raise_if_cancellation_requested_inside_coroutine():
  source = CancellationTokenSource()

  async def work(token: CancellationToken) -> int:
    token.raise_if_cancellation_requested()
    return 1

  assert asyncio.run(work(source.token)) == 1
  source.cancel()
  with pytest.raises(asyncio.CancelledError):
    asyncio.run(work(source.token))
