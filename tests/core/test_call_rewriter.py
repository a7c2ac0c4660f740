"""
Tests for the Call Rewriter.

Verifies:
1. Callee renaming for names, attributes and subscripted callees.
2. Token insertion: positional, appended keyword, keyword-only, explicit receiver.
3. Nested calls are rewritten innermost first with correct parenthesization.
4. Calls inside nested functions, lambdas and generator expressions stay synchronous.
5. Unresolved calls and calls without counterparts stay unchanged.
"""

from unittest.mock import patch

import libcst as cst
import pytest

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.call_rewriter import CallRewriter, insert_cancellation_argument, rename_callee
from async_rewriter.core.counterparts import Counterpart
from async_rewriter.core.marker_resolver import MarkerResolver
from async_rewriter.errors import UnsupportedExpressionShape
from async_rewriter.semantics.binder import CallBinding
from async_rewriter.utils.cst_utils import node_to_code

SOURCE = """
    from async_rewriter import CancellationToken, rewrite_async


    def f(x: int) -> int: ...


    async def f_async(x: int, cancellation_token: CancellationToken) -> int: ...


    def g(x: int) -> int: ...


    async def g_async(x: int, cancellation_token: CancellationToken) -> int: ...


    def slow(x: int, *, mode: str = "r") -> int: ...


    async def slow_async(x: int, *, mode: str = "r", token: CancellationToken) -> int: ...


    def get_handler(): ...


    class Worker:
      def step(self, n: int) -> int: ...

      async def step_async(self, n: int, cancellation_token: CancellationToken) -> int: ...

      def log(self, msg: str) -> None: ...

      @rewrite_async
      def nested(self, x: int) -> int:
        return f(g(x))

      @rewrite_async
      def statements(self, x: int) -> None:
        y = self.step(x)
        self.step(y)
        self.log("done")
        unknown.step(x)

      @rewrite_async
      def opaque(self, x: int) -> None:
        def helper():
          return f(x)

        callback = lambda: g(x)
        values = list(f(v) for v in range(x))
        return [f(v) for v in range(x)]

      @rewrite_async
      def explicit(self, other: "Worker") -> int:
        return Worker.step(other, 1)

      @rewrite_async
      def keywords(self, x: int) -> int:
        return slow(x, mode="w") + f(x=x)

      @rewrite_async
      def unsupported(self, x: int) -> None:
        get_handler()(x)
"""


@pytest.fixture
def worker(build_context):
  context = build_context({"pkg/worker.py": SOURCE})
  run = MarkerResolver(context, RuntimeConfig()).resolve()
  return context, run


def _rewrite(worker, name):
  context, run = worker
  method = context.index.types["pkg.worker.Worker"].get_members(name)[0]
  rewriter = CallRewriter(context, context.units[0], run)
  body = method.node.body.visit(rewriter)
  lines = [line.strip() for line in node_to_code(body).splitlines()]
  return [line for line in lines if line], rewriter


def _args(code):
  return list(cst.parse_expression(code).args)


def _render(args):
  return node_to_code(cst.Call(func=cst.Name("call"), args=args))


@pytest.mark.parametrize(
  "callee, expected",
  [
    ("read", "read_async"),
    ("self.client.read", "self.client.read_async"),
    ("read[int]", "read_async[int]"),
    ("pkg.Reader.read[int]", "pkg.Reader.read_async[int]"),
  ],
)
def test_rename_callee(callee, expected):
  renamed = rename_callee(cst.parse_expression(callee), "read_async")
  assert node_to_code(renamed) == expected


def test_rename_unsupported_callee():
  with pytest.raises(UnsupportedExpressionShape) as excinfo:
    rename_callee(cst.parse_expression("get_handler()"), "x_async")

  assert excinfo.value.node_type == "Call"
  assert "get_handler()" in str(excinfo.value)


def test_insert_positional_token():
  counterpart = Counterpart(name="read_async", cancellation_index=1, parameter_name="cancellation_token")
  args = insert_cancellation_argument(_args("call(a, b)"), counterpart, "ct")

  assert _render(args) == "call(a, ct, b)"


def test_insert_token_at_end():
  counterpart = Counterpart(name="read_async", cancellation_index=2, parameter_name="cancellation_token")
  args = insert_cancellation_argument(_args("call(a, b)"), counterpart, "ct")

  assert _render(args) == "call(a, b, ct)"


def test_insert_token_after_explicit_receiver():
  counterpart = Counterpart(name="read_async", cancellation_index=1, parameter_name="cancellation_token")
  args = insert_cancellation_argument(_args("call(obj, a)"), counterpart, "ct", explicit_receiver=True)

  assert _render(args) == "call(obj, a, ct)"


def test_keyword_arguments_force_keyword_token():
  counterpart = Counterpart(name="read_async", cancellation_index=1, parameter_name="cancellation_token")
  args = insert_cancellation_argument(_args("call(a=1, b=2)"), counterpart, "ct")

  assert _render(args) == "call(a=1, b=2, cancellation_token=ct)"


def test_keyword_only_token():
  counterpart = Counterpart(name="read_async", cancellation_index=0, parameter_name="token", keyword_only=True)
  args = insert_cancellation_argument(_args("call()"), counterpart, "ct")

  assert _render(args) == "call(token=ct)"


def test_plain_counterpart_takes_no_token():
  counterpart = Counterpart(name="read_async")
  args = insert_cancellation_argument(_args("call(a)"), counterpart, "ct")

  assert _render(args) == "call(a)"


def test_nested_calls(worker):
  lines, rewriter = _rewrite(worker, "nested")

  assert lines == ["return await f_async((await g_async(x, cancellation_token)), cancellation_token)"]
  assert rewriter.rewritten == 2


def test_statement_level_awaits_have_no_parens(worker):
  lines, rewriter = _rewrite(worker, "statements")

  assert lines == [
    "y = await self.step_async(x, cancellation_token)",
    "await self.step_async(y, cancellation_token)",
    'self.log("done")',
    "unknown.step(x)",
  ]
  assert rewriter.rewritten == 2


def test_opaque_scopes_untouched(worker):
  lines, rewriter = _rewrite(worker, "opaque")

  assert "return f(x)" in lines
  assert "callback = lambda: g(x)" in lines
  assert "values = list(f(v) for v in range(x))" in lines
  assert "return [(await f_async(v, cancellation_token)) for v in range(x)]" in lines
  assert rewriter.rewritten == 1


def test_explicit_receiver_call(worker):
  lines, _ = _rewrite(worker, "explicit")

  assert lines == ["return await Worker.step_async(other, 1, cancellation_token)"]


def test_keyword_calls(worker):
  lines, _ = _rewrite(worker, "keywords")

  assert lines == [
    'return (await slow_async(x, mode="w", token=cancellation_token)) '
    "+ (await f_async(x=x, cancellation_token=cancellation_token))"
  ]


def test_unsupported_callee_is_fatal(worker):
  context, run = worker
  f_method = context.index.types["pkg.worker"].get_members("f")[0]
  binding = CallBinding(f_method)

  # Bind the outer call of get_handler()(x) as if its callee were rewritable.
  def fake_binding(unit, call):
    return binding if isinstance(call.func, cst.Call) else None

  with patch.object(context, "get_binding", side_effect=fake_binding):
    with pytest.raises(UnsupportedExpressionShape) as excinfo:
      _rewrite(worker, "unsupported")

  assert excinfo.value.node_type == "Call"
