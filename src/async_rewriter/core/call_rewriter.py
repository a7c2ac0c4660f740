"""
Call Rewriter.

Transforms the body of a cancellable variant. Each call expression whose
invoked method has an async counterpart becomes an ``await`` of that
counterpart, with the cancellation token threaded in at the counterpart's
cancellation position:

.. code-block:: python

    # before
    return self.fetch(key).decode()
    # after
    return (await self.fetch_async(key, cancellation_token)).decode()

libcst calls ``leave_Call`` bottom-up, so nested calls are rewritten
innermost first. Bindings are always looked up with the *original* node,
which is the node the semantic context bound.
"""

from typing import List, Optional, Sequence

import libcst as cst

from async_rewriter.core.counterparts import Counterpart
from async_rewriter.core.run_context import RunContext
from async_rewriter.core.signature import leading_positional_args
from async_rewriter.errors import UnsupportedExpressionShape
from async_rewriter.semantics.context import SemanticContext, SourceUnit
from async_rewriter.utils.console import log_debug, log_info
from async_rewriter.utils.cst_utils import make_arg, node_to_code

# await is invalid (or changes meaning) inside these.
_OPAQUE_SCOPES = (cst.FunctionDef, cst.Lambda, cst.ClassDef, cst.GeneratorExp)


def rename_callee(func: cst.BaseExpression, new_name: str) -> cst.BaseExpression:
  """
  Replaces the invoked name of a callee expression.

  Supports ``name``, ``receiver.name`` and a subscripted form of either
  (``name[T]``).

  Args:
      func: The callee expression.
      new_name: The counterpart name.

  Returns:
      cst.BaseExpression: The renamed callee.

  Raises:
      UnsupportedExpressionShape: For any other callee shape.
  """
  if isinstance(func, cst.Name):
    return func.with_changes(value=new_name)
  if isinstance(func, cst.Attribute):
    return func.with_changes(attr=func.attr.with_changes(value=new_name))
  if isinstance(func, cst.Subscript) and isinstance(func.value, (cst.Name, cst.Attribute)):
    return func.with_changes(value=rename_callee(func.value, new_name))
  raise UnsupportedExpressionShape(type(func).__name__, node_to_code(func))


def insert_cancellation_argument(
  args: Sequence[cst.Arg],
  counterpart: Counterpart,
  token_name: str,
  explicit_receiver: bool = False,
) -> List[cst.Arg]:
  """
  Inserts the cancellation token into a call's argument list.

  The token goes positionally at the counterpart's index when every argument
  before that index is passed positionally. Otherwise (keywords or star
  arguments in the way, or a keyword-only token parameter) it is appended as
  ``param=token``.

  Args:
      args: The original arguments.
      counterpart: The resolved counterpart.
      token_name: Name of the enclosing method's token parameter.
      explicit_receiver: True if the receiver is the first argument.

  Returns:
      List[cst.Arg]: New arguments (unchanged if the counterpart takes no token).
  """
  result = list(args)
  if counterpart.cancellation_index is None:
    return result

  index = counterpart.cancellation_index + (1 if explicit_receiver else 0)
  if not counterpart.keyword_only and index <= leading_positional_args(result):
    result.insert(index, make_arg(cst.Name(token_name)))
  else:
    keyword = counterpart.parameter_name or token_name
    result.append(make_arg(cst.Name(token_name), keyword=keyword))
  return result


class CallRewriter(cst.CSTTransformer):
  """
  Rewrites the calls of one method body.

  Attributes:
      rewritten (int): Number of calls turned into awaits.
  """

  def __init__(self, context: SemanticContext, unit: SourceUnit, run: RunContext) -> None:
    self.context = context
    self.unit = unit
    self.run = run
    self.rewritten = 0
    self._ancestors: List[cst.CSTNode] = []

  def on_visit(self, node: cst.CSTNode) -> bool:
    self._ancestors.append(node)
    if isinstance(node, _OPAQUE_SCOPES):
      return False
    return super().on_visit(node)

  def on_leave(self, original_node: cst.CSTNode, updated_node: cst.CSTNode):
    try:
      if isinstance(original_node, _OPAQUE_SCOPES):
        return updated_node
      return super().on_leave(original_node, updated_node)
    finally:
      self._ancestors.pop()

  def _parent(self) -> Optional[cst.CSTNode]:
    # Top of the stack is the node being left.
    return self._ancestors[-2] if len(self._ancestors) > 1 else None

  def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
    binding = self.context.get_binding(self.unit, original_node)
    if binding is None:
      log_debug(f"Unresolved call left unchanged: {node_to_code(original_node.func)}")
      return updated_node

    counterpart = self.run.counterparts.get(binding.method)
    if counterpart is None:
      log_debug(f"No async counterpart for '{binding.method.qualified_name}'")
      return updated_node

    call = updated_node.with_changes(
      func=rename_callee(updated_node.func, counterpart.name),
      args=insert_cancellation_argument(
        updated_node.args,
        counterpart,
        self.run.config.cancellation_param_name,
        explicit_receiver=binding.explicit_receiver,
      ),
    )
    self.rewritten += 1
    log_info(f"Rewrote call to '{binding.method.qualified_name}' as await '{counterpart.name}'")

    awaited = cst.Await(expression=call)
    parent = self._parent()
    if not isinstance(parent, (cst.BaseSmallStatement, cst.BaseCompoundStatement)):
      awaited = awaited.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])
    return awaited


def rewrite_body(
  body: cst.BaseSuite, context: SemanticContext, unit: SourceUnit, run: RunContext
) -> cst.BaseSuite:
  """
  Applies the call rewriter to a method body.

  Args:
      body: The original body (never mutated).
      context: Semantic context holding the call bindings.
      unit: The unit the body belongs to.
      run: The run state.

  Returns:
      cst.BaseSuite: The rewritten body.
  """
  return body.visit(CallRewriter(context, unit, run))
