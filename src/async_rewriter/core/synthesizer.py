"""
Method Synthesizer.

Produces the two async variants of a marked method:

*   **Forwarding variant** (``foo_async_nocancel``): a plain ``def`` returning
    ``Awaitable[T]`` that calls the cancellable variant with
    ``CancellationToken.NONE``.
*   **Cancellable variant** (``foo_async``): an ``async def`` taking a
    ``cancellation_token`` at the method's boundary index, whose body is the
    original body passed through the Call Rewriter.

Decorators are filtered on the way: the marker and decorators with runtime
behaviour are dropped, structural ones (``staticmethod``, ``classmethod``,
``abstractmethod``) are kept, and ``override`` is kept only when the generated
method really overrides a base member.
"""

from dataclasses import dataclass
from typing import List, Optional

import libcst as cst

from async_rewriter.core.call_rewriter import rewrite_body
from async_rewriter.core.run_context import RunContext
from async_rewriter.core.signature import (
  cancellation_param,
  forwarding_arguments,
  generated_names,
  has_implicit_receiver,
  insert_parameter,
  receiver_expression,
)
from async_rewriter.semantics.context import SemanticContext, SourceUnit
from async_rewriter.semantics.symbols import MethodSymbol
from async_rewriter.utils.console import log_info
from async_rewriter.utils.cst_utils import decorator_name

KEPT_DECORATORS = frozenset({"staticmethod", "classmethod", "abstractmethod"})
OVERRIDE_DECORATORS = frozenset({"override"})


@dataclass
class GeneratedMethod:
  """
  One synthesized declaration.

  Attributes:
      source: The marked method it was generated from.
      name: The generated name.
      node: The generated ``FunctionDef``.
      cancellation_index: Index of the token parameter (receiver excluded);
          None for the forwarding variant.
  """

  source: MethodSymbol
  name: str
  node: cst.FunctionDef
  cancellation_index: Optional[int] = None

  @property
  def is_cancellable(self) -> bool:
    return self.cancellation_index is not None


def _awaitable_of(annotation: Optional[cst.Annotation]) -> Optional[cst.Annotation]:
  if annotation is None:
    return None
  return cst.Annotation(
    annotation=cst.Subscript(
      value=cst.Name("Awaitable"),
      slice=[cst.SubscriptElement(slice=cst.Index(value=annotation.annotation))],
    )
  )


class MethodSynthesizer:
  """
  Generates the async variants of marked methods for one run.
  """

  def __init__(self, context: SemanticContext, run: RunContext) -> None:
    self.context = context
    self.run = run

  def synthesize(self, method: MethodSymbol, unit: SourceUnit) -> List[GeneratedMethod]:
    """
    Generates both variants of a marked method.

    Args:
        method: The marked method (must carry a declaration node).
        unit: The unit that declares it.

    Returns:
        List[GeneratedMethod]: ``[forwarding, cancellable]``.
    """
    cancellable_name, forwarding_name = generated_names(method, self.run.config)
    index = method.required_count
    forwarding = self._build_forwarding(method, forwarding_name, cancellable_name, index)
    cancellable = self._build_cancellable(method, cancellable_name, index, unit)
    log_info(f"Generated '{forwarding.name}' and '{cancellable.name}' for '{method.qualified_name}'")
    return [forwarding, cancellable]

  def filter_decorators(self, method: MethodSymbol, generated_name: str) -> List[cst.Decorator]:
    """
    Keeps structural decorators and, when justified, ``override``.

    Args:
        method: The marked method.
        generated_name: Name of the variant the decorators are for.

    Returns:
        List[cst.Decorator]: Decorators of the generated method.
    """
    kept: List[cst.Decorator] = []
    for decorator in method.node.decorators:
      last = decorator_name(decorator).rsplit(".", 1)[-1]
      if last in KEPT_DECORATORS:
        kept.append(decorator.with_changes(leading_lines=[]))
      elif last in OVERRIDE_DECORATORS and self._overrides(method, generated_name):
        kept.append(decorator.with_changes(leading_lines=[]))
    return kept

  def _overrides(self, method: MethodSymbol, generated_name: str) -> bool:
    owner = method.containing_type
    if owner.is_module:
      return False
    return self.run.hierarchy.overrides(owner, generated_name, method.name)

  def _build_forwarding(self, method: MethodSymbol, name: str, target: str, index: int) -> GeneratedMethod:
    node = method.node
    receiver = receiver_expression(method, node.params)
    callee: cst.BaseExpression = cst.Name(target)
    if receiver is not None:
      callee = cst.Attribute(value=receiver, attr=cst.Name(target))

    none_token = cst.Attribute(value=cst.Name("CancellationToken"), attr=cst.Name("NONE"))
    call = cst.Call(
      func=callee,
      args=forwarding_arguments(node.params, has_implicit_receiver(method), index, none_token),
    )
    body = cst.IndentedBlock(body=[cst.SimpleStatementLine(body=[cst.Return(value=call)])])

    generated = cst.FunctionDef(
      name=cst.Name(name),
      params=node.params,
      body=body,
      decorators=self.filter_decorators(method, name),
      returns=_awaitable_of(node.returns),
    )
    return GeneratedMethod(source=method, name=name, node=generated)

  def _build_cancellable(self, method: MethodSymbol, name: str, index: int, unit: SourceUnit) -> GeneratedMethod:
    node = method.node
    offset = 1 if has_implicit_receiver(method) else 0
    params = insert_parameter(node.params, index + offset, cancellation_param(self.run.config))

    generated = node.with_changes(
      name=cst.Name(name),
      params=params,
      body=rewrite_body(node.body, self.context, unit, self.run),
      decorators=self.filter_decorators(method, name),
      asynchronous=cst.Asynchronous(),
      leading_lines=[],
      lines_after_decorators=[],
    )
    return GeneratedMethod(source=method, name=name, node=generated, cancellation_index=index)
