"""
Marker Resolver.

Finds marked declarations and establishes the immutable per-run state:
the cancellation type, the exclusion set, the counterpart table and the base
member table. Configuration problems are reported here, before any code is
generated.
"""

from typing import FrozenSet, Iterable, List, Optional, Set

import libcst as cst

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.counterparts import CounterpartTable
from async_rewriter.core.hierarchy import BaseMemberTable
from async_rewriter.core.run_context import RunContext
from async_rewriter.errors import ConfigurationError
from async_rewriter.semantics.context import SemanticContext, SourceUnit
from async_rewriter.semantics.symbols import MethodSymbol, ParameterSymbol, TypeSymbol
from async_rewriter.utils.console import log_debug

CANCELLATION_TYPE_NAME = "async_rewriter.cancellation.CancellationToken"

# In-memory streams: their blocking-looking calls never wait on I/O.
BUILTIN_EXCLUDED_TYPES = (
  "io.TextIOBase",
  "io.StringIO",
  "io.BytesIO",
)


class _MarkedMethodFinder(cst.CSTVisitor):
  """
  Collects marked declarations in source order. Functions nested in function
  bodies are not declarations of the module and are skipped.
  """

  def __init__(self, context: SemanticContext) -> None:
    self.context = context
    self.found: List[MethodSymbol] = []

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    symbol = self.context.get_declared_symbol(node)
    if symbol is not None and symbol.is_marked:
      self.found.append(symbol)
    return False


def find_marked_methods(context: SemanticContext, unit: SourceUnit) -> List[MethodSymbol]:
  """
  Lists the marked methods and functions declared in a source unit.

  Args:
      context: The semantic context the unit belongs to.
      unit: The source unit.

  Returns:
      List[MethodSymbol]: Marked declarations, in source order.
  """
  finder = _MarkedMethodFinder(context)
  unit.tree.visit(finder)
  return finder.found


class MarkerResolver:
  """
  Builds the ``RunContext`` of a rewrite run.
  """

  def __init__(self, context: SemanticContext, config: RuntimeConfig) -> None:
    self.context = context
    self.config = config

  def resolve_cancellation_type(self) -> TypeSymbol:
    """
    Raises:
        ConfigurationError: If ``CancellationToken`` is not part of the context.
    """
    found = self.context.get_type(CANCELLATION_TYPE_NAME)
    if found is None:
      raise ConfigurationError(
        f"Cancellation type '{CANCELLATION_TYPE_NAME}' could not be resolved",
        type_name=CANCELLATION_TYPE_NAME,
      )
    return found

  def resolve_exclusions(self, excluded_types: Iterable[str]) -> FrozenSet[TypeSymbol]:
    """
    Resolves user-excluded names and unions them with the builtin exclusions.

    Args:
        excluded_types: Fully-qualified type names.

    Returns:
        FrozenSet[TypeSymbol]: The exclusion set.

    Raises:
        ConfigurationError: On the first user name that does not resolve.
    """
    resolved: Set[TypeSymbol] = set()
    for name in excluded_types:
      found = self.context.get_type(name)
      if found is None:
        raise ConfigurationError(f"Excluded type '{name}' could not be resolved", type_name=name)
      resolved.add(found)

    for name in BUILTIN_EXCLUDED_TYPES:
      found = self.context.get_type(name)
      if found is not None:
        resolved.add(found)
    return frozenset(resolved)

  def resolve(self, excluded_types: Optional[Iterable[str]] = None) -> RunContext:
    """
    Establishes the run context.

    Args:
        excluded_types: Names excluded in addition to ``config.excluded_types``.

    Returns:
        RunContext: The immutable run state.

    Raises:
        ConfigurationError: If the cancellation type or an excluded type is unknown.
    """
    cancellation_type = self.resolve_cancellation_type()
    excluded = self.resolve_exclusions([*self.config.excluded_types, *(excluded_types or [])])
    log_debug(f"Exclusion set: {sorted(t.qualified_name for t in excluded)}")

    index = self.context.index

    def is_cancellation(param: ParameterSymbol) -> bool:
      return index.type_from_annotation(param.type_name) is cancellation_type

    counterparts = CounterpartTable.build(self.context.methods(), excluded, is_cancellation, self.config)
    hierarchy = BaseMemberTable.build(self.context.types())
    return RunContext(
      config=self.config,
      cancellation_type=cancellation_type,
      excluded=excluded,
      counterparts=counterparts,
      hierarchy=hierarchy,
    )
