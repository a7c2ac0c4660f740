"""
Async Counterpart Table.

A pre-pass that maps every method known to the semantic context to the async
method a call to it should be rewritten to, or to nothing.

Resolution order per method:

1.  **Marked**: the method gets its own generated cancellable variant. The
    cancellation argument goes at its leading required parameter count.
2.  **Excluded**: the containing type is in the exclusion set; no counterpart.
3.  **Cancellable match**: the containing type itself declares
    ``name + async_suffix`` taking exactly one extra parameter of the
    cancellation type, and removing it leaves an equal parameter list.
4.  **Plain match**: the containing type declares ``name + async_suffix`` with
    an equal parameter list and no cancellation parameter.
5.  Otherwise no counterpart; the call stays as is.

Parameter lists are compared by name and canonical type, position by
position. Receivers (``self``/``cls`` and extension receivers) are never part
of the compared lists.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Optional

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.signature import generated_names
from async_rewriter.semantics.symbols import (
  MethodSymbol,
  ParameterKind,
  ParameterSymbol,
  TypeSymbol,
  parameters_match,
)

CancellationPredicate = Callable[[ParameterSymbol], bool]


@dataclass(frozen=True)
class Counterpart:
  """
  The async method a call is redirected to.

  Attributes:
      name: Name of the async method.
      cancellation_index: Argument position of the cancellation token, or None
          when the counterpart takes no token.
      parameter_name: Name of the token parameter, used when it must be passed
          by keyword.
      keyword_only: True when the token parameter is keyword-only.
      target: The existing async method, or None for a generated variant.
  """

  name: str
  cancellation_index: Optional[int] = None
  parameter_name: Optional[str] = None
  keyword_only: bool = False
  target: Optional[MethodSymbol] = None

  @property
  def is_cancellable(self) -> bool:
    return self.cancellation_index is not None


def _match_cancellable(
  method: MethodSymbol, candidate: MethodSymbol, is_cancellation: CancellationPredicate
) -> Optional[Counterpart]:
  params = candidate.parameters
  if len(params) != len(method.parameters) + 1:
    return None
  slots = [i for i, p in enumerate(params) if is_cancellation(p)]
  if len(slots) != 1:
    return None
  index = slots[0]
  remaining = params[:index] + params[index + 1 :]
  if not parameters_match(remaining, method.parameters):
    return None
  token = params[index]
  return Counterpart(
    name=candidate.name,
    cancellation_index=index,
    parameter_name=token.name,
    keyword_only=token.kind == ParameterKind.KEYWORD_ONLY,
    target=candidate,
  )


def _match_plain(
  method: MethodSymbol, candidate: MethodSymbol, is_cancellation: CancellationPredicate
) -> Optional[Counterpart]:
  params = candidate.parameters
  if any(is_cancellation(p) for p in params):
    return None
  if not parameters_match(params, method.parameters):
    return None
  return Counterpart(name=candidate.name, target=candidate)


class CounterpartTable:
  """
  Immutable mapping from method symbols to their async counterparts.
  """

  def __init__(self, entries: Dict[MethodSymbol, Optional[Counterpart]]) -> None:
    self._entries = dict(entries)

  @classmethod
  def build(
    cls,
    methods: Iterable[MethodSymbol],
    excluded: FrozenSet[TypeSymbol],
    is_cancellation: CancellationPredicate,
    config: RuntimeConfig,
  ) -> "CounterpartTable":
    """
    Resolves the counterpart of every method once.

    Args:
        methods: All methods of the semantic context.
        excluded: Types whose methods are never redirected.
        is_cancellation: Tells whether a parameter has the cancellation type.
        config: Run configuration (suffixes, parameter name).

    Returns:
        CounterpartTable: The resolved table.
    """
    entries: Dict[MethodSymbol, Optional[Counterpart]] = {}
    for method in methods:
      entries[method] = cls._resolve(method, excluded, is_cancellation, config)
    return cls(entries)

  @staticmethod
  def _resolve(
    method: MethodSymbol,
    excluded: FrozenSet[TypeSymbol],
    is_cancellation: CancellationPredicate,
    config: RuntimeConfig,
  ) -> Optional[Counterpart]:
    if method.is_marked:
      cancellable_name, _ = generated_names(method, config)
      return Counterpart(
        name=cancellable_name,
        cancellation_index=method.required_count,
        parameter_name=config.cancellation_param_name,
      )

    if method.containing_type in excluded:
      return None

    candidates = method.containing_type.get_members(method.name + config.async_suffix)
    for candidate in candidates:
      found = _match_cancellable(method, candidate, is_cancellation)
      if found is not None:
        return found
    for candidate in candidates:
      found = _match_plain(method, candidate, is_cancellation)
      if found is not None:
        return found
    return None

  def get(self, method: MethodSymbol) -> Optional[Counterpart]:
    """
    Returns the counterpart of ``method``, or None when calls to it stay unchanged.
    """
    return self._entries.get(method)

  def __contains__(self, method: object) -> bool:
    return method in self._entries

  def __len__(self) -> int:
    return len(self._entries)
