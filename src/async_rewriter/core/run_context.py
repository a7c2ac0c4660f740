"""
Per-run immutable state shared by all rewrite components.
"""

from dataclasses import dataclass
from typing import FrozenSet

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.counterparts import CounterpartTable
from async_rewriter.core.hierarchy import BaseMemberTable
from async_rewriter.semantics.symbols import TypeSymbol


@dataclass(frozen=True)
class RunContext:
  """
  Everything fixed at the start of a run.

  Attributes:
      config: The run configuration.
      cancellation_type: The resolved ``CancellationToken`` class.
      excluded: Types whose methods are never rewritten.
      counterparts: Method -> async counterpart table.
      hierarchy: Base member table for override decisions.
  """

  config: RuntimeConfig
  cancellation_type: TypeSymbol
  excluded: FrozenSet[TypeSymbol]
  counterparts: CounterpartTable
  hierarchy: BaseMemberTable

  def is_excluded(self, symbol: TypeSymbol) -> bool:
    return symbol in self.excluded
