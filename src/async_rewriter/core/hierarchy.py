"""
Base Member Table.

Pre-computes, for every class, which member names its base classes define and
which of those are marked for rewriting. The synthesizer consults it to decide
whether a generated method keeps its ``@override`` decorator.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from async_rewriter.semantics.symbols import TypeSymbol


@dataclass(frozen=True)
class BaseMembers:
  names: FrozenSet[str] = frozenset()
  marked_names: FrozenSet[str] = frozenset()


class BaseMemberTable:
  """
  Member names declared along each class's base chain (the class itself excluded).
  """

  def __init__(self, entries: Dict[TypeSymbol, BaseMembers]) -> None:
    self._entries = dict(entries)

  @classmethod
  def build(cls, types: Iterable[TypeSymbol]) -> "BaseMemberTable":
    entries: Dict[TypeSymbol, BaseMembers] = {}
    for symbol in types:
      if symbol.is_module:
        continue
      names = set()
      marked = set()
      for base in symbol.mro()[1:]:
        for name, overloads in base.members.items():
          names.add(name)
          if any(m.is_marked for m in overloads):
            marked.add(name)
      entries[symbol] = BaseMembers(names=frozenset(names), marked_names=frozenset(marked))
    return cls(entries)

  def get(self, symbol: TypeSymbol) -> Optional[BaseMembers]:
    return self._entries.get(symbol)

  def overrides(self, symbol: TypeSymbol, generated_name: str, original_name: str) -> bool:
    """
    Decides whether a generated method overrides something in a base class.

    Args:
        symbol: The class the generated method belongs to.
        generated_name: Name of the generated method.
        original_name: Name of the marked method it was generated from.

    Returns:
        bool: True if a base defines ``generated_name``, or defines
        ``original_name`` under the marker (and so generates the same method).
    """
    entry = self._entries.get(symbol)
    if entry is None:
      return False
    return generated_name in entry.names or original_name in entry.marked_names
