"""
Import Merging.

Imports of generated units are deduplicated by module name. Two imports of
the same module are the same import regardless of any other textual
difference:

*   ``import m`` statements collapse to the first one seen for ``m``
    (an alias on a later one is dropped).
*   ``from m import ...`` statements collapse to one statement per ``m``,
    importing the union of the names in first-seen order.
*   ``from __future__`` imports are emitted first.

Relative imports are made absolute against the package of the unit they came
from, since the merged output does not live next to its sources.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import libcst as cst

from async_rewriter.utils.cst_utils import create_dotted_name, get_full_name

ImportNode = Union[cst.Import, cst.ImportFrom]
_FUTURE = "__future__"
_STAR = "*"


def absolutize_import(node: ImportNode, package: str) -> ImportNode:
  """
  Rewrites a relative ``from`` import to an absolute one.

  Args:
      node: The import statement.
      package: Dotted package the import is relative to.

  Returns:
      The absolute import (unchanged if already absolute).
  """
  if not isinstance(node, cst.ImportFrom) or not node.relative:
    return node
  parts = package.split(".") if package else []
  level = len(node.relative)
  if level > 1:
    parts = parts[: max(len(parts) - (level - 1), 0)]
  if node.module is not None:
    parts.append(get_full_name(node.module))
  if not parts:
    return node
  return node.with_changes(relative=[], module=create_dotted_name(".".join(parts)))


def top_level_imports(module: cst.Module) -> List[ImportNode]:
  """
  Returns the import statements at the top level of a module, in order.
  """
  found: List[ImportNode] = []
  for stmt in module.body:
    if isinstance(stmt, cst.SimpleStatementLine):
      for small in stmt.body:
        if isinstance(small, (cst.Import, cst.ImportFrom)):
          found.append(small)
  return found


class ImportMerger:
  """
  Accumulates import statements and emits them deduplicated by module name.
  """

  def __init__(self) -> None:
    self._order: List[Tuple[str, str]] = []
    self._plain: Dict[str, cst.ImportAlias] = {}
    self._from: Dict[str, List[Tuple[str, Optional[str]]]] = {}

  def add(self, node: ImportNode) -> None:
    """
    Records one import statement.

    Args:
        node: ``import ...`` or ``from ... import ...`` (must be absolute).
    """
    if isinstance(node, cst.Import):
      for alias in node.names:
        module = get_full_name(alias.name)
        if module not in self._plain:
          self._plain[module] = alias.with_changes(comma=cst.MaybeSentinel.DEFAULT)
          self._order.append(("import", module))
      return

    module = ("." * len(node.relative)) + (get_full_name(node.module) if node.module else "")
    if module not in self._from:
      self._from[module] = []
      self._order.append(("from", module))
    names = self._from[module]
    if isinstance(node.names, cst.ImportStar):
      entries = [(_STAR, None)]
    else:
      entries = []
      for alias in node.names:
        asname = None
        if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
          asname = alias.asname.name.value
        entries.append((get_full_name(alias.name), asname))
    for entry in entries:
      if entry not in names:
        names.append(entry)

  def add_all(self, nodes: Iterable[ImportNode]) -> None:
    for node in nodes:
      self.add(node)

  def statements(self) -> List[cst.SimpleStatementLine]:
    """
    Renders the merged imports, ``__future__`` first, otherwise in first-seen order.

    Returns:
        List[cst.SimpleStatementLine]: One statement line per module.
    """
    ordered = sorted(self._order, key=lambda item: item[1] != _FUTURE)
    lines: List[cst.SimpleStatementLine] = []
    for kind, module in ordered:
      if kind == "import":
        node: ImportNode = cst.Import(names=[self._plain[module]])
      else:
        node = self._render_from(module, self._from[module])
      lines.append(cst.SimpleStatementLine(body=[node]))
    return lines

  @staticmethod
  def _render_from(module: str, names: Sequence[Tuple[str, Optional[str]]]) -> cst.ImportFrom:
    stripped = module.lstrip(".")
    relative = [cst.Dot() for _ in range(len(module) - len(stripped))]
    module_node = create_dotted_name(stripped) if stripped else None
    if any(name == _STAR for name, _ in names):
      return cst.ImportFrom(module=module_node, relative=relative, names=cst.ImportStar())
    aliases = [
      cst.ImportAlias(
        name=create_dotted_name(name),
        asname=cst.AsName(name=cst.Name(asname)) if asname else None,
      )
      for name, asname in names
    ]
    return cst.ImportFrom(module=module_node, relative=relative, names=aliases)
