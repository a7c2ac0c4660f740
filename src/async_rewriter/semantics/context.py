"""
Semantic Context.

The read-only compilation view the rewrite engine works against. Built once
per run from the source files to rewrite plus reference files that only
contribute symbols, it answers three questions:

*   Which ``MethodSymbol`` does a declaration node declare?
*   Which ``MethodSymbol`` does a call expression invoke?
*   Which ``TypeSymbol`` does a fully-qualified name denote?
"""

import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

import libcst as cst

from async_rewriter.semantics.binder import CallBinding, bind_calls
from async_rewriter.semantics.collector import ModuleInfo, collect_module
from async_rewriter.semantics.index import SymbolIndex
from async_rewriter.semantics.symbols import MethodSymbol, TypeSymbol
from async_rewriter.utils.console import log_debug, log_warning

_PACKAGE_DIR = Path(__file__).resolve().parent.parent
BUILTIN_REFERENCES = ("__init__.py", "cancellation.py", "markers.py")

PathLike = Union[str, Path]


@dataclass(frozen=True)
class SourceUnit:
  """
  One parsed source file. The tree is never mutated.
  """

  path: Path
  module_name: str
  tree: cst.Module


def iter_source_files(paths: Iterable[PathLike]) -> List[Path]:
  """
  Expands files and directories into a sorted, de-duplicated list of ``.py`` files.

  Args:
      paths: Files or directories.

  Returns:
      List[Path]: Python files, directories expanded recursively.

  Raises:
      FileNotFoundError: If a path does not exist.
  """
  found: List[Path] = []
  seen: Set[Path] = set()
  for raw in paths:
    path = Path(raw)
    if path.is_dir():
      candidates = sorted(path.rglob("*.py"))
    elif path.is_file():
      candidates = [path]
    else:
      raise FileNotFoundError(f"Source path not found: {path}")
    for candidate in candidates:
      resolved = candidate.resolve()
      if resolved not in seen:
        seen.add(resolved)
        found.append(resolved)
  return found


def _resolve_reference(reference: str) -> List[Tuple[Path, Optional[str]]]:
  """
  Maps a reference entry to files: an existing path, or an importable module name.
  """
  path = Path(reference)
  if path.exists():
    return [(p, None) for p in iter_source_files([path])]

  try:
    spec = importlib.util.find_spec(reference)
  except (ImportError, ValueError):
    spec = None
  if spec is None or not spec.origin or not spec.origin.endswith((".py", ".pyi")):
    log_warning(f"Reference '{reference}' could not be resolved to Python source; skipping.")
    return []
  return [(Path(spec.origin), reference)]


class SemanticContext:
  """
  Resolved symbols and call bindings for a set of source units.

  Attributes:
      index (SymbolIndex): All types and declarations, sources and references alike.
      units (List[SourceUnit]): The source units, in input order.
  """

  def __init__(
    self,
    index: SymbolIndex,
    units: List[SourceUnit],
    bindings: Dict[SourceUnit, Dict[cst.Call, CallBinding]],
  ) -> None:
    self.index = index
    self.units = units
    self._bindings = bindings

  @classmethod
  def build(
    cls,
    paths: Sequence[PathLike],
    references: Optional[Sequence[str]] = None,
  ) -> "SemanticContext":
    """
    Parses, indexes and binds the given sources.

    The ``async_rewriter`` runtime modules are always included as references so
    that the cancellation type and the marker resolve.

    Args:
        paths: Source files or directories whose units will be rewritten.
        references: Extra files, directories or importable module names that
            only contribute symbols.

    Returns:
        SemanticContext: The built context.

    Raises:
        FileNotFoundError: If a source path does not exist.
        libcst.ParserSyntaxError: If a file does not parse.
    """
    modules: Dict[str, ModuleInfo] = {}
    sources: List[ModuleInfo] = []

    for path in iter_source_files(paths):
      info = collect_module(path, path.read_text(encoding="utf-8"))
      log_debug(f"Indexed source {path} as module '{info.name}'")
      modules[info.name] = info
      sources.append(info)

    reference_files: List[Tuple[Path, Optional[str]]] = [(_PACKAGE_DIR / name, None) for name in BUILTIN_REFERENCES]
    for reference in references or []:
      reference_files.extend(_resolve_reference(reference))

    source_paths = {info.path.resolve() for info in sources}
    for path, module_name in reference_files:
      if path.resolve() in source_paths:
        continue
      info = collect_module(path, path.read_text(encoding="utf-8"), module_name=module_name)
      if info.name in modules:
        continue
      log_debug(f"Indexed reference {path} as module '{info.name}'")
      modules[info.name] = info

    index = SymbolIndex(modules).build()

    units: List[SourceUnit] = []
    bindings: Dict[SourceUnit, Dict[cst.Call, CallBinding]] = {}
    for info in sources:
      unit = SourceUnit(path=info.path, module_name=info.name, tree=info.tree)
      units.append(unit)
      bindings[unit] = bind_calls(index, info)
    return cls(index, units, bindings)

  # --- Queries ---

  def is_bound(self, unit: SourceUnit) -> bool:
    return unit in self._bindings

  def get_type(self, qualified_name: str) -> Optional[TypeSymbol]:
    """
    Resolves a fully-qualified type name, following re-exports.

    Args:
        qualified_name: Dotted name such as ``"pkg.mod.Client"``.

    Returns:
        Optional[TypeSymbol]: The class, or None if unknown.
    """
    found = self.index.types.get(self.index.canonical(qualified_name))
    if found is None or found.is_module:
      return None
    return found

  def get_module(self, module_name: str) -> Optional[TypeSymbol]:
    found = self.index.types.get(module_name)
    if found is None or not found.is_module:
      return None
    return found

  def get_declared_symbol(self, node: cst.FunctionDef) -> Optional[MethodSymbol]:
    return self.index.declarations.get(node)

  def get_binding(self, unit: SourceUnit, call: cst.Call) -> Optional[CallBinding]:
    return self._bindings.get(unit, {}).get(call)

  def get_invoked_symbol(self, unit: SourceUnit, call: cst.Call) -> Optional[MethodSymbol]:
    """
    Returns the method a call expression invokes, or None when unresolved.
    """
    binding = self.get_binding(unit, call)
    return binding.method if binding else None

  def types(self) -> Iterator[TypeSymbol]:
    """Yields every class and module symbol."""
    yield from self.index.types.values()

  def methods(self) -> Iterator[MethodSymbol]:
    """Yields every declared method, function and extension alias."""
    for symbol in self.index.types.values():
      for overloads in symbol.members.values():
        yield from overloads
