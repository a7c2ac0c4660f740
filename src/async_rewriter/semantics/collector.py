"""
Declaration Collection.

First pass of the semantic context build. A ``DeclarationCollector`` walks one
parsed module and records, without resolving anything across modules:

1.  **Imports**: bound name -> imported qualified path (relative imports are
    resolved against the module's package).
2.  **Definitions**: top-level classes, functions and variables.
3.  **Classes**: every class, including nested ones, with its qualified name.
4.  **Global assignments**: module-level values and annotations, used later to
    type module-level receivers.

Function bodies are not entered; the call binder handles them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import libcst as cst

from async_rewriter.utils.cst_utils import get_full_name


@dataclass
class RawClass:
  """A class declaration awaiting symbol construction."""

  qualified_name: str
  node: cst.ClassDef
  outer: Optional[str] = None


@dataclass
class ModuleInfo:
  """
  Everything the collector learned about one module.
  """

  name: str
  path: Path
  tree: cst.Module
  is_package: bool = False
  imports: Dict[str, str] = field(default_factory=dict)
  definitions: Dict[str, str] = field(default_factory=dict)
  classes: List[RawClass] = field(default_factory=list)
  functions: List[cst.FunctionDef] = field(default_factory=list)
  global_assignments: Dict[str, cst.BaseExpression] = field(default_factory=dict)
  global_annotations: Dict[str, cst.BaseExpression] = field(default_factory=dict)

  @property
  def package(self) -> str:
    """The package relative imports are resolved against."""
    if self.is_package:
      return self.name
    return self.name.rpartition(".")[0]


def module_name_for_path(path: Path) -> str:
  """
  Derives the dotted module name of a source file.

  Walks up the directory tree while parent directories are packages (contain
  an ``__init__.py``), the same way an import system with the first
  non-package directory on ``sys.path`` would name it.

  Args:
      path: Path to a ``.py`` or ``.pyi`` file.

  Returns:
      str: The dotted module name (e.g. ``"pkg.sub.mod"``).
  """
  path = path.resolve()
  parts = [] if path.stem == "__init__" else [path.stem]
  directory = path.parent
  while (directory / "__init__.py").exists() or (directory / "__init__.pyi").exists():
    parts.insert(0, directory.name)
    if directory.parent == directory:
      break
    directory = directory.parent
  return ".".join(parts) if parts else path.parent.name


class DeclarationCollector(cst.CSTVisitor):
  """
  Records module-level declarations and import bindings of a single module.
  """

  def __init__(self, info: ModuleInfo) -> None:
    self.info = info
    self._class_stack: List[str] = []

  # --- Scoping ---

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    name = node.name.value
    if self._class_stack:
      outer = self._class_stack[-1]
      qualified = f"{outer}.{name}"
    else:
      outer = None
      qualified = f"{self.info.name}.{name}"
      self.info.definitions[name] = "class"
    self.info.classes.append(RawClass(qualified_name=qualified, node=node, outer=outer))
    self._class_stack.append(qualified)
    return True

  def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
    self._class_stack.pop()

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    if not self._class_stack:
      self.info.functions.append(node)
      self.info.definitions[node.name.value] = "function"
    return False

  def visit_Lambda(self, node: cst.Lambda) -> Optional[bool]:
    return False

  # --- Imports ---

  def visit_Import(self, node: cst.Import) -> Optional[bool]:
    if self._class_stack:
      return False
    for alias in node.names:
      full_path = get_full_name(alias.name)
      if alias.asname and isinstance(alias.asname.name, cst.Name):
        self.info.imports[alias.asname.name.value] = full_path
      else:
        root = full_path.split(".")[0]
        self.info.imports[root] = root
    return False

  def visit_ImportFrom(self, node: cst.ImportFrom) -> Optional[bool]:
    if self._class_stack or isinstance(node.names, cst.ImportStar):
      return False
    base = self._resolve_from_module(node)
    if base is None:
      return False
    for alias in node.names:
      imported = get_full_name(alias.name)
      bound = imported
      if alias.asname and isinstance(alias.asname.name, cst.Name):
        bound = alias.asname.name.value
      self.info.imports[bound] = f"{base}.{imported}" if base else imported
    return False

  def _resolve_from_module(self, node: cst.ImportFrom) -> Optional[str]:
    module = get_full_name(node.module) if node.module else ""
    level = len(node.relative)
    if level == 0:
      return module

    package_parts = self.info.package.split(".") if self.info.package else []
    if level - 1 > len(package_parts):
      return None
    base_parts = package_parts[: len(package_parts) - (level - 1)]
    if module:
      base_parts.append(module)
    return ".".join(base_parts)

  # --- Globals ---

  def visit_Assign(self, node: cst.Assign) -> Optional[bool]:
    if self._class_stack:
      return False
    for target in node.targets:
      if isinstance(target.target, cst.Name):
        name = target.target.value
        self.info.definitions.setdefault(name, "variable")
        self.info.global_assignments[name] = node.value
    return False

  def visit_AnnAssign(self, node: cst.AnnAssign) -> Optional[bool]:
    if self._class_stack:
      return False
    if isinstance(node.target, cst.Name):
      name = node.target.value
      self.info.definitions.setdefault(name, "variable")
      self.info.global_annotations[name] = node.annotation.annotation
      if node.value is not None:
        self.info.global_assignments[name] = node.value
    return False


def collect_module(path: Path, source: Union[str, bytes], module_name: Optional[str] = None) -> ModuleInfo:
  """
  Parses a module and runs the declaration collector on it.

  Args:
      path: Location of the source file (used for naming and reporting).
      source: The file contents.
      module_name: Explicit dotted name; derived from ``path`` if omitted.

  Returns:
      ModuleInfo: The collected declarations.

  Raises:
      libcst.ParserSyntaxError: If the source is not valid Python.
  """
  tree = cst.parse_module(source)
  info = ModuleInfo(
    name=module_name or module_name_for_path(path),
    path=path,
    tree=tree,
    is_package=path.stem == "__init__",
  )
  tree.visit(DeclarationCollector(info))
  return info
