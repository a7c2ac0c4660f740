"""
Tree Assembler.

Groups generated methods into class and namespace nodes, renders per-unit
output and merges several units into the single output module.

Output layout::

    # pylint: disable=arguments-differ,invalid-overridden-method
    # mypy: disable-error-code="override"
    from typing import Awaitable
    from async_rewriter.cancellation import CancellationToken
    <imports of the source units>
    import pkg.client
    from pkg.client import Record


    # namespace: pkg.client
    class Client(pkg.client.Client):
      def fetch_async_nocancel(self, key: str) -> Awaitable[Record]:
        ...

Python has no partial classes, so a generated class subclasses the class it
mirrors and inherits the hand-written counterparts its methods await. The
module-level names of the originating module that generated code reads
(classes, functions, constants, type variables) are imported from it.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

import libcst as cst

from async_rewriter.core.import_merger import ImportMerger, ImportNode, absolutize_import, top_level_imports
from async_rewriter.core.synthesizer import GeneratedMethod
from async_rewriter.semantics.collector import DeclarationCollector, ModuleInfo
from async_rewriter.semantics.context import SourceUnit
from async_rewriter.semantics.symbols import TypeSymbol
from async_rewriter.utils.cst_utils import create_dotted_name, get_full_name

NAMESPACE_PREFIX = "# namespace: "
_GENERIC_BASES = frozenset({"Generic", "Protocol"})
_BLANK = cst.EmptyLine(indent=False)


def required_imports() -> List[ImportNode]:
  """The imports every generated unit needs."""
  return [
    cst.ImportFrom(module=cst.Name("typing"), names=[cst.ImportAlias(name=cst.Name("Awaitable"))]),
    cst.ImportFrom(
      module=cst.Attribute(value=cst.Name("async_rewriter"), attr=cst.Name("cancellation")),
      names=[cst.ImportAlias(name=cst.Name("CancellationToken"))],
    ),
  ]


class _NameCollector(cst.CSTVisitor):
  """
  Collects the plain names a node reads. Attribute members and keyword names
  are not names.
  """

  def __init__(self) -> None:
    self.names: Set[str] = set()

  def visit_Name(self, node: cst.Name) -> Optional[bool]:
    self.names.add(node.value)
    return False

  def visit_Attribute(self, node: cst.Attribute) -> Optional[bool]:
    node.value.visit(self)
    return False

  def visit_Arg(self, node: cst.Arg) -> Optional[bool]:
    node.value.visit(self)
    return False


@dataclass
class ClassNode:
  """
  A generated class mirroring an original class.

  Attributes:
      name: Class name.
      type_parameters: PEP 695 parameters of the original class.
      bases: ``Generic[...]``/``Protocol[...]`` bases carrying type variables.
      methods: Generated methods, in generation order.
      classes: Nested generated classes.
      origin: Qualified name of the original class, rendered as the first base.
  """

  name: str
  type_parameters: Optional[cst.TypeParameters] = None
  bases: List[cst.Arg] = field(default_factory=list)
  methods: List[GeneratedMethod] = field(default_factory=list)
  classes: List["ClassNode"] = field(default_factory=list)
  origin: Optional[str] = None

  @classmethod
  def from_type(cls, symbol: TypeSymbol) -> "ClassNode":
    bases: List[cst.Arg] = []
    type_parameters = None
    if symbol.node is not None:
      type_parameters = symbol.type_parameters
      for arg in symbol.node.bases:
        expr = arg.value.value if isinstance(arg.value, cst.Subscript) else arg.value
        if get_full_name(expr).rsplit(".", 1)[-1] in _GENERIC_BASES:
          bases.append(arg.with_changes(comma=cst.MaybeSentinel.DEFAULT))
    return cls(name=symbol.name, type_parameters=type_parameters, bases=bases, origin=symbol.qualified_name)

  def child(self, template: "ClassNode") -> "ClassNode":
    for existing in self.classes:
      if existing.name == template.name:
        return existing
    self.classes.append(template)
    return template

  def empty_copy(self) -> "ClassNode":
    return ClassNode(self.name, self.type_parameters, list(self.bases), origin=self.origin)

  def merge(self, other: "ClassNode") -> None:
    self.methods.extend(other.methods)
    for nested in other.classes:
      self.child(nested.empty_copy()).merge(nested)

  def to_cst(self, leading_lines: Sequence[cst.EmptyLine] = ()) -> cst.ClassDef:
    body: List[cst.BaseStatement] = []
    for method in self.methods:
      body.append(method.node.with_changes(leading_lines=[_BLANK] if body else []))
    for nested in self.classes:
      body.append(nested.to_cst([_BLANK] if body else []))
    if not body:
      body.append(cst.SimpleStatementLine(body=[cst.Pass()]))
    node = cst.ClassDef(
      name=cst.Name(self.name),
      body=cst.IndentedBlock(body=body),
      bases=self._rendered_bases(),
      leading_lines=list(leading_lines),
    )
    if self.type_parameters is not None:
      node = node.with_changes(type_parameters=self.type_parameters)
    return node

  def _rendered_bases(self) -> List[cst.Arg]:
    if self.origin is None:
      return self.bases
    return [cst.Arg(value=create_dotted_name(self.origin)), *self.bases]

  def referenced_names(self) -> Set[str]:
    """Plain names read by the bases and generated methods, nested classes included."""
    collector = _NameCollector()
    for arg in self.bases:
      arg.value.visit(collector)
    for method in self.methods:
      method.node.visit(collector)
    for nested in self.classes:
      collector.names.update(nested.referenced_names())
    return collector.names


@dataclass
class NamespaceNode:
  """
  Generated code of one originating module.

  Attributes:
      name: Dotted module name.
      functions: Generated module-level functions.
      classes: Generated classes.
  """

  name: str
  functions: List[GeneratedMethod] = field(default_factory=list)
  classes: List[ClassNode] = field(default_factory=list)

  def class_node(self, template: ClassNode) -> ClassNode:
    for existing in self.classes:
      if existing.name == template.name:
        return existing
    self.classes.append(template)
    return template

  def merge(self, other: "NamespaceNode") -> None:
    self.functions.extend(other.functions)
    for cls in other.classes:
      self.class_node(cls.empty_copy()).merge(cls)

  def referenced_names(self) -> Set[str]:
    collector = _NameCollector()
    for method in self.functions:
      method.node.visit(collector)
    for cls in self.classes:
      collector.names.update(cls.referenced_names())
    return collector.names

  def to_cst(self) -> List[cst.BaseStatement]:
    """
    Renders the namespace; its first statement carries the namespace banner.
    """
    statements: List[cst.BaseStatement] = []
    for method in self.functions:
      statements.append(method.node.with_changes(leading_lines=[_BLANK, _BLANK]))
    for cls in self.classes:
      statements.append(cls.to_cst([_BLANK, _BLANK]))
    if statements:
      banner = [_BLANK, _BLANK, cst.EmptyLine(comment=cst.Comment(NAMESPACE_PREFIX + self.name))]
      statements[0] = statements[0].with_changes(leading_lines=banner)
    return statements


@dataclass
class RewrittenUnit:
  """
  The generated output of one source unit, before merging.

  Attributes:
      source: The originating unit.
      header: Comment directives placed at the top of the file.
      imports: The unit's imports plus the required ones.
      namespaces: Generated code grouped by module.
      default_indent: Indentation of the originating unit.
  """

  source: Optional[SourceUnit]
  header: List[str] = field(default_factory=list)
  imports: List[ImportNode] = field(default_factory=list)
  namespaces: List[NamespaceNode] = field(default_factory=list)
  default_indent: str = "    "

  @property
  def methods(self) -> List[GeneratedMethod]:
    found: List[GeneratedMethod] = []

    def walk(cls: ClassNode) -> None:
      found.extend(cls.methods)
      for nested in cls.classes:
        walk(nested)

    for namespace in self.namespaces:
      found.extend(namespace.functions)
      for cls in namespace.classes:
        walk(cls)
    return found

  def to_module(self) -> cst.Module:
    """
    Renders this unit as a standalone module.
    """
    merger = ImportMerger()
    merger.add_all(self.imports)
    body: List[cst.BaseStatement] = list(merger.statements())
    for namespace in self.namespaces:
      body.extend(namespace.to_cst())
    return cst.Module(
      header=[cst.EmptyLine(comment=cst.Comment(line)) for line in self.header],
      body=body,
      default_indent=self.default_indent,
    )

  @property
  def code(self) -> str:
    return self.to_module().code


def assemble_unit(
  unit: SourceUnit,
  generated: Sequence[GeneratedMethod],
  header: Sequence[str],
  types: Mapping[str, TypeSymbol],
) -> RewrittenUnit:
  """
  Groups the generated methods of one unit into namespace and class nodes.

  Args:
      unit: The originating unit.
      generated: Generated methods in generation order.
      header: Suppression directives.
      types: Known types by qualified name, used to rebuild class nesting.

  Returns:
      RewrittenUnit: The per-unit output.
  """
  package = unit.module_name if unit.path.stem == "__init__" else unit.module_name.rpartition(".")[0]
  imports = [
    *required_imports(),
    *(absolutize_import(node, package) for node in top_level_imports(unit.tree)),
  ]

  namespaces: Dict[str, NamespaceNode] = {}
  for method in generated:
    owner = method.source.containing_type
    namespace = namespaces.setdefault(owner.module, NamespaceNode(name=owner.module))
    if owner.is_module:
      namespace.functions.append(method)
      continue
    _class_path_node(namespace, owner, types).methods.append(method)

  definitions = _module_definitions(unit)
  for namespace in namespaces.values():
    imports.extend(origin_imports(namespace, definitions))

  return RewrittenUnit(
    source=unit,
    header=list(header),
    imports=imports,
    namespaces=list(namespaces.values()),
    default_indent=unit.tree.default_indent,
  )


def origin_imports(namespace: NamespaceNode, definitions: Iterable[str]) -> List[ImportNode]:
  """
  Imports binding a namespace group to its originating module.

  Class nodes reach the classes they extend through ``import <module>``.
  Module-level names the generated code reads are imported by name, except
  the generated functions, which the output defines itself.

  Args:
      namespace: The namespace group.
      definitions: Top-level names of the originating module, in source order.

  Returns:
      List[ImportNode]: The imports, possibly empty.
  """
  if not namespace.name:
    return []
  imports: List[ImportNode] = []
  if namespace.classes:
    imports.append(cst.Import(names=[cst.ImportAlias(name=create_dotted_name(namespace.name))]))

  generated = {method.name for method in namespace.functions}
  referenced = namespace.referenced_names()
  names = [name for name in definitions if name in referenced and name not in generated]
  if names:
    imports.append(
      cst.ImportFrom(
        module=create_dotted_name(namespace.name),
        names=[cst.ImportAlias(name=cst.Name(name)) for name in names],
      )
    )
  return imports


def _module_definitions(unit: SourceUnit) -> List[str]:
  info = ModuleInfo(name=unit.module_name, path=unit.path, tree=unit.tree)
  unit.tree.visit(DeclarationCollector(info))
  return list(info.definitions)


def _class_path_node(namespace: NamespaceNode, owner: TypeSymbol, types: Mapping[str, TypeSymbol]) -> ClassNode:
  """
  Finds or creates the (possibly nested) class node for ``owner``.
  """
  chain: List[TypeSymbol] = [owner]
  outer = types.get(owner.qualified_name.rpartition(".")[0])
  while outer is not None and not outer.is_module:
    chain.insert(0, outer)
    outer = types.get(outer.qualified_name.rpartition(".")[0])

  node = namespace.class_node(ClassNode.from_type(chain[0]))
  for symbol in chain[1:]:
    node = node.child(ClassNode.from_type(symbol))
  return node


def merge_units(units: Sequence[RewrittenUnit]) -> cst.Module:
  """
  Merges per-unit outputs into one module.

  Directives are deduplicated, imports are deduplicated by module name, and
  namespaces with the same name are regrouped in first-seen order.

  Args:
      units: The per-unit outputs.

  Returns:
      cst.Module: The merged module (empty when there are no units).
  """
  if not units:
    return cst.Module(body=[], has_trailing_newline=False)

  header: List[str] = []
  merger = ImportMerger()
  namespaces: Dict[str, NamespaceNode] = {}
  for unit in units:
    for line in unit.header:
      if line not in header:
        header.append(line)
    merger.add_all(unit.imports)
    for namespace in unit.namespaces:
      namespaces.setdefault(namespace.name, NamespaceNode(name=namespace.name)).merge(namespace)

  body: List[cst.BaseStatement] = list(merger.statements())
  for namespace in namespaces.values():
    body.extend(namespace.to_cst())
  return cst.Module(
    header=[cst.EmptyLine(comment=cst.Comment(line)) for line in header],
    body=body,
    default_indent=units[0].default_indent,
  )
