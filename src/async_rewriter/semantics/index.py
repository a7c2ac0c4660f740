"""
Symbol Index.

Second pass of the semantic context build. Turns the per-module
``ModuleInfo`` records into linked symbols:

1.  Registers a module ``TypeSymbol`` per module and a class ``TypeSymbol`` per class.
2.  Builds ``MethodSymbol`` objects for module-level functions.
3.  Populates classes: methods, extension aliases, attribute types, base names.
4.  Links base classes.

Type identity is a canonical dotted name. Names are resolved through the
module's own definitions and imports, then followed through re-exports of
indexed modules until they settle.
"""

from typing import Dict, List, Optional, Union

import libcst as cst

from async_rewriter.markers import MARKER_NAME
from async_rewriter.semantics.collector import ModuleInfo, RawClass
from async_rewriter.semantics.symbols import (
  MarkerData,
  MethodKind,
  MethodSymbol,
  ParameterKind,
  ParameterSymbol,
  TypeKind,
  TypeSymbol,
)
from async_rewriter.utils.cst_utils import (
  create_dotted_name,
  decorator_name,
  get_full_name,
  literal_bool,
  node_to_code,
)

_MAX_REEXPORT_HOPS = 16
_OPTIONAL_NAMES = ("typing.Optional", "typing_extensions.Optional", "Optional")
_UNION_NAMES = ("typing.Union", "typing_extensions.Union", "Union")

StaticTarget = Union[TypeSymbol, List[MethodSymbol], None]


def is_marker_decorator(decorator: cst.Decorator) -> bool:
  """
  Checks whether a decorator is the rewrite marker (last dotted segment match).
  """
  return decorator_name(decorator).rsplit(".", 1)[-1] == MARKER_NAME


def read_marker(node: cst.FunctionDef) -> Optional[MarkerData]:
  """
  Extracts the marker arguments of a function, if it is marked.

  Args:
      node: The function declaration.

  Returns:
      Optional[MarkerData]: The marker data, or None when the function is not marked.
  """
  for decorator in node.decorators:
    if not is_marker_decorator(decorator):
      continue
    force_public = False
    if isinstance(decorator.decorator, cst.Call):
      for arg in decorator.decorator.args:
        if arg.keyword is None and not arg.star:
          force_public = bool(literal_bool(arg.value))
        elif arg.keyword is not None and arg.keyword.value == "force_public":
          force_public = bool(literal_bool(arg.value))
    return MarkerData(force_public=force_public)
  return None


def _decorator_kind(decorators: List[str]) -> MethodKind:
  for name in decorators:
    last = name.rsplit(".", 1)[-1]
    if last == "staticmethod":
      return MethodKind.STATIC
    if last == "classmethod":
      return MethodKind.CLASS
  return MethodKind.INSTANCE


class _AnnotationCanonicalizer(cst.CSTTransformer):
  """
  Rewrites every name chain of an annotation to its canonical dotted form.

  String (forward reference) annotations are parsed and canonicalized too.
  """

  def __init__(self, index: "SymbolIndex", info: ModuleInfo) -> None:
    self.index = index
    self.info = info

  def visit_Attribute(self, node: cst.Attribute) -> Optional[bool]:
    return not get_full_name(node)

  def leave_Attribute(self, original_node: cst.Attribute, updated_node: cst.Attribute) -> cst.BaseExpression:
    dotted = get_full_name(original_node)
    if not dotted:
      return updated_node.with_changes(attr=original_node.attr)
    return create_dotted_name(self.index.resolve_local(dotted, self.info))

  def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.BaseExpression:
    return create_dotted_name(self.index.resolve_local(original_node.value, self.info))

  def leave_SimpleString(self, original_node: cst.SimpleString, updated_node: cst.SimpleString) -> cst.BaseExpression:
    value = original_node.evaluated_value
    if not isinstance(value, str):
      return updated_node
    try:
      inner = cst.parse_expression(value.strip())
    except cst.ParserSyntaxError:
      return updated_node
    return inner.visit(_AnnotationCanonicalizer(self.index, self.info))


class SymbolIndex:
  """
  Registry of all types and declared methods known to a semantic context.

  Attributes:
      modules (Dict[str, ModuleInfo]): Collected modules by dotted name.
      types (Dict[str, TypeSymbol]): Classes and modules by canonical name.
      declarations (Dict[cst.FunctionDef, MethodSymbol]): Declaration node to symbol.
  """

  def __init__(self, modules: Dict[str, ModuleInfo]) -> None:
    self.modules = modules
    self.types: Dict[str, TypeSymbol] = {}
    self.declarations: Dict[cst.FunctionDef, MethodSymbol] = {}

  # --- Name resolution ---

  def canonical(self, qualified: str) -> str:
    """
    Follows re-exports of indexed modules until the name settles.

    ``pkg.Token`` where ``pkg/__init__.py`` does ``from .tokens import Token``
    becomes ``pkg.tokens.Token``.

    Args:
        qualified: A dotted name.

    Returns:
        str: The canonical dotted name.
    """
    for _ in range(_MAX_REEXPORT_HOPS):
      parts = qualified.split(".")
      rewritten = None
      for i in range(len(parts) - 1, 0, -1):
        info = self.modules.get(".".join(parts[:i]))
        if info is None:
          continue
        target = info.imports.get(parts[i])
        if target is not None:
          rewritten = ".".join([target, *parts[i + 1 :]])
        break
      if rewritten is None or rewritten == qualified:
        return qualified
      qualified = rewritten
    return qualified

  def resolve_local(self, dotted: str, info: ModuleInfo) -> str:
    """
    Resolves a name as written in a module to its canonical dotted name.

    Names that are neither defined nor imported by the module (builtins,
    unknown globals) are returned unchanged.
    """
    head, _, rest = dotted.partition(".")
    if head in info.definitions:
      base = f"{info.name}.{head}"
    elif head in info.imports:
      base = info.imports[head]
    else:
      return dotted
    return self.canonical(f"{base}.{rest}" if rest else base)

  def resolve_static(self, qualified: str) -> StaticTarget:
    """
    Resolves a canonical name to a type or to the methods it names.

    Args:
        qualified: Dotted name (module, class, or member of either).

    Returns:
        The TypeSymbol, the list of MethodSymbols for a member, or None.
    """
    name = self.canonical(qualified)
    found = self.types.get(name)
    if found is not None:
      return found
    owner_name, _, member = name.rpartition(".")
    owner = self.types.get(owner_name)
    if owner is None:
      return None
    return owner.lookup(member) or None

  def render_annotation(self, expr: Optional[cst.BaseExpression], info: ModuleInfo) -> Optional[str]:
    """
    Renders an annotation with all names canonicalized.

    Args:
        expr: The annotation expression (None if absent).
        info: The module the annotation is written in.

    Returns:
        Optional[str]: Canonical annotation text, or None.
    """
    if expr is None:
      return None
    return node_to_code(expr.visit(_AnnotationCanonicalizer(self, info)))

  def type_from_annotation(self, text: Optional[str]) -> Optional[TypeSymbol]:
    """
    Maps canonical annotation text to the class it denotes.

    ``Optional[X]``, ``X | None`` and ``Union[X, None]`` denote ``X``;
    subscripted generics denote their origin.
    """
    if not text:
      return None
    try:
      expr = cst.parse_expression(text)
    except cst.ParserSyntaxError:
      return None
    expr = _unwrap_optional(expr)
    if isinstance(expr, cst.Subscript):
      expr = expr.value
    dotted = get_full_name(expr)
    if not dotted:
      return None
    found = self.types.get(self.canonical(dotted))
    if found is None or found.is_module:
      return None
    return found

  # --- Construction ---

  def build(self) -> "SymbolIndex":
    """
    Runs all construction phases. Returns self for chaining.
    """
    for info in self.modules.values():
      self.types[info.name] = TypeSymbol(qualified_name=info.name, kind=TypeKind.MODULE, module=info.name)
      for raw in info.classes:
        self.types[raw.qualified_name] = TypeSymbol(
          qualified_name=raw.qualified_name, kind=TypeKind.CLASS, module=info.name, node=raw.node
        )

    for info in self.modules.values():
      module_type = self.types[info.name]
      for node in info.functions:
        method = self._method_symbol(info, node, module_type, in_class=False)
        module_type.add_member(method)
        self.declarations[node] = method

    for info in self.modules.values():
      for raw in info.classes:
        self._populate_class(info, raw)

    for symbol in self.types.values():
      for base_name in symbol.base_names:
        base = self.types.get(self.canonical(base_name))
        if base is not None and base is not symbol and not base.is_module:
          symbol.bases.append(base)
    return self

  def convert_parameters(self, params: cst.Parameters, info: ModuleInfo) -> List[ParameterSymbol]:
    """
    Converts a libcst parameter list into ParameterSymbols, in declaration order.
    """
    out: List[ParameterSymbol] = []

    def add(param: cst.Param, kind: ParameterKind) -> None:
      annotation = param.annotation.annotation if param.annotation else None
      out.append(
        ParameterSymbol(
          name=param.name.value,
          type_name=self.render_annotation(annotation, info),
          kind=kind,
          has_default=param.default is not None,
        )
      )

    for param in params.posonly_params:
      add(param, ParameterKind.POSITIONAL_ONLY)
    for param in params.params:
      add(param, ParameterKind.POSITIONAL)
    if isinstance(params.star_arg, cst.Param):
      add(params.star_arg, ParameterKind.VAR_POSITIONAL)
    for param in params.kwonly_params:
      add(param, ParameterKind.KEYWORD_ONLY)
    if params.star_kwarg is not None:
      add(params.star_kwarg, ParameterKind.VAR_KEYWORD)
    return out

  def _method_symbol(self, info: ModuleInfo, node: cst.FunctionDef, owner: TypeSymbol, in_class: bool) -> MethodSymbol:
    decorators = [self.resolve_local(decorator_name(d), info) for d in node.decorators if decorator_name(d)]
    kind = _decorator_kind(decorators) if in_class else MethodKind.FUNCTION
    params = self.convert_parameters(node.params, info)
    if kind in (MethodKind.INSTANCE, MethodKind.CLASS) and params and params[0].is_positional:
      params = params[1:]
    return MethodSymbol(
      name=node.name.value,
      containing_type=owner,
      parameters=tuple(params),
      kind=kind,
      return_type=self.render_annotation(node.returns.annotation if node.returns else None, info),
      decorators=tuple(decorators),
      marker=read_marker(node),
      is_async=node.asynchronous is not None,
      node=node,
    )

  def _populate_class(self, info: ModuleInfo, raw: RawClass) -> None:
    cls = self.types[raw.qualified_name]
    for arg in raw.node.bases:
      expr = arg.value
      if isinstance(expr, cst.Subscript):
        expr = expr.value
      dotted = get_full_name(expr)
      if dotted:
        cls.base_names.append(self.resolve_local(dotted, info))

    body = raw.node.body
    statements = body.body if isinstance(body, cst.IndentedBlock) else [body]
    for stmt in statements:
      if isinstance(stmt, cst.FunctionDef):
        method = self._method_symbol(info, stmt, cls, in_class=True)
        cls.add_member(method)
        self.declarations[stmt] = method
        if method.kind == MethodKind.INSTANCE:
          self._scan_self_attributes(info, cls, stmt)
      elif isinstance(stmt, (cst.SimpleStatementLine, cst.SimpleStatementSuite)):
        for small in stmt.body:
          self._class_body_statement(info, cls, small)

  def _class_body_statement(self, info: ModuleInfo, cls: TypeSymbol, stmt: cst.BaseSmallStatement) -> None:
    if isinstance(stmt, cst.AnnAssign) and isinstance(stmt.target, cst.Name):
      rendered = self.render_annotation(stmt.annotation.annotation, info)
      if rendered:
        cls.attribute_types[stmt.target.value] = rendered
      return
    if not isinstance(stmt, cst.Assign) or len(stmt.targets) != 1:
      return
    target = stmt.targets[0].target
    if not isinstance(target, cst.Name):
      return

    if isinstance(stmt.value, (cst.Name, cst.Attribute)):
      resolved = self.resolve_static(self.resolve_local(get_full_name(stmt.value), info))
      if isinstance(resolved, list) and resolved[0].kind == MethodKind.FUNCTION:
        extension = self._extension_symbol(target.value, cls, resolved[0])
        if extension is not None:
          cls.add_member(extension)
      return

    constructed = self.constructed_type(stmt.value, info)
    if constructed is not None:
      cls.attribute_types[target.value] = constructed.qualified_name

  def _extension_symbol(self, alias: str, cls: TypeSymbol, function: MethodSymbol) -> Optional[MethodSymbol]:
    if not function.parameters or not function.parameters[0].is_positional:
      return None
    return MethodSymbol(
      name=alias,
      containing_type=cls,
      parameters=function.parameters[1:],
      kind=MethodKind.EXTENSION,
      return_type=function.return_type,
      decorators=function.decorators,
      marker=None,
      is_async=function.is_async,
      receiver=function.parameters[0],
      node=function.node,
    )

  def constructed_type(self, expr: cst.BaseExpression, info: ModuleInfo) -> Optional[TypeSymbol]:
    """
    Returns the class instantiated by ``expr`` when it is a constructor call.
    """
    if not isinstance(expr, cst.Call):
      return None
    func = expr.func.value if isinstance(expr.func, cst.Subscript) else expr.func
    dotted = get_full_name(func)
    if not dotted:
      return None
    resolved = self.resolve_static(self.resolve_local(dotted, info))
    if isinstance(resolved, TypeSymbol) and not resolved.is_module:
      return resolved
    return None

  def _scan_self_attributes(self, info: ModuleInfo, cls: TypeSymbol, node: cst.FunctionDef) -> None:
    params = self.convert_parameters(node.params, info)
    if not params:
      return
    scanner = _SelfAttributeScanner(self, info, cls, params[0].name, {p.name: p.type_name for p in params[1:]})
    node.body.visit(scanner)


class _SelfAttributeScanner(cst.CSTVisitor):
  """
  Records ``self.attr`` types assigned inside an instance method.
  """

  def __init__(
    self,
    index: SymbolIndex,
    info: ModuleInfo,
    cls: TypeSymbol,
    receiver: str,
    param_types: Dict[str, Optional[str]],
  ) -> None:
    self.index = index
    self.info = info
    self.cls = cls
    self.receiver = receiver
    self.param_types = param_types

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    return False

  def visit_Lambda(self, node: cst.Lambda) -> Optional[bool]:
    return False

  def _self_attribute(self, target: cst.BaseExpression) -> Optional[str]:
    if (
      isinstance(target, cst.Attribute)
      and isinstance(target.value, cst.Name)
      and target.value.value == self.receiver
    ):
      return target.attr.value
    return None

  def visit_AnnAssign(self, node: cst.AnnAssign) -> Optional[bool]:
    attr = self._self_attribute(node.target)
    if attr is not None:
      rendered = self.index.render_annotation(node.annotation.annotation, self.info)
      if rendered:
        self.cls.attribute_types[attr] = rendered
    return False

  def visit_Assign(self, node: cst.Assign) -> Optional[bool]:
    for target in node.targets:
      attr = self._self_attribute(target.target)
      if attr is None or attr in self.cls.attribute_types:
        continue
      type_name: Optional[str] = None
      if isinstance(node.value, cst.Name):
        type_name = self.param_types.get(node.value.value)
      else:
        constructed = self.index.constructed_type(node.value, self.info)
        if constructed is not None:
          type_name = constructed.qualified_name
      if type_name:
        self.cls.attribute_types[attr] = type_name
    return False


def _unwrap_optional(expr: cst.BaseExpression) -> cst.BaseExpression:
  if isinstance(expr, cst.BinaryOperation) and isinstance(expr.operator, cst.BitOr):
    if isinstance(expr.right, cst.Name) and expr.right.value == "None":
      return _unwrap_optional(expr.left)
    if isinstance(expr.left, cst.Name) and expr.left.value == "None":
      return _unwrap_optional(expr.right)
    return expr
  if isinstance(expr, cst.Subscript):
    origin = get_full_name(expr.value)
    elements = [
      el.slice.value for el in expr.slice if isinstance(el.slice, cst.Index)
    ]
    if origin in _OPTIONAL_NAMES and len(elements) == 1:
      return _unwrap_optional(elements[0])
    if origin in _UNION_NAMES:
      rest = [el for el in elements if not (isinstance(el, cst.Name) and el.value == "None")]
      if len(rest) == 1:
        return _unwrap_optional(rest[0])
  return expr
