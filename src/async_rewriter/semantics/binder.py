"""
Call Binding.

Third pass of the semantic context build. ``CallBinder`` walks a whole source
module and binds each ``cst.Call`` to the ``MethodSymbol`` it invokes, when the
invoked method can be determined statically.

Receiver types are inferred from:

*   ``self`` / ``cls`` inside methods.
*   Annotated parameters and annotated local assignments.
*   Local assignments from constructor calls or from calls with a resolved
    return annotation.
*   Class attribute types (annotated or assigned via ``self.x = ...``).
*   Module-level globals, module references and class references.
*   ``super()`` inside a class.

Anything else stays unbound, and the Call Rewriter leaves such calls unchanged.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import libcst as cst

from async_rewriter.semantics.collector import ModuleInfo
from async_rewriter.semantics.index import SymbolIndex
from async_rewriter.semantics.symbols import MethodKind, MethodSymbol, TypeSymbol
from async_rewriter.utils.cst_utils import get_full_name


@dataclass(frozen=True)
class CallBinding:
  """
  The statically known target of a call expression.

  Attributes:
      method: The invoked method.
      explicit_receiver: True when the receiver is passed as the first
          argument (``Cls.method(obj, x)``), shifting argument positions by one.
  """

  method: MethodSymbol
  explicit_receiver: bool = False


@dataclass
class _Scope:
  """Local names of one function or lambda scope."""

  owner: Optional[TypeSymbol] = None
  receiver: Optional[str] = None
  locals: Dict[str, Optional[str]] = field(default_factory=dict)


class CallBinder(cst.CSTVisitor):
  """
  Binds every call expression of one module.

  Attributes:
      bindings (Dict[cst.Call, CallBinding]): Result, keyed by call node identity.
  """

  def __init__(self, index: SymbolIndex, info: ModuleInfo) -> None:
    self.index = index
    self.info = info
    self.bindings: Dict[cst.Call, CallBinding] = {}
    self._call_types: Dict[cst.Call, TypeSymbol] = {}
    self._class_stack: List[Optional[TypeSymbol]] = []
    self._scopes: List[_Scope] = []
    self._globals: Dict[str, TypeSymbol] = self._global_types()

  def _global_types(self) -> Dict[str, TypeSymbol]:
    types: Dict[str, TypeSymbol] = {}
    for name, annotation in self.info.global_annotations.items():
      found = self.index.type_from_annotation(self.index.render_annotation(annotation, self.info))
      if found is not None:
        types[name] = found
    for name, value in self.info.global_assignments.items():
      if name in types:
        continue
      found = self.index.constructed_type(value, self.info)
      if found is not None:
        types[name] = found
    return types

  # --- Scopes ---

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    owner = next((t for t in self.index.types.values() if t.node is node), None)
    self._class_stack.append(owner)
    return True

  def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
    self._class_stack.pop()

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    scope = _Scope()
    method = self.index.declarations.get(node)
    params = self.index.convert_parameters(node.params, self.info)
    if method is not None and method.kind in (MethodKind.INSTANCE, MethodKind.CLASS) and params:
      scope.owner = method.containing_type
      scope.receiver = params[0].name
      params = params[1:]
    for param in params:
      scope.locals[param.name] = param.type_name
    self._scopes.append(scope)
    return True

  def leave_FunctionDef(self, original_node: cst.FunctionDef) -> None:
    self._scopes.pop()

  def visit_Lambda(self, node: cst.Lambda) -> Optional[bool]:
    scope = _Scope()
    for param in self.index.convert_parameters(node.params, self.info):
      scope.locals[param.name] = None
    self._scopes.append(scope)
    return True

  def leave_Lambda(self, original_node: cst.Lambda) -> None:
    self._scopes.pop()

  # --- Local typing ---

  def leave_Assign(self, original_node: cst.Assign) -> None:
    if not self._scopes:
      return
    value_type = self._expression_type(original_node.value)
    for target in original_node.targets:
      self._declare(target.target, value_type.qualified_name if value_type else None)

  def leave_AnnAssign(self, original_node: cst.AnnAssign) -> None:
    if not self._scopes or not isinstance(original_node.target, cst.Name):
      return
    rendered = self.index.render_annotation(original_node.annotation.annotation, self.info)
    self._scopes[-1].locals[original_node.target.value] = rendered

  def visit_For(self, node: cst.For) -> Optional[bool]:
    self._declare(node.target, None)
    return True

  def visit_WithItem(self, node: cst.WithItem) -> Optional[bool]:
    if node.asname is not None:
      self._declare(node.asname.name, None)
    return True

  def _declare(self, target: cst.BaseExpression, type_name: Optional[str]) -> None:
    if not self._scopes:
      return
    if isinstance(target, cst.Name):
      self._scopes[-1].locals[target.value] = type_name
    elif isinstance(target, (cst.Tuple, cst.List)):
      for element in target.elements:
        self._declare(element.value, None)

  # --- Calls ---

  def leave_Call(self, original_node: cst.Call) -> None:
    binding = self._resolve_call(original_node)
    if binding is not None:
      self.bindings[original_node] = binding
      returned = self.index.type_from_annotation(binding.method.return_type)
      if returned is not None:
        self._call_types[original_node] = returned
      return
    constructed = self.index.constructed_type(original_node, self.info)
    if constructed is not None and not self._is_local_name(original_node.func):
      self._call_types[original_node] = constructed

  def _resolve_call(self, call: cst.Call) -> Optional[CallBinding]:
    func = call.func.value if isinstance(call.func, cst.Subscript) else call.func

    if isinstance(func, cst.Attribute) and self._is_super_call(func.value):
      owner = self._class_stack[-1] if self._class_stack else None
      if owner is None:
        return None
      for base in owner.mro()[1:]:
        found = base.get_members(func.attr.value)
        if found:
          return CallBinding(self._select(found, call))
      return None

    static_name = self._static_name(func)
    if static_name:
      resolved = self.index.resolve_static(static_name)
      if isinstance(resolved, list):
        method = self._select(resolved, call)
        explicit = (
          isinstance(func, cst.Attribute)
          and not method.containing_type.is_module
          and method.kind in (MethodKind.INSTANCE, MethodKind.EXTENSION)
        )
        return CallBinding(method, explicit_receiver=explicit)
      if resolved is not None:
        return None

    if isinstance(func, cst.Attribute):
      owner = self._expression_type(func.value)
      if owner is not None:
        found = owner.lookup(func.attr.value)
        if found:
          return CallBinding(self._select(found, call))
    return None

  @staticmethod
  def _select(candidates: List[MethodSymbol], call: cst.Call) -> MethodSymbol:
    """
    Picks among same-named declarations (``@overload`` stubs) by positional arity.
    """
    if len(candidates) == 1:
      return candidates[0]
    positional = sum(1 for arg in call.args if arg.keyword is None and not arg.star)
    for candidate in candidates:
      capacity = sum(1 for p in candidate.parameters if p.is_positional)
      if candidate.required_count <= positional <= capacity:
        return candidate
    return candidates[0]

  @staticmethod
  def _is_super_call(expr: cst.BaseExpression) -> bool:
    return isinstance(expr, cst.Call) and isinstance(expr.func, cst.Name) and expr.func.value == "super"

  def _is_local_name(self, expr: cst.BaseExpression) -> bool:
    while isinstance(expr, (cst.Attribute, cst.Subscript)):
      expr = expr.value
    if not isinstance(expr, cst.Name):
      return False
    return any(expr.value in scope.locals or expr.value == scope.receiver for scope in self._scopes)

  def _static_name(self, expr: cst.BaseExpression) -> Optional[str]:
    """
    Renders a module or class reference chain to its canonical name.

    Returns None when the chain starts at a local variable or is not a pure
    Name/Attribute chain.
    """
    dotted = get_full_name(expr)
    if not dotted or self._is_local_name(expr):
      return None
    return self.index.resolve_local(dotted, self.info)

  def _expression_type(self, expr: cst.BaseExpression) -> Optional[TypeSymbol]:
    """
    Infers the type an expression evaluates to (instances, classes and modules).
    """
    if isinstance(expr, cst.Name):
      for scope in reversed(self._scopes):
        if expr.value == scope.receiver:
          return scope.owner
        if expr.value in scope.locals:
          return self.index.type_from_annotation(scope.locals[expr.value])
      if expr.value in self._globals:
        return self._globals[expr.value]
    elif isinstance(expr, cst.Attribute):
      static_name = self._static_name(expr)
      if static_name:
        resolved = self.index.resolve_static(static_name)
        if isinstance(resolved, TypeSymbol):
          return resolved
      base = self._expression_type(expr.value)
      if base is not None and not base.is_module:
        return self.index.type_from_annotation(base.lookup_attribute_type(expr.attr.value))
      if base is not None:
        found = self.index.types.get(f"{base.qualified_name}.{expr.attr.value}")
        if found is not None:
          return found
        return self._module_globals(base).get(expr.attr.value)
      return None
    elif isinstance(expr, cst.Call):
      return self._call_types.get(expr)
    else:
      return None

    static_name = self._static_name(expr)
    if not static_name:
      return None
    resolved = self.index.resolve_static(static_name)
    if isinstance(resolved, TypeSymbol):
      return resolved
    # A global imported from another module.
    owner_name, _, attr = self.index.canonical(static_name).rpartition(".")
    owner = self.index.types.get(owner_name)
    if owner is not None and owner.is_module:
      return self._module_globals(owner).get(attr)
    return None

  def _module_globals(self, module: TypeSymbol) -> Dict[str, TypeSymbol]:
    if module.qualified_name == self.info.name:
      return self._globals
    info = self.index.modules.get(module.qualified_name)
    if info is None:
      return {}
    return CallBinder(self.index, info)._globals


def bind_calls(index: SymbolIndex, info: ModuleInfo) -> Dict[cst.Call, CallBinding]:
  """
  Binds all calls of one module.

  Args:
      index: The fully built symbol index.
      info: The module to bind.

  Returns:
      Dict[cst.Call, CallBinding]: Bindings keyed by call node.
  """
  binder = CallBinder(index, info)
  info.tree.visit(binder)
  return binder.bindings
