"""
Symbol Model of the Semantic Context.

These classes are the resolved view of declarations that every later stage of a
run consumes: types (classes and modules), methods and their parameters, and
the data carried by the rewrite marker.

Symbols compare by identity. Two ``TypeSymbol`` objects are the same type only
if they are the same object, which makes them safe members of the exclusion set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import libcst as cst


class ParameterKind(str, Enum):
  POSITIONAL_ONLY = "positional_only"
  POSITIONAL = "positional"
  VAR_POSITIONAL = "var_positional"
  KEYWORD_ONLY = "keyword_only"
  VAR_KEYWORD = "var_keyword"


class MethodKind(str, Enum):
  FUNCTION = "function"
  INSTANCE = "instance"
  STATIC = "static"
  CLASS = "class"
  EXTENSION = "extension"


class TypeKind(str, Enum):
  CLASS = "class"
  MODULE = "module"


@dataclass(frozen=True)
class MarkerData:
  """
  Arguments of a ``@rewrite_async`` marker.
  """

  force_public: bool = False


@dataclass(frozen=True)
class ParameterSymbol:
  """
  A declared parameter.
  """

  name: str
  type_name: Optional[str]
  """Canonical, import-resolved annotation text (None if unannotated)."""
  kind: ParameterKind = ParameterKind.POSITIONAL
  has_default: bool = False

  @property
  def is_optional(self) -> bool:
    return self.has_default

  @property
  def is_variadic(self) -> bool:
    return self.kind in (ParameterKind.VAR_POSITIONAL, ParameterKind.VAR_KEYWORD)

  @property
  def is_positional(self) -> bool:
    return self.kind in (ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL)

  def matches(self, other: "ParameterSymbol") -> bool:
    """
    Parameter equality used for counterpart matching: same name and same type.
    """
    return self.name == other.name and self.type_name == other.type_name


def parameters_match(left: Tuple[ParameterSymbol, ...], right: Tuple[ParameterSymbol, ...]) -> bool:
  """
  Positional sequence equality of two parameter lists under :meth:`ParameterSymbol.matches`.
  """
  if len(left) != len(right):
    return False
  return all(a.matches(b) for a, b in zip(left, right))


def leading_required_count(parameters: Tuple[ParameterSymbol, ...]) -> int:
  """
  Counts the leading parameters that are neither optional nor variadic.

  Keyword-only parameters end the run as well, since nothing can be inserted
  positionally after them.

  Args:
      parameters: The declared parameters (receiver excluded).

  Returns:
      int: The boundary index where a cancellation parameter is inserted.
  """
  count = 0
  for param in parameters:
    if param.is_optional or param.is_variadic or not param.is_positional:
      break
    count += 1
  return count


@dataclass(eq=False)
class TypeSymbol:
  """
  A class, or a module acting as the container of module-level functions.
  """

  qualified_name: str
  kind: TypeKind = TypeKind.CLASS
  module: str = ""
  bases: List["TypeSymbol"] = field(default_factory=list)
  base_names: List[str] = field(default_factory=list)
  """Canonical names of the declared bases, kept even when they do not resolve."""
  members: Dict[str, List["MethodSymbol"]] = field(default_factory=dict)
  attribute_types: Dict[str, str] = field(default_factory=dict)
  node: Optional[cst.ClassDef] = None

  @property
  def name(self) -> str:
    return self.qualified_name.rsplit(".", 1)[-1]

  @property
  def is_module(self) -> bool:
    return self.kind == TypeKind.MODULE

  @property
  def type_parameters(self) -> Optional[cst.TypeParameters]:
    """PEP 695 generic parameters of the class declaration, if any."""
    if self.node is None:
      return None
    return self.node.type_parameters

  def add_member(self, method: "MethodSymbol") -> None:
    self.members.setdefault(method.name, []).append(method)

  def get_members(self, name: str) -> List["MethodSymbol"]:
    """
    Returns the methods this type itself declares under ``name``.
    """
    return list(self.members.get(name, ()))

  def mro(self) -> List["TypeSymbol"]:
    """
    Returns this type followed by its resolved bases, depth-first, without repeats.
    """
    order: List[TypeSymbol] = []
    stack = [self]
    while stack:
      current = stack.pop(0)
      if any(current is seen for seen in order):
        continue
      order.append(current)
      stack = list(current.bases) + stack
    return order

  def lookup(self, name: str) -> List["MethodSymbol"]:
    """
    Finds ``name`` on this type or the first base along the MRO that declares it.
    """
    for cls in self.mro():
      found = cls.get_members(name)
      if found:
        return found
    return []

  def lookup_attribute_type(self, name: str) -> Optional[str]:
    for cls in self.mro():
      if name in cls.attribute_types:
        return cls.attribute_types[name]
    return None

  def __repr__(self) -> str:
    return f"TypeSymbol({self.qualified_name!r}, kind={self.kind.value})"


@dataclass(eq=False)
class MethodSymbol:
  """
  A resolved method or function declaration.
  """

  name: str
  containing_type: TypeSymbol
  parameters: Tuple[ParameterSymbol, ...] = ()
  """Declared parameters without ``self``/``cls`` or an extension receiver."""
  kind: MethodKind = MethodKind.INSTANCE
  return_type: Optional[str] = None
  decorators: Tuple[str, ...] = ()
  marker: Optional[MarkerData] = None
  is_async: bool = False
  receiver: Optional[ParameterSymbol] = None
  """The explicit receiver parameter of an extension method."""
  node: Optional[cst.FunctionDef] = None

  @property
  def qualified_name(self) -> str:
    return f"{self.containing_type.qualified_name}.{self.name}"

  @property
  def is_extension(self) -> bool:
    return self.kind == MethodKind.EXTENSION

  @property
  def is_marked(self) -> bool:
    return self.marker is not None

  @property
  def full_parameters(self) -> Tuple[ParameterSymbol, ...]:
    """
    The parameter list as declared, including an extension receiver.
    """
    if self.receiver is not None:
      return (self.receiver, *self.parameters)
    return self.parameters

  @property
  def required_count(self) -> int:
    return leading_required_count(self.parameters)

  def __repr__(self) -> str:
    params = ", ".join(p.name for p in self.parameters)
    return f"MethodSymbol({self.qualified_name}({params}))"
