"""
LibCST Helpers.

Small, stateless helpers for reading and building CST nodes that are shared by
the semantic context builder and the rewrite engine.
"""

from typing import Optional, Union

import libcst as cst

_EMPTY_MODULE = cst.Module(body=[])


def get_full_name(node: cst.CSTNode) -> str:
  """
  Flattens a Name or Attribute chain into a dot-separated string.

  Args:
      node: The CST node, typically ``cst.Name`` or ``cst.Attribute``.

  Returns:
      str: The dotted path (e.g. ``"pkg.mod.Class"``), or an empty string if the
      node is not a pure Name/Attribute chain.

  Example:
      >>> get_full_name(cst.Attribute(value=cst.Name("io"), attr=cst.Name("StringIO")))
      'io.StringIO'
  """
  if isinstance(node, cst.Name):
    return node.value
  if isinstance(node, cst.Attribute):
    base = get_full_name(node.value)
    if not base:
      return ""
    return f"{base}.{node.attr.value}"
  return ""


def create_dotted_name(name_str: str) -> Union[cst.Name, cst.Attribute]:
  """
  Builds a Name/Attribute chain from a dotted path.

  Args:
      name_str (str): Dot-separated path (e.g. ``"typing.Awaitable"``).

  Returns:
      Union[cst.Name, cst.Attribute]: The constructed node.
  """
  parts = name_str.split(".")
  node: Union[cst.Name, cst.Attribute] = cst.Name(parts[0])
  for part in parts[1:]:
    node = cst.Attribute(value=node, attr=cst.Name(part))
  return node


def node_to_code(node: cst.CSTNode) -> str:
  """
  Renders a detached CST node back to source text.

  Args:
      node: Any CST node.

  Returns:
      str: The source code of the node.
  """
  return _EMPTY_MODULE.code_for_node(node)


def decorator_name(decorator: cst.Decorator) -> str:
  """
  Returns the dotted name of a decorator, ignoring any call arguments.

  ``@functools.lru_cache(maxsize=None)`` yields ``"functools.lru_cache"``.
  """
  expr = decorator.decorator
  if isinstance(expr, cst.Call):
    expr = expr.func
  return get_full_name(expr)


def literal_bool(node: Optional[cst.BaseExpression]) -> Optional[bool]:
  """
  Evaluates a ``True``/``False`` name literal.

  Returns:
      Optional[bool]: The boolean value, or None if the node is not a bool literal.
  """
  if isinstance(node, cst.Name) and node.value in ("True", "False"):
    return node.value == "True"
  return None


def make_arg(value: cst.BaseExpression, keyword: Optional[str] = None, star: str = "") -> cst.Arg:
  """
  Builds a call argument, formatting keywords as ``name=value``.

  Args:
      value: The argument expression.
      keyword: Optional keyword name.
      star: ``""``, ``"*"`` or ``"**"``.

  Returns:
      cst.Arg: The argument node.
  """
  if keyword is None:
    return cst.Arg(value=value, star=star)
  return cst.Arg(
    value=value,
    keyword=cst.Name(keyword),
    equal=cst.AssignEqual(
      whitespace_before=cst.SimpleWhitespace(""),
      whitespace_after=cst.SimpleWhitespace(""),
    ),
  )

