"""
Signature Helpers.

Naming and parameter-list utilities shared by the counterpart table, the
method synthesizer and the call rewriter.
"""

from typing import List, Optional, Tuple

import libcst as cst

from async_rewriter.config import RuntimeConfig
from async_rewriter.semantics.symbols import MethodKind, MethodSymbol
from async_rewriter.utils.cst_utils import create_dotted_name, make_arg


def strip_private(name: str) -> str:
  """
  Removes leading underscores from a name, leaving dunder names untouched.

  Args:
      name: The identifier.

  Returns:
      str: ``"_flush"`` -> ``"flush"``; ``"__enter__"`` stays as is.
  """
  if name.startswith("__") and name.endswith("__"):
    return name
  return name.lstrip("_") or name


def generated_names(method: MethodSymbol, config: RuntimeConfig) -> Tuple[str, str]:
  """
  Computes the names of the two generated variants of a marked method.

  Args:
      method: The marked method.
      config: Run configuration providing the suffixes.

  Returns:
      Tuple[str, str]: ``(cancellable_name, forwarding_name)``.
  """
  base = method.name
  if method.marker is not None and method.marker.force_public:
    base = strip_private(base)
  return base + config.async_suffix, base + config.forwarding_suffix


def has_implicit_receiver(method: MethodSymbol) -> bool:
  """True when the declaration's first parameter is ``self``/``cls``."""
  return method.kind in (MethodKind.INSTANCE, MethodKind.CLASS)


def _positional_params(params: cst.Parameters) -> List[cst.Param]:
  return [*params.posonly_params, *params.params]


def insert_parameter(params: cst.Parameters, index: int, new_param: cst.Param) -> cst.Parameters:
  """
  Inserts a parameter at a flat positional index of a libcst parameter list.

  The index counts positional-only and regular parameters together,
  including ``self``/``cls``. Inserting exactly at the end of the
  positional-only block places the parameter in the regular block.

  Args:
      params: The original parameters.
      index: Flat insertion index.
      new_param: The parameter to insert.

  Returns:
      cst.Parameters: A new parameter list.
  """
  posonly = list(params.posonly_params)
  regular = list(params.params)
  if index < len(posonly):
    posonly.insert(index, new_param)
  else:
    regular.insert(index - len(posonly), new_param)
  return params.with_changes(posonly_params=posonly, params=regular)


def cancellation_param(config: RuntimeConfig) -> cst.Param:
  """
  Builds ``cancellation_token: CancellationToken``.
  """
  return cst.Param(
    name=cst.Name(config.cancellation_param_name),
    annotation=cst.Annotation(annotation=cst.Name("CancellationToken")),
  )


def forwarding_arguments(params: cst.Parameters, skip_receiver: bool, index: int, token: cst.BaseExpression) -> List[cst.Arg]:
  """
  Builds the argument list that forwards every declared parameter unchanged.

  Positional parameters are passed positionally with ``token`` inserted at
  ``index``; ``*args``, keyword-only parameters and ``**kwargs`` are passed as
  ``*args``, ``k=k`` and ``**kwargs``.

  Args:
      params: The declaration's parameters.
      skip_receiver: True to leave out the first positional parameter (``self``/``cls``).
      index: Insertion index of ``token`` among the forwarded positional arguments.
      token: The cancellation expression to insert.

  Returns:
      List[cst.Arg]: The call arguments.
  """
  positional = _positional_params(params)
  if skip_receiver and positional:
    positional = positional[1:]

  args: List[cst.Arg] = [make_arg(cst.Name(p.name.value)) for p in positional]
  args.insert(index, make_arg(token))
  if isinstance(params.star_arg, cst.Param):
    args.append(make_arg(cst.Name(params.star_arg.name.value), star="*"))
  for param in params.kwonly_params:
    args.append(make_arg(cst.Name(param.name.value), keyword=param.name.value))
  if params.star_kwarg is not None:
    args.append(make_arg(cst.Name(params.star_kwarg.name.value), star="**"))
  return args


def leading_positional_args(args: List[cst.Arg]) -> int:
  """
  Counts call arguments passed positionally before the first keyword or star argument.
  """
  count = 0
  for arg in args:
    if arg.keyword is not None or arg.star:
      break
    count += 1
  return count


def receiver_expression(method: MethodSymbol, params: cst.Parameters) -> Optional[cst.BaseExpression]:
  """
  Returns the expression a forwarding method calls its cancellable twin on.

  ``self``/``cls`` for instance and class methods, the class name for static
  methods, and None for module-level functions.
  """
  if has_implicit_receiver(method):
    positional = _positional_params(params)
    if positional:
      return cst.Name(positional[0].name.value)
    return None
  if method.kind == MethodKind.STATIC:
    relative = method.containing_type.qualified_name[len(method.containing_type.module) + 1 :]
    return create_dotted_name(relative)
  return None
