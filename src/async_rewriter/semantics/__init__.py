"""
Semantic context: symbols, declaration lookup and call binding for Python sources.
"""

from async_rewriter.semantics.binder import CallBinding
from async_rewriter.semantics.context import SemanticContext, SourceUnit, iter_source_files
from async_rewriter.semantics.symbols import (
  MarkerData,
  MethodKind,
  MethodSymbol,
  ParameterKind,
  ParameterSymbol,
  TypeKind,
  TypeSymbol,
)

__all__ = [
  "CallBinding",
  "MarkerData",
  "MethodKind",
  "MethodSymbol",
  "ParameterKind",
  "ParameterSymbol",
  "SemanticContext",
  "SourceUnit",
  "TypeKind",
  "TypeSymbol",
  "iter_source_files",
]
