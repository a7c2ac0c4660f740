"""
Rewrite pipeline: marker resolution, synthesis, call rewriting and assembly.
"""

from async_rewriter.core.assembler import ClassNode, NamespaceNode, RewrittenUnit, merge_units
from async_rewriter.core.counterparts import Counterpart, CounterpartTable
from async_rewriter.core.engine import RewriteEngine, RewriteResult
from async_rewriter.core.marker_resolver import MarkerResolver, find_marked_methods
from async_rewriter.core.run_context import RunContext
from async_rewriter.core.synthesizer import GeneratedMethod, MethodSynthesizer

__all__ = [
  "ClassNode",
  "Counterpart",
  "CounterpartTable",
  "GeneratedMethod",
  "MarkerResolver",
  "MethodSynthesizer",
  "NamespaceNode",
  "RewriteEngine",
  "RewriteResult",
  "RewrittenUnit",
  "RunContext",
  "find_marked_methods",
  "merge_units",
]
