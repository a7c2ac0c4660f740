"""
Rewrite Engine.

Drives one rewrite run:

1.  **Context**: builds (or receives) the ``SemanticContext`` of the sources.
2.  **Resolution**: the ``MarkerResolver`` fixes the cancellation type, the
    exclusion set and the counterpart/base-member tables in a ``RunContext``.
    Configuration errors surface here, before any code is generated.
3.  **Validation**: every unit must be bound in the context.
4.  **Synthesis**: each unit with marked methods yields a ``RewrittenUnit``
    (units without marked methods produce nothing).
5.  **Merge**: all rewritten units are merged into one module.

Any fatal error aborts the run; ``rewrite_and_merge`` materializes every unit
before merging, so callers never see partial output.
"""

from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import libcst as cst
from pydantic import BaseModel, Field

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.assembler import RewrittenUnit, assemble_unit, merge_units
from async_rewriter.core.marker_resolver import MarkerResolver, find_marked_methods
from async_rewriter.core.run_context import RunContext
from async_rewriter.core.synthesizer import GeneratedMethod, MethodSynthesizer
from async_rewriter.errors import MissingSemanticBinding
from async_rewriter.semantics.context import SemanticContext, SourceUnit
from async_rewriter.utils.console import log_debug, log_info


class RewriteResult(BaseModel):
  """
  Summary of a completed run.
  """

  code: str = Field(default="", description="The merged generated source.")
  units: List[str] = Field(default_factory=list, description="Paths of the units that produced output.")
  generated: List[str] = Field(default_factory=list, description="Qualified names of the generated methods.")

  @property
  def is_empty(self) -> bool:
    return not self.units


class RewriteEngine:
  """
  Synthesizes async variants for marked methods and merges them into one module.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
    """
    Args:
        config: Run configuration. Defaults to ``RuntimeConfig()``.
    """
    self.config = config or RuntimeConfig()

  def prepare(self, context: SemanticContext, excluded_types: Optional[Sequence[str]] = None) -> RunContext:
    """
    Establishes the run state.

    Raises:
        ConfigurationError: If the cancellation type or an excluded type is unknown.
    """
    return MarkerResolver(context, self.config).resolve(excluded_types)

  def rewrite(
    self,
    units: Sequence[SourceUnit],
    context: SemanticContext,
    excluded_types: Optional[Sequence[str]] = None,
  ) -> Iterator[RewrittenUnit]:
    """
    Lazily rewrites each unit that contains marked methods.

    Args:
        units: Units to rewrite, in output order.
        context: The semantic context the units are bound in.
        excluded_types: Extra excluded type names.

    Yields:
        RewrittenUnit: One per unit with at least one marked method.

    Raises:
        ConfigurationError: Before the first unit, on unresolvable configuration.
        MissingSemanticBinding: Before the first unit, if a unit is not bound.
        UnsupportedExpressionShape: If a rewritable call has an unsupported callee.
    """
    run = self.prepare(context, excluded_types)
    for unit in units:
      if not context.is_bound(unit):
        raise MissingSemanticBinding(unit.path)

    synthesizer = MethodSynthesizer(context, run)
    for unit in units:
      marked = find_marked_methods(context, unit)
      if not marked:
        log_debug(f"No marked methods in {unit.path}; skipping")
        continue

      generated: List[GeneratedMethod] = []
      for method in marked:
        generated.extend(synthesizer.synthesize(method, unit))
      log_info(f"Rewrote {len(marked)} marked method(s) in {unit.path}")
      yield assemble_unit(unit, generated, self.config.suppression_directives, context.index.types)

  def rewrite_and_merge(
    self,
    units: Sequence[SourceUnit],
    context: SemanticContext,
    excluded_types: Optional[Sequence[str]] = None,
  ) -> cst.Module:
    """
    Rewrites all units and merges the results.

    Returns:
        cst.Module: The merged module.
    """
    rewritten = list(self.rewrite(units, context, excluded_types))
    return merge_units(rewritten)

  def run(
    self,
    paths: Sequence[Union[str, Path]],
    references: Optional[Sequence[str]] = None,
    excluded_types: Optional[Sequence[str]] = None,
  ) -> RewriteResult:
    """
    Builds the semantic context from files and performs a full run.

    Args:
        paths: Source files or directories.
        references: Extra reference files, directories or module names.
        excluded_types: Extra excluded type names.

    Returns:
        RewriteResult: Merged code and a summary.
    """
    context = SemanticContext.build(paths, [*self.config.references, *(references or [])])
    rewritten = list(self.rewrite(context.units, context, excluded_types))
    return RewriteResult(
      code=merge_units(rewritten).code if rewritten else "",
      units=[str(unit.source.path) for unit in rewritten if unit.source is not None],
      generated=[f"{m.source.containing_type.qualified_name}.{m.name}" for unit in rewritten for m in unit.methods],
    )

  def rewrite_paths(
    self,
    paths: Sequence[Union[str, Path]],
    references: Optional[Sequence[str]] = None,
    excluded_types: Optional[Sequence[str]] = None,
  ) -> str:
    """
    Convenience wrapper returning only the merged source text.
    """
    return self.run(paths, references, excluded_types).code
