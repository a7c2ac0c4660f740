"""
Runtime Configuration Store.

Holds the knobs of a rewrite run: naming of the generated methods, the
cancellation parameter name, user-excluded types and extra reference files.
Values come from ``[tool.async_rewriter]`` in the nearest ``pyproject.toml``
and can be overridden by explicit arguments (CLI flags or API calls).
"""

import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

_IDENTIFIER_FRAGMENT = re.compile(r"^[A-Za-z0-9_]+$")

DEFAULT_SUPPRESSIONS = [
  "# pylint: disable=arguments-differ,invalid-overridden-method",
  '# mypy: disable-error-code="override"',
]


class RuntimeConfig(BaseModel):
  """
  Configuration container for one rewrite run.
  """

  excluded_types: List[str] = Field(
    default_factory=list,
    description="Fully-qualified type names whose methods are never rewritten.",
  )
  references: List[str] = Field(
    default_factory=list,
    description="Extra files or importable module names used only to resolve symbols.",
  )
  async_suffix: str = Field("_async", description="Suffix of async counterparts and of the cancellable variant.")
  forwarding_suffix: str = Field("_async_nocancel", description="Suffix of the generated forwarding variant.")
  cancellation_param_name: str = Field(
    "cancellation_token", description="Name of the inserted cancellation parameter."
  )
  suppression_directives: List[str] = Field(
    default_factory=lambda: list(DEFAULT_SUPPRESSIONS),
    description="Header comments silencing linter warnings expected in generated code.",
  )

  @field_validator("async_suffix", "forwarding_suffix")
  @classmethod
  def validate_suffix(cls, v: str) -> str:
    """
    Ensures a suffix can be appended to an identifier.

    Raises:
        ValueError: If the suffix is empty or contains non-identifier characters.
    """
    if not v or not _IDENTIFIER_FRAGMENT.match(v):
      raise ValueError(f"Invalid method name suffix: '{v}'")
    return v

  @field_validator("cancellation_param_name")
  @classmethod
  def validate_param_name(cls, v: str) -> str:
    if not v.isidentifier():
      raise ValueError(f"Invalid cancellation parameter name: '{v}'")
    return v

  @field_validator("suppression_directives")
  @classmethod
  def validate_directives(cls, v: List[str]) -> List[str]:
    for line in v:
      if not line.startswith("#"):
        raise ValueError(f"Suppression directive must be a comment: '{line}'")
    return v

  @classmethod
  def load(
    cls,
    excluded_types: Optional[List[str]] = None,
    references: Optional[List[str]] = None,
    async_suffix: Optional[str] = None,
    forwarding_suffix: Optional[str] = None,
    cancellation_param_name: Optional[str] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and overrides with explicit arguments.

    List settings are concatenated (TOML first), scalar settings are replaced.

    Args:
        excluded_types (Optional[List[str]]): Additional excluded type names.
        references (Optional[List[str]]): Additional reference paths or module names.
        async_suffix (Optional[str]): Override for the async suffix.
        forwarding_suffix (Optional[str]): Override for the forwarding suffix.
        cancellation_param_name (Optional[str]): Override for the parameter name.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The resolved configuration.

    Raises:
        ValueError: If the merged values fail validation.
    """
    toml_config, toml_dir = _load_toml_settings(search_path or Path.cwd())

    raw_refs = toml_config.get("references", [])
    toml_refs = []
    for ref in raw_refs:
      candidate = toml_dir / ref if toml_dir else Path(ref)
      toml_refs.append(str(candidate.resolve()) if candidate.exists() else ref)

    values: Dict[str, Any] = {
      "excluded_types": [*toml_config.get("excluded_types", []), *(excluded_types or [])],
      "references": [*toml_refs, *(references or [])],
    }
    for key, override in (
      ("async_suffix", async_suffix),
      ("forwarding_suffix", forwarding_suffix),
      ("cancellation_param_name", cancellation_param_name),
    ):
      final = override if override is not None else toml_config.get(key)
      if final is not None:
        values[key] = final
    if "suppression_directives" in toml_config:
      values["suppression_directives"] = toml_config["suppression_directives"]

    try:
      return cls.model_validate(values)
    except ValidationError as e:
      raise ValueError(f"Configuration validation failed: {e}")


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches the start directory and its parents for 'pyproject.toml'.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The ``[tool.async_rewriter]`` table and the
      directory it was found in.
  """
  current = start_path.resolve()
  if current.is_file():
    current = current.parent

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      with open(toml_path, "rb") as f:
        data = tomllib.load(f)
      return data.get("tool", {}).get("async_rewriter", {}), parent

  return {}, None
