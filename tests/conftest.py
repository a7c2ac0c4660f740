"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Source tree factory writing fixture packages into ``tmp_path``.
- A rewrite helper running the full engine over such a tree.
- A runner executing the generated module against its sources.
"""

import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

import pytest

# Add src to path so we can import 'async_rewriter' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from async_rewriter.config import RuntimeConfig  # noqa: E402
from async_rewriter.core.engine import RewriteEngine  # noqa: E402
from async_rewriter.semantics.context import SemanticContext  # noqa: E402
from async_rewriter.utils.console import reset_console  # noqa: E402


@pytest.fixture
def source_tree(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
  """
  Returns a factory writing ``{relative_path: source}`` into ``tmp_path``.

  Sources are dedented. Every directory that holds a written file also gets
  an empty ``__init__.py`` unless one is given, so files get package names.
  """

  def _write(files: Dict[str, str]) -> Path:
    for rel, source in files.items():
      target = tmp_path / rel
      target.parent.mkdir(parents=True, exist_ok=True)
      target.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
      init = target.parent / "__init__.py"
      if target.parent != tmp_path and not init.exists():
        init.write_text("", encoding="utf-8")
    return tmp_path

  return _write


@pytest.fixture
def build_context(source_tree) -> Callable[..., SemanticContext]:
  """
  Writes a source tree and builds the semantic context over all listed files.
  """

  def _build(files: Dict[str, str], references: Optional[List[str]] = None) -> SemanticContext:
    root = source_tree(files)
    return SemanticContext.build([root / rel for rel in files], references)

  return _build


@pytest.fixture
def rewrite(source_tree) -> Callable[..., str]:
  """
  Writes a source tree and returns the merged output of a full run.
  """

  def _rewrite(
    files: Dict[str, str],
    excluded_types: Optional[List[str]] = None,
    references: Optional[List[str]] = None,
    config: Optional[RuntimeConfig] = None,
  ) -> str:
    root = source_tree(files)
    engine = RewriteEngine(config=config)
    return engine.rewrite_paths([root / rel for rel in files], references=references, excluded_types=excluded_types)

  return _rewrite


@pytest.fixture
def run_generated(source_tree, monkeypatch) -> Iterator[Callable[..., Dict[str, Any]]]:
  """
  Rewrites a source tree and executes the merged output.

  The tree root goes on ``sys.path`` so the output can import the originating
  modules. Those modules are dropped from ``sys.modules`` afterwards, since
  fixture trees reuse package names.
  """
  packages: Set[str] = set()

  def _run(files: Dict[str, str]) -> Dict[str, Any]:
    root = source_tree(files)
    monkeypatch.syspath_prepend(str(root))
    packages.update(Path(rel).parts[0] for rel in files)
    code = RewriteEngine().rewrite_paths([root / rel for rel in files])
    namespace: Dict[str, Any] = {"__name__": "generated"}
    exec(compile(code, "generated", "exec"), namespace)
    return namespace

  yield _run
  for name in list(sys.modules):
    if name.split(".")[0] in packages:
      del sys.modules[name]


@pytest.fixture(autouse=True)
def isolate_console():
  """Restores the default console after tests that inject a recording one."""
  yield
  reset_console()
