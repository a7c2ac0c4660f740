"""
Tests for the Tree Assembler.

Verifies:
1. Generated methods are grouped by namespace, class and nested class.
2. Generated classes extend their originals; only ``Generic``/``Protocol``
   bases are carried over besides.
3. Names of the originating module read by generated code are imported.
4. Merged output layout: directives, deduplicated imports, namespace banners.
5. Namespaces with the same name are regrouped on merge.
"""

import textwrap
from unittest.mock import MagicMock

import libcst as cst
import pytest

from async_rewriter.config import RuntimeConfig
from async_rewriter.core.assembler import ClassNode, NamespaceNode, RewrittenUnit, merge_units, required_imports
from async_rewriter.core.engine import RewriteEngine
from async_rewriter.core.synthesizer import GeneratedMethod
from async_rewriter.utils.cst_utils import node_to_code

SHAPES = """
    from typing import Generic, TypeVar

    from .base import Base
    from async_rewriter import rewrite_async

    T = TypeVar("T")


    class Box(Generic[T], Base):
      @rewrite_async
      def get(self) -> T:
        return self.value

      class Lid:
        @rewrite_async
        def open(self) -> None:
          pass

      def plain(self) -> None: ...


    class Empty:
      def nothing(self) -> None: ...


    @rewrite_async
    def area(w: int, h: int) -> int:
      return w * h
"""

BASE = """
    import os

    from async_rewriter import rewrite_async


    class Base:
      @rewrite_async
      def close(self) -> None:
        os.sync()
"""

EXPECTED = """
    # pylint: disable=arguments-differ,invalid-overridden-method
    # mypy: disable-error-code="override"
    from typing import Awaitable, Generic, TypeVar
    from async_rewriter.cancellation import CancellationToken
    from pkg.base import Base
    from async_rewriter import rewrite_async
    import pkg.shapes
    from pkg.shapes import T
    import os
    import pkg.base


    # namespace: pkg.shapes
    def area_async_nocancel(w: int, h: int) -> Awaitable[int]:
      return area_async(w, h, CancellationToken.NONE)


    async def area_async(w: int, h: int, cancellation_token: CancellationToken) -> int:
      return w * h


    class Box(pkg.shapes.Box, Generic[T]):
      def get_async_nocancel(self) -> Awaitable[T]:
        return self.get_async(CancellationToken.NONE)

      async def get_async(self, cancellation_token: CancellationToken) -> T:
        return self.value

      class Lid(pkg.shapes.Box.Lid):
        def open_async_nocancel(self) -> Awaitable[None]:
          return self.open_async(CancellationToken.NONE)

        async def open_async(self, cancellation_token: CancellationToken) -> None:
          pass


    # namespace: pkg.base
    class Base(pkg.base.Base):
      def close_async_nocancel(self) -> Awaitable[None]:
        return self.close_async(CancellationToken.NONE)

      async def close_async(self, cancellation_token: CancellationToken) -> None:
        os.sync()
"""


@pytest.fixture
def rewritten(build_context):
  context = build_context({"pkg/shapes.py": SHAPES, "pkg/base.py": BASE})
  return list(RewriteEngine(RuntimeConfig()).rewrite(context.units, context))


def test_unit_structure(rewritten):
  shapes = rewritten[0]

  assert shapes.source.module_name == "pkg.shapes"
  assert [ns.name for ns in shapes.namespaces] == ["pkg.shapes"]
  namespace = shapes.namespaces[0]
  assert [m.name for m in namespace.functions] == ["area_async_nocancel", "area_async"]
  assert [c.name for c in namespace.classes] == ["Box"]

  box = namespace.classes[0]
  assert [m.name for m in box.methods] == ["get_async_nocancel", "get_async"]
  assert [c.name for c in box.classes] == ["Lid"]
  assert [m.name for m in box.classes[0].methods] == ["open_async_nocancel", "open_async"]


def test_unit_methods_flattened(rewritten):
  assert [m.name for m in rewritten[0].methods] == [
    "area_async_nocancel",
    "area_async",
    "get_async_nocancel",
    "get_async",
    "open_async_nocancel",
    "open_async",
  ]


def test_only_generic_bases_kept(rewritten):
  box = rewritten[0].namespaces[0].classes[0]

  assert [node_to_code(arg.value) for arg in box.bases] == ["Generic[T]"]
  assert box.origin == "pkg.shapes.Box"
  assert box.classes[0].origin == "pkg.shapes.Box.Lid"


def test_relative_imports_absolutized(rewritten):
  rendered = [node_to_code(node) for node in rewritten[0].imports]

  assert rendered[:2] == ["from typing import Awaitable", "from async_rewriter.cancellation import CancellationToken"]
  assert "from pkg.base import Base" in rendered


def test_originating_module_imports(rewritten):
  rendered = [node_to_code(node) for node in rewritten[0].imports]

  # The class nodes extend pkg.shapes classes; T is read by Generic[T] and the
  # annotations. area_async is generated, so it is not imported.
  assert rendered[-2:] == ["import pkg.shapes", "from pkg.shapes import T"]


def test_unit_renders_standalone(rewritten):
  code = rewritten[1].code

  assert code.startswith("# pylint: disable=arguments-differ,invalid-overridden-method\n")
  assert "# namespace: pkg.base\nclass Base(pkg.base.Base):\n" in code
  assert "pkg.shapes" not in code


def test_merged_output(rewritten):
  merged = merge_units(rewritten)

  assert merged.code == textwrap.dedent(EXPECTED).lstrip("\n")


def test_merge_deduplicates_shared_imports(rewritten):
  code = merge_units(rewritten).code

  assert code.count("from async_rewriter.cancellation import CancellationToken") == 1
  assert code.count("from async_rewriter import rewrite_async") == 1
  assert code.count("disable-error-code") == 1


def test_merge_of_nothing_is_empty():
  assert merge_units([]).code == ""


def _method(name):
  return GeneratedMethod(source=MagicMock(), name=name, node=cst.parse_statement(f"def {name}(self): pass\n"))


def test_merge_regroups_namespaces_by_name():
  first = RewrittenUnit(
    source=None,
    imports=required_imports(),
    namespaces=[NamespaceNode("pkg.a", classes=[ClassNode("A", methods=[_method("one")])])],
  )
  second = RewrittenUnit(
    source=None,
    imports=required_imports(),
    namespaces=[
      NamespaceNode("pkg.b", classes=[ClassNode("B", methods=[_method("two")])]),
      NamespaceNode("pkg.a", classes=[ClassNode("A", methods=[_method("three")])]),
    ],
  )

  code = merge_units([first, second]).code

  assert code.count("# namespace: pkg.a") == 1
  assert code.count("class A:") == 1
  assert code.index("def one") < code.index("def three") < code.index("# namespace: pkg.b")


def test_empty_class_node_renders_pass():
  assert node_to_code(ClassNode("Empty").to_cst()).strip() == "class Empty:\n    pass"
