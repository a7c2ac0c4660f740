"""
Tests for Import Merging.

Verifies:
1. Relative imports become absolute against the unit's package.
2. Imports of the same module collapse into one statement.
3. ``__future__`` imports come first.
"""

import libcst as cst
import pytest

from async_rewriter.core.import_merger import ImportMerger, absolutize_import, top_level_imports
from async_rewriter.utils.cst_utils import node_to_code


def _import(code):
  return cst.parse_statement(code).body[0]


def _merged(*lines):
  merger = ImportMerger()
  merger.add_all(_import(line) for line in lines)
  return cst.Module(body=merger.statements()).code.splitlines()


@pytest.mark.parametrize(
  "code, package, expected",
  [
    ("from . import x", "pkg.sub", "from pkg.sub import x"),
    ("from .mod import z", "pkg.sub", "from pkg.sub.mod import z"),
    ("from ..util import y", "pkg.sub", "from pkg.util import y"),
    ("from os import path", "pkg.sub", "from os import path"),
    ("import os", "pkg.sub", "import os"),
  ],
)
def test_absolutize_import(code, package, expected):
  assert node_to_code(absolutize_import(_import(code), package)) == expected


def test_top_level_imports_skip_nested():
  module = cst.parse_module("import os\nfrom a import b\n\ndef f():\n    import sys\n")

  assert [node_to_code(node) for node in top_level_imports(module)] == ["import os", "from a import b"]


def test_same_module_imported_once():
  assert _merged("import os", "import os", "import os.path") == ["import os", "import os.path"]


def test_first_plain_alias_wins():
  assert _merged("import numpy as np", "import numpy") == ["import numpy as np"]


def test_from_imports_take_union_of_names():
  lines = _merged(
    "from typing import Awaitable",
    "from typing import List, Awaitable",
    "from typing import Dict as D",
  )

  assert lines == ["from typing import Awaitable, List, Dict as D"]


def test_star_import_absorbs_names():
  assert _merged("from m import a", "from m import *") == ["from m import *"]


def test_future_imports_first():
  lines = _merged("import os", "from typing import List", "from __future__ import annotations")

  assert lines == ["from __future__ import annotations", "import os", "from typing import List"]


def test_plain_and_from_imports_are_distinct():
  assert _merged("import os", "from os import path") == ["import os", "from os import path"]
