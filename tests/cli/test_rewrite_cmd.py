"""
Tests for the 'rewrite' CLI command.

Verifies:
1. Output goes to ``--out`` or stdout.
2. ``--exclude`` and ``--reference`` flags reach the engine.
3. Failures are reported through the exit code and the log console.
"""

import io

import pytest
from rich.console import Console

from async_rewriter.cli.__main__ import main
from async_rewriter.utils.console import set_console

SERVICE = """
    from async_rewriter import CancellationToken, rewrite_async


    class Service:
      def bar(self, x: int) -> int: ...

      async def bar_async(self, x: int, cancellation_token: CancellationToken) -> int: ...

      @rewrite_async
      def foo(self, x: int) -> int:
        return self.bar(x)
"""


@pytest.fixture
def recorder():
  capture = Console(record=True, file=io.StringIO(), width=200)
  set_console(capture)
  return capture


def test_rewrite_to_file(source_tree, tmp_path, recorder):
  root = source_tree({"pkg/service.py": SERVICE})
  out = tmp_path / "generated" / "service_async.py"

  code = main(["rewrite", str(root / "pkg"), "--out", str(out)])

  assert code == 0
  text = out.read_text(encoding="utf-8")
  assert "async def foo_async(self, x: int, cancellation_token: CancellationToken) -> int:" in text
  assert "return await self.bar_async(x, cancellation_token)" in text

  log = recorder.export_text()
  assert "Generated 2 method(s) from 1 file(s)." in log
  assert "pkg.service.Service.foo_async" in log


def test_rewrite_to_stdout(source_tree, capsys, recorder):
  root = source_tree({"pkg/service.py": SERVICE})

  assert main(["rewrite", str(root / "pkg" / "service.py")]) == 0

  captured = capsys.readouterr()
  assert "# namespace: pkg.service" in captured.out
  assert "def foo_async_nocancel(self, x: int) -> Awaitable[int]:" in captured.out


def test_exclude_flag(source_tree, capsys, recorder):
  root = source_tree({"pkg/service.py": SERVICE})

  assert main(["rewrite", str(root / "pkg"), "--exclude", "pkg.service.Service"]) == 0

  out = capsys.readouterr().out
  assert "return self.bar(x)" in out
  assert "bar_async" not in out


def test_custom_suffixes(source_tree, capsys, recorder):
  root = source_tree({"pkg/service.py": SERVICE})

  assert main(["rewrite", str(root / "pkg"), "--async-suffix", "_co", "--forwarding-suffix", "_co_default"]) == 0

  out = capsys.readouterr().out
  assert "def foo_co_default(self, x: int) -> Awaitable[int]:" in out
  assert "async def foo_co(self, x: int, cancellation_token: CancellationToken) -> int:" in out
  # bar has no bar_co counterpart.
  assert "return self.bar(x)" in out


def test_unknown_exclusion_fails(source_tree, recorder):
  root = source_tree({"pkg/service.py": SERVICE})

  assert main(["rewrite", str(root / "pkg"), "--exclude", "pkg.service.Missing"]) == 1
  assert "Rewrite failed" in recorder.export_text()


def test_undecodable_source_fails(source_tree, recorder):
  root = source_tree({"pkg/service.py": SERVICE})
  (root / "pkg" / "legacy.py").write_bytes(b"NAME = 'caf\xe9'\n")

  assert main(["rewrite", str(root / "pkg")]) == 1
  assert "Rewrite failed" in recorder.export_text()


def test_missing_input_fails(tmp_path, recorder):
  assert main(["rewrite", str(tmp_path / "nope.py")]) == 1
  assert "Input not found" in recorder.export_text()


def test_invalid_suffix_fails(source_tree, recorder):
  root = source_tree({"pkg/service.py": SERVICE})

  assert main(["rewrite", str(root / "pkg"), "--async-suffix", "not-valid"]) == 1
  assert "Invalid method name suffix" in recorder.export_text()


def test_nothing_marked_warns(source_tree, capsys, recorder):
  root = source_tree({"pkg/plain.py": "def f() -> None: ...\n"})

  assert main(["rewrite", str(root / "pkg")]) == 0
  assert capsys.readouterr().out == ""
  assert "No marked methods found" in recorder.export_text()


def test_reference_flag(source_tree, capsys, recorder):
  streams = """
      from async_rewriter import CancellationToken


      class Stream:
        def read(self) -> bytes: ...

        async def read_async(self, cancellation_token: CancellationToken) -> bytes: ...
  """
  reader = """
      from async_rewriter import rewrite_async
      from lib.streams import Stream


      class Reader:
        @rewrite_async
        def load(self, stream: Stream) -> bytes:
          return stream.read()
  """
  root = source_tree({"lib/streams.py": streams, "app/reader.py": reader})

  assert main(["rewrite", str(root / "app"), "--reference", str(root / "lib")]) == 0
  assert "return await stream.read_async(cancellation_token)" in capsys.readouterr().out


def test_version(capsys):
  with pytest.raises(SystemExit) as excinfo:
    main(["--version"])

  assert excinfo.value.code == 0
  assert "0.1.0" in capsys.readouterr().out
