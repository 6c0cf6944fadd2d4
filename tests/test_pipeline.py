"""
Pipeline, CLI and MCP Server Tests.

Validates end to end:
  1. Source discovery (recursive, sorted, skipped build folders)
  2. Both passes chained over one tree; only changed files are written
  3. Dry runs never touch the disk
  4. Missing paths fail before any processing
  5. The typer CLI and the MCP tools drive the same pipeline
  6. Determinism across fresh compilations of the same sources
"""

import os
import sys
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from typer.testing import CliRunner

from syntax_transformer.cli import app
from syntax_transformer.compilation import (
    Compilation,
    SourceNotFoundError,
    discover_source_files,
    load_compilation,
)
from syntax_transformer.pipeline import RewritePipeline, RewriteResult, rewrite_path, rewrite_tree

CONTROLLER = """\
using Microsoft.AspNetCore.Mvc;

namespace Shop.Controllers
{
    public class OrdersController : ControllerBase
    {
        public IActionResult Get(int id)
        {
            var doubled = id * 2;
            return Ok(doubled);
        }
    }
}
"""

CONTROLLER_EXPECTED = """\
using Microsoft.AspNetCore.Mvc;

namespace Shop.Controllers
{
    [Authorize]
    [ApiController]
    [Route("api/[controller]")]
    public class OrdersController : ControllerBase
    {
        [ProducesResponseType(typeof(OkObjectResult), 200)]
        public IActionResult Get(int id)
        {
            int doubled = id * 2;
            return Ok(doubled);
        }
    }
}
"""

UNCHANGED = """\
namespace Shop
{
    // nothing to do here
    public class Clean
    {
        public int Twice(int x)
        {
            int y = x * 2;
            return y;
        }
    }
}
"""


def _write(root, rel, text):
    path = os.path.join(root, rel)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    return path


def _read(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


class WorkspaceTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        self.controller = _write(self.root, "Controllers/OrdersController.cs", CONTROLLER)
        self.clean = _write(self.root, "Clean.cs", UNCHANGED)

    def tearDown(self):
        self._tmp.cleanup()


class TestDiscovery(WorkspaceTestCase):

    def test_recursive_and_sorted(self):
        _write(self.root, "A/Zeta.cs", "class Zeta { }\n")
        files = [os.path.relpath(f, self.root).replace("\\", "/") for f in discover_source_files(self.root)]
        self.assertEqual(files, ["A/Zeta.cs", "Clean.cs", "Controllers/OrdersController.cs"])

    def test_other_extensions_and_build_output_skipped(self):
        _write(self.root, "notes.txt", "var x = 5;\n")
        _write(self.root, "obj/Debug/AssemblyInfo.cs", "class Generated { }\n")
        files = discover_source_files(self.root)
        self.assertEqual(len(files), 2)

    def test_single_file(self):
        self.assertEqual(discover_source_files(self.clean), [self.clean])

    def test_missing_path(self):
        with self.assertRaises(SourceNotFoundError):
            discover_source_files(os.path.join(self.root, "missing"))
        with self.assertRaises(FileNotFoundError):
            load_compilation(os.path.join(self.root, "missing"))


class TestPipeline(WorkspaceTestCase):

    def test_both_passes_applied(self):
        results = rewrite_path(self.root)
        self.assertEqual(_read(self.controller), CONTROLLER_EXPECTED)
        by_path = {os.path.basename(r.file_path): r for r in results}
        self.assertTrue(by_path["OrdersController.cs"].written)
        self.assertIsInstance(by_path["OrdersController.cs"], RewriteResult)

    def test_unchanged_file_not_written(self):
        before = os.stat(self.clean).st_mtime_ns
        os.utime(self.clean, ns=(before - 10_000_000_000, before - 10_000_000_000))
        stamped = os.stat(self.clean).st_mtime_ns
        results = rewrite_path(self.root)
        clean = next(r for r in results if r.file_path == self.clean)
        self.assertFalse(clean.changed)
        self.assertFalse(clean.written)
        self.assertEqual(os.stat(self.clean).st_mtime_ns, stamped)
        self.assertEqual(_read(self.clean), UNCHANGED)

    def test_dry_run_keeps_files(self):
        pipeline = RewritePipeline(load_compilation(self.root))
        results = pipeline.run(dry_run=True, keep_text=True)
        changed = [r for r in results if r.changed]
        self.assertEqual(len(changed), 1)
        self.assertFalse(changed[0].written)
        self.assertEqual(changed[0].new_text, CONTROLLER_EXPECTED)
        self.assertEqual(_read(self.controller), CONTROLLER)

    def test_second_run_is_stable(self):
        rewrite_path(self.root)
        results = rewrite_path(self.root)
        self.assertFalse(any(r.changed for r in results))
        self.assertEqual(_read(self.controller), CONTROLLER_EXPECTED)

    def test_crlf_file_keeps_line_endings(self):
        path = _write(self.root, "Crlf.cs", "class C\r\n{\r\n    void M()\r\n    {\r\n        var x = 1;\r\n    }\r\n}\r\n")
        rewrite_path(path)
        self.assertEqual(_read(path), "class C\r\n{\r\n    void M()\r\n    {\r\n        int x = 1;\r\n    }\r\n}\r\n")


LOOPS = """\
using System.Collections.Generic;

namespace Shop
{
    public class Tally
    {
        public Dictionary<string, int> Counts;
        public List<string> Names;

        public void Run()
        {
            for (var i = 0, j = 1; i < j; i++) { }
            foreach (var (name, count) in this.Counts) { }
            foreach (var name in this.Names) { }
            var total = 3000000000;
        }
    }
}
"""


class TestDeterminism(unittest.TestCase):
    """Fresh compilations of the same sources rewrite to the same text."""

    SOURCES = {
        "Controllers/OrdersController.cs": CONTROLLER,
        "Clean.cs": UNCHANGED,
        "Tally.cs": LOOPS,
    }

    def _rewrite_all(self):
        compilation = Compilation.from_sources(dict(self.SOURCES))
        return {
            tree.file_path: rewrite_tree(tree, compilation.get_semantic_model(tree)).to_full_string()
            for tree in compilation.trees
        }

    def test_repeated_runs_identical(self):
        first = self._rewrite_all()
        for _ in range(3):
            self.assertEqual(self._rewrite_all(), first)

    def test_source_order_does_not_matter(self):
        forward = self._rewrite_all()
        compilation = Compilation.from_sources(dict(reversed(list(self.SOURCES.items()))))
        backward = {
            tree.file_path: rewrite_tree(tree, compilation.get_semantic_model(tree)).to_full_string()
            for tree in compilation.trees
        }
        self.assertEqual(backward, forward)

    def test_loop_forms(self):
        out = self._rewrite_all()["Tally.cs"]
        self.assertIn("for (var i = 0, j = 1; i < j; i++) { }", out)
        self.assertIn("foreach (var (name, count) in this.Counts) { }", out)
        self.assertIn("foreach (String name in this.Names) { }", out)
        self.assertIn("uint total = 3000000000;", out)

    def test_controller_output(self):
        self.assertEqual(self._rewrite_all()["Controllers/OrdersController.cs"], CONTROLLER_EXPECTED)


class TestCli(WorkspaceTestCase):

    def test_rewrites_directory(self):
        result = CliRunner().invoke(app, [self.root])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("1 of 2 file(s) rewritten", result.output)
        self.assertEqual(_read(self.controller), CONTROLLER_EXPECTED)

    def test_missing_path_is_usage_error(self):
        result = CliRunner().invoke(app, [os.path.join(self.root, "missing")])
        self.assertNotEqual(result.exit_code, 0)
        self.assertEqual(_read(self.controller), CONTROLLER)


class TestMcpServer(WorkspaceTestCase):

    def setUp(self):
        super().setUp()
        import fastmcp_server
        self.server = fastmcp_server

    def test_tools_require_workspace(self):
        self.server.compilation = None
        self.assertTrue(self.server.preview_rewrite().startswith("Error"))
        self.assertTrue(self.server.apply_rewrite().startswith("Error"))

    def test_load_preview_apply(self):
        self.assertIn("Parsed 2 .cs file(s)", self.server.load_workspace(self.root))
        preview = self.server.preview_rewrite()
        self.assertIn("+            int doubled = id * 2;", preview)
        self.assertIn("+    [Authorize]", preview)
        self.assertEqual(_read(self.controller), CONTROLLER)

        applied = self.server.apply_rewrite("Controllers/OrdersController.cs")
        self.assertIn("Controllers/OrdersController.cs", applied)
        self.assertEqual(_read(self.controller), CONTROLLER_EXPECTED)

    def test_load_missing_workspace(self):
        self.assertTrue(self.server.load_workspace(os.path.join(self.root, "missing")).startswith("Error"))

    def test_unknown_file(self):
        self.server.load_workspace(self.root)
        self.assertTrue(self.server.preview_rewrite("Nope.cs").startswith("Error"))

    def test_result_type_tools(self):
        listing = self.server.list_result_types()
        self.assertIn("`OkObjectResult`", listing)
        self.assertIn("`NotFoundResult`", listing)
        self.assertIn("(typeof(NotFoundResult), 404)", self.server.explain_result_type("NotFoundResult"))
        self.assertTrue(self.server.explain_result_type("ViewResult").startswith("Error"))
        self.assertTrue(self.server.list_result_types("Bogus").startswith("Error"))


if __name__ == "__main__":
    unittest.main()
