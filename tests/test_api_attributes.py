"""
API Attribute Transformer Tests.

Covers:
  1. Controller baseline attributes, including the behaviour of the
     presence check on classes that already carry attribute lists
  2. Return statement classification (object creation, bare invocation,
     conditional branches) through an explicit accumulator
  3. ProducesResponseType deduplication and layout
  4. Probe failures propagating out of the pass
"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from syntax_transformer.api_attributes import (
    ApiAttributeTransformer,
    classify_return,
    collect_result_types,
    controller_attribute_lists,
)
from syntax_transformer.compilation import Compilation
from syntax_transformer.result_types import ResultProbeError, get_result_kind
from syntax_transformer.syntax_tree import parse_text


def controller(methods: str = "", attributes: str = "", base: str = "ControllerBase") -> str:
    return (
        "using Microsoft.AspNetCore.Mvc;\n"
        "\n"
        "namespace Shop.Controllers\n"
        "{\n"
        f"{attributes}"
        f"    public class OrdersController : {base}\n"
        "    {\n"
        f"{methods}"
        "    }\n"
        "}\n"
    )


def rewrite(source: str) -> str:
    compilation = Compilation.from_sources({"OrdersController.cs": source})
    tree = compilation.trees[0]
    return ApiAttributeTransformer(compilation.get_semantic_model(tree)).rewrite(tree).to_full_string()


def first_of_kind(source: str, kind: str):
    tree = parse_text(source)
    return next(e for e in tree.root.descendants() if e.kind == kind)


BASELINE = (
    "    [Authorize]\n"
    "    [ApiController]\n"
    '    [Route("api/[controller]")]\n'
    "    public class OrdersController : ControllerBase\n"
)


class TestControllerAttributes(unittest.TestCase):

    def test_baseline_added_to_undecorated_controller(self):
        out = rewrite(controller())
        self.assertIn(BASELINE, out)
        self.assertEqual(out.count("[Authorize]"), 1)

    def test_non_controller_untouched(self):
        source = controller(base="Component")
        self.assertEqual(rewrite(source), source)

    def test_class_without_bases_untouched(self):
        source = "namespace Shop\n{\n    public class Plain\n    {\n    }\n}\n"
        self.assertEqual(rewrite(source), source)

    def test_workspace_controller_base_is_not_the_marker(self):
        """A ControllerBase declared in the workspace displays with its namespace."""
        source = controller() + "namespace Shop.Controllers\n{\n    public class ControllerBase { }\n}\n"
        self.assertEqual(rewrite(source), source)

    def test_second_pass_adds_nothing(self):
        once = rewrite(controller())
        self.assertEqual(rewrite(once), once)

    def test_single_matching_list_is_duplicated(self):
        """Presence check as implemented: a candidate is added only when every
        existing list renders the same as it, so a lone [Authorize] gets a twin
        and the other baseline lists are skipped."""
        out = rewrite(controller(attributes="    [Authorize]\n"))
        self.assertIn("    [Authorize]\n    [Authorize]\n    public class OrdersController", out)
        self.assertNotIn("[ApiController]", out)
        self.assertNotIn("[Route(", out)

    def test_unrelated_list_blocks_baseline(self):
        source = controller(attributes='    [Produces("application/json")]\n')
        self.assertEqual(rewrite(source), source)

    def test_leading_comments_stay_in_front(self):
        out = rewrite(controller(attributes="    /// <summary>Orders API.</summary>\n"))
        self.assertIn("    /// <summary>Orders API.</summary>\n    [Authorize]\n", out)

    def test_baseline_list_order(self):
        rendered = [lst.to_full_string() for lst in controller_attribute_lists()]
        self.assertEqual(rendered, ["[Authorize]", "[ApiController]", '[Route("api/[controller]")]'])


class TestClassification(unittest.TestCase):
    """classify_return threads the accumulator explicitly."""

    def _return(self, expression: str):
        return first_of_kind(f"class C {{ object M() {{ return {expression}; }} }}", "return_statement")

    def test_invocation_with_argument(self):
        found = classify_return(self._return("Ok(data)"), [])
        self.assertEqual([k.name for k in found], ["OkObjectResult"])

    def test_invocation_without_argument(self):
        found = classify_return(self._return("NotFound()"), [])
        self.assertEqual([k.name for k in found], ["NotFoundResult"])

    def test_object_creation(self):
        found = classify_return(self._return("new NoContentResult()"), [])
        self.assertEqual([k.name for k in found], ["NoContentResult"])

    def test_conditional_false_branch_first(self):
        found = classify_return(self._return("cond ? NotFound() : Ok(x)"), [])
        self.assertEqual([k.name for k in found], ["OkObjectResult", "NotFoundResult"])

    def test_conditional_object_creations(self):
        found = classify_return(self._return("cond ? new OkResult() : new BadRequestResult()"), [])
        self.assertEqual([k.name for k in found], ["BadRequestResult", "OkResult"])

    def test_qualified_invocation_ignored(self):
        self.assertEqual(classify_return(self._return("this.Ok(data)"), []), [])

    def test_unknown_name_ignored(self):
        self.assertEqual(classify_return(self._return("View()"), []), [])

    def test_bare_return_ignored(self):
        node = first_of_kind("class C { void M() { return; } }", "return_statement")
        self.assertEqual(classify_return(node, []), [])

    def test_accumulator_not_mutated(self):
        seed = [get_result_kind("OkResult")]
        found = classify_return(self._return("NotFound()"), seed)
        self.assertEqual(len(seed), 1)
        self.assertEqual([k.name for k in found], ["OkResult", "NotFoundResult"])

    def test_collect_deduplicates_in_order(self):
        method = first_of_kind(
            "class C { object M(bool a) { if (a) return NotFound(); if (!a) return Ok(1); return NotFound(); } }",
            "method_declaration",
        )
        self.assertEqual([k.name for k in collect_result_types(method)], ["NotFoundResult", "OkObjectResult"])


class TestMethodAttributes(unittest.TestCase):

    def test_ok_with_argument(self):
        methods = (
            "        public IActionResult Get(int id)\n"
            "        {\n"
            "            return Ok(id);\n"
            "        }\n"
        )
        out = rewrite(controller(methods))
        self.assertIn(
            "        [ProducesResponseType(typeof(OkObjectResult), 200)]\n"
            "        public IActionResult Get(int id)\n",
            out,
        )

    def test_conditional_gives_two_attributes(self):
        methods = (
            "        public IActionResult Find(bool found, int x)\n"
            "        {\n"
            "            return found ? NotFound() : Ok(x);\n"
            "        }\n"
        )
        out = rewrite(controller(methods))
        self.assertIn(
            "        [ProducesResponseType(typeof(OkObjectResult), 200)]\n"
            "        [ProducesResponseType(typeof(NotFoundResult), 404)]\n"
            "        public IActionResult Find",
            out,
        )

    def test_after_existing_attribute(self):
        methods = (
            "        [HttpGet]\n"
            "        public IActionResult List()\n"
            "        {\n"
            "            return new NoContentResult();\n"
            "        }\n"
        )
        out = rewrite(controller(methods))
        self.assertIn(
            "        [HttpGet]\n"
            "        [ProducesResponseType(typeof(NoContentResult), 204)]\n"
            "        public IActionResult List()\n",
            out,
        )

    def test_inline_attributes_stay_inline(self):
        methods = "        [HttpGet] public IActionResult Ping() { return Ok(); }\n"
        out = rewrite(controller(methods))
        self.assertIn("        [HttpGet] [ProducesResponseType(typeof(OkResult), 200)] public IActionResult Ping()", out)

    def test_existing_annotation_not_repeated(self):
        methods = (
            "        [ProducesResponseType(typeof(OkObjectResult), 200)]\n"
            "        public IActionResult Get(int id)\n"
            "        {\n"
            "            return Ok(id);\n"
            "        }\n"
        )
        out = rewrite(controller(methods))
        self.assertEqual(out.count("[ProducesResponseType(typeof(OkObjectResult), 200)]"), 1)

    def test_methods_outside_controllers_are_annotated(self):
        source = (
            "public class Helper\n"
            "{\n"
            "    public object Answer()\n"
            "    {\n"
            "        return BadRequest(\"no\");\n"
            "    }\n"
            "}\n"
        )
        out = rewrite(source)
        self.assertIn("    [ProducesResponseType(typeof(BadRequestObjectResult), 400)]\n    public object Answer()", out)

    def test_unknown_results_leave_method_untouched(self):
        methods = "        public IActionResult Index()\n        {\n            return View();\n        }\n"
        out = rewrite(controller(methods))
        self.assertNotIn("ProducesResponseType", out)

    def test_unprobeable_result_is_fatal(self):
        methods = (
            "        public IActionResult Create(int id)\n"
            "        {\n"
            "            return new CreatedAtActionResult(\"Get\", \"Orders\", null, id);\n"
            "        }\n"
        )
        with self.assertRaises(ResultProbeError):
            rewrite(controller(methods))


if __name__ == "__main__":
    unittest.main()
