"""
API Attribute Transformer — decorate ASP.NET Core controllers.

Two decorations:

  • Controller classes (a base type that resolves to ``ControllerBase``) get
    the baseline ``[Authorize]``, ``[ApiController]`` and
    ``[Route("api/[controller]")]`` attribute lists.
  • Methods get one ``[ProducesResponseType(typeof(T), code)]`` per distinct
    result type their ``return`` statements produce, inferred from the
    expression shape:

        return new NotFoundResult();        → NotFoundResult
        return Ok(order);                   → OkObjectResult
        return NotFound();                  → NotFoundResult
        return found ? Ok(x) : NotFound();  → both branches

Result names are resolved through the result type catalog; unknown names
are ignored.
"""

import logging
from typing import List

from syntax_transformer import csharp_syntax as cs
from syntax_transformer.result_types import (
    API_CONTROLLER,
    AUTHORIZE,
    ROUTE,
    ResultKind,
    build_annotation,
    build_result_annotation,
    find_matching_type,
)
from syntax_transformer.rewriter import SyntaxRewriter
from syntax_transformer.syntax_tree import SyntaxElement, SyntaxNode, make_attribute_list

logger = logging.getLogger(__name__)

CONTROLLER_BASE = "ControllerBase"
DEFAULT_ROUTE_TEMPLATE = "api/[controller]"


def controller_attribute_lists() -> List[SyntaxNode]:
    """The baseline attribute lists for a controller class, in order."""
    return [
        make_attribute_list(build_annotation(AUTHORIZE)),
        make_attribute_list(build_annotation(API_CONTROLLER)),
        make_attribute_list(build_annotation(ROUTE, f'("{DEFAULT_ROUTE_TEMPLATE}")')),
    ]


def _same(a: SyntaxNode, b: SyntaxNode) -> bool:
    return a.to_full_string().strip() == b.to_full_string().strip()


# ═══════════════════════════════════════════════════════════════════════
#  Return statement classification
# ═══════════════════════════════════════════════════════════════════════

def _result_name(expr: SyntaxElement):
    if expr.kind == "object_creation_expression":
        created = cs.created_type(expr)
        return created.text if created is not None else None
    if expr.kind == "invocation_expression":
        target = cs.invocation_target(expr)
        if target is not None and target.kind == "identifier":
            suffix = "Object" if cs.argument_count(expr) > 0 else ""
            return f"{target.text}{suffix}Result"
    return None


def classify_expression(expr: SyntaxElement, found: List[ResultKind]) -> List[ResultKind]:
    if expr is None:
        return found
    if expr.kind == "conditional_expression":
        when_true, when_false = cs.conditional_branches(expr)
        found = classify_expression(when_false, found)
        return classify_expression(when_true, found)
    name = _result_name(expr)
    if name is None:
        return found
    kind = find_matching_type(name)
    if kind is None:
        logger.debug("No result type named %s", name)
        return found
    return found + [kind]


def classify_return(node: SyntaxNode, found: List[ResultKind]) -> List[ResultKind]:
    """Add the result kinds a ``return`` statement can produce to ``found``."""
    return classify_expression(cs.return_expression(node), found)


def collect_result_types(method: SyntaxNode) -> List[ResultKind]:
    """Distinct result kinds returned anywhere in ``method``, first-seen order."""
    found: List[ResultKind] = []
    for element in method.descendants():
        if element.kind == "return_statement":
            found = classify_return(element, found)
    return list(dict.fromkeys(found))


# ═══════════════════════════════════════════════════════════════════════
#  Attribute list layout
# ═══════════════════════════════════════════════════════════════════════

def _indent_of(leading: str) -> str:
    tail = leading.rsplit("\n", 1)[-1]
    return tail if not tail.strip() else ""


def _append_attribute_lists(decl: SyntaxNode, lists: List[SyntaxNode]) -> SyntaxNode:
    """Append ``lists`` after the declaration's existing attribute lists."""
    newline = "\r\n" if "\r\n" in decl.leading_trivia or "\r\n" in decl.to_full_string() else "\n"
    indent = _indent_of(decl.leading_trivia)
    existing = cs.attribute_lists(decl)

    if existing:
        last = existing[-1]
        if last.to_full_string().endswith("\n"):
            placed = [lst.with_leading_trivia(indent).with_trailing_trivia(newline) for lst in lists]
        else:
            placed = [lst.with_trailing_trivia(" ") for lst in lists]
        at = decl.children.index(last) + 1
    else:
        lead = decl.leading_trivia
        placed = [lists[0].with_leading_trivia(lead).with_trailing_trivia(newline)]
        placed += [lst.with_leading_trivia(indent).with_trailing_trivia(newline) for lst in lists[1:]]
        decl = decl.with_leading_trivia(indent)
        at = 0

    children = list(decl.children)
    names = list(decl.field_names)
    children[at:at] = placed
    names[at:at] = [None] * len(placed)
    return decl.update(children, names)


# ═══════════════════════════════════════════════════════════════════════
#  Transformer
# ═══════════════════════════════════════════════════════════════════════

class ApiAttributeTransformer(SyntaxRewriter):

    def _derives_from_controller(self, node: SyntaxNode) -> bool:
        for base in cs.base_types(node):
            resolved = self.model.get_type_info(base).type
            if resolved is not None and resolved.to_display_string() == CONTROLLER_BASE:
                return True
        return False

    def visit_class_declaration(self, node: SyntaxNode) -> SyntaxNode:
        if self._derives_from_controller(node):
            existing = cs.attribute_lists(node)
            # Kept as-is: a candidate is added only when every existing list
            # renders identically to it.
            to_add = [
                candidate for candidate in controller_attribute_lists()
                if not any(not _same(current, candidate) for current in existing)
            ]
            if to_add:
                logger.info("Adding %d controller attribute list(s) to %s",
                            len(to_add), cs.declaration_name(node))
                node = _append_attribute_lists(node, to_add)
        return self.generic_visit(node)

    def visit_method_declaration(self, node: SyntaxNode) -> SyntaxNode:
        kinds = collect_result_types(node)
        if not kinds:
            return node
        existing = cs.attribute_lists(node)
        to_add = []
        for kind in kinds:
            candidate = make_attribute_list(build_result_annotation(kind))
            if not any(_same(current, candidate) for current in existing):
                to_add.append(candidate)
        if not to_add:
            return node
        logger.debug("Adding %s to %s", [k.name for k in kinds], cs.declaration_name(node))
        return _append_attribute_lists(node, to_add)
