"""
ReplaceVar Transformer — rewrite ``var`` declarations with explicit types.

Handles three statement shapes:

  • local declarations — ``var x = 5;`` → ``int x = 5;`` (minimal type name)
  • for loops          — ``for (var i = 0; ...)`` → ``for (int i = 0; ...)``
                         (fully-qualified type name)
  • foreach loops      — ``foreach (var o in customer.Orders)`` → ``Order``
                         when iterating a member access

A substitution happens only when the resolver agrees on the type; any
unresolved symbol leaves the statement untouched.  The original formatting
around the replaced type is carried onto the new identifier.
"""

import logging

from syntax_transformer import csharp_syntax as cs
from syntax_transformer.rewriter import SyntaxRewriter
from syntax_transformer.syntax_tree import SyntaxElement, SyntaxNode, identifier_name

logger = logging.getLogger(__name__)


def _typed_identifier(text: str, replaced: SyntaxElement):
    return identifier_name(text, replaced.leading_trivia, replaced.trailing_trivia)


class ReplaceVarTransformer(SyntaxRewriter):

    # ────────────────────────────────────────────────────────────────
    #  Local declarations
    # ────────────────────────────────────────────────────────────────

    def visit_local_declaration_statement(self, node: SyntaxNode) -> SyntaxNode:
        return self._replace_var_common(node)

    def _replace_var_common(self, node: SyntaxNode) -> SyntaxNode:
        declaration = cs.variable_declaration(node)
        if declaration is None:
            return node
        found = cs.declarators(declaration)
        if len(found) != 1:
            return node
        declarator = found[0]
        value = cs.initializer_value(declarator)
        if value is None:
            return node
        type_node = cs.declared_type(declaration)
        if not cs.is_var(type_node):
            return node

        symbol = self.model.get_symbol_info(type_node)
        info = self.model.get_type_info(value)
        initializer_type = info.type if info.type is not None else info.converted_type
        if symbol is None or symbol != initializer_type:
            logger.debug("Leaving var for %s: resolved %s, initializer %s",
                         cs.declarator_name(declarator), symbol, initializer_type)
            return node

        position = self.model.position_of(declarator) or 0
        text = self.model.to_minimal_display_string(symbol, position)
        logger.debug("var %s -> %s", cs.declarator_name(declarator), text)
        return node.replace_node(type_node, _typed_identifier(text, type_node))

    # ────────────────────────────────────────────────────────────────
    #  for
    # ────────────────────────────────────────────────────────────────

    def visit_for_statement(self, node: SyntaxNode) -> SyntaxNode:
        declaration = cs.variable_declaration(node)
        if declaration is None:
            return node
        type_node = cs.declared_type(declaration)
        if not cs.is_var(type_node):
            return node

        found = cs.declarators(declaration)
        if len(found) != 1:
            return node
        symbol = self.model.get_symbol_info(type_node)
        value = cs.initializer_value(found[0])
        if value is None:
            return node
        # Direct type only; no converted-type fallback here
        if symbol is None or symbol != self.model.get_type_info(value).type:
            return node

        return node.replace_node(type_node, _typed_identifier(symbol.to_display_string(), type_node))

    # ────────────────────────────────────────────────────────────────
    #  foreach
    # ────────────────────────────────────────────────────────────────

    def visit_foreach_statement(self, node: SyntaxNode) -> SyntaxNode:
        iterated = cs.foreach_expression(node)
        if iterated is None or iterated.kind != "member_access_expression":
            return node
        type_node = cs.foreach_type(node)
        if type_node is None:
            return node
        # Deconstructing loops (``var (k, v)``) declare more than one variable
        variable = cs.foreach_variable(node)
        if variable is None or variable.kind != "identifier":
            return node

        member = cs.member_access_name(iterated)
        member_type = self.model.get_type_info(member).type if member is not None else None
        element = None
        if member_type is not None and not member_type.is_array and member_type.type_arguments:
            element = member_type.type_arguments[0]

        body = cs.statement_body(node)
        if body is not None and body.kind == "block":
            new_body = body.update(
                self._replace_var_common(stmt) if stmt.kind == "local_declaration_statement" else stmt
                for stmt in body.children
            )
            if new_body is not body:
                node = node.replace_child(body, new_body)

        if element is None or not element.name or element.name == type_node.text:
            return node
        logger.debug("foreach %s -> %s", type_node.text, element.name)
        return node.replace_child(type_node, _typed_identifier(element.name, type_node))
