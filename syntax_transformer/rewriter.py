"""
Syntax Rewriter — base class for tree transformations.

Works like ``ast.NodeTransformer``: ``visit`` dispatches to
``visit_<node kind>`` when a subclass defines one, otherwise
``generic_visit`` rebuilds the node from its visited children.  Because
``SyntaxNode.update`` hands back the same object when no child changed, an
untouched subtree keeps its identity all the way up to the root.
"""

from typing import Optional

from syntax_transformer.semantic_model import SemanticResolver
from syntax_transformer.syntax_tree import SourceTree, SyntaxElement, SyntaxNode


class SyntaxRewriter:
    """Identity-preserving tree transformer bound to one semantic model."""

    def __init__(self, model: Optional[SemanticResolver] = None):
        self.model = model

    @property
    def name(self) -> str:
        return type(self).__name__

    def rewrite(self, tree: SourceTree) -> SourceTree:
        return tree.with_root(self.visit(tree.root))

    def visit(self, element: SyntaxElement) -> SyntaxElement:
        if element.is_token:
            return self.visit_token(element)
        visitor = getattr(self, f"visit_{element.kind}", None)
        if visitor is None:
            return self.generic_visit(element)
        return visitor(element)

    def visit_token(self, token):
        return token

    def generic_visit(self, node: SyntaxNode) -> SyntaxNode:
        return node.update(self.visit(child) for child in node.children)
