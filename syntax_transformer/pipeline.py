"""
Rewrite Pipeline — run the transformers over every tree of a compilation.

For each tree the transformers run in a fixed order, each one seeing the
previous one's output.  A tree whose root object changed is rendered and
written back over its original file; unchanged trees are never touched.
"""

import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel

from syntax_transformer.api_attributes import ApiAttributeTransformer
from syntax_transformer.compilation import Compilation, load_compilation
from syntax_transformer.replace_var import ReplaceVarTransformer
from syntax_transformer.rewriter import SyntaxRewriter
from syntax_transformer.semantic_model import SemanticResolver
from syntax_transformer.syntax_tree import SourceTree

logger = logging.getLogger(__name__)

TransformerFactory = Callable[[SemanticResolver], SyntaxRewriter]

DEFAULT_TRANSFORMERS: Sequence[TransformerFactory] = (ReplaceVarTransformer, ApiAttributeTransformer)


class RewriteResult(BaseModel):
    file_path: str
    changed: bool
    written: bool = False
    original_text: Optional[str] = None
    new_text: Optional[str] = None


def transformers_for(model: SemanticResolver,
                     factories: Sequence[TransformerFactory] = DEFAULT_TRANSFORMERS) -> List[SyntaxRewriter]:
    return [factory(model) for factory in factories]


def rewrite_tree(tree: SourceTree, model: SemanticResolver,
                 factories: Sequence[TransformerFactory] = DEFAULT_TRANSFORMERS) -> SourceTree:
    """Apply every transformer in order; returns ``tree`` itself when nothing changed."""
    current = tree
    for transformer in transformers_for(model, factories):
        current = transformer.rewrite(current)
    return current


class RewritePipeline:
    """
    Runs the transformers over a compilation and persists changed trees.

    Usage:
        pipeline = RewritePipeline(load_compilation("src/"))
        results = pipeline.run()
    """

    def __init__(self, compilation: Compilation,
                 factories: Sequence[TransformerFactory] = DEFAULT_TRANSFORMERS):
        self.compilation = compilation
        self.factories = factories

    def run(self, dry_run: bool = False, keep_text: bool = False,
            only: Optional[SourceTree] = None) -> List[RewriteResult]:
        results = []
        trees = [only] if only is not None else self.compilation.trees
        for tree in trees:
            results.append(self._process(tree, dry_run, keep_text))
        changed = sum(1 for r in results if r.changed)
        logger.info("Rewrite finished: %d of %d file(s) changed%s",
                    changed, len(results), " (dry run)" if dry_run else "")
        return results

    def _process(self, tree: SourceTree, dry_run: bool, keep_text: bool) -> RewriteResult:
        model = self.compilation.get_semantic_model(tree)
        new_tree = rewrite_tree(tree, model, self.factories)
        changed = new_tree.root is not tree.root
        result = RewriteResult(file_path=tree.file_path, changed=changed)
        if keep_text:
            result.original_text = tree.to_full_string()
            result.new_text = new_tree.to_full_string()
        if changed and not dry_run:
            self._write(new_tree)
            result.written = True
            logger.info("Rewrote %s", tree.file_path)
        elif changed:
            logger.info("[Dry Run] Would rewrite %s", tree.file_path)
        return result

    def _write(self, tree: SourceTree):
        with open(tree.file_path, "wb") as f:
            f.write(tree.to_bytes())


def rewrite_path(path: str, dry_run: bool = False) -> List[RewriteResult]:
    """Load everything under ``path`` and rewrite it in place."""
    return RewritePipeline(load_compilation(path)).run(dry_run=dry_run)
