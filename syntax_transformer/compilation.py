"""
Compilation — the set of parsed C# files a rewrite runs over.

A Compilation owns:
  • trees           — one SourceTree per discovered ``*.cs`` file
  • index           — WorkspaceIndex across all trees
  • semantic models — created lazily, one per tree

``load_compilation(path)`` accepts a single file or a directory (searched
recursively, in sorted order so runs are deterministic).
"""

import os
import logging
from typing import Dict, Iterable, List, Optional

from syntax_transformer.semantic_model import SemanticModel
from syntax_transformer.syntax_tree import SourceTree, parse_file, parse_text
from syntax_transformer.workspace_index import WorkspaceIndex

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = ".cs"

_SKIP_DIRS = {".git", ".vs", ".idea", ".vscode", "bin", "obj", "node_modules"}


class SourceNotFoundError(FileNotFoundError):
    """The path given to the rewriter is neither a file nor a directory."""


def _norm_path(p: str) -> str:
    return p.replace("\\", "/")


def discover_source_files(path: str) -> List[str]:
    """Every ``*.cs`` file at or below ``path``, sorted."""
    if not os.path.exists(path):
        raise SourceNotFoundError(f"Source not found / does not exist: {path}")
    if os.path.isfile(path):
        return [path]
    files = []
    for root, dirs, filenames in os.walk(path):
        dirs[:] = [d for d in dirs if d not in _SKIP_DIRS]
        for fname in filenames:
            if os.path.splitext(fname)[1].lower() == SOURCE_EXTENSION:
                files.append(os.path.join(root, fname))
    return sorted(files, key=_norm_path)


class Compilation:
    """
    Parsed trees plus their shared declaration index.

    Usage:
        compilation = load_compilation("src/")
        for tree in compilation.trees:
            model = compilation.get_semantic_model(tree)
    """

    def __init__(self, trees: Iterable[SourceTree]):
        self.trees: List[SourceTree] = list(trees)
        self.index = WorkspaceIndex()
        self.index.build(self.trees)
        self._models: Dict[int, SemanticModel] = {}

    @classmethod
    def from_sources(cls, sources: Dict[str, str]) -> "Compilation":
        """Build from in-memory ``{file_path: text}``."""
        return cls(parse_text(text, path) for path, text in sources.items())

    def get_semantic_model(self, tree: SourceTree) -> SemanticModel:
        model = self._models.get(id(tree))
        if model is None:
            if not any(t is tree for t in self.trees):
                raise ValueError(f"Tree is not part of this compilation: {tree.file_path}")
            model = SemanticModel(tree, self)
            self._models[id(tree)] = model
        return model

    def find_tree(self, file_path: str) -> Optional[SourceTree]:
        wanted = _norm_path(os.path.abspath(file_path))
        for tree in self.trees:
            if _norm_path(os.path.abspath(tree.file_path)) == wanted:
                return tree
        return None

    def get_summary(self) -> Dict[str, int]:
        return {
            "files": len(self.trees),
            "types": self.index.total_types,
            "files_with_errors": sum(1 for t in self.trees if t.has_errors),
        }


def load_compilation(path: str) -> Compilation:
    """Discover, parse and index every C# file under ``path``."""
    files = discover_source_files(path)
    trees = []
    for file_path in files:
        try:
            trees.append(parse_file(file_path))
        except OSError as e:
            logger.warning("Skipping %s: %s", file_path, e)
    logger.info("Loaded %d source file(s) from %s", len(trees), path)
    return Compilation(trees)
