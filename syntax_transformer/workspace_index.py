"""
Workspace Index — cross-file declaration table for the semantic model.

Scans every parsed tree once and records:
  • DeclaredType  — classes/structs/interfaces/records/enums with namespace
  • MemberDecl    — fields, properties and methods with their type syntax
  • Usings        — per-file namespace imports, aliases and global usings

The semantic model uses this to bind type names written in one file to
declarations in another, and to type member accesses such as
``order.Lines`` or ``repository.GetAll()``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from syntax_transformer import csharp_syntax as cs
from syntax_transformer.syntax_tree import SourceTree, SyntaxElement, SyntaxNode

logger = logging.getLogger(__name__)

_MEMBER_KINDS = ("field_declaration", "property_declaration", "method_declaration")


# ═══════════════════════════════════════════════════════════════════════
#  Data types
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class MemberDecl:
    """A typed member of a declared type."""
    name: str
    kind: str                         # "field", "property", "method"
    type_node: SyntaxElement          # declared (return) type syntax
    tree: SourceTree                  # tree the syntax belongs to
    is_static: bool = False


@dataclass
class DeclaredType:
    """A type declared somewhere in the workspace."""
    name: str
    namespace: str                    # "" for the global namespace
    kind: str                         # class / struct / interface / record / enum
    arity: int                        # number of type parameters
    tree: SourceTree
    node: SyntaxNode
    containing_type: Optional[str] = None
    base_type_nodes: List[SyntaxElement] = field(default_factory=list)
    members: Dict[str, List[MemberDecl]] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


@dataclass
class UsingDirective:
    """``using NS;``, ``using A = NS.T;`` or ``global using NS;``."""
    target: str
    alias: Optional[str] = None
    is_global: bool = False
    is_static: bool = False
    target_node: Optional[SyntaxElement] = None


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

def _has_modifier(node: SyntaxNode, keyword: str) -> bool:
    return any(m.text == keyword for m in node.children_of_kind("modifier"))


def _type_kind(node_kind: str) -> str:
    return node_kind.replace("_declaration", "").replace("record_struct", "struct")


def parse_using(node: SyntaxNode) -> Optional[UsingDirective]:
    """Decode a ``using_directive`` node."""
    tokens = [c for c in node.children if c.is_token and not c.is_named]
    keywords = {t.text for t in tokens}
    named = node.named_children
    if not named:
        return None
    name_equals = node.first_child_of_kind("name_equals")
    if "=" in keywords or name_equals is not None:
        alias = node.child_by_field("alias") or named[0]
        if alias.kind == "name_equals":
            alias = alias.first_child_of_kind("identifier") or alias
        target = named[-1]
        return UsingDirective(
            target=target.text, alias=alias.text,
            is_global="global" in keywords, target_node=target,
        )
    target = named[-1]
    return UsingDirective(
        target=target.text, is_global="global" in keywords,
        is_static="static" in keywords, target_node=target,
    )


# ═══════════════════════════════════════════════════════════════════════
#  Index
# ═══════════════════════════════════════════════════════════════════════

class WorkspaceIndex:
    """
    Declaration table over a set of trees.

    Usage:
        index = WorkspaceIndex()
        index.build(trees)
        candidates = index.find_types("OrderService")
    """

    def __init__(self):
        self._types: Dict[str, List[DeclaredType]] = {}
        self._global_usings: List[UsingDirective] = []
        self._namespaces: set = set()
        self._built = False

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def global_usings(self) -> List[UsingDirective]:
        return list(self._global_usings)

    @property
    def total_types(self) -> int:
        return sum(len(v) for v in self._types.values())

    def build(self, trees: List[SourceTree]):
        for tree in trees:
            self._index_tree(tree)
        self._built = True
        logger.info(
            "WorkspaceIndex built: %d types, %d namespaces, %d global usings, %d files",
            self.total_types, len(self._namespaces), len(self._global_usings), len(trees),
        )

    def find_types(self, name: str, arity: Optional[int] = None) -> List[DeclaredType]:
        found = self._types.get(name, [])
        if arity is None:
            return list(found)
        return [t for t in found if t.arity == arity]

    def find_type(self, full_name: str, arity: int = 0) -> Optional[DeclaredType]:
        namespace, _, name = full_name.rpartition(".")
        for t in self._types.get(name, []):
            if t.namespace == namespace and t.arity == arity:
                return t
        return None

    def has_namespace(self, namespace: str) -> bool:
        return namespace in self._namespaces

    def all_types(self) -> List[DeclaredType]:
        return [t for group in self._types.values() for t in group]

    # ────────────────────────────────────────────────────────────────
    #  Internal: per-file indexing
    # ────────────────────────────────────────────────────────────────

    def _index_tree(self, tree: SourceTree):
        root = tree.root
        file_namespace = ""
        for child in root.children:
            if child.kind == "file_scoped_namespace_declaration":
                file_namespace = cs.declaration_name(child) or ""
                self._add_namespace(file_namespace)
                # Older grammars nest the members under the declaration
                self._index_members_of(child, tree, file_namespace, None)
        self._index_members_of(root, tree, file_namespace, None)

    def _add_namespace(self, namespace: str):
        parts = namespace.split(".")
        for i in range(1, len(parts) + 1):
            self._namespaces.add(".".join(parts[:i]))

    def _index_members_of(self, node: SyntaxNode, tree: SourceTree, namespace: str,
                          containing: Optional[DeclaredType]):
        for child in node.children:
            if child.is_token:
                continue
            if child.kind == "using_directive":
                using = parse_using(child)
                if using is not None and using.is_global:
                    self._global_usings.append(using)
            elif child.kind == "namespace_declaration":
                name = cs.declaration_name(child) or ""
                inner = f"{namespace}.{name}" if namespace else name
                self._add_namespace(inner)
                body = child.child_by_field("body") or child.first_child_of_kind("declaration_list")
                if body is not None and not body.is_token:
                    self._index_members_of(body, tree, inner, None)
            elif child.kind in cs.TYPE_DECLARATION_KINDS:
                self._index_type(child, tree, namespace, containing)
            elif child.kind == "declaration_list":
                self._index_members_of(child, tree, namespace, containing)

    def _index_type(self, node: SyntaxNode, tree: SourceTree, namespace: str,
                    containing: Optional[DeclaredType]):
        name = cs.declaration_name(node)
        if not name:
            return
        tparams = node.first_child_of_kind("type_parameter_list")
        arity = len(tparams.children_of_kind("type_parameter")) if tparams is not None and not tparams.is_token else 0
        declared = DeclaredType(
            name=name,
            namespace=namespace,
            kind=_type_kind(node.kind),
            arity=arity,
            tree=tree,
            node=node,
            containing_type=containing.full_name if containing else None,
            base_type_nodes=cs.base_types(node),
        )
        self._types.setdefault(name, []).append(declared)

        body = node.child_by_field("body") or node.first_child_of_kind("declaration_list")
        if body is None or body.is_token:
            return
        for member in body.children:
            if member.is_token:
                continue
            if member.kind in _MEMBER_KINDS:
                self._index_member(declared, member, tree)
            elif member.kind in cs.TYPE_DECLARATION_KINDS:
                self._index_type(member, tree, namespace, declared)

        # Positional record parameters become properties
        if node.kind.startswith("record"):
            for param in cs.parameters(node):
                pname = cs.parameter_name(param)
                ptype = cs.parameter_type(param)
                if pname and ptype is not None:
                    declared.members.setdefault(pname, []).append(
                        MemberDecl(pname, "property", ptype, tree))

    def _index_member(self, declared: DeclaredType, member: SyntaxNode, tree: SourceTree):
        type_node = cs.member_declared_type(member)
        if type_node is None:
            return
        kind = member.kind.replace("_declaration", "")
        is_static = _has_modifier(member, "static") or _has_modifier(member, "const")
        for name in cs.member_names(member):
            declared.members.setdefault(name, []).append(
                MemberDecl(name, kind, type_node, tree, is_static))
