"""
Syntax Tree — immutable, trivia-preserving C# trees built on tree-sitter.

tree-sitter gives us a concrete syntax tree with byte offsets.  This module
turns it into a persistent tree that the rewriters can rebuild cheaply:

  • SyntaxToken  — a leaf: text plus leading / trailing trivia
  • SyntaxNode   — an interior node: kind, children, field names
  • SourceTree   — root node + file path

Every source byte ends up in exactly one token's text or trivia, so
rendering an unmodified tree reproduces the input byte-for-byte.  Nodes are
compared by identity: a rewrite that changes nothing hands back the very
same object, and callers use ``is`` to decide whether a file needs writing.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional, Tuple, Union

import tree_sitter_c_sharp as tscs
from tree_sitter import Language, Parser, Node

logger = logging.getLogger(__name__)

CSHARP_LANGUAGE = Language(tscs.language())
_parser = Parser(CSHARP_LANGUAGE)

# Encoding used for both reading and writing; surrogateescape keeps
# undecodable bytes intact across a round-trip.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


# ═══════════════════════════════════════════════════════════════════════
#  Tree elements
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class SyntaxToken:
    """A leaf of the tree with its surrounding trivia."""
    kind: str
    text: str
    leading_trivia: str = ""
    trailing_trivia: str = ""
    is_named: bool = False

    is_token = True

    def to_full_string(self) -> str:
        return self.leading_trivia + self.text + self.trailing_trivia

    def tokens(self) -> Iterator["SyntaxToken"]:
        yield self

    def first_token(self) -> Optional["SyntaxToken"]:
        return self

    def last_token(self) -> Optional["SyntaxToken"]:
        return self

    def descendants(self) -> Iterator["SyntaxElement"]:
        yield self

    def with_leading_trivia(self, trivia: str) -> "SyntaxToken":
        return replace(self, leading_trivia=trivia)

    def with_trailing_trivia(self, trivia: str) -> "SyntaxToken":
        return replace(self, trailing_trivia=trivia)

    def __repr__(self):
        return f"SyntaxToken({self.kind!r}, {self.text!r})"


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """An interior node.  ``field_names`` is aligned with ``children``."""
    kind: str
    children: Tuple["SyntaxElement", ...] = ()
    field_names: Tuple[Optional[str], ...] = field(default=())

    is_token = False
    is_named = True

    def __post_init__(self):
        if len(self.field_names) != len(self.children):
            names = tuple(self.field_names) + (None,) * (len(self.children) - len(self.field_names))
            object.__setattr__(self, "field_names", names[:len(self.children)])

    # ────────────────────────────────────────────────────────────────
    #  Navigation
    # ────────────────────────────────────────────────────────────────

    def child_by_field(self, name: str) -> Optional["SyntaxElement"]:
        for child, fname in zip(self.children, self.field_names):
            if fname == name:
                return child
        return None

    def children_of_kind(self, *kinds: str) -> List["SyntaxElement"]:
        return [c for c in self.children if c.kind in kinds]

    def first_child_of_kind(self, *kinds: str) -> Optional["SyntaxElement"]:
        for child in self.children:
            if child.kind in kinds:
                return child
        return None

    @property
    def named_children(self) -> List["SyntaxElement"]:
        return [c for c in self.children if c.is_named]

    def tokens(self) -> Iterator[SyntaxToken]:
        for child in self.children:
            yield from child.tokens()

    def first_token(self) -> Optional[SyntaxToken]:
        for child in self.children:
            tok = child.first_token()
            if tok is not None:
                return tok
        return None

    def last_token(self) -> Optional[SyntaxToken]:
        for child in reversed(self.children):
            tok = child.last_token()
            if tok is not None:
                return tok
        return None

    def descendants(self) -> Iterator["SyntaxElement"]:
        """Pre-order walk over this node and everything below it."""
        stack: List[SyntaxElement] = [self]
        while stack:
            element = stack.pop()
            yield element
            if not element.is_token:
                stack.extend(reversed(element.children))

    # ────────────────────────────────────────────────────────────────
    #  Text
    # ────────────────────────────────────────────────────────────────

    def to_full_string(self) -> str:
        return "".join(tok.to_full_string() for tok in self.tokens())

    @property
    def leading_trivia(self) -> str:
        tok = self.first_token()
        return tok.leading_trivia if tok is not None else ""

    @property
    def trailing_trivia(self) -> str:
        tok = self.last_token()
        return tok.trailing_trivia if tok is not None else ""

    @property
    def text(self) -> str:
        """Rendering without the outermost leading and trailing trivia."""
        full = self.to_full_string()
        end = len(full) - len(self.trailing_trivia)
        return full[len(self.leading_trivia):end]

    # ────────────────────────────────────────────────────────────────
    #  Persistent updates
    # ────────────────────────────────────────────────────────────────

    def update(self, children, field_names=None) -> "SyntaxNode":
        """Return a node with new children, or ``self`` when nothing changed."""
        children = tuple(children)
        if field_names is None and len(children) == len(self.children) and all(
            new is old for new, old in zip(children, self.children)
        ):
            return self
        names = self.field_names if field_names is None else tuple(field_names)
        return SyntaxNode(self.kind, children, names)

    def replace_child(self, old: "SyntaxElement", new: "SyntaxElement") -> "SyntaxNode":
        return self.update(new if c is old else c for c in self.children)

    def replace_node(self, old: "SyntaxElement", new: "SyntaxElement") -> "SyntaxNode":
        """Replace ``old`` (found by identity anywhere below) with ``new``."""
        if old is self:
            return new
        path = _path_to(self, old)
        if path is None:
            return self
        replacement = new
        for parent in reversed(path):
            replacement = parent.replace_child(old, replacement)
            old = parent
        return replacement

    def with_leading_trivia(self, trivia: str) -> "SyntaxNode":
        tok = self.first_token()
        if tok is None:
            return self
        return self.replace_node(tok, tok.with_leading_trivia(trivia))

    def with_trailing_trivia(self, trivia: str) -> "SyntaxNode":
        tok = self.last_token()
        if tok is None:
            return self
        return self.replace_node(tok, tok.with_trailing_trivia(trivia))

    def __repr__(self):
        return f"SyntaxNode({self.kind!r}, {len(self.children)} children)"


SyntaxElement = Union[SyntaxNode, SyntaxToken]


def _path_to(root: SyntaxNode, target: SyntaxElement) -> Optional[List[SyntaxNode]]:
    """Chain of nodes from ``root`` down to the parent of ``target``."""
    stack: List[Tuple[SyntaxNode, List[SyntaxNode]]] = [(root, [root])]
    while stack:
        node, path = stack.pop()
        for child in node.children:
            if child is target:
                return path
            if not child.is_token:
                stack.append((child, path + [child]))
    return None


@dataclass(frozen=True, eq=False)
class SourceTree:
    """One parsed file.  ``root`` is a ``compilation_unit`` node."""
    root: SyntaxNode
    file_path: str = ""

    def with_root(self, root: SyntaxNode) -> "SourceTree":
        if root is self.root:
            return self
        return SourceTree(root, self.file_path)

    def to_full_string(self) -> str:
        return self.root.to_full_string()

    def to_bytes(self) -> bytes:
        return self.to_full_string().encode(_ENCODING, _ERRORS)

    @property
    def has_errors(self) -> bool:
        return any(e.kind == "ERROR" for e in self.root.descendants())


# ═══════════════════════════════════════════════════════════════════════
#  Parsing
# ═══════════════════════════════════════════════════════════════════════

def _iter_children(ts_node: Node) -> Iterator[Tuple[Optional[str], Node]]:
    """Yield (field_name, child) pairs, skipping comments (they are trivia)."""
    cursor = ts_node.walk()
    if not cursor.goto_first_child():
        return
    while True:
        child = cursor.node
        if child.type != "comment":
            yield cursor.field_name, child
        if not cursor.goto_next_sibling():
            break


def _collect_leaves(ts_node: Node, out: List[Node]):
    if ts_node.child_count == 0:
        out.append(ts_node)
        return
    for _, child in _iter_children(ts_node):
        _collect_leaves(child, out)


def split_trivia(gap: str) -> Tuple[str, str]:
    """Split the text between two tokens into (trailing, leading) trivia.

    Trailing trivia of the earlier token runs up to and including the first
    newline; the remainder leads the next token.
    """
    idx = gap.find("\n")
    if idx < 0:
        return gap, ""
    return gap[:idx + 1], gap[idx + 1:]


def _decode(data: bytes) -> str:
    return data.decode(_ENCODING, _ERRORS)


def parse_text(source: Union[str, bytes], file_path: str = "") -> SourceTree:
    """Parse C# source into a SourceTree."""
    if isinstance(source, str):
        source = source.encode(_ENCODING, _ERRORS)
    ts_tree = _parser.parse(source)

    leaves: List[Node] = []
    if ts_tree.root_node.child_count:
        _collect_leaves(ts_tree.root_node, leaves)

    # trivia[i] = (leading, trailing) for leaf i; the last entry is EOF
    leading: List[str] = []
    trailing: List[str] = []
    pos = 0
    for leaf in leaves:
        gap = _decode(source[pos:leaf.start_byte])
        if trailing:
            trailing[-1], lead = split_trivia(gap)
        else:
            lead = gap
        leading.append(lead)
        trailing.append("")
        pos = max(pos, leaf.end_byte)
    tail = _decode(source[pos:])
    if trailing:
        trailing[-1], eof_leading = split_trivia(tail)
    else:
        eof_leading = tail

    counter = iter(range(len(leaves)))

    def build(ts_node: Node) -> SyntaxElement:
        if ts_node.child_count == 0:
            i = next(counter)
            return SyntaxToken(
                kind=ts_node.type,
                text=_decode(source[ts_node.start_byte:ts_node.end_byte]),
                leading_trivia=leading[i],
                trailing_trivia=trailing[i],
                is_named=ts_node.is_named,
            )
        children = []
        names = []
        for fname, child in _iter_children(ts_node):
            children.append(build(child))
            names.append(fname)
        return SyntaxNode(ts_node.type, tuple(children), tuple(names))

    root_children: List[SyntaxElement] = []
    root_names: List[Optional[str]] = []
    if ts_tree.root_node.child_count:
        for fname, child in _iter_children(ts_tree.root_node):
            root_children.append(build(child))
            root_names.append(fname)
    root_children.append(SyntaxToken("end_of_file", "", leading_trivia=eof_leading))
    root_names.append(None)

    root = SyntaxNode(ts_tree.root_node.type or "compilation_unit", tuple(root_children), tuple(root_names))
    tree = SourceTree(root, file_path)
    if ts_tree.root_node.has_error:
        logger.warning("Parse errors in %s; affected regions are kept verbatim", file_path or "<text>")
    return tree


def parse_file(file_path: str) -> SourceTree:
    with open(file_path, "rb") as f:
        source = f.read()
    return parse_text(source, file_path)


# ═══════════════════════════════════════════════════════════════════════
#  Factories
# ═══════════════════════════════════════════════════════════════════════

def identifier_name(text: str, leading: str = "", trailing: str = "") -> SyntaxToken:
    """A bare identifier token; ``text`` is emitted as-is (may be dotted/generic)."""
    return SyntaxToken("identifier", text, leading, trailing, is_named=True)


def make_attribute(name: str, arguments: Optional[str] = None) -> SyntaxNode:
    """``Name`` or ``Name(arguments)``; the argument text is not parsed."""
    children: List[SyntaxElement] = [identifier_name(name)]
    names: List[Optional[str]] = ["name"]
    if arguments is not None:
        children.append(SyntaxToken("attribute_argument_list", arguments, is_named=True))
        names.append(None)
    return SyntaxNode("attribute", tuple(children), tuple(names))


def make_attribute_list(*attributes: SyntaxNode) -> SyntaxNode:
    children: List[SyntaxElement] = [SyntaxToken("[", "[")]
    for i, attribute in enumerate(attributes):
        if i:
            children.append(SyntaxToken(",", ",", trailing_trivia=" "))
        children.append(attribute)
    children.append(SyntaxToken("]", "]"))
    return SyntaxNode("attribute_list", tuple(children))
