"""
Semantic Model — type information for positions in a C# SourceTree.

The rewriters only ever talk to the ``SemanticResolver`` interface:

  • get_symbol_info(node)                  — the type a type-position binds to
  • get_type_info(node)                    — (type, converted type) of an expression
  • to_minimal_display_string(sym, pos)    — shortest unambiguous name at a position
  • position_of(node)                      — source offset of a node

``SemanticModel`` implements it heuristically over a ``WorkspaceIndex``: it
knows the C# keyword types, a table of common framework types, every type
declared in the workspace, locals/parameters/fields in scope, ``using``
imports and aliases, and enough member/LINQ typing to follow ordinary code.
Anything it cannot resolve comes back as ``None`` (or an error type), which
the rewriters treat as "leave this node alone".
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from syntax_transformer import csharp_syntax as cs
from syntax_transformer.syntax_tree import SourceTree, SyntaxElement, SyntaxNode
from syntax_transformer.workspace_index import DeclaredType, UsingDirective, parse_using

logger = logging.getLogger(__name__)

_MAX_DEPTH = 40


# ═══════════════════════════════════════════════════════════════════════
#  Type symbols
# ═══════════════════════════════════════════════════════════════════════

# (namespace, metadata name) -> C# keyword
_SPECIAL_TYPES: Dict[Tuple[str, str], str] = {
    ("System", "Boolean"): "bool",
    ("System", "Byte"): "byte",
    ("System", "SByte"): "sbyte",
    ("System", "Char"): "char",
    ("System", "Decimal"): "decimal",
    ("System", "Double"): "double",
    ("System", "Single"): "float",
    ("System", "Int16"): "short",
    ("System", "UInt16"): "ushort",
    ("System", "Int32"): "int",
    ("System", "UInt32"): "uint",
    ("System", "Int64"): "long",
    ("System", "UInt64"): "ulong",
    ("System", "IntPtr"): "nint",
    ("System", "UIntPtr"): "nuint",
    ("System", "Object"): "object",
    ("System", "String"): "string",
    ("System", "Void"): "void",
}
_KEYWORD_TYPES: Dict[str, Tuple[str, str]] = {kw: key for key, kw in _SPECIAL_TYPES.items()}
_REFERENCE_KEYWORDS = {"object", "string"}


@dataclass(frozen=True)
class TypeSymbol:
    """A resolved type.  Equality is semantic-type equality."""
    name: str                                      # metadata name ("Int32", "List")
    namespace: str = ""
    type_arguments: Tuple["TypeSymbol", ...] = ()
    kind: str = "class"                            # class/struct/interface/enum/array/error

    @property
    def keyword(self) -> Optional[str]:
        if self.type_arguments:
            return None
        return _SPECIAL_TYPES.get((self.namespace, self.name))

    @property
    def is_array(self) -> bool:
        return self.kind == "array"

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    @property
    def is_nullable_value(self) -> bool:
        return self.namespace == "System" and self.name == "Nullable" and len(self.type_arguments) == 1

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def to_display_string(self) -> str:
        """Fully-qualified display form, using C# keywords for special types."""
        if self.keyword:
            return self.keyword
        if self.is_error:
            return self.name
        if self.is_array:
            return self.type_arguments[0].to_display_string() + "[]"
        if self.is_nullable_value:
            return self.type_arguments[0].to_display_string() + "?"
        text = self.full_name
        if self.type_arguments:
            text += "<" + ", ".join(a.to_display_string() for a in self.type_arguments) + ">"
        return text

    def __str__(self):
        return self.to_display_string()


def special_type(keyword: str) -> TypeSymbol:
    namespace, name = _KEYWORD_TYPES[keyword]
    return TypeSymbol(name, namespace, kind="class" if keyword in _REFERENCE_KEYWORDS else "struct")


def array_of(element: TypeSymbol) -> TypeSymbol:
    # Array symbols have no metadata name of their own
    return TypeSymbol("", "", (element,), "array")


def error_type(text: str) -> TypeSymbol:
    return TypeSymbol(text, "", (), "error")


@dataclass(frozen=True)
class TypeInfo:
    """Type of an expression before and after implicit conversion."""
    type: Optional[TypeSymbol] = None
    converted_type: Optional[TypeSymbol] = None


NO_TYPE = TypeInfo()


# ═══════════════════════════════════════════════════════════════════════
#  Framework type table
# ═══════════════════════════════════════════════════════════════════════

# (namespace, name, arity) -> kind
WELL_KNOWN_TYPES: Dict[Tuple[str, str, int], str] = {
    ("System", "DateTime", 0): "struct",
    ("System", "DateTimeOffset", 0): "struct",
    ("System", "TimeSpan", 0): "struct",
    ("System", "Guid", 0): "struct",
    ("System", "Uri", 0): "class",
    ("System", "Exception", 0): "class",
    ("System", "Type", 0): "class",
    ("System", "Nullable", 1): "struct",
    ("System", "Lazy", 1): "class",
    ("System.Collections.Generic", "List", 1): "class",
    ("System.Collections.Generic", "IList", 1): "interface",
    ("System.Collections.Generic", "ICollection", 1): "interface",
    ("System.Collections.Generic", "IEnumerable", 1): "interface",
    ("System.Collections.Generic", "IReadOnlyList", 1): "interface",
    ("System.Collections.Generic", "IReadOnlyCollection", 1): "interface",
    ("System.Collections.Generic", "HashSet", 1): "class",
    ("System.Collections.Generic", "ISet", 1): "interface",
    ("System.Collections.Generic", "Queue", 1): "class",
    ("System.Collections.Generic", "Stack", 1): "class",
    ("System.Collections.Generic", "LinkedList", 1): "class",
    ("System.Collections.Generic", "Dictionary", 2): "class",
    ("System.Collections.Generic", "IDictionary", 2): "interface",
    ("System.Collections.Generic", "IReadOnlyDictionary", 2): "interface",
    ("System.Collections.Generic", "SortedDictionary", 2): "class",
    ("System.Collections.Generic", "KeyValuePair", 2): "struct",
    ("System.Linq", "IQueryable", 1): "interface",
    ("System.Linq", "IOrderedEnumerable", 1): "interface",
    ("System.Text", "StringBuilder", 0): "class",
    ("System.Threading", "CancellationToken", 0): "struct",
    ("System.Threading.Tasks", "Task", 0): "class",
    ("System.Threading.Tasks", "Task", 1): "class",
    ("System.Threading.Tasks", "ValueTask", 1): "struct",
    ("System.IO", "Stream", 0): "class",
    ("System.IO", "MemoryStream", 0): "class",
    ("System.IO", "StreamReader", 0): "class",
    ("System.IO", "StreamWriter", 0): "class",
    ("System.IO", "FileInfo", 0): "class",
    ("System.IO", "DirectoryInfo", 0): "class",
}

_SEQUENCE_TYPES = {
    "List", "IList", "ICollection", "IEnumerable", "IReadOnlyList",
    "IReadOnlyCollection", "HashSet", "ISet", "Queue", "Stack", "LinkedList",
    "IQueryable", "IOrderedEnumerable",
}
_DICTIONARY_TYPES = {"Dictionary", "IDictionary", "IReadOnlyDictionary", "SortedDictionary"}
_INDEXABLE_TYPES = {"List", "IList", "IReadOnlyList"}

_NUMERIC_RANK = ["int", "uint", "long", "ulong", "float", "double"]
_SMALL_INTEGRALS = {"sbyte", "byte", "short", "ushort", "char"}
_BOOLEAN_OPERATORS = {"==", "!=", "<", ">", "<=", ">=", "&&", "||", "is"}
_ARITHMETIC_OPERATORS = {"+", "-", "*", "/", "%", "&", "|", "^", "<<", ">>", ">>>"}


def _well_known(namespace: str, name: str, args: Tuple[TypeSymbol, ...] = ()) -> TypeSymbol:
    return TypeSymbol(name, namespace, args, WELL_KNOWN_TYPES[(namespace, name, len(args))])


def _generic(name: str, *args: TypeSymbol) -> TypeSymbol:
    return _well_known("System.Collections.Generic", name, tuple(args))


def element_type_of(symbol: Optional[TypeSymbol]) -> Optional[TypeSymbol]:
    """Element type produced when enumerating a value of ``symbol``."""
    if symbol is None:
        return None
    if symbol.is_array:
        return symbol.type_arguments[0]
    if symbol.keyword == "string":
        return special_type("char")
    if symbol.name in _SEQUENCE_TYPES and len(symbol.type_arguments) == 1:
        return symbol.type_arguments[0]
    if symbol.name in _DICTIONARY_TYPES and len(symbol.type_arguments) == 2:
        return _generic("KeyValuePair", *symbol.type_arguments)
    return None


_INTEGER_RANGES = [
    ("int", 2**31 - 1),
    ("uint", 2**32 - 1),
    ("long", 2**63 - 1),
    ("ulong", 2**64 - 1),
]


def _integer_literal_type(text: str) -> Optional[TypeSymbol]:
    """The first of the suffix's candidate types that can hold the value."""
    lowered = text.lower().replace("_", "")
    suffix = ""
    while lowered and lowered[-1] in "ul":
        suffix = lowered[-1] + suffix
        lowered = lowered[:-1]
    if "u" in suffix and "l" in suffix:
        candidates = ("ulong",)
    elif suffix == "l":
        candidates = ("long", "ulong")
    elif suffix == "u":
        candidates = ("uint", "ulong")
    else:
        candidates = ("int", "uint", "long", "ulong")
    try:
        if lowered.startswith("0x"):
            value = int(lowered[2:], 16)
        elif lowered.startswith("0b"):
            value = int(lowered[2:], 2)
        else:
            value = int(lowered)
    except ValueError:
        return None
    for keyword, limit in _INTEGER_RANGES:
        if keyword in candidates and value <= limit:
            return special_type(keyword)
    return None


def _promote(left: TypeSymbol, right: TypeSymbol) -> Optional[TypeSymbol]:
    """Binary numeric promotion for the keyword numeric types."""
    lk, rk = left.keyword, right.keyword
    # User-defined operators can return anything
    if lk is None or rk is None:
        return None
    lk = "int" if lk in _SMALL_INTEGRALS else lk
    rk = "int" if rk in _SMALL_INTEGRALS else rk
    if lk == "bool" and rk == "bool":
        return left
    if lk == "decimal" or rk == "decimal":
        return special_type("decimal") if {lk, rk} <= set(_NUMERIC_RANK[:4]) | {"decimal"} else None
    if lk not in _NUMERIC_RANK or rk not in _NUMERIC_RANK:
        return None
    return special_type(max(lk, rk, key=_NUMERIC_RANK.index))


# ═══════════════════════════════════════════════════════════════════════
#  Resolver interface
# ═══════════════════════════════════════════════════════════════════════

class SemanticResolver(ABC):
    """Read-only semantic queries the rewriters depend on."""

    @abstractmethod
    def get_symbol_info(self, node: SyntaxElement) -> Optional[TypeSymbol]:
        """Type symbol bound at a type position (``var`` binds to the inferred type)."""

    @abstractmethod
    def get_type_info(self, node: SyntaxElement) -> TypeInfo:
        """Type of an expression, and its type after implicit conversion."""

    @abstractmethod
    def to_minimal_display_string(self, symbol: TypeSymbol, position: int) -> str:
        """Shortest name for ``symbol`` that is unambiguous at ``position``."""

    @abstractmethod
    def position_of(self, node: SyntaxElement) -> Optional[int]:
        """Start offset of ``node`` in its original tree, if it came from one."""


@dataclass
class _Scope:
    namespaces: List[str] = field(default_factory=list)      # innermost first, with parents
    imports: List[str] = field(default_factory=list)
    aliases: Dict[str, UsingDirective] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════
#  Heuristic semantic model
# ═══════════════════════════════════════════════════════════════════════

class SemanticModel(SemanticResolver):
    """Semantic queries over one tree of a ``Compilation``."""

    def __init__(self, tree: SourceTree, compilation):
        self.tree = tree
        self.compilation = compilation
        self.index = compilation.index
        self._parents: Dict[int, SyntaxNode] = {}
        self._spans: Dict[int, Tuple[int, int]] = {}
        self._declared_by_node: Dict[int, DeclaredType] = {
            id(t.node): t for t in self.index.all_types() if t.tree is tree
        }
        self._depth = 0
        self._index_positions()

    # ────────────────────────────────────────────────────────────────
    #  Positions and parents
    # ────────────────────────────────────────────────────────────────

    def _index_positions(self):
        offset = 0
        nodes: List[SyntaxNode] = []
        for element in self.tree.root.descendants():
            if element.is_token:
                start = offset + len(element.leading_trivia)
                self._spans[id(element)] = (start, start + len(element.text))
                offset += len(element.to_full_string())
            else:
                nodes.append(element)
                for child in element.children:
                    self._parents[id(child)] = element
        for node in nodes:
            first, last = node.first_token(), node.last_token()
            if first is not None and last is not None:
                self._spans[id(node)] = (self._spans[id(first)][0], self._spans[id(last)][1])

    def position_of(self, node: SyntaxElement) -> Optional[int]:
        span = self._spans.get(id(node))
        return span[0] if span else None

    def parent_of(self, node: SyntaxElement) -> Optional[SyntaxNode]:
        return self._parents.get(id(node))

    def _field_of(self, node: SyntaxElement) -> Optional[str]:
        parent = self.parent_of(node)
        if parent is None:
            return None
        for child, fname in zip(parent.children, parent.field_names):
            if child is node:
                return fname
        return None

    def _ancestors(self, node: SyntaxElement):
        """Yield (ancestor, child-on-path) pairs, innermost first."""
        child = node
        parent = self.parent_of(child)
        while parent is not None:
            yield parent, child
            child = parent
            parent = self.parent_of(child)

    # ────────────────────────────────────────────────────────────────
    #  Scope: namespaces, usings, aliases
    # ────────────────────────────────────────────────────────────────

    def _scope_at(self, position: Optional[int]) -> _Scope:
        scope = _Scope()
        enclosing: List[str] = []
        usings: List[UsingDirective] = list(self.index.global_usings)
        pos = position if position is not None else 0

        def collect(container: SyntaxNode, prefix: str):
            current = prefix
            for child in container.children:
                if child.is_token:
                    continue
                if child.kind == "using_directive":
                    using = parse_using(child)
                    if using is not None and not using.is_global:
                        usings.append(using)
                elif child.kind == "file_scoped_namespace_declaration":
                    current = cs.declaration_name(child) or ""
                    enclosing.append(current)
                    collect(child, current)
                elif child.kind == "namespace_declaration":
                    start, end = self._spans.get(id(child), (-1, -1))
                    if start <= pos <= end:
                        name = cs.declaration_name(child) or ""
                        inner = f"{current}.{name}" if current else name
                        enclosing.append(inner)
                        body = child.child_by_field("body") or child.first_child_of_kind("declaration_list")
                        if body is not None and not body.is_token:
                            collect(body, inner)

        collect(self.tree.root, "")
        for ns in reversed(enclosing):
            parts = ns.split(".")
            for i in range(len(parts), 0, -1):
                candidate = ".".join(parts[:i])
                if candidate not in scope.namespaces:
                    scope.namespaces.append(candidate)
        scope.namespaces.append("")
        for using in usings:
            if using.alias:
                scope.aliases[using.alias] = using
            elif not using.is_static and using.target not in scope.imports:
                scope.imports.append(using.target)
        return scope

    # ────────────────────────────────────────────────────────────────
    #  Type syntax binding
    # ────────────────────────────────────────────────────────────────

    def bind_type_syntax(self, node: SyntaxElement, substitutions: Optional[Dict[str, TypeSymbol]] = None,
                         allow_aliases: bool = True) -> TypeSymbol:
        """Bind a type written in source; unresolvable names give an error type."""
        kind = node.kind
        text = node.text
        if kind == "predefined_type" or text in _KEYWORD_TYPES:
            if text in _KEYWORD_TYPES:
                return special_type(text)
        if kind == "array_type":
            inner = node.child_by_field("type") or node.named_children[0]
            return array_of(self.bind_type_syntax(inner, substitutions, allow_aliases))
        if kind == "nullable_type":
            inner = self.bind_type_syntax(node.child_by_field("type") or node.named_children[0],
                                          substitutions, allow_aliases)
            if inner.kind in ("struct", "enum"):
                return _well_known("System", "Nullable", (inner,))
            return inner
        if kind == "alias_qualified_name":
            text = text.split("::", 1)[-1]
            return self._lookup_qualified(text, (), node) or error_type(node.text)
        if kind in ("identifier", "generic_name"):
            name_node = node if kind == "identifier" else node.first_child_of_kind("identifier")
            name = name_node.text if name_node is not None else text
            args = tuple(self.bind_type_syntax(a, substitutions, allow_aliases)
                         for a in cs.type_arguments(node)) if kind == "generic_name" else ()
            if substitutions and not args and name in substitutions:
                return substitutions[name]
            return self._lookup_type_name(name, args, node, allow_aliases) or error_type(text)
        if kind == "qualified_name":
            args: Tuple[TypeSymbol, ...] = ()
            last = node.child_by_field("name") or node.named_children[-1]
            if last.kind == "generic_name":
                args = tuple(self.bind_type_syntax(a, substitutions, allow_aliases)
                             for a in cs.type_arguments(last))
            qualifier = node.child_by_field("qualifier") or node.named_children[0]
            simple = last.first_child_of_kind("identifier").text if last.kind == "generic_name" else last.text
            dotted = f"{qualifier.text}.{simple}"
            return self._lookup_qualified(dotted, args, node) or error_type(text)
        return error_type(text)

    def _lookup_qualified(self, dotted: str, args: Tuple[TypeSymbol, ...], at: SyntaxElement) -> Optional[TypeSymbol]:
        namespace, _, name = dotted.rpartition(".")
        scope = self._scope_at(self.position_of(at))
        head, _, rest = namespace.partition(".")
        if head in scope.aliases:
            namespace = scope.aliases[head].target + (f".{rest}" if rest else "")
        candidates = [namespace] + [f"{ns}.{namespace}" for ns in scope.namespaces if ns]
        for ns in candidates:
            found = self._type_in_namespace(ns, name, args)
            if found is not None:
                return found
        # Nested type: Outer.Inner
        for outer in self.index.find_types(namespace.rpartition(".")[2]):
            if f"{outer.full_name}" == namespace or outer.name == namespace:
                for inner in self.index.find_types(name, len(args)):
                    if inner.containing_type == outer.full_name:
                        return TypeSymbol(name, outer.full_name, args, inner.kind)
        return None

    def _type_in_namespace(self, namespace: str, name: str, args: Tuple[TypeSymbol, ...]) -> Optional[TypeSymbol]:
        for declared in self.index.find_types(name, len(args)):
            if declared.namespace == namespace and declared.containing_type is None:
                return TypeSymbol(name, namespace, args, declared.kind)
        if (namespace, name, len(args)) in WELL_KNOWN_TYPES:
            return _well_known(namespace, name, args)
        return None

    def _lookup_type_name(self, name: str, args: Tuple[TypeSymbol, ...], at: SyntaxElement,
                          allow_aliases: bool = True) -> Optional[TypeSymbol]:
        # Type parameters and nested types of enclosing declarations
        for ancestor, _ in self._ancestors(at):
            if ancestor.kind in cs.TYPE_DECLARATION_KINDS or ancestor.kind == "method_declaration":
                tparams = ancestor.first_child_of_kind("type_parameter_list")
                if tparams is not None and not tparams.is_token and not args:
                    if any(p.text == name for p in tparams.children_of_kind("type_parameter")):
                        return TypeSymbol(name, "", (), "type_parameter")
            declared = self._declared_by_node.get(id(ancestor))
            if declared is not None:
                for inner in self.index.find_types(name, len(args)):
                    if inner.containing_type == declared.full_name:
                        return TypeSymbol(name, declared.full_name, args, inner.kind)

        scope = self._scope_at(self.position_of(at))
        if allow_aliases and not args and name in scope.aliases:
            target = scope.aliases[name]
            if target.target_node is not None:
                return self.bind_type_syntax(target.target_node, allow_aliases=False)
        for ns in scope.namespaces:
            found = self._type_in_namespace(ns, name, args)
            if found is not None:
                return found
        imported = [t for t in (self._type_in_namespace(ns, name, args) for ns in scope.imports) if t is not None]
        if len(imported) == 1:
            return imported[0]
        if len(imported) > 1:
            logger.debug("Ambiguous type name %s: %s", name, [t.full_name for t in imported])
        return None

    # ────────────────────────────────────────────────────────────────
    #  Display
    # ────────────────────────────────────────────────────────────────

    def to_minimal_display_string(self, symbol: TypeSymbol, position: int) -> str:
        if symbol.keyword:
            return symbol.keyword
        if symbol.is_error or symbol.kind == "type_parameter":
            return symbol.name
        if symbol.is_array:
            return self.to_minimal_display_string(symbol.type_arguments[0], position) + "[]"
        if symbol.is_nullable_value:
            return self.to_minimal_display_string(symbol.type_arguments[0], position) + "?"

        scope = self._scope_at(position)
        for alias, using in scope.aliases.items():
            if using.target_node is not None:
                if self.bind_type_syntax(using.target_node, allow_aliases=False) == symbol:
                    return alias

        text = symbol.name
        if symbol.type_arguments:
            text += "<" + ", ".join(self.to_minimal_display_string(a, position)
                                    for a in symbol.type_arguments) + ">"
        if not symbol.namespace:
            return text
        # Enclosing namespaces (innermost first) shadow imports
        for ns in scope.namespaces:
            if self._type_in_namespace(ns, symbol.name, symbol.type_arguments) is not None:
                return text if ns == symbol.namespace else f"{symbol.namespace}.{text}"
        imported = {ns for ns in scope.imports
                    if self._type_in_namespace(ns, symbol.name, symbol.type_arguments) is not None}
        if imported == {symbol.namespace}:
            return text
        return f"{symbol.namespace}.{text}"

    # ────────────────────────────────────────────────────────────────
    #  Symbol / type queries
    # ────────────────────────────────────────────────────────────────

    def _is_type_position(self, node: SyntaxElement) -> bool:
        if node.kind in ("predefined_type", "generic_name", "qualified_name", "array_type",
                         "nullable_type", "implicit_type", "alias_qualified_name"):
            return True
        parent = self.parent_of(node)
        if parent is None:
            return False
        if parent.kind in ("base_list", "type_argument_list", "primary_constructor_base_type", "type_of_expression",
                           "typeof_expression"):
            return True
        return self._field_of(node) in ("type", "returns")

    def get_symbol_info(self, node: SyntaxElement) -> Optional[TypeSymbol]:
        if not self._is_type_position(node):
            return None
        if cs.is_var(node):
            symbol = self._infer_var(node)
        else:
            symbol = self.bind_type_syntax(node)
        if symbol is None or symbol.is_error:
            return None
        return symbol

    def _infer_var(self, type_node: SyntaxElement) -> Optional[TypeSymbol]:
        parent = self.parent_of(type_node)
        if parent is None:
            return None
        if parent.kind == "variable_declaration":
            found = cs.declarators(parent)
            value = cs.initializer_value(found[0]) if found else None
            return self.get_type_info(value).type if value is not None else None
        if parent.kind == "foreach_statement":
            iterated = cs.foreach_expression(parent)
            return element_type_of(self.get_type_info(iterated).type) if iterated is not None else None
        return None

    def get_type_info(self, node: Optional[SyntaxElement]) -> TypeInfo:
        if node is None:
            return NO_TYPE
        if self._is_type_position(node):
            symbol = self._infer_var(node) if cs.is_var(node) else self.bind_type_syntax(node)
            return TypeInfo(symbol, symbol)
        parent = self.parent_of(node)
        if parent is not None and parent.kind == "member_access_expression" and cs.member_access_name(parent) is node:
            return self.get_type_info(parent)
        if self._depth > _MAX_DEPTH:
            return NO_TYPE
        self._depth += 1
        try:
            symbol = self._type_of_expression(node)
        finally:
            self._depth -= 1
        return TypeInfo(symbol, symbol)

    # ────────────────────────────────────────────────────────────────
    #  Expression typing
    # ────────────────────────────────────────────────────────────────

    def _type_of_expression(self, node: SyntaxElement) -> Optional[TypeSymbol]:
        kind = node.kind
        text = node.text
        if kind == "integer_literal":
            return _integer_literal_type(text)
        if kind == "real_literal":
            lowered = text.lower()
            if lowered.endswith("f"):
                return special_type("float")
            if lowered.endswith("m"):
                return special_type("decimal")
            return special_type("double")
        if kind in cs.LITERAL_STRING_KINDS:
            return special_type("string")
        if kind == "character_literal":
            return special_type("char")
        if kind == "boolean_literal" or text in ("true", "false"):
            return special_type("bool")
        if kind in ("null_literal", "lambda_expression", "anonymous_method_expression",
                    "implicit_object_creation_expression", "tuple_expression"):
            return None
        if kind == "default_expression":
            target = node.first_child_of_kind("predefined_type", "identifier", "generic_name",
                                              "qualified_name", "array_type", "nullable_type")
            return self._bound_or_none(target)
        if kind in ("object_creation_expression", "cast_expression", "as_expression", "array_creation_expression"):
            target = node.child_by_field("type") or node.child_by_field("right")
            if target is None:
                named = node.named_children
                target = named[0] if kind != "as_expression" else named[-1]
            return self._bound_or_none(target)
        if kind == "implicit_array_creation_expression":
            init = node.first_child_of_kind("initializer_expression")
            first = init.named_children[0] if init is not None and init.named_children else None
            element = self.get_type_info(first).type if first is not None else None
            return array_of(element) if element is not None else None
        if kind in ("typeof_expression", "type_of_expression"):
            return _well_known("System", "Type")
        if kind == "sizeof_expression":
            return special_type("int")
        if kind in ("parenthesized_expression", "checked_expression", "ref_expression"):
            inner = node.named_children
            return self.get_type_info(inner[-1]).type if inner else None
        if kind in ("is_pattern_expression", "is_expression"):
            return special_type("bool")
        if kind == "await_expression":
            inner = node.named_children
            awaited = self.get_type_info(inner[-1]).type if inner else None
            if awaited is not None and awaited.name in ("Task", "ValueTask") and awaited.type_arguments:
                return awaited.type_arguments[0]
            return None
        if kind == "identifier":
            return self._type_of_identifier(node)
        if kind in ("this_expression", "this"):
            return self._enclosing_type_symbol(node)
        if kind == "member_access_expression":
            return self._type_of_member_access(node)
        if kind == "invocation_expression":
            return self._type_of_invocation(node)
        if kind == "element_access_expression":
            receiver = self.get_type_info(node.child_by_field("expression") or node.named_children[0]).type
            return self._indexer_type(receiver)
        if kind == "binary_expression":
            return self._type_of_binary(node)
        if kind == "prefix_unary_expression":
            op = next((c.text for c in node.children if c.is_token and not c.is_named), "")
            operand = self.get_type_info(node.named_children[-1]).type if node.named_children else None
            if op == "!":
                return special_type("bool")
            # Pointers and System.Index are not modelled
            if op in ("&", "*", "^"):
                return None
            if op == "-" and operand is not None and operand.keyword in ("uint", "ulong"):
                return special_type("long") if operand.keyword == "uint" else None
            if operand is not None and op in ("-", "+", "~") and operand.keyword in _SMALL_INTEGRALS:
                return special_type("int")
            return operand
        if kind == "postfix_unary_expression":
            return self.get_type_info(node.named_children[0]).type if node.named_children else None
        if kind == "conditional_expression":
            when_true, when_false = cs.conditional_branches(node)
            left = self.get_type_info(when_true).type
            right = self.get_type_info(when_false).type
            if left == right:
                return left
            if right is None and when_false is not None and when_false.kind == "null_literal":
                return left
            if left is None and when_true is not None and when_true.kind == "null_literal":
                return right
            return None
        if kind == "with_expression":
            return self.get_type_info(node.named_children[0]).type if node.named_children else None
        return None

    def _bound_or_none(self, type_node: Optional[SyntaxElement]) -> Optional[TypeSymbol]:
        if type_node is None:
            return None
        symbol = self.bind_type_syntax(type_node)
        return None if symbol.is_error else symbol

    def _type_of_binary(self, node: SyntaxNode) -> Optional[TypeSymbol]:
        op_node = node.child_by_field("operator")
        op = op_node.text if op_node is not None else next(
            (c.text for c in node.children if c.is_token and not c.is_named), "")
        named = node.named_children
        if len(named) < 2:
            return None
        left = self.get_type_info(node.child_by_field("left") or named[0]).type
        right = self.get_type_info(node.child_by_field("right") or named[-1]).type
        if op in _BOOLEAN_OPERATORS:
            return special_type("bool")
        if op == "??":
            if left is not None and left.is_nullable_value:
                return left.type_arguments[0] if right == left.type_arguments[0] else left
            return left or right
        if left is None or right is None:
            return None
        if op == "+" and "string" in (left.keyword, right.keyword):
            return special_type("string")
        if op in _ARITHMETIC_OPERATORS:
            if op in ("<<", ">>", ">>>"):
                return _promote(left, left)
            return _promote(left, right)
        return None

    def _indexer_type(self, receiver: Optional[TypeSymbol]) -> Optional[TypeSymbol]:
        if receiver is None:
            return None
        if receiver.is_array:
            return receiver.type_arguments[0]
        if receiver.keyword == "string":
            return special_type("char")
        if receiver.name in _INDEXABLE_TYPES and receiver.type_arguments:
            return receiver.type_arguments[0]
        if receiver.name in _DICTIONARY_TYPES and len(receiver.type_arguments) == 2:
            return receiver.type_arguments[1]
        return None

    # ────────────────────────────────────────────────────────────────
    #  Names: locals, parameters, members
    # ────────────────────────────────────────────────────────────────

    def _declared_local_type(self, declaration: SyntaxNode, name: str) -> Tuple[bool, Optional[TypeSymbol]]:
        for declarator in cs.declarators(declaration):
            if cs.declarator_name(declarator) == name:
                type_node = cs.declared_type(declaration)
                if cs.is_var(type_node):
                    return True, self.get_type_info(cs.initializer_value(declarator)).type
                return True, self._bound_or_none(type_node)
        return False, None

    def _type_of_identifier(self, node: SyntaxElement) -> Optional[TypeSymbol]:
        name = node.text
        for ancestor, child in self._ancestors(node):
            kind = ancestor.kind
            if kind in ("block", "switch_section", "compilation_unit"):
                for stmt in ancestor.children:
                    if stmt is child:
                        break
                    if stmt.kind == "global_statement" and stmt.named_children:
                        stmt = stmt.named_children[0]
                    if stmt.kind == "local_declaration_statement":
                        declaration = cs.variable_declaration(stmt)
                        if declaration is not None:
                            found, symbol = self._declared_local_type(declaration, name)
                            if found:
                                return symbol
            elif kind in ("for_statement", "using_statement", "fixed_statement"):
                declaration = cs.variable_declaration(ancestor)
                if declaration is not None:
                    found, symbol = self._declared_local_type(declaration, name)
                    if found:
                        return symbol
            elif kind == "foreach_statement":
                variable = cs.foreach_variable(ancestor)
                if variable is not None and variable.text == name:
                    type_node = cs.foreach_type(ancestor)
                    if cs.is_var(type_node) or type_node is None:
                        return element_type_of(self.get_type_info(cs.foreach_expression(ancestor)).type)
                    return self._bound_or_none(type_node)
            elif kind == "catch_clause":
                declaration = ancestor.first_child_of_kind("catch_declaration")
                if declaration is not None:
                    idents = declaration.children_of_kind("identifier")
                    if len(idents) > 1 and idents[-1].text == name:
                        return self._bound_or_none(declaration.child_by_field("type") or idents[0])
            elif kind in ("method_declaration", "constructor_declaration", "local_function_statement",
                          "lambda_expression", "operator_declaration", "indexer_declaration",
                          "anonymous_method_expression"):
                for param in cs.parameters(ancestor):
                    if cs.parameter_name(param) == name:
                        return self._bound_or_none(cs.parameter_type(param))
            declared = self._declared_by_node.get(id(ancestor))
            if declared is not None:
                member = self._member_type(self._symbol_for(declared), name, invocation=False)
                if member is not None:
                    return member
        return None

    def _symbol_for(self, declared: DeclaredType) -> TypeSymbol:
        namespace = declared.containing_type or declared.namespace
        tparams = declared.node.first_child_of_kind("type_parameter_list")
        args: Tuple[TypeSymbol, ...] = ()
        if tparams is not None and not tparams.is_token:
            args = tuple(TypeSymbol(p.text, "", (), "type_parameter")
                         for p in tparams.children_of_kind("type_parameter"))
        return TypeSymbol(declared.name, namespace, args, declared.kind)

    def _enclosing_type_symbol(self, node: SyntaxElement) -> Optional[TypeSymbol]:
        for ancestor, _ in self._ancestors(node):
            declared = self._declared_by_node.get(id(ancestor))
            if declared is not None:
                return self._symbol_for(declared)
        return None

    def _declared_for_symbol(self, symbol: TypeSymbol) -> Optional[DeclaredType]:
        for declared in self.index.find_types(symbol.name, len(symbol.type_arguments)):
            if (declared.containing_type or declared.namespace) == symbol.namespace:
                return declared
        return None

    def _member_type(self, receiver: Optional[TypeSymbol], name: str, invocation: bool,
                     depth: int = 0) -> Optional[TypeSymbol]:
        if receiver is None or depth > 5:
            return None
        declared = self._declared_for_symbol(receiver)
        if declared is not None:
            model = self.compilation.get_semantic_model(declared.tree)
            tparams = declared.node.first_child_of_kind("type_parameter_list")
            substitutions: Dict[str, TypeSymbol] = {}
            if tparams is not None and not tparams.is_token:
                for param, arg in zip(tparams.children_of_kind("type_parameter"), receiver.type_arguments):
                    substitutions[param.text] = arg
            for member in declared.members.get(name, []):
                if (member.kind == "method") == invocation:
                    symbol = model.bind_type_syntax(member.type_node, substitutions)
                    return None if symbol.is_error or symbol.keyword == "void" else symbol
            for base in declared.base_type_nodes:
                found = self._member_type(model.bind_type_syntax(base, substitutions), name, invocation, depth + 1)
                if found is not None:
                    return found
            return None
        return _framework_member(receiver, name, invocation)

    def _type_of_member_access(self, node: SyntaxNode) -> Optional[TypeSymbol]:
        receiver_node = cs.member_access_receiver(node)
        name_node = cs.member_access_name(node)
        if receiver_node is None or name_node is None:
            return None
        receiver = self._receiver_type(receiver_node)
        return self._member_type(receiver, name_node.text, invocation=False)

    def _receiver_type(self, receiver_node: SyntaxElement) -> Optional[TypeSymbol]:
        receiver = self.get_type_info(receiver_node).type
        if receiver is None and receiver_node.kind in ("identifier", "predefined_type", "qualified_name",
                                                       "generic_name", "member_access_expression"):
            # Static access through a type name
            if receiver_node.kind == "member_access_expression":
                receiver = self._lookup_qualified(receiver_node.text, (), receiver_node)
            else:
                receiver = self._bound_or_none(receiver_node)
        return receiver

    def _type_of_invocation(self, node: SyntaxNode) -> Optional[TypeSymbol]:
        target = cs.invocation_target(node)
        if target is None:
            return None
        if target.kind == "identifier":
            enclosing = self._enclosing_type_symbol(node)
            return self._member_type(enclosing, target.text, invocation=True)
        if target.kind == "member_access_expression":
            receiver_node = cs.member_access_receiver(target)
            name_node = cs.member_access_name(target)
            if receiver_node is None or name_node is None:
                return None
            receiver = self._receiver_type(receiver_node)
            name = name_node.text if name_node.kind != "generic_name" else name_node.first_child_of_kind("identifier").text
            found = self._member_type(receiver, name, invocation=True)
            if found is None and name == "FromResult" and receiver is not None and receiver.name == "Task":
                args = node.first_child_of_kind("argument_list")
                first = args.children_of_kind("argument")[0] if args is not None and args.children_of_kind("argument") else None
                inner = self.get_type_info(first.named_children[-1]).type if first is not None and first.named_children else None
                return _well_known("System.Threading.Tasks", "Task", (inner,)) if inner is not None else None
            return found
        return None


# ═══════════════════════════════════════════════════════════════════════
#  Framework members
# ═══════════════════════════════════════════════════════════════════════

_STRING_RETURNING = {"Trim", "TrimStart", "TrimEnd", "ToUpper", "ToLower", "ToUpperInvariant",
                     "ToLowerInvariant", "Substring", "Replace", "PadLeft", "PadRight", "Insert",
                     "Remove", "Format", "Join", "Concat"}
_BOOL_RETURNING = {"Contains", "StartsWith", "EndsWith", "Any", "All", "Equals", "IsNullOrEmpty",
                   "IsNullOrWhiteSpace", "Remove", "Add", "ContainsKey", "TryGetValue"}
_SEQUENCE_PRESERVING = {"Where", "OrderBy", "OrderByDescending", "ThenBy", "Skip", "Take",
                        "Distinct", "Reverse", "SkipWhile", "TakeWhile", "AsEnumerable", "Concat"}
_ELEMENT_RETURNING = {"First", "FirstOrDefault", "Last", "LastOrDefault", "Single",
                      "SingleOrDefault", "ElementAt", "ElementAtOrDefault", "Max", "Min"}


def _framework_member(receiver: TypeSymbol, name: str, invocation: bool) -> Optional[TypeSymbol]:
    """Return types of common BCL / LINQ members."""
    keyword = receiver.keyword
    if invocation and name == "ToString":
        return special_type("string")
    if invocation and name == "GetHashCode":
        return special_type("int")
    if invocation and name == "GetType":
        return _well_known("System", "Type")

    if keyword == "string":
        if not invocation and name == "Length":
            return special_type("int")
        if not invocation and name == "Empty":
            return special_type("string")
        if invocation and name in _STRING_RETURNING:
            return special_type("string")
        if invocation and name == "Split":
            return array_of(special_type("string"))
        if invocation and name in ("IndexOf", "LastIndexOf", "CompareTo", "Compare"):
            return special_type("int")
        if invocation and name in _BOOL_RETURNING - {"Remove", "Add"}:
            return special_type("bool")
        if invocation and name == "ToCharArray":
            return array_of(special_type("char"))
    if keyword and invocation and name in ("Parse",):
        return receiver

    if receiver.full_name == "System.Guid" and invocation and name == "NewGuid":
        return receiver
    if receiver.full_name in ("System.DateTime", "System.DateTimeOffset") and not invocation \
            and name in ("Now", "UtcNow", "Today", "MinValue", "MaxValue"):
        return receiver
    if receiver.full_name == "System.TimeSpan" and invocation and name.startswith("From"):
        return receiver

    if receiver.is_array and not invocation and name == "Length":
        return special_type("int")
    if receiver.full_name == "System.Text.StringBuilder" and invocation:
        return special_type("string") if name == "ToString" else receiver

    if receiver.name in _DICTIONARY_TYPES and len(receiver.type_arguments) == 2 and invocation:
        if name in ("ContainsKey", "ContainsValue", "TryGetValue", "Remove"):
            return special_type("bool")

    element = element_type_of(receiver)
    if element is None:
        return None
    if not invocation:
        return special_type("int") if name == "Count" and receiver.name != "IEnumerable" else None
    if name == "ToList":
        return _generic("List", element)
    if name == "ToArray":
        return array_of(element)
    if name == "ToHashSet":
        return _generic("HashSet", element)
    if name in _ELEMENT_RETURNING:
        return element
    if name in ("Count", "Sum") and name == "Count":
        return special_type("int")
    if name in _BOOL_RETURNING:
        return special_type("bool")
    if name in _SEQUENCE_PRESERVING:
        return _generic("IEnumerable", element)
    return None
