"""
C# shape accessors over SyntaxNode.

tree-sitter-c-sharp has moved fields around between releases (e.g.
``equals_value_clause`` vs. a bare ``=``; ``function`` vs. ``expression`` on
invocations).  These helpers try the field name first and fall back to the
child's position or kind, so the rewriters never touch raw child indices.
"""

from typing import List, Optional

from syntax_transformer.syntax_tree import SyntaxElement, SyntaxNode

INFERRED_TYPE_KEYWORD = "var"

TYPE_DECLARATION_KINDS = (
    "class_declaration", "struct_declaration", "interface_declaration",
    "record_declaration", "record_struct_declaration", "enum_declaration",
)

LITERAL_STRING_KINDS = (
    "string_literal", "verbatim_string_literal", "raw_string_literal",
    "interpolated_string_expression",
)


def _field_or(node: SyntaxNode, name: str, index: int) -> Optional[SyntaxElement]:
    found = node.child_by_field(name)
    if found is not None:
        return found
    named = node.named_children
    if -len(named) <= index < len(named):
        return named[index]
    return None


def is_var(type_node: Optional[SyntaxElement]) -> bool:
    return type_node is not None and type_node.text == INFERRED_TYPE_KEYWORD


# ────────────────────────────────────────────────────────────────
#  Declarations
# ────────────────────────────────────────────────────────────────

def variable_declaration(node: SyntaxNode) -> Optional[SyntaxNode]:
    """The ``variable_declaration`` directly under a statement or ``for``."""
    if node.kind == "variable_declaration":
        return node
    return node.first_child_of_kind("variable_declaration")


def declared_type(declaration: SyntaxNode) -> Optional[SyntaxElement]:
    found = declaration.child_by_field("type")
    if found is not None:
        return found
    for child in declaration.named_children:
        if child.kind != "variable_declarator":
            return child
    return None


def declarators(declaration: SyntaxNode) -> List[SyntaxNode]:
    return declaration.children_of_kind("variable_declarator")


def declarator_name(declarator: SyntaxNode) -> Optional[str]:
    name = declarator.child_by_field("name") or declarator.first_child_of_kind("identifier")
    return name.text if name is not None else None


def initializer_value(declarator: SyntaxNode) -> Optional[SyntaxElement]:
    """The initializer expression of a declarator, or None."""
    clause = declarator.first_child_of_kind("equals_value_clause")
    if clause is not None:
        for child in clause.named_children:
            return child
        return None
    seen_equals = False
    for child in declarator.children:
        if seen_equals and child.is_named:
            return child
        if child.kind == "=":
            seen_equals = True
    return None


def parameters(node: SyntaxNode) -> List[SyntaxNode]:
    plist = node.child_by_field("parameters") or node.first_child_of_kind("parameter_list")
    if plist is None or plist.is_token:
        return []
    return plist.children_of_kind("parameter")


def parameter_type(parameter: SyntaxNode) -> Optional[SyntaxElement]:
    return parameter.child_by_field("type")


def parameter_name(parameter: SyntaxNode) -> Optional[str]:
    name = parameter.child_by_field("name")
    if name is None:
        idents = parameter.children_of_kind("identifier")
        name = idents[-1] if idents else None
    return name.text if name is not None else None


def member_declared_type(member: SyntaxNode) -> Optional[SyntaxElement]:
    """Declared type of a property / method / field member."""
    if member.kind == "field_declaration":
        declaration = variable_declaration(member)
        return declared_type(declaration) if declaration is not None else None
    return member.child_by_field("type") or member.child_by_field("returns")


def member_names(member: SyntaxNode) -> List[str]:
    if member.kind in ("field_declaration", "event_field_declaration"):
        declaration = variable_declaration(member)
        if declaration is None:
            return []
        return [n for n in (declarator_name(d) for d in declarators(declaration)) if n]
    name = member.child_by_field("name")
    return [name.text] if name is not None else []


# ────────────────────────────────────────────────────────────────
#  Statements
# ────────────────────────────────────────────────────────────────

def foreach_type(node: SyntaxNode) -> Optional[SyntaxElement]:
    return node.child_by_field("type")


def foreach_variable(node: SyntaxNode) -> Optional[SyntaxElement]:
    """The loop variable: an identifier, or a tuple pattern when deconstructing."""
    found = node.child_by_field("left")
    if found is not None:
        return found
    type_node = foreach_type(node)
    seen_type = type_node is None
    for child in node.children:
        if child.kind == "in":
            break
        if seen_type and child.is_named:
            return child
        if child is type_node:
            seen_type = True
    return None


def foreach_expression(node: SyntaxNode) -> Optional[SyntaxElement]:
    found = node.child_by_field("right")
    if found is not None:
        return found
    seen_in = False
    for child in node.children:
        if seen_in and child.is_named:
            return child
        if child.kind == "in":
            seen_in = True
    return None


def statement_body(node: SyntaxNode) -> Optional[SyntaxElement]:
    found = node.child_by_field("body")
    if found is not None:
        return found
    named = node.named_children
    return named[-1] if named else None


def return_expression(node: SyntaxNode) -> Optional[SyntaxElement]:
    for child in node.named_children:
        return child
    return None


# ────────────────────────────────────────────────────────────────
#  Expressions
# ────────────────────────────────────────────────────────────────

def member_access_name(node: SyntaxNode) -> Optional[SyntaxElement]:
    return _field_or(node, "name", -1)


def member_access_receiver(node: SyntaxNode) -> Optional[SyntaxElement]:
    return _field_or(node, "expression", 0)


def invocation_target(node: SyntaxNode) -> Optional[SyntaxElement]:
    return node.child_by_field("function") or node.child_by_field("expression") or _field_or(node, "function", 0)


def argument_list(node: SyntaxNode) -> Optional[SyntaxNode]:
    return node.first_child_of_kind("argument_list")


def argument_count(node: SyntaxNode) -> int:
    args = argument_list(node)
    if args is None or args.is_token:
        return 0
    return len(args.children_of_kind("argument"))


def created_type(node: SyntaxNode) -> Optional[SyntaxElement]:
    return _field_or(node, "type", 0)


def conditional_branches(node: SyntaxNode):
    """(when_true, when_false) of a ``?:`` expression."""
    return _field_or(node, "consequence", 1), _field_or(node, "alternative", 2)


# ────────────────────────────────────────────────────────────────
#  Types, attributes, usings
# ────────────────────────────────────────────────────────────────

def base_types(node: SyntaxNode) -> List[SyntaxElement]:
    base_list = node.child_by_field("bases") or node.first_child_of_kind("base_list")
    if base_list is None or base_list.is_token:
        return []
    result = []
    for child in base_list.named_children:
        if child.kind == "primary_constructor_base_type":
            inner = child.child_by_field("type") or (child.named_children or [None])[0]
            if inner is not None:
                result.append(inner)
        else:
            result.append(child)
    return result


def attribute_lists(node: SyntaxNode) -> List[SyntaxNode]:
    return node.children_of_kind("attribute_list")


def type_arguments(node: SyntaxNode) -> List[SyntaxElement]:
    args = node.first_child_of_kind("type_argument_list")
    if args is None or args.is_token:
        return []
    return args.named_children


def declaration_name(node: SyntaxNode) -> Optional[str]:
    name = node.child_by_field("name") or node.first_child_of_kind("identifier")
    return name.text if name is not None else None
