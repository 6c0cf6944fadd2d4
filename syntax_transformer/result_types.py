"""
ASP.NET Core Result Type Catalog

Static registry of the concrete MVC action-result types the attribute pass
can recognise.  Every entry records its simple name, immediate base type,
result family (``StatusCodeResult`` or ``ObjectResult``), the status code an
instance reports and the constructor arities the type offers.

Also provides the attribute catalog used for controller decoration and the
helper that turns a kind into an attribute node.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from syntax_transformer.syntax_tree import SyntaxNode, make_attribute

logger = logging.getLogger(__name__)

STATUS_CODE_FAMILY = "StatusCodeResult"
OBJECT_FAMILY = "ObjectResult"
_ACTION_RESULT = "ActionResult"
_ATTRIBUTE_SUFFIX = "Attribute"


class ResultProbeError(RuntimeError):
    """A result kind cannot be instantiated the way the probe requires."""


@dataclass(frozen=True)
class ResultKind:
    name: str
    base: str                                  # immediate base type
    family: str                                # StatusCodeResult / ObjectResult
    status_code: Optional[int]                 # None when the type leaves it unset
    constructor_arities: Tuple[int, ...] = (0,)
    description: str = ""

    @property
    def probe_arity(self) -> int:
        """One synthetic argument for direct ObjectResult subclasses, none otherwise."""
        return 1 if self.base == OBJECT_FAMILY else 0

    def build_arguments(self) -> str:
        """Attribute argument text ``(typeof(Name), StatusCode)``.

        Raises ResultProbeError when the kind has no constructor taking the
        probe arity.
        """
        if self.probe_arity not in self.constructor_arities:
            raise ResultProbeError(
                f"Cannot construct {self.name} with {self.probe_arity} argument(s); "
                f"available constructor arities: {list(self.constructor_arities)}"
            )
        return f"(typeof({self.name}), {self.status_code or 0})"


@dataclass(frozen=True)
class AttributeKind:
    name: str                                  # CLR name, e.g. "AuthorizeAttribute"
    namespace: str

    @property
    def short_name(self) -> str:
        return strip_attribute_suffix(self.name)


# ═══════════════════════════════════════════════════════════════════════
#  Registry
# ═══════════════════════════════════════════════════════════════════════

_KINDS: Dict[str, ResultKind] = {}


def _add(kind: ResultKind):
    _KINDS[kind.name] = kind


# ───────────────────────────────────────────────────────────────────────
#  Family roots
# ───────────────────────────────────────────────────────────────────────

_add(ResultKind(STATUS_CODE_FAMILY, _ACTION_RESULT, STATUS_CODE_FAMILY, None, (1,),
                "Result that only carries an HTTP status code."))
_add(ResultKind(OBJECT_FAMILY, _ACTION_RESULT, OBJECT_FAMILY, None, (1,),
                "Result that carries a value formatted into the response body."))

# ───────────────────────────────────────────────────────────────────────
#  StatusCodeResult family
# ───────────────────────────────────────────────────────────────────────

_add(ResultKind("OkResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 200,
                description="Empty 200 OK response."))
_add(ResultKind("NoContentResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 204,
                description="Empty 204 No Content response."))
_add(ResultKind("BadRequestResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 400,
                description="Empty 400 Bad Request response."))
_add(ResultKind("UnauthorizedResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 401,
                description="Empty 401 Unauthorized response."))
_add(ResultKind("NotFoundResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 404,
                description="Empty 404 Not Found response."))
_add(ResultKind("ConflictResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 409,
                description="Empty 409 Conflict response."))
_add(ResultKind("UnsupportedMediaTypeResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 415,
                description="Empty 415 Unsupported Media Type response."))
_add(ResultKind("UnprocessableEntityResult", STATUS_CODE_FAMILY, STATUS_CODE_FAMILY, 422,
                description="Empty 422 Unprocessable Entity response."))

# ───────────────────────────────────────────────────────────────────────
#  ObjectResult family
# ───────────────────────────────────────────────────────────────────────

_add(ResultKind("OkObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 200, (1,),
                "200 OK with a body."))
_add(ResultKind("CreatedResult", OBJECT_FAMILY, OBJECT_FAMILY, 201, (2,),
                "201 Created with a location and a body."))
_add(ResultKind("CreatedAtActionResult", OBJECT_FAMILY, OBJECT_FAMILY, 201, (4,),
                "201 Created pointing at an action."))
_add(ResultKind("CreatedAtRouteResult", OBJECT_FAMILY, OBJECT_FAMILY, 201, (2, 3),
                "201 Created pointing at a named route."))
_add(ResultKind("AcceptedResult", OBJECT_FAMILY, OBJECT_FAMILY, 202, (0, 2),
                "202 Accepted, optionally with a location and a body."))
_add(ResultKind("AcceptedAtActionResult", OBJECT_FAMILY, OBJECT_FAMILY, 202, (4,),
                "202 Accepted pointing at an action."))
_add(ResultKind("AcceptedAtRouteResult", OBJECT_FAMILY, OBJECT_FAMILY, 202, (2, 3),
                "202 Accepted pointing at a named route."))
_add(ResultKind("BadRequestObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 400, (1,),
                "400 Bad Request with error details."))
_add(ResultKind("UnauthorizedObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 401, (1,),
                "401 Unauthorized with a body."))
_add(ResultKind("NotFoundObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 404, (1,),
                "404 Not Found with a body."))
_add(ResultKind("ConflictObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 409, (1,),
                "409 Conflict with a body."))
_add(ResultKind("UnprocessableEntityObjectResult", OBJECT_FAMILY, OBJECT_FAMILY, 422, (1,),
                "422 Unprocessable Entity with validation details."))


AUTHORIZE = AttributeKind("AuthorizeAttribute", "Microsoft.AspNetCore.Authorization")
API_CONTROLLER = AttributeKind("ApiControllerAttribute", "Microsoft.AspNetCore.Mvc")
ROUTE = AttributeKind("RouteAttribute", "Microsoft.AspNetCore.Mvc")
PRODUCES_RESPONSE_TYPE = AttributeKind("ProducesResponseTypeAttribute", "Microsoft.AspNetCore.Mvc")


# ═══════════════════════════════════════════════════════════════════════
#  Lookup
# ═══════════════════════════════════════════════════════════════════════

def get_result_kind(name: str) -> Optional[ResultKind]:
    return _KINDS.get(name)


def _is_strict_descendant(kind: ResultKind, base: str) -> bool:
    seen = set()
    current = kind
    while current is not None and current.name not in seen:
        seen.add(current.name)
        if current.base == base:
            return True
        current = _KINDS.get(current.base)
    return False


@lru_cache(maxsize=None)
def _derived_types(base: str) -> Tuple[ResultKind, ...]:
    found = tuple(k for k in _KINDS.values() if _is_strict_descendant(k, base))
    logger.debug("Catalogued %d result type(s) deriving from %s", len(found), base)
    return found


def find_derived_types(base: str) -> List[ResultKind]:
    """Every catalogued kind strictly deriving from ``base``; [] for unknown bases."""
    return list(_derived_types(base))


def find_matching_type(name: str, first: str = STATUS_CODE_FAMILY,
                       second: str = OBJECT_FAMILY) -> Optional[ResultKind]:
    """Resolve a simple result-type name, searching ``first`` then ``second``."""
    for family in (first, second):
        for kind in _derived_types(family):
            if kind.name == name:
                return kind
    return None


def list_result_kinds(family: Optional[str] = None) -> List[ResultKind]:
    if family is None:
        return list(_KINDS.values())
    return find_derived_types(family)


# ═══════════════════════════════════════════════════════════════════════
#  Attribute construction
# ═══════════════════════════════════════════════════════════════════════

def strip_attribute_suffix(name: str) -> str:
    if name.endswith(_ATTRIBUTE_SUFFIX) and name != _ATTRIBUTE_SUFFIX:
        return name[:-len(_ATTRIBUTE_SUFFIX)]
    return name


def build_annotation(kind, arguments: Optional[str] = None) -> SyntaxNode:
    """Attribute node for ``kind`` (an AttributeKind or a type name).

    ``arguments`` is raw argument-list text including parentheses.
    """
    name = kind.short_name if isinstance(kind, AttributeKind) else strip_attribute_suffix(str(kind))
    return make_attribute(name, arguments)


def build_result_annotation(kind: ResultKind) -> SyntaxNode:
    """``ProducesResponseType(typeof(Kind), code)`` for a result kind."""
    return build_annotation(PRODUCES_RESPONSE_TYPE, kind.build_arguments())


def format_result_kind(kind: ResultKind) -> str:
    """Markdown explanation of a catalog entry."""
    if kind.probe_arity in kind.constructor_arities:
        annotation = f"`[ProducesResponseType{kind.build_arguments()}]`"
    else:
        annotation = "_none (cannot be probed; encountering it aborts the run)_"
    return (
        f"## {kind.name}\n\n"
        f"{kind.description}\n\n"
        f"| Property | Value |\n|---|---|\n"
        f"| Base type | `{kind.base}` |\n"
        f"| Family | `{kind.family}` |\n"
        f"| Status code | {kind.status_code if kind.status_code is not None else 'unset'} |\n"
        f"| Constructor arities | {', '.join(str(a) for a in kind.constructor_arities)} |\n"
        f"| Generated annotation | {annotation} |\n"
    )
