"""
C# Syntax Transformer — MCP Server

Exposes the rewrite pipeline to MCP clients (e.g. GitHub Copilot):

  1. load_workspace       — parse + index every .cs file under a path
  2. preview_rewrite      — unified diff of what the rewrite would change
  3. apply_rewrite        — rewrite changed files in place
  4. list_result_types    — the ActionResult catalog used for attributes
  5. explain_result_type  — details + generated attribute for one result type
"""

from mcp.server.fastmcp import FastMCP
import difflib
import logging
import os
import sys

# Ensure the package is importable when launched as a script
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from syntax_transformer.compilation import Compilation, SourceNotFoundError, load_compilation
from syntax_transformer.pipeline import RewritePipeline
from syntax_transformer.result_types import (
    OBJECT_FAMILY,
    STATUS_CODE_FAMILY,
    ResultProbeError,
    format_result_kind,
    get_result_kind,
    list_result_kinds,
)

# stdout carries the MCP protocol; logs go to stderr
logging.basicConfig(level=logging.INFO, stream=sys.stderr,
                    format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("C# Syntax Transformer")

compilation: Compilation = None
workspace_path: str = None


def _require_workspace():
    if compilation is None:
        return "Error: No workspace loaded. Call load_workspace first."
    return None


def _select_trees(file_path: str):
    """All trees, or the single tree for ``file_path``.  Returns (trees, error)."""
    if not file_path.strip():
        return compilation.trees, None
    candidate = file_path
    if not os.path.isabs(candidate) and workspace_path and os.path.isdir(workspace_path):
        candidate = os.path.join(workspace_path, candidate)
    tree = compilation.find_tree(candidate)
    if tree is None:
        return None, f"Error: `{file_path}` is not part of the loaded workspace."
    return [tree], None


def _display_path(path: str) -> str:
    if workspace_path and os.path.isdir(workspace_path):
        path = os.path.relpath(path, workspace_path)
    return path.replace("\\", "/")


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Load Workspace
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def load_workspace(path: str) -> str:
    """
    Parses every C# file under a path and builds the declaration index the
    semantic model uses to resolve types across files.

    Args:
        path: A .cs file or a directory (searched recursively).
    """
    global compilation, workspace_path

    try:
        compilation = load_compilation(path)
    except SourceNotFoundError as e:
        return f"Error: {e}"
    except Exception as e:
        logger.exception("Failed to load %s", path)
        return f"Error loading workspace: {e}"

    workspace_path = path
    summary = compilation.get_summary()
    text = (
        f"Successfully loaded workspace `{path}`.\n"
        f"Parsed {summary['files']} .cs file(s), indexed {summary['types']} type declaration(s)."
    )
    if summary["files_with_errors"]:
        text += (
            f"\n{summary['files_with_errors']} file(s) contain syntax errors; "
            f"the affected regions are left as they are."
        )
    return text


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Preview Rewrite
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def preview_rewrite(file_path: str = "") -> str:
    """
    Shows a unified diff of the changes the rewrite would make, without
    touching any file.

    Args:
        file_path: Optional file to preview (relative to the workspace).
                   Leave empty to preview the whole workspace.
    """
    error = _require_workspace()
    if error:
        return error
    trees, error = _select_trees(file_path)
    if error:
        return error

    pipeline = RewritePipeline(compilation)
    diffs = []
    try:
        for tree in trees:
            for result in pipeline.run(dry_run=True, keep_text=True, only=tree):
                if not result.changed:
                    continue
                name = _display_path(result.file_path)
                diff = difflib.unified_diff(
                    result.original_text.splitlines(keepends=True),
                    result.new_text.splitlines(keepends=True),
                    fromfile=f"a/{name}", tofile=f"b/{name}",
                )
                diffs.append("".join(diff))
    except ResultProbeError as e:
        return f"Error: {e}"

    if not diffs:
        return "No changes: every declaration is already explicit and every attribute is present."
    return f"**{len(diffs)} file(s) would change:**\n\n```diff\n" + "\n".join(diffs) + "```\n"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — Apply Rewrite
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def apply_rewrite(file_path: str = "") -> str:
    """
    Rewrites files in place: `var` declarations become explicit types and
    controller classes/methods receive API attributes.  Files with no change
    are not written.  Reload the workspace afterwards before previewing again.

    Args:
        file_path: Optional single file to rewrite (relative to the workspace).
                   Leave empty to rewrite the whole workspace.
    """
    error = _require_workspace()
    if error:
        return error
    trees, error = _select_trees(file_path)
    if error:
        return error

    pipeline = RewritePipeline(compilation)
    results = []
    try:
        for tree in trees:
            results.extend(pipeline.run(only=tree))
    except ResultProbeError as e:
        return f"Error: {e}"
    except OSError as e:
        return f"Error writing files: {e}"

    written = [r for r in results if r.written]
    if not written:
        return f"No changes in {len(results)} file(s)."
    summary = f"## Rewrite Applied\n\n**{len(written)} of {len(results)} file(s) rewritten:**\n\n"
    for r in written:
        summary += f"- `{_display_path(r.file_path)}`\n"
    return summary


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — List Result Types
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_result_types(family: str = "") -> str:
    """
    Lists the ActionResult types recognised in `return` statements, in the
    order names are resolved (StatusCodeResult family first).

    Args:
        family: Optional filter, "StatusCodeResult" or "ObjectResult".
    """
    families = [family] if family else [STATUS_CODE_FAMILY, OBJECT_FAMILY]
    if family and family not in (STATUS_CODE_FAMILY, OBJECT_FAMILY):
        return f"Error: Unknown family `{family}`. Use {STATUS_CODE_FAMILY} or {OBJECT_FAMILY}."

    out = "# Result Type Catalog\n\n"
    for fam in families:
        out += f"## {fam}\n\n| Type | Status | Constructor arities |\n|---|---|---|\n"
        for kind in list_result_kinds(fam):
            status = kind.status_code if kind.status_code is not None else "unset"
            arities = ", ".join(str(a) for a in kind.constructor_arities)
            out += f"| `{kind.name}` | {status} | {arities} |\n"
        out += "\n"
    return out


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5 — Explain Result Type
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def explain_result_type(name: str) -> str:
    """
    Explains one result type and shows the attribute generated for it.

    Args:
        name: Simple type name, e.g. "OkObjectResult" or "NotFoundResult".
    """
    kind = get_result_kind(name.strip())
    if kind is None:
        return f"Error: `{name}` is not in the result type catalog. Call list_result_types."
    return format_result_kind(kind)


if __name__ == "__main__":
    logger.info("C# Syntax Transformer starting")
    mcp.run()
