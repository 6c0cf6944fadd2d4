"""Command-line entry point: ``syntax-transformer [PATH]``."""

import logging
import os
import sys

import typer

from syntax_transformer.compilation import load_compilation
from syntax_transformer.pipeline import RewritePipeline

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)


@app.command()
def main(
    path: str = typer.Argument(".", help="C# file or directory to rewrite in place."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-node decisions."),
) -> None:
    """Replace ``var`` with explicit types and add API attributes to controllers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not os.path.exists(path):
        raise typer.BadParameter(f"Source not found / does not exist: {path}", param_hint="PATH")

    results = RewritePipeline(load_compilation(path)).run()
    for result in results:
        if result.written:
            typer.echo(f"rewritten: {result.file_path}")
    typer.echo(f"{sum(1 for r in results if r.written)} of {len(results)} file(s) rewritten")


if __name__ == "__main__":
    app()
