"""Command line entry point for manifest patching."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich import print as rich_print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import codec
from .config import TransformConfig
from .errors import PatchError
from .loader import FileLoader, classify
from .operations.transform import run_transformers
from .patches import JsonPatch
from .resources.base import Resource
from .resources.collection import ResourceCollection

app = typer.Typer(help="Apply strategic-merge and JSON patches to Kubernetes style manifests.")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, log_time_format="%X")],
    )


def _load_collection(paths: List[Path]) -> ResourceCollection:
    collection = ResourceCollection()
    for path in paths:
        for document in codec.load_documents(path.read_text()):
            if not isinstance(document, dict):
                raise typer.BadParameter(f"{path} contains a document that is not a mapping")
            collection.append(Resource(document))
    return collection


@app.command("apply")
def apply(
    config_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Path to the transformer configuration file."),
    resources: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="YAML files holding the resources to patch."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result here instead of stdout."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """Run every configured transformer over the resources and print the result."""

    _configure_logging(verbose)
    try:
        transform_config = TransformConfig.from_file(config_path)
        collection = _load_collection(resources)
        run_transformers(transform_config, collection, FileLoader(config_path.parent))
    except (PatchError, ValidationError, ValueError) as exc:
        rich_print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)

    rendered = codec.dump_documents(collection.to_dicts())
    if output:
        output.write_text(rendered)
        rich_print(f"[green]Wrote {len(collection)} resource(s) to {output}.[/green]")
    else:
        typer.echo(rendered, nl=False)


@app.command("classify")
def classify_patch(
    patch_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Path to a patch file."),
) -> None:
    """Report whether a patch is a strategic-merge or a JSON patch."""

    try:
        patch = classify(patch_path.read_text().strip())
    except PatchError as exc:
        rich_print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    if isinstance(patch, JsonPatch):
        typer.echo(f"json-patch ({len(patch.operations.patch)} operation(s))")
    else:
        typer.echo(f"strategic-merge ({patch.identity})")


def main() -> None:  # pragma: no cover - thin wrapper
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
