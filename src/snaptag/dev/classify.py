"""CLI to preview where a tag list would be filed."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from utils.logging import get_logger
from snaptag.classifier import ClassificationEngine
from snaptag.config import load_settings
from snaptag.errors import SequenceUnavailableError
from snaptag.sequence import SqlSequenceCounter

LOGGER = get_logger(__name__)

app = typer.Typer(help="Classify tag lists into SnapTag folders and filenames.")


@app.command("classify")
def classify(
    tags: list[str] = typer.Argument(..., help="Tags in the order they were applied."),
    sequence: Optional[int] = typer.Option(
        None,
        "--sequence",
        help="Use this sequence number instead of drawing one from the database counter.",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database URL or SQLite path holding the sequence counter; defaults to settings.yaml.",
    ),
    extension: str = typer.Option("", "--ext", help="File extension to append, for example jpg."),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.yaml."),
) -> None:
    """Print the folder path and filename for TAGS as JSON."""

    settings = load_settings(settings_path)
    engine = ClassificationEngine(settings.classification)

    if sequence is None:
        counter = SqlSequenceCounter(db or settings.databases.primary_url, settings.sequence)
        try:
            sequence = counter.next_sequence()
        except SequenceUnavailableError as exc:
            LOGGER.error("classify_sequence_unavailable", extra={"error": str(exc)})
            raise typer.Exit(code=1) from exc

    result = engine.classify(tags, sequence)
    typer.echo(
        json.dumps(
            {
                "folderPath": result.folder_path,
                "filename": result.with_extension(extension),
                "category": result.category,
                "subcategory": result.subcategory,
            }
        )
    )


@app.command("folders")
def folders(
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.yaml."),
) -> None:
    """List every folder the classifier can file into."""

    settings = load_settings(settings_path)
    for path in ClassificationEngine(settings.classification).all_folder_paths():
        typer.echo(path)


def main() -> None:
    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
