"""CLI to find visually duplicated images under a storage folder."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from utils.logging import get_logger
from snaptag.config import load_settings
from snaptag.scan import scan_folder
from snaptag.storage import LocalObjectStorage

LOGGER = get_logger(__name__)

app = typer.Typer(help="Find visually duplicated images under a storage folder.")


@app.command()
def scan(
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        file_okay=False,
        dir_okay=True,
        help="Storage root directory; defaults to storage.root from settings.yaml.",
    ),
    folder: str = typer.Option("/", "--folder", help="Folder below the root to scan."),
    threshold: Optional[int] = typer.Option(
        None,
        "--threshold",
        min=0,
        help="Maximum Hamming distance for two images to count as duplicates.",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Fingerprinting worker threads."),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.yaml."),
) -> None:
    """Scan FOLDER and print duplicate groups as JSON; the first path in each group is the one to keep."""

    settings = load_settings(settings_path)
    if threshold is not None:
        settings.duplicates.similarity_threshold = threshold
    if workers is not None:
        settings.duplicates.max_workers = workers

    storage = LocalObjectStorage(root or settings.storage.root)
    items, result = scan_folder(settings, storage, folder)
    paths = {item.image_id: item.storage_path for item in items}
    if result.errors:
        LOGGER.warning("duplicate_scan_partial", extra={"folder": folder, "errors": len(result.errors)})

    typer.echo(
        json.dumps(
            {
                "stats": {
                    "totalImages": result.stats.total_images,
                    "processedImages": result.stats.processed_images,
                    "duplicateGroups": result.stats.duplicate_groups,
                    "duplicateImages": result.stats.duplicate_images,
                    "errors": result.stats.errors,
                },
                "duplicateGroups": [
                    {
                        "keep": paths[group.canonical_id],
                        "images": [
                            {"path": paths[member], "distance": group.distances[member]} for member in group.members
                        ],
                    }
                    for group in result.groups
                ],
                "errors": [{"path": error.storage_path, "kind": error.kind, "message": error.message} for error in result.errors],
            },
            indent=2,
        )
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
