"""CLI for searching the tag store and running the tag cleanup pass."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from utils.logging import get_logger
from snaptag.config import load_settings
from snaptag.db import open_primary_session
from snaptag.errors import EmptyTagError
from snaptag.query import parse_tag_filter
from snaptag.repository import TagRepository
from snaptag.tags import plan_tag_cleanup

LOGGER = get_logger(__name__)

app = typer.Typer(help="Search and maintain the SnapTag tag store.")


def _database_target(db: Optional[str], settings_path: Optional[Path]) -> str:
    if db:
        return db
    return load_settings(settings_path).databases.primary_url


@app.command("search")
def search(
    tags: str = typer.Option("", "--tags", help="Comma-separated tags; every one must be present."),
    term: Optional[str] = typer.Option(None, "--term", help="Free-text term matched against names and tags."),
    db: Optional[str] = typer.Option(None, "--db", help="Database URL or SQLite path; defaults to settings.yaml."),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.yaml."),
) -> None:
    """Print images matching all TAGS (and TERM, if given) as JSON lines."""

    try:
        required = parse_tag_filter(tags)
    except EmptyTagError as exc:
        LOGGER.error("tag_search_invalid_filter", extra={"tags": tags, "error": str(exc)})
        raise typer.Exit(code=1) from exc

    with open_primary_session(_database_target(db, settings_path)) as session:
        repo = TagRepository(session)
        for image_id in repo.search_image_ids(required, term):
            record = repo.load_record(image_id)
            if record is None:
                continue
            typer.echo(
                json.dumps(
                    {
                        "id": record.image_id,
                        "filename": record.filename,
                        "title": record.title,
                        "tags": record.tags,
                        "regionTags": [region.name for region in record.region_tags],
                    }
                )
            )


@app.command("cleanup")
def cleanup(
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the planned changes without applying them."),
    db: Optional[str] = typer.Option(None, "--db", help="Database URL or SQLite path; defaults to settings.yaml."),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Path to settings.yaml."),
) -> None:
    """Split comma-joined tags and fold copies and unnormalized spellings into canonical tags."""

    with open_primary_session(_database_target(db, settings_path)) as session:
        repo = TagRepository(session)
        plan = plan_tag_cleanup(repo.all_tag_names())
        if not dry_run and not plan.is_empty:
            repo.apply_tag_cleanup(plan)
            session.commit()

    typer.echo(json.dumps({"dryRun": dry_run, "splits": plan.splits, "merges": plan.merges}, indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
