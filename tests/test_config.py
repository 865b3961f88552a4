"""Tests for YAML settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from snaptag.config import ClassificationConfig, Settings, load_settings


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.yaml")

    assert settings == Settings()
    assert settings.duplicates.similarity_threshold == 5
    assert settings.sequence.maximum == 9999
    assert settings.classification.project_identifiers[0] == "yandoit"


def test_yaml_overrides_are_applied_and_normalized(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        """
classification:
  base_folder: /Photos
  team_tag: " Studio "
  material_marker: Materials-Marker
  project_identifiers: [Fitzroy, "  North   Melbourne "]
  material_vocabulary: [Tile, "", stone]
duplicates:
  similarity_threshold: 3
  max_workers: 2
sequence:
  start: 100
databases:
  primary_url: sqlite:///tmp/other.db
storage:
  root: /srv/objects
""",
        encoding="utf-8",
    )

    settings = load_settings(path)

    cls = settings.classification
    assert cls.base_folder == "/Photos"
    assert cls.team_tag == "studio"
    assert cls.material_marker == "materials-marker"
    assert cls.project_identifiers == ["fitzroy", "north melbourne"]
    assert cls.material_vocabulary == ["tile", "stone"]
    assert cls.reference_vocabulary == ClassificationConfig().reference_vocabulary
    assert settings.duplicates.similarity_threshold == 3
    assert settings.duplicates.max_workers == 2
    assert settings.duplicates.hash_size == 8
    assert settings.sequence.start == 100
    assert settings.databases.primary_url == "sqlite:///tmp/other.db"
    assert settings.storage.root == "/srv/objects"


def test_wrong_types_keep_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "classification:\n  team_tag: 5\n  final_tags: final\n  material_marker: '  '\n"
        "duplicates:\n  similarity_threshold: five\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.classification.team_tag == "archier"
    assert settings.classification.final_tags == ["final", "complete"]
    assert settings.classification.material_marker == "texture"
    assert settings.duplicates.similarity_threshold == 5


@pytest.mark.parametrize("body", ["", "- just\n- a list\n", "plain string\n"])
def test_non_mapping_documents_yield_defaults(tmp_path: Path, body: str) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(body, encoding="utf-8")

    assert load_settings(path) == Settings()


def test_environment_variable_selects_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "env.yaml"
    path.write_text("duplicates:\n  similarity_threshold: 9\n", encoding="utf-8")
    monkeypatch.setenv("SNAPTAG_SETTINGS", str(path))

    assert load_settings().duplicates.similarity_threshold == 9
