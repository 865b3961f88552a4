"""Tests for tag-driven folder and filename classification."""

from __future__ import annotations

import pytest

from snaptag.classifier import (
    CATEGORY_MATERIAL,
    CATEGORY_PROJECT,
    CATEGORY_REFERENCE,
    ClassificationEngine,
    classify_image,
    display_name,
    filename_slug,
)
from snaptag.config import ClassificationConfig
from snaptag.errors import SequenceUnavailableError
from snaptag.sequence import InMemorySequenceCounter


@pytest.fixture()
def engine() -> ClassificationEngine:
    return ClassificationEngine(ClassificationConfig())


def test_project_scenario(engine: ClassificationEngine) -> None:
    result = engine.classify(["archier", "yandoit", "final", "kitchen"], 7)

    assert result.folder_path == "/Team/Yandoit/Final"
    assert result.filename == "0007-project-yandoit"
    assert result.category == CATEGORY_PROJECT
    assert result.subcategory == "yandoit"


def test_material_scenario(engine: ClassificationEngine) -> None:
    result = engine.classify(["texture", "tile"], 12)

    assert result.folder_path == "/Materials/Tile"
    assert result.filename == "0012-material-tile"
    assert result.category == CATEGORY_MATERIAL


def test_reference_scenario(engine: ClassificationEngine) -> None:
    result = engine.classify(["precedent", "kitchens"], 3)

    assert result.folder_path == "/Reference/Kitchens"
    assert result.filename == "0003-reference-kitchens"
    assert result.category == CATEGORY_REFERENCE


def test_classification_is_deterministic(engine: ClassificationEngine) -> None:
    tags = ["archier", "ballarat", "wip", "brick"]

    assert engine.classify(tags, 42) == engine.classify(tags, 42)


def test_material_resolution_follows_supplied_order() -> None:
    engine = ClassificationEngine(ClassificationConfig(material_marker="materials-marker"))

    first = engine.classify(["tile", "stone", "materials-marker"], 1)
    second = engine.classify(["stone", "tile", "materials-marker"], 1)

    assert first.folder_path == "/Materials/Tile"
    assert first.filename == "0001-material-tile"
    assert second.folder_path == "/Materials/Stone"
    assert second.filename == "0001-material-stone"


def test_reference_resolution_follows_supplied_order(engine: ClassificationEngine) -> None:
    assert engine.classify(["stairs", "kitchens"], 1).folder_path == "/Reference/Stairs"
    assert engine.classify(["kitchens", "stairs"], 1).folder_path == "/Reference/Kitchens"


def test_team_tag_beats_material_tags(engine: ClassificationEngine) -> None:
    result = engine.classify(["brick", "texture", "archier", "geelong"], 5)

    assert result.category == CATEGORY_PROJECT
    assert result.folder_path == "/Team/Geelong"
    assert result.filename == "0005-project-geelong"


def test_project_uses_identifier_list_order(engine: ClassificationEngine) -> None:
    result = engine.classify(["archier", "melbourne", "yandoit"], 1)

    assert result.folder_path == "/Team/Yandoit"


def test_final_wins_over_wip_and_complete_is_a_synonym(engine: ClassificationEngine) -> None:
    assert engine.classify(["archier", "perth", "wip", "final"], 1).folder_path == "/Team/Perth/Final"
    assert engine.classify(["archier", "perth", "complete"], 1).folder_path == "/Team/Perth/Final"
    assert engine.classify(["archier", "perth", "wip"], 1).folder_path == "/Team/Perth/WIP"


def test_unknown_project_files_into_team_root(engine: ClassificationEngine) -> None:
    result = engine.classify(["archier", "final"], 9)

    assert result.folder_path == "/Team"
    assert result.filename == "0009-project-general"


def test_material_vocabulary_tag_without_marker(engine: ClassificationEngine) -> None:
    result = engine.classify(["kitchens", "concrete"], 4)

    assert result.folder_path == "/Materials/Concrete"
    assert result.filename == "0004-material-concrete"


def test_marker_without_vocabulary_tag_is_general(engine: ClassificationEngine) -> None:
    result = engine.classify(["texture", "kitchens"], 4)

    assert result.folder_path == "/Materials/General"
    assert result.filename == "0004-material-general"


def test_empty_tags_classify_as_reference_general(engine: ClassificationEngine) -> None:
    result = engine.classify([], 1)

    assert result.folder_path == "/Reference/General"
    assert result.filename == "0001-reference-general"


def test_input_tags_are_normalized_and_blanks_ignored(engine: ClassificationEngine) -> None:
    result = engine.classify(["  ARCHIER", "", "Yandoit ", "   "], 7)

    assert result.folder_path == "/Team/Yandoit"


def test_base_folder_and_multiword_entries() -> None:
    cfg = ClassificationConfig(base_folder="/Photos/", reference_vocabulary=["wet areas"])
    engine = ClassificationEngine(cfg)

    result = engine.classify(["Wet  Areas"], 10000)

    assert result.folder_path == "/Photos/Reference/Wet Areas"
    assert result.filename == "10000-reference-wet-areas"


def test_negative_sequence_rejected(engine: ClassificationEngine) -> None:
    with pytest.raises(ValueError):
        engine.classify(["tile"], -1)


def test_with_extension(engine: ClassificationEngine) -> None:
    result = engine.classify(["texture", "tile"], 12)

    assert result.with_extension("JPG") == "0012-material-tile.jpg"
    assert result.with_extension(".png") == "0012-material-tile.png"
    assert result.with_extension("") == "0012-material-tile"


def test_all_folder_paths_cover_every_classification(engine: ClassificationEngine) -> None:
    paths = set(engine.all_folder_paths())

    for tags in (
        ["archier", "yandoit", "final"],
        ["archier", "hobart", "wip"],
        ["archier"],
        ["texture"],
        ["wood"],
        ["lighting"],
        [],
    ):
        assert engine.classify(tags, 1).folder_path in paths


def test_display_name_and_slug() -> None:
    assert display_name("wet areas") == "Wet Areas"
    assert filename_slug("wet areas/2") == "wet-areas-2"
    assert filename_slug("日本") == ""


class _Tags:
    def __init__(self, tags: list[str]) -> None:
        self._tags = tags

    def get_tags(self, image_id: int) -> list[str]:
        return self._tags

    def get_region_tags(self, image_id: int) -> list:
        return []


def test_classify_image_draws_one_sequence_per_call(engine: ClassificationEngine) -> None:
    counter = InMemorySequenceCounter(start=7)
    source = _Tags(["archier", "yandoit", "final"])

    first = classify_image(engine, source, 1, counter)
    second = classify_image(engine, source, 1, counter)

    assert first.filename == "0007-project-yandoit"
    assert second.filename == "0008-project-yandoit"


def test_classify_image_propagates_counter_failure(engine: ClassificationEngine) -> None:
    counter = InMemorySequenceCounter(start=1, maximum=0)

    with pytest.raises(SequenceUnavailableError):
        classify_image(engine, _Tags(["tile"]), 1, counter)
