"""Tests for tag normalization, region tags and the cleanup plan."""

from __future__ import annotations

import pytest

from snaptag.errors import EmptyTagError, InvalidRegionError
from snaptag.tags import (
    RegionTag,
    TagNormalizer,
    normalize_tag,
    normalize_tags,
    plan_tag_cleanup,
    split_compound_tag,
    strip_copy_suffix,
    tags_equal,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Kitchen", "kitchen"),
        ("  Wet\tAreas  ", "wet areas"),
        (" Café Bar\n", "café bar"),
        ("ARCHIER", "archier"),
        ("a   b    c", "a b c"),
    ],
)
def test_normalize_tag_trims_lowercases_and_collapses(raw: str, expected: str) -> None:
    assert normalize_tag(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "\t\n", "  "])
def test_normalize_tag_rejects_blank(raw: str) -> None:
    with pytest.raises(EmptyTagError) as excinfo:
        normalize_tag(raw)

    assert excinfo.value.raw == raw
    assert isinstance(excinfo.value, ValueError)


@pytest.mark.parametrize("raw", ["Kitchen", "  Wet  Areas ", "MiXeD\tCase  TAG", "x", "Ünïcode  Tag"])
def test_normalize_tag_is_idempotent(raw: str) -> None:
    once = normalize_tag(raw)

    assert normalize_tag(once) == once


def test_tags_equal_compares_normalized_forms() -> None:
    assert tags_equal("Wet Areas", " wet   areas")
    assert not tags_equal("wet areas", "wetareas")


def test_normalize_tags_keeps_order_drops_blanks_and_repeats() -> None:
    assert normalize_tags(["Tile", " ", "stone", "TILE", "Brick"]) == ["tile", "stone", "brick"]


def test_normalize_tags_raises_when_blanks_are_not_discarded() -> None:
    with pytest.raises(EmptyTagError):
        normalize_tags(["tile", "  "], discard_empty=False)


def test_tag_normalizer_delegates() -> None:
    normalizer = TagNormalizer()

    assert normalizer.normalize(" A  B ") == "a b"
    assert normalizer.normalize_all(["B", "b", "c"]) == ["b", "c"]
    assert normalizer.equal("X", "x")


def test_region_tag_normalizes_name_and_accepts_full_frame() -> None:
    region = RegionTag(name="  Door  Handle", x=0.0, y=0.0, width=1.0, height=1.0)

    assert region.name == "door handle"


@pytest.mark.parametrize(
    ("x", "y", "width", "height"),
    [
        (-0.1, 0.0, 0.5, 0.5),
        (0.0, -0.1, 0.5, 0.5),
        (0.6, 0.0, 0.5, 0.5),
        (0.0, 0.7, 0.5, 0.4),
        (0.2, 0.2, -0.1, 0.3),
    ],
)
def test_region_tag_rejects_boxes_outside_unit_square(x: float, y: float, width: float, height: float) -> None:
    with pytest.raises(InvalidRegionError):
        RegionTag(name="door", x=x, y=y, width=width, height=height)


def test_region_tag_rejects_blank_name() -> None:
    with pytest.raises(EmptyTagError):
        RegionTag(name="  ", x=0.1, y=0.1, width=0.1, height=0.1)


def test_split_and_strip_helpers() -> None:
    assert split_compound_tag("Brick, Timber ,, steel") == ["brick", "timber", "steel"]
    assert strip_copy_suffix("kitchen (2)") == "kitchen"
    assert strip_copy_suffix("kitchen(2)") == "kitchen(2)"


def test_plan_tag_cleanup_splits_merges_and_skips_orphan_copies() -> None:
    plan = plan_tag_cleanup(["brick, timber", "Kitchen", "kitchen (2)", "stairs (3)", "tile"])

    assert plan.splits == {"brick, timber": ["brick", "timber"]}
    assert plan.merges == {"Kitchen": "kitchen", "kitchen (2)": "kitchen"}
    assert not plan.is_empty


def test_plan_tag_cleanup_is_empty_for_clean_store() -> None:
    assert plan_tag_cleanup(["tile", "wet areas", "yandoit"]).is_empty
