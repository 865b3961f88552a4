"""Tests for AND tag matching and free-text search over image records."""

from __future__ import annotations

import pytest

from snaptag.errors import EmptyTagError
from snaptag.query import ImageRecord, QueryMatcher, parse_tag_filter, search, text_matches
from snaptag.tags import RegionTag


def test_matches_is_and_over_required_tags() -> None:
    matcher = QueryMatcher()

    assert not matcher.matches(["a", "b"], {"a"})
    assert matcher.matches(["a", "b"], {"a", "b", "c"})
    assert matcher.matches([], {"anything"})
    assert matcher.matches([], set())


def test_matches_normalizes_both_sides() -> None:
    matcher = QueryMatcher()

    assert matcher.matches([" Wet  Areas", "TILE"], {"wet areas", "Tile "})


def test_matches_is_exact_not_substring() -> None:
    assert not QueryMatcher().matches(["kitchen"], {"kitchens"})


def test_blank_required_tag_is_rejected() -> None:
    matcher = QueryMatcher()

    with pytest.raises(EmptyTagError):
        matcher.matches(["tile", "  "], {"tile"})
    with pytest.raises(EmptyTagError):
        list(matcher.filter([""], [ImageRecord(image_id=1, tags=["tile"])]))


def test_region_tags_count_as_tags() -> None:
    record = ImageRecord(
        image_id=1,
        tags=["kitchens"],
        region_tags=[RegionTag(name="Tap", x=0.1, y=0.1, width=0.2, height=0.2)],
    )

    assert QueryMatcher().matches_record(["kitchens", "tap"], record)
    assert not QueryMatcher().matches_record(["kitchens", "sink"], record)


def test_text_matches_fields_and_tags() -> None:
    record = ImageRecord(
        image_id=1,
        tags=["wet areas"],
        filename="0007-project-yandoit.jpg",
        title="North elevation",
        original_name="IMG_2231.JPG",
    )

    assert text_matches("Yandoit", record)
    assert text_matches("north  ELEVATION", record)
    assert text_matches("img_2231", record)
    assert text_matches("wet", record)
    assert text_matches("", record)
    assert text_matches(None, record)
    assert not text_matches("south", record)


def test_text_matches_ignores_short_words_for_fields() -> None:
    record = ImageRecord(image_id=1, title="A study of north light")

    assert not text_matches("xx of", record)


def test_search_combines_tags_and_term() -> None:
    records = [
        ImageRecord(image_id=1, tags=["tile", "kitchens"], title="Terrazzo"),
        ImageRecord(image_id=2, tags=["tile"], title="Terrazzo"),
        ImageRecord(image_id=3, tags=["tile", "kitchens"], title="Marble"),
    ]

    assert [r.image_id for r in search(records, ["kitchens", "tile"])] == [1, 3]
    assert [r.image_id for r in search(records, ["kitchens"], term="terrazzo")] == [1]
    assert [r.image_id for r in search(records)] == [1, 2, 3]


def test_parse_tag_filter() -> None:
    assert parse_tag_filter("Tile, Wet Areas") == ["tile", "wet areas"]
    assert parse_tag_filter("   ") == []
    with pytest.raises(EmptyTagError):
        parse_tag_filter("tile,,stone")
