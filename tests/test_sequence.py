"""Tests for in-memory and SQL-backed sequence counters."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from snaptag.config import SequenceConfig
from snaptag.errors import SequenceUnavailableError
from snaptag.sequence import InMemorySequenceCounter, SqlSequenceCounter, highest_sequence_in


def test_in_memory_counter_counts_up_and_exhausts() -> None:
    counter = InMemorySequenceCounter(start=9998, maximum=9999)

    assert counter.next_sequence() == 9998
    assert counter.next_sequence() == 9999
    with pytest.raises(SequenceUnavailableError):
        counter.next_sequence()


def test_sql_counter_starts_at_configured_value(tmp_path: Path) -> None:
    counter = SqlSequenceCounter(tmp_path / "seq.db", SequenceConfig(start=5))

    assert [counter.next_sequence() for _ in range(3)] == [5, 6, 7]


def test_sql_counter_is_durable_across_instances(tmp_path: Path) -> None:
    db_path = tmp_path / "seq.db"
    SqlSequenceCounter(db_path).next_sequence()
    SqlSequenceCounter(db_path).next_sequence()

    assert SqlSequenceCounter(db_path).next_sequence() == 3


def test_sql_counters_are_independent_by_name(tmp_path: Path) -> None:
    db_path = tmp_path / "seq.db"
    filenames = SqlSequenceCounter(db_path, SequenceConfig(counter_name="filename"))
    exports = SqlSequenceCounter(db_path, SequenceConfig(counter_name="export"))

    filenames.next_sequence()
    filenames.next_sequence()

    assert exports.next_sequence() == 1


def test_sql_counter_raises_when_exhausted(tmp_path: Path) -> None:
    counter = SqlSequenceCounter(tmp_path / "seq.db", SequenceConfig(maximum=2))
    counter.next_sequence()
    counter.next_sequence()

    with pytest.raises(SequenceUnavailableError):
        counter.next_sequence()


def test_sql_counter_never_hands_out_a_value_twice(tmp_path: Path) -> None:
    counter = SqlSequenceCounter(tmp_path / "seq.db", SequenceConfig(maximum=100000))
    counter.next_sequence()

    with ThreadPoolExecutor(max_workers=8) as executor:
        values = list(executor.map(lambda _: counter.next_sequence(), range(80)))

    assert len(set(values)) == 80
    assert sorted(values) == list(range(2, 82))


def test_advance_to_moves_forward_only(tmp_path: Path) -> None:
    counter = SqlSequenceCounter(tmp_path / "seq.db")
    counter.advance_to(41)
    assert counter.next_sequence() == 42

    counter.advance_to(10)
    assert counter.next_sequence() == 43


def test_highest_sequence_in_filenames() -> None:
    names = [
        "/Team/Yandoit/Final/0007-project-yandoit.jpg",
        "A0123-material-tile.png",
        "IMG_9999.JPG",
        "10001-reference-general.jpg",
    ]

    assert highest_sequence_in(names) == 10001
    assert highest_sequence_in([]) == 0
