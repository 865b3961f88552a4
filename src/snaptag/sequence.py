"""Monotonic sequence counters backing filename numbering."""

from __future__ import annotations

import re
import time
from collections.abc import Iterable
from pathlib import Path
from threading import Lock
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from utils.logging import get_logger
from snaptag.config import SequenceConfig
from snaptag.db import SequenceCounterRecord, open_primary_session
from snaptag.errors import SequenceUnavailableError

LOGGER = get_logger(__name__)

# Current names are "0007-...", older exports used an "A0007-..." prefix.
_SEQUENCED_FILENAME_RE = re.compile(r"^A?(\d{4,5})-")


class SequenceCounter(Protocol):
    def next_sequence(self) -> int: ...


def highest_sequence_in(filenames: Iterable[str]) -> int:
    """Largest sequence number embedded in ``filenames``, or 0 if none carry one."""

    highest = 0
    for name in filenames:
        match = _SEQUENCED_FILENAME_RE.match(Path(name).name)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


class InMemorySequenceCounter:
    """Process-local counter; values are unique within one process only."""

    def __init__(self, start: int = 1, maximum: int | None = None) -> None:
        self._next = start
        self._maximum = maximum
        self._lock = Lock()

    def next_sequence(self) -> int:
        with self._lock:
            value = self._next
            if self._maximum is not None and value > self._maximum:
                raise SequenceUnavailableError(f"sequence exhausted at {self._maximum}")
            self._next += 1
            return value


class SqlSequenceCounter:
    """Durable counter stored as one row of ``sequence_counter``.

    Each call runs in its own transaction that increments first and reads
    second, so the database write lock orders concurrent callers and no value
    is ever handed out twice. Any database failure surfaces as
    :class:`SequenceUnavailableError`; callers must not fall back to a guess.
    """

    def __init__(self, target: str | Path, config: SequenceConfig | None = None) -> None:
        cfg = config or SequenceConfig()
        self._target = target
        self.name = cfg.counter_name
        self._start = cfg.start
        self._maximum = cfg.maximum

    def next_sequence(self) -> int:
        now = time.time()
        try:
            with open_primary_session(self._target) as session, session.begin():
                result = session.execute(
                    update(SequenceCounterRecord)
                    .where(SequenceCounterRecord.name == self.name)
                    .values(value=SequenceCounterRecord.value + 1, updated_at=now)
                )
                if result.rowcount == 0:
                    session.add(SequenceCounterRecord(name=self.name, value=self._start, updated_at=now))
                    session.flush()

                value = session.execute(
                    select(SequenceCounterRecord.value).where(SequenceCounterRecord.name == self.name)
                ).scalar_one()

                if value > self._maximum:
                    raise SequenceUnavailableError(f"sequence {self.name!r} exhausted at {self._maximum}")
        except SQLAlchemyError as exc:
            LOGGER.error("sequence_unavailable", extra={"counter": self.name, "error": str(exc)})
            raise SequenceUnavailableError(f"sequence {self.name!r} unavailable: {exc}") from exc

        LOGGER.debug("sequence_issued", extra={"counter": self.name, "sequence": value})
        return value

    def advance_to(self, value: int) -> None:
        """Make sure the next issued value is greater than ``value``.

        Used when adopting a folder of files numbered before the counter
        existed; never moves the counter backwards.
        """

        now = time.time()
        try:
            with open_primary_session(self._target) as session, session.begin():
                row = session.execute(
                    select(SequenceCounterRecord).where(SequenceCounterRecord.name == self.name).with_for_update()
                ).scalar_one_or_none()
                if row is None:
                    session.add(
                        SequenceCounterRecord(name=self.name, value=max(value, self._start - 1), updated_at=now)
                    )
                elif row.value < value:
                    row.value = value
                    row.updated_at = now
        except SQLAlchemyError as exc:
            raise SequenceUnavailableError(f"sequence {self.name!r} unavailable: {exc}") from exc

        LOGGER.info("sequence_advanced", extra={"counter": self.name, "value": value})


__all__ = ["SequenceCounter", "InMemorySequenceCounter", "SqlSequenceCounter", "highest_sequence_in"]
