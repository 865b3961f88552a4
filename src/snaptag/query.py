"""In-memory tag and free-text matching over image records."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from utils.logging import get_logger
from snaptag.errors import EmptyTagError
from snaptag.tags import RegionTag, normalize_tag, normalize_tags

LOGGER = get_logger(__name__)

_MIN_TEXT_WORD = 3
_MIN_TAG_WORD = 2


@dataclass
class ImageRecord:
    """The searchable view of one stored image."""

    image_id: int
    tags: list[str] = field(default_factory=list)
    region_tags: list[RegionTag] = field(default_factory=list)
    filename: str = ""
    title: str = ""
    description: str = ""
    original_name: str = ""
    file_hash: str | None = None

    def combined_tags(self) -> set[str]:
        """General tags plus region tag names, all normalized."""

        combined = set(normalize_tags(self.tags))
        combined.update(region.name for region in self.region_tags)
        return combined


class QueryMatcher:
    """AND-match a list of required tags against an image's tag set."""

    @staticmethod
    def prepare(required: Iterable[str]) -> tuple[str, ...]:
        """Normalize a required-tag list.

        Unlike tag ingestion, a blank entry here is an error: dropping it would
        widen the query without the caller noticing.

        Raises:
            EmptyTagError: if any entry is blank.
        """

        return tuple(normalize_tags(required, discard_empty=False))

    def matches(self, required: Iterable[str], image_tags: Iterable[str]) -> bool:
        """Return True iff every required tag is present in ``image_tags``."""

        wanted = self.prepare(required)
        if not wanted:
            return True
        available = set(normalize_tags(image_tags))
        return available.issuperset(wanted)

    def matches_record(self, required: Iterable[str], record: ImageRecord) -> bool:
        return self.matches(required, record.combined_tags())

    def filter(self, required: Iterable[str], records: Iterable[ImageRecord]) -> Iterator[ImageRecord]:
        """Yield the records carrying all of ``required`` as general or region tags."""

        wanted = self.prepare(required)
        for record in records:
            if record.combined_tags().issuperset(wanted):
                yield record


def _text_terms(term: str, min_length: int) -> list[str]:
    phrase = " ".join(term.lower().split())
    words = [word for word in phrase.split(" ") if len(word) >= min_length]
    return [phrase, *words]


def text_matches(term: str | None, record: ImageRecord) -> bool:
    """Case-insensitive substring search over descriptive fields and tag names.

    The whole phrase, or any of its words of three or more characters, may
    appear in the filename, title, description or original name. Tag names
    (general and region) match on the phrase or any word of two or more
    characters. A blank term matches every record.
    """

    if term is None or not term.strip():
        return True

    fields = [record.filename, record.title, record.description, record.original_name]
    haystacks = [value.lower() for value in fields if value]
    for needle in _text_terms(term, _MIN_TEXT_WORD):
        if any(needle in haystack for haystack in haystacks):
            return True

    tag_names = record.combined_tags()
    for needle in _text_terms(term, _MIN_TAG_WORD):
        if any(needle in tag for tag in tag_names):
            return True

    return False


def search(
    records: Iterable[ImageRecord],
    required_tags: Sequence[str] = (),
    term: str | None = None,
    matcher: QueryMatcher | None = None,
) -> list[ImageRecord]:
    """Records matching all ``required_tags`` and the free-text ``term``."""

    active = matcher or QueryMatcher()
    results = [record for record in active.filter(required_tags, records) if text_matches(term, record)]
    LOGGER.debug(
        "search_complete",
        extra={"required_tags": list(required_tags), "term": term or "", "result_count": len(results)},
    )
    return results


def parse_tag_filter(raw: str) -> list[str]:
    """Split a comma-separated tag filter, rejecting blank entries between commas."""

    if not raw.strip():
        return []
    parts = raw.split(",")
    for part in parts:
        if not part.strip():
            raise EmptyTagError(part)
    return [normalize_tag(part) for part in parts]


__all__ = ["ImageRecord", "QueryMatcher", "text_matches", "search", "parse_tag_filter"]
