"""Tag normalization, region tags, and the administrative tag cleanup plan."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from utils.logging import get_logger
from snaptag.errors import EmptyTagError, InvalidRegionError

LOGGER = get_logger(__name__)

_COPY_SUFFIX_RE = re.compile(r"\s\(\d+\)$")


def normalize_tag(tag: str) -> str:
    """Return the canonical form of ``tag``.

    Lowercases, trims Unicode whitespace at both ends and collapses interior
    whitespace runs to a single space, so ``" Wet\tAreas "`` and
    ``"wet areas"`` are the same tag.

    Raises:
        EmptyTagError: if nothing is left after normalization.
    """

    normalized = " ".join(str(tag).lower().split())
    if not normalized:
        raise EmptyTagError(tag)
    return normalized


def tags_equal(left: str, right: str) -> bool:
    """Compare two tags by their normalized forms."""

    return normalize_tag(left) == normalize_tag(right)


def normalize_tags(tags: Iterable[str], *, discard_empty: bool = True) -> list[str]:
    """Normalize ``tags`` preserving the caller's order and dropping repeats.

    Blank entries are skipped when ``discard_empty`` is true; otherwise the
    :class:`EmptyTagError` propagates to the caller.
    """

    result: list[str] = []
    seen: set[str] = set()
    for raw in tags:
        try:
            tag = normalize_tag(raw)
        except EmptyTagError:
            if not discard_empty:
                raise
            LOGGER.debug("tag_discarded_empty", extra={"raw": raw})
            continue
        if tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


class TagNormalizer:
    """Injectable wrapper around :func:`normalize_tag` and friends."""

    def normalize(self, tag: str) -> str:
        return normalize_tag(tag)

    def normalize_all(self, tags: Iterable[str], *, discard_empty: bool = True) -> list[str]:
        return normalize_tags(tags, discard_empty=discard_empty)

    def equal(self, left: str, right: str) -> bool:
        return tags_equal(left, right)


@dataclass(frozen=True)
class RegionTag:
    """A tag anchored to a rectangle given in fractions of the image size."""

    name: str
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", normalize_tag(self.name))
        for axis, origin, extent in (("x", self.x, self.width), ("y", self.y, self.height)):
            if extent < 0:
                raise InvalidRegionError(f"region {self.name!r} has negative extent on {axis}")
            if origin < 0 or origin + extent > 1:
                raise InvalidRegionError(
                    f"region {self.name!r} leaves the image on {axis}: origin={origin}, extent={extent}"
                )


def split_compound_tag(name: str) -> list[str]:
    """Split a comma-joined tag such as ``"brick, timber"`` into its parts."""

    return normalize_tags(name.split(","))


def strip_copy_suffix(name: str) -> str:
    """Drop a trailing copy counter, turning ``"kitchen (2)"`` into ``"kitchen"``."""

    return _COPY_SUFFIX_RE.sub("", name)


@dataclass
class TagCleanupPlan:
    """Changes computed by the administrative normalization pass.

    ``splits`` maps a stored name to the tags that replace it. ``merges`` maps a
    stored name to the existing canonical tag it is folded into.
    """

    splits: dict[str, list[str]] = field(default_factory=dict)
    merges: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.splits and not self.merges


def plan_tag_cleanup(stored_names: Sequence[str]) -> TagCleanupPlan:
    """Work out how to repair tags that predate strict normalization.

    Three kinds of legacy rows are handled: comma-joined tags are split into
    their parts, ``"name (N)"`` copies are merged into ``"name"`` when that tag
    exists, and names that are not in normalized form are merged into their
    normalized spelling. A copy without an original is left alone.
    """

    plan = TagCleanupPlan()
    canonical: set[str] = set()
    for name in stored_names:
        if "," in name or _COPY_SUFFIX_RE.search(name):
            continue
        try:
            canonical.add(normalize_tag(name))
        except EmptyTagError:
            continue

    for name in stored_names:
        if "," in name:
            parts = split_compound_tag(name)
            if parts:
                plan.splits[name] = parts
            continue

        if _COPY_SUFFIX_RE.search(name):
            try:
                base = normalize_tag(strip_copy_suffix(name))
            except EmptyTagError:
                continue
            if base in canonical:
                plan.merges[name] = base
            else:
                LOGGER.info("tag_cleanup_copy_without_original", extra={"tag": name})
            continue

        try:
            normalized = normalize_tag(name)
        except EmptyTagError:
            continue
        if normalized != name:
            plan.merges[name] = normalized

    return plan


__all__ = [
    "normalize_tag",
    "normalize_tags",
    "tags_equal",
    "TagNormalizer",
    "RegionTag",
    "split_compound_tag",
    "strip_copy_suffix",
    "TagCleanupPlan",
    "plan_tag_cleanup",
]
