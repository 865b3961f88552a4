"""Single-linkage grouping of perceptual fingerprints into duplicate groups."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from threading import Lock

from utils.logging import get_logger
from snaptag.errors import IncompatibleFingerprintError
from snaptag.hasher import Fingerprint, hamming_distance

LOGGER = get_logger(__name__)


@dataclass
class DuplicateGroup:
    """Images linked by chains of fingerprints within the threshold.

    The first member is canonical (the copy to keep) and its fingerprint is the
    group's representative. ``distances`` are measured to the representative,
    so a member reached through another member may sit beyond the threshold.
    """

    representative: Fingerprint
    members: list[int] = field(default_factory=list)
    distances: dict[int, int] = field(default_factory=dict)
    fingerprints: dict[int, Fingerprint] = field(default_factory=dict, repr=False)

    def first_member_within(self, fingerprint: Fingerprint, threshold: int) -> int | None:
        """First member, in joining order, within ``threshold`` of ``fingerprint``."""

        for member in self.members:
            if hamming_distance(self.fingerprints[member], fingerprint) <= threshold:
                return member
        return None

    @property
    def canonical_id(self) -> int:
        return self.members[0]

    @property
    def duplicate_ids(self) -> list[int]:
        return self.members[1:]

    def __len__(self) -> int:
        return len(self.members)


class DuplicateIndex:
    """Incrementally built set of duplicate groups.

    Each :meth:`add` compares the new fingerprint with every member of every
    open group, groups in creation order and members in joining order, and
    joins the group of the first member within the threshold, or opens a new
    group. A new image only needs to be close to one member, so a group can
    hold images far from its representative. Writers are serialized by one
    lock, so fingerprints may be produced concurrently and inserted as they
    arrive; the resulting groups then depend on arrival order.
    """

    def __init__(self, threshold: int) -> None:
        if threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold}")
        self.threshold = threshold
        self._groups: list[DuplicateGroup] = []
        self._seen: set[int] = set()
        self._length: int | None = None
        self._lock = Lock()

    def add(self, image_id: int, fingerprint: Fingerprint) -> DuplicateGroup:
        """Insert one image and return the group it ended up in."""

        with self._lock:
            if image_id in self._seen:
                raise ValueError(f"image {image_id} was already added")
            if self._length is None:
                self._length = fingerprint.length
            elif fingerprint.length != self._length:
                raise IncompatibleFingerprintError(self._length, fingerprint.length)
            self._seen.add(image_id)

            for group in self._groups:
                if group.first_member_within(fingerprint, self.threshold) is None:
                    continue
                group.members.append(image_id)
                group.distances[image_id] = hamming_distance(group.representative, fingerprint)
                group.fingerprints[image_id] = fingerprint
                return group

            group = DuplicateGroup(
                representative=fingerprint,
                members=[image_id],
                distances={image_id: 0},
                fingerprints={image_id: fingerprint},
            )
            self._groups.append(group)
            return group

    def groups(self, include_singletons: bool = False) -> list[DuplicateGroup]:
        """Groups in creation order; singletons are omitted unless requested."""

        with self._lock:
            if include_singletons:
                return list(self._groups)
            return [group for group in self._groups if len(group) >= 2]

    def __len__(self) -> int:
        return len(self._seen)


class DuplicateClusterer:
    """Partition an ordered fingerprint list into duplicate groups."""

    def __init__(self, threshold: int) -> None:
        if threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold}")
        self.threshold = threshold

    def cluster(self, fingerprints: Iterable[tuple[int, Fingerprint]]) -> list[DuplicateGroup]:
        """Group ``(image_id, fingerprint)`` pairs, processed in the given order.

        Cost is one comparison per earlier image, which suits catalogs in the
        low thousands. Only groups with two or more members are returned.
        """

        index = DuplicateIndex(self.threshold)
        for image_id, fingerprint in fingerprints:
            index.add(image_id, fingerprint)

        groups = index.groups()
        LOGGER.info(
            "duplicate_cluster_complete",
            extra={
                "images": len(index),
                "threshold": self.threshold,
                "groups": len(groups),
                "duplicates": sum(len(group) - 1 for group in groups),
            },
        )
        return groups


def cluster_fingerprints(fingerprints: Iterable[tuple[int, Fingerprint]], threshold: int) -> list[DuplicateGroup]:
    """Functional form of :meth:`DuplicateClusterer.cluster`."""

    return DuplicateClusterer(threshold).cluster(fingerprints)


__all__ = ["DuplicateGroup", "DuplicateIndex", "DuplicateClusterer", "cluster_fingerprints"]
