"""Tag-driven folder and filename classification.

Every image lands in exactly one of three top-level categories, tested in a
fixed priority order:

1. project: the team tag is present; ``{base}/Team/{Project}/{Final|WIP}``
2. material: the material marker or any material tag is present;
   ``{base}/Materials/{Material|General}``
3. reference: everything else; ``{base}/Reference/{Category|General}``

The order is part of the storage contract: changing it moves existing files.
Projects are resolved in the order of the configured identifier list, while
materials and reference categories take the first *supplied* tag that appears
in their vocabulary, so ``["tile", "stone"]`` and ``["stone", "tile"]`` file
into different folders.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from utils.logging import get_logger
from snaptag.config import ClassificationConfig
from snaptag.tags import RegionTag, normalize_tags

LOGGER = get_logger(__name__)

CATEGORY_PROJECT = "project"
CATEGORY_MATERIAL = "material"
CATEGORY_REFERENCE = "reference"

FINAL_FOLDER = "Final"
WIP_FOLDER = "WIP"

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9]+")


def display_name(tag: str) -> str:
    """Proper-case a tag for use as a folder name (``"wet areas"`` -> ``"Wet Areas"``)."""

    return " ".join(word[:1].upper() + word[1:].lower() for word in tag.split(" "))


def filename_slug(tag: str) -> str:
    """Reduce a tag to ``[a-z0-9-]`` for use inside a filename."""

    return _SLUG_INVALID_RE.sub("-", tag.lower()).strip("-")


@dataclass(frozen=True)
class ClassificationResult:
    """Where an image is stored and what it is called, without extension."""

    folder_path: str
    filename: str
    category: str
    subcategory: str

    def with_extension(self, extension: str) -> str:
        """Return the filename with ``extension`` appended (leading dot optional)."""

        ext = extension.strip().lower()
        if not ext:
            return self.filename
        if not ext.startswith("."):
            ext = "." + ext
        return self.filename + ext


@dataclass(frozen=True)
class CategoryVocabulary:
    """One category's folder root, filename key, and recognised tags.

    Folder names and filename parts are both derived from ``entries`` so the
    two can never disagree about a subcategory.
    """

    key: str
    folder: str
    entries: tuple[str, ...]
    general: str

    def first_in_tag_order(self, tags: Sequence[str]) -> str | None:
        members = set(self.entries)
        for tag in tags:
            if tag in members:
                return tag
        return None

    def first_in_vocabulary_order(self, tag_set: set[str]) -> str | None:
        for entry in self.entries:
            if entry in tag_set:
                return entry
        return None

    def folder_segment(self, entry: str | None) -> str:
        return display_name(entry if entry is not None else self.general)

    def filename_part(self, entry: str | None) -> str:
        # Tags made only of non-ASCII characters slug to nothing.
        return filename_slug(entry or "") or filename_slug(self.general)


class SequenceSource(Protocol):
    def next_sequence(self) -> int: ...


class TagSource(Protocol):
    def get_tags(self, image_id: int) -> Sequence[str]: ...

    def get_region_tags(self, image_id: int) -> Sequence[RegionTag]: ...


class ClassificationEngine:
    """Map a tag list and a sequence number to a :class:`ClassificationResult`.

    The engine is stateless; the configuration is captured at construction and
    never re-read, so two calls with the same inputs always agree.
    """

    def __init__(self, config: ClassificationConfig | None = None) -> None:
        cfg = config or ClassificationConfig()
        self._base = cfg.base_folder.rstrip("/")
        self._team_tag = cfg.team_tag
        self._material_marker = cfg.material_marker
        self._final_tags = frozenset(cfg.final_tags)
        self._wip_tags = frozenset(cfg.wip_tags)
        self.projects = CategoryVocabulary(
            key=CATEGORY_PROJECT,
            folder=cfg.team_folder,
            entries=tuple(cfg.project_identifiers),
            general=cfg.general_name,
        )
        self.materials = CategoryVocabulary(
            key=CATEGORY_MATERIAL,
            folder=cfg.materials_folder,
            entries=tuple(cfg.material_vocabulary),
            general=cfg.general_name,
        )
        self.references = CategoryVocabulary(
            key=CATEGORY_REFERENCE,
            folder=cfg.reference_folder,
            entries=tuple(cfg.reference_vocabulary),
            general=cfg.general_name,
        )

    def classify(self, tags: Iterable[str], sequence: int) -> ClassificationResult:
        """Classify ``tags`` (in the order supplied) using ``sequence`` for the filename.

        Blank tags are ignored. An empty tag list classifies as
        ``Reference/General``.
        """

        if sequence < 0:
            raise ValueError(f"sequence must be non-negative, got {sequence}")

        ordered = normalize_tags(tags)
        tag_set = set(ordered)

        if self._team_tag in tag_set:
            result = self._classify_project(tag_set, sequence)
        elif self._material_marker in tag_set or self.materials.first_in_tag_order(ordered) is not None:
            result = self._classify_in_tag_order(self.materials, ordered, sequence)
        else:
            result = self._classify_in_tag_order(self.references, ordered, sequence)

        LOGGER.debug(
            "classification_complete",
            extra={
                "category": result.category,
                "subcategory": result.subcategory,
                "folder_path": result.folder_path,
                "image_filename": result.filename,
            },
        )
        return result

    def all_folder_paths(self) -> list[str]:
        """Every folder :meth:`classify` can produce, parents before children."""

        paths: list[str] = []
        team_root = self._join(self.projects.folder)
        paths.append(team_root)
        for project in self.projects.entries:
            project_root = self._join(self.projects.folder, display_name(project))
            paths.extend([project_root, f"{project_root}/{FINAL_FOLDER}", f"{project_root}/{WIP_FOLDER}"])

        for vocabulary in (self.materials, self.references):
            paths.append(self._join(vocabulary.folder))
            paths.append(self._join(vocabulary.folder, vocabulary.folder_segment(None)))
            for entry in vocabulary.entries:
                paths.append(self._join(vocabulary.folder, vocabulary.folder_segment(entry)))

        return paths

    def _classify_project(self, tag_set: set[str], sequence: int) -> ClassificationResult:
        project = self.projects.first_in_vocabulary_order(tag_set)
        if project is None:
            folder = self._join(self.projects.folder)
        elif tag_set & self._final_tags:
            folder = self._join(self.projects.folder, display_name(project), FINAL_FOLDER)
        elif tag_set & self._wip_tags:
            folder = self._join(self.projects.folder, display_name(project), WIP_FOLDER)
        else:
            folder = self._join(self.projects.folder, display_name(project))

        return ClassificationResult(
            folder_path=folder,
            filename=self._filename(sequence, self.projects, project),
            category=CATEGORY_PROJECT,
            subcategory=project if project is not None else self.projects.general,
        )

    def _classify_in_tag_order(
        self, vocabulary: CategoryVocabulary, ordered: Sequence[str], sequence: int
    ) -> ClassificationResult:
        entry = vocabulary.first_in_tag_order(ordered)
        return ClassificationResult(
            folder_path=self._join(vocabulary.folder, vocabulary.folder_segment(entry)),
            filename=self._filename(sequence, vocabulary, entry),
            category=vocabulary.key,
            subcategory=entry if entry is not None else vocabulary.general,
        )

    @staticmethod
    def _filename(sequence: int, vocabulary: CategoryVocabulary, entry: str | None) -> str:
        return f"{sequence:04d}-{vocabulary.key}-{vocabulary.filename_part(entry)}"

    def _join(self, *parts: str) -> str:
        return "/".join([self._base, *parts])


def classify_image(
    engine: ClassificationEngine,
    tag_source: TagSource,
    image_id: int,
    counter: SequenceSource,
) -> ClassificationResult:
    """Classify a stored image, drawing exactly one value from ``counter``.

    Counter failures propagate unchanged; a sequence value is never guessed.
    """

    tags = tag_source.get_tags(image_id)
    sequence = counter.next_sequence()
    result = engine.classify(tags, sequence)
    LOGGER.info(
        "image_classified",
        extra={"image_id": image_id, "sequence": sequence, "folder_path": result.folder_path},
    )
    return result


__all__ = [
    "CATEGORY_PROJECT",
    "CATEGORY_MATERIAL",
    "CATEGORY_REFERENCE",
    "ClassificationEngine",
    "ClassificationResult",
    "CategoryVocabulary",
    "classify_image",
    "display_name",
    "filename_slug",
]
