"""Configuration loader and typed settings for the SnapTag engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from snaptag.errors import EmptyTagError
from snaptag.tags import normalize_tag, normalize_tags


@dataclass
class ClassificationConfig:
    """Vocabularies and folder names driving :class:`ClassificationEngine`.

    All vocabulary entries are stored in normalized form; the loader normalizes
    whatever the YAML file contains.
    """

    base_folder: str = ""
    team_tag: str = "archier"
    team_folder: str = "Team"
    materials_folder: str = "Materials"
    reference_folder: str = "Reference"
    general_name: str = "general"
    project_identifiers: list[str] = field(
        default_factory=lambda: [
            "yandoit",
            "ballarat",
            "melbourne",
            "brunswick",
            "geelong",
            "sydney",
            "adelaide",
            "perth",
            "canberra",
            "hobart",
            "bendigo",
            "shepparton",
            "warrnambool",
            "mildura",
        ]
    )
    final_tags: list[str] = field(default_factory=lambda: ["final", "complete"])
    wip_tags: list[str] = field(default_factory=lambda: ["wip"])
    material_marker: str = "texture"
    material_vocabulary: list[str] = field(
        default_factory=lambda: [
            "brick",
            "carpet",
            "concrete",
            "fabric",
            "landscape",
            "metal",
            "stone",
            "tile",
            "wood",
        ]
    )
    reference_vocabulary: list[str] = field(
        default_factory=lambda: [
            "art",
            "bathrooms",
            "details",
            "doors",
            "exterior",
            "exteriors",
            "furniture",
            "interiors",
            "joinery",
            "kitchens",
            "landscape",
            "lighting",
            "spatial",
            "stairs",
            "structure",
        ]
    )


@dataclass
class DuplicateConfig:
    """Perceptual hashing and duplicate clustering knobs."""

    similarity_threshold: int = 5
    hash_size: int = 8
    max_workers: int = 4


@dataclass
class SequenceConfig:
    """Bounds for the durable filename sequence counter."""

    counter_name: str = "filename"
    start: int = 1
    maximum: int = 9999


@dataclass
class DatabaseConfig:
    """Database connection target for the tag store and counters."""

    primary_url: str = "sqlite:///data/snaptag.db"


@dataclass
class StorageConfig:
    """Object storage root used by the local filesystem adapter."""

    root: str = "data/objects"


@dataclass
class Settings:
    """Top-level application settings."""

    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    databases: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Pick the settings file: explicit path, then env override, then defaults."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv("SNAPTAG_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()

    candidates = [
        (Path.cwd() / "config" / "settings.yaml").resolve(),
        (_project_root() / "config" / "settings.yaml").resolve(),
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _as_tag_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return normalize_tags(str(item) for item in value)


def _apply_classification(raw: dict[str, Any], cfg: ClassificationConfig) -> None:
    for key in ("base_folder", "team_folder", "materials_folder", "reference_folder"):
        if isinstance(raw.get(key), str):
            setattr(cfg, key, raw[key])

    for key in ("team_tag", "material_marker", "general_name"):
        value = raw.get(key)
        if not isinstance(value, str):
            continue
        try:
            setattr(cfg, key, normalize_tag(value))
        except EmptyTagError:
            continue

    for key in ("project_identifiers", "final_tags", "wip_tags", "material_vocabulary", "reference_vocabulary"):
        parsed = _as_tag_list(raw.get(key))
        if parsed is not None:
            setattr(cfg, key, parsed)


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    A missing file, a non-mapping document, or keys of the wrong type leave the
    corresponding defaults untouched.
    """

    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return settings

    with path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}

    if not isinstance(raw, dict):
        return settings

    _apply_classification(_as_dict(raw.get("classification")), settings.classification)

    duplicates_raw = _as_dict(raw.get("duplicates"))
    dup_cfg = settings.duplicates
    if isinstance(duplicates_raw.get("similarity_threshold"), int):
        dup_cfg.similarity_threshold = duplicates_raw["similarity_threshold"]
    if isinstance(duplicates_raw.get("hash_size"), int):
        dup_cfg.hash_size = duplicates_raw["hash_size"]
    if isinstance(duplicates_raw.get("max_workers"), int):
        dup_cfg.max_workers = duplicates_raw["max_workers"]

    sequence_raw = _as_dict(raw.get("sequence"))
    seq_cfg = settings.sequence
    if isinstance(sequence_raw.get("counter_name"), str):
        seq_cfg.counter_name = sequence_raw["counter_name"]
    if isinstance(sequence_raw.get("start"), int):
        seq_cfg.start = sequence_raw["start"]
    if isinstance(sequence_raw.get("maximum"), int):
        seq_cfg.maximum = sequence_raw["maximum"]

    databases_raw = _as_dict(raw.get("databases"))
    if isinstance(databases_raw.get("primary_url"), str):
        settings.databases.primary_url = databases_raw["primary_url"]

    storage_raw = _as_dict(raw.get("storage"))
    if isinstance(storage_raw.get("root"), str):
        settings.storage.root = storage_raw["root"]

    return settings


__all__ = [
    "ClassificationConfig",
    "DuplicateConfig",
    "SequenceConfig",
    "DatabaseConfig",
    "StorageConfig",
    "Settings",
    "load_settings",
]
