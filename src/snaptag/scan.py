"""Collection-wide duplicate scan: parallel fingerprinting, sequential clustering."""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from sqlalchemy import select

from utils.logging import get_logger
from snaptag.config import Settings
from snaptag.db import ImageFingerprint, open_primary_session
from snaptag.duplicates import DuplicateClusterer, DuplicateGroup
from snaptag.errors import DecodeError
from snaptag.hasher import Fingerprint, PerceptualHasher, compute_content_hash
from snaptag.storage import ObjectStorage

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ScanItem:
    """One image to fingerprint; ``file_hash`` enables cache hits without a download."""

    image_id: int
    storage_path: str
    file_hash: str | None = None


@dataclass(frozen=True)
class ScanError:
    image_id: int
    storage_path: str
    kind: str
    message: str


@dataclass
class ScanStats:
    total_images: int = 0
    processed_images: int = 0
    cached_images: int = 0
    skipped_images: int = 0
    errors: int = 0
    duplicate_groups: int = 0
    duplicate_images: int = 0


@dataclass
class DuplicateScanResult:
    """Outcome of a scan; partial when ``cancelled`` or when ``errors`` is non-empty."""

    groups: list[DuplicateGroup] = field(default_factory=list)
    fingerprints: dict[int, Fingerprint] = field(default_factory=dict)
    errors: list[ScanError] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    cancelled: bool = False


class FingerprintCache(Protocol):
    def get(self, image_id: int, content_hash: str, algo: str) -> Fingerprint | None: ...

    def put(self, image_id: int, content_hash: str, algo: str, fingerprint: Fingerprint) -> None: ...


class InMemoryFingerprintCache:
    """Thread-safe dict keyed by ``(image_id, content_hash, algo)``."""

    def __init__(self) -> None:
        self._entries: dict[tuple[int, str, str], Fingerprint] = {}
        self._lock = threading.Lock()

    def get(self, image_id: int, content_hash: str, algo: str) -> Fingerprint | None:
        with self._lock:
            return self._entries.get((image_id, content_hash, algo))

    def put(self, image_id: int, content_hash: str, algo: str, fingerprint: Fingerprint) -> None:
        with self._lock:
            self._entries[(image_id, content_hash, algo)] = fingerprint

    def __len__(self) -> int:
        return len(self._entries)


class SqlFingerprintCache:
    """Fingerprints persisted in ``image_fingerprint``; one short session per call."""

    def __init__(self, target: str | Path) -> None:
        self._target = target

    def get(self, image_id: int, content_hash: str, algo: str) -> Fingerprint | None:
        with open_primary_session(self._target) as session:
            row = session.execute(
                select(ImageFingerprint).where(
                    ImageFingerprint.image_id == image_id,
                    ImageFingerprint.content_hash == content_hash,
                    ImageFingerprint.algo == algo,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return Fingerprint.from_hex(row.fingerprint_hex, row.bit_length)

    def put(self, image_id: int, content_hash: str, algo: str, fingerprint: Fingerprint) -> None:
        with open_primary_session(self._target) as session, session.begin():
            row = session.get(ImageFingerprint, image_id)
            if row is None:
                row = ImageFingerprint(image_id=image_id)
                session.add(row)
            row.content_hash = content_hash
            row.algo = algo
            row.fingerprint_hex = fingerprint.to_hex()
            row.bit_length = fingerprint.length
            row.updated_at = time.time()


_SKIPPED = "skipped"
_CACHED = "cached"
_COMPUTED = "computed"


class DuplicateScanner:
    """Fingerprint a collection concurrently, then cluster it single-threaded.

    Downloads, hashing and decoding run on a bounded thread pool. Failures of
    one image are recorded and never abort the scan. ``cancel_event`` is
    checked before each image starts; fingerprints finished before the
    cancellation stay in the cache for the next run.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ObjectStorage,
        cache: FingerprintCache | None = None,
        hasher: PerceptualHasher | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._cache: FingerprintCache = cache if cache is not None else InMemoryFingerprintCache()
        self._hasher = hasher or PerceptualHasher(settings.duplicates.hash_size)
        self._by_content_lock = threading.Lock()

    def scan(self, items: Sequence[ScanItem], cancel_event: threading.Event | None = None) -> DuplicateScanResult:
        result = DuplicateScanResult(stats=ScanStats(total_images=len(items)))
        threshold = self._settings.duplicates.similarity_threshold
        workers = max(1, self._settings.duplicates.max_workers)

        LOGGER.info("duplicate_scan_start", extra={"images": len(items), "workers": workers, "threshold": threshold})

        # Fingerprints by content hash, shared by the workers of this scan only.
        by_content: dict[str, Fingerprint] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._process_item, item, by_content, cancel_event) for item in items]

        for item, future in zip(items, futures):
            exc = future.exception()
            if exc is not None:
                kind = "decode_error" if isinstance(exc, DecodeError) else type(exc).__name__
                result.errors.append(ScanError(item.image_id, item.storage_path, kind, str(exc)))
                LOGGER.error(
                    "duplicate_scan_image_error",
                    extra={"image_id": item.image_id, "path": item.storage_path, "kind": kind, "error": str(exc)},
                )
                continue

            status, fingerprint = future.result()
            if status == _SKIPPED:
                result.stats.skipped_images += 1
                continue
            if status == _CACHED:
                result.stats.cached_images += 1
            result.stats.processed_images += 1
            result.fingerprints[item.image_id] = fingerprint

        result.cancelled = cancel_event is not None and cancel_event.is_set()
        result.stats.errors = len(result.errors)

        ordered = [
            (item.image_id, result.fingerprints[item.image_id]) for item in items if item.image_id in result.fingerprints
        ]
        result.groups = DuplicateClusterer(threshold).cluster(ordered)
        result.stats.duplicate_groups = len(result.groups)
        result.stats.duplicate_images = sum(len(group) - 1 for group in result.groups)

        LOGGER.info(
            "duplicate_scan_complete",
            extra={
                "processed": result.stats.processed_images,
                "cached": result.stats.cached_images,
                "skipped": result.stats.skipped_images,
                "errors": result.stats.errors,
                "groups": result.stats.duplicate_groups,
                "duplicate_images": result.stats.duplicate_images,
                "cancelled": result.cancelled,
            },
        )
        return result

    def _process_item(
        self,
        item: ScanItem,
        by_content: dict[str, Fingerprint],
        cancel_event: threading.Event | None,
    ) -> tuple[str, Fingerprint | None]:
        if cancel_event is not None and cancel_event.is_set():
            return _SKIPPED, None

        algo = self._hasher.algo
        if item.file_hash:
            cached = self._cache.get(item.image_id, item.file_hash, algo)
            if cached is not None:
                return _CACHED, cached

        data = self._storage.download(item.storage_path)
        content_hash = compute_content_hash(data)

        cached = self._cache.get(item.image_id, content_hash, algo)
        if cached is not None:
            return _CACHED, cached

        # Byte-identical content already hashed in this scan: reuse it.
        with self._by_content_lock:
            known = by_content.get(content_hash)
        if known is not None:
            self._cache.put(item.image_id, content_hash, algo, known)
            return _CACHED, known

        fingerprint = self._hasher.fingerprint_bytes(data)
        with self._by_content_lock:
            by_content.setdefault(content_hash, fingerprint)
        self._cache.put(item.image_id, content_hash, algo, fingerprint)
        return _COMPUTED, fingerprint


def scan_folder(
    settings: Settings,
    storage: ObjectStorage,
    folder: str,
    cache: FingerprintCache | None = None,
    cancel_event: threading.Event | None = None,
) -> tuple[list[ScanItem], DuplicateScanResult]:
    """Scan every image listed under ``folder``, numbering them in listing order."""

    paths = storage.list(folder)
    items = [ScanItem(image_id=index, storage_path=path) for index, path in enumerate(paths, start=1)]
    return items, DuplicateScanner(settings, storage, cache=cache).scan(items, cancel_event)


__all__ = [
    "ScanItem",
    "ScanError",
    "ScanStats",
    "DuplicateScanResult",
    "FingerprintCache",
    "InMemoryFingerprintCache",
    "SqlFingerprintCache",
    "DuplicateScanner",
    "scan_folder",
]
