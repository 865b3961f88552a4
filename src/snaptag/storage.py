"""Object storage contract and a filesystem-backed implementation."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Protocol

from utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff"})


class ObjectStorage(Protocol):
    """The two calls the engine needs from a remote object store."""

    def download(self, path: str) -> bytes: ...

    def list(self, folder: str) -> list[str]: ...


class LocalObjectStorage:
    """Serve storage paths such as ``/Team/Yandoit/Final/0007-project-yandoit.jpg``
    from a directory on disk.

    Paths are always POSIX-style and rooted at ``root``; attempts to escape the
    root raise ``PermissionError``.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath("/", path).relative_to("/")
        resolved = (self.root / relative).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PermissionError(f"storage path escapes root: {path!r}")
        return resolved

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"no object at {path!r}")
        return target.read_bytes()

    def upload(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        LOGGER.debug("object_uploaded", extra={"path": path, "size_bytes": len(data)})

    def list(self, folder: str, extensions: frozenset[str] | None = None) -> list[str]:
        """Storage paths of image files under ``folder``, recursively and sorted."""

        base = self._resolve(folder)
        if not base.is_dir():
            LOGGER.warning("storage_folder_missing", extra={"folder": folder})
            return []

        allowed = extensions or DEFAULT_IMAGE_EXTENSIONS
        paths: list[str] = []
        for candidate in base.rglob("*"):
            if not candidate.is_file() or candidate.suffix.lower() not in allowed:
                continue
            paths.append("/" + candidate.relative_to(self.root).as_posix())
        return sorted(paths)


__all__ = ["ObjectStorage", "LocalObjectStorage", "DEFAULT_IMAGE_EXTENSIONS"]
