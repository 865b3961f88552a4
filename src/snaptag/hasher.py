"""Content hashing, image decoding, and average-hash fingerprints."""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import numpy as np
import xxhash
from PIL import Image, UnidentifiedImageError

from snaptag.errors import DecodeError, IncompatibleFingerprintError

CONTENT_HASH_ALGO: Final[str] = "xxhash64-v1"
AHASH_ALGO: Final[str] = "ahash64-v1"

_DEFAULT_HASH_SIZE: Final[int] = 8


@dataclass(frozen=True)
class Fingerprint:
    """A fixed-length bit string; bit 0 is the most significant bit of ``value``."""

    value: int
    length: int

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"fingerprint length must be positive, got {self.length}")
        if self.value < 0 or self.value >> self.length:
            raise ValueError(f"value does not fit in {self.length} bits")

    @classmethod
    def from_bits(cls, bits: str) -> "Fingerprint":
        """Build a fingerprint from a string of ``0``/``1`` characters."""

        if not bits or set(bits) - {"0", "1"}:
            raise ValueError(f"not a bit string: {bits!r}")
        return cls(value=int(bits, 2), length=len(bits))

    @classmethod
    def from_hex(cls, text: str, length: int | None = None) -> "Fingerprint":
        return cls(value=int(text, 16), length=length if length is not None else len(text) * 4)

    def to_bits(self) -> str:
        return format(self.value, f"0{self.length}b")

    def to_hex(self) -> str:
        return format(self.value, f"0{(self.length + 3) // 4}x")


def hamming_distance(left: Fingerprint, right: Fingerprint) -> int:
    """Number of differing bits between two equal-length fingerprints.

    Raises:
        IncompatibleFingerprintError: if the lengths differ.
    """

    if left.length != right.length:
        raise IncompatibleFingerprintError(left.length, right.length)
    return int((left.value ^ right.value).bit_count())


def compute_content_hash(data: bytes) -> str:
    """Return the 16-character xxhash64 digest of ``data``."""

    return f"{xxhash.xxh64(data).intdigest():016x}"


def compute_file_hash(path: Path, chunk_size: int = 1 << 20) -> str:
    """Stream ``path`` through xxhash64; same digest as :func:`compute_content_hash`."""

    hasher = xxhash.xxh64()

    with path.open("rb") as handle:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)

    return f"{hasher.intdigest():016x}"


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes fully into memory.

    Raises:
        DecodeError: for empty, truncated, corrupt or unsupported input.
    """

    if not data:
        raise DecodeError("empty image payload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"cannot decode image: {exc}") from exc
    return image


def compute_average_hash(image: Image.Image, hash_size: int = _DEFAULT_HASH_SIZE) -> Fingerprint:
    """Compute the average hash ("aHash") of ``image``.

    - Resize to ``hash_size`` x ``hash_size`` with Lanczos resampling.
    - Convert to 8-bit grayscale.
    - Set bit *i* when pixel *i* (row-major) is at or above the mean luminance.

    Robust to recompression and light rescaling; not to crops, rotation or
    strong colour shifts.

    Raises:
        DecodeError: if the image cannot be converted or resampled.
    """

    resample = getattr(Image, "Resampling", Image).LANCZOS
    try:
        gray = image.convert("RGB").resize((hash_size, hash_size), resample=resample).convert("L")
    except (OSError, ValueError) as exc:
        raise DecodeError(f"cannot resample image: {exc}") from exc

    pixels = np.asarray(gray, dtype=np.float64).flatten()
    mean = pixels.mean()

    value = 0
    for bit in (pixels >= mean):
        value = (value << 1) | int(bit)

    return Fingerprint(value=value, length=hash_size * hash_size)


class PerceptualHasher:
    """Turn decoded images or raw bytes into :class:`Fingerprint` values."""

    def __init__(self, hash_size: int = _DEFAULT_HASH_SIZE) -> None:
        if hash_size < 2:
            raise ValueError(f"hash_size must be at least 2, got {hash_size}")
        self.hash_size = hash_size
        self.algo = f"ahash{hash_size * hash_size}-v1"

    def fingerprint(self, image: Image.Image) -> Fingerprint:
        return compute_average_hash(image, self.hash_size)

    def fingerprint_bytes(self, data: bytes) -> Fingerprint:
        with decode_image(data) as image:
            return self.fingerprint(image)


__all__ = [
    "CONTENT_HASH_ALGO",
    "AHASH_ALGO",
    "Fingerprint",
    "PerceptualHasher",
    "compute_average_hash",
    "compute_content_hash",
    "compute_file_hash",
    "decode_image",
    "hamming_distance",
]
