from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional


class Dimensions(NamedTuple):
    width: int
    height: int


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CompressionResult:
    """
    Output of one pipeline run.

    Bytes, dimensions and size always come from the same run.
    """
    data: bytes
    dimensions: Dimensions
    media_type: str
    file_name: str
    target_bytes: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def target_met(self) -> Optional[bool]:
        # None when no size target was requested
        if self.target_bytes is None:
            return None
        return self.size <= self.target_bytes


@dataclass(frozen=True)
class ImageState:
    """
    Snapshot of one editing session, as the UI sees it.

    While is_processing is True the compressed_* fields belong to an older
    run and must not be shown as current.
    """
    name: str
    original_size: int
    original_dimensions: Dimensions
    source: bytes
    compressed: Optional[bytes] = None
    compressed_size: int = 0
    compressed_dimensions: Dimensions = Dimensions(0, 0)
    result: Optional[CompressionResult] = None
    is_processing: bool = False
    error: Optional[str] = None

    @property
    def saved_bytes(self) -> int:
        return max(0, self.original_size - self.compressed_size)

    @property
    def size_diff_percent(self) -> float:
        """Signed change from original to compressed size (negative = smaller)."""
        if self.original_size <= 0:
            return 0.0
        return (self.compressed_size - self.original_size) / self.original_size * 100.0

    @property
    def size_diff_label(self) -> str:
        pct = int(abs(self.size_diff_percent) + 0.5)
        if self.compressed_size < self.original_size:
            return f"-{pct}%"
        if self.compressed_size > self.original_size:
            return f"+{pct}%"
        return "0%"
