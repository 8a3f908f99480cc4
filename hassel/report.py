from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .engine import format_file_size
from .results import ImageState
from .settings import CompressionSettings


@dataclass(frozen=True)
class CompressionReport:
    created_utc: str
    name: str
    output_name: Optional[str]
    format: str
    original_bytes: int
    compressed_bytes: int
    original_size: str
    compressed_size: str
    size_diff: str
    original_dimensions: dict
    compressed_dimensions: dict
    quality: Optional[float]
    target_size_kb: Optional[int]
    target_met: Optional[bool]


def build_report(state: ImageState, settings: CompressionSettings) -> CompressionReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    result = state.result

    return CompressionReport(
        created_utc=created_utc,
        name=state.name,
        output_name=result.file_name if result else None,
        format=settings.format,
        original_bytes=state.original_size,
        compressed_bytes=state.compressed_size,
        original_size=format_file_size(state.original_size),
        compressed_size=format_file_size(state.compressed_size),
        size_diff=state.size_diff_label,
        original_dimensions=state.original_dimensions._asdict(),
        compressed_dimensions=state.compressed_dimensions._asdict(),
        # quality is ignored for lossless output and when a size target drives it
        quality=None if settings.is_lossless or settings.target_bytes else settings.quality,
        target_size_kb=settings.target_size_kb,
        target_met=result.target_met if result else None,
    )


def save_report_json(report: CompressionReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)
