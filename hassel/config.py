"""
Environment configuration for the outer surfaces (CLI, metadata service).

The compression core never reads this; it only sees CompressionSettings.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional


DEFAULT_METADATA_MODEL = "gemini-3-flash-preview"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class AppConfig:
    gemini_api_key: Optional[str] = None
    metadata_model: str = DEFAULT_METADATA_MODEL
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def metadata_enabled(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or None,
            metadata_model=os.getenv("HASSEL_METADATA_MODEL", DEFAULT_METADATA_MODEL),
            log_level=os.getenv("HASSEL_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
