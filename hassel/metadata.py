"""
Optional SEO metadata (alt text, description, tags) for a compressed image.

Runs entirely apart from the compression pipeline: it only ever reads a
finished result. Without an API key the feature is simply off.
"""
from __future__ import annotations

import base64
import binascii
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
import json
import logging
import re
from typing import Any, Optional

from google import genai
from google.genai import types

from .config import AppConfig
from .errors import MetadataServiceError
from .results import CompressionResult


logger = logging.getLogger(__name__)


PROMPT = (
    "Analyze this image for SEO purposes. Provide an SEO-friendly alt text, "
    "a short description (max 2 sentences), and 5-7 relevant tags."
)

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "altText": types.Schema(type=types.Type.STRING, description="SEO optimized alt text for the image"),
        "description": types.Schema(type=types.Type.STRING, description="A concise description of the image content"),
        "tags": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(type=types.Type.STRING),
            description="Relevant keywords and tags",
        ),
    },
    required=["altText", "description", "tags"],
)

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,")


@dataclass(frozen=True)
class ImageMetadata:
    alt_text: str
    description: str
    tags: tuple[str, ...]


def analyze_image(
    image_b64: str,
    media_type: str,
    config: Optional[AppConfig] = None,
    client: Optional[Any] = None,
) -> Optional[ImageMetadata]:
    """
    Ask Gemini for alt text, a description and tags.

    image_b64 may be a bare base64 string or a data: URL (whose media type
    then wins). Returns None when no API key is configured or the model sends
    back nothing. Any failure raises MetadataServiceError.
    """
    config = config or AppConfig.from_env()

    if client is None:
        if not config.metadata_enabled:
            logger.warning("No API key configured; skipping image analysis.")
            return None
        client = genai.Client(api_key=config.gemini_api_key)

    match = _DATA_URL_RE.match(image_b64)
    if match:
        media_type = match.group(1)
        image_b64 = image_b64[match.end():]

    try:
        raw = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MetadataServiceError(f"Image data is not valid base64: {exc}") from exc

    try:
        response = client.models.generate_content(
            model=config.metadata_model,
            contents=[types.Part.from_bytes(data=raw, mime_type=media_type), PROMPT],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
            ),
        )
    except Exception as exc:
        logger.error("Image analysis failed: %s", exc)
        raise MetadataServiceError(f"Image analysis failed: {exc}") from exc

    if not response.text:
        return None

    return _parse_metadata(response.text)


def _parse_metadata(text: str) -> ImageMetadata:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MetadataServiceError(f"Image analysis returned invalid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MetadataServiceError("Image analysis returned an unexpected payload")

    try:
        alt_text = str(payload["altText"])
        description = str(payload["description"])
        tags = payload["tags"]
    except KeyError as exc:
        raise MetadataServiceError(f"Image analysis response is missing {exc}") from exc

    if isinstance(tags, str):
        # Some answers come back comma-separated despite the schema.
        tags = [t.strip() for t in tags.split(",") if t.strip()]
    if not isinstance(tags, list):
        raise MetadataServiceError("Image analysis tags are not a list")

    return ImageMetadata(alt_text=alt_text, description=description, tags=tuple(str(t) for t in tags))


class MetadataAnalyzer:
    """
    Runs analyze_image on its own worker so it never waits on, or holds up,
    compression.
    """

    def __init__(self, config: Optional[AppConfig] = None, client: Optional[Any] = None) -> None:
        self.config = config or AppConfig.from_env()
        self._client = client
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hassel-metadata")

    @property
    def available(self) -> bool:
        """False hides the feature; nothing else changes."""
        return self._client is not None or self.config.metadata_enabled

    def submit(self, result: CompressionResult) -> "Future[Optional[ImageMetadata]]":
        image_b64 = base64.b64encode(result.data).decode("ascii")
        return self._executor.submit(analyze_image, image_b64, result.media_type, self.config, self._client)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "MetadataAnalyzer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
