"""
Logo asset resolution for the gate pass header.

The logo is always delivered to the renderer as a data URI so the PDF engine
never has to fetch anything over the network. Sources are tried in a fixed
order and the first one that yields a value wins:

1. ``logoDataUri`` on the record itself
2. a configured inline data URI (``LOGO_DATA_URI``)
3. an image file (``LOGO_PATH`` or the packaged default), base64-encoded
4. a text file holding base64 or a full data URI (``LOGO_BASE64_PATH``)
5. a built-in placeholder SVG

Unreadable files are logged and skipped; resolution itself never fails.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List, Optional, Sequence

from omegaconf import DictConfig

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).resolve().parent / "assets"
DEFAULT_LOGO_PATH = ASSETS_DIR / "logo.svg"

PLACEHOLDER_LOGO_DATA_URI = (
    'data:image/svg+xml;utf8,<svg xmlns="http://www.w3.org/2000/svg" width="200" height="80">'
    '<rect width="200" height="80" fill="%23e5e7eb"/>'
    '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" fill="%236b7280" '
    'font-family="Segoe UI, Arial" font-size="16">Logo</text></svg>'
)

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


def mime_type_for(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower(), "image/png")


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class LogoSource(ABC):
    """A single place a logo may come from."""

    @abstractmethod
    def try_resolve(self) -> Optional[str]:
        """Return a data URI, or None to let the next source try."""


class InlineLogoSource(LogoSource):
    def __init__(self, data_uri: Optional[str]) -> None:
        self.data_uri = _clean(data_uri)

    def try_resolve(self) -> Optional[str]:
        return self.data_uri


class ImageFileLogoSource(LogoSource):
    def __init__(self, path: Optional[Path]) -> None:
        self.path = path

    def try_resolve(self) -> Optional[str]:
        if self.path is None:
            return None
        try:
            payload = self.path.read_bytes()
        except OSError as exc:
            logger.debug(f"Logo image {self.path} not readable: {exc}")
            return None
        if not payload:
            return None
        encoded = base64.b64encode(payload).decode("ascii")
        return f"data:{mime_type_for(self.path)};base64,{encoded}"


class Base64TextLogoSource(LogoSource):
    """Text file holding either a bare base64 PNG payload or a complete data URI."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = path

    def try_resolve(self) -> Optional[str]:
        if self.path is None:
            return None
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug(f"Logo text file {self.path} not readable: {exc}")
            return None
        if not content:
            return None
        if content.startswith("data:"):
            return content
        payload = "".join(content.split())
        return f"data:image/png;base64,{payload}"


class PlaceholderLogoSource(LogoSource):
    def try_resolve(self) -> Optional[str]:
        return PLACEHOLDER_LOGO_DATA_URI


class LogoResolver:
    """
    Walks the configured logo sources in order.

    The record-level source is prepended per call because it depends on the
    gate pass being rendered; the remaining sources come from settings.
    """

    def __init__(self, sources: Sequence[LogoSource]) -> None:
        self.sources: List[LogoSource] = list(sources)

    @classmethod
    def from_settings(cls, logo_settings: Optional[DictConfig] = None) -> "LogoResolver":
        data_uri = logo_settings.get("data_uri") if logo_settings is not None else None
        image_path = logo_settings.get("path") if logo_settings is not None else None
        text_path = logo_settings.get("base64_path") if logo_settings is not None else None

        if _clean(image_path):
            image_file = Path(image_path)
        elif _clean(text_path):
            # A configured text file must not be shadowed by the packaged default
            image_file = None
        else:
            image_file = DEFAULT_LOGO_PATH

        return cls(
            [
                InlineLogoSource(data_uri),
                ImageFileLogoSource(image_file),
                Base64TextLogoSource(Path(text_path) if _clean(text_path) else None),
                PlaceholderLogoSource(),
            ]
        )

    def resolve(self, record: Any = None) -> str:
        record_uri = record.get("logoDataUri") if isinstance(record, Mapping) else getattr(record, "logo_data_uri", None)
        sources = [InlineLogoSource(record_uri), *self.sources]

        for source in sources:
            data_uri = source.try_resolve()
            if data_uri:
                return data_uri
            logger.debug(f"Logo source {type(source).__name__} had nothing, trying next")
        return PLACEHOLDER_LOGO_DATA_URI
