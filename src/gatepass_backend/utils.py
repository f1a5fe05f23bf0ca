"""
Utility functions for file system operations and string sanitization.

This module provides helper functions for:
- Ensuring directory creation for database and cache files
- Building safe download filenames from gate pass identifiers
- Parsing conditional request headers
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

# Pattern to match characters that are not safe in a download filename
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_label(label: str, fallback: str) -> str:
    """
    Generate a filename-safe label from user input.

    Args:
        label: The original label string to sanitize
        fallback: Default value to return if sanitization results in an empty string

    Returns:
        A filename-safe label (case preserved) or the fallback value

    Example:
        >>> sanitize_label("GP/2024/001", "gatepass")
        "GP-2024-001"
        >>> sanitize_label("@#$", "gatepass")
        "gatepass"
    """
    cleaned = SANITIZE_PATTERN.sub("-", label.strip())
    cleaned = cleaned.strip("-_.")
    return cleaned or fallback


def pdf_filename(gatepass_id: str) -> str:
    return f"gatepass-{sanitize_label(gatepass_id, fallback='document')}.pdf"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    Compare an If-None-Match header with a bare ETag.

    Quotes and the weak ``W/`` prefix are stripped before comparing, so
    ``"abc"``, ``W/"abc"`` and ``abc`` all match ``abc``. A comma-separated
    list matches if any member does.
    """
    if not if_none_match:
        return False
    candidates = (part.strip().removeprefix("W/").replace('"', "") for part in if_none_match.split(","))
    return any(candidate == etag or candidate == "*" for candidate in candidates)
