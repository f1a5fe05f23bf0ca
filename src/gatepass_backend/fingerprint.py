"""ETag computation for gate pass PDFs."""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from .models import NormalizedGatePass
from .normalizer import to_canonical_dict


def canonical_json(normalized: NormalizedGatePass) -> str:
    """Serialize with sorted keys and compact separators so output is byte-stable."""
    return json.dumps(
        to_canonical_dict(normalized),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_etag(normalized: NormalizedGatePass, logo_data_uri: Optional[str] = None) -> str:
    """
    SHA-256 hex digest of the canonical record, salted with the logo content.

    The logo is hashed by its data URI (i.e. its bytes), so replacing the image
    behind an unchanged path still yields a new ETag.
    """
    digest = hashlib.sha256(canonical_json(normalized).encode("utf-8"))
    if logo_data_uri:
        digest.update(b"\x00logo\x00")
        digest.update(logo_data_uri.encode("utf-8"))
    return digest.hexdigest()
