"""
Cached PDF generation for gate passes.

This module ties the PDF pipeline together:
- Normalizing the live gate pass record and computing its ETag
- Looking up the cached rendition for the gate pass id
- Rendering and storing a fresh PDF when the ETag no longer matches

The cache is validated on read: nothing is invalidated when a record changes.
Instead every call recomputes the ETag from the authoritative record and
re-renders only if the stored ETag differs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Protocol

from omegaconf import DictConfig

from .cache_store import BaseCacheStore, create_cache_store
from .fingerprint import compute_etag
from .logo import LogoResolver
from .normalizer import normalize_gate_pass
from .pdf_engine import PlaywrightPdfEngine
from .renderer import HtmlRenderer

logger = logging.getLogger(__name__)


class MissingIdentifierError(ValueError):
    """The gate pass record carries no identifier to cache under."""


class PdfEngine(Protocol):
    async def render(self, html: str) -> bytes: ...

    async def close(self) -> None: ...


@dataclass
class PdfResult:
    etag: str
    pdf_bytes: bytes
    cache_hit: bool = False


def gatepass_identifier(record: Any) -> Optional[str]:
    if isinstance(record, Mapping):
        value = record.get("id") or record.get("GatePassID")
    else:
        value = getattr(record, "id", None)
    return str(value) if value else None


class GatePassPdfService:
    """
    Coordinator for cached gate pass PDFs.

    Owns the process-wide rendering state: the HTML renderer (with its cached
    template) and the PDF engine (with its shared browser). ``close`` releases
    both and must be called on shutdown.

    Concurrency:
        With ``single_flight`` enabled, calls for the same gate pass id are
        serialized within the process, so a burst of first requests renders
        once. Calls for different ids never wait on each other. Separate
        processes sharing one store can still race; the last upsert wins.
    """

    def __init__(
        self,
        store: BaseCacheStore,
        engine: PdfEngine,
        logo_resolver: Optional[LogoResolver] = None,
        renderer: Optional[HtmlRenderer] = None,
        single_flight: bool = True,
    ) -> None:
        self.store = store
        self.engine = engine
        self.logo_resolver = logo_resolver or LogoResolver.from_settings()
        self.renderer = renderer or HtmlRenderer()
        self.single_flight = single_flight
        self._id_locks: Dict[str, list] = {}

    @asynccontextmanager
    async def _serialized(self, gatepass_id: str) -> AsyncIterator[None]:
        if not self.single_flight:
            yield
            return

        # [lock, holders]; dropped once nobody holds or waits on it
        entry = self._id_locks.setdefault(gatepass_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._id_locks.pop(gatepass_id, None)

    async def ensure_pdf(self, record: Any) -> PdfResult:
        """
        Return the PDF for a gate pass, rendering only when the cache is stale.

        Args:
            record: Gate pass mapping or ``GatePass`` model; must carry ``id``

        Returns:
            PdfResult with the ETag and PDF bytes

        Raises:
            MissingIdentifierError: If the record has no identifier
            PdfRenderError: If the engine fails to launch or render
            CacheStoreError: If the cache lookup or write fails
        """
        gatepass_id = gatepass_identifier(record)
        if not gatepass_id:
            raise MissingIdentifierError("Gate pass ID is required to generate PDF.")

        normalized = normalize_gate_pass(record)
        # Logo sources may read files from disk
        logo_data_uri = await asyncio.to_thread(self.logo_resolver.resolve, record)
        etag = compute_etag(normalized, logo_data_uri)

        async with self._serialized(gatepass_id):
            cached = await asyncio.to_thread(self.store.get, gatepass_id)
            if cached is not None and cached.etag == etag:
                logger.debug(f"PDF cache hit for gate pass {gatepass_id}")
                return PdfResult(etag=etag, pdf_bytes=cached.pdf_bytes, cache_hit=True)

            logger.info(f"Rendering PDF for gate pass {gatepass_id} ({'stale' if cached else 'not cached'})")
            html = self.renderer.render(normalized, logo_data_uri)
            pdf_bytes = await self.engine.render(html)
            await asyncio.to_thread(self.store.upsert, gatepass_id, etag, pdf_bytes)

        return PdfResult(etag=etag, pdf_bytes=pdf_bytes)

    async def close(self) -> None:
        await self.engine.close()


def build_pdf_service(settings: DictConfig) -> GatePassPdfService:
    return GatePassPdfService(
        store=create_cache_store(settings.cache),
        engine=PlaywrightPdfEngine.from_settings(settings.pdf),
        logo_resolver=LogoResolver.from_settings(settings.logo),
        single_flight=bool(settings.pdf_cache.single_flight),
    )
