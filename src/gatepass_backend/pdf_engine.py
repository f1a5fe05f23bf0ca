"""
Headless Chromium adapter that turns gate pass HTML into PDF bytes.

One browser is launched lazily and shared by every render; each render gets
its own page, which is always closed afterwards. Launching is guarded so that
concurrent first callers wait on the same launch instead of starting several
browsers.

Setup (one-time):
    python -m playwright install chromium
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from omegaconf import DictConfig
from playwright.async_api import Browser, Playwright, async_playwright

from .configuration import settings_to_dict

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 794, "height": 1024}
DEFAULT_MARGIN = {"top": "8mm", "right": "8mm", "bottom": "10mm", "left": "8mm"}


class PdfRenderError(RuntimeError):
    """Rendering a single document failed."""


class PdfEngineLaunchError(PdfRenderError):
    """The shared browser could not be started; every render fails until restart."""


class PlaywrightPdfEngine:
    def __init__(
        self,
        headless: bool = True,
        viewport: Optional[Dict[str, int]] = None,
        page_format: str = "A4",
        margin: Optional[Dict[str, str]] = None,
        wait_until: str = "networkidle",
        timeout_ms: int = 30000,
    ) -> None:
        self.headless = headless
        self.viewport = dict(viewport or DEFAULT_VIEWPORT)
        self.page_format = page_format
        self.margin = dict(margin or DEFAULT_MARGIN)
        self.wait_until = wait_until
        self.timeout_ms = timeout_ms

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_error: Optional[BaseException] = None
        self._launch_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, pdf_settings: DictConfig) -> "PlaywrightPdfEngine":
        return cls(
            headless=bool(pdf_settings.headless),
            viewport=settings_to_dict(pdf_settings.viewport),
            page_format=pdf_settings.format,
            margin=settings_to_dict(pdf_settings.margin),
            wait_until=pdf_settings.wait_until,
            timeout_ms=int(pdf_settings.timeout_ms),
        )

    async def _launch(self) -> Browser:
        self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=self.headless)

    async def get_browser(self) -> Browser:
        if self._browser is not None:
            return self._browser
        if self._launch_error is not None:
            raise PdfEngineLaunchError(f"PDF engine failed to launch: {self._launch_error}") from self._launch_error

        async with self._launch_lock:
            if self._browser is None:
                if self._launch_error is not None:
                    raise PdfEngineLaunchError(f"PDF engine failed to launch: {self._launch_error}") from self._launch_error
                try:
                    logger.info("Launching headless Chromium for PDF rendering")
                    self._browser = await self._launch()
                except Exception as exc:
                    self._launch_error = exc
                    logger.error(f"PDF engine launch failed: {exc}")
                    raise PdfEngineLaunchError(f"PDF engine failed to launch: {exc}") from exc
        return self._browser

    async def render(self, html: str) -> bytes:
        browser = await self.get_browser()
        try:
            page = await browser.new_page(viewport=self.viewport)
        except Exception as exc:
            raise PdfRenderError(f"Could not open a page: {exc}") from exc

        try:
            await page.set_content(html, wait_until=self.wait_until, timeout=self.timeout_ms)
            return await page.pdf(
                format=self.page_format,
                print_background=True,
                margin=self.margin,
                prefer_css_page_size=True,
            )
        except Exception as exc:
            raise PdfRenderError(f"PDF rendering failed: {exc}") from exc
        finally:
            await page.close()

    async def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            await browser.close()
        if playwright is not None:
            await playwright.stop()
