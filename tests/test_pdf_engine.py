"""
Tests for the Playwright PDF engine, with the browser replaced by fakes.
"""

import asyncio

import pytest

from gatepass_backend.pdf_engine import PdfEngineLaunchError, PdfRenderError, PlaywrightPdfEngine


class FakePage:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.closed = False
        self.pdf_kwargs = None

    async def set_content(self, html, wait_until, timeout):
        await asyncio.sleep(0)
        if self.fail_on == "set_content":
            raise RuntimeError("navigation timeout")

    async def pdf(self, **kwargs):
        if self.fail_on == "pdf":
            raise RuntimeError("target crashed")
        self.pdf_kwargs = kwargs
        return b"%PDF-fake"

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self):
        self.pages = []
        self.fail_next = None
        self.closed = False

    async def new_page(self, viewport):
        page = FakePage(fail_on=self.fail_next)
        self.fail_next = None
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeEngine(PlaywrightPdfEngine):
    def __init__(self, launch_error=None, **kwargs):
        super().__init__(**kwargs)
        self.launches = 0
        self.launch_error = launch_error
        self.browser = FakeBrowser()

    async def _launch(self):
        self.launches += 1
        await asyncio.sleep(0)
        if self.launch_error is not None:
            raise self.launch_error
        return self.browser


class TestBrowserLifecycle:
    def test_concurrent_first_renders_launch_once(self):
        async def scenario():
            engine = FakeEngine()
            results = await asyncio.gather(*(engine.render("<p>hi</p>") for _ in range(5)))
            return engine, results

        engine, results = asyncio.run(scenario())
        assert engine.launches == 1
        assert results == [b"%PDF-fake"] * 5
        assert all(page.closed for page in engine.browser.pages)

    def test_launch_failure_is_remembered(self):
        async def scenario():
            engine = FakeEngine(launch_error=RuntimeError("chromium missing"))
            errors = []
            for _ in range(3):
                try:
                    await engine.render("<p>hi</p>")
                except PdfEngineLaunchError as exc:
                    errors.append(exc)
            return engine, errors

        engine, errors = asyncio.run(scenario())
        assert engine.launches == 1
        assert len(errors) == 3

    def test_launch_error_is_a_render_error(self):
        assert issubclass(PdfEngineLaunchError, PdfRenderError)

    def test_close_releases_browser(self):
        async def scenario():
            engine = FakeEngine()
            await engine.render("<p>hi</p>")
            await engine.close()
            return engine

        engine = asyncio.run(scenario())
        assert engine.browser.closed is True

    def test_close_without_launch_is_noop(self):
        asyncio.run(FakeEngine().close())


class TestRender:
    @pytest.mark.parametrize("stage", ["set_content", "pdf"])
    def test_page_closed_on_failure(self, stage):
        async def scenario():
            engine = FakeEngine()
            await engine.get_browser()
            engine.browser.fail_next = stage
            with pytest.raises(PdfRenderError):
                await engine.render("<p>hi</p>")
            return engine

        engine = asyncio.run(scenario())
        assert engine.browser.pages[0].closed is True

    def test_engine_usable_after_failure(self):
        async def scenario():
            engine = FakeEngine()
            await engine.get_browser()
            engine.browser.fail_next = "pdf"
            with pytest.raises(PdfRenderError):
                await engine.render("<p>bad</p>")
            return engine, await engine.render("<p>good</p>")

        engine, result = asyncio.run(scenario())
        assert result == b"%PDF-fake"
        assert engine.launches == 1

    def test_pdf_options(self):
        async def scenario():
            engine = FakeEngine(margin={"top": "5mm", "right": "5mm", "bottom": "5mm", "left": "5mm"})
            await engine.render("<p>hi</p>")
            return engine

        engine = asyncio.run(scenario())
        kwargs = engine.browser.pages[0].pdf_kwargs
        assert kwargs["format"] == "A4"
        assert kwargs["print_background"] is True
        assert kwargs["margin"]["top"] == "5mm"
