"""Playwright browser lifecycle for fixtures and the storage-state CLI."""

from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from authmimic.constants import DEFAULT_VIEWPORT_HEIGHT, DEFAULT_VIEWPORT_WIDTH


class BrowserManager:
    """Owns one Chromium instance; every test gets its own context from it."""

    def __init__(self, headless: bool = True, base_url: str | None = None):
        self._headless = headless
        self._base_url = base_url
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def launched(self) -> bool:
        return self._browser is not None

    async def launch(self) -> None:
        """Start Playwright and launch Chromium."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)

    async def new_context(
        self,
        storage_state: str | None = None,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
    ) -> BrowserContext:
        """Create an isolated context, optionally restoring a saved storage state."""
        if not self._browser:
            raise RuntimeError("Browser not launched. Call launch() first.")

        kwargs: dict[str, Any] = {
            "viewport": {"width": viewport_width, "height": viewport_height},
        }
        if self._base_url:
            kwargs["base_url"] = self._base_url
        if storage_state:
            kwargs["storage_state"] = storage_state

        return await self._browser.new_context(**kwargs)

    async def new_page(self, context: BrowserContext) -> Page:
        return await context.new_page()

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
