"""Playwright-based fetcher for JavaScript-rendered (dynamic) web pages."""

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from wcag_analyzer.services.errors import FetchError
from wcag_analyzer.services.fetcher import MAX_CONTENT_SIZE, validate_url

TIMEOUT_MS = 30_000  # 30 s in milliseconds


async def fetch_url_with_browser(url: str, *, wait_ms: int = 0) -> str:
    """Render *url* with a headless Chromium browser and return the full HTML.

    Args:
        url: The target URL (must be http/https and public).
        wait_ms: Extra milliseconds to wait after the page loads (0 = no extra wait).

    Raises:
        InvalidInputError: if the URL fails SSRF / scheme validation.
        FetchError: on browser/network errors or if the rendered HTML exceeds
            MAX_CONTENT_SIZE.
    """
    validate_url(url)

    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=True,
                args=[
                    # --no-sandbox is required when running as root inside a container
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                ],
            )
            context = await browser.new_context()
            page = await context.new_page()
            try:
                response = await page.goto(url, wait_until="networkidle", timeout=TIMEOUT_MS)
                if response is not None and not response.ok:
                    raise FetchError(f"Target URL returned HTTP {response.status}.")

                if wait_ms > 0:
                    await page.wait_for_timeout(wait_ms)

                html = await page.content()
            finally:
                await context.close()
                await browser.close()
    except PlaywrightError as exc:
        raise FetchError(f"Browser error: {exc}") from exc

    if len(html.encode()) > MAX_CONTENT_SIZE:
        raise FetchError("Rendered HTML exceeds the maximum allowed size.")

    return html
