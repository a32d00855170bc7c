"""Content extraction: turns URL, inline HTML, or PDF input into analysable text."""

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from wcag_analyzer.models.analysis_input import AnalysisInput, AnalysisType
from wcag_analyzer.services.browser_fetcher import fetch_url_with_browser
from wcag_analyzer.services.errors import (
    EmptyContentError,
    InvalidInputError,
    UnsupportedFormatError,
)
from wcag_analyzer.services.fetcher import fetch_url
from wcag_analyzer.services.pdf_reader import extract_pdf_text
from wcag_analyzer.services.sanitizer import collapse_whitespace, sanitize_markup

logger = logging.getLogger(__name__)


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise EmptyContentError(message)
    return value


def _has_content(markup: str) -> bool:
    """Return True when *markup* holds visible text or at least one element."""
    soup = BeautifulSoup(markup, "lxml")
    body = soup.find("body") or soup
    if body.get_text(strip=True):
        return True
    return body.find(True) is not None


async def _extract_url(analysis_input: AnalysisInput) -> str:
    url = _require_text(analysis_input.url, "URL is empty").strip()

    if not analysis_input.extract_url_content:
        # The reasoning service is asked to evaluate the page by address.
        return url

    if analysis_input.render_mode == "browser":
        html = await fetch_url_with_browser(url)
    else:
        html = await fetch_url(url)

    markup = sanitize_markup(html)
    if not _has_content(markup):
        raise EmptyContentError(f"No content could be extracted from {url}.")

    logger.info("Extracted page markup", extra={"url": url, "chars": len(markup)})
    return markup


def _extract_html(analysis_input: AnalysisInput) -> str:
    html = _require_text(analysis_input.content, "HTML is empty")
    return collapse_whitespace(html)


def _extract_pdf(analysis_input: AnalysisInput) -> str:
    data = analysis_input.file_content
    if not data:
        raise EmptyContentError("The uploaded file is empty or missing.")
    if not analysis_input.extract_file_content:
        raise UnsupportedFormatError("PDF analysis requires text extraction to be enabled.")
    return extract_pdf_text(data)


async def extract(analysis_input: AnalysisInput) -> str:
    """Return the normalised text representation of *analysis_input*.

    Raises:
        EmptyContentError: if the required content is missing or blank.
        InvalidInputError: for image inputs, which carry no text.
        FetchError: if the URL cannot be fetched.
        UnsupportedFormatError: if the PDF cannot be decoded.
    """
    if analysis_input.type == AnalysisType.URL:
        return await _extract_url(analysis_input)
    if analysis_input.type == AnalysisType.HTML:
        return _extract_html(analysis_input)
    if analysis_input.type == AnalysisType.PDF:
        return _extract_pdf(analysis_input)
    raise InvalidInputError("Image inputs are analysed by the vision service, not extracted.")


def find_image_urls(markup: str, base_url: str = "", limit: Optional[int] = None) -> List[str]:
    """Return the absolute http(s) sources of ``<img>`` elements in *markup*.

    Relative sources are resolved against *base_url*; duplicates are dropped
    and document order is kept.
    """
    soup = BeautifulSoup(markup, "lxml")
    seen: set = set()
    images: List[str] = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src:
            continue
        abs_url = urljoin(base_url, str(src).strip())
        if urlparse(abs_url).scheme not in ("http", "https"):
            continue
        if abs_url not in seen:
            seen.add(abs_url)
            images.append(abs_url)
        if limit is not None and len(images) >= limit:
            break
    return images

