"""PDF text and structure extraction with pypdf.

The reasoning service cannot read binary PDFs, so the document is turned into
a plain-text report: the document-level properties that matter for PDF/UA and
WCAG (title, language, tagging, outline) followed by the text of each page.
"""

import io
import logging
from typing import List

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from wcag_analyzer.services.errors import EmptyContentError, UnsupportedFormatError

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF-"


def _open_reader(data: bytes) -> PdfReader:
    # The header may be preceded by a few junk bytes; readers tolerate up to 1 KB.
    if _PDF_MAGIC not in data[:1024]:
        raise UnsupportedFormatError("The uploaded file is not a PDF document.")

    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise UnsupportedFormatError("The PDF document is encrypted.")
        # Touch the page tree so structural corruption surfaces here.
        len(reader.pages)
    except UnsupportedFormatError:
        raise
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise UnsupportedFormatError(f"The PDF document could not be read: {exc}") from exc
    return reader


def _document_properties(reader: PdfReader) -> List[str]:
    catalog = reader.root_object
    metadata = reader.metadata
    title = (metadata.title if metadata else None) or ""
    language = str(catalog["/Lang"]) if "/Lang" in catalog else ""

    tagged = False
    if "/MarkInfo" in catalog:
        mark_info = catalog["/MarkInfo"]
        tagged = "/Marked" in mark_info and bool(mark_info["/Marked"])
    has_struct_tree = "/StructTreeRoot" in catalog
    has_outline = bool(reader.outline)

    return [
        f"Title: {title or '(none)'}",
        f"Language: {language or '(none)'}",
        f"Tagged: {'yes' if tagged else 'no'}",
        f"Structure tree: {'yes' if has_struct_tree else 'no'}",
        f"Bookmarks: {'yes' if has_outline else 'no'}",
        f"Pages: {len(reader.pages)}",
    ]


def extract_pdf_text(data: bytes) -> str:
    """Return a plain-text accessibility report for the PDF in *data*.

    Raises:
        UnsupportedFormatError: if *data* is not a readable PDF.
        EmptyContentError: if *data* is empty or no page carries text.
    """
    if not data:
        raise EmptyContentError("The uploaded file is empty or missing.")

    reader = _open_reader(data)

    page_blocks: List[str] = []
    for number, page in enumerate(reader.pages, start=1):
        try:
            text = page.extract_text() or ""
        except (PyPdfError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Skipping unreadable PDF page %d: %s", number, exc)
            continue
        text = text.strip()
        if text:
            page_blocks.append(f"--- Page {number} ---\n{text}")

    if not page_blocks:
        raise EmptyContentError("The PDF document contains no extractable text.")

    properties = "\n".join(_document_properties(reader))
    return f"DOCUMENT PROPERTIES\n{properties}\n\nDOCUMENT TEXT\n" + "\n\n".join(page_blocks)
