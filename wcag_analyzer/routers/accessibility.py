import logging
from typing import Awaitable, List, Optional, Union
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from wcag_analyzer.config import get_settings
from wcag_analyzer.models.analysis_input import AnalysisInput, AnalysisType
from wcag_analyzer.models.analysis_result import AnalysisResult
from wcag_analyzer.models.request import HtmlInput, ImageUrlInput, UrlInput
from wcag_analyzer.models.response import ErrorOutput
from wcag_analyzer.services.analyzer import AccessibilityAnalyzer, get_analyzer
from wcag_analyzer.services.errors import InvalidInputError
from wcag_analyzer.services.storage import BlobStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/api/accessibility", tags=["Accessibility"])

IMAGE_LIMIT = "20/minute"
CHAT_LIMIT = "10/minute"
ASSISTANT_LIMIT = "5/minute"

_ERROR_RESPONSES = {
    400: {"model": ErrorOutput, "description": "Missing or invalid input."},
    500: {"model": ErrorOutput, "description": "Extraction or provider failure."},
}


def get_blob_store() -> Optional[BlobStore]:
    settings = get_settings()
    if not settings.BLOB_STORAGE_DIR:
        return None
    return BlobStore(settings.BLOB_STORAGE_DIR, settings.BLOB_CONTAINER)


def error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorOutput(code=str(status_code), message=message)
    return JSONResponse(status_code=status_code, content=body.to_content())


async def _run(operation: Awaitable, description: str):
    """Await *operation*, mapping failures onto ``ErrorOutput`` responses."""
    try:
        return await operation
    except InvalidInputError as exc:
        logger.warning("Invalid input for %s – %s", description, exc)
        return error_response(400, str(exc))
    except Exception as exc:
        logger.error("Analysis failed for %s: %s", description, exc)
        return error_response(500, str(exc))


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

@router.post(
    "/imageUrl",
    response_model=List[str],
    responses=_ERROR_RESPONSES,
    summary="Analyse an image by URL",
    description=(
        "Sends the image to the vision model and returns a list of findings: "
        "suggested alt text, detected elements, and any text rendered in the image. "
        "The body is either a bare JSON string or `{\"url\": ...}`."
    ),
)
@limiter.limit(IMAGE_LIMIT)
async def analyze_image(
    request: Request,
    body: Union[str, ImageUrlInput, None] = Body(default=None),
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
):
    url = body.url if isinstance(body, ImageUrlInput) else body
    if not url or not url.strip():
        return error_response(400, "URL is empty")

    logger.info("Image analysis request received", extra={"url": url})
    return await _run(analyzer.analyze_image(url), url)


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

def _html_input(body: HtmlInput) -> AnalysisInput:
    return AnalysisInput(
        type=AnalysisType.HTML,
        content=body.html,
        get_image_descriptions=body.get_image_descriptions or False,
    )


@router.post(
    "/htmlWithChat",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Analyse HTML with a single chat completion",
)
@limiter.limit(CHAT_LIMIT)
async def analyze_html_with_chat(
    request: Request,
    body: HtmlInput,
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
):
    if not body.html or not body.html.strip():
        return error_response(400, "HTML is empty")

    logger.info("HTML chat analysis request received", extra={"chars": len(body.html)})
    return await _run(analyzer.analyze_with_chat(_html_input(body)), "inline HTML")


@router.post(
    "/htmlWithAssistant",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Analyse HTML with an assistant run",
)
@limiter.limit(ASSISTANT_LIMIT)
async def analyze_html_with_assistant(
    request: Request,
    body: HtmlInput,
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
):
    if not body.html or not body.html.strip():
        return error_response(400, "HTML is empty")

    logger.info("HTML assistant analysis request received", extra={"chars": len(body.html)})
    return await _run(analyzer.analyze_with_assistant(_html_input(body)), "inline HTML")


# ---------------------------------------------------------------------------
# URL
# ---------------------------------------------------------------------------

def _url_input(body: UrlInput) -> AnalysisInput:
    return AnalysisInput(
        type=AnalysisType.URL,
        url=body.url.strip(),
        extract_url_content=True,
        get_image_descriptions=body.get_image_descriptions or False,
        render_mode=body.render_mode,
    )


@router.post(
    "/urlWithChat",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Fetch a page and analyse it with a single chat completion",
)
@limiter.limit(CHAT_LIMIT)
async def analyze_url_with_chat(
    request: Request,
    body: UrlInput,
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
):
    if not body.url or not body.url.strip():
        return error_response(400, "URL is empty")

    logger.info("URL chat analysis request received", extra={"url": body.url, "render_mode": body.render_mode})
    return await _run(analyzer.analyze_with_chat(_url_input(body)), body.url)


@router.post(
    "/urlWithAssistant",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Fetch a page and analyse it with an assistant run",
)
@limiter.limit(ASSISTANT_LIMIT)
async def analyze_url_with_assistant(
    request: Request,
    body: UrlInput,
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
):
    if not body.url or not body.url.strip():
        return error_response(400, "URL is empty")

    logger.info("URL assistant analysis request received", extra={"url": body.url, "render_mode": body.render_mode})
    return await _run(analyzer.analyze_with_assistant(_url_input(body)), body.url)


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

async def _read_pdf_upload(file: Optional[UploadFile], store: Optional[BlobStore]) -> Optional[AnalysisInput]:
    """Return the analysis input for *file*, or None if the upload is empty."""
    if file is None:
        return None
    data = await file.read()
    if not data:
        return None

    if store is not None:
        name = f"{uuid4().hex}-{file.filename or 'document.pdf'}"
        await run_in_threadpool(store.upload, data, name)

    return AnalysisInput(type=AnalysisType.PDF, file_content=data, extract_file_content=True)


@router.post(
    "/pdfWithChat",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Analyse an uploaded PDF with a single chat completion",
)
@limiter.limit(CHAT_LIMIT)
async def analyze_pdf_with_chat(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
    store: Optional[BlobStore] = Depends(get_blob_store),
):
    analysis_input = await _read_pdf_upload(file, store)
    if analysis_input is None:
        return error_response(400, "The uploaded file is empty or missing.")

    logger.info("PDF chat analysis request received", extra={"upload_name": file.filename})
    return await _run(analyzer.analyze_with_chat(analysis_input), file.filename or "uploaded PDF")


@router.post(
    "/pdfWithAssistant",
    response_model=AnalysisResult,
    responses=_ERROR_RESPONSES,
    summary="Analyse an uploaded PDF with an assistant run",
)
@limiter.limit(ASSISTANT_LIMIT)
async def analyze_pdf_with_assistant(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    analyzer: AccessibilityAnalyzer = Depends(get_analyzer),
    store: Optional[BlobStore] = Depends(get_blob_store),
):
    analysis_input = await _read_pdf_upload(file, store)
    if analysis_input is None:
        return error_response(400, "The uploaded file is empty or missing.")

    logger.info("PDF assistant analysis request received", extra={"upload_name": file.filename})
    return await _run(analyzer.analyze_with_assistant(analysis_input), file.filename or "uploaded PDF")
