"""Analysis orchestration.

Given an :class:`AnalysisInput`, the analyzer validates it, extracts the
content, optionally gathers image descriptions from the vision delegate,
builds the provider request, submits it through the chat or assistant
delegate, and normalises the answer.  Steps run strictly in sequence; the
analyzer keeps no per-request state, so one instance (and its pooled HTTP
client) serves every request.
"""

import logging
from functools import lru_cache
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from wcag_analyzer.config import Settings, get_settings
from wcag_analyzer.models.analysis_input import AnalysisInput, AnalysisType
from wcag_analyzer.models.analysis_result import AnalysisItem, AnalysisResult, Severity
from wcag_analyzer.services import prompt_builder
from wcag_analyzer.services.errors import (
    AnalysisTimeoutError,
    EmptyContentError,
    InvalidImageError,
    ProviderError,
)
from wcag_analyzer.services.extractor import extract, find_image_urls
from wcag_analyzer.services.prompt_builder import AnalysisMode
from wcag_analyzer.services.reasoning import (
    AssistantReasoningDelegate,
    ChatReasoningDelegate,
    ReasoningDelegate,
)
from wcag_analyzer.services.result_normalizer import normalize
from wcag_analyzer.services.vision import VisionDelegate

logger = logging.getLogger(__name__)

_EMPTY_MESSAGES = {
    AnalysisType.URL: "URL is empty",
    AnalysisType.HTML: "HTML is empty",
    AnalysisType.PDF: "The uploaded file is empty or missing.",
    AnalysisType.IMAGE: "URL is empty",
}


def validate_input(analysis_input: AnalysisInput) -> None:
    """Raise :class:`EmptyContentError` if the content field for the input type is blank."""
    value = analysis_input.primary_content()
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise EmptyContentError(_EMPTY_MESSAGES[analysis_input.type])


class AccessibilityAnalyzer:
    def __init__(
        self,
        vision: VisionDelegate,
        chat: ReasoningDelegate,
        assistant: ReasoningDelegate,
        max_image_descriptions: int = 10,
    ) -> None:
        self._vision = vision
        self._chat = chat
        self._assistant = assistant
        self._max_image_descriptions = max_image_descriptions

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessibilityAnalyzer":
        if not settings.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY is not configured; provider calls will be rejected")

        client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY or "",
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=0,
        )
        return cls(
            vision=VisionDelegate(client, settings.OPENAI_MODEL_VISION),
            chat=ChatReasoningDelegate(client, settings.OPENAI_MODEL_CHAT),
            assistant=AssistantReasoningDelegate(
                client,
                settings.OPENAI_MODEL_CHAT,
                assistant_id=settings.OPENAI_ASSISTANT_ID,
                poll_interval=settings.ASSISTANT_POLL_INTERVAL,
                max_wait=settings.ASSISTANT_MAX_WAIT,
            ),
            max_image_descriptions=settings.MAX_IMAGE_DESCRIPTIONS,
        )

    async def analyze_image(self, url: str) -> List[str]:
        """Return accessibility findings for the image at *url*."""
        if not url or not url.strip():
            raise InvalidImageError("URL is empty")
        return await self._vision.analyze_image(url)

    async def analyze_with_chat(self, analysis_input: AnalysisInput) -> AnalysisResult:
        return await self._analyze(analysis_input, AnalysisMode.CHAT, self._chat)

    async def analyze_with_assistant(self, analysis_input: AnalysisInput) -> AnalysisResult:
        return await self._analyze(analysis_input, AnalysisMode.ASSISTANT, self._assistant)

    async def _analyze(
        self,
        analysis_input: AnalysisInput,
        mode: AnalysisMode,
        delegate: ReasoningDelegate,
    ) -> AnalysisResult:
        validate_input(analysis_input)

        if analysis_input.type == AnalysisType.IMAGE:
            findings = await self.analyze_image(analysis_input.url)
            return AnalysisResult(
                items=[AnalysisItem(severity=Severity.IMPROVEMENT, description=f) for f in findings],
                explanation="Findings reported by the vision service for the image.",
            )

        text = await extract(analysis_input)

        image_findings: Optional[Dict[str, List[str]]] = None
        if analysis_input.get_image_descriptions:
            image_findings = await self._describe_images(text, analysis_input.url or "")

        request = prompt_builder.build(
            text,
            mode,
            want_image_descriptions=analysis_input.get_image_descriptions,
            image_findings=image_findings,
            thread_id=analysis_input.thread_id,
        )
        answer = await delegate.submit(request)
        result = normalize(answer)

        logger.info(
            "Analysis complete",
            extra={
                "type": analysis_input.type.value,
                "mode": mode.value,
                "items": len(result.items),
            },
        )
        return result

    async def _describe_images(self, markup: str, base_url: str) -> Dict[str, List[str]]:
        """Describe every image in *markup*, one vision call at a time.

        Images the vision service cannot handle are logged and left out.
        """
        findings: Dict[str, List[str]] = {}
        for url in find_image_urls(markup, base_url, limit=self._max_image_descriptions):
            try:
                findings[url] = await self._vision.analyze_image(url)
            except (InvalidImageError, ProviderError, AnalysisTimeoutError) as exc:
                logger.warning("Skipping image description for %s – %s", url, exc)
        return findings


@lru_cache
def get_analyzer() -> AccessibilityAnalyzer:
    return AccessibilityAnalyzer.from_settings(get_settings())
