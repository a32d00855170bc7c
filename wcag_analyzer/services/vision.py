"""Vision delegate: image accessibility findings from a vision-capable model."""

import json
import logging
from typing import Any, Dict, List
from urllib.parse import urlparse

import openai
from openai import AsyncOpenAI

from wcag_analyzer.services.errors import AnalysisTimeoutError, InvalidImageError, ProviderError

logger = logging.getLogger(__name__)

VISION_INSTRUCTION = (
    "You describe images for accessibility audits. Look at the image and respond with ONLY "
    "valid JSON matching this exact structure:\n"
    '{"captions": [{"text": "string", "confidence": number (0-1)}], '
    '"tags": ["string"], "detectedText": ["string"]}\n'
    "captions: one or more short descriptions suitable as alt text, best first.\n"
    "tags: the objects, people, and scene elements visible in the image.\n"
    "detectedText: every line of readable text in the image, in reading order; "
    "an empty list if there is none."
)


def validate_image_url(url: str) -> str:
    """Return *url* stripped, or raise :class:`InvalidImageError`."""
    if not url or not url.strip():
        raise InvalidImageError("URL is empty")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidImageError(f"'{url}' is not a valid absolute http(s) image URL.")
    return url


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def map_findings(payload: Dict[str, Any]) -> List[str]:
    """Flatten a ``{captions, tags, detectedText}`` payload into finding strings.

    Provider ordering is kept: captions first, then tags, then detected text.
    """
    findings: List[str] = []

    for caption in _as_list(payload.get("captions")):
        if isinstance(caption, dict):
            text = str(caption.get("text") or "").strip()
            confidence = caption.get("confidence")
        else:
            text, confidence = str(caption).strip(), None
        if not text:
            continue
        if isinstance(confidence, (int, float)):
            findings.append(f'Suggested alt text: "{text}" (confidence {confidence:.2f})')
        else:
            findings.append(f'Suggested alt text: "{text}"')

    has_caption = bool(findings)

    tags = [str(tag).strip() for tag in _as_list(payload.get("tags")) if str(tag).strip()]
    if tags:
        findings.append("Detected elements: " + ", ".join(tags))

    detected = [str(line).strip() for line in _as_list(payload.get("detectedText")) if str(line).strip()]
    for line in detected:
        findings.append(
            f'Image contains text "{line}": make sure the same text is available in the alt '
            "text or surrounding content (WCAG 1.4.5 Images of Text)."
        )

    if not has_caption and not detected:
        findings.append(
            "No description could be generated for the image; provide alt text manually "
            "(WCAG 1.1.1 Non-text Content)."
        )

    return findings


class VisionDelegate:
    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def analyze_image(self, url: str) -> List[str]:
        """Describe the image at *url* and return accessibility findings.

        Raises:
            InvalidImageError: if *url* is empty or malformed (nothing is sent).
            AnalysisTimeoutError: if the vision call times out.
            ProviderError: if the vision service rejects the request.
        """
        url = validate_image_url(url)
        logger.info("Vision request", extra={"image_url": url})

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": VISION_INSTRUCTION},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": "Describe this image."},
                            {"type": "image_url", "image_url": {"url": url}},
                        ],
                    },
                ],
                response_format={"type": "json_object"},
                temperature=0,
            )
        except openai.APITimeoutError as exc:
            logger.error("Vision request timed out for %s", url)
            raise AnalysisTimeoutError("The vision service timed out.") from exc
        except openai.APIError as exc:
            logger.error("Vision request failed for %s: %s", url, exc)
            raise ProviderError(f"Vision service error: {exc}") from exc

        if not completion.choices:
            raise ProviderError("The vision service returned no choices.")
        response_text = completion.choices[0].message.content or ""
        try:
            payload = json.loads(response_text)
        except json.JSONDecodeError as exc:
            raise ProviderError("The vision service returned malformed JSON.") from exc
        if not isinstance(payload, dict):
            raise ProviderError("The vision service returned an unexpected payload.")

        return map_findings(payload)
