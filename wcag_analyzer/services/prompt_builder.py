"""Assembles the instruction and content payload sent to the reasoning service."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from wcag_analyzer.services.errors import EmptyContentError


class AnalysisMode(str, Enum):
    CHAT = "chat"
    ASSISTANT = "assistant"


SYSTEM_INSTRUCTION = (
    "You are a senior digital accessibility auditor. Evaluate the content supplied by the user "
    "against the Web Content Accessibility Guidelines (WCAG) 2.2, levels A and AA.\n\n"
    "The content is one of: sanitised HTML markup (scripts and styles removed, accessibility "
    "attributes kept), a page URL, or a text report extracted from a PDF document.\n\n"
    "Report every accessibility issue you find, in the order it appears in the content. "
    "For each issue give:\n"
    "- severity: exactly one of Critical, High, Medium, Low, Improvement\n"
    "  (Critical/High block access for some users, Medium makes access difficult, "
    "Low is a minor nuisance, Improvement is a best-practice suggestion)\n"
    "- description: what is wrong and which WCAG success criterion it fails\n"
    "- recommendation: the concrete fix\n"
    "- location: a CSS selector, element, page number, or region, or null if not applicable\n\n"
    "Finish with an explanation: a short overall summary of the accessibility of the content.\n\n"
    "Respond with ONLY valid JSON matching this exact structure:\n"
    '{"items": [{"severity": "string", "description": "string", '
    '"recommendation": "string", "location": "string or null"}], '
    '"explanation": "string"}\n'
    "If the content has no accessibility issues, return an empty items list and say so in "
    "the explanation. Do not include any text before or after the JSON."
)

IMAGE_INSTRUCTION = (
    "\n\nThe user message also contains an 'IMAGE DESCRIPTIONS' section produced by a vision "
    "model for the images referenced in the content. Use it as evidence: compare every image's "
    "alt text with its description, report missing, empty, or misleading alt text, and report "
    "images of text. Quote the suggested description in the recommendation when alt text is "
    "missing or inadequate."
)


@dataclass(frozen=True)
class ProviderRequest:
    """Payload for one reasoning-service exchange."""

    system_instruction: str
    user_content: str
    mode: AnalysisMode
    thread_id: Optional[str] = None


def _format_image_evidence(image_findings: Dict[str, List[str]]) -> str:
    if not image_findings:
        return "IMAGE DESCRIPTIONS\nNo image descriptions could be obtained for this content."

    lines = ["IMAGE DESCRIPTIONS"]
    for url, findings in image_findings.items():
        lines.append(f"Image: {url}")
        lines.extend(f"- {finding}" for finding in findings)
    return "\n".join(lines)


def build(
    extracted_text: str,
    mode: AnalysisMode,
    want_image_descriptions: bool = False,
    image_findings: Optional[Dict[str, List[str]]] = None,
    thread_id: Optional[str] = None,
) -> ProviderRequest:
    """Return the :class:`ProviderRequest` for *extracted_text*.

    *image_findings* maps image URLs to the vision findings gathered for them
    before this call; it is only used when *want_image_descriptions* is set.

    Raises:
        EmptyContentError: if *extracted_text* is blank.
    """
    if not extracted_text or not extracted_text.strip():
        raise EmptyContentError("There is no content to analyse.")

    system_instruction = SYSTEM_INSTRUCTION
    user_content = f"CONTENT TO EVALUATE\n{extracted_text.strip()}"

    if want_image_descriptions:
        system_instruction += IMAGE_INSTRUCTION
        user_content += "\n\n" + _format_image_evidence(image_findings or {})

    return ProviderRequest(
        system_instruction=system_instruction,
        user_content=user_content,
        mode=mode,
        thread_id=thread_id if mode == AnalysisMode.ASSISTANT else None,
    )
