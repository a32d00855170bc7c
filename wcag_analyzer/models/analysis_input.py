from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, model_validator


class AnalysisType(str, Enum):
    URL = "URL"
    HTML = "HTML"
    PDF = "PDF"
    IMAGE = "Image"


# Content-bearing field owned by each analysis type
_CONTENT_FIELDS = {
    AnalysisType.URL: "url",
    AnalysisType.HTML: "content",
    AnalysisType.PDF: "file_content",
    AnalysisType.IMAGE: "url",
}


class AnalysisInput(BaseModel):
    """One unit of work for the analyzer.

    Exactly one content-bearing field is populated, selected by ``type``.
    The field may still be empty here: emptiness is reported by the analyzer
    as an :class:`~wcag_analyzer.services.errors.EmptyContentError` before
    any provider call is made.
    """

    type: AnalysisType
    url: Optional[str] = None
    content: Optional[str] = None
    file_content: Optional[bytes] = None
    extract_url_content: bool = False
    extract_file_content: bool = False
    get_image_descriptions: bool = False
    render_mode: Literal["http", "browser"] = "http"
    thread_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_single_content_field(self) -> "AnalysisInput":
        owned = _CONTENT_FIELDS[self.type]
        for name in ("url", "content", "file_content"):
            if name != owned and getattr(self, name) is not None:
                raise ValueError(f"'{name}' is not allowed for analysis type {self.type.value}.")
        return self

    def primary_content(self) -> str | bytes | None:
        """Return the value of the content-bearing field for ``type``."""
        return getattr(self, _CONTENT_FIELDS[self.type])
