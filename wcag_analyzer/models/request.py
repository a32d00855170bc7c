from typing import Literal, Optional

from pydantic import BaseModel, Field


class HtmlInput(BaseModel):
    html: Optional[str] = None
    get_image_descriptions: Optional[bool] = Field(
        default=None,
        alias="getImageDescriptions",
        description="Describe every image with the vision model and use the result as evidence.",
    )

    model_config = {"populate_by_name": True}


class UrlInput(BaseModel):
    url: Optional[str] = None
    get_image_descriptions: Optional[bool] = Field(
        default=None,
        alias="getImageDescriptions",
        description="Describe every image with the vision model and use the result as evidence.",
    )
    render_mode: Literal["http", "browser"] = Field(
        default="http",
        alias="renderMode",
    )
    """How the target page is fetched.

    ``"http"`` (default)
        Plain HTTP request.  Fastest; client-side rendered content is missed.

    ``"browser"``
        Render the page in headless Chromium first.  Required for SPAs whose
        markup only exists after JavaScript runs.
    """

    model_config = {"populate_by_name": True}


class ImageUrlInput(BaseModel):
    url: Optional[str] = None
