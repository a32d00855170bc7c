from pydantic import BaseModel, Field


class ErrorOutput(BaseModel):
    """Uniform error body returned by every endpoint."""

    code: str = Field(serialization_alias="Code")
    message: str = Field(serialization_alias="Message")

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True)
