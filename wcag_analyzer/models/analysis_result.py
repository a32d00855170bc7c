from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Finding severity, declared from most to least urgent."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    IMPROVEMENT = "Improvement"


class AnalysisItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity
    description: str
    recommendation: str = ""
    location: Optional[str] = None


class AnalysisResult(BaseModel):
    items: List[AnalysisItem] = Field(default_factory=list)
    """Findings in the order the reasoning service reported them."""

    explanation: str = ""
