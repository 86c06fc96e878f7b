from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from enum import Enum
from typing import List, Optional

MAX_LIST_ITEMS = 5


class AnalysisMethod(str, Enum):
    """Provenance of a trust assessment"""
    EXTERNAL_AI = "external-ai"
    RULE_BASED = "rule-based"
    EMPTY_CONTENT = "empty-content"


def clamp_score(score: float) -> int:
    """Round and clamp a trust score to 0-100"""
    return int(min(100, max(0, round(score))))


class TrustAssessment(BaseModel):
    """Trust score bundle attached to a campaign, replaced wholesale on re-analysis"""
    trust_score: int = Field(..., ge=0, le=100)
    risk_factors: List[str] = Field(default_factory=list, max_length=MAX_LIST_ITEMS)
    recommendations: List[str] = Field(default_factory=list, max_length=MAX_LIST_ITEMS)
    sentiment: str = "UNKNOWN"
    analyzed_at: datetime
    analysis_method: AnalysisMethod

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "trustScore": 72,
                "riskFactors": ["Description could be more detailed"],
                "recommendations": ["Add more specific project details"],
                "sentiment": "POSITIVE",
                "analyzedAt": "2026-05-01T10:00:00Z",
                "analysisMethod": "external-ai"
            }
        }
    )

    @field_validator("trust_score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(float(value))

    def to_document(self) -> dict:
        """Serialize for the campaign's JSON column"""
        return self.model_dump(mode="json")


class CreatorProfile(BaseModel):
    """Creator signals available to trust analysis"""
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    has_verified_email: bool = False
