from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from app.schemas.analysis import TrustAssessment


class CamelModel(BaseModel):
    """Base schema exposing camelCase names on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CreateCampaignRequest(CamelModel):
    """Request schema for submitting a campaign; completeness is checked by the service"""
    title: Optional[str] = Field(None, description="Campaign title")
    description: Optional[str] = Field(None, description="Campaign description")
    target: Optional[float] = Field(None, description="Funding target, must be greater than 0")
    deadline: Optional[Union[datetime, str]] = Field(
        None, description="ISO instant or YYYY-MM-DD (end of that day, UTC); must be in the future"
    )
    image: Optional[str] = Field(None, description="Campaign image URI")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Community Library Renovation",
                "description": "Our team plans to renovate the local library in three phases...",
                "target": 12.5,
                "deadline": "2027-03-31",
                "image": "https://example.com/library.png"
            }
        }
    )


class EditCampaignRequest(CamelModel):
    """Request schema for editing a campaign; only fields that differ are recorded"""
    title: Optional[str] = Field(None, description="New campaign title")
    description: Optional[str] = Field(None, description="New campaign description")
    target: Optional[float] = Field(None, description="New funding target")
    deadline: Optional[Union[datetime, str]] = Field(None, description="New deadline")
    image: Optional[str] = Field(None, description="New image URI")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "deadline": "2027-04-30"
            }
        }
    )


class PublishCampaignRequest(CamelModel):
    """Request schema for recording the on-chain publication of an approved campaign"""
    on_chain_id: Optional[int] = Field(None, ge=0, description="Id assigned by the campaign contract")

    model_config = ConfigDict(json_schema_extra={"example": {"onChainId": 7}})


class ReviewDecisionRequest(CamelModel):
    """Request schema for admin rejections"""
    reason: Optional[str] = Field(None, description="Reason shown to the creator")

    model_config = ConfigDict(json_schema_extra={"example": {"reason": "Target is not justified"}})


class PostUpdateRequest(CamelModel):
    """Request schema for posting a campaign update"""
    title: Optional[str] = Field(None, description="Update title")
    content: Optional[str] = Field(None, description="Update body")
    image: Optional[str] = Field(None, description="Optional image URL")
    video: Optional[str] = Field(None, description="Optional video URL or embed link")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Phase one complete",
                "content": "Shelving is installed and the reading room reopens next week."
            }
        }
    )


class EditRecordResponse(CamelModel):
    id: int
    edited_by: str
    edited_at: datetime
    changes: Dict[str, Dict[str, Any]]
    status: str
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class UpdateRecordResponse(CamelModel):
    id: int
    author: str
    title: str
    content: str
    image: str = ""
    video: str = ""
    created_at: datetime
    status: str
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class CampaignResponse(CamelModel):
    """Response schema for campaign data"""
    id: int
    on_chain_id: Optional[int] = None
    owner: str
    title: str
    description: str
    target: float
    deadline: datetime
    image: str
    status: str
    rejection_reason: Optional[str] = None
    ai_analysis: Optional[TrustAssessment] = None
    edit_history: List[EditRecordResponse] = Field(default_factory=list)
    updates: List[UpdateRecordResponse] = Field(default_factory=list)
    is_deployed: bool
    deployed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CampaignActionResponse(CamelModel):
    """Outcome of a state-changing operation"""
    message: str
    campaign: CampaignResponse


class CampaignListResponse(CamelModel):
    """Response schema for list of campaigns"""
    campaigns: List[CampaignResponse]
    total: int


class AdminCampaignPage(CamelModel):
    campaigns: List[CampaignResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class PendingEditResponse(CamelModel):
    campaign_id: int
    campaign_title: str
    owner: str
    edit: EditRecordResponse


class PendingUpdateResponse(CamelModel):
    update_id: int
    campaign_id: int
    campaign_title: str
    owner: str
    update: UpdateRecordResponse


class RiskFactorCount(CamelModel):
    factor: str
    count: int


class TrustDistribution(CamelModel):
    low: int
    medium: int
    high: int


class AdminStatsResponse(CamelModel):
    total_campaigns: int
    pending_campaigns: int
    approved_campaigns: int
    rejected_campaigns: int
    deployed_campaigns: int
    average_trust_score: int
    high_risk_campaigns: int
    approval_rate: int
    rejection_rate: int
    top_risk_factors: List[RiskFactorCount]
    trust_distribution: TrustDistribution


class ActivityEntry(CamelModel):
    id: int
    type: str
    description: str
    campaign_title: str
    owner: str
    timestamp: datetime


class MessageResponse(CamelModel):
    message: str
