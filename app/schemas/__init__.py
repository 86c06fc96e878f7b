from .analysis import (
    AnalysisMethod,
    CreatorProfile,
    TrustAssessment,
)
from .campaign import (
    CreateCampaignRequest,
    EditCampaignRequest,
    PublishCampaignRequest,
    ReviewDecisionRequest,
    PostUpdateRequest,
    CampaignResponse,
    CampaignActionResponse,
    CampaignListResponse,
    MessageResponse,
)

__all__ = [
    "AnalysisMethod",
    "CreatorProfile",
    "TrustAssessment",
    "CreateCampaignRequest",
    "EditCampaignRequest",
    "PublishCampaignRequest",
    "ReviewDecisionRequest",
    "PostUpdateRequest",
    "CampaignResponse",
    "CampaignActionResponse",
    "CampaignListResponse",
    "MessageResponse",
]
