from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_campaign_service
from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.schemas.campaign import (
    CampaignActionResponse,
    CampaignListResponse,
    CampaignResponse,
    CreateCampaignRequest,
    EditCampaignRequest,
    MessageResponse,
    PostUpdateRequest,
    PublishCampaignRequest,
    UpdateRecordResponse,
)
from app.services.campaign import CampaignService

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.post("", response_model=CampaignActionResponse, status_code=201)
async def create_campaign(
    campaign_data: CreateCampaignRequest,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    """Submit a campaign for admin review"""
    return await service.create_campaign(user, campaign_data)


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(service: CampaignService = Depends(get_campaign_service)):
    """Approved and published campaigns, newest first"""
    campaigns = await service.list_public_campaigns()
    return CampaignListResponse(campaigns=campaigns, total=len(campaigns))


# Declared before /{campaign_id} so the literal path wins
@router.get("/my-campaigns", response_model=CampaignListResponse)
async def list_my_campaigns(
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    campaigns = await service.list_owner_campaigns(user)
    return CampaignListResponse(campaigns=campaigns, total=len(campaigns))


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: int,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.get_campaign(campaign_id, viewer)


@router.put("/{campaign_id}", response_model=CampaignActionResponse)
async def edit_campaign(
    campaign_id: int,
    campaign_data: EditCampaignRequest,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    """Edit a campaign; owner edits are queued for admin approval"""
    return await service.edit_campaign(campaign_id, user, campaign_data)


@router.delete("/{campaign_id}", response_model=MessageResponse)
async def delete_campaign(
    campaign_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    await service.delete_campaign(campaign_id, user)
    return MessageResponse(message="Campaign deleted successfully")


@router.post("/{campaign_id}/updates", response_model=CampaignActionResponse, status_code=201)
async def post_update(
    campaign_id: int,
    update_data: PostUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.post_update(campaign_id, user, update_data)


@router.get("/{campaign_id}/updates", response_model=List[UpdateRecordResponse])
async def list_updates(
    campaign_id: int,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    service: CampaignService = Depends(get_campaign_service),
):
    """Approved updates; owner and admin also see pending and rejected ones"""
    return await service.list_updates(campaign_id, viewer)


@router.post("/{campaign_id}/publish", response_model=CampaignActionResponse)
async def publish_campaign(
    campaign_id: int,
    publish_data: PublishCampaignRequest,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    """Record the on-chain id of an approved campaign"""
    return await service.publish_campaign(campaign_id, user, publish_data.on_chain_id)
