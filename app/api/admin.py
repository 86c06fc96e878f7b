from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import get_campaign_service
from app.core.auth import CurrentUser, require_admin
from app.schemas.campaign import (
    ActivityEntry,
    AdminCampaignPage,
    AdminStatsResponse,
    CampaignActionResponse,
    CampaignResponse,
    PendingEditResponse,
    PendingUpdateResponse,
    ReviewDecisionRequest,
)
from app.services.campaign import CampaignService

router = APIRouter(prefix="/admin", tags=["admin"])


def _reason(decision: Optional[ReviewDecisionRequest]) -> Optional[str]:
    return decision.reason if decision else None


@router.get("/campaigns/pending", response_model=List[CampaignResponse])
async def list_pending_campaigns(
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    """Campaigns awaiting review, oldest first"""
    return await service.list_pending_campaigns()


@router.get("/campaigns/pending-edits", response_model=List[PendingEditResponse])
async def list_pending_edits(
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.list_pending_edits()


@router.get("/campaigns", response_model=AdminCampaignPage)
async def list_campaigns(
    status: Optional[str] = Query(None, description="pending, approved, rejected or all"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title, description or owner"),
    sort_by: str = Query("newest", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.list_admin_campaigns(status=status, search=search, sort_by=sort_by, page=page, limit=limit)


@router.post("/campaigns/{campaign_id}/approve", response_model=CampaignActionResponse)
async def approve_campaign(
    campaign_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.approve_campaign(campaign_id, admin)


@router.post("/campaigns/{campaign_id}/reject", response_model=CampaignActionResponse)
async def reject_campaign(
    campaign_id: int,
    decision: Optional[ReviewDecisionRequest] = Body(None),
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.reject_campaign(campaign_id, admin, _reason(decision))


@router.post("/campaigns/{campaign_id}/approve-edit/{edit_id}", response_model=CampaignActionResponse)
async def approve_edit(
    campaign_id: int,
    edit_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.approve_edit(campaign_id, edit_id, admin)


@router.post("/campaigns/{campaign_id}/reject-edit/{edit_id}", response_model=CampaignActionResponse)
async def reject_edit(
    campaign_id: int,
    edit_id: int,
    decision: Optional[ReviewDecisionRequest] = Body(None),
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.reject_edit(campaign_id, edit_id, admin, _reason(decision))


@router.post("/campaigns/{campaign_id}/approve-update/{update_id}", response_model=CampaignActionResponse)
async def approve_campaign_update(
    campaign_id: int,
    update_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.review_update(update_id, admin, "approve", campaign_id=campaign_id)


@router.post("/campaigns/{campaign_id}/reject-update/{update_id}", response_model=CampaignActionResponse)
async def reject_campaign_update(
    campaign_id: int,
    update_id: int,
    decision: Optional[ReviewDecisionRequest] = Body(None),
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.review_update(update_id, admin, "reject", _reason(decision), campaign_id=campaign_id)


@router.get("/updates/pending", response_model=List[PendingUpdateResponse])
async def list_pending_updates(
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.list_pending_updates()


@router.post("/updates/{update_id}/approve", response_model=CampaignActionResponse)
async def approve_update(
    update_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.review_update(update_id, admin, "approve")


@router.post("/updates/{update_id}/reject", response_model=CampaignActionResponse)
async def reject_update(
    update_id: int,
    decision: Optional[ReviewDecisionRequest] = Body(None),
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.review_update(update_id, admin, "reject", _reason(decision))


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.get_stats()


@router.get("/activity", response_model=List[ActivityEntry])
async def get_activity(
    admin: CurrentUser = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    """Twenty most recently changed campaigns"""
    return await service.get_activity()
