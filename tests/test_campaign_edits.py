"""
Tests for edit proposals: owner edits are queued for review, admin edits apply immediately
"""
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    CannotEditDeployedError,
    ForbiddenError,
    NotEditableError,
    NotFoundError,
    ReviewNotPendingError,
    ValidationError,
)
from app.models.campaign import CampaignEdit, ReviewStatus
from app.schemas.campaign import EditCampaignRequest

NEW_DEADLINE = datetime(2099, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


async def published(service, make_campaign, admin, creator):
    campaign = await make_campaign()
    await service.approve_campaign(campaign.id, admin)
    await service.publish_campaign(campaign.id, creator, 11)
    return campaign


# ============================================================================
# OWNER EDITS
# ============================================================================

class TestOwnerEdits:

    @pytest.mark.asyncio
    async def test_deadline_edit_waits_for_approval(self, make_campaign, service, creator, admin):
        campaign = await make_campaign()

        submitted = await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2099-01-31"))

        assert submitted.message == "Edit submitted for admin review"
        assert submitted.campaign.deadline == campaign.deadline
        assert len(submitted.campaign.edit_history) == 1
        edit = submitted.campaign.edit_history[0]
        assert edit.status == "pending"
        assert edit.edited_by == creator.wallet_address
        assert set(edit.changes) == {"deadline"}

        applied = await service.approve_edit(campaign.id, edit.id, admin)

        assert applied.message == "Edit approved and applied"
        assert applied.campaign.deadline == NEW_DEADLINE
        record = applied.campaign.edit_history[0]
        assert record.status == "approved"
        assert record.reviewed_by == admin.wallet_address
        assert record.reviewed_at is not None

    @pytest.mark.asyncio
    async def test_content_change_is_previewed_and_reanalyzed(self, make_campaign, service, creator):
        campaign = await make_campaign()

        result = await service.edit_campaign(
            campaign.id, creator, EditCampaignRequest(title="Hi", description="Need money now!!")
        )

        assert result.campaign.title == "Hi"
        assert result.campaign.description == "Need money now!!"
        assert result.campaign.ai_analysis.trust_score < campaign.ai_analysis.trust_score
        assert result.campaign.edit_history[0].changes["title"] == {
            "old": "Community Garden Beds",
            "new": "Hi",
        }

    @pytest.mark.asyncio
    async def test_image_waits_for_approval(self, make_campaign, service, creator):
        campaign = await make_campaign()

        result = await service.edit_campaign(
            campaign.id, creator, EditCampaignRequest(image="https://example.org/new.png")
        )

        assert result.campaign.image == campaign.image
        assert result.campaign.ai_analysis.trust_score == campaign.ai_analysis.trust_score

    @pytest.mark.asyncio
    async def test_no_changes(self, make_campaign, service, creator, db_session):
        campaign = await make_campaign()

        result = await service.edit_campaign(
            campaign.id, creator, EditCampaignRequest(title=campaign.title, target=campaign.target)
        )

        assert result.message == "No changes detected"
        assert db_session.query(CampaignEdit).count() == 0

    @pytest.mark.asyncio
    async def test_stranger_cannot_edit(self, make_campaign, service, other_creator):
        campaign = await make_campaign()

        with pytest.raises(ForbiddenError):
            await service.edit_campaign(campaign.id, other_creator, EditCampaignRequest(title="Mine now"))

    @pytest.mark.asyncio
    async def test_owner_cannot_edit_approved(self, make_campaign, service, creator, admin):
        campaign = await make_campaign()
        await service.approve_campaign(campaign.id, admin)

        with pytest.raises(NotEditableError):
            await service.edit_campaign(campaign.id, creator, EditCampaignRequest(title="Renamed"))

    @pytest.mark.asyncio
    async def test_invalid_values_rejected(self, make_campaign, service, creator):
        campaign = await make_campaign()

        with pytest.raises(ValidationError):
            await service.edit_campaign(campaign.id, creator, EditCampaignRequest(target=0))
        with pytest.raises(ValidationError):
            await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2001-01-01"))


# ============================================================================
# ADMIN EDITS AND DEPLOYED CAMPAIGNS
# ============================================================================

class TestAdminEdits:

    @pytest.mark.asyncio
    async def test_admin_edit_applies_immediately(self, make_campaign, service, admin, db_session):
        campaign = await make_campaign()
        await service.approve_campaign(campaign.id, admin)

        result = await service.edit_campaign(
            campaign.id, admin, EditCampaignRequest(deadline="2099-01-31", image="https://example.org/new.png")
        )

        assert result.message == "Campaign updated successfully"
        assert result.campaign.deadline == NEW_DEADLINE
        assert result.campaign.image == "https://example.org/new.png"
        assert result.campaign.status == "approved"
        assert db_session.query(CampaignEdit).count() == 0

    @pytest.mark.asyncio
    async def test_deployed_campaign_cannot_be_edited(self, make_campaign, service, admin, creator):
        campaign = await published(service, make_campaign, admin, creator)

        for user in (admin, creator):
            with pytest.raises(CannotEditDeployedError):
                await service.edit_campaign(campaign.id, user, EditCampaignRequest(title="Renamed"))

    @pytest.mark.asyncio
    async def test_pending_edit_cannot_be_applied_after_publication(self, make_campaign, service, admin, creator):
        campaign = await make_campaign()
        submitted = await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2099-01-31"))
        edit_id = submitted.campaign.edit_history[0].id
        await service.approve_campaign(campaign.id, admin)
        await service.publish_campaign(campaign.id, creator, 4)

        with pytest.raises(CannotEditDeployedError):
            await service.approve_edit(campaign.id, edit_id, admin)


# ============================================================================
# REVIEWING EDIT PROPOSALS
# ============================================================================

class TestEditReview:

    @pytest.mark.asyncio
    async def test_reject_edit_uses_default_reason(self, make_campaign, service, creator, admin):
        campaign = await make_campaign()
        submitted = await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2099-01-31"))
        edit_id = submitted.campaign.edit_history[0].id

        result = await service.reject_edit(campaign.id, edit_id, admin, None)

        assert result.message == "Edit rejected"
        record = result.campaign.edit_history[0]
        assert record.status == "rejected"
        assert record.rejection_reason == "No reason provided"
        assert result.campaign.deadline == campaign.deadline

    @pytest.mark.asyncio
    async def test_edit_reviewed_once(self, make_campaign, service, creator, admin):
        campaign = await make_campaign()
        submitted = await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2099-01-31"))
        edit_id = submitted.campaign.edit_history[0].id
        await service.reject_edit(campaign.id, edit_id, admin, "Keep the original date")

        with pytest.raises(ReviewNotPendingError):
            await service.approve_edit(campaign.id, edit_id, admin)
        with pytest.raises(ReviewNotPendingError):
            await service.reject_edit(campaign.id, edit_id, admin, "Again")

    @pytest.mark.asyncio
    async def test_edit_must_belong_to_campaign(self, make_campaign, service, creator, admin):
        first = await make_campaign()
        second = await make_campaign(title="Second campaign")
        submitted = await service.edit_campaign(first.id, creator, EditCampaignRequest(deadline="2099-01-31"))
        edit_id = submitted.campaign.edit_history[0].id

        with pytest.raises(NotFoundError, match="Edit not found"):
            await service.approve_edit(second.id, edit_id, admin)

    @pytest.mark.asyncio
    async def test_pending_edits_listing(self, make_campaign, service, creator, admin, db_session):
        campaign = await make_campaign()
        first = await service.edit_campaign(campaign.id, creator, EditCampaignRequest(deadline="2099-01-31"))
        await service.edit_campaign(campaign.id, creator, EditCampaignRequest(image="https://example.org/b.png"))

        pending = await service.list_pending_edits()

        assert len(pending) == 1
        assert pending[0].campaign_id == campaign.id
        assert pending[0].owner == creator.wallet_address
        assert pending[0].edit.id == first.campaign.edit_history[0].id
        assert db_session.query(CampaignEdit).filter(CampaignEdit.status == ReviewStatus.PENDING).count() == 2
