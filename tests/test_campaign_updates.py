"""
Tests for campaign updates posted by creators and their moderation
"""
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

import pytest

from app.core.exceptions import ForbiddenError, NotFoundError, ReviewNotPendingError, ValidationError
from app.core.timeutils import utcnow
from app.models.campaign import CampaignUpdate, ReviewStatus
from app.schemas.campaign import PostUpdateRequest


@pytest.fixture
def live_campaign(make_campaign, service, admin, creator):
    async def _live():
        campaign = await make_campaign()
        await service.approve_campaign(campaign.id, admin)
        await service.publish_campaign(campaign.id, creator, 21)
        return campaign

    return _live


@pytest.fixture
def pending_update(db_session):
    """Insert an update awaiting moderation"""
    def _insert(campaign_id: int, author: str) -> CampaignUpdate:
        update = CampaignUpdate(
            campaign_id=campaign_id,
            author=author,
            title="Soil delivered",
            content="Forty bags of compost arrived this morning.",
            created_at=utcnow(),
            status=ReviewStatus.PENDING,
        )
        db_session.add(update)
        db_session.commit()
        db_session.refresh(update)
        return update

    return _insert


class TestPostUpdate:

    @pytest.mark.asyncio
    async def test_owner_posts_approved_update(self, live_campaign, service, creator):
        campaign = await live_campaign()

        result = await service.post_update(
            campaign.id, creator, PostUpdateRequest(title=" Beds built ", content="All twelve beds are in.")
        )

        assert result.message == "Update posted successfully"
        update = result.campaign.updates[0]
        assert update.status == "approved"
        assert update.title == "Beds built"
        assert update.author == creator.wallet_address
        assert update.image == ""
        assert update.video == ""

    @pytest.mark.asyncio
    async def test_only_owner_posts(self, live_campaign, service, admin, other_creator):
        campaign = await live_campaign()

        for user in (admin, other_creator):
            with pytest.raises(ForbiddenError):
                await service.post_update(campaign.id, user, PostUpdateRequest(title="Hi", content="There"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,content", [("", "Body"), ("Title", "   "), (None, None)])
    async def test_title_and_content_required(self, live_campaign, service, creator, title, content):
        campaign = await live_campaign()

        with pytest.raises(ValidationError, match="Title and content are required"):
            await service.post_update(campaign.id, creator, PostUpdateRequest(title=title, content=content))

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, service, creator):
        with pytest.raises(NotFoundError):
            await service.post_update(404, creator, PostUpdateRequest(title="Hi", content="There"))


class TestUpdateVisibility:

    @pytest.mark.asyncio
    async def test_public_sees_only_approved_updates(self, live_campaign, service, creator, pending_update):
        campaign = await live_campaign()
        await service.post_update(campaign.id, creator, PostUpdateRequest(title="Approved", content="Visible"))
        pending_update(campaign.id, creator.wallet_address)

        public_updates = await service.list_updates(campaign.id, None)
        public_campaign = await service.get_campaign(campaign.id, None)
        listed = (await service.list_public_campaigns())[0]

        assert [u.title for u in public_updates] == ["Approved"]
        assert [u.title for u in public_campaign.updates] == ["Approved"]
        assert [u.title for u in listed.updates] == ["Approved"]

    @pytest.mark.asyncio
    async def test_owner_and_admin_see_all_updates(self, live_campaign, service, creator, admin, pending_update):
        campaign = await live_campaign()
        pending_update(campaign.id, creator.wallet_address)

        assert len(await service.list_updates(campaign.id, creator)) == 1
        assert len(await service.list_updates(campaign.id, admin)) == 1


class TestReviewUpdate:

    @pytest.mark.asyncio
    async def test_approve_pending_update(self, live_campaign, service, creator, admin, pending_update):
        campaign = await live_campaign()
        update = pending_update(campaign.id, creator.wallet_address)

        result = await service.review_update(update.id, admin, "approve")

        assert result.message == "Update approved"
        record = result.campaign.updates[0]
        assert record.status == "approved"
        assert record.reviewed_by == admin.wallet_address
        assert len(await service.list_updates(campaign.id, None)) == 1

    @pytest.mark.asyncio
    async def test_reject_pending_update(self, live_campaign, service, creator, admin, pending_update):
        campaign = await live_campaign()
        update = pending_update(campaign.id, creator.wallet_address)

        result = await service.review_update(update.id, admin, "reject", reason="Off topic", campaign_id=campaign.id)

        record = result.campaign.updates[0]
        assert record.status == "rejected"
        assert record.rejection_reason == "Off topic"

    @pytest.mark.asyncio
    async def test_update_reviewed_once(self, live_campaign, service, creator, admin):
        campaign = await live_campaign()
        posted = await service.post_update(campaign.id, creator, PostUpdateRequest(title="Hi", content="There"))

        with pytest.raises(ReviewNotPendingError):
            await service.review_update(posted.campaign.updates[0].id, admin, "reject")

    @pytest.mark.asyncio
    async def test_update_must_belong_to_campaign(self, live_campaign, service, creator, admin, pending_update):
        campaign = await live_campaign()
        update = pending_update(campaign.id, creator.wallet_address)

        with pytest.raises(NotFoundError, match="Update not found"):
            await service.review_update(update.id, admin, "approve", campaign_id=campaign.id + 1)

    @pytest.mark.asyncio
    async def test_pending_updates_listing(self, live_campaign, service, creator, pending_update):
        campaign = await live_campaign()
        update = pending_update(campaign.id, creator.wallet_address)
        await service.post_update(campaign.id, creator, PostUpdateRequest(title="Hi", content="There"))

        pending = await service.list_pending_updates()

        assert [p.update_id for p in pending] == [update.id]
        assert pending[0].campaign_title == campaign.title
        assert pending[0].update.status == "pending"
