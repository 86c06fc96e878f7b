import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import CREATOR_TYPE, CurrentUser
from app.core.circuit_breaker import CircuitBreakerError, db_circuit_breaker
from app.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from app.core.state_machine import (
    APPROVE,
    REJECT,
    check_edit_applicable,
    check_editable,
    check_publishable,
    check_review_pending,
    check_transition,
    review_outcome,
)
from app.core.timeutils import ensure_utc, is_future, parse_deadline, utcnow
from app.middleware.metrics import campaign_transitions_total
from app.models.campaign import Campaign, CampaignEdit, CampaignStatus, CampaignUpdate, ReviewStatus
from app.models.user import User
from app.schemas.analysis import CreatorProfile, TrustAssessment
from app.schemas.campaign import (
    ActivityEntry,
    AdminCampaignPage,
    AdminStatsResponse,
    CampaignActionResponse,
    CampaignResponse,
    CreateCampaignRequest,
    EditCampaignRequest,
    EditRecordResponse,
    PendingEditResponse,
    PendingUpdateResponse,
    PostUpdateRequest,
    RiskFactorCount,
    TrustDistribution,
    UpdateRecordResponse,
)
from app.services.analysis import AnalysisPipeline

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = ("title", "description", "target", "deadline", "image")
CONTENT_FIELDS = ("title", "description", "target")
DEFAULT_REJECTION_REASON = "No reason provided"

HIGH_RISK_THRESHOLD = 40
HIGH_TRUST_THRESHOLD = 70
ACTIVITY_LIMIT = 20
TOP_RISK_FACTORS = 5

ADMIN_SORTS = ("newest", "oldest", "highest-trust", "lowest-trust", "highest-target", "lowest-target")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _trust_score(campaign: Campaign) -> Optional[int]:
    score = (campaign.ai_analysis or {}).get("trust_score")
    return score if isinstance(score, (int, float)) else None


def edit_to_response(edit: CampaignEdit) -> EditRecordResponse:
    return EditRecordResponse(
        id=edit.id,
        edited_by=edit.edited_by,
        edited_at=ensure_utc(edit.edited_at),
        changes=edit.changes or {},
        status=edit.status.value,
        reviewed_by=edit.reviewed_by,
        reviewed_at=ensure_utc(edit.reviewed_at),
        rejection_reason=edit.rejection_reason,
    )


def update_to_response(update: CampaignUpdate) -> UpdateRecordResponse:
    return UpdateRecordResponse(
        id=update.id,
        author=update.author,
        title=update.title,
        content=update.content,
        image=update.image or "",
        video=update.video or "",
        created_at=ensure_utc(update.created_at),
        status=update.status.value,
        reviewed_by=update.reviewed_by,
        reviewed_at=ensure_utc(update.reviewed_at),
        rejection_reason=update.rejection_reason,
    )


def campaign_to_response(campaign: Campaign, include_unapproved_updates: bool = True) -> CampaignResponse:
    """Build the wire representation; the public only sees approved updates"""
    updates = campaign.updates
    if not include_unapproved_updates:
        updates = [update for update in updates if update.status == ReviewStatus.APPROVED]

    return CampaignResponse(
        id=campaign.id,
        on_chain_id=campaign.on_chain_id,
        owner=campaign.owner,
        title=campaign.title,
        description=campaign.description,
        target=campaign.target,
        deadline=ensure_utc(campaign.deadline),
        image=campaign.image,
        status=campaign.status.value,
        rejection_reason=campaign.rejection_reason,
        ai_analysis=TrustAssessment.model_validate(campaign.ai_analysis) if campaign.ai_analysis else None,
        edit_history=[edit_to_response(edit) for edit in campaign.edits],
        updates=[update_to_response(update) for update in updates],
        is_deployed=bool(campaign.is_deployed),
        deployed_at=ensure_utc(campaign.deployed_at),
        created_at=ensure_utc(campaign.created_at),
        updated_at=ensure_utc(campaign.updated_at),
    )


def _validate_target(value) -> float:
    try:
        target = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Target must be a number greater than 0.")
    if math.isnan(target) or target <= 0:
        raise ValidationError("Target must be a number greater than 0.")
    return target


def _validate_deadline(value) -> datetime:
    deadline = parse_deadline(value)
    if deadline is None or not is_future(deadline):
        raise ValidationError("Deadline must be a future date.")
    return deadline


def _json_value(value):
    return value.isoformat() if isinstance(value, datetime) else value


def _decode_change(field: str, value):
    if field == "deadline":
        return parse_deadline(value)
    if field == "target":
        return float(value)
    return value


class CampaignService:
    """Campaign lifecycle: submission, moderation, publication, edits and updates"""

    def __init__(self, db: Session, pipeline: AnalysisPipeline):
        self.db = db
        self.pipeline = pipeline

    # ------------------------------------------------------------------ helpers

    async def _run(self, func, *args):
        """Execute a database operation behind the database circuit breaker"""
        try:
            return await db_circuit_breaker.call(func, *args)
        except CircuitBreakerError:
            logger.warning("Circuit breaker open, service temporarily unavailable")
            raise ServiceUnavailableError("Service temporarily unavailable")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database operation failed", error=str(e))
            raise

    async def _get_campaign(self, campaign_id: int) -> Campaign:
        def db_query():
            return self.db.query(Campaign).filter(Campaign.id == campaign_id).first()

        campaign = await self._run(db_query)
        if not campaign:
            logger.warning("Campaign not found", campaign_id=campaign_id)
            raise NotFoundError("Campaign not found")
        return campaign

    async def _lock(self, *instances):
        """Re-read rows under SELECT ... FOR UPDATE so preconditions can be re-checked"""
        def db_lock():
            for instance in instances:
                self.db.refresh(instance, with_for_update=True)

        await self._run(db_lock)

    async def _commit(self, *instances):
        def db_commit():
            self.db.commit()
            for instance in instances:
                self.db.refresh(instance)

        await self._run(db_commit)

    async def _conditional_update(self, campaign: Campaign, criteria, values: Dict) -> int:
        """UPDATE campaigns SET ... WHERE id = ? AND <criteria>; returns the matched row count"""
        values = dict(values)
        values[Campaign.updated_at] = utcnow()

        def db_update():
            rows = (
                self.db.query(Campaign)
                .filter(Campaign.id == campaign.id, *criteria)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(campaign)
            return rows

        return await self._run(db_update)

    async def creator_profile(self, owner: str) -> Optional[CreatorProfile]:
        """Creator signals for trust analysis; only creator accounts carry a profile"""
        def db_query():
            return self.db.query(User).filter(User.wallet_address == owner).first()

        user = await self._run(db_query)
        if not user or user.user_type != CREATOR_TYPE:
            return None
        return CreatorProfile(
            name=user.creator_name,
            email=user.email,
            bio=user.creator_bio,
            has_verified_email=bool(user.email),
        )

    @staticmethod
    def _can_manage(campaign: Campaign, user: Optional[CurrentUser]) -> bool:
        return user is not None and (user.is_admin or campaign.owner == user.wallet_address)

    # ------------------------------------------------------------------ lifecycle

    async def create_campaign(self, user: CurrentUser, request: CreateCampaignRequest) -> CampaignActionResponse:
        if not user.is_creator and not user.is_admin:
            raise ForbiddenError("Only creators can create campaigns. Please sign up as a creator first.")

        fields = (request.title, request.description, request.target, request.deadline, request.image)
        if any(_is_blank(value) for value in fields):
            raise ValidationError("All campaign fields are required.")

        target = _validate_target(request.target)
        deadline = _validate_deadline(request.deadline)

        profile = await self.creator_profile(user.wallet_address)
        assessment = await self.pipeline.analyze_campaign(
            request.title, request.description, target, profile
        )

        now = utcnow()
        campaign = Campaign(
            owner=user.wallet_address,
            title=request.title,
            description=request.description,
            target=target,
            deadline=deadline,
            image=request.image,
            status=CampaignStatus.PENDING,
            ai_analysis=assessment.to_document(),
            is_deployed=False,
            created_at=now,
            updated_at=now,
        )

        def db_create():
            self.db.add(campaign)
            self.db.commit()
            self.db.refresh(campaign)
            return campaign

        await self._run(db_create)
        campaign_transitions_total.labels(transition="create").inc()
        logger.info(
            "Campaign submitted for review",
            campaign_id=campaign.id,
            owner=campaign.owner,
            trust_score=assessment.trust_score,
            analysis_method=assessment.analysis_method.value,
        )
        return CampaignActionResponse(message="Campaign submitted for admin review", campaign=campaign_to_response(campaign))

    async def list_public_campaigns(self) -> List[CampaignResponse]:
        def db_query():
            return (
                self.db.query(Campaign)
                .filter(Campaign.status == CampaignStatus.APPROVED, Campaign.is_deployed.is_(True))
                .order_by(Campaign.created_at.desc(), Campaign.id.desc())
                .all()
            )

        campaigns = await self._run(db_query)
        return [campaign_to_response(c, include_unapproved_updates=False) for c in campaigns]

    async def list_owner_campaigns(self, user: CurrentUser) -> List[CampaignResponse]:
        def db_query():
            return (
                self.db.query(Campaign)
                .filter(Campaign.owner == user.wallet_address)
                .order_by(Campaign.created_at.desc(), Campaign.id.desc())
                .all()
            )

        campaigns = await self._run(db_query)
        return [campaign_to_response(c) for c in campaigns]

    async def get_campaign(self, campaign_id: int, viewer: Optional[CurrentUser] = None) -> CampaignResponse:
        campaign = await self._get_campaign(campaign_id)
        privileged = self._can_manage(campaign, viewer)

        live = campaign.status == CampaignStatus.APPROVED and campaign.is_deployed
        if not live and not privileged:
            raise NotFoundError("Campaign not found")

        return campaign_to_response(campaign, include_unapproved_updates=privileged)

    async def approve_campaign(self, campaign_id: int, admin: CurrentUser) -> CampaignActionResponse:
        campaign = await self._get_campaign(campaign_id)
        check_transition(campaign, APPROVE)

        rows = await self._conditional_update(
            campaign,
            [Campaign.status.in_(APPROVE.sources)],
            {Campaign.status: APPROVE.target, Campaign.rejection_reason: None},
        )
        if not rows:
            check_transition(campaign, APPROVE)
            raise InvalidTransitionError("Campaign was modified concurrently, please retry")

        campaign_transitions_total.labels(transition="approve").inc()
        logger.info("Campaign approved", campaign_id=campaign_id, reviewed_by=admin.wallet_address)
        return CampaignActionResponse(
            message="Campaign approved. Creator can now publish it.",
            campaign=campaign_to_response(campaign),
        )

    async def reject_campaign(self, campaign_id: int, admin: CurrentUser, reason: Optional[str]) -> CampaignActionResponse:
        if _is_blank(reason):
            raise ValidationError("Rejection reason is required")
        reason = reason.strip()

        campaign = await self._get_campaign(campaign_id)
        check_transition(campaign, REJECT)

        rows = await self._conditional_update(
            campaign,
            [Campaign.status.in_(REJECT.sources)],
            {
                Campaign.status: REJECT.target,
                Campaign.rejection_reason: reason,
                Campaign.on_chain_id: None,
            },
        )
        if not rows:
            check_transition(campaign, REJECT)
            raise InvalidTransitionError("Campaign was modified concurrently, please retry")

        campaign_transitions_total.labels(transition="reject").inc()
        logger.info("Campaign rejected", campaign_id=campaign_id, reviewed_by=admin.wallet_address, reason=reason)
        return CampaignActionResponse(message="Campaign rejected", campaign=campaign_to_response(campaign))

    async def publish_campaign(self, campaign_id: int, user: CurrentUser, on_chain_id: Optional[int]) -> CampaignActionResponse:
        campaign = await self._get_campaign(campaign_id)
        if campaign.owner != user.wallet_address:
            raise ForbiddenError("You can only publish your own campaigns")
        check_publishable(campaign)
        if on_chain_id is None:
            raise ValidationError("onChainId is required")

        now = utcnow()
        rows = await self._conditional_update(
            campaign,
            [Campaign.status == CampaignStatus.APPROVED, Campaign.is_deployed.is_(False)],
            {
                Campaign.on_chain_id: on_chain_id,
                Campaign.is_deployed: True,
                Campaign.deployed_at: now,
            },
        )
        if not rows:
            check_publishable(campaign)
            raise InvalidTransitionError("Campaign was modified concurrently, please retry")

        campaign_transitions_total.labels(transition="publish").inc()
        logger.info("Campaign published", campaign_id=campaign_id, on_chain_id=on_chain_id)
        return CampaignActionResponse(message="Campaign published successfully", campaign=campaign_to_response(campaign))

    def _check_deletable(self, campaign: Campaign, user: CurrentUser):
        if campaign.is_deployed:
            raise InvalidTransitionError("Published campaigns cannot be deleted")
        if campaign.status == CampaignStatus.APPROVED and not user.is_admin:
            raise InvalidTransitionError("Approved campaigns cannot be deleted. Contact an admin if needed.")

    async def delete_campaign(self, campaign_id: int, user: CurrentUser) -> None:
        campaign = await self._get_campaign(campaign_id)
        if not self._can_manage(campaign, user):
            raise ForbiddenError("You can only delete your own campaigns")
        self._check_deletable(campaign, user)

        await self._lock(campaign)
        try:
            self._check_deletable(campaign, user)
        except InvalidTransitionError:
            self.db.rollback()
            raise

        def db_delete():
            self.db.delete(campaign)
            self.db.commit()

        await self._run(db_delete)
        campaign_transitions_total.labels(transition="delete").inc()
        logger.info("Campaign deleted", campaign_id=campaign_id, deleted_by=user.wallet_address)

    # ------------------------------------------------------------------ edits

    def _diff(self, campaign: Campaign, request: EditCampaignRequest) -> Tuple[Dict, Dict]:
        """
        Compare the request against the live campaign.

        Returns the JSON change set ``{field: {"old", "new"}}`` and the typed new values.
        """
        changes: Dict[str, Dict[str, Any]] = {}
        new_values: Dict[str, Any] = {}

        def record(field, old, new):
            changes[field] = {"old": _json_value(old), "new": _json_value(new)}
            new_values[field] = new

        if request.title and request.title != campaign.title:
            record("title", campaign.title, request.title)
        if request.description and request.description != campaign.description:
            record("description", campaign.description, request.description)
        if request.target is not None:
            target = _validate_target(request.target)
            if target != campaign.target:
                record("target", campaign.target, target)
        if request.deadline:
            deadline = _validate_deadline(request.deadline)
            current = ensure_utc(campaign.deadline)
            if deadline != current:
                record("deadline", current, deadline)
        if request.image and request.image != campaign.image:
            record("image", campaign.image, request.image)

        return changes, new_values

    async def _reanalyze(self, campaign: Campaign, new_values: Dict) -> TrustAssessment:
        profile = await self.creator_profile(campaign.owner)
        return await self.pipeline.analyze_campaign(
            new_values.get("title", campaign.title),
            new_values.get("description", campaign.description),
            new_values.get("target", campaign.target),
            profile,
        )

    async def edit_campaign(self, campaign_id: int, user: CurrentUser, request: EditCampaignRequest) -> CampaignActionResponse:
        """
        Edit a campaign that has not been published.

        Admin edits are applied immediately. Owner edits are queued as a pending edit record;
        title, description and target are written to the live campaign right away so the
        refreshed trust score can be reviewed, deadline and image wait for approval.
        """
        campaign = await self._get_campaign(campaign_id)
        if not self._can_manage(campaign, user):
            raise ForbiddenError("You can only edit your own campaigns")
        check_editable(campaign, user.is_admin)

        changes, new_values = self._diff(campaign, request)
        if not changes:
            return CampaignActionResponse(message="No changes detected", campaign=campaign_to_response(campaign))

        assessment = None
        if any(field in changes for field in CONTENT_FIELDS):
            assessment = await self._reanalyze(campaign, new_values)

        await self._lock(campaign)
        try:
            check_editable(campaign, user.is_admin)
        except InvalidTransitionError:
            self.db.rollback()
            raise

        if user.is_admin:
            applied = new_values
            message = "Campaign updated successfully"
        else:
            applied = {field: value for field, value in new_values.items() if field in CONTENT_FIELDS}
            message = "Edit submitted for admin review"
            self.db.add(CampaignEdit(
                campaign_id=campaign.id,
                edited_by=user.wallet_address,
                edited_at=utcnow(),
                changes=changes,
                status=ReviewStatus.PENDING,
            ))

        for field, value in applied.items():
            setattr(campaign, field, value)
        if assessment is not None:
            campaign.ai_analysis = assessment.to_document()
        campaign.updated_at = utcnow()

        await self._commit(campaign)
        campaign_transitions_total.labels(transition="admin_edit" if user.is_admin else "edit_submitted").inc()
        logger.info("Campaign edited", campaign_id=campaign_id, fields=sorted(changes), by_admin=user.is_admin)
        return CampaignActionResponse(message=message, campaign=campaign_to_response(campaign))

    async def _get_edit(self, campaign: Campaign, edit_id: int) -> CampaignEdit:
        def db_query():
            return (
                self.db.query(CampaignEdit)
                .filter(CampaignEdit.id == edit_id, CampaignEdit.campaign_id == campaign.id)
                .first()
            )

        edit = await self._run(db_query)
        if not edit:
            raise NotFoundError("Edit not found")
        return edit

    async def approve_edit(self, campaign_id: int, edit_id: int, admin: CurrentUser) -> CampaignActionResponse:
        campaign = await self._get_campaign(campaign_id)
        edit = await self._get_edit(campaign, edit_id)
        check_edit_applicable(campaign, edit)

        new_values = {
            field: _decode_change(field, change.get("new"))
            for field, change in (edit.changes or {}).items()
            if field in EDITABLE_FIELDS
        }

        assessment = None
        if any(field in new_values for field in CONTENT_FIELDS):
            assessment = await self._reanalyze(campaign, new_values)

        await self._lock(campaign, edit)
        try:
            check_edit_applicable(campaign, edit)
        except InvalidTransitionError:
            self.db.rollback()
            raise

        for field, value in new_values.items():
            setattr(campaign, field, value)
        if assessment is not None:
            campaign.ai_analysis = assessment.to_document()
        now = utcnow()
        campaign.updated_at = now
        edit.status = review_outcome("approve")
        edit.reviewed_by = admin.wallet_address
        edit.reviewed_at = now

        await self._commit(campaign)
        campaign_transitions_total.labels(transition="edit_approved").inc()
        logger.info("Edit approved and applied", campaign_id=campaign_id, edit_id=edit_id, fields=sorted(new_values))
        return CampaignActionResponse(message="Edit approved and applied", campaign=campaign_to_response(campaign))

    async def reject_edit(self, campaign_id: int, edit_id: int, admin: CurrentUser, reason: Optional[str]) -> CampaignActionResponse:
        campaign = await self._get_campaign(campaign_id)
        edit = await self._get_edit(campaign, edit_id)
        check_review_pending(edit, "Edit")

        def db_update():
            rows = (
                self.db.query(CampaignEdit)
                .filter(CampaignEdit.id == edit.id, CampaignEdit.status == ReviewStatus.PENDING)
                .update(
                    {
                        CampaignEdit.status: review_outcome("reject"),
                        CampaignEdit.reviewed_by: admin.wallet_address,
                        CampaignEdit.reviewed_at: utcnow(),
                        CampaignEdit.rejection_reason: (reason or "").strip() or DEFAULT_REJECTION_REASON,
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
            self.db.refresh(edit)
            self.db.refresh(campaign)
            return rows

        if not await self._run(db_update):
            check_review_pending(edit, "Edit")

        campaign_transitions_total.labels(transition="edit_rejected").inc()
        logger.info("Edit rejected", campaign_id=campaign_id, edit_id=edit_id)
        return CampaignActionResponse(message="Edit rejected", campaign=campaign_to_response(campaign))

    # ------------------------------------------------------------------ updates

    async def post_update(self, campaign_id: int, user: CurrentUser, request: PostUpdateRequest) -> CampaignActionResponse:
        campaign = await self._get_campaign(campaign_id)
        if campaign.owner != user.wallet_address:
            raise ForbiddenError("You can only post updates to your own campaigns")
        if _is_blank(request.title) or _is_blank(request.content):
            raise ValidationError("Title and content are required")

        update = CampaignUpdate(
            campaign_id=campaign.id,
            author=user.wallet_address,
            title=request.title.strip(),
            content=request.content.strip(),
            image=(request.image or "").strip(),
            video=(request.video or "").strip(),
            created_at=utcnow(),
            status=ReviewStatus.APPROVED,
        )

        def db_create():
            self.db.add(update)
            self.db.commit()
            self.db.refresh(campaign)

        await self._run(db_create)
        campaign_transitions_total.labels(transition="update_posted").inc()
        logger.info("Campaign update posted", campaign_id=campaign_id, update_id=update.id)
        return CampaignActionResponse(message="Update posted successfully", campaign=campaign_to_response(campaign))

    async def list_updates(self, campaign_id: int, viewer: Optional[CurrentUser] = None) -> List[UpdateRecordResponse]:
        campaign = await self._get_campaign(campaign_id)
        updates = campaign.updates
        if not self._can_manage(campaign, viewer):
            updates = [update for update in updates if update.status == ReviewStatus.APPROVED]
        return [update_to_response(update) for update in updates]

    async def _get_update(self, update_id: int, campaign_id: Optional[int]) -> CampaignUpdate:
        def db_query():
            query = self.db.query(CampaignUpdate).filter(CampaignUpdate.id == update_id)
            if campaign_id is not None:
                query = query.filter(CampaignUpdate.campaign_id == campaign_id)
            return query.first()

        update = await self._run(db_query)
        if not update:
            raise NotFoundError("Update not found")
        return update

    async def review_update(
        self,
        update_id: int,
        admin: CurrentUser,
        action: str,
        reason: Optional[str] = None,
        campaign_id: Optional[int] = None,
    ) -> CampaignActionResponse:
        """Approve or reject a pending campaign update"""
        update = await self._get_update(update_id, campaign_id)
        check_review_pending(update, "Update")

        values = {
            CampaignUpdate.status: review_outcome(action),
            CampaignUpdate.reviewed_by: admin.wallet_address,
            CampaignUpdate.reviewed_at: utcnow(),
        }
        if action == "reject":
            values[CampaignUpdate.rejection_reason] = (reason or "").strip() or DEFAULT_REJECTION_REASON

        def db_update():
            rows = (
                self.db.query(CampaignUpdate)
                .filter(CampaignUpdate.id == update.id, CampaignUpdate.status == ReviewStatus.PENDING)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(update)
            return rows

        if not await self._run(db_update):
            check_review_pending(update, "Update")

        campaign = await self._get_campaign(update.campaign_id)
        outcome = "approved" if action == "approve" else "rejected"
        campaign_transitions_total.labels(transition=f"update_{outcome}").inc()
        logger.info(f"Update {outcome}", campaign_id=campaign.id, update_id=update_id)
        return CampaignActionResponse(message=f"Update {outcome}", campaign=campaign_to_response(campaign))

    # ------------------------------------------------------------------ admin queries

    async def list_pending_campaigns(self) -> List[CampaignResponse]:
        def db_query():
            return (
                self.db.query(Campaign)
                .filter(Campaign.status == CampaignStatus.PENDING)
                .order_by(Campaign.created_at.asc(), Campaign.id.asc())
                .all()
            )

        return [campaign_to_response(c) for c in await self._run(db_query)]

    async def list_pending_edits(self) -> List[PendingEditResponse]:
        """Oldest pending edit of every campaign that is not yet published"""
        def db_query():
            return (
                self.db.query(CampaignEdit)
                .join(Campaign, CampaignEdit.campaign_id == Campaign.id)
                .filter(CampaignEdit.status == ReviewStatus.PENDING, Campaign.is_deployed.is_(False))
                .order_by(CampaignEdit.id.asc())
                .all()
            )

        pending: Dict[int, PendingEditResponse] = {}
        for edit in await self._run(db_query):
            if edit.campaign_id in pending:
                continue
            pending[edit.campaign_id] = PendingEditResponse(
                campaign_id=edit.campaign_id,
                campaign_title=edit.campaign.title,
                owner=edit.campaign.owner,
                edit=edit_to_response(edit),
            )
        return list(pending.values())

    async def list_pending_updates(self) -> List[PendingUpdateResponse]:
        def db_query():
            return (
                self.db.query(CampaignUpdate)
                .filter(CampaignUpdate.status == ReviewStatus.PENDING)
                .order_by(CampaignUpdate.id.asc())
                .all()
            )

        return [
            PendingUpdateResponse(
                update_id=update.id,
                campaign_id=update.campaign_id,
                campaign_title=update.campaign.title,
                owner=update.campaign.owner,
                update=update_to_response(update),
            )
            for update in await self._run(db_query)
        ]

    async def list_admin_campaigns(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "newest",
        page: int = 1,
        limit: int = 20,
    ) -> AdminCampaignPage:
        if sort_by not in ADMIN_SORTS:
            sort_by = "newest"

        status_filter = None
        if status and status != "all":
            try:
                status_filter = CampaignStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown campaign status: {status}")

        def db_query():
            query = self.db.query(Campaign)
            if status_filter is not None:
                query = query.filter(Campaign.status == status_filter)
            if search:
                pattern = f"%{search}%"
                query = query.filter(or_(
                    Campaign.title.ilike(pattern),
                    Campaign.description.ilike(pattern),
                    Campaign.owner.ilike(pattern),
                ))

            total = query.count()
            if sort_by.endswith("-trust"):
                # Trust score lives in the analysis document, so these orderings are applied in Python
                rows = sorted(
                    query.all(),
                    key=lambda c: _trust_score(c) if _trust_score(c) is not None else -1,
                    reverse=sort_by == "highest-trust",
                )
                return total, rows[(page - 1) * limit:page * limit]

            order = {
                "newest": (Campaign.created_at.desc(), Campaign.id.desc()),
                "oldest": (Campaign.created_at.asc(), Campaign.id.asc()),
                "highest-target": (Campaign.target.desc(), Campaign.id.desc()),
                "lowest-target": (Campaign.target.asc(), Campaign.id.asc()),
            }[sort_by]
            rows = query.order_by(*order).offset((page - 1) * limit).limit(limit).all()
            return total, rows

        total, campaigns = await self._run(db_query)
        return AdminCampaignPage(
            campaigns=[campaign_to_response(c) for c in campaigns],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
        )

    async def get_stats(self) -> AdminStatsResponse:
        campaigns = await self._run(lambda: self.db.query(Campaign).all())

        counts = {status: 0 for status in CampaignStatus}
        for campaign in campaigns:
            counts[campaign.status] += 1
        total = len(campaigns)

        scores = [score for score in (_trust_score(c) for c in campaigns) if score is not None]
        average = _round_half_up(sum(scores) / len(scores)) if scores else 0

        risk_counts: Dict[str, int] = {}
        for campaign in campaigns:
            for factor in (campaign.ai_analysis or {}).get("risk_factors") or []:
                risk_counts[factor] = risk_counts.get(factor, 0) + 1
        top_factors = sorted(risk_counts.items(), key=lambda item: item[1], reverse=True)[:TOP_RISK_FACTORS]

        def rate(count: int) -> int:
            return _round_half_up(count / total * 100) if total else 0

        return AdminStatsResponse(
            total_campaigns=total,
            pending_campaigns=counts[CampaignStatus.PENDING],
            approved_campaigns=counts[CampaignStatus.APPROVED],
            rejected_campaigns=counts[CampaignStatus.REJECTED],
            deployed_campaigns=sum(1 for c in campaigns if c.is_deployed),
            average_trust_score=average,
            high_risk_campaigns=sum(1 for s in scores if s < HIGH_RISK_THRESHOLD),
            approval_rate=rate(counts[CampaignStatus.APPROVED]),
            rejection_rate=rate(counts[CampaignStatus.REJECTED]),
            top_risk_factors=[RiskFactorCount(factor=f, count=n) for f, n in top_factors],
            trust_distribution=TrustDistribution(
                low=sum(1 for s in scores if s < HIGH_RISK_THRESHOLD),
                medium=sum(1 for s in scores if HIGH_RISK_THRESHOLD <= s < HIGH_TRUST_THRESHOLD),
                high=sum(1 for s in scores if s >= HIGH_TRUST_THRESHOLD),
            ),
        )

    async def get_activity(self) -> List[ActivityEntry]:
        def db_query():
            return (
                self.db.query(Campaign)
                .order_by(Campaign.updated_at.desc(), Campaign.id.desc())
                .limit(ACTIVITY_LIMIT)
                .all()
            )

        entries = []
        for campaign in await self._run(db_query):
            if campaign.status == CampaignStatus.PENDING:
                action = "submitted"
                description = f'Campaign "{campaign.title}" was submitted for review'
            elif campaign.status == CampaignStatus.APPROVED:
                action = "approved"
                suffix = " and published" if campaign.is_deployed else ""
                description = f'Campaign "{campaign.title}" was approved{suffix}'
            else:
                action = "rejected"
                reason = f": {campaign.rejection_reason}" if campaign.rejection_reason else ""
                description = f'Campaign "{campaign.title}" was rejected{reason}'

            entries.append(ActivityEntry(
                id=campaign.id,
                type=action,
                description=description,
                campaign_title=campaign.title,
                owner=campaign.owner,
                timestamp=ensure_utc(campaign.updated_at or campaign.created_at),
            ))
        return entries
