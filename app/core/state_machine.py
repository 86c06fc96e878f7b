"""
Transition table for campaigns, edit proposals and campaign updates.

Every status precondition of the lifecycle lives here; the service layer calls these checks
before it mutates anything, and reuses the source states as the WHERE clause of its
conditional updates.
"""
from dataclasses import dataclass
from typing import Tuple

from app.core.exceptions import (
    AlreadyApprovedError,
    AlreadyDeployedError,
    CannotEditDeployedError,
    InvalidTransitionError,
    NotApprovedError,
    NotEditableError,
    ReviewNotPendingError,
)
from app.models.campaign import Campaign, CampaignStatus, ReviewStatus


@dataclass(frozen=True)
class Transition:
    name: str
    sources: Tuple[CampaignStatus, ...]
    target: CampaignStatus


APPROVE = Transition("approve", (CampaignStatus.PENDING,), CampaignStatus.APPROVED)
REJECT = Transition("reject", (CampaignStatus.PENDING,), CampaignStatus.REJECTED)

REVIEW_OUTCOMES = {
    "approve": ReviewStatus.APPROVED,
    "reject": ReviewStatus.REJECTED,
}


def check_transition(campaign: Campaign, transition: Transition):
    """Raise the precise error when ``transition`` is not allowed from the campaign's status"""
    if campaign.status in transition.sources:
        return
    if transition is APPROVE and campaign.status == CampaignStatus.APPROVED:
        raise AlreadyApprovedError("Campaign is already approved.")
    raise InvalidTransitionError(
        f"Cannot {transition.name} a campaign that is {campaign.status.value}"
    )


def check_publishable(campaign: Campaign):
    if campaign.status != CampaignStatus.APPROVED:
        raise NotApprovedError("Only approved campaigns can be published")
    if campaign.is_deployed:
        raise AlreadyDeployedError("Campaign is already published")


def check_editable(campaign: Campaign, is_admin: bool):
    if campaign.is_deployed:
        raise CannotEditDeployedError("Cannot edit deployed campaigns. Use campaign updates instead.")
    if not is_admin and campaign.status != CampaignStatus.PENDING:
        raise NotEditableError("Only pending campaigns can be edited")


def check_review_pending(record, kind: str):
    """Edit proposals and updates are reviewed exactly once"""
    if record.status != ReviewStatus.PENDING:
        raise ReviewNotPendingError(f"{kind} is not pending")


def check_edit_applicable(campaign: Campaign, edit):
    if campaign.is_deployed:
        raise CannotEditDeployedError("Cannot approve edits for deployed campaigns")
    check_review_pending(edit, "Edit")


def review_outcome(action: str) -> ReviewStatus:
    return REVIEW_OUTCOMES[action]
