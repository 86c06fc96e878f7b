from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, Float, Enum, ForeignKey, JSON, func
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


class CampaignStatus(enum.Enum):
    """Moderation status of a campaign"""
    PENDING = "pending"  # Submitted, awaiting admin review
    APPROVED = "approved"  # Approved, owner may publish on-chain
    REJECTED = "rejected"  # Rejected by admin, record retained with reason


class ReviewStatus(enum.Enum):
    """Moderation status of an edit proposal or a campaign update"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Campaign(Base):
    """Fundraising campaign moving through the moderation workflow"""
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    on_chain_id = Column(Integer, nullable=True, index=True)
    owner = Column(String, nullable=False, index=True)  # lower-cased wallet address
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    target = Column(Float, nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=False)
    image = Column(String, nullable=False)
    status = Column(Enum(CampaignStatus), nullable=False, default=CampaignStatus.PENDING, index=True)
    rejection_reason = Column(Text, nullable=True)
    ai_analysis = Column(JSON, nullable=True)  # replaced wholesale on re-analysis
    is_deployed = Column(Boolean, nullable=False, default=False, index=True)
    deployed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    edits = relationship(
        "CampaignEdit",
        back_populates="campaign",
        order_by="CampaignEdit.id",
        cascade="all, delete-orphan",
    )
    updates = relationship(
        "CampaignUpdate",
        back_populates="campaign",
        order_by="CampaignUpdate.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Campaign(id={self.id}, title='{self.title}', status='{self.status.value}', is_deployed={self.is_deployed})>"


class CampaignEdit(Base):
    """Edit proposal for a non-deployed campaign, applied only once approved"""
    __tablename__ = "campaign_edits"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    edited_by = Column(String, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=False)
    changes = Column(JSON, nullable=False)  # {field: {"old": value, "new": value}}
    status = Column(Enum(ReviewStatus), nullable=False, default=ReviewStatus.PENDING, index=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    campaign = relationship("Campaign", back_populates="edits")

    def __repr__(self):
        return f"<CampaignEdit(id={self.id}, campaign_id={self.campaign_id}, status='{self.status.value}')>"


class CampaignUpdate(Base):
    """Announcement posted by the owner, auto-approved unless moderated"""
    __tablename__ = "campaign_updates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String, nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image = Column(String, nullable=False, default="")
    video = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(ReviewStatus), nullable=False, default=ReviewStatus.APPROVED, index=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    campaign = relationship("Campaign", back_populates="updates")

    def __repr__(self):
        return f"<CampaignUpdate(id={self.id}, campaign_id={self.campaign_id}, status='{self.status.value}')>"
