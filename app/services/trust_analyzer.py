"""
Rule-based trust analysis.

Deterministic, no I/O, never fails. Used as the fallback when the external AI completion
service is unavailable, and for the creator-profile adjustment applied on top of AI scores.

The score starts at 50 and every signal below adds or subtracts a fixed amount; the result
is clamped to 0-100 and the risk factor / recommendation lists are capped at five entries.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from app.core.timeutils import utcnow
from app.schemas.analysis import (
    AnalysisMethod,
    CreatorProfile,
    MAX_LIST_ITEMS,
    TrustAssessment,
    clamp_score,
)

BASE_SCORE = 50
LOW_TRUST_THRESHOLD = 30
RULE_BASED_SENTIMENT = "ANALYZED"

MILESTONE_KEYWORDS = ("milestone", "phase", "step", "stage", "timeline", "deadline", "schedule")
PROFESSIONAL_KEYWORDS = ("project", "plan", "organization", "team", "goal", "objective", "strategy")
EVIDENCE_KEYWORDS = ("registered", "certified", "licensed", "experience", "track record", "previous", "successful")
VAGUE_KEYWORDS = ("help", "support", "money", "fund", "donate", "need")

GUARANTEE_PATTERN = re.compile(r"(guaranteed|100%|guarantee|promise.*return|risk.free)", re.IGNORECASE)
URGENCY_PATTERN = re.compile(r"(urgent|act now|limited time|don't miss|hurry|immediate|asap)", re.IGNORECASE)
INVESTMENT_PATTERN = re.compile(r"(crypto|bitcoin|ethereum|investment|trading|profit|returns)", re.IGNORECASE)
CHARITABLE_PATTERN = re.compile(r"(charity|non-profit|donation|cause|help|support)", re.IGNORECASE)
PUNCTUATION_RUN = re.compile(r"[!?]{2,}")

EMPTY_CONTENT_SCORE = 20


@dataclass
class _Signals:
    score: int = 0
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def flag(self, delta: int, risk: Optional[str] = None, recommendation: Optional[str] = None):
        self.score += delta
        if risk:
            self.risk_factors.append(risk)
        if recommendation:
            self.recommendations.append(recommendation)


def _count_matches(text: str, keywords) -> int:
    return sum(1 for keyword in keywords if keyword in text)


def _content_signals(title: str, description: str, target: float) -> _Signals:
    signals = _Signals()

    raw_text = f"{title} {description}"
    text = raw_text.lower()
    desc_length = len(description)

    # Positive signals
    if desc_length >= 750:
        signals.flag(15)
    elif desc_length >= 500:
        signals.flag(10)
    elif desc_length >= 250:
        signals.flag(5)

    if 0 < target < 10:
        signals.flag(10)
    elif 10 <= target < 50:
        signals.flag(8)
    elif 50 <= target < 100:
        signals.flag(5)

    if _count_matches(text, MILESTONE_KEYWORDS):
        signals.flag(10)

    professional_count = _count_matches(text, PROFESSIONAL_KEYWORDS)
    if professional_count >= 3:
        signals.flag(10)
    elif professional_count >= 2:
        signals.flag(5)

    if _count_matches(text, EVIDENCE_KEYWORDS):
        signals.flag(10)

    # Red flags
    if GUARANTEE_PATTERN.search(text):
        signals.flag(
            -20,
            "Uses absolute guarantees or unrealistic promises",
            "Avoid promising guaranteed returns; set realistic expectations",
        )

    if URGENCY_PATTERN.search(text):
        signals.flag(
            -15,
            "Uses high-pressure language or urgency tactics",
            "Clarify timelines without resorting to urgency triggers",
        )

    if target > 100:
        signals.flag(
            -15,
            "Funding target exceeds 100 ETH",
            "Consider lowering the goal or explaining why a high target is needed",
        )
    elif target > 50:
        signals.flag(-5)

    if desc_length < 50:
        signals.flag(
            -20,
            "Description is very brief (less than 50 characters)",
            "Add detailed project information to increase transparency",
        )
    elif desc_length < 100:
        signals.flag(
            -15,
            "Description is brief (less than 100 characters)",
            "Add more project details to increase transparency",
        )
    elif desc_length < 200:
        signals.flag(
            -10,
            "Description could be more detailed",
            "Add more specific project details",
        )

    caps_ratio = sum(1 for char in raw_text if char.isupper()) / max(len(raw_text), 1)
    punctuation_runs = len(PUNCTUATION_RUN.findall(raw_text))
    if caps_ratio > 0.3 or punctuation_runs > 2:
        signals.flag(
            -10,
            "Uses excessive capitalization or punctuation",
            "Use professional, clear language",
        )

    if _count_matches(text, VAGUE_KEYWORDS) >= 4 and desc_length < 300:
        signals.flag(
            -10,
            "Description is vague or generic",
            "Add specific project details, goals, and use cases",
        )

    if INVESTMENT_PATTERN.search(text) and not CHARITABLE_PATTERN.search(text):
        signals.flag(
            -15,
            "May be promoting investment rather than a cause",
            "Clarify that this is a donation-based campaign, not an investment",
        )

    if len(title.strip()) < 3:
        signals.flag(
            -10,
            "Campaign title is missing or too short",
            "Add a clear, descriptive title",
        )

    return signals


def creator_signals(profile: Optional[CreatorProfile]) -> _Signals:
    """Score delta, risk factors and recommendations contributed by the creator profile"""
    signals = _Signals()
    if profile is None:
        return signals

    if profile.has_verified_email:
        signals.flag(5)
    else:
        signals.flag(
            0,
            "Creator email not verified",
            "Verify your email address to increase trust",
        )

    bio = (profile.bio or "").strip()
    if len(bio) >= 100:
        signals.flag(5)
    elif len(bio) >= 50:
        signals.flag(3)
    elif len(bio) < 20:
        signals.flag(
            0,
            "Creator profile lacks detailed bio",
            "Add a comprehensive bio to your creator profile",
        )

    if profile.name is not None and len(profile.name.strip()) < 2:
        signals.flag(0, "Creator name appears incomplete")

    return signals


def analyze_rule_based(
    title: Optional[str],
    description: Optional[str],
    target: Optional[float],
    creator_profile: Optional[CreatorProfile] = None,
    analyzed_at: Optional[datetime] = None,
) -> TrustAssessment:
    """Score campaign content (and optionally the creator profile) with fixed heuristics"""
    title = title or ""
    description = description or ""
    try:
        numeric_target = float(target or 0)
    except (TypeError, ValueError):
        numeric_target = 0.0

    content = _content_signals(title, description, numeric_target)
    creator = creator_signals(creator_profile)

    trust_score = clamp_score(BASE_SCORE + content.score + creator.score)
    risk_factors = (content.risk_factors + creator.risk_factors)[:MAX_LIST_ITEMS]
    recommendations = (content.recommendations + creator.recommendations)[:MAX_LIST_ITEMS]

    if trust_score < LOW_TRUST_THRESHOLD and len(recommendations) < MAX_LIST_ITEMS:
        recommendations.append("Consider revising your campaign to address the identified concerns")

    return TrustAssessment(
        trust_score=trust_score,
        risk_factors=risk_factors,
        recommendations=recommendations,
        sentiment=RULE_BASED_SENTIMENT,
        analyzed_at=analyzed_at or utcnow(),
        analysis_method=AnalysisMethod.RULE_BASED,
    )


def apply_creator_adjustment(
    assessment: TrustAssessment, creator_profile: Optional[CreatorProfile]
) -> TrustAssessment:
    """
    Blend a creator-only rule-based pass into an externally produced assessment.

    The pass scores empty content, so its delta from the base score includes the brief
    description and short title penalties, and their risk factors follow the external ones.
    """
    if creator_profile is None:
        return assessment

    creator_pass = analyze_rule_based("", "", 0, creator_profile, analyzed_at=assessment.analyzed_at)
    return assessment.model_copy(
        update={
            "trust_score": clamp_score(assessment.trust_score + creator_pass.trust_score - BASE_SCORE),
            "risk_factors": (assessment.risk_factors + creator_pass.risk_factors)[:MAX_LIST_ITEMS],
            "recommendations": (assessment.recommendations + creator_pass.recommendations)[:MAX_LIST_ITEMS],
        }
    )


def empty_content_assessment(analyzed_at: Optional[datetime] = None) -> TrustAssessment:
    return TrustAssessment(
        trust_score=EMPTY_CONTENT_SCORE,
        risk_factors=["Campaign description is empty"],
        recommendations=["Add a detailed description of your campaign"],
        sentiment="UNKNOWN",
        analyzed_at=analyzed_at or utcnow(),
        analysis_method=AnalysisMethod.EMPTY_CONTENT,
    )


def has_content(title: Optional[str], description: Optional[str]) -> bool:
    return bool((description or "").strip() or (title or "").strip())
