"""
Campaign trust analysis pipeline.

Flow for every campaign submission or content edit:

1. empty title and description -> fixed low-trust assessment (no cache, no AI call)
2. content fingerprint found in the cache -> cached assessment
3. external AI completion service, bounded by a timeout -> decoded assessment, cached
4. any AI failure -> rule-based analysis, cached

Cached assessments never include creator signals; the creator profile is applied on the way
out, so two creators submitting identical content each get their own adjustment.

``analyze_campaign`` never raises; every AI failure ends in the rule-based result.
"""
import asyncio
import math
from datetime import timedelta
from functools import lru_cache
from typing import Any, List, Optional

import structlog

from app.cache.analysis_cache import (
    AnalysisCache,
    InMemoryAnalysisCache,
    RedisAnalysisCache,
    make_fingerprint,
)
from app.core.config import Settings, get_settings
from app.core.exceptions import DependencyUnavailableError
from app.core.timeutils import utcnow
from app.middleware.metrics import ai_dependency_failures_total, trust_analysis_total
from app.middleware.tracing import get_tracer
from app.schemas.analysis import (
    AnalysisMethod,
    CreatorProfile,
    MAX_LIST_ITEMS,
    TrustAssessment,
    clamp_score,
)
from app.services.completion_client import AICompletionService, ChatCompletionClient
from app.services.trust_analyzer import (
    BASE_SCORE,
    analyze_rule_based,
    apply_creator_adjustment,
    empty_content_assessment,
    has_content,
)

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

DEFAULT_SENTIMENT = "NEUTRAL"


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool):
        return BASE_SCORE
    try:
        score = float(value)
    except (TypeError, ValueError):
        return BASE_SCORE
    if math.isnan(score) or math.isinf(score):
        return BASE_SCORE
    return clamp_score(score)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value[:MAX_LIST_ITEMS] if isinstance(item, str)]


def decode_assessment(payload: Any) -> TrustAssessment:
    """
    Decode an AI completion payload into a trust assessment.

    Fields that fail validation fall back to defaults; only a payload that is not a JSON
    object at all is rejected.

    Raises:
        DependencyUnavailableError: payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise DependencyUnavailableError("malformed", f"expected JSON object, got {type(payload).__name__}")

    sentiment = payload.get("sentiment")
    if not isinstance(sentiment, str) or not sentiment.strip():
        sentiment = DEFAULT_SENTIMENT

    return TrustAssessment(
        trust_score=_coerce_score(payload.get("trustScore")),
        risk_factors=_string_list(payload.get("riskFactors")),
        recommendations=_string_list(payload.get("recommendations")),
        sentiment=sentiment.strip().upper(),
        analyzed_at=utcnow(),
        analysis_method=AnalysisMethod.EXTERNAL_AI,
    )


class AnalysisPipeline:
    """Produces a trust assessment for campaign content; always succeeds"""

    def __init__(
        self,
        cache: AnalysisCache,
        completion_service: Optional[AICompletionService] = None,
        timeout_seconds: float = 10.0,
    ):
        self.cache = cache
        self.completion_service = completion_service
        self.timeout_seconds = timeout_seconds

    async def analyze_campaign(
        self,
        title: Optional[str],
        description: Optional[str],
        target: Optional[float],
        creator_profile: Optional[CreatorProfile] = None,
    ) -> TrustAssessment:
        try:
            assessment = await self._analyze(title, description, target, creator_profile)
        except Exception as e:
            # Dependency failures are absorbed in _try_external_ai; this covers cache and decode bugs
            logger.error("Trust analysis failed unexpectedly, using rule-based result",
                         error=str(e), error_type=type(e).__name__)
            assessment = analyze_rule_based(title, description, target, creator_profile)

        trust_analysis_total.labels(method=assessment.analysis_method.value).inc()
        return assessment

    async def _analyze(self, title, description, target, creator_profile) -> TrustAssessment:
        if not has_content(title, description):
            logger.info("Campaign has no content to analyze")
            return empty_content_assessment()

        fingerprint = make_fingerprint(title, description, target)

        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.info("Using cached analysis result", method=cached.analysis_method.value)
            return self._with_creator(cached, title, description, target, creator_profile)

        ai_assessment = await self._try_external_ai(title, description, target)
        if ai_assessment is not None:
            self.cache.put(fingerprint, ai_assessment)
            return self._with_creator(ai_assessment, title, description, target, creator_profile)

        logger.info("Using rule-based analysis (AI service unavailable or not configured)")
        content_only = analyze_rule_based(title, description, target)
        self.cache.put(fingerprint, content_only)
        return self._with_creator(content_only, title, description, target, creator_profile)

    def _with_creator(
        self,
        assessment: TrustAssessment,
        title,
        description,
        target,
        creator_profile: Optional[CreatorProfile],
    ) -> TrustAssessment:
        """Apply creator signals to a creator-free assessment"""
        if creator_profile is None:
            return assessment
        if assessment.analysis_method == AnalysisMethod.RULE_BASED:
            # Rule-based scoring folds creator signals in before clamping
            return analyze_rule_based(
                title, description, target, creator_profile, analyzed_at=assessment.analyzed_at
            )
        return apply_creator_adjustment(assessment, creator_profile)

    async def _try_external_ai(self, title, description, target) -> Optional[TrustAssessment]:
        if self.completion_service is None:
            return None

        with tracer.start_as_current_span("trust_analysis.external_ai") as span:
            try:
                payload = await asyncio.wait_for(
                    self.completion_service.complete(title or "", description or "", float(target or 0)),
                    timeout=self.timeout_seconds,
                )
                assessment = decode_assessment(payload)
                span.set_attribute("trust_analysis.outcome", "success")
                span.set_attribute("trust_analysis.score", assessment.trust_score)
                return assessment
            except asyncio.TimeoutError:
                self._record_failure(span, "timeout", f"no response within {self.timeout_seconds}s")
            except DependencyUnavailableError as e:
                self._record_failure(span, e.reason, e.detail)
            except Exception as e:
                self._record_failure(span, "unexpected", f"{type(e).__name__}: {e}")
        return None

    def _record_failure(self, span, reason: str, detail: str):
        span.set_attribute("trust_analysis.outcome", "failure")
        span.set_attribute("trust_analysis.failure", reason)
        ai_dependency_failures_total.labels(reason=reason).inc()
        logger.warning("AI completion service failed, falling back", reason=reason, detail=detail)


def build_analysis_cache(settings: Settings) -> AnalysisCache:
    ttl = timedelta(seconds=settings.analysis_cache_ttl_seconds)
    if settings.analysis_cache_backend == "redis":
        return RedisAnalysisCache.from_url(settings.redis_url, ttl=ttl)
    return InMemoryAnalysisCache(ttl=ttl)


def build_analysis_pipeline(settings: Settings) -> AnalysisPipeline:
    completion_service = None
    if settings.ai_configured:
        completion_service = ChatCompletionClient.from_settings(settings)
    else:
        logger.info("AI completion service not configured, rule-based analysis only")

    return AnalysisPipeline(
        cache=build_analysis_cache(settings),
        completion_service=completion_service,
        timeout_seconds=settings.ai_timeout_seconds,
    )


@lru_cache()
def get_analysis_pipeline() -> AnalysisPipeline:
    """Dependency returning the process-wide pipeline"""
    return build_analysis_pipeline(get_settings())
