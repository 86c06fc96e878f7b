"""
Unit Tests for the analysis pipeline: AI first, rule-based fallback, never raises
"""
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

import asyncio
from unittest.mock import patch

import pytest

from app.cache.analysis_cache import InMemoryAnalysisCache, make_fingerprint
from app.core.exceptions import DependencyUnavailableError
from app.schemas.analysis import AnalysisMethod, CreatorProfile
from app.services.analysis import AnalysisPipeline, decode_assessment
from app.services.completion_client import AICompletionService
from app.services.trust_analyzer import analyze_rule_based

TITLE = "Library books"
DESCRIPTION = (
    "Our neighbourhood donation drive will buy picture books for the reading corner "
    "of the local primary school library."
)


class StubCompletionService(AICompletionService):
    def __init__(self, payload=None, error=None, delay=0.0):
        self.payload = payload
        self.error = error
        self.delay = delay
        self.calls = 0

    async def complete(self, title, description, target):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.payload


@pytest.fixture
def cache():
    return InMemoryAnalysisCache()


@pytest.fixture
def strong_profile():
    return CreatorProfile(name="Reading Circle", email="rc@example.org", bio="b" * 120, has_verified_email=True)


AI_PAYLOAD = {
    "trustScore": 70,
    "riskFactors": ["No budget breakdown"],
    "recommendations": ["Share a budget"],
    "sentiment": "positive",
}


class TestDecodeAssessment:

    def test_well_formed_payload(self):
        result = decode_assessment(AI_PAYLOAD)

        assert result.trust_score == 70
        assert result.sentiment == "POSITIVE"
        assert result.analysis_method == AnalysisMethod.EXTERNAL_AI

    def test_defaults_for_missing_and_invalid_fields(self):
        result = decode_assessment({"trustScore": "not a number", "riskFactors": "oops"})

        assert result.trust_score == 50
        assert result.risk_factors == []
        assert result.recommendations == []
        assert result.sentiment == "NEUTRAL"

    def test_score_clamped_and_lists_filtered(self):
        result = decode_assessment({
            "trustScore": 180,
            "riskFactors": ["a", 1, "b", None, "c", "d", "e", "f"],
            "recommendations": [{"text": "x"}, "keep"],
        })

        assert result.trust_score == 100
        assert result.risk_factors == ["a", "b", "c"]
        assert result.recommendations == ["keep"]

    def test_lists_truncated_before_dropping_non_strings(self):
        result = decode_assessment({"riskFactors": [1, "a", "b", "c", "d", "e"]})

        assert result.risk_factors == ["a", "b", "c", "d"]

    def test_numeric_string_and_zero_scores(self):
        assert decode_assessment({"trustScore": "42.6"}).trust_score == 43
        assert decode_assessment({"trustScore": 0}).trust_score == 0
        assert decode_assessment({"trustScore": -15}).trust_score == 0

    def test_non_object_payload_rejected(self):
        with pytest.raises(DependencyUnavailableError) as exc_info:
            decode_assessment(["trustScore", 70])

        assert exc_info.value.reason == "malformed"


class TestAnalysisPipeline:

    @pytest.mark.asyncio
    async def test_empty_content_bypasses_cache_and_ai(self, cache):
        service = StubCompletionService(payload=AI_PAYLOAD)
        pipeline = AnalysisPipeline(cache, service)

        result = await pipeline.analyze_campaign("  ", "", 5)

        assert result.trust_score == 20
        assert result.analysis_method == AnalysisMethod.EMPTY_CONTENT
        assert service.calls == 0
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_rule_based_without_ai(self, cache):
        pipeline = AnalysisPipeline(cache)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        expected = analyze_rule_based(TITLE, DESCRIPTION, 5)
        assert result.analysis_method == AnalysisMethod.RULE_BASED
        assert result.trust_score == expected.trust_score
        assert cache.get(make_fingerprint(TITLE, DESCRIPTION, 5)) is not None

    @pytest.mark.asyncio
    async def test_rule_based_applies_creator_profile(self, cache, strong_profile):
        pipeline = AnalysisPipeline(cache)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5, strong_profile)

        assert result.trust_score == analyze_rule_based(TITLE, DESCRIPTION, 5, strong_profile).trust_score

    @pytest.mark.asyncio
    async def test_ai_success_blends_creator_only_pass_and_caches_raw_result(self, cache, strong_profile):
        service = StubCompletionService(payload=AI_PAYLOAD)
        pipeline = AnalysisPipeline(cache, service)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5, strong_profile)

        assert result.analysis_method == AnalysisMethod.EXTERNAL_AI
        assert result.trust_score == 50
        assert result.risk_factors == [
            "No budget breakdown",
            "Description is very brief (less than 50 characters)",
            "Campaign title is missing or too short",
        ]
        cached = cache.get(make_fingerprint(TITLE, DESCRIPTION, 5))
        assert cached.trust_score == 70

    @pytest.mark.asyncio
    async def test_cache_hit_skips_ai(self, cache):
        service = StubCompletionService(payload=AI_PAYLOAD)
        pipeline = AnalysisPipeline(cache, service)

        first = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)
        second = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        assert service.calls == 1
        assert second.trust_score == first.trust_score
        assert second.analysis_method == AnalysisMethod.EXTERNAL_AI

    @pytest.mark.asyncio
    async def test_cache_hit_applies_each_creator_profile(self, cache, strong_profile):
        service = StubCompletionService(payload=AI_PAYLOAD)
        pipeline = AnalysisPipeline(cache, service)

        anonymous = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)
        with_profile = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5, strong_profile)

        assert anonymous.trust_score == 70
        assert with_profile.trust_score == 50

    @pytest.mark.asyncio
    async def test_dependency_failure_falls_back(self, cache):
        service = StubCompletionService(error=DependencyUnavailableError("http_status", "503"))
        pipeline = AnalysisPipeline(cache, service)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        assert result.analysis_method == AnalysisMethod.RULE_BASED

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back(self, cache):
        service = StubCompletionService(error=RuntimeError("boom"))
        pipeline = AnalysisPipeline(cache, service)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        assert result.analysis_method == AnalysisMethod.RULE_BASED

    @pytest.mark.asyncio
    async def test_malformed_payload_falls_back(self, cache):
        service = StubCompletionService(payload="not json object")
        pipeline = AnalysisPipeline(cache, service)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        assert result.analysis_method == AnalysisMethod.RULE_BASED

    @pytest.mark.asyncio
    async def test_slow_ai_times_out(self, cache):
        service = StubCompletionService(payload=AI_PAYLOAD, delay=5)
        pipeline = AnalysisPipeline(cache, service, timeout_seconds=0.05)

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5)

        assert result.analysis_method == AnalysisMethod.RULE_BASED
        assert service.calls == 1

    @pytest.mark.asyncio
    async def test_score_and_list_bounds_hold(self, cache):
        payload = {"trustScore": 99, "riskFactors": ["r"] * 5, "recommendations": ["x"] * 5}
        profile = CreatorProfile(name="A", bio="", has_verified_email=False)
        pipeline = AnalysisPipeline(cache, StubCompletionService(payload=payload))

        result = await pipeline.analyze_campaign(TITLE, DESCRIPTION, 5, profile)

        assert 0 <= result.trust_score <= 100
        assert len(result.risk_factors) == 5
        assert len(result.recommendations) == 5

    @pytest.mark.asyncio
    async def test_span_records_outcome(self, cache):
        ok = AnalysisPipeline(cache, StubCompletionService(payload=AI_PAYLOAD))
        failing = AnalysisPipeline(InMemoryAnalysisCache(), StubCompletionService(error=RuntimeError("boom")))

        with patch("app.services.analysis.tracer") as tracer:
            span = tracer.start_as_current_span.return_value.__enter__.return_value
            await ok.analyze_campaign(TITLE, DESCRIPTION, 5)
            span.set_attribute.assert_any_call("trust_analysis.outcome", "success")
            span.set_attribute.assert_any_call("trust_analysis.score", 70)

            span.reset_mock()
            await failing.analyze_campaign(TITLE, DESCRIPTION, 5)
            span.set_attribute.assert_any_call("trust_analysis.outcome", "failure")
            span.set_attribute.assert_any_call("trust_analysis.failure", "unexpected")
