import hashlib
import json
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

import redis
import structlog

from app.core.timeutils import utcnow
from app.middleware.metrics import cache_operations_total
from app.schemas.analysis import TrustAssessment

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(hours=24)
EMPTY_FINGERPRINT = "empty"


def _format_target(target) -> str:
    if target is None or target == "":
        return "0"
    try:
        numeric = float(target)
    except (TypeError, ValueError):
        return str(target)
    return str(int(numeric)) if numeric.is_integer() else repr(numeric)


def make_fingerprint(title: Optional[str], description: Optional[str], target) -> str:
    """Normalized cache key for campaign content"""
    if not (title or "").strip() and not (description or "").strip() and not target:
        return EMPTY_FINGERPRINT
    return f"{title or ''}_{description or ''}_{_format_target(target)}".lower().strip()


class AnalysisCache(ABC):
    """Fingerprint -> trust assessment store with a time-to-live"""

    @abstractmethod
    def get(self, fingerprint: str) -> Optional[TrustAssessment]:
        """Return the cached assessment with a refreshed analyzed_at, or None"""

    @abstractmethod
    def put(self, fingerprint: str, assessment: TrustAssessment) -> bool:
        """Store an assessment; returns False when the backend could not store it"""

    def close(self):
        pass

    def describe(self) -> str:
        return type(self).__name__


class InMemoryAnalysisCache(AnalysisCache):
    """Process-local cache; expired entries are dropped lazily on read"""

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[TrustAssessment, float]] = {}

    def get(self, fingerprint: str) -> Optional[TrustAssessment]:
        entry = self._entries.get(fingerprint)
        if entry is None:
            cache_operations_total.labels(operation="get", status="miss").inc()
            return None

        assessment, stored_at = entry
        if self._clock() - stored_at >= self.ttl.total_seconds():
            self._entries.pop(fingerprint, None)
            cache_operations_total.labels(operation="get", status="expired").inc()
            return None

        cache_operations_total.labels(operation="get", status="hit").inc()
        return assessment.model_copy(update={"analyzed_at": utcnow()})

    def put(self, fingerprint: str, assessment: TrustAssessment) -> bool:
        # Last write wins for concurrent writers of the same fingerprint
        self._entries[fingerprint] = (assessment, self._clock())
        cache_operations_total.labels(operation="put", status="ok").inc()
        return True

    def __len__(self):
        return len(self._entries)


class RedisAnalysisCache(AnalysisCache):
    """Redis-backed cache shared by every worker of the service"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl: timedelta = DEFAULT_TTL):
        self.redis_client = redis_client
        self.ttl = ttl

    @classmethod
    def from_url(cls, redis_url: str, ttl: timedelta = DEFAULT_TTL) -> "RedisAnalysisCache":
        """Initialize Redis connection"""
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
        try:
            client.ping()
            logger.info("Redis connection established for analysis cache", redis_url=redis_url)
        except Exception as e:
            # Reads and writes degrade to misses until Redis comes back
            logger.warning("Redis unavailable for analysis cache", redis_url=redis_url, error=str(e))
        return cls(client, ttl)

    def close(self):
        if self.redis_client:
            self.redis_client.close()
            logger.info("Redis connection closed")

    def _get_key(self, fingerprint: str) -> str:
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
        return f"analysis:{digest}"

    def get(self, fingerprint: str) -> Optional[TrustAssessment]:
        if not self.redis_client:
            return None

        try:
            cached_data = self.redis_client.get(self._get_key(fingerprint))
            if not cached_data:
                cache_operations_total.labels(operation="get", status="miss").inc()
                return None

            entry = json.loads(cached_data)
            if time.time() - entry["timestamp"] >= self.ttl.total_seconds():
                cache_operations_total.labels(operation="get", status="expired").inc()
                return None

            cache_operations_total.labels(operation="get", status="hit").inc()
            assessment = TrustAssessment.model_validate(entry["assessment"])
            return assessment.model_copy(update={"analyzed_at": utcnow()})

        except Exception as e:
            cache_operations_total.labels(operation="get", status="error").inc()
            logger.warning("Failed to read analysis from cache", error=str(e))
            return None

    def put(self, fingerprint: str, assessment: TrustAssessment) -> bool:
        if not self.redis_client:
            return False

        try:
            serialized_data = json.dumps({
                "assessment": assessment.to_document(),
                "timestamp": time.time(),
            })
            self.redis_client.setex(
                self._get_key(fingerprint),
                int(self.ttl.total_seconds()),
                serialized_data
            )
            cache_operations_total.labels(operation="put", status="ok").inc()
            return True

        except Exception as e:
            cache_operations_total.labels(operation="put", status="error").inc()
            logger.warning("Failed to cache analysis", error=str(e))
            return False

    def ping(self) -> bool:
        if not self.redis_client:
            return False
        return bool(self.redis_client.ping())
