import inspect
from enum import Enum
from typing import Callable, Any, Optional, Tuple, Type, Union
from datetime import datetime, timedelta
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is refused because the circuit is open"""
    pass


class CircuitBreaker:
    """Circuit breaker guarding a flaky dependency (database, AI completion service)"""

    def __init__(self,
                 name: str,
                 failure_threshold: int = 5,
                 recovery_timeout: timedelta = timedelta(seconds=30),
                 expected_exception: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception):
        """
        Initialize circuit breaker

        Args:
            name: Dependency name used in logs and readiness output
            failure_threshold: Number of consecutive failures before opening the circuit
            recovery_timeout: Time to wait before letting a trial call through (half-open)
            expected_exception: Exception type(s) counted as dependency failures
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitState.CLOSED

    def _should_attempt_reset(self) -> bool:
        if self.state != CircuitState.OPEN or not self.last_failure_time:
            return False
        return datetime.now() - self.last_failure_time >= self.recovery_timeout

    def _on_success(self):
        self.failure_count = 0
        self.last_failure_time = None

        if self.state != CircuitState.CLOSED:
            logger.info("Circuit breaker closed after successful call", breaker=self.name)
            self.state = CircuitState.CLOSED

    def _on_failure(self, exception: BaseException):
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        # A failed trial call re-opens immediately
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning("Circuit breaker opened due to failures",
                               breaker=self.name,
                               failure_count=self.failure_count,
                               threshold=self.failure_threshold,
                               error=str(exception))
            self.state = CircuitState.OPEN

    @property
    def is_open(self) -> bool:
        if self._should_attempt_reset():
            return False
        return self.state == CircuitState.OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function (sync or coroutine) with circuit breaker protection"""
        if self._should_attempt_reset():
            logger.info("Circuit breaker attempting half-open state", breaker=self.name)
            self.state = CircuitState.HALF_OPEN

        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError(f"Circuit breaker '{self.name}' is OPEN - dependency temporarily unavailable")

        try:
            if inspect.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                result = func(*args, **kwargs)

            self._on_success()
            return result

        except self.expected_exception as e:
            self._on_failure(e)
            raise

    def reset(self):
        self.failure_count = 0
        self.last_failure_time = None
        self.state = CircuitState.CLOSED

    def get_state(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "recovery_timeout_seconds": self.recovery_timeout.total_seconds()
        }


# Global circuit breaker instance for database operations
db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=5,
    recovery_timeout=timedelta(seconds=30),
    expected_exception=SQLAlchemyError
)
