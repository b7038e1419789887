"""
Error taxonomy and structured error handling for the companion pipeline.
"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Dict, Any, List
from datetime import datetime

from .logging_config import get_logger


logger = get_logger("errors")


class CompanionError(Exception):
    """Base class for every classified failure in the framework."""

    kind = "error"

    def __init__(self, message: str = "", status: Optional[int] = None):
        super().__init__(message or self.kind)
        self.status = status


class NetworkFailure(CompanionError):
    """Transport failure, timeout or unclassified server error."""

    kind = "network"

    def __init__(self, message: str = "", status: Optional[int] = None, timeout: bool = False):
        super().__init__(message, status)
        self.timeout = timeout


class AuthFailure(CompanionError):
    kind = "auth"


class RateLimited(CompanionError):
    kind = "rate_limit"


class NotFound(CompanionError):
    kind = "not_found"


class PaymentRequired(CompanionError):
    kind = "payment_required"


class NoSpeechDetected(CompanionError):
    """The recording decoded to an empty transcript. Never a provider fault."""

    kind = "no_speech"


class EmptyReply(CompanionError):
    kind = "empty_reply"


class PersistenceFailure(CompanionError):
    kind = "persistence"


class PermissionDenied(CompanionError):
    """Microphone access was refused."""

    kind = "permission_denied"


class TranscriptionError(CompanionError):
    """Terminal transcription failure for one capture."""

    kind = "transcription"


class SynthesisError(CompanionError):
    """Terminal synthesis failure for one reply."""

    kind = "synthesis"


# Failures that switch a cloud provider to its local variant for the session
DEGRADING_ERRORS = (AuthFailure, RateLimited)


def classify_http_status(status: int, message: str = "") -> CompanionError:
    """
    Map an HTTP status to the error taxonomy.

    Args:
        status: HTTP status code of a failed response
        message: Optional body text or detail

    Returns:
        The matching CompanionError instance (not raised)
    """
    detail = message or f"HTTP {status}"
    if status in (401, 403):
        return AuthFailure(detail, status)
    if status == 402:
        return PaymentRequired(detail, status)
    if status == 404:
        return NotFound(detail, status)
    if status == 429:
        return RateLimited(detail, status)
    return NetworkFailure(detail, status)


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"          # Log and continue
    RECOVERABLE = "recoverable"  # Attempt recovery
    FATAL = "fatal"              # Cycle cannot continue


@dataclass
class ComponentError:
    """Structured error information."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    traceback_str: Optional[str] = None

    def __post_init__(self):
        """Capture traceback if exception provided."""
        if self.exception and not self.traceback_str:
            self.traceback_str = ''.join(
                traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__
                )
            )


class ErrorHandler:
    """
    Records component errors and runs registered recovery strategies.

    Features:
    - Severity-based handling
    - Component-specific recovery strategies
    - Bounded error history
    """

    def __init__(self, max_history: int = 100):
        self._error_log: List[ComponentError] = []
        self._recovery_strategies: Dict[str, Callable] = {}
        self._max_history = max_history

    def register_recovery(self, component: str, strategy: Callable):
        """
        Register recovery strategy for a component.

        Args:
            component: Component name
            strategy: Async recovery function that takes ComponentError
        """
        self._recovery_strategies[component] = strategy
        logger.debug(f"Registered recovery strategy for: {component}")

    async def handle_error(self, error: ComponentError) -> bool:
        """
        Handle error based on severity.

        Returns:
            True if handled or recovered, False if fatal or recovery failed
        """
        self._error_log.append(error)
        if len(self._error_log) > self._max_history:
            self._error_log.pop(0)

        if error.severity == ErrorSeverity.WARNING:
            logger.warning(f"{error.component}: {error.message}")
            return True
        if error.severity == ErrorSeverity.RECOVERABLE:
            return await self._handle_recoverable(error)
        logger.error(f"💀 {error.component}: {error.message}")
        if error.traceback_str:
            logger.debug(error.traceback_str)
        return False

    async def _handle_recoverable(self, error: ComponentError) -> bool:
        """Run the recovery strategy for the failing component."""
        logger.warning(f"🔧 {error.component}: {error.message} (attempting recovery)")

        strategy = self._recovery_strategies.get(error.component)
        if not strategy:
            logger.warning(f"No recovery strategy for {error.component}")
            return False

        try:
            await strategy(error)
        except Exception as e:
            logger.error(f"Recovery failed for {error.component}: {e}")
            return False
        logger.info(f"✅ Recovery successful for {error.component}")
        return True

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        """Get error history, optionally filtered by component."""
        if component:
            return [e for e in self._error_log if e.component == component]
        return self._error_log.copy()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors."""
        summary = {
            'total_errors': len(self._error_log),
            'by_severity': {},
            'by_component': {}
        }

        for error in self._error_log:
            severity = error.severity.value
            summary['by_severity'][severity] = summary['by_severity'].get(severity, 0) + 1
            component = error.component
            summary['by_component'][component] = summary['by_component'].get(component, 0) + 1

        return summary


async def safe_cleanup(*cleanup_funcs: Callable):
    """
    Safely run multiple cleanup functions, ensuring all run even if some fail.

    Args:
        *cleanup_funcs: Async cleanup functions to run
    """
    errors = []

    for func in cleanup_funcs:
        try:
            await func()
        except Exception as e:
            errors.append((getattr(func, '__name__', repr(func)), e))
            logger.warning(f"Cleanup error in {errors[-1][0]}: {e}")

    if errors:
        logger.warning(f"{len(errors)} cleanup errors occurred")
