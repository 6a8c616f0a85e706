import json
import logging
import traceback
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


@dataclass
class ErrorContext:
    """Context for an error occurrence"""
    error_type: str
    error_message: str
    stack_trace: str
    timestamp: datetime
    stage: str
    operation: str
    severity: str
    recovery_action: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ErrorSeverity(Enum):
    """Error severity levels"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PipelineStageError(Exception):
    """Base class for failures of one pipeline stage"""
    pass


class UpstreamUnavailableError(PipelineStageError):
    """Network or HTTP failure talking to the news feed or generation service"""
    pass


class MalformedPayloadError(PipelineStageError):
    """Response body could not be parsed into the expected JSON shape"""
    pass


class PartialContentError(PipelineStageError):
    """Generated content parsed but is missing one or more sections"""

    def __init__(self, missing_sections: List[str]):
        self.missing_sections = list(missing_sections)
        super().__init__(f"Generated content missing sections: {', '.join(self.missing_sections)}")


class ErrorMonitor:
    """
    Records stage failures for one newsletter run.

    Every stage of the pipeline degrades instead of raising, so this is the
    only place a failure leaves a trace. Recording never raises.
    """

    def __init__(self, max_history: int = 100) -> None:
        self.error_history: Deque[ErrorContext] = deque(maxlen=max_history)
        self.error_counts: Dict[str, int] = defaultdict(int)
        self.logger = logging.getLogger(__name__)

    def record(
        self,
        error: BaseException,
        stage: str,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        error_type = type(error).__name__
        error_message = str(error)
        stack_trace = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
        timestamp = datetime.now()
        severity = self.classify_severity(error)

        error_context = ErrorContext(
            error_type=error_type,
            error_message=error_message,
            stack_trace=stack_trace,
            timestamp=timestamp,
            stage=stage,
            operation=operation,
            severity=severity.value,
            recovery_action=self.get_recovery_suggestion(error),
            metadata=context or {},
        )

        self.error_history.append(error_context)
        self.error_counts[error_type] += 1

        self.logger.error(json.dumps({
            'event': 'stage_error',
            'stage': stage,
            'operation': operation,
            'severity': severity.value,
            'error_type': error_type,
            'error_message': error_message,
            'timestamp': timestamp.isoformat(),
            'context': context or {},
        }, ensure_ascii=False, default=str))

        return error_context

    def classify_severity(self, error: BaseException) -> ErrorSeverity:
        if isinstance(error, PartialContentError):
            return ErrorSeverity.LOW
        if isinstance(error, MalformedPayloadError):
            return ErrorSeverity.MEDIUM
        if isinstance(error, UpstreamUnavailableError):
            message_lower = str(error).lower()
            if '401' in message_lower or 'unauthorized' in message_lower or 'api key' in message_lower:
                return ErrorSeverity.HIGH
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.HIGH

    def get_recovery_suggestion(self, error: BaseException) -> Optional[str]:
        msg = str(error).lower()
        if ('rate' in msg and 'limit' in msg) or '429' in msg:
            return "Rate limit encountered. Check the provider plan limits before the next run."
        if 'timeout' in msg or isinstance(error, TimeoutError):
            return "Operation timed out. Check provider latency status."
        if 'auth' in msg or 'api key' in msg or 'unauthorized' in msg or '401' in msg:
            return "Authentication failure. Verify the API key in the environment."
        if isinstance(error, MalformedPayloadError):
            return "Provider returned an unexpected body. Inspect the logged excerpt."
        return None

    def stages_failed(self) -> List[str]:
        seen: List[str] = []
        for ctx in self.error_history:
            if ctx.stage not in seen:
                seen.append(ctx.stage)
        return seen

    def get_error_statistics(self) -> Dict[str, Any]:
        total = sum(self.error_counts.values())
        return {
            'total_errors': total,
            'error_types': dict(self.error_counts),
            'stages_failed': self.stages_failed(),
        }

    def clear(self) -> None:
        self.error_history.clear()
        self.error_counts.clear()
