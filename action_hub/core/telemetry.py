"""
Action Hub Telemetry
====================

In-process session telemetry:
- Validation run counts, failures and durations
- Work item filing counts
- Error tracking
- Performance timers

Events live in a bounded in-memory buffer for the session only; nothing is
written to disk or sent anywhere. A summary is logged on shutdown.
"""

from __future__ import annotations

import logging
import platform
import time
import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Telemetry event types"""
    VALIDATION_RUN = "validation_run"
    VALIDATION_FAILED = "validation_failed"
    WORK_ITEM_FILED = "work_item_filed"
    WORK_ITEM_CREATED = "work_item_created"
    WORK_ITEM_COMPLETED = "work_item_completed"
    PERFORMANCE_METRIC = "performance_metric"
    ERROR = "error"
    WARNING = "warning"
    USER_ACTION = "user_action"


class ErrorSeverity(Enum):
    """Error severity levels"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class TelemetryEvent:
    """Single telemetry event"""
    event_type: EventType
    timestamp: datetime = field(default_factory=datetime.now)
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    error_severity: Optional[ErrorSeverity] = None
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type.value,
            'timestamp': self.timestamp.isoformat(),
            'duration_ms': self.duration_ms,
            'metadata': self.metadata,
            'error_message': self.error_message,
            'error_severity': self.error_severity.value if self.error_severity else None,
            'session_id': self.session_id,
        }


@dataclass
class SystemInfo:
    """Host information attached to the session summary"""
    platform: str
    python_version: str
    blender_version: Optional[str] = None
    cpu_cores: int = 0
    memory_gb: float = 0.0
    process_rss_mb: float = 0.0

    @staticmethod
    def collect() -> 'SystemInfo':
        try:
            import bpy  # type: ignore
            blender_version = bpy.app.version_string
        except Exception:
            blender_version = None

        # Blender's bundled interpreter may not ship psutil
        try:
            import psutil  # type: ignore
            cpu_cores = psutil.cpu_count() or 0
            memory_gb = psutil.virtual_memory().total / (1024 ** 3)
            process_rss_mb = psutil.Process().memory_info().rss / (1024 ** 2)
        except Exception:
            cpu_cores = 0
            memory_gb = 0.0
            process_rss_mb = 0.0

        return SystemInfo(
            platform=platform.system(),
            python_version=platform.python_version(),
            blender_version=blender_version,
            cpu_cores=cpu_cores,
            memory_gb=round(memory_gb, 2),
            process_rss_mb=round(process_rss_mb, 1),
        )


@dataclass
class SessionMetrics:
    """Aggregated session metrics"""
    validation_runs: int = 0
    failed_runs: int = 0
    total_failures: int = 0
    total_validation_time_s: float = 0.0
    work_items_filed: int = 0
    total_errors: int = 0
    total_warnings: int = 0

    subject_stats: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    error_types: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @property
    def avg_validation_time_s(self) -> float:
        if not self.validation_runs:
            return 0.0
        return self.total_validation_time_s / self.validation_runs


class TelemetrySystem:
    """Session telemetry collector"""

    def __init__(self, enabled: bool = True, max_buffer_size: int = 1000):
        self.enabled = enabled
        self.events: List[TelemetryEvent] = []
        self.max_buffer_size = max(1, max_buffer_size)

        self.session_id = str(uuid.uuid4())[:8]
        self.session_start = datetime.now()
        self.system_info = SystemInfo.collect()
        self.metrics = SessionMetrics()

        # Timer stack for nested timing
        self._timer_stack: List[Tuple[str, float]] = []

        logger.debug(f"TelemetrySystem initialized: enabled={enabled}, session={self.session_id}")

    def track_event(
        self,
        event_type: EventType,
        metadata: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None
    ):
        """
        Track a telemetry event.

        Args:
            event_type: Type of event
            metadata: Additional event metadata
            duration_ms: Duration in milliseconds
        """
        if not self.enabled:
            return

        event = TelemetryEvent(
            event_type=event_type,
            duration_ms=duration_ms,
            metadata=metadata or {},
            session_id=self.session_id,
        )
        self._append(event)
        self._update_metrics(event)
        logger.debug(f"Tracked event: {event_type.value}")

    def track_error(
        self,
        error_message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        metadata: Optional[Dict[str, Any]] = None
    ):
        if not self.enabled:
            return

        event = TelemetryEvent(
            event_type=EventType.ERROR,
            error_message=error_message,
            error_severity=severity,
            metadata=metadata or {},
            session_id=self.session_id,
        )
        self._append(event)
        self.metrics.total_errors += 1
        self.metrics.error_types[error_message[:50]] += 1  # Truncate for grouping

        logger.debug(f"Tracked error: {severity.value} - {error_message[:100]}")

    def _append(self, event: TelemetryEvent) -> None:
        self.events.append(event)
        # Oldest events drop off; metrics keep the totals
        overflow = len(self.events) - self.max_buffer_size
        if overflow > 0:
            del self.events[:overflow]

    def start_timer(self, label: str):
        self._timer_stack.append((label, time.perf_counter()))

    def stop_timer(self, metadata: Optional[Dict[str, Any]] = None) -> float:
        """
        Stop the most recent timer and track the duration.

        Returns:
            Duration in milliseconds
        """
        if not self._timer_stack:
            logger.warning("stop_timer called without start_timer")
            return 0.0

        label, start_time = self._timer_stack.pop()
        duration_ms = (time.perf_counter() - start_time) * 1000

        self.track_event(
            EventType.PERFORMANCE_METRIC,
            metadata={'label': label, **(metadata or {})},
            duration_ms=duration_ms,
        )
        return duration_ms

    def _update_metrics(self, event: TelemetryEvent):
        if event.event_type == EventType.VALIDATION_RUN:
            self.metrics.validation_runs += 1
            failures = int(event.metadata.get('failures', 0) or 0)
            self.metrics.total_failures += failures
            if failures:
                self.metrics.failed_runs += 1
            if event.duration_ms:
                self.metrics.total_validation_time_s += event.duration_ms / 1000
            subject = event.metadata.get('subject', 'unknown')
            self.metrics.subject_stats[subject] += 1

        elif event.event_type == EventType.WORK_ITEM_FILED:
            self.metrics.work_items_filed += int(event.metadata.get('count', 1) or 0)

        elif event.event_type == EventType.ERROR:
            self.metrics.total_errors += 1

        elif event.event_type == EventType.WARNING:
            self.metrics.total_warnings += 1

    def get_metrics(self) -> SessionMetrics:
        return self.metrics

    def get_summary_report(self) -> Dict[str, Any]:
        session_duration = (datetime.now() - self.session_start).total_seconds()

        return {
            'session_id': self.session_id,
            'session_duration_s': round(session_duration, 2),
            'system_info': asdict(self.system_info),
            'metrics': {
                'validation_runs': self.metrics.validation_runs,
                'failed_runs': self.metrics.failed_runs,
                'total_failures': self.metrics.total_failures,
                'avg_validation_time_s': round(self.metrics.avg_validation_time_s, 3),
                'work_items_filed': self.metrics.work_items_filed,
                'total_errors': self.metrics.total_errors,
                'total_warnings': self.metrics.total_warnings,
                'subject_stats': dict(self.metrics.subject_stats),
                'top_errors': sorted(
                    self.metrics.error_types.items(),
                    key=lambda x: x[1],
                    reverse=True
                )[:5],
            },
            'events_collected': len(self.events),
        }

    def detect_anomalies(self) -> List[Dict[str, Any]]:
        """Flag slow validation passes and sessions where most runs fail."""
        anomalies = []

        if self.metrics.avg_validation_time_s > 10.0:
            anomalies.append({
                'type': 'slow_validation',
                'message': f'Average validation time is {self.metrics.avg_validation_time_s:.1f}s',
                'severity': 'warning',
            })

        if self.metrics.validation_runs >= 3:
            fail_rate = self.metrics.failed_runs / self.metrics.validation_runs
            if fail_rate > 0.5:
                anomalies.append({
                    'type': 'high_failure_rate',
                    'message': f'{fail_rate*100:.0f}% of validation runs failed',
                    'severity': 'warning',
                })

        return anomalies

    def shutdown(self):
        """Log the session summary and drop buffered events"""
        if self.enabled:
            report = self.get_summary_report()
            m = report['metrics']
            logger.info(
                f"Telemetry session {self.session_id}: {m['validation_runs']} validation runs, "
                f"{m['total_failures']} failures, {m['work_items_filed']} items filed"
            )
        self.events.clear()


# Global telemetry instance
_telemetry: Optional[TelemetrySystem] = None


def get_telemetry(enabled: bool = True) -> TelemetrySystem:
    """Get global telemetry instance (singleton)"""
    global _telemetry
    if _telemetry is None:
        _telemetry = TelemetrySystem(enabled=enabled)
    return _telemetry


def reset_telemetry() -> None:
    global _telemetry
    if _telemetry is not None:
        _telemetry.shutdown()
    _telemetry = None


class Timer:
    """Context manager for timing operations"""

    def __init__(self, label: str, telemetry: Optional[TelemetrySystem] = None):
        self.label = label
        self.telemetry = telemetry or get_telemetry()
        self.duration_ms = 0.0

    def __enter__(self):
        self.telemetry.start_timer(self.label)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = self.telemetry.stop_timer()


def register() -> None:
    get_telemetry()


def unregister() -> None:
    reset_telemetry()
