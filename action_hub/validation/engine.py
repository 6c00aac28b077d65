# Action Hub validation engine
#
# Scans every live instance of a subject type within a search scope, runs the
# required-field rule and the instance's validity contract, and aggregates the
# results into a single ValidationReport.
#
# Error policy:
# - ConfigurationError (unresolvable or unsupported subject) is raised before
#   the host is asked for anything.
# - Everything that goes wrong for one instance (missing contract, contract
#   raising, required fields unset, contract failing) becomes a
#   ValidationFailure and the scan carries on.
#
# The scan is sequential and blocks the caller; progress callbacks are advisory
# and there is no cancellation.

from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.telemetry import EventType, TelemetrySystem, get_telemetry
from .subjects import (
    CONTRACT_METHOD,
    find_contract,
    is_unset,
    required_field_names,
    resolve_subject_type,
)

logger = logging.getLogger(__name__)

NO_MESSAGE_PREFIX = "Validation failed, with no explanation message. The current stack trace is:\n"

ProgressCallback = Callable[[int, int, int], None]


class FailureKind(Enum):
    REQUIRED_FIELD = "required_field"
    CONTRACT = "contract"
    CONTRACT_MISSING = "contract_missing"
    CONTRACT_ERROR = "contract_error"

    @property
    def is_error(self) -> bool:
        """Process failures (the check itself could not run) rather than validation results."""
        return self in (FailureKind.CONTRACT_MISSING, FailureKind.CONTRACT_ERROR)


@dataclass
class ValidationFailure:
    subject_ref: Any
    identifier: str
    message: str
    kind: FailureKind = FailureKind.CONTRACT

    def __str__(self) -> str:
        return f"{self.identifier}: {self.message}"


def synthesize_message() -> str:
    """Message used when a contract fails without explaining why."""
    return NO_MESSAGE_PREFIX + "".join(traceback.format_stack())


@dataclass
class ValidationReport:
    """Outcome of one validation run. Held in memory only."""
    subject_name: str
    failures: List[ValidationFailure] = field(default_factory=list)
    tested_count: int = 0
    skipped_count: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def add_failure(self, subject_ref: Any, identifier: str, message: Optional[str], kind: FailureKind = FailureKind.CONTRACT) -> ValidationFailure:
        if not message:
            message = synthesize_message()
        failure = ValidationFailure(subject_ref, identifier, message, kind)
        self.failures.append(failure)
        return failure

    @property
    def passed(self) -> bool:
        return not self.failures

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def error_count(self) -> int:
        return sum(1 for f in self.failures if f.kind.is_error)

    @property
    def failed_instance_count(self) -> int:
        return len({id(f.subject_ref) for f in self.failures})

    @property
    def discovered_count(self) -> int:
        return self.tested_count + self.skipped_count

    def summary(self) -> str:
        if self.passed:
            return f"Validation of {self.tested_count} instances containing {self.subject_name} passed fully."
        lines = [
            f"Validation of {self.subject_name} failed with {self.failure_count} failures "
            f"from {self.tested_count} instances. The failures are as follows:",
            "",
        ]
        lines.extend(str(f) for f in self.failures)
        return "\n".join(lines)

    def listing(self) -> str:
        return "\n".join(f"{n:03d}. {f}" for n, f in enumerate(self.failures, start=1))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject_name,
            "timestamp": self.timestamp.isoformat(),
            "tested_count": self.tested_count,
            "skipped_count": self.skipped_count,
            "failures": [
                {"identifier": f.identifier, "message": f.message, "kind": f.kind.value}
                for f in self.failures
            ],
        }


@dataclass
class ValidationOptions:
    # When False the custom contract is skipped for instances that already
    # failed the required-field rule.
    run_contract_after_required_failure: bool = True


def _normalize_result(result: Any) -> Tuple[bool, str]:
    if isinstance(result, tuple):
        passed = bool(result[0]) if result else False
        message = result[1] if len(result) > 1 else ""
        return passed, str(message or "")
    return bool(result), ""


class ValidationEngine:
    """Runs validation passes through a host adapter."""

    def __init__(
        self,
        host: Any,
        options: Optional[ValidationOptions] = None,
        telemetry: Optional[TelemetrySystem] = None,
    ) -> None:
        self.host = host
        self.options = options or ValidationOptions()
        self.telemetry = telemetry or get_telemetry()

    def run(self, subject: Any, scope: Sequence[str] = (), progress: Optional[ProgressCallback] = None) -> ValidationReport:
        """
        Validate every instance of `subject` found within `scope`.

        Parameters:
        - subject: subject class or import path ("pkg.module:Class")
        - scope: search roots; empty means everywhere the host looks
        - progress: optional callback(checked, total, failures_so_far)
        """
        subject_type = resolve_subject_type(subject)
        scope = tuple(scope or ())
        start_ts = time.perf_counter()
        logger.info(f"Validating {subject_type.__name__} (scope: {', '.join(scope) or 'all'})")

        candidates = self.host.find_instances(subject_type, scope)
        report = ValidationReport(subject_type.__name__)
        total = len(candidates)

        for checked, found in enumerate(candidates, start=1):
            if progress is not None:
                try:
                    progress(checked, total, report.failure_count)
                except Exception as ex:
                    logger.debug(f"Progress callback failed: {ex}")

            if found.instance is None:
                report.skipped_count += 1
                continue

            report.tested_count += 1
            self._check_instance(found, report)

        dur_ms = (time.perf_counter() - start_ts) * 1000
        if report.passed:
            logger.info(report.summary())
        else:
            logger.error(report.summary())

        self.telemetry.track_event(
            EventType.VALIDATION_RUN,
            metadata={
                "subject": report.subject_name,
                "tested": report.tested_count,
                "skipped": report.skipped_count,
                "failures": report.failure_count,
                "errors": report.error_count,
            },
            duration_ms=dur_ms,
        )
        return report

    def _check_instance(self, found: Any, report: ValidationReport) -> None:
        instance = found.instance
        identifier = found.identifier
        # Components report against their owner so the failure points at the object users see
        ref = found.owner if found.owner is not None else instance
        type_name = type(instance).__name__

        required_failed = False
        for name in required_field_names(instance):
            try:
                value = getattr(instance, name)
            except AttributeError:
                value = None
            if is_unset(value):
                report.add_failure(ref, identifier, f"Field {name} is required but not set.", FailureKind.REQUIRED_FIELD)
                required_failed = True

        if required_failed and not self.options.run_contract_after_required_failure:
            return

        contract = find_contract(instance)
        if contract is None:
            message = f"{CONTRACT_METHOD} not found for {type_name} on {identifier}."
            logger.error(message)
            report.add_failure(ref, identifier, message, FailureKind.CONTRACT_MISSING)
            return

        try:
            result = contract()
        except Exception as ex:
            message = f"{CONTRACT_METHOD} raised {type(ex).__name__} for {type_name} on {identifier}: {ex}"
            logger.error(message)
            report.add_failure(ref, identifier, message, FailureKind.CONTRACT_ERROR)
            return

        passed, message = _normalize_result(result)
        if not passed:
            report.add_failure(ref, identifier, message, FailureKind.CONTRACT)
