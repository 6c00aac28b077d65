# Files validation failures back into the hub as Quality ToDo items.

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Set

from ..core.models import DEFAULT_CATEGORY, QUALITY_CATEGORY, Category, ToDoItem
from ..core.telemetry import EventType, TelemetrySystem, get_telemetry
from .engine import ValidationFailure, ValidationReport

logger = logging.getLogger(__name__)

QUALITY_PRIORITY = 25


def failure_item_name(failure: ValidationFailure, subject_name: str) -> str:
    return f"{failure.message} - {subject_name} on {failure.identifier}"


def unique_name(name: str, taken: Set[str]) -> str:
    """`name`, or `name (2)`, `name (3)`... when it is already in `taken`."""
    candidate, n = name, 1
    while candidate in taken:
        n += 1
        candidate = f"{name} ({n})"
    return candidate


def failure_description(failure: ValidationFailure, subject_name: str) -> str:
    return f'Validation of {subject_name} failed for {failure.identifier}: "{failure.message}"'


def _find_category(categories: Iterable[Category], name: str) -> Optional[Category]:
    for cat in categories:
        if cat.name == name:
            return cat
    return None


def quality_category(categories: Iterable[Category]) -> Optional[Category]:
    """The Quality category, or Default (with a warning) when the store has none."""
    categories = list(categories)
    cat = _find_category(categories, QUALITY_CATEGORY)
    if cat is not None:
        return cat
    logger.warning(f"No '{QUALITY_CATEGORY}' category found; filing validation issues under '{DEFAULT_CATEGORY}'")
    return _find_category(categories, DEFAULT_CATEGORY)


def build_failure_items(
    report: ValidationReport,
    categories: Iterable[Category],
    priority: int = QUALITY_PRIORITY,
    taken: Iterable[str] = (),
) -> List[ToDoItem]:
    """
    One standalone ToDoItem per failure, in report order. Nothing is persisted.

    Names are unique within the batch and against `taken` (names of existing
    standalone items), so every failure gets its own stored record.
    """
    if report.passed:
        return []

    category = quality_category(categories)
    used = set(taken)
    items: List[ToDoItem] = []
    for failure in report.failures:
        name = unique_name(failure_item_name(failure, report.subject_name), used)
        used.add(name)
        items.append(ToDoItem(
            name=name,
            display_name=name,
            description=failure_description(failure, report.subject_name),
            category=category,
            priority=priority,
            is_template=False,
            owner=None,
            related_objects=(failure.subject_ref,),
        ))
    return items


def file_failures_as_work_items(
    report: ValidationReport,
    host: Any,
    categories: Iterable[Category],
    priority: int = QUALITY_PRIORITY,
    telemetry: Optional[TelemetrySystem] = None,
    taken: Iterable[str] = (),
) -> List[ToDoItem]:
    """
    Create, persist and return one ToDoItem per failure, then refresh the host
    once. A passing report is a no-op.
    """
    items = build_failure_items(report, categories, priority, taken)
    if not items:
        return []

    for item in items:
        host.persist(item)
    host.refresh()

    logger.info(f"Filed {len(items)} validation issue(s) for {report.subject_name}")
    (telemetry or get_telemetry()).track_event(
        EventType.WORK_ITEM_FILED,
        metadata={'subject': report.subject_name, 'count': len(items)},
    )
    return items
