# Action Hub workspace: the loaded Category/WorkItem set and every operation
# the panel, operators and headless tools perform on it.
#
# One Workspace per host session. All mutations go through the host adapter
# (persist/delete) and are followed by a reload so the in-memory set always
# mirrors storage. Unpersisted state (last validation report, running
# countdowns) is carried onto the reloaded items by key.

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..validation.bridge import QUALITY_PRIORITY
from ..validation.bridge import file_failures_as_work_items as _file_failures
from ..validation.engine import ProgressCallback, ValidationEngine, ValidationOptions, ValidationReport
from .errors import ActionHubError
from .host import HostAdapter
from .models import (
    DEFAULT_CATEGORY,
    Category,
    CountdownTimer,
    ToDoItem,
    ValidationAction,
    WorkItem,
)
from .ordering import CategoryView, partition_templates, sort_categories, sort_work_items
from .recent import RecentItems
from .scheduler import TaskScheduler, get_scheduler
from .telemetry import EventType, TelemetrySystem, get_telemetry
from .templates import check_collision, validate_name
from .templates import create_from_template as _create_from_template

logger = logging.getLogger(__name__)

TODO_DESCRIPTION = (
    "This is a new ToDo item that has been added to the Action Hub. "
    "No description is available yet."
)
FILE_PROMPT = "\n\nDo you want to create a ToDo item for each new issue?"
TITLE_FAILED = "Validation Failed"
TITLE_PASSED = "Validation Passed"


class Workspace:
    """
    Explicit context for one hub session.

    Parameters:
    - host: HostAdapter used for discovery, persistence and dialogs
    - options: validation options passed to every engine run
    - quality_priority: priority given to items filed from validation failures
    - search_roots: default scope when a run does not name one
    """

    def __init__(
        self,
        host: HostAdapter,
        options: Optional[ValidationOptions] = None,
        quality_priority: int = QUALITY_PRIORITY,
        search_roots: Sequence[str] = (),
        telemetry: Optional[TelemetrySystem] = None,
        scheduler: Optional[TaskScheduler] = None,
        recent: Optional[RecentItems] = None,
    ) -> None:
        self.host = host
        self.options = options or ValidationOptions()
        self.quality_priority = quality_priority
        self.search_roots: Tuple[str, ...] = tuple(search_roots)
        self.telemetry = telemetry or get_telemetry()
        self.scheduler = scheduler or get_scheduler()
        self.recent = recent or RecentItems()

        self._categories: List[Category] = []
        self._active: List[WorkItem] = []
        self._templates: List[WorkItem] = []
        self._views: Dict[str, CategoryView] = {}
        self._default: Optional[Category] = None
        self.loaded = False

    # -------- Loading --------
    def load(self) -> None:
        """Read categories and items from the host, default categories, sort and partition."""
        categories = sort_categories(self.host.load_categories())
        by_name = {c.name: c for c in categories}

        default = by_name.get(DEFAULT_CATEGORY)
        if default is None:
            logger.warning(f"Store has no '{DEFAULT_CATEGORY}' category; using an in-memory one")
            default = Category(name=DEFAULT_CATEGORY, display_name="General", sort_order=900)
            categories = sort_categories(categories + [default])
            by_name[DEFAULT_CATEGORY] = default

        carried = self._transient_states()
        items = self.host.load_work_items(categories)
        for item in items:
            if item.category is None or item.category.name not in by_name:
                item.category = by_name.get(item.DEFAULT_CATEGORY_NAME, default)
            state = carried.get(item.key)
            if state:
                item.restore_transient_state(state)

        ordered = sort_work_items(items, default)
        self._active, self._templates = partition_templates(ordered)
        self._categories = categories
        self._default = default
        # show_all is transient; a reload collapses every category again
        self._views = {c.name: CategoryView(c) for c in categories}
        self.loaded = True
        logger.debug(
            f"Workspace loaded: {len(categories)} categories, "
            f"{len(self._active)} items, {len(self._templates)} templates"
        )

    def _transient_states(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        # hosts backed by a store rebuild every item on load
        states: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for item in self._active + self._templates:
            state = item.transient_state()
            if isinstance(item, CountdownTimer) and not self.scheduler.is_running(item.task_name):
                state = {}
            if state:
                states[item.key] = state
        return states

    def refresh(self) -> None:
        self.host.refresh()
        self.load()

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    # -------- Queries --------
    @property
    def default_category(self) -> Category:
        self._ensure_loaded()
        return self._default  # type: ignore[return-value]

    def category(self, name: str) -> Optional[Category]:
        self._ensure_loaded()
        for cat in self._categories:
            if cat.name == name:
                return cat
        return None

    def list_categories(self) -> List[Category]:
        self._ensure_loaded()
        return list(self._categories)

    def visible_categories(self) -> List[Category]:
        """Categories with at least one included item, plus the always-visible ones."""
        self._ensure_loaded()
        return [c for c in self._categories if c.always_visible or self.list_active_work_items(c)]

    def list_active_work_items(self, category: Optional[Category] = None) -> List[WorkItem]:
        """Included items in global order (before the per-category cap)."""
        self._ensure_loaded()
        return [
            i for i in self._active
            if i.include_in_active_set and (category is None or i.category is category)
        ]

    def list_templates(self, category: Optional[Category] = None) -> List[WorkItem]:
        self._ensure_loaded()
        return [t for t in self._templates if category is None or t.category is category]

    def all_items(self) -> List[WorkItem]:
        self._ensure_loaded()
        return list(self._active) + list(self._templates)

    def view(self, category: Category) -> CategoryView:
        self._ensure_loaded()
        view = self._views.get(category.name)
        if view is None:
            view = self._views[category.name] = CategoryView(category)
        return view

    def find_item(self, name: str) -> Optional[WorkItem]:
        for item in self.all_items():
            if item.name == name:
                return item
        return None

    def _current(self, item: WorkItem) -> WorkItem:
        """The loaded item with the same key as `item` (itself when none is loaded)."""
        for loaded in self.all_items():
            if loaded.key == item.key:
                return loaded
        return item

    def _siblings(self, container: Optional[Category]) -> List[WorkItem]:
        return [i for i in self.all_items() if i.owner is container]

    # -------- Creation --------
    def add_todo(self, category: Optional[Category], name: str, description: str = TODO_DESCRIPTION) -> ToDoItem:
        """Create a ToDo note nested under `category` (Default when None)."""
        self._ensure_loaded()
        category = category or self.default_category
        name = validate_name(name)
        check_collision(name, self._siblings(category), category.name)

        item = ToDoItem(
            name=name,
            display_name=name,
            description=description,
            category=category,
            is_template=False,
            owner=category,
        )
        self.host.persist(item)
        self.telemetry.track_event(EventType.WORK_ITEM_CREATED, metadata={'kind': item.KIND})
        self.refresh()
        return item

    def create_from_template(self, template: WorkItem, name: str) -> WorkItem:
        """Create a concrete item from `template`, stored under the template's category."""
        self._ensure_loaded()
        if not template.is_template:
            raise ActionHubError(f"'{template.name}' is not a template.")
        container = template.category or self.default_category
        item = _create_from_template(template, name, self._siblings(container))
        item.owner = container
        self.host.persist(item)
        self.telemetry.track_event(EventType.WORK_ITEM_CREATED, metadata={'kind': item.KIND, 'template': template.name})
        self.refresh()
        return item

    # -------- Mutation --------
    def mark_complete(self, item: WorkItem) -> None:
        if not isinstance(item, ToDoItem):
            raise ActionHubError(f"'{item.label}' cannot be marked complete.")
        item.mark_complete()
        self.host.persist(item)
        self.telemetry.track_event(EventType.WORK_ITEM_COMPLETED, metadata={'kind': item.KIND})
        self.refresh()

    def set_priority(self, item: WorkItem, value: int) -> None:
        item.priority = value
        self.host.persist(item)
        self.refresh()

    def delete(self, item: WorkItem) -> None:
        self.host.delete(item)
        self.recent.forget(item)
        self.refresh()

    # -------- Validation --------
    def run_validation(
        self,
        subject: Any,
        scope: Optional[Sequence[str]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ValidationReport:
        """Validate `subject` within `scope` (the configured search roots when None)."""
        scope = self.search_roots if scope is None else tuple(scope)
        engine = ValidationEngine(self.host, self.options, self.telemetry)
        return engine.run(subject, scope, progress)

    def file_failures_as_work_items(self, report: ValidationReport) -> List[ToDoItem]:
        self._ensure_loaded()
        taken = [i.name for i in self.all_items() if i.owner is None]
        items = _file_failures(
            report, self.host, self._categories, self.quality_priority, self.telemetry, taken
        )
        if items:
            self.load()
        return items

    def validate_and_report(
        self,
        subject: Any,
        scope: Optional[Sequence[str]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Tuple[ValidationReport, List[ToDoItem]]:
        """
        Run a validation, show the result, and on failure ask whether to file
        each failure as a ToDo item. Returns the report and the filed items.
        """
        report = self.run_validation(subject, scope, progress)
        summary = report.summary()
        if report.passed:
            self.host.notify(TITLE_PASSED, summary)
            return report, []

        self.telemetry.track_event(
            EventType.VALIDATION_FAILED,
            metadata={'subject': report.subject_name, 'failures': report.failure_count},
        )
        self.host.notify(TITLE_FAILED, summary)
        if not self.host.confirm(TITLE_FAILED, summary + FILE_PROMPT, "Yes", "No"):
            logger.info(f"Validation issues for {report.subject_name} were not filed")
            return report, []
        return report, self.file_failures_as_work_items(report)

    def run_action(self, action: ValidationAction) -> Tuple[ValidationReport, List[ToDoItem]]:
        """Run a saved validation action and remember its report on the action."""
        if not action.subject:
            raise ActionHubError(f"'{action.label}' has no subject type set.")
        scope = action.scope or None
        report, filed = self.validate_and_report(action.subject, scope)
        action.record_run(report)
        current = self._current(action)
        if current is not action and isinstance(current, ValidationAction):
            current.record_run(report)
        return report, filed

    # -------- Countdown --------
    def start_countdown(self, timer: CountdownTimer, now: Optional[float] = None) -> None:
        def _finished(t: CountdownTimer) -> None:
            current = self._current(t)
            if isinstance(current, CountdownTimer):
                current.disarm()
            self.host.notify("Countdown finished", f"{t.label} has finished.")

        timer.start(self.scheduler, _finished, now=now)

    def cancel_countdown(self, timer: CountdownTimer) -> None:
        timer.cancel(self.scheduler)
        current = self._current(timer)
        if isinstance(current, CountdownTimer):
            current.disarm()
