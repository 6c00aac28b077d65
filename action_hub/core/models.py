# Action Hub data model: categories and the polymorphic work item family.
#
# Work items are plain dataclasses owned by the Workspace; persistence goes
# through the host adapter (see core/host.py and utils/storage.py), which uses
# to_dict()/work_item_from_dict() for the JSON form.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 1000
DEFAULT_SORT_ORDER = 1000
DEFAULT_MAX_ITEMS_SHOWN = 5
DEFAULT_COUNTDOWN_S = 1500.0  # 25 minutes

DEFAULT_CATEGORY = "Default"
TODO_CATEGORY = "ToDo"
QUALITY_CATEGORY = "Quality"

TEMPLATE_SUFFIX = "template"


@dataclass(eq=False)
class Category:
    """A named bucket used to group work items in the hub."""
    name: str
    display_name: str = "TBD"
    description: str = "This category has not been given a description yet."
    sort_order: int = DEFAULT_SORT_ORDER
    always_visible: bool = False
    max_items_shown_by_default: int = DEFAULT_MAX_ITEMS_SHOWN

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "max_items_shown_by_default":
            value = max(1, int(value))
        elif key == "sort_order":
            value = int(value)
        object.__setattr__(self, key, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "sort_order": self.sort_order,
            "always_visible": self.always_visible,
            "max_items_shown_by_default": self.max_items_shown_by_default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            name=str(data["name"]),
            display_name=str(data.get("display_name", "TBD") or "TBD"),
            description=str(data.get("description", "") or ""),
            sort_order=int(data.get("sort_order", DEFAULT_SORT_ORDER)),
            always_visible=bool(data.get("always_visible", False)),
            max_items_shown_by_default=int(data.get("max_items_shown_by_default", DEFAULT_MAX_ITEMS_SHOWN)),
        )

    def __repr__(self) -> str:
        return f"Category({self.name!r}, sort_order={self.sort_order})"


def builtin_categories() -> list[Category]:
    """Categories every hub store starts with."""
    return [
        Category(
            name=DEFAULT_CATEGORY,
            display_name="General",
            description="Actions that have not been filed under a specific category.",
            sort_order=900,
        ),
        Category(
            name=TODO_CATEGORY,
            display_name="ToDo",
            description="Quick notes for the small steps of the task at hand.",
            sort_order=100,
            always_visible=True,
        ),
        Category(
            name=QUALITY_CATEGORY,
            display_name="Quality",
            description="Issues found by validation runs.",
            sort_order=200,
            max_items_shown_by_default=10,
        ),
    ]


@dataclass(eq=False)
class WorkItem:
    """
    A unit of work that can be performed or tracked from the hub.

    Items whose `is_template` flag is set are factory records: they seed new
    concrete items and never take part in the active set. When the flag is not
    given it is derived once from the name ("... Template").
    """
    KIND: ClassVar[str] = "generic"
    DEFAULT_CATEGORY_NAME: ClassVar[str] = DEFAULT_CATEGORY

    name: str
    display_name: str = ""
    description: str = ""
    category: Optional[Category] = None
    priority: int = DEFAULT_PRIORITY
    is_template: Optional[bool] = None
    owner: Optional[Category] = None
    related_objects: tuple = ()

    def __post_init__(self) -> None:
        if self.is_template is None:
            self.is_template = is_template_name(self.name)

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "priority":
            value = max(0, int(value))
        object.__setattr__(self, key, value)

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def include_in_active_set(self) -> bool:
        return True

    # -------- Template hooks --------
    def template_defaults(self) -> Dict[str, Any]:
        """Type-specific field values copied from a template onto a new item."""
        return {}

    def reset_template_fields(self) -> None:
        """Blank the user-editable fields so the creation form is ready for reuse."""
        self.display_name = ""
        self.description = ""

    # -------- Serialization --------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category.name if self.category else None,
            "priority": self.priority,
            "is_template": bool(self.is_template),
            "owner": self.owner.name if self.owner else None,
            "related": [_ref_name(o) for o in self.related_objects],
        }

    def _load_extra(self, data: Dict[str, Any]) -> None:
        pass

    # -------- In-memory state --------
    @property
    def key(self) -> tuple:
        """(owner name, item name); the identity used by stores and reloads."""
        return (self.owner.name if self.owner else "", self.name)

    def transient_state(self) -> Dict[str, Any]:
        """State that is never persisted and must survive a workspace reload."""
        return {}

    def restore_transient_state(self, state: Dict[str, Any]) -> None:
        for key, value in state.items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, priority={self.priority})"


@dataclass(eq=False, repr=False)
class ToDoItem(WorkItem):
    """
    A quick note for something that needs doing. Once marked complete it drops
    out of the hub. Not a replacement for a task tracker.
    """
    KIND: ClassVar[str] = "todo"
    DEFAULT_CATEGORY_NAME: ClassVar[str] = TODO_CATEGORY

    is_complete: bool = False

    @property
    def include_in_active_set(self) -> bool:
        return not self.is_complete

    def mark_complete(self) -> None:
        self.is_complete = True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["is_complete"] = self.is_complete
        return data

    def _load_extra(self, data: Dict[str, Any]) -> None:
        self.is_complete = bool(data.get("is_complete", False))


@dataclass(eq=False, repr=False)
class ValidationAction(WorkItem):
    """
    A saved "validate every X" action. `subject` is an import path
    ("package.module:ClassName") resolved when the action runs; the last report
    is kept in memory only.
    """
    KIND: ClassVar[str] = "validation"

    subject: str = ""
    scope: tuple = ()
    last_report: Any = None
    last_run_at: Optional[datetime] = None

    @property
    def subject_short_name(self) -> str:
        return self.subject.replace(":", ".").rsplit(".", 1)[-1] if self.subject else ""

    @property
    def label(self) -> str:
        if self.display_name:
            return self.display_name
        if not self.subject:
            return f"{self.name} (Incomplete)"
        last = "Not run yet" if self.last_run_at is None else f"last run {self.last_run_at:%Y-%m-%d %H:%M}"
        return f"Validate {self.subject_short_name} ({last})"

    def record_run(self, report: Any) -> None:
        self.last_report = report
        self.last_run_at = datetime.now()

    def report_text(self) -> str:
        if self.last_run_at is None or self.last_report is None:
            return "No validation has been run yet."
        header = f"Validation report as of {self.last_run_at:%Y-%m-%d %H:%M}.\n\n"
        return header + self.last_report.summary()

    def transient_state(self) -> Dict[str, Any]:
        if self.last_run_at is None:
            return {}
        return {"last_report": self.last_report, "last_run_at": self.last_run_at}

    def template_defaults(self) -> Dict[str, Any]:
        return {"subject": self.subject, "scope": tuple(self.scope)}

    def reset_template_fields(self) -> None:
        super().reset_template_fields()
        self.subject = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["subject"] = self.subject
        data["scope"] = list(self.scope)
        return data

    def _load_extra(self, data: Dict[str, Any]) -> None:
        self.subject = str(data.get("subject", "") or "")
        self.scope = tuple(str(s) for s in (data.get("scope") or ()))


@dataclass(eq=False, repr=False)
class CountdownTimer(WorkItem):
    """A countdown (default 25 minutes) ticking once per second on the task scheduler."""
    KIND: ClassVar[str] = "countdown"

    duration_s: float = DEFAULT_COUNTDOWN_S
    _end_time: Optional[float] = field(default=None, init=False, repr=False)

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "duration_s":
            value = max(0.0, float(value))
        super().__setattr__(key, value)

    @property
    def task_name(self) -> str:
        return f"countdown:{self.name}"

    @property
    def is_running(self) -> bool:
        return self._end_time is not None

    def remaining(self, now: Optional[float] = None) -> float:
        if self._end_time is None:
            return 0.0
        now = time.monotonic() if now is None else now
        return max(0.0, self._end_time - now)

    def status_text(self, now: Optional[float] = None) -> str:
        if not self.is_running:
            return f"Start {self.duration_s:.0f} second timer"
        return f"Time remaining: {self.remaining(now):.0f}"

    def start(self, scheduler: Any, on_finish: Callable[["CountdownTimer"], None], now: Optional[float] = None) -> None:
        """Arm the countdown and register its once-per-second tick with the scheduler."""
        from .scheduler import PeriodicTask

        now = time.monotonic() if now is None else now
        end_time = now + self.duration_s
        self._end_time = end_time

        def _tick(tick_now: float) -> bool:
            if tick_now >= end_time:
                self.disarm()
                on_finish(self)
                return False
            return True

        scheduler.start(PeriodicTask(self.task_name, 1.0, _tick), now=now)
        logger.info(f"Countdown '{self.label}' started for {self.duration_s:.0f}s")

    def cancel(self, scheduler: Any) -> None:
        self.disarm()
        scheduler.stop(self.task_name)

    def disarm(self) -> None:
        self._end_time = None

    def transient_state(self) -> Dict[str, Any]:
        if self._end_time is None:
            return {}
        return {"_end_time": self._end_time}

    def template_defaults(self) -> Dict[str, Any]:
        return {"duration_s": self.duration_s}

    def reset_template_fields(self) -> None:
        super().reset_template_fields()
        self.duration_s = DEFAULT_COUNTDOWN_S

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["duration_s"] = self.duration_s
        return data

    def _load_extra(self, data: Dict[str, Any]) -> None:
        self.duration_s = float(data.get("duration_s", DEFAULT_COUNTDOWN_S))


WORK_ITEM_KINDS: Dict[str, type] = {
    cls.KIND: cls for cls in (WorkItem, ToDoItem, ValidationAction, CountdownTimer)
}


def is_template_name(name: Optional[str]) -> bool:
    return bool(name) and name.strip().lower().endswith(TEMPLATE_SUFFIX)


def _ref_name(obj: Any) -> str:
    if isinstance(obj, str):
        return obj
    return str(getattr(obj, "name", None) or obj)


def work_item_from_dict(data: Dict[str, Any], categories: Dict[str, Category]) -> WorkItem:
    """
    Build a work item from its JSON form. Category and owner names are looked up
    in `categories`; unknown names resolve to None and are defaulted by the workspace.
    """
    kind = str(data.get("kind", WorkItem.KIND) or WorkItem.KIND)
    cls = WORK_ITEM_KINDS.get(kind)
    if cls is None:
        logger.warning(f"Unknown work item kind '{kind}' for '{data.get('name')}'; loading as generic")
        cls = WorkItem

    raw_template = data.get("is_template")
    item = cls(
        name=str(data["name"]),
        display_name=str(data.get("display_name", "") or ""),
        description=str(data.get("description", "") or ""),
        category=categories.get(data.get("category") or ""),
        priority=int(data.get("priority", DEFAULT_PRIORITY)),
        is_template=bool(raw_template) if raw_template is not None else None,
        owner=categories.get(data.get("owner") or ""),
        related_objects=tuple(data.get("related") or ()),
    )
    item._load_extra(data)
    return item
