# Host adapter contract and the in-memory host used headless and in tests.
#
# The workspace and validation engine only talk to the environment through
# this protocol: object discovery, persistence, user dialogs and refresh.
# The Blender implementation lives in utils/blender_helpers.py.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

from .models import Category, WorkItem, builtin_categories

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredInstance:
    """
    One enumerated candidate. `instance` is None when the owner was found in
    scope but does not carry the subject component.
    """
    instance: Any
    identifier: str
    owner: Any = None


class HostAdapter(Protocol):
    def find_instances(self, subject_type: type, scope: Sequence[str]) -> List[DiscoveredInstance]:
        ...

    def load_categories(self) -> List[Category]:
        ...

    def load_work_items(self, categories: Sequence[Category]) -> List[WorkItem]:
        ...

    def persist(self, item: WorkItem) -> None:
        ...

    def delete(self, item: WorkItem) -> None:
        ...

    def notify(self, title: str, message: str) -> None:
        ...

    def confirm(self, title: str, message: str, ok: str = "Yes", cancel: str = "No") -> bool:
        ...

    def refresh(self) -> None:
        ...


def data_asset_identifier(asset: Any) -> str:
    name = getattr(asset, "name", None)
    if isinstance(name, str) and name:
        return name
    return f"{type(asset).__name__}@{id(asset):x}"


def discover_data_assets(subject_type: type, scope: Sequence[str]) -> List[DiscoveredInstance]:
    """Live DataAsset instances of `subject_type` under the scope roots (all when scope is empty)."""
    return [
        DiscoveredInstance(asset, data_asset_identifier(asset), None)
        for asset in subject_type.live_instances(scope)
    ]


@dataclass(eq=False)
class HostObject:
    """A named owner object with attached components, for hosts without a scene graph."""
    name: str
    path: str = ""
    components: list = field(default_factory=list)

    def add(self, component: Any) -> Any:
        component.owner = self
        self.components.append(component)
        return component

    def component(self, component_type: type) -> Any:
        for comp in self.components:
            if isinstance(comp, component_type):
                return comp
        return None


class InMemoryHost:
    """
    Host adapter backed by plain lists. Dialog answers are scripted through
    `confirm_answer`; notifications are recorded for inspection.
    """

    def __init__(
        self,
        categories: Optional[Iterable[Category]] = None,
        work_items: Optional[Iterable[WorkItem]] = None,
        owners: Optional[Iterable[HostObject]] = None,
        confirm_answer: bool = True,
    ) -> None:
        self.categories: List[Category] = list(categories) if categories is not None else builtin_categories()
        self.work_items: List[WorkItem] = list(work_items or [])
        self.owners: List[HostObject] = list(owners or [])
        self.confirm_answer = confirm_answer
        self.notifications: List[Tuple[str, str]] = []
        self.confirmations: List[Tuple[str, str]] = []
        self.refresh_count = 0

    def find_instances(self, subject_type: type, scope: Sequence[str]) -> List[DiscoveredInstance]:
        from ..validation.subjects import SubjectKind, path_under_root, subject_kind

        if subject_kind(subject_type) is SubjectKind.DATA_ASSET:
            return discover_data_assets(subject_type, scope)

        roots = [r for r in scope if r]
        found: List[DiscoveredInstance] = []
        for owner in self.owners:
            if roots and not any(path_under_root(owner.path, root) for root in roots):
                continue
            found.append(DiscoveredInstance(owner.component(subject_type), owner.name, owner))
        return found

    def load_categories(self) -> List[Category]:
        return list(self.categories)

    def load_work_items(self, categories: Sequence[Category]) -> List[WorkItem]:
        return list(self.work_items)

    def persist(self, item: WorkItem) -> None:
        if item.owner is not None and item.owner not in self.categories:
            logger.warning(f"Persisting '{item.name}' under unknown container '{item.owner.name}'")
        if item not in self.work_items:
            self.work_items.append(item)

    def delete(self, item: WorkItem) -> None:
        if item in self.work_items:
            self.work_items.remove(item)

    def notify(self, title: str, message: str) -> None:
        self.notifications.append((title, message))
        logger.info(f"[{title}] {message}")

    def confirm(self, title: str, message: str, ok: str = "Yes", cancel: str = "No") -> bool:
        self.confirmations.append((title, message))
        return self.confirm_answer

    def refresh(self) -> None:
        self.refresh_count += 1
