# Ordering rules for the hub: global work item order, category order, and the
# per-category capped view.

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Category, WorkItem


def category_sort_key(category: Category) -> Tuple[int, str]:
    return (category.sort_order, category.display_name or "")


def sort_categories(categories: Iterable[Category]) -> List[Category]:
    return sorted(categories, key=category_sort_key)


def item_sort_key(item: WorkItem) -> Tuple[int, str]:
    return (item.priority, item.display_name or "")


def sort_work_items(items: Iterable[WorkItem], default_category: Optional[Category] = None) -> List[WorkItem]:
    """
    Stable global order: priority, then display name, then category sort order.
    Items without a category use the default category's sort order.
    """
    fallback = default_category.sort_order if default_category is not None else 0

    def _key(item: WorkItem) -> Tuple[int, str, int]:
        cat = item.category if item.category is not None else default_category
        return (item.priority, item.display_name or "", cat.sort_order if cat is not None else fallback)

    return sorted(items, key=_key)


def partition_templates(items: Sequence[WorkItem]) -> Tuple[List[WorkItem], List[WorkItem]]:
    """Split into (active, templates), keeping relative order in both."""
    active: List[WorkItem] = []
    templates: List[WorkItem] = []
    for item in items:
        (templates if item.is_template else active).append(item)
    return active, templates


class CategoryView:
    """
    Display state for one category. `show_all` is transient and is lost when
    the workspace reloads.
    """

    def __init__(self, category: Category) -> None:
        self.category = category
        self.show_all = False

    def toggle_show_all(self) -> bool:
        self.show_all = not self.show_all
        return self.show_all

    def visible_items(self, active_items: Iterable[WorkItem]) -> List[WorkItem]:
        ordered = sorted(active_items, key=item_sort_key)
        if self.show_all:
            return [i for i in ordered if i.include_in_active_set]

        cap = self.category.max_items_shown_by_default
        shown: List[WorkItem] = []
        for item in ordered:
            if len(shown) >= cap:
                break
            if item.include_in_active_set:
                shown.append(item)
        return shown

    def hidden_count(self, active_items: Iterable[WorkItem]) -> int:
        items = list(active_items)
        eligible = sum(1 for i in items if i.include_in_active_set)
        return eligible - len(self.visible_items(items))

    def visible_templates(self, templates: Iterable[WorkItem]) -> List[WorkItem]:
        return list(templates)
