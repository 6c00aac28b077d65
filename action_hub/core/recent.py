# Most-recently-used tracking for selected objects and accessed folders.

from __future__ import annotations

from typing import Any, List

DEFAULT_CAPACITY = 10


class RecentItems:
    """
    Selections are kept newest first and re-selecting an item moves it to the
    front. Folders are recorded once in access order and the oldest is dropped
    past capacity.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = max(1, int(capacity))
        self._selections: List[Any] = []
        self._folders: List[str] = []

    def touch_selection(self, obj: Any) -> bool:
        """Record a selection. Returns True if the list changed."""
        if obj is None:
            return False
        if self._selections and self._selections[0] == obj:
            return False
        if obj in self._selections:
            self._selections.remove(obj)
        self._selections.insert(0, obj)
        del self._selections[self.capacity:]
        return True

    def touch_folder(self, path: str) -> bool:
        if not path or path in self._folders:
            return False
        self._folders.append(path)
        if len(self._folders) > self.capacity:
            self._folders.pop(0)
        return True

    def forget(self, obj: Any) -> None:
        if obj in self._selections:
            self._selections.remove(obj)

    def selections(self) -> List[Any]:
        return list(self._selections)

    def folders(self) -> List[str]:
        """Newest first."""
        return list(reversed(self._folders))

    def clear(self) -> None:
        self._selections.clear()
        self._folders.clear()
