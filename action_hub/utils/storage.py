# JSON persistence for the hub's categories and work items.
#
# File format:
#   {"version": 1, "categories": [...], "work_items": [...]}
#
# - Missing or corrupt files load as an empty store (with a warning); the
#   built-in categories are seeded whenever they are absent.
# - Work items are keyed by (owner name, item name); persisting an item with an
#   existing key replaces the stored record.
# - Writes go to a temporary file in the same directory and are moved into
#   place with os.replace.

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.errors import StorageError
from ..core.models import Category, WorkItem, builtin_categories, work_item_from_dict

logger = logging.getLogger(__name__)

STORE_VERSION = 1
STORE_FILENAME = "action_hub.json"


def _empty_doc() -> Dict[str, Any]:
    return {"version": STORE_VERSION, "categories": [], "work_items": []}


def _item_key(data: Dict[str, Any]) -> Tuple[str, str]:
    return (str(data.get("owner") or ""), str(data.get("name") or ""))


class JsonStore:
    """File-backed store used by the Blender host and the headless tool."""

    def __init__(self, path: str) -> None:
        self.path = path

    # -------- Raw document --------
    def read(self) -> Dict[str, Any]:
        if not os.path.isfile(self.path):
            return _empty_doc()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            logger.warning(f"Failed reading hub store {self.path}: {ex}; starting empty")
            return _empty_doc()

        if not isinstance(data, dict):
            logger.warning(f"Hub store {self.path} is not a JSON object; starting empty")
            return _empty_doc()

        version = data.get("version", STORE_VERSION)
        if version != STORE_VERSION:
            logger.warning(f"Hub store {self.path} has version {version}; expected {STORE_VERSION}")

        doc = _empty_doc()
        doc["categories"] = [c for c in data.get("categories") or [] if isinstance(c, dict) and c.get("name")]
        doc["work_items"] = [i for i in data.get("work_items") or [] if isinstance(i, dict) and i.get("name")]
        return doc

    def write(self, doc: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".action_hub_", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(doc, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as ex:
            raise StorageError(f"Failed writing hub store {self.path}: {ex}") from ex

    # -------- Categories --------
    def load_categories(self) -> List[Category]:
        doc = self.read()
        categories: List[Category] = []
        for raw in doc["categories"]:
            try:
                categories.append(Category.from_dict(raw))
            except (KeyError, TypeError, ValueError) as ex:
                logger.warning(f"Skipping malformed category {raw.get('name')!r}: {ex}")

        names = {c.name for c in categories}
        for builtin in builtin_categories():
            if builtin.name not in names:
                categories.append(builtin)
        return categories

    def save_category(self, category: Category) -> None:
        doc = self.read()
        records = [c for c in doc["categories"] if c.get("name") != category.name]
        records.append(category.to_dict())
        doc["categories"] = records
        self.write(doc)

    # -------- Work items --------
    def load_work_items(self, categories: Sequence[Category]) -> List[WorkItem]:
        by_name = {c.name: c for c in categories}
        items: List[WorkItem] = []
        for raw in self.read()["work_items"]:
            try:
                items.append(work_item_from_dict(raw, by_name))
            except (KeyError, TypeError, ValueError) as ex:
                logger.warning(f"Skipping malformed work item {raw.get('name')!r}: {ex}")
        return items

    def save_item(self, item: WorkItem) -> None:
        record = item.to_dict()
        key = _item_key(record)
        doc = self.read()
        replaced = False
        records: List[Dict[str, Any]] = []
        for existing in doc["work_items"]:
            if _item_key(existing) == key:
                records.append(record)
                replaced = True
            else:
                records.append(existing)
        if not replaced:
            records.append(record)
        doc["work_items"] = records
        self.write(doc)

    def delete_item(self, item: WorkItem) -> bool:
        key = _item_key(item.to_dict())
        doc = self.read()
        kept = [r for r in doc["work_items"] if _item_key(r) != key]
        if len(kept) == len(doc["work_items"]):
            return False
        doc["work_items"] = kept
        self.write(doc)
        return True

    def find_record(self, name: str, owner: Optional[str] = None) -> Optional[Dict[str, Any]]:
        for raw in self.read()["work_items"]:
            if _item_key(raw) == (owner or "", name):
                return raw
        return None
