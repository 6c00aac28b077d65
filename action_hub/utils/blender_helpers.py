# Utility helpers for Blender context, preferences and the Blender host adapter
#
# Responsibilities:
# - Safe access to Blender AddonPreferences when bpy is available
# - Fallback to environment variables and optional local config files when not
# - In-memory caching of resolved settings with a short TTL
# - Cross-platform config path resolution (Windows/macOS/Linux)
# - BlenderHost: component discovery over bpy objects/collections, JSON store
#   persistence, operator reports for notifications
# - The session Workspace shared by panels and operators
#
# Environment variables supported:
#   ACTION_HUB_SEARCH_ROOTS (os.pathsep separated collection names / asset roots)
#   ACTION_HUB_QUALITY_PRIORITY (int)
#   ACTION_HUB_AUTO_FILE (truthy: "1", "true", "yes", "on")
#   ACTION_HUB_RUN_CONTRACT_AFTER_REQUIRED (truthy/falsy)
#   ACTION_HUB_STORE (path to the hub JSON store)
#
# Optional config file (JSON) search order:
#   1) %APPDATA%/ActionHub/config.json (Windows)
#   2) ~/.config/action_hub/config.json (Linux/XDG default)
#   3) ~/Library/Application Support/ActionHub/config.json (macOS)
#   4) ~/.action_hub/config.json (legacy fallback)

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

try:
    import bpy  # type: ignore
except Exception:
    bpy = None  # Allows import outside Blender for tooling/tests and CI

from ..core.host import DiscoveredInstance, discover_data_assets
from ..core.models import Category, WorkItem
from ..core.scheduler import PeriodicTask, get_scheduler
from ..core.workspace import Workspace
from ..validation.bridge import QUALITY_PRIORITY
from ..validation.engine import ValidationOptions
from ..validation.subjects import SubjectKind, subject_kind
from .storage import STORE_FILENAME, JsonStore

logger = logging.getLogger(__name__)

# The add-on module name as installed by Blender. Must match the top-level package.
ADDON_ID = "action_hub"

RECENT_TASK_NAME = "recent:active_object"


@dataclass(frozen=True)
class HubSettings:
    search_roots: Tuple[str, ...] = ()
    quality_priority: int = QUALITY_PRIORITY
    auto_file: bool = False
    run_contract_after_required: bool = True
    store_path: str = ""


# In-memory cache (thread-safe) for resolved settings, with TTL
_SETTINGS_LOCK = threading.Lock()
_SETTINGS_CACHE: Dict[str, Any] = {
    "settings": None,
    "ts": 0.0,
}
_CACHE_TTL_SEC = 5.0  # small TTL so preference edits show up without a restart


def _truthy(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    s = str(val).strip().lower()
    return s in {"1", "true", "yes", "on"}


def _int_or_none(val: Any) -> Optional[int]:
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer setting value {val!r}")
        return None


def _split_roots(val: Any) -> Tuple[str, ...]:
    if val is None:
        return ()
    if isinstance(val, (list, tuple)):
        parts = [str(v) for v in val]
    else:
        parts = str(val).split(os.pathsep)
    return tuple(p.strip() for p in parts if p and p.strip())


def _config_paths() -> List[str]:
    paths: List[str] = []
    # Windows
    appdata = os.environ.get("APPDATA")
    if appdata:
        paths.append(os.path.join(appdata, "ActionHub", "config.json"))
    # Linux (XDG)
    home = os.path.expanduser("~")
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.join(home, ".config"))
    paths.append(os.path.join(xdg_config_home, "action_hub", "config.json"))
    # macOS
    paths.append(os.path.join(home, "Library", "Application Support", "ActionHub", "config.json"))
    # Legacy fallback
    paths.append(os.path.join(home, ".action_hub", "config.json"))
    return paths


def _load_config_file() -> Dict[str, Any]:
    for path in _config_paths():
        try:
            if os.path.isfile(path):
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        return data
        except Exception as ex:
            logger.warning(f"Failed reading config file {path}: {ex}")
    return {}


def get_addon_prefs():
    """
    Return the Action Hub AddonPreferences instance or None if unavailable.
    """
    if bpy is None:
        logger.debug("bpy not available; get_addon_prefs returning None")
        return None

    try:
        prefs = getattr(bpy.context, "preferences", None)
        if not prefs:
            return None
        addon = prefs.addons.get(ADDON_ID)
        if not addon:
            return None
        return getattr(addon, "preferences", None)
    except Exception as ex:
        logger.warning(f"Failed to get add-on preferences: {ex}")
        return None


def _prefs_values() -> Dict[str, Any]:
    prefs = get_addon_prefs()
    if prefs is None:
        return {}
    values: Dict[str, Any] = {}
    try:
        roots = _split_roots(getattr(prefs, "search_roots", ""))
        if roots:
            values["search_roots"] = roots
        # Blender properties are never blank; a value left at its default falls through
        prio = int(getattr(prefs, "quality_priority", QUALITY_PRIORITY))
        if prio != QUALITY_PRIORITY:
            values["quality_priority"] = prio
        if bool(getattr(prefs, "auto_file", False)):
            values["auto_file"] = True
        if not bool(getattr(prefs, "run_contract_after_required", True)):
            values["run_contract_after_required"] = False
        store = str(getattr(prefs, "store_path", "") or "")
        if store:
            values["store_path"] = bpy.path.abspath(store) if hasattr(bpy, "path") else store
    except Exception as ex:
        logger.warning(f"Error accessing AddonPreferences: {ex}")
    return values


def _env_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    roots = _split_roots(os.environ.get("ACTION_HUB_SEARCH_ROOTS"))
    if roots:
        values["search_roots"] = roots
    prio = _int_or_none(os.environ.get("ACTION_HUB_QUALITY_PRIORITY"))
    if prio is not None:
        values["quality_priority"] = prio
    auto = os.environ.get("ACTION_HUB_AUTO_FILE")
    if auto is not None:
        values["auto_file"] = _truthy(auto)
    contract = os.environ.get("ACTION_HUB_RUN_CONTRACT_AFTER_REQUIRED")
    if contract is not None:
        values["run_contract_after_required"] = _truthy(contract)
    store = os.environ.get("ACTION_HUB_STORE")
    if store:
        values["store_path"] = store
    return values


def _config_values() -> Dict[str, Any]:
    cfg = _load_config_file()
    values: Dict[str, Any] = {}
    roots = _split_roots(cfg.get("search_roots"))
    if roots:
        values["search_roots"] = roots
    prio = _int_or_none(cfg.get("quality_priority"))
    if prio is not None:
        values["quality_priority"] = prio
    if cfg.get("auto_file") is not None:
        values["auto_file"] = _truthy(cfg["auto_file"])
    if cfg.get("run_contract_after_required") is not None:
        values["run_contract_after_required"] = _truthy(cfg["run_contract_after_required"])
    if cfg.get("store_path"):
        values["store_path"] = str(cfg["store_path"])
    return values


def _should_reload_cache(now: float) -> bool:
    with _SETTINGS_LOCK:
        ts = float(_SETTINGS_CACHE.get("ts", 0.0))
        cached = _SETTINGS_CACHE.get("settings")
    return cached is None or (now - ts) > _CACHE_TTL_SEC


def reload_settings() -> HubSettings:
    """Force reload settings into cache (ignoring TTL)."""
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE["ts"] = 0.0
    return get_settings(force_reload=True)


def get_settings(force_reload: bool = False) -> HubSettings:
    """
    Resolve HubSettings with precedence:
      1) Blender AddonPreferences (if available)
      2) Environment variables
      3) Config file
      4) Defaults
    Values are cached in-memory with a short TTL, and can be force reloaded.
    """
    now = time.time()
    if not force_reload and not _should_reload_cache(now):
        with _SETTINGS_LOCK:
            return _SETTINGS_CACHE["settings"]

    merged: Dict[str, Any] = {}
    # Lowest precedence first so higher layers overwrite
    for layer in (_config_values(), _env_values(), _prefs_values()):
        merged.update(layer)

    settings = replace(HubSettings(), **merged)
    if not settings.store_path:
        settings = replace(settings, store_path=os.path.join(get_config_dir(), STORE_FILENAME))

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE["settings"] = settings
        _SETTINGS_CACHE["ts"] = now

    logger.debug(
        "Settings loaded: roots=%s, quality_priority=%s, auto_file=%s, store=%s",
        ",".join(settings.search_roots) or "-",
        settings.quality_priority,
        settings.auto_file,
        settings.store_path,
    )
    return settings


def get_config_dir() -> str:
    """
    Resolve and ensure the Action Hub config directory exists, following the same
    platform-specific search order as _config_paths(), but returning a directory.
    """
    for d in (os.path.dirname(p) for p in _config_paths()):
        try:
            os.makedirs(d, exist_ok=True)
            return d
        except OSError:
            continue

    # Fallback to legacy directory under home
    fallback = os.path.join(os.path.expanduser("~"), ".action_hub")
    os.makedirs(fallback, exist_ok=True)
    return fallback


# --- Blender host adapter ---

def _scene_objects(scope: Sequence[str]) -> List[Any]:
    """Objects in the named collections (every object when scope is empty), deduplicated in order."""
    roots = [r for r in scope if r]
    if not roots:
        return list(bpy.data.objects)

    seen = set()
    found: List[Any] = []
    for root in roots:
        # Accept "Parent/Child" style roots; the last segment names the collection
        name = root.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        coll = bpy.data.collections.get(name)
        if coll is None:
            logger.warning(f"Search root '{root}' does not match a collection")
            continue
        for obj in coll.all_objects:
            if obj.name in seen:
                continue
            seen.add(obj.name)
            found.append(obj)
    return found


def _component_props(raw: Any) -> Dict[str, Any]:
    if hasattr(raw, "to_dict"):
        return raw.to_dict()
    return dict(raw)


class BlenderHost:
    """
    Host adapter for a running Blender session. Components are ID custom
    properties on objects; work items live in the JSON store.
    """

    def __init__(self, store: JsonStore, settings: Optional[HubSettings] = None) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self._reporter: Optional[Callable[[set, str], None]] = None

    def set_reporter(self, reporter: Optional[Callable[[set, str], None]]) -> None:
        """Route notifications to an operator's report() while it runs."""
        self._reporter = reporter

    def find_instances(self, subject_type: type, scope: Sequence[str]) -> List[DiscoveredInstance]:
        if subject_kind(subject_type) is SubjectKind.DATA_ASSET:
            return discover_data_assets(subject_type, scope)

        key = subject_type.property_key()
        found: List[DiscoveredInstance] = []
        for obj in _scene_objects(scope):
            raw = obj.get(key)
            component = None
            if raw is not None:
                try:
                    component = subject_type.from_properties(_component_props(raw), owner=obj)
                except (TypeError, ValueError) as ex:
                    logger.error(f"Could not read {key} on {obj.name}: {ex}")
            found.append(DiscoveredInstance(component, obj.name, obj))
        return found

    def load_categories(self) -> List[Category]:
        return self.store.load_categories()

    def load_work_items(self, categories: Sequence[Category]) -> List[WorkItem]:
        return self.store.load_work_items(categories)

    def persist(self, item: WorkItem) -> None:
        self.store.save_item(item)

    def delete(self, item: WorkItem) -> None:
        if not self.store.delete_item(item):
            logger.warning(f"Work item '{item.name}' was not in the store")

    def notify(self, title: str, message: str) -> None:
        if "\n" in message or title.endswith("Failed"):
            logger.log(logging.WARNING if title.endswith("Failed") else logging.INFO, f"{title}\n{message}")
        else:
            logger.info(f"{title}: {message}")
        if self._reporter is not None:
            level = {'WARNING'} if title.endswith("Failed") else {'INFO'}
            self._reporter(level, f"{title}: {message.splitlines()[0] if message else ''}")

    def confirm(self, title: str, message: str, ok: str = "Yes", cancel: str = "No") -> bool:
        # Operators cannot block on a modal dialog; the answer comes from preferences
        answer = self.settings.auto_file
        logger.debug(f"{title}: answering '{ok if answer else cancel}' from auto-file preference")
        return answer

    def refresh(self) -> None:
        if bpy is None:
            return
        try:
            for window in bpy.context.window_manager.windows:
                for area in window.screen.areas:
                    area.tag_redraw()
        except Exception as ex:
            logger.debug(f"Redraw after refresh failed: {ex}")


def resolve_related_object(ref: Any) -> Any:
    """Map a stored related-object reference (object name) back to a bpy object."""
    if bpy is None or ref is None:
        return None
    if not isinstance(ref, str):
        return ref
    return bpy.data.objects.get(ref)


# --- Session workspace ---

_WORKSPACE: Optional[Workspace] = None


def get_workspace(force_new: bool = False) -> Workspace:
    """Workspace for the current session, built from the resolved settings."""
    global _WORKSPACE
    if _WORKSPACE is None or force_new:
        settings = get_settings()
        host = BlenderHost(JsonStore(settings.store_path), settings)
        _WORKSPACE = Workspace(
            host,
            options=ValidationOptions(run_contract_after_required_failure=settings.run_contract_after_required),
            quality_priority=settings.quality_priority,
            search_roots=settings.search_roots,
        )
        _WORKSPACE.load()
    return _WORKSPACE


def reset_workspace() -> None:
    global _WORKSPACE
    _WORKSPACE = None


def _track_recent(now: float) -> bool:
    if bpy is None or _WORKSPACE is None:
        return True
    try:
        view_layer = getattr(bpy.context, "view_layer", None)
        active = getattr(getattr(view_layer, "objects", None), "active", None)
        if active is not None:
            _WORKSPACE.recent.touch_selection(active.name)
        blend_path = getattr(bpy.data, "filepath", "")
        if blend_path:
            _WORKSPACE.recent.touch_folder(os.path.dirname(blend_path))
    except (AttributeError, ReferenceError) as ex:
        logger.debug(f"Recent item tracking skipped: {ex}")
    return True


def register():
    get_scheduler().start(PeriodicTask(RECENT_TASK_NAME, 1.0, _track_recent))


def unregister():
    get_scheduler().stop(RECENT_TASK_NAME)
    reset_workspace()
