import json
import os
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Optional

import pytest

from action_hub.core.models import ToDoItem
from action_hub.utils import blender_helpers as bh
from action_hub.utils.storage import JsonStore
from action_hub.validation.engine import ValidationEngine
from action_hub.core.telemetry import TelemetrySystem
from action_hub.validation.subjects import Component, required_field

ENV_KEYS = (
    "ACTION_HUB_SEARCH_ROOTS",
    "ACTION_HUB_QUALITY_PRIORITY",
    "ACTION_HUB_AUTO_FILE",
    "ACTION_HUB_RUN_CONTRACT_AFTER_REQUIRED",
    "ACTION_HUB_STORE",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    config = tmp_path / "config.json"
    monkeypatch.setattr(bh, "_config_paths", lambda: [str(config)])
    monkeypatch.setattr(bh, "bpy", None)
    monkeypatch.setenv("ACTION_HUB_STORE", str(tmp_path / "hub.json"))
    return config


def _fake_prefs_bpy(**values):
    prefs = SimpleNamespace(**values)
    addons = {bh.ADDON_ID: SimpleNamespace(preferences=prefs)}
    return SimpleNamespace(context=SimpleNamespace(preferences=SimpleNamespace(addons=addons)))


def test_defaults_without_any_source(clean_env):
    settings = bh.reload_settings()
    assert settings.search_roots == ()
    assert settings.quality_priority == 25
    assert settings.auto_file is False
    assert settings.run_contract_after_required is True
    assert settings.store_path.endswith("hub.json")


def test_config_file_is_used_when_env_is_silent(clean_env):
    clean_env.write_text(json.dumps({
        "search_roots": ["Props", "Lights"],
        "quality_priority": 40,
        "auto_file": "yes",
    }), encoding="utf-8")
    settings = bh.reload_settings()
    assert settings.search_roots == ("Props", "Lights")
    assert settings.quality_priority == 40
    assert settings.auto_file is True


def test_env_overrides_config_file(clean_env, monkeypatch):
    clean_env.write_text(json.dumps({"quality_priority": 40, "auto_file": True}), encoding="utf-8")
    monkeypatch.setenv("ACTION_HUB_QUALITY_PRIORITY", "30")
    monkeypatch.setenv("ACTION_HUB_AUTO_FILE", "0")
    monkeypatch.setenv("ACTION_HUB_SEARCH_ROOTS", os.pathsep.join(["A", " B ", ""]))
    monkeypatch.setenv("ACTION_HUB_RUN_CONTRACT_AFTER_REQUIRED", "false")
    settings = bh.reload_settings()
    assert settings.quality_priority == 30
    assert settings.auto_file is False
    assert settings.search_roots == ("A", "B")
    assert settings.run_contract_after_required is False


def test_bad_env_integer_is_ignored(clean_env, monkeypatch):
    monkeypatch.setenv("ACTION_HUB_QUALITY_PRIORITY", "high")
    assert bh.reload_settings().quality_priority == 25


def test_addon_preferences_win(clean_env, monkeypatch):
    monkeypatch.setenv("ACTION_HUB_QUALITY_PRIORITY", "30")
    monkeypatch.setenv("ACTION_HUB_SEARCH_ROOTS", "EnvRoot")
    fake = _fake_prefs_bpy(
        search_roots="",
        quality_priority=5,
        auto_file=True,
        run_contract_after_required=False,
        store_path="",
    )
    monkeypatch.setattr(bh, "bpy", fake)
    settings = bh.reload_settings()
    assert settings.quality_priority == 5
    assert settings.auto_file is True
    assert settings.run_contract_after_required is False
    # blank preference falls through to the environment
    assert settings.search_roots == ("EnvRoot",)


def test_preferences_left_at_default_fall_through(clean_env, monkeypatch):
    clean_env.write_text(json.dumps({"quality_priority": 40}), encoding="utf-8")
    monkeypatch.setenv("ACTION_HUB_AUTO_FILE", "1")
    monkeypatch.setenv("ACTION_HUB_RUN_CONTRACT_AFTER_REQUIRED", "no")
    fake = _fake_prefs_bpy(
        search_roots="",
        quality_priority=25,
        auto_file=False,
        run_contract_after_required=True,
        store_path="",
    )
    monkeypatch.setattr(bh, "bpy", fake)
    settings = bh.reload_settings()
    assert settings.quality_priority == 40
    assert settings.auto_file is True
    assert settings.run_contract_after_required is False


def test_settings_are_cached_until_reload(clean_env, monkeypatch):
    first = bh.reload_settings()
    monkeypatch.setenv("ACTION_HUB_QUALITY_PRIORITY", "77")
    assert bh.get_settings() is first
    assert bh.get_settings(force_reload=True).quality_priority == 77


# --- BlenderHost with a fake bpy data model ---

@dataclass
class Door(Component):
    key: Optional[str] = required_field()
    locked: bool = False

    def validate(self):
        if self.locked and not self.key:
            return False, "locked without a key"
        return True, ""


class _FakeObject(dict):
    def __init__(self, name, **props):
        super().__init__(**props)
        self.name = name


class _IDProps(dict):
    """Stand-in for an IDPropertyGroup value."""
    def to_dict(self):
        return dict(self)


class _Collections(dict):
    pass


def _fake_scene_bpy():
    front = _FakeObject("FrontDoor", Door=_IDProps(key="brass", locked=True))
    back = _FakeObject("BackDoor", Door={"key": "", "locked": True, "unknown": 1})
    lamp = _FakeObject("Lamp")
    shed = _FakeObject("ShedDoor", Door={"key": "iron"})
    collections = _Collections(
        House=SimpleNamespace(all_objects=[front, back, lamp]),
        Garden=SimpleNamespace(all_objects=[shed, front]),
    )
    data = SimpleNamespace(objects=[back, front, lamp, shed], collections=collections)
    return SimpleNamespace(data=data), (front, back, lamp, shed)


def _host(tmp_path, auto_file=False):
    settings = bh.HubSettings(auto_file=auto_file, store_path=str(tmp_path / "hub.json"))
    return bh.BlenderHost(JsonStore(settings.store_path), settings)


def test_blender_host_reads_components_from_custom_properties(monkeypatch, tmp_path):
    fake, (front, back, lamp, shed) = _fake_scene_bpy()
    monkeypatch.setattr(bh, "bpy", fake)
    host = _host(tmp_path)

    found = host.find_instances(Door, ["House"])
    assert [f.identifier for f in found] == ["FrontDoor", "BackDoor", "Lamp"]
    assert found[0].instance.key == "brass"
    assert found[0].instance.owner is front
    assert found[2].instance is None

    report = ValidationEngine(host, telemetry=TelemetrySystem()).run(Door, ["House"])
    assert report.tested_count == 2
    assert report.skipped_count == 1
    assert [str(f) for f in report.failures] == [
        "BackDoor: Field key is required but not set.",
        "BackDoor: locked without a key",
    ]
    assert report.failures[0].subject_ref is back


def test_blender_host_scope_deduplicates_and_empty_scope_means_all(monkeypatch, tmp_path):
    fake, _ = _fake_scene_bpy()
    monkeypatch.setattr(bh, "bpy", fake)
    host = _host(tmp_path)

    names = [f.identifier for f in host.find_instances(Door, ["House", "Scenes/Garden", "Missing"])]
    assert names == ["FrontDoor", "BackDoor", "Lamp", "ShedDoor"]
    assert [f.identifier for f in host.find_instances(Door, [])] == ["BackDoor", "FrontDoor", "Lamp", "ShedDoor"]


def test_blender_host_persists_through_the_store_and_answers_from_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(bh, "bpy", None)
    host = _host(tmp_path, auto_file=True)
    item = ToDoItem(name="issue")
    host.persist(item)
    assert [i.name for i in host.load_work_items(host.load_categories())] == ["issue"]
    host.delete(item)
    assert host.load_work_items(host.load_categories()) == []

    assert host.confirm("Validation Failed", "file?") is True
    assert _host(tmp_path).confirm("Validation Failed", "file?") is False


def test_blender_host_routes_notifications_to_reporter(monkeypatch, tmp_path):
    monkeypatch.setattr(bh, "bpy", None)
    host = _host(tmp_path)
    reports = []
    host.set_reporter(lambda level, text: reports.append((level, text)))
    host.notify("Validation Failed", "Validation of Door failed...\n\nBackDoor: bad")
    host.notify("Validation Passed", "all good")
    assert reports == [
        ({'WARNING'}, "Validation Failed: Validation of Door failed..."),
        ({'INFO'}, "Validation Passed: all good"),
    ]


def test_resolve_related_object(monkeypatch):
    fake = SimpleNamespace(data=SimpleNamespace(objects={"Cube": "cube-object"}))
    monkeypatch.setattr(bh, "bpy", fake)
    assert bh.resolve_related_object("Cube") == "cube-object"
    assert bh.resolve_related_object("Nope") is None
    monkeypatch.setattr(bh, "bpy", None)
    assert bh.resolve_related_object("Cube") is None


def test_get_workspace_uses_settings(clean_env, monkeypatch):
    monkeypatch.setenv("ACTION_HUB_QUALITY_PRIORITY", "12")
    monkeypatch.setenv("ACTION_HUB_SEARCH_ROOTS", "House")
    bh.reload_settings()
    bh.reset_workspace()
    try:
        ws = bh.get_workspace()
        assert ws.quality_priority == 12
        assert ws.search_roots == ("House",)
        assert isinstance(ws.host, bh.BlenderHost)
        assert bh.get_workspace() is ws
        assert {c.name for c in ws.list_categories()} == {"Default", "ToDo", "Quality"}
    finally:
        bh.reset_workspace()
