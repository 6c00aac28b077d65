from dataclasses import dataclass
from typing import Optional

import pytest

from action_hub.core.errors import ActionHubError, InvalidNameError, NameCollisionError
from action_hub.core.host import HostObject, InMemoryHost
from action_hub.core.models import (
    Category,
    CountdownTimer,
    ToDoItem,
    ValidationAction,
    WorkItem,
    builtin_categories,
)
from action_hub.core.scheduler import TaskScheduler
from action_hub.core.telemetry import TelemetrySystem
from action_hub.core.workspace import FILE_PROMPT, TODO_DESCRIPTION, Workspace
from action_hub.validation.bridge import build_failure_items
from action_hub.utils import blender_helpers as bh
from action_hub.utils.storage import JsonStore
from action_hub.validation.subjects import Component, DataAsset, required_field


@dataclass
class Lamp(Component):
    bulb: Optional[str] = required_field()
    watts: int = 60

    def validate(self):
        if self.watts > 100:
            return False, "too bright"
        return True, ""


def _lamp_owners():
    owners = []
    for name, bulb, watts in [("lamp_a", "led", 60), ("lamp_b", None, 150), ("lamp_c", "led", 200)]:
        owner = HostObject(name=name, path=f"House/{name}")
        owner.add(Lamp(bulb=bulb, watts=watts))
        owners.append(owner)
    return owners


def _workspace(host=None, **kwargs):
    host = host or InMemoryHost()
    ws = Workspace(host, telemetry=TelemetrySystem(), scheduler=TaskScheduler(), **kwargs)
    ws.load()
    return ws


def test_load_defaults_categories_and_partitions_templates():
    cats = builtin_categories()
    by_name = {c.name: c for c in cats}
    host = InMemoryHost(
        categories=cats,
        work_items=[
            WorkItem(name="loose", display_name="loose", priority=5),
            ToDoItem(name="note", display_name="note", priority=1),
            WorkItem(name="Check Template", category=by_name["Quality"]),
        ],
    )
    ws = _workspace(host)

    loose = ws.find_item("loose")
    assert loose.category is ws.default_category
    assert ws.find_item("note").category is ws.category("ToDo")

    assert [i.name for i in ws.list_active_work_items()] == ["note", "loose"]
    assert [t.name for t in ws.list_templates(ws.category("Quality"))] == ["Check Template"]
    assert all(not i.is_template for i in ws.list_active_work_items())


def test_items_with_deleted_category_fall_back_to_default():
    gone = Category(name="Gone")
    host = InMemoryHost(work_items=[WorkItem(name="orphan", category=gone)])
    ws = _workspace(host)
    assert ws.find_item("orphan").category is ws.default_category


def test_missing_default_category_is_supplied_in_memory():
    ws = _workspace(InMemoryHost(categories=[Category(name="Only")]))
    assert ws.default_category.name == "Default"
    assert [c.name for c in ws.list_categories()] == ["Default", "Only"]


def test_visible_categories():
    ws = _workspace()
    # ToDo is always visible; empty Default and Quality are hidden
    assert [c.name for c in ws.visible_categories()] == ["ToDo"]
    ws.add_todo(ws.category("Quality"), "look at lamps")
    assert [c.name for c in ws.visible_categories()] == ["ToDo", "Quality"]


def test_add_todo_persists_and_refreshes():
    host = InMemoryHost()
    ws = _workspace(host)
    todo_cat = ws.category("ToDo")
    item = ws.add_todo(todo_cat, "  Rename bones ")

    assert item.name == "Rename bones"
    assert item.description == TODO_DESCRIPTION
    assert item.owner is todo_cat
    assert item in host.work_items
    assert host.refresh_count == 1
    assert ws.list_active_work_items(todo_cat) == [item]


def test_add_todo_rejects_collisions_and_bad_names():
    host = InMemoryHost()
    ws = _workspace(host)
    cat = ws.category("ToDo")
    ws.add_todo(cat, "same")
    with pytest.raises(NameCollisionError):
        ws.add_todo(cat, "same")
    with pytest.raises(InvalidNameError):
        ws.add_todo(cat, "")
    assert len(host.work_items) == 1
    # a different container is a different sibling set
    ws.add_todo(ws.category("Quality"), "same")
    assert len(host.work_items) == 2


def test_create_from_template_stores_under_template_category():
    quality = {c.name: c for c in builtin_categories()}
    cats = list(quality.values())
    template = ValidationAction(
        name="Lamp Check Template",
        display_name="Check lamps",
        category=quality["Quality"],
        subject="x.y:Lamp",
    )
    host = InMemoryHost(categories=cats, work_items=[template])
    ws = _workspace(host)

    item = ws.create_from_template(template, "Lamps in house")
    assert isinstance(item, ValidationAction)
    assert item.owner is quality["Quality"]
    assert item.subject == "x.y:Lamp"
    assert not item.is_template
    assert item in ws.list_active_work_items(quality["Quality"])
    assert template.subject == ""

    with pytest.raises(NameCollisionError):
        ws.create_from_template(template, "Lamps in house")


def test_create_from_template_requires_a_template():
    ws = _workspace(InMemoryHost(work_items=[WorkItem(name="plain")]))
    with pytest.raises(ActionHubError):
        ws.create_from_template(ws.find_item("plain"), "copy")


def test_mark_complete_set_priority_delete():
    host = InMemoryHost()
    ws = _workspace(host)
    cat = ws.category("ToDo")
    a = ws.add_todo(cat, "a")
    b = ws.add_todo(cat, "b")

    ws.set_priority(b, -10)
    assert b.priority == 0
    assert ws.list_active_work_items(cat) == [b, a]

    ws.mark_complete(a)
    assert ws.list_active_work_items(cat) == [b]

    ws.delete(b)
    assert b not in host.work_items
    assert ws.find_item("b") is None

    with pytest.raises(ActionHubError):
        ws.mark_complete(WorkItem(name="not a todo"))


def test_show_all_is_reset_by_reload():
    ws = _workspace()
    view = ws.view(ws.category("ToDo"))
    view.toggle_show_all()
    ws.refresh()
    assert ws.view(ws.category("ToDo")).show_all is False


def test_validate_and_report_files_quality_items_when_confirmed():
    host = InMemoryHost(owners=_lamp_owners(), confirm_answer=True)
    ws = _workspace(host)
    report, filed = ws.validate_and_report(Lamp)

    assert report.tested_count == 3
    assert report.failure_count == 3
    assert len(filed) == 3

    title, message = host.confirmations[0]
    assert title == "Validation Failed"
    assert message.endswith(FILE_PROMPT)
    assert host.notifications[0] == ("Validation Failed", report.summary())

    quality = ws.category("Quality")
    for item, failure in zip(filed, report.failures):
        assert item.category is quality
        assert item.priority == 25
        assert item.owner is None
        assert item.related_objects == (failure.subject_ref,)
        assert failure.message in item.description
        assert item.display_name == item.name
    assert filed[0].name == "Field bulb is required but not set. - Lamp on lamp_b"
    assert filed[1].description == 'Validation of Lamp failed for lamp_b: "too bright"'
    assert set(filed) <= set(ws.list_active_work_items(quality))


def test_validate_and_report_declined_files_nothing():
    host = InMemoryHost(owners=_lamp_owners(), confirm_answer=False)
    ws = _workspace(host)
    report, filed = ws.validate_and_report(Lamp)
    assert not report.passed
    assert filed == []
    assert host.work_items == []


def test_passing_validation_only_notifies():
    owner = HostObject(name="ok")
    owner.add(Lamp(bulb="led"))
    host = InMemoryHost(owners=[owner])
    ws = _workspace(host)
    report, filed = ws.validate_and_report(Lamp)
    assert report.passed
    assert filed == []
    assert host.confirmations == []
    assert host.notifications == [("Validation Passed", "Validation of 1 instances containing Lamp passed fully.")]


def test_filing_a_passing_report_is_a_noop():
    host = InMemoryHost()
    ws = _workspace(host)
    report = ws.run_validation(Lamp)
    assert ws.file_failures_as_work_items(report) == []
    assert host.refresh_count == 0


def test_search_roots_are_the_default_scope():
    owners = _lamp_owners()
    elsewhere = HostObject(name="garage_lamp", path="Garage/lamp")
    elsewhere.add(Lamp(bulb=None))
    host = InMemoryHost(owners=owners + [elsewhere])
    ws = _workspace(host, search_roots=("Garage",))
    assert ws.run_validation(Lamp).tested_count == 1
    assert ws.run_validation(Lamp, scope=[]).tested_count == 4


def test_quality_priority_is_configurable():
    host = InMemoryHost(owners=_lamp_owners())
    ws = _workspace(host, quality_priority=3)
    _, filed = ws.validate_and_report(Lamp)
    assert {i.priority for i in filed} == {3}


def test_bridge_falls_back_to_default_without_quality(caplog):
    cats = [c for c in builtin_categories() if c.name != "Quality"]
    host = InMemoryHost(categories=cats, owners=_lamp_owners())
    ws = _workspace(host)
    report = ws.run_validation(Lamp)
    items = build_failure_items(report, ws.list_categories())
    assert {i.category.name for i in items} == {"Default"}
    assert any("Quality" in r.getMessage() for r in caplog.records)


def test_run_action_records_report():
    action = ValidationAction(name="lamps", subject=f"{__name__}:Lamp")
    host = InMemoryHost(work_items=[action], owners=_lamp_owners(), confirm_answer=False)
    ws = _workspace(host)
    assert action.label.endswith("(Not run yet)")
    report, _ = ws.run_action(action)
    assert action.last_report is report
    assert action.report_text().endswith(report.summary())

    with pytest.raises(ActionHubError):
        ws.run_action(ValidationAction(name="empty"))


def test_countdown_notifies_when_finished():
    host = InMemoryHost()
    ws = _workspace(host)
    timer = CountdownTimer(name="focus", duration_s=3)
    ws.start_countdown(timer, now=100.0)
    assert timer.is_running
    assert ws.scheduler.is_running(timer.task_name)

    ws.scheduler.tick(101.0)
    ws.scheduler.tick(102.0)
    assert timer.status_text(102.0) == "Time remaining: 1"
    ws.scheduler.tick(103.0)

    assert not timer.is_running
    assert not ws.scheduler.is_running(timer.task_name)
    assert host.notifications == [("Countdown finished", "focus has finished.")]


def test_deleted_items_are_forgotten_by_recent():
    ws = _workspace()
    item = ws.add_todo(ws.category("ToDo"), "x")
    ws.recent.touch_selection(item)
    ws.delete(item)
    assert ws.recent.selections() == []


# --- Workspace over a JSON store: every reload rebuilds the items ---

class Gadget(DataAsset):
    def __init__(self, name, broken=False, root="Gadgets"):
        self.name = name
        self.broken = broken
        self.asset_path = f"{root}/{name}"

    def validate(self):
        if self.broken:
            return False, "gadget is broken"
        return True, ""


def _store_workspace(monkeypatch, tmp_path, work_items=(), auto_file=True):
    monkeypatch.setattr(bh, "bpy", None)
    settings = bh.HubSettings(auto_file=auto_file, store_path=str(tmp_path / "hub.json"))
    host = bh.BlenderHost(JsonStore(settings.store_path), settings)
    for item in work_items:
        host.persist(item)
    return _workspace(host)


def test_store_backed_run_action_keeps_report_on_reloaded_item(monkeypatch, tmp_path):
    gadgets = [Gadget("fine"), Gadget("cracked", broken=True)]
    action = ValidationAction(name="gadgets", subject=f"{__name__}:Gadget", scope=("Gadgets",))
    ws = _store_workspace(monkeypatch, tmp_path, work_items=[action])

    loaded = ws.find_item("gadgets")
    report, filed = ws.run_action(loaded)
    assert len(filed) == 1
    assert report.failures[0].subject_ref is gadgets[1]

    current = ws.find_item("gadgets")
    assert current is not loaded
    assert current.last_report is report
    assert current.label.startswith("Validate Gadget (last run ")

    ws.add_todo(None, "after the run")
    assert ws.find_item("gadgets").last_report is report
    assert ws.find_item("gadgets").report_text().endswith(report.summary())


def test_store_backed_countdown_stays_running_across_reloads(monkeypatch, tmp_path):
    ws = _store_workspace(monkeypatch, tmp_path, work_items=[CountdownTimer(name="focus", duration_s=3)])
    timer = ws.find_item("focus")
    ws.start_countdown(timer, now=100.0)
    ws.add_todo(None, "meanwhile")

    current = ws.find_item("focus")
    assert current is not timer
    assert current.is_running
    assert current.status_text(101.0) == "Time remaining: 2"

    ws.scheduler.tick(103.0)
    assert not ws.scheduler.is_running(current.task_name)
    assert not current.is_running
    ws.refresh()
    assert not ws.find_item("focus").is_running


def test_store_backed_countdown_cancel_after_reload(monkeypatch, tmp_path):
    ws = _store_workspace(monkeypatch, tmp_path, work_items=[CountdownTimer(name="focus", duration_s=30)])
    ws.start_countdown(ws.find_item("focus"), now=100.0)
    ws.refresh()

    current = ws.find_item("focus")
    assert current.is_running
    ws.cancel_countdown(current)
    assert not ws.scheduler.is_running(current.task_name)
    ws.refresh()
    assert not ws.find_item("focus").is_running


def test_store_backed_filing_keeps_failures_with_the_same_identifier(monkeypatch, tmp_path):
    gadgets = [Gadget(name, broken=True, root="Shelf") for name in ("dup", "dup", "solo")]
    ws = _store_workspace(monkeypatch, tmp_path)

    report, filed = ws.validate_and_report(Gadget, ["Shelf"])
    assert [f.subject_ref for f in report.failures] == gadgets
    assert [i.name for i in filed] == [
        "gadget is broken - Gadget on dup",
        "gadget is broken - Gadget on dup (2)",
        "gadget is broken - Gadget on solo",
    ]
    assert len(ws.host.load_work_items(ws.list_categories())) == 3
    assert len(ws.list_active_work_items(ws.category("Quality"))) == 3

    # filing again adds new records instead of replacing the earlier ones
    _, again = ws.validate_and_report(Gadget, ["Shelf"])
    assert [i.name for i in again] == [
        "gadget is broken - Gadget on dup (3)",
        "gadget is broken - Gadget on dup (4)",
        "gadget is broken - Gadget on solo (2)",
    ]
    assert len(ws.host.load_work_items(ws.list_categories())) == 6
