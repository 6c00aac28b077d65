# Action Hub UI operators

import logging
from typing import Any, Optional

import bpy

from ..core.errors import ActionHubError
from ..core.models import CountdownTimer, ValidationAction
from ..utils.blender_helpers import get_workspace, reload_settings, reset_workspace, resolve_related_object

logger = logging.getLogger(__name__)

# Report from the most recent validation run in this session (never persisted)
_LAST_REPORT: Optional[Any] = None


def get_last_report() -> Optional[Any]:
    return _LAST_REPORT


def _find_item(workspace, name: str, owner: str = ""):
    for item in workspace.all_items():
        owner_name = item.owner.name if item.owner else ""
        if item.name == name and (not owner or owner_name == owner):
            return item
    return None


class _ItemOperator:
    """Mixin for operators that act on one work item."""
    item_name: bpy.props.StringProperty(options={'HIDDEN'})
    owner_name: bpy.props.StringProperty(options={'HIDDEN'})

    def _item(self, workspace):
        item = _find_item(workspace, self.item_name, self.owner_name)
        if item is None:
            self.report({'WARNING'}, f"Work item '{self.item_name}' no longer exists.")
        return item


class ACTIONHUB_OT_Refresh(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.refresh"
    bl_label = "Refresh Hub"
    bl_description = "Reload settings, categories and work items"

    def execute(self, context: object) -> set[str]:
        reload_settings()
        reset_workspace()
        try:
            get_workspace().refresh()
        except ActionHubError as e:
            self.report({'ERROR'}, f"Refresh failed: {str(e)}")
            return {'CANCELLED'}
        return {'FINISHED'}


class ACTIONHUB_OT_AddToDo(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.add_todo"
    bl_label = "Add ToDo"
    bl_description = "Add a quick ToDo note to this category"

    category_name: bpy.props.StringProperty(options={'HIDDEN'})
    item_name: bpy.props.StringProperty(name="Name", default="")

    def invoke(self, context: object, event: object) -> set[str]:
        return context.window_manager.invoke_props_dialog(self)

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        try:
            item = workspace.add_todo(workspace.category(self.category_name), self.item_name)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        self.report({'INFO'}, f"Added '{item.label}'.")
        return {'FINISHED'}


class ACTIONHUB_OT_CreateFromTemplate(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.create_from_template"
    bl_label = "Create From Template"
    bl_description = "Create a new item using this template's defaults"

    template_name: bpy.props.StringProperty(options={'HIDDEN'})
    item_name: bpy.props.StringProperty(name="Name", default="")

    def invoke(self, context: object, event: object) -> set[str]:
        return context.window_manager.invoke_props_dialog(self)

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        template = next((t for t in workspace.list_templates() if t.name == self.template_name), None)
        if template is None:
            self.report({'WARNING'}, f"Template '{self.template_name}' not found.")
            return {'CANCELLED'}
        try:
            item = workspace.create_from_template(template, self.item_name)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        self.report({'INFO'}, f"Created '{item.label}'.")
        return {'FINISHED'}


class ACTIONHUB_OT_MarkComplete(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.mark_complete"
    bl_label = "Done"
    bl_description = "Mark this ToDo item complete"

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if item is None:
            return {'CANCELLED'}
        try:
            workspace.mark_complete(item)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        return {'FINISHED'}


class ACTIONHUB_OT_SetPriority(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.set_priority"
    bl_label = "Set Priority"
    bl_description = "Change the priority of this item (lower shows first)"

    priority: bpy.props.IntProperty(name="Priority", default=1000, min=0)

    def invoke(self, context: object, event: object) -> set[str]:
        item = _find_item(get_workspace(), self.item_name, self.owner_name)
        if item is not None:
            self.priority = item.priority
        return context.window_manager.invoke_props_dialog(self)

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if item is None:
            return {'CANCELLED'}
        try:
            workspace.set_priority(item, self.priority)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        return {'FINISHED'}


class ACTIONHUB_OT_DeleteItem(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.delete_item"
    bl_label = "Delete Item"
    bl_description = "Delete this work item"

    def invoke(self, context: object, event: object) -> set[str]:
        return context.window_manager.invoke_confirm(self, event)

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if item is None:
            return {'CANCELLED'}
        try:
            workspace.delete(item)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        self.report({'INFO'}, f"Deleted '{item.label}'.")
        return {'FINISHED'}


class ACTIONHUB_OT_ToggleShowAll(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.toggle_show_all"
    bl_label = "Show All"
    bl_description = "Show every item in this category, or only the first few"

    category_name: bpy.props.StringProperty(options={'HIDDEN'})

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        category = workspace.category(self.category_name)
        if category is None:
            return {'CANCELLED'}
        workspace.view(category).toggle_show_all()
        return {'FINISHED'}


def _run_and_report(operator, workspace, run) -> set[str]:
    """Run a validation callable with the operator as notification sink."""
    global _LAST_REPORT
    host = workspace.host
    if hasattr(host, "set_reporter"):
        host.set_reporter(operator.report)
    try:
        report, filed = run()
    except ActionHubError as e:
        operator.report({'ERROR'}, str(e))
        return {'CANCELLED'}
    finally:
        if hasattr(host, "set_reporter"):
            host.set_reporter(None)

    _LAST_REPORT = report
    if filed:
        operator.report({'INFO'}, f"Filed {len(filed)} issue(s) under Quality.")
    return {'FINISHED'}


class ACTIONHUB_OT_RunValidation(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.run_validation"
    bl_label = "Run Validation"
    bl_description = "Validate every instance of the subject type within the search roots"

    def execute(self, context: object) -> set[str]:
        subject = (getattr(context.scene, "action_hub_subject", "") or "").strip()
        if not subject:
            self.report({'WARNING'}, "Please enter a subject type first.")
            return {'CANCELLED'}
        scope_text = (getattr(context.scene, "action_hub_scope", "") or "").strip()
        scope = [s.strip() for s in scope_text.split(",") if s.strip()] or None

        workspace = get_workspace()
        return _run_and_report(self, workspace, lambda: workspace.validate_and_report(subject, scope))


class ACTIONHUB_OT_RunAction(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.run_action"
    bl_label = "Run"
    bl_description = "Run this saved validation action"

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if not isinstance(item, ValidationAction):
            return {'CANCELLED'}
        return _run_and_report(self, workspace, lambda: workspace.run_action(item))


class ACTIONHUB_OT_FileFailures(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.file_failures"
    bl_label = "File Issues"
    bl_description = "Create a ToDo item for each failure in the last validation report"

    @classmethod
    def poll(cls, context: object) -> bool:
        return _LAST_REPORT is not None and not _LAST_REPORT.passed

    def execute(self, context: object) -> set[str]:
        global _LAST_REPORT
        try:
            filed = get_workspace().file_failures_as_work_items(_LAST_REPORT)
        except ActionHubError as e:
            self.report({'ERROR'}, str(e))
            return {'CANCELLED'}
        self.report({'INFO'}, f"Filed {len(filed)} issue(s) under Quality.")
        _LAST_REPORT = None
        return {'FINISHED'}


class ACTIONHUB_OT_StartCountdown(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.start_countdown"
    bl_label = "Start Countdown"
    bl_description = "Start or cancel this countdown timer"

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if not isinstance(item, CountdownTimer):
            return {'CANCELLED'}
        if item.is_running:
            workspace.cancel_countdown(item)
            self.report({'INFO'}, f"Cancelled '{item.label}'.")
        else:
            workspace.start_countdown(item)
        return {'FINISHED'}


class ACTIONHUB_OT_SelectRelated(_ItemOperator, bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.select_related"
    bl_label = "Select Related"
    bl_description = "Select the object this item refers to"

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        item = self._item(workspace)
        if item is None:
            return {'CANCELLED'}
        targets = [o for o in (resolve_related_object(r) for r in item.related_objects) if o is not None]
        if not targets:
            self.report({'WARNING'}, "The related object no longer exists.")
            return {'CANCELLED'}
        return _select_object(self, context, workspace, targets[0])


class ACTIONHUB_OT_SelectRecent(bpy.types.Operator):  # noqa: N801
    bl_idname = "action_hub.select_recent"
    bl_label = "Select Recent"
    bl_description = "Select a recently used object"

    object_name: bpy.props.StringProperty(options={'HIDDEN'})

    def execute(self, context: object) -> set[str]:
        workspace = get_workspace()
        obj = resolve_related_object(self.object_name)
        if obj is None:
            workspace.recent.forget(self.object_name)
            self.report({'WARNING'}, f"'{self.object_name}' no longer exists.")
            return {'CANCELLED'}
        return _select_object(self, context, workspace, obj)


def _select_object(operator, context, workspace, obj) -> set[str]:
    try:
        for other in context.selected_objects:
            other.select_set(False)
        obj.select_set(True)
        context.view_layer.objects.active = obj
    except (AttributeError, RuntimeError) as e:
        operator.report({'WARNING'}, f"Could not select '{obj.name}': {str(e)}")
        return {'CANCELLED'}
    workspace.recent.touch_selection(obj.name)
    return {'FINISHED'}


classes = (
    ACTIONHUB_OT_Refresh,
    ACTIONHUB_OT_AddToDo,
    ACTIONHUB_OT_CreateFromTemplate,
    ACTIONHUB_OT_MarkComplete,
    ACTIONHUB_OT_SetPriority,
    ACTIONHUB_OT_DeleteItem,
    ACTIONHUB_OT_ToggleShowAll,
    ACTIONHUB_OT_RunValidation,
    ACTIONHUB_OT_RunAction,
    ACTIONHUB_OT_FileFailures,
    ACTIONHUB_OT_StartCountdown,
    ACTIONHUB_OT_SelectRelated,
    ACTIONHUB_OT_SelectRecent,
)


def register() -> None:
    for cls in classes:
        bpy.utils.register_class(cls)

def unregister() -> None:
    for cls in reversed(classes):
        bpy.utils.unregister_class(cls)
