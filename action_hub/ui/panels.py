# Action Hub UI panels for 3D Viewport Sidebar

import logging

import bpy

from ..core.errors import ActionHubError
from ..core.models import CountdownTimer, ToDoItem, ValidationAction
from ..utils.blender_helpers import get_workspace
from .operators import get_last_report

logger = logging.getLogger(__name__)

MAX_RECENT_SHOWN = 5


def _item_row(layout: bpy.types.UILayout, item) -> None:
    row = layout.row(align=True)
    owner = item.owner.name if item.owner else ""

    if isinstance(item, ToDoItem):
        op = row.operator("action_hub.mark_complete", text="", icon='CHECKBOX_DEHLT')
        op.item_name, op.owner_name = item.name, owner
    elif isinstance(item, ValidationAction):
        op = row.operator("action_hub.run_action", text="", icon='PLAY')
        op.item_name, op.owner_name = item.name, owner
    elif isinstance(item, CountdownTimer):
        op = row.operator("action_hub.start_countdown", text="", icon='TIME')
        op.item_name, op.owner_name = item.name, owner

    label = item.status_text() if isinstance(item, CountdownTimer) and item.is_running else item.label
    row.label(text=label)

    if item.related_objects:
        op = row.operator("action_hub.select_related", text="", icon='RESTRICT_SELECT_OFF')
        op.item_name, op.owner_name = item.name, owner
    op = row.operator("action_hub.set_priority", text=str(item.priority))
    op.item_name, op.owner_name = item.name, owner
    op = row.operator("action_hub.delete_item", text="", icon='X')
    op.item_name, op.owner_name = item.name, owner


# Main Hub Panel
class ACTIONHUB_PT_Hub(bpy.types.Panel):  # noqa: N801
    bl_label = "Action Hub"
    bl_idname = "ACTIONHUB_PT_hub"
    bl_space_type = 'VIEW_3D'
    bl_region_type = 'UI'
    bl_category = 'Action Hub'  # Sidebar tab name

    def draw(self, context: bpy.types.Context) -> None:
        layout = self.layout
        try:
            workspace = get_workspace()
        except ActionHubError as e:
            layout.label(text=f"Hub unavailable: {str(e)}", icon='ERROR')
            layout.operator("action_hub.refresh", text="Retry")
            return

        header = layout.row()
        header.label(text="Categories:")
        header.operator("action_hub.refresh", text="", icon='FILE_REFRESH')

        for category in workspace.visible_categories():
            view = workspace.view(category)
            active = workspace.list_active_work_items(category)
            box = layout.box()

            title = box.row()
            title.label(text=category.display_name)
            op = title.operator("action_hub.add_todo", text="", icon='ADD')
            op.category_name = category.name

            for item in view.visible_items(active):
                _item_row(box, item)

            hidden = view.hidden_count(active)
            if hidden or view.show_all:
                text = "Show fewer" if view.show_all else f"Show all ({hidden} more)"
                op = box.operator("action_hub.toggle_show_all", text=text)
                op.category_name = category.name

            templates = view.visible_templates(workspace.list_templates(category))
            if templates:
                trow = box.column(align=True)
                for template in templates:
                    op = trow.operator(
                        "action_hub.create_from_template",
                        text=f"New {template.label}",
                        icon='DUPLICATE',
                    )
                    op.template_name = template.name


class ACTIONHUB_PT_Validation(bpy.types.Panel):  # noqa: N801
    bl_label = "Validation"
    bl_idname = "ACTIONHUB_PT_validation"
    bl_space_type = 'VIEW_3D'
    bl_region_type = 'UI'
    bl_category = 'Action Hub'
    bl_parent_id = "ACTIONHUB_PT_hub"

    def draw(self, context: bpy.types.Context) -> None:
        layout = self.layout

        box = layout.box()
        box.prop(context.scene, "action_hub_subject", text="Subject")
        box.prop(context.scene, "action_hub_scope", text="Collections")
        box.operator("action_hub.run_validation", text="Run Validation", icon='CHECKMARK')

        report = get_last_report()
        if report is None:
            return

        rbox = layout.box()
        if report.passed:
            rbox.label(text=f"{report.tested_count} instances of {report.subject_name} passed.", icon='CHECKMARK')
            return

        rbox.label(
            text=f"{report.failure_count} failures from {report.tested_count} instances",
            icon='ERROR',
        )
        col = rbox.column(align=True)
        for failure in report.failures[:10]:
            col.label(text=str(failure).splitlines()[0])
        if report.failure_count > 10:
            col.label(text=f"... and {report.failure_count - 10} more")
        rbox.operator("action_hub.file_failures", text="File Issues as ToDo Items")


class ACTIONHUB_PT_Recent(bpy.types.Panel):  # noqa: N801
    bl_label = "Recent"
    bl_idname = "ACTIONHUB_PT_recent"
    bl_space_type = 'VIEW_3D'
    bl_region_type = 'UI'
    bl_category = 'Action Hub'
    bl_parent_id = "ACTIONHUB_PT_hub"
    bl_options = {'DEFAULT_CLOSED'}

    def draw(self, context: bpy.types.Context) -> None:
        layout = self.layout
        recent = get_workspace().recent

        col = layout.column(align=True)
        col.label(text="Selections:")
        for name in recent.selections()[:MAX_RECENT_SHOWN]:
            op = col.operator("action_hub.select_recent", text=str(name), icon='OBJECT_DATA')
            op.object_name = str(name)

        folders = recent.folders()[:MAX_RECENT_SHOWN]
        if folders:
            fcol = layout.column(align=True)
            fcol.label(text="Folders:")
            for path in folders:
                fcol.label(text=path, icon='FILE_FOLDER')


panel_classes = (
    ACTIONHUB_PT_Hub,
    ACTIONHUB_PT_Validation,
    ACTIONHUB_PT_Recent,
)


def register() -> None:
    # Scene properties for the validation box
    bpy.types.Scene.action_hub_subject = bpy.props.StringProperty(
        name="Subject Type",
        description="Import path of the component or data asset class to validate (module:Class)",
        default="",
    )
    bpy.types.Scene.action_hub_scope = bpy.props.StringProperty(
        name="Search Collections",
        description="Comma separated collection names to search (blank uses the preference roots)",
        default="",
    )

    for cls in panel_classes:
        bpy.utils.register_class(cls)

def unregister() -> None:
    for cls in reversed(panel_classes):
        bpy.utils.unregister_class(cls)

    # Clean up scene properties
    del bpy.types.Scene.action_hub_subject
    del bpy.types.Scene.action_hub_scope
