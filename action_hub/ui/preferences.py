# Action Hub preferences: validation defaults and store location

import bpy
from bpy.props import BoolProperty, IntProperty, StringProperty


# Add-on preferences class
class ActionHubPreferences(bpy.types.AddonPreferences):
    bl_idname = __package__.split(".")[0]  # Points to main add-on package

    # Validation
    search_roots: StringProperty(
        name="Search Roots",
        description="Collections to search when a validation run names none (separated by the OS path separator)",
        default="",
    )
    quality_priority: IntProperty(
        name="Issue Priority",
        description="Priority given to ToDo items filed from validation failures (lower shows first)",
        default=25,
        min=0,
        max=10000,
    )
    auto_file: BoolProperty(
        name="File Issues Automatically",
        description="Create a ToDo item for each validation failure without asking",
        default=False,
    )
    run_contract_after_required: BoolProperty(
        name="Validate After Missing Fields",
        description="Still run the validate() check when required fields are unset",
        default=True,
    )

    # Storage
    store_path: StringProperty(
        name="Hub Store",
        description="JSON file holding categories and work items (blank for the user config directory)",
        default="",
        subtype='FILE_PATH',
    )

    def draw(self, context: bpy.types.Context) -> None:
        layout = self.layout

        box = layout.box()
        box.label(text="Validation:")
        box.prop(self, "search_roots")
        box.prop(self, "quality_priority")
        box.prop(self, "auto_file")
        box.prop(self, "run_contract_after_required")

        layout.separator()
        sbox = layout.box()
        sbox.label(text="Storage:")
        sbox.prop(self, "store_path")
        sbox.operator("action_hub.refresh", text="Reload Hub")

        layout.separator()
        layout.label(text="Environment variables and config.json apply when a preference is left blank or at its default.")


# Registration
def register() -> None:
    bpy.utils.register_class(ActionHubPreferences)

def unregister() -> None:
    bpy.utils.unregister_class(ActionHubPreferences)
