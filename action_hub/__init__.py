# Action Hub: task notes, recent items and validation runs for Blender
#
# This add-on keeps lightweight ToDo notes and saved actions in a sidebar hub,
# tracks recently touched objects, and runs validation passes over custom
# components and data assets, filing failures back into the hub.
#
# License: MIT
# Compatible with Blender 4.0+

import logging

# Add-on metadata
bl_info = {
    "name": "Action Hub",
    "author": "Action Hub contributors",
    "description": "Task notes, recent items and validation runs in the sidebar",
    "blender": (4, 0, 0),
    "version": (0, 1, 0),
    "location": "3D Viewport Sidebar (N-panel) > Action Hub tab",
    "category": "Development",
    "support": "COMMUNITY",
}

# Global logger for the add-on
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)

# Handler to Blender console (if available) or stdout
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def register():
    """Register the add-on components."""
    logger.info("Registering Action Hub add-on...")
    # Lazy import to avoid loading bpy/UI in non-Blender environments and tests
    from . import core, ui, utils

    # Register UI components first (panels, operators)
    ui.register()

    # Register core modules (scheduler timer, telemetry)
    core.register()

    # Register utilities
    utils.register()

    logger.info("Action Hub add-on registered successfully.")


def unregister():
    """Unregister the add-on components."""
    logger.info("Unregistering Action Hub add-on...")
    from . import core, ui, utils

    # Unregister in reverse order
    utils.unregister()
    core.unregister()
    ui.unregister()

    logger.info("Action Hub add-on unregistered.")


# Blender calls this on add-on load
if __name__ == "__main__":
    register()
