# Action Hub Utils module

from . import blender_helpers, storage


def register() -> None:
    """Register utility components."""
    blender_helpers.register()

def unregister() -> None:
    """Unregister utility components."""
    blender_helpers.unregister()
