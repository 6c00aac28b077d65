# Action Hub Core module

try:
    import bpy
except ImportError:
    bpy = None
from . import scheduler, telemetry


def register() -> None:
    """Register core components."""
    telemetry.register()
    scheduler.register()

def unregister() -> None:
    """Unregister core components."""
    scheduler.unregister()
    telemetry.unregister()
