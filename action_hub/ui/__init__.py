# Action Hub UI module

# Lazy import inside register to avoid importing bpy-dependent modules during offline tests

def register():
    """Register UI components."""
    from . import operators, panels, preferences

    preferences.register()
    operators.register()
    panels.register()

def unregister():
    """Unregister UI components."""
    from . import operators, panels, preferences

    panels.unregister()
    operators.unregister()
    preferences.unregister()
