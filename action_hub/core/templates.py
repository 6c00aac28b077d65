# Creating concrete work items from template items.

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .errors import InvalidNameError, NameCollisionError
from .models import WorkItem

logger = logging.getLogger(__name__)

# Characters rejected by at least one supported platform's file system
INVALID_NAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(c) for c in range(32))


def validate_name(name: Optional[str]) -> str:
    """Return the stripped name or raise InvalidNameError."""
    if name is None or not name.strip():
        raise InvalidNameError("A name is required.")
    name = name.strip()
    bad = sorted({c for c in name if c in INVALID_NAME_CHARS})
    if bad:
        shown = " ".join(repr(c) for c in bad)
        raise InvalidNameError(f"'{name}' contains characters that are not allowed in names: {shown}")
    return name


def check_collision(name: str, siblings: Iterable[WorkItem], container: Optional[str] = None) -> None:
    for sibling in siblings:
        if sibling.name == name:
            raise NameCollisionError(name, container)


def create_from_template(template: WorkItem, name: str, siblings: Iterable[WorkItem] = ()) -> WorkItem:
    """
    Build a concrete item of the template's type named `name`.

    Name checks happen before anything changes. On success the template's
    user-editable fields are reset so it is ready for the next item.
    """
    name = validate_name(name)
    container = template.category.name if template.category else None
    check_collision(name, siblings, container)

    item = type(template)(
        name=name,
        display_name=template.display_name or name,
        description=template.description,
        category=template.category,
        priority=template.priority,
        is_template=False,
    )
    for key, value in template.template_defaults().items():
        setattr(item, key, value)

    template.reset_template_fields()
    logger.debug(f"Created {type(item).__name__} '{name}' from template '{template.name}'")
    return item
