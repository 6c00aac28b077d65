# Action Hub error types shared by the workspace, validation engine and UI.

from __future__ import annotations


class ActionHubError(Exception):
    """Base class for errors surfaced to the hub user."""
    pass


class ConfigurationError(ActionHubError):
    """Raised when a validation subject cannot be resolved or is of an unsupported kind."""
    pass


class NameCollisionError(ActionHubError):
    """Raised when a new work item would reuse the name of an existing sibling."""

    def __init__(self, name: str, container: str | None = None) -> None:
        where = f" in '{container}'" if container else ""
        super().__init__(f"An item named '{name}' already exists{where}.")
        self.name = name
        self.container = container


class InvalidNameError(ActionHubError):
    """Raised when a proposed work item name is empty or not usable as a file name."""
    pass


class StorageError(ActionHubError):
    """Raised when the hub store cannot be written."""
    pass
