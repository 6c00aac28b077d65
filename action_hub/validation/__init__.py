# Action Hub validation: subjects, engine and the failure bridge

from .bridge import file_failures_as_work_items
from .engine import (
    FailureKind,
    ValidationEngine,
    ValidationFailure,
    ValidationOptions,
    ValidationReport,
)
from .subjects import Component, DataAsset, Validatable, required_field

__all__ = [
    "Component",
    "DataAsset",
    "FailureKind",
    "Validatable",
    "ValidationEngine",
    "ValidationFailure",
    "ValidationOptions",
    "ValidationReport",
    "file_failures_as_work_items",
    "required_field",
]
