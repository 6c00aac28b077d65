# Validation subjects: the two kinds of object the engine can scan, the
# validity contract they implement, and required-field declarations.
#
# Subject kinds:
# - Component: attached to a host owner object (a Blender object, or an
#   in-memory HostObject). The host enumerates owners; owners without the
#   component are skipped.
# - DataAsset: free-standing objects. Every live instance is tracked per
#   process so the engine can find "all live X" without a host index.
#
# Contract:
#   def validate(self) -> tuple[bool, str]
# returns (passed, message). A private `_validate` spelling is accepted.
#
# Required fields:
#   Declare with `name: str = required_field()` on dataclass subjects, or list
#   attribute names in a class-level `required_fields` tuple.

from __future__ import annotations

import dataclasses
import importlib
import itertools
import logging
import weakref
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_KEY = "action_hub_required"
CONTRACT_METHOD = "validate"
_CONTRACT_FALLBACKS = ("validate", "_validate")


@runtime_checkable
class Validatable(Protocol):
    def validate(self) -> Tuple[bool, str]:
        ...


class SubjectKind(Enum):
    COMPONENT = "component"
    DATA_ASSET = "data_asset"


def required_field(default: Any = None, **kwargs: Any) -> Any:
    """dataclasses.field() marked as required for validation. Defaults to None (unset)."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[REQUIRED_KEY] = True
    if "default_factory" in kwargs:
        return dataclasses.field(metadata=metadata, **kwargs)
    return dataclasses.field(default=default, metadata=metadata, **kwargs)


class Component:
    """
    Base for validation subjects that live on a host owner object.

    Inside Blender a component is stored as an ID custom property named
    `property_key()` (defaults to the class name) holding a dict of field
    values; `from_properties` rebuilds the component from it.
    """
    PROPERTY_KEY: Optional[str] = None

    owner: Any = None

    @classmethod
    def property_key(cls) -> str:
        return cls.PROPERTY_KEY or cls.__name__

    @classmethod
    def from_properties(cls, props: Mapping[str, Any], owner: Any = None) -> "Component":
        if dataclasses.is_dataclass(cls):
            names = {f.name for f in dataclasses.fields(cls) if f.init}
            obj = cls(**{k: v for k, v in props.items() if k in names})
        else:
            obj = cls()
            for key, value in props.items():
                setattr(obj, key, value)
        obj.owner = owner
        return obj


_LIVE_ASSETS: "weakref.WeakValueDictionary[int, DataAsset]" = weakref.WeakValueDictionary()
_ASSET_SEQ = itertools.count()


class DataAsset:
    """
    Base for free-standing validation subjects. Every instance is tracked while
    it is alive; `asset_path` (optional) places it under a search root.
    """
    asset_path: str = ""

    def __new__(cls, *args: Any, **kwargs: Any) -> "DataAsset":
        obj = super().__new__(cls)
        _LIVE_ASSETS[next(_ASSET_SEQ)] = obj
        return obj

    @classmethod
    def live_instances(cls, roots: Iterable[str] = ()) -> List["DataAsset"]:
        """All live instances of this class (and subclasses) in creation order, filtered by roots."""
        roots = [r for r in roots if r]
        found = []
        for seq in sorted(_LIVE_ASSETS.keys()):
            asset = _LIVE_ASSETS.get(seq)
            if asset is None or not isinstance(asset, cls):
                continue
            if roots and not any(path_under_root(asset.asset_path, root) for root in roots):
                continue
            found.append(asset)
        return found


def path_under_root(path: str, root: str) -> bool:
    if not path:
        return False
    path = path.replace("\\", "/")
    root = root.replace("\\", "/").rstrip("/")
    return path == root or path.startswith(root + "/")


def subject_kind(subject_type: type) -> SubjectKind:
    if issubclass(subject_type, Component):
        return SubjectKind.COMPONENT
    if issubclass(subject_type, DataAsset):
        return SubjectKind.DATA_ASSET
    raise ConfigurationError(
        f"Subject type {subject_type.__name__} must inherit from Component or DataAsset."
    )


def subject_name(subject: Any) -> str:
    if isinstance(subject, type):
        return subject.__name__
    return str(subject).replace(":", ".").rsplit(".", 1)[-1]


def resolve_subject_type(descriptor: Any) -> type:
    """
    Resolve a class or an import path ("pkg.module:Class" or "pkg.module.Class")
    to a supported subject class. Raises ConfigurationError before any work is done.
    """
    if descriptor is None or (isinstance(descriptor, str) and not descriptor.strip()):
        raise ConfigurationError("Subject type must be set.")

    if isinstance(descriptor, type):
        subject_type = descriptor
    elif isinstance(descriptor, str):
        subject_type = _import_type(descriptor.strip())
    else:
        raise ConfigurationError(f"Cannot resolve subject type from {type(descriptor).__name__}.")

    subject_kind(subject_type)
    return subject_type


def _import_type(path: str) -> type:
    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")
    if not module_name or not attr_path:
        raise ConfigurationError(f"Subject type '{path}' is not a 'module:Class' path.")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as ex:
        raise ConfigurationError(f"Subject type '{path}' could not be resolved: {ex}") from ex

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as ex:
            raise ConfigurationError(f"Subject type '{path}' could not be resolved: no attribute '{part}'.") from ex

    if not isinstance(target, type):
        raise ConfigurationError(f"Subject type '{path}' is not a class.")
    return target


def required_field_names(obj: Any) -> List[str]:
    names: List[str] = []
    if dataclasses.is_dataclass(obj):
        names.extend(f.name for f in dataclasses.fields(obj) if f.metadata.get(REQUIRED_KEY))
    for name in getattr(type(obj), "required_fields", ()) or ():
        if name not in names:
            names.append(name)
    return names


def is_unset(value: Any) -> bool:
    """None, an empty string, or an empty collection."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def find_contract(obj: Any) -> Optional[Callable[[], Any]]:
    """Locate the validity contract on the instance's concrete type, or None."""
    for attr in _CONTRACT_FALLBACKS:
        fn = getattr(obj, attr, None)
        if callable(fn):
            return fn
    return None
