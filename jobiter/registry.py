import importlib
import logging
from typing import Dict, Type

from .errors import JobClassNotFound

logger = logging.getLogger(__name__)

_registry: Dict[str, type] = {}


def class_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def register(cls: Type) -> Type:
    name = class_name(cls)
    if name in _registry and _registry[name] is not cls:
        logger.debug("replacing job class %s", name)
    _registry[name] = cls
    return cls


def resolve(name: str) -> type:
    """Look up a job class by dotted name, importing its module if needed."""
    cls = _registry.get(name)
    if cls is not None:
        return cls
    module_name, _, qualname = name.rpartition(".")
    # nested classes: walk back until an importable module is found
    while module_name:
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            module_name, _, head = module_name.rpartition(".")
            qualname = f"{head}.{qualname}"
            continue
        obj = module
        for part in qualname.split("."):
            obj = getattr(obj, part, None)
            if obj is None:
                raise JobClassNotFound(f"No job class named {name}")
        return obj
    raise JobClassNotFound(f"No job class named {name}")
