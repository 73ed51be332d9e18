"""
Import-path helpers for ``"package.module:Name"`` references.
"""

from __future__ import annotations

import importlib
from typing import Any

from hyperapi.errors import ConfigurationError


def import_object(path: str) -> Any:
    """
    Import an object from ``"package.module:Name"`` (or ``"package.module.Name"``).

    Raises:
        ConfigurationError: The module or attribute cannot be found
    """
    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid import path '{path}'")
    try:
        target: Any = importlib.import_module(module_name)
        for part in attr.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import '{path}': {e}") from e
    return target

