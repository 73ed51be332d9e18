"""
Entity registry and resource config cache.

The registry is built once at startup by scanning packages for persistable
record types that carry a resource declaration. It is read-only afterwards.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
import sys
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import ModuleType

from hyperapi.core.records import is_persistable, is_resource, resource_config_of
from hyperapi.core.spec_builder import build_resource_spec
from hyperapi.errors import (
    ConfigurationError,
    HyperApiError,
    NotFoundError,
    SpecValidationError,
)
from hyperapi.specs.resource import ResourceConfig, ResourceSpec

logger = logging.getLogger(__name__)


# =============================================================================
# Config cache
# =============================================================================


class ResourceConfigCache:
    """
    Per-type resource configuration, computed at most once.

    Overrides (e.g. TOML tables keyed by type name) win over decorator
    declarations. A type with neither fails with ``ConfigurationError``; the
    failure is remembered and re-raised on later lookups.
    """

    def __init__(self, overrides: Mapping[str, ResourceConfig] | None = None):
        self._overrides = dict(overrides or {})
        self._entries: dict[type, ResourceConfig | ConfigurationError] = {}
        self._lock = threading.Lock()

    def _compute(self, record_type: type) -> ResourceConfig | ConfigurationError:
        config = self._overrides.get(record_type.__name__) or resource_config_of(record_type)
        if config is None:
            return ConfigurationError(f"{record_type.__name__} has no resource declaration")
        return config

    def config_for(self, record_type: type) -> ResourceConfig:
        entry = self._entries.get(record_type)
        if entry is None:
            with self._lock:
                entry = self._entries.get(record_type)
                if entry is None:
                    entry = self._compute(record_type)
                    self._entries[record_type] = entry
        if isinstance(entry, ConfigurationError):
            raise entry
        return entry

    def __contains__(self, record_type: type) -> bool:
        return record_type in self._entries


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class RegistryEntry:
    """One registered resource."""

    resource_name: str
    record_type: type
    spec: ResourceSpec


def _import_tree(package: str) -> list[ModuleType]:
    root = importlib.import_module(package)
    modules = [root]
    path = getattr(root, "__path__", None)
    if path is not None:
        for info in pkgutil.walk_packages(path, prefix=f"{root.__name__}."):
            modules.append(importlib.import_module(info.name))
    return modules


def _candidates(modules: Iterable[ModuleType], persistable_only: bool = True) -> Iterator[type]:
    seen: set[type] = set()
    for module in modules:
        for value in list(vars(module).values()):
            if persistable_only and not is_persistable(value):
                continue
            if not is_resource(value):
                continue
            if value in seen or value.__module__ != module.__name__:
                continue
            seen.add(value)
            yield value


def discover(scan_packages: Iterable[str] = (), persistable_only: bool = True) -> list[type]:
    """
    Import the named packages (recursively) and collect declared resources.

    With no packages, every module already loaded is inspected. Set
    ``persistable_only`` to False to also collect declared classes that do not
    extend ``BaseRecord`` (so generation can report them).
    """
    packages = [p.strip() for p in scan_packages if p and p.strip()]
    if packages:
        modules: list[ModuleType] = []
        for package in packages:
            modules.extend(_import_tree(package))
    else:
        modules = [m for m in list(sys.modules.values()) if isinstance(m, ModuleType)]
    return list(_candidates(modules, persistable_only))


class EntityRegistry:
    """
    Immutable lookup of resource names to record types and their specs.

    Example:
        registry = EntityRegistry.scan(["sample_app"])
        entry = registry.resolve("customer")
    """

    def __init__(
        self,
        record_types: Iterable[type],
        config_cache: ResourceConfigCache | None = None,
    ):
        self.config_cache = config_cache or ResourceConfigCache()
        entries: dict[str, RegistryEntry] = {}
        by_type: dict[type, RegistryEntry] = {}
        for record_type in record_types:
            try:
                spec = build_resource_spec(record_type, self.config_cache.config_for(record_type))
            except (SpecValidationError, ConfigurationError) as e:
                logger.error("Skipping resource %s: %s", record_type.__name__, e)
                continue
            key = spec.resource_name.lower()
            if key in entries and entries[key].record_type is not record_type:
                raise SpecValidationError(
                    f"Duplicate resource name '{spec.resource_name}': "
                    f"{entries[key].record_type.__module__} and {record_type.__module__}"
                )
            entry = RegistryEntry(spec.resource_name, record_type, spec)
            entries[key] = entry
            by_type[record_type] = entry
        self._entries = entries
        self._by_type = by_type
        logger.info("Registered %d resource(s): %s", len(entries), ", ".join(sorted(entries)))

    @classmethod
    def scan(
        cls,
        scan_packages: Iterable[str] | str = (),
        config_cache: ResourceConfigCache | None = None,
    ) -> EntityRegistry:
        """``scan_packages`` may be a comma-separated string."""
        if isinstance(scan_packages, str):
            scan_packages = scan_packages.split(",")
        return cls(discover(scan_packages), config_cache)

    def by_simple_name(self, name: str) -> RegistryEntry | None:
        return self._entries.get(name.lower())

    def resolve(self, name: str) -> RegistryEntry:
        """
        Raises:
            NotFoundError: No resource with that name
        """
        entry = self.by_simple_name(name)
        if entry is None:
            raise NotFoundError(f"Entity not found: {name}")
        return entry

    def contains(self, record_type: type) -> bool:
        return record_type in self._by_type

    def spec_for(self, record_type: type) -> ResourceSpec:
        try:
            return self._by_type[record_type].spec
        except KeyError:
            raise HyperApiError(f"{record_type.__name__} is not registered") from None

    def all(self) -> frozenset[type]:
        return frozenset(self._by_type)

    def entries(self) -> list[RegistryEntry]:
        return sorted(self._entries.values(), key=lambda e: e.resource_name)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self.entries())
