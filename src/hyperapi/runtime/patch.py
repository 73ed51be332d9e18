"""
JSON Merge Patch (RFC 7396) support.

``apply_merge_patch`` is the shared primitive; ``merge_patched`` adds the
resource rules (object-only documents, immutable audit fields, forced id);
``PatchEngine`` runs them against the generic dispatcher.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic_core import to_jsonable_python

from hyperapi.core.records import IMMUTABLE_AUDIT_FIELDS
from hyperapi.errors import BadMergePatchError, NotFoundError
from hyperapi.specs.artifacts import EventType

if TYPE_CHECKING:
    from hyperapi.runtime.dispatcher import GenericDispatcher

logger = logging.getLogger(__name__)

MERGE_PATCH_MEDIA_TYPE = "application/merge-patch+json"


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply a merge patch to a JSON value and return the result.

    Object patches merge recursively and ``null`` members delete keys; any
    other patch value replaces the target. Inputs are not mutated.

    Examples:
        >>> apply_merge_patch({"a": 1, "b": {"c": 2}}, {"b": {"c": None, "d": 3}})
        {'a': 1, 'b': {'d': 3}}
    """
    if not isinstance(patch, Mapping):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, Mapping) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


def merge_patched(
    current: Mapping[str, Any],
    document: Any,
    record_id: Any,
    allowed_fields: Iterable[str] | None = None,
    immutable_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Merge ``document`` into the JSON form of the current state.

    Args:
        current: JSON-compatible representation of the stored record/DTO
        document: The parsed merge-patch document
        record_id: Path id, forced onto the result
        allowed_fields: Names the document may touch; None allows any
        immutable_fields: Extra fields restored from ``current`` after merging

    Raises:
        BadMergePatchError: The document is not an object, or names a field
            the resource does not expose
    """
    if not isinstance(document, Mapping):
        raise BadMergePatchError("Merge patch document must be a JSON object")
    if allowed_fields is not None:
        allowed = set(allowed_fields) | {"id"}
        unknown = sorted(k for k in document if k not in allowed)
        if unknown:
            raise BadMergePatchError(f"Patch names fields not exposed by this resource: {unknown}")

    merged = apply_merge_patch(current, document)
    for name in (*IMMUTABLE_AUDIT_FIELDS, *immutable_fields):
        if name in current:
            merged[name] = current[name]
        else:
            merged.pop(name, None)
    merged["id"] = record_id
    return merged


class PatchEngine:
    """
    Runtime-path patching over the generic dispatcher.

    Example:
        engine = PatchEngine(dispatcher)
        updated = await engine.patch(Customer, 7, {"name": "Ada"})
    """

    def __init__(self, dispatcher: GenericDispatcher, immutable_fields: Iterable[str] = ()):
        self.dispatcher = dispatcher
        self.immutable_fields = tuple(immutable_fields)

    async def patch(
        self,
        record_type: type,
        record_id: Any,
        document: Any,
        actor: str | None = None,
    ) -> dict[str, Any]:
        """
        Raises:
            NotFoundError: No record with ``record_id``
            BadMergePatchError: Invalid document or unusable result
        """
        async with self.dispatcher.repository.transaction():
            existing = await self.dispatcher.find_by_id(record_type, record_id)
            if existing is None:
                raise NotFoundError(f"{record_type.__name__} with id {record_id} not found")

            current = to_jsonable_python(existing)
            merged = merge_patched(
                current,
                document,
                record_id,
                allowed_fields=set(current) | set(self.dispatcher.exposed_fields(record_type)),
                immutable_fields=self.immutable_fields,
            )
            logger.debug("Patching %s#%s with %s", record_type.__name__, record_id, sorted(document))
            return await self.dispatcher.update(
                record_type, merged, actor=actor, event=EventType.PATCH
            )
