"""A resource whose collection is declared with an abstract container type."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from hyperapi import BaseRecord, resource


@resource(path="/api/shelves")
@dataclass(kw_only=True)
class Shelf(BaseRecord):
    name: str = ""
    labels: Sequence[str] = field(default_factory=list)
