"""A declared resource that does not extend BaseRecord."""

from dataclasses import dataclass

from hyperapi import resource


@resource(path="/api/legacy")
@dataclass
class Legacy:
    id: int | None = None
    name: str = ""
