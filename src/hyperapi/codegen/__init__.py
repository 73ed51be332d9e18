"""
Artifact synthesis and its backends.

``ArtifactSynthesizer`` turns resource specs into artifact bundles; the
source renderer writes them out as Python modules and the materializer
builds them as live objects.
"""

from hyperapi.codegen.generator import ArtifactSynthesizer, GeneratorResult, synthesize
from hyperapi.codegen.materialize import MaterializedResource, materialize
from hyperapi.codegen.render import render_bundle, snake_case, write_bundle

__all__ = [
    "ArtifactSynthesizer",
    "GeneratorResult",
    "MaterializedResource",
    "materialize",
    "render_bundle",
    "snake_case",
    "synthesize",
    "write_bundle",
]
