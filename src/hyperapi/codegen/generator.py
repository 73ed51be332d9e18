"""
Artifact synthesizer - turns resource declarations into artifact bundles.

Synthesis runs once per record type. A failure for one type is logged and
recorded on the ``GeneratorResult``; the rest of the batch still runs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hyperapi.codegen.controller import build_controller_spec
from hyperapi.codegen.dto import build_dto_spec
from hyperapi.codegen.mapper import build_mapper_spec
from hyperapi.codegen.service import build_service_spec
from hyperapi.core.records import resource_config_of
from hyperapi.core.spec_builder import build_resource_spec
from hyperapi.errors import HyperApiError, SpecValidationError
from hyperapi.logging import get_codegen_logger
from hyperapi.specs.artifacts import ArtifactBundle
from hyperapi.specs.resource import ResourceConfig, ResourceSpec

logger = get_codegen_logger()


@dataclass
class GeneratorResult:
    """
    Result from a synthesis run.

    Attributes:
        bundles: Artifact bundles keyed by record type name
        files_created: Paths written by the source renderer
        errors: Per-type errors, formatted ``"<Type>: <message>"``
        warnings: Non-fatal findings
        skipped: Types with nothing to generate
    """

    bundles: dict[str, ArtifactBundle] = field(default_factory=dict)
    files_created: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether generation succeeded (no errors)."""
        return len(self.errors) == 0

    def add_file(self, path: Path, content: str | None = None) -> None:
        """
        Record a file that was created.

        If content is provided, the file is also written to disk.
        """
        if content is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        self.files_created.append(path)

    def add_error(self, type_name: str, error: str) -> None:
        self.errors.append(f"{type_name}: {error}")

    def add_warning(self, type_name: str, warning: str) -> None:
        self.warnings.append(f"{type_name}: {warning}")


def synthesize(spec: ResourceSpec) -> ArtifactBundle:
    """Run the four sub-generators over one spec."""
    return ArtifactBundle(
        spec=spec,
        dto=build_dto_spec(spec),
        mapper=build_mapper_spec(spec),
        service=build_service_spec(spec),
        controller=build_controller_spec(spec),
    )


class ArtifactSynthesizer:
    """
    Batch synthesizer over annotated record types.

    Example:
        result = ArtifactSynthesizer().synthesize_all([Customer, Invoice])
        for error in result.errors:
            print(error)
    """

    def __init__(self, configs: dict[str, ResourceConfig] | None = None):
        # Externally authored configs (e.g. TOML tables) keyed by type name;
        # they take precedence over decorator declarations.
        self.configs = dict(configs or {})

    def config_for(self, record_type: type) -> ResourceConfig | None:
        return self.configs.get(record_type.__name__) or resource_config_of(record_type)

    def synthesize_one(self, record_type: type, result: GeneratorResult) -> ArtifactBundle | None:
        type_name = getattr(record_type, "__name__", repr(record_type))
        try:
            spec = build_resource_spec(record_type, self.config_for(record_type))
        except SpecValidationError as e:
            logger.error("Resource declaration rejected for %s: %s", type_name, e)
            result.add_error(type_name, str(e))
            return None

        if not spec.should_generate:
            logger.info("Skipping generation for %s", type_name)
            result.skipped.append(type_name)
            return None

        try:
            bundle = synthesize(spec)
        except (HyperApiError, ValueError) as e:
            logger.error("Code generation failed for %s: %s", type_name, e)
            result.add_error(type_name, f"Code generation failed: {e}")
            return None

        if not bundle.dto.fields:
            result.add_warning(
                type_name,
                "The class doesn't contain any fields to generate a DTO for. "
                "Ensure it declares fields that are not ignored by mapping.",
            )
        result.bundles[type_name] = bundle
        return bundle

    def synthesize_all(self, record_types: Iterable[type]) -> GeneratorResult:
        result = GeneratorResult()
        for record_type in record_types:
            self.synthesize_one(record_type, result)
        logger.info(
            "Synthesized %d resource(s), %d error(s), %d skipped",
            len(result.bundles),
            len(result.errors),
            len(result.skipped),
        )
        return result

    def summary(self, result: GeneratorResult) -> dict[str, Any]:
        return {
            "generated": sorted(result.bundles),
            "errors": list(result.errors),
            "warnings": list(result.warnings),
            "skipped": list(result.skipped),
        }
