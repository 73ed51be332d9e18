"""Tests for artifact synthesis (DTO, mapper, service, controller specs)."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from sample_app.models import Customer, Invoice, Ledger, Memo, Tag
from sample_bad import Legacy

from hyperapi.codegen import ArtifactSynthesizer, synthesize
from hyperapi.core.records import BaseRecord
from hyperapi.core.spec_builder import build_resource_spec
from hyperapi.specs.artifacts import ArtifactBundle, EventType
from hyperapi.specs.resource import HttpMethod, ResourceConfig, Scope


@dataclass(kw_only=True)
class Hidden(BaseRecord):
    secret: str = ""


def bundle_for(record_type: type) -> ArtifactBundle:
    return synthesize(build_resource_spec(record_type))


class TestDtoSynthesis:
    def test_fields_follow_catalog_minus_ignored(self) -> None:
        dto = bundle_for(Customer).dto
        names = [f.name for f in dto.fields]
        assert names[0] == "id"
        assert "internal_notes" not in names
        assert dto.name == "CustomerDTO"
        assert dto.record_module == "sample_app.models"

    def test_boolean_getter_uses_is_prefix(self) -> None:
        dto = bundle_for(Customer).dto
        active = next(f for f in dto.fields if f.name == "active")
        assert [a.name for a in active.accessors] == ["is_active", "set_active"]

    def test_list_accessors(self) -> None:
        dto = bundle_for(Customer).dto
        nicknames = next(f for f in dto.fields if f.name == "nicknames")
        assert [a.name for a in nicknames.accessors] == [
            "get_nicknames",
            "set_nicknames",
            "add_nicknames_item",
            "clear_nicknames",
        ]
        assert nicknames.default_factory == "list"
        assert nicknames.element_type == "str"

    def test_dict_accessors(self) -> None:
        dto = bundle_for(Customer).dto
        attributes = next(f for f in dto.fields if f.name == "attributes")
        kinds = [a.kind for a in attributes.accessors]
        assert kinds == ["getter", "setter", "putter", "clearer"]
        assert attributes.accessors[2].name == "put_attributes_entry"

    def test_value_method_tuples_are_identical(self) -> None:
        dto = bundle_for(Invoice).dto
        assert dto.equality_fields == dto.hash_fields == dto.repr_fields
        assert dto.equality_fields == tuple(f.name for f in dto.fields)
        assert dto.has_value_methods

    def test_no_fields_means_no_value_methods(self) -> None:
        config = ResourceConfig.model_validate(
            {
                "mapping": {
                    "ignore": ["id", "created_by", "updated_by", "created_on", "updated_on", "secret"]
                }
            }
        )
        dto = synthesize(build_resource_spec(Hidden, config)).dto
        assert dto.fields == ()
        assert not dto.has_value_methods


class TestMapperSynthesis:
    def test_nested_ignores_become_directives(self) -> None:
        mapper = bundle_for(Invoice).mapper
        assert mapper.name == "InvoiceMapper"
        for method in ("to_entity", "to_dto"):
            directives = mapper.method(method).directives
            assert [d.target for d in directives] == ["customer.address"]
            assert all(d.ignore for d in directives)

    def test_list_method_is_concrete(self) -> None:
        mapper = bundle_for(Tag).mapper
        to_list = mapper.method("to_list")
        assert not to_list.abstract
        assert to_list.returns == "list[TagDTO]"
        assert mapper.method("to_entity").directives == ()

    def test_ignored_fields_recorded(self) -> None:
        assert bundle_for(Customer).mapper.ignored_fields == ("internal_notes",)


class TestServiceSynthesis:
    def test_repository_reference(self) -> None:
        service = bundle_for(Customer).service
        assert service.name == "CustomerService"
        assert service.repository_ref == "sample_app.repository:CustomerRepository"

    def test_fire_event_overrides(self) -> None:
        service = bundle_for(Customer).service
        assert [o.method for o in service.overrides] == ["create", "delete", "patch"]
        assert all(o.emit_call == "fire_event" for o in service.overrides)
        assert service.override_for("create").event == EventType.CREATE  # type: ignore[union-attr]
        assert service.override_for("update") is None
        assert not service.override_for("delete").passes_entity  # type: ignore[union-attr]
        assert service.emitter is None

    def test_custom_emitter_override(self) -> None:
        service = bundle_for(Invoice).service
        assert len(service.overrides) == 1
        override = service.overrides[0]
        assert (override.method, override.event) == ("update", EventType.UPDATE)
        assert override.emit_call == "emitter.emit"
        assert service.emitter == "sample_app.emitters:RecordingEmitter"

    def test_no_events_no_overrides(self) -> None:
        assert bundle_for(Tag).service.overrides == ()

    def test_base_methods_always_present(self) -> None:
        assert bundle_for(Tag).service.base_methods == (
            "find_all",
            "find_by_id",
            "create",
            "update",
            "delete",
            "patch",
        )


class TestControllerSynthesis:
    def test_endpoints(self) -> None:
        controller = bundle_for(Customer).controller
        assert controller.base_path == "/api/customers"
        assert [(e.name, e.verb, e.path, e.status_code) for e in controller.endpoints] == [
            ("get_all", HttpMethod.GET, "", 200),
            ("get_by_id", HttpMethod.GET, "/{id}", 200),
            ("create", HttpMethod.POST, "", 201),
            ("update", HttpMethod.PUT, "/{id}", 200),
            ("patch", HttpMethod.PATCH, "/{id}", 200),
            ("delete", HttpMethod.DELETE, "/{id}", 204),
        ]

    def test_pagination_params(self) -> None:
        get_all = bundle_for(Customer).controller.endpoint("get_all")
        assert [(p.name, p.default) for p in get_all.query_params] == [("offset", 0), ("limit", 20)]
        assert get_all.max_limit == 100

    def test_disabled_endpoint_keeps_route(self) -> None:
        delete = bundle_for(Invoice).controller.endpoint("delete")
        assert delete.disabled
        assert delete.disabled_message == "DELETE method is disabled for this resource"
        assert not bundle_for(Invoice).controller.endpoint("update").disabled

    def test_multiple_disabled_verbs(self) -> None:
        controller = bundle_for(Memo).controller
        disabled = {e.name for e in controller.endpoints if e.disabled}
        assert disabled == {"update", "patch"}

    def test_scope_carried(self) -> None:
        assert bundle_for(Ledger).controller.scope == Scope.REQUEST


class TestBatch:
    def test_failure_does_not_stop_batch(self) -> None:
        result = ArtifactSynthesizer().synthesize_all([Customer, Legacy, Invoice])
        assert sorted(result.bundles) == ["Customer", "Invoice"]
        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Legacy: ")

    def test_external_config_takes_precedence(self) -> None:
        synthesizer = ArtifactSynthesizer({"Tag": ResourceConfig(path="/labels")})
        result = synthesizer.synthesize_all([Tag])
        assert result.bundles["Tag"].controller.base_path == "/labels"

    def test_empty_dto_warns(self) -> None:
        config = ResourceConfig.model_validate(
            {
                "mapping": {
                    "ignore": ["id", "created_by", "updated_by", "created_on", "updated_on", "secret"]
                }
            }
        )
        result = ArtifactSynthesizer({"Hidden": config}).synthesize_all([Hidden])
        assert result.success
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Hidden: ")

    def test_summary(self) -> None:
        synthesizer = ArtifactSynthesizer()
        result = synthesizer.synthesize_all([Tag, Legacy])
        summary = synthesizer.summary(result)
        assert summary["generated"] == ["Tag"]
        assert len(summary["errors"]) == 1

    @pytest.mark.parametrize("record_type", [Tag, Customer, Invoice, Ledger, Memo])
    def test_synthesis_is_deterministic(self, record_type: type) -> None:
        assert bundle_for(record_type) == bundle_for(record_type)
