"""Tests for the source renderer and the modules it writes."""

from __future__ import annotations

import ast
import asyncio
import importlib
import uuid
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sample_app.models import Customer, Invoice, Ledger, Memo, Tag
from sample_shelf import Shelf

from hyperapi.codegen import render_bundle, snake_case, synthesize, write_bundle
from hyperapi.codegen.render import HEADER, render_controller, render_dto, render_mapper, render_service
from hyperapi.core.spec_builder import build_resource_spec
from hyperapi.runtime.events import EntityEvent, ListenerEmitter
from hyperapi.runtime.problems import register_exception_handlers
from hyperapi.runtime.repository import InMemoryRepository
from hyperapi.specs.artifacts import ArtifactBundle, EventType


def bundle_for(record_type: type) -> ArtifactBundle:
    return synthesize(build_resource_spec(record_type))


class TestSnakeCase:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("Customer", "customer"), ("LineItem", "line_item"), ("HTTPLog", "httplog")],
    )
    def test_snake_case(self, name: str, expected: str) -> None:
        assert snake_case(name) == expected


class TestRenderedSource:
    @pytest.mark.parametrize("record_type", [Tag, Customer, Invoice, Ledger, Memo])
    def test_every_module_parses(self, record_type: type) -> None:
        for path, source in render_bundle(bundle_for(record_type)).items():
            ast.parse(source, filename=path)
            assert HEADER in source

    def test_module_paths(self) -> None:
        assert sorted(render_bundle(bundle_for(Customer))) == [
            "controller/customer_controller.py",
            "dto/customer_dto.py",
            "mapper/customer_mapper.py",
            "service/customer_service.py",
        ]

    def test_dto_fields_and_accessors(self) -> None:
        source = render_dto(bundle_for(Customer))
        assert "class CustomerDTO(BaseDTO):" in source
        assert "nicknames: list[str] = Field(default_factory=list)" in source
        assert "email: str | None = None" in source
        assert "active: bool | None = None" in source
        assert "def is_active(self) -> bool | None:" in source
        assert "def put_attributes_entry(self, key: str, value: str) -> None:" in source
        assert "internal_notes" not in source

    def test_dto_imports_referenced_types(self) -> None:
        source = render_dto(bundle_for(Invoice))
        assert "from datetime import datetime" in source
        assert "from sample_app.models import Customer, Invoice, Tag" in source

    def test_mapper_directives(self) -> None:
        source = render_mapper(bundle_for(Invoice))
        assert "IGNORE_NESTED = ('customer.address',)" in source
        assert '"""Leaves customer.address untouched."""' in source

    def test_service_overrides(self) -> None:
        customer = render_service(bundle_for(Customer))
        assert "REPOSITORY_REF = 'sample_app.repository:CustomerRepository'" in customer
        assert "EMITTER_REF = None" in customer
        assert "await self.fire_event(EventType.CREATE, self.mapper.to_entity(result))" in customer
        assert "await self.fire_event(EventType.DELETE, None)" in customer
        assert "removed = await super().delete(record_id)" in customer
        assert "async def delete(self, record_id: Any) -> bool:" in customer

        invoice = render_service(bundle_for(Invoice))
        assert "EMITTER_REF = 'sample_app.emitters:RecordingEmitter'" in invoice
        assert "await self.emit(EventType.UPDATE, self.mapper.to_entity(result))" in invoice

    def test_service_without_events_has_no_overrides(self) -> None:
        source = render_service(bundle_for(Tag))
        assert "async def" not in source

    def test_controller_disabled_route(self) -> None:
        source = render_controller(bundle_for(Invoice))
        assert '@router.delete("/{id}", include_in_schema=False)' in source
        assert "raise NotFoundError('DELETE method is disabled for this resource')" in source
        assert "BASE_PATH = '/api/invoice'" in source

    def test_controller_bounds_limit(self) -> None:
        source = render_controller(bundle_for(Customer))
        assert "limit: int = Query(20, ge=0)" in source
        assert "min(limit or 20, 100)" in source


class TestWriteBundle:
    def test_writes_package(self, tmp_path: Path) -> None:
        result = write_bundle(bundle_for(Customer), tmp_path / "out")
        root = tmp_path / "out"
        for package in ("", "dto", "mapper", "service", "controller"):
            assert (root / package / "__init__.py").exists()
        assert (root / "dto" / "customer_dto.py").read_text().startswith('"""')
        assert len(result.files_created) == 9

    def test_init_files_written_once(self, tmp_path: Path) -> None:
        first = write_bundle(bundle_for(Customer), tmp_path)
        second = write_bundle(bundle_for(Tag), tmp_path)
        assert len(first.files_created) == 9
        assert len(second.files_created) == 4


@pytest.fixture
def generated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Write Customer and Invoice modules to an importable package."""
    package = f"gen_{uuid.uuid4().hex[:8]}"
    for record_type in (Customer, Invoice):
        write_bundle(bundle_for(record_type), tmp_path / package)
    monkeypatch.syspath_prepend(str(tmp_path))
    return package


def load(package: str, module: str) -> ModuleType:
    return importlib.import_module(f"{package}.{module}")


class TestGeneratedModules:
    def test_dto_value_methods(self, generated: str) -> None:
        dto_cls: Any = load(generated, "dto.customer_dto").CustomerDTO
        first = dto_cls(name="Ada", nicknames=["A"])
        second = dto_cls(name="Ada", nicknames=["A"])
        assert first == second
        assert hash(first) == hash(second)
        assert repr(first).startswith("CustomerDTO [id=None, ")

        first.add_nicknames_item("Countess")
        first.put_attributes_entry("tier", "gold")
        assert first.get_nicknames() == ["A", "Countess"]
        assert first != second
        first.clear_attributes()
        assert first.get_attributes() == {}

    def test_service_fires_events(self, generated: str) -> None:
        service_cls: Any = load(generated, "service.customer_service").CustomerService
        dto_cls: Any = load(generated, "dto.customer_dto").CustomerDTO
        events = ListenerEmitter()
        seen: list[EntityEvent[Any]] = []
        events.subscribe(seen.append)
        service = service_cls(repository=InMemoryRepository(), events=events)

        created = asyncio.run(service.create(dto_cls(name="Ada")))
        assert created.id == 1
        assert [e.type for e in seen] == [EventType.CREATE]
        assert isinstance(seen[0].entity, Customer)

        assert asyncio.run(service.delete(999)) is False
        assert asyncio.run(service.delete(created.id)) is True
        assert [e.type for e in seen] == [EventType.CREATE, EventType.DELETE]

    def test_service_uses_declared_emitter(self, generated: str) -> None:
        from sample_app.emitters import RecordingEmitter

        service_cls: Any = load(generated, "service.invoice_service").InvoiceService
        dto_cls: Any = load(generated, "dto.invoice_dto").InvoiceDTO
        service = service_cls(repository=InMemoryRepository())

        async def scenario() -> None:
            created = await service.create(dto_cls(number="INV-1"))
            created.paid = True
            await service.update(created)

        asyncio.run(scenario())
        assert [(t, e.number) for t, e in RecordingEmitter.received] == [
            (EventType.UPDATE, "INV-1")
        ]

    def test_controller_serves_routes(self, generated: str) -> None:
        controller: Any = load(generated, "controller.invoice_controller")
        service_cls: Any = load(generated, "service.invoice_service").InvoiceService
        service = service_cls(repository=InMemoryRepository())

        app = FastAPI()
        register_exception_handlers(app)
        app.include_router(controller.build_router(lambda: service))
        client = TestClient(app)

        created = client.post("/api/invoice", json={"number": "INV-7", "amount": 12.5})
        assert created.status_code == 201
        invoice_id = created.json()["id"]

        assert client.get(f"/api/invoice/{invoice_id}").json()["number"] == "INV-7"
        assert client.get("/api/invoice/999").status_code == 404

        disabled = client.delete(f"/api/invoice/{invoice_id}")
        assert disabled.status_code == 404
        assert disabled.json()["detail"] == "DELETE method is disabled for this resource"

        patched = client.patch(
            f"/api/invoice/{invoice_id}",
            content=b'{"paid": true}',
            headers={"Content-Type": "application/merge-patch+json"},
        )
        assert patched.status_code == 200
        assert patched.json()["paid"] is True


class TestAbstractContainers:
    def test_origin_imported(self) -> None:
        source = render_dto(bundle_for(Shelf))
        assert "from collections.abc import Sequence" in source
        assert "labels: Sequence[str] = Field(default_factory=list)" in source

    def test_generated_dto_imports(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        package = f"gen_{uuid.uuid4().hex[:8]}"
        write_bundle(bundle_for(Shelf), tmp_path / package)
        monkeypatch.syspath_prepend(str(tmp_path))
        dto_cls: Any = load(package, "dto.shelf_dto").ShelfDTO
        shelf = dto_cls(name="top", labels=["a"])
        shelf.add_labels_item("b")
        assert list(shelf.get_labels()) == ["a", "b"]
        assert shelf == dto_cls(name="top", labels=["a", "b"])
