"""Tests for the generic dispatcher, field access and the in-memory repository."""

from __future__ import annotations

from typing import Any

import pytest
from sample_app.models import Address, Customer, Invoice, Tag

from hyperapi.errors import BadRequestError, ConfigurationError, NotFoundError
from hyperapi.runtime.dispatcher import GenericDispatcher
from hyperapi.runtime.events import EntityEvent, ListenerEmitter
from hyperapi.runtime.field_access import ReflectionFieldAccessor, coerce_value, relation_fields
from hyperapi.runtime.registry import EntityRegistry
from hyperapi.runtime.repository import InMemoryRepository, LazyReference, unwrap
from hyperapi.specs.artifacts import EventType


@pytest.fixture
def dispatcher(
    repository: InMemoryRepository, registry: EntityRegistry, events: ListenerEmitter
) -> GenericDispatcher:
    return GenericDispatcher(repository, registry=registry, events=events)


class TestCoercion:
    @pytest.mark.parametrize(
        ("value", "annotation", "expected"),
        [
            ("12.5", float, 12.5),
            (3, float, 3.0),
            (4.0, int, 4),
            ("7", int, 7),
            ("yes", bool, True),
            ("off", bool, False),
            (1, bool, True),
            (None, int, None),
            (5, str, "5"),
        ],
    )
    def test_coerce_value(self, value: Any, annotation: Any, expected: Any) -> None:
        assert coerce_value(value, annotation) == expected

    @pytest.mark.parametrize(
        ("value", "annotation"),
        [("abc", int), (4.5, int), (True, int), ("maybe", bool)],
    )
    def test_coerce_value_rejects(self, value: Any, annotation: Any) -> None:
        with pytest.raises(BadRequestError, match="Cannot convert"):
            coerce_value(value, annotation)

    def test_optional_and_nested_dataclass(self) -> None:
        assert coerce_value("3", int | None) == 3
        address = coerce_value({"street": "1 Main", "city": "Leeds"}, Address | None)
        assert address == Address(street="1 Main", city="Leeds")


class TestFieldAccess:
    def test_relations(self) -> None:
        assert relation_fields(Invoice) == {"customer": Customer, "tags": Tag}
        assert relation_fields(Customer) == {}

    def test_to_map_reduces_relations(self) -> None:
        invoice = Invoice(
            id=3,
            number="INV-3",
            customer=Customer(id=9, name="Ada"),
            tags=[Tag(id=1, label="a"), Tag(id=2, label="b")],
        )
        data = ReflectionFieldAccessor().to_map(invoice)
        assert data["customer_id"] == 9
        assert "customer" not in data
        assert data["tags"] == {"count": 2, "type": "Tag"}
        assert data["number"] == "INV-3"

    def test_to_map_plain_nested_values(self) -> None:
        customer = Customer(name="Ada", address=Address(street="1 Main", city="Leeds"))
        data = ReflectionFieldAccessor().to_map(customer, ignored=["internal_notes"])
        assert data["address"] == {"street": "1 Main", "city": "Leeds"}
        assert "internal_notes" not in data

    def test_to_map_of_none(self) -> None:
        assert ReflectionFieldAccessor().to_map(None) == {}

    def test_to_instance_skips_reduced_keys(self) -> None:
        invoice = ReflectionFieldAccessor().to_instance(
            Invoice, {"number": "X", "customer_id": 4, "tags": {"count": 0, "type": "Tag"}}
        )
        assert invoice.number == "X"
        assert invoice.customer is None
        assert invoice.tags == []

    def test_to_instance_unknown_field(self) -> None:
        with pytest.raises(BadRequestError, match="Unknown field 'colour' for Customer"):
            ReflectionFieldAccessor().to_instance(Customer, {"colour": "red"})

    def test_to_instance_collections(self) -> None:
        customer = ReflectionFieldAccessor().to_instance(
            Customer, {"nicknames": ("a", "b"), "attributes": {"tier": "gold"}}
        )
        assert customer.nicknames == ["a", "b"]
        assert customer.attributes == {"tier": "gold"}

    def test_to_instance_wrong_collection_shape(self) -> None:
        with pytest.raises(BadRequestError, match="Expected an array"):
            ReflectionFieldAccessor().to_instance(Customer, {"nicknames": "a"})

    def test_record_must_be_no_arg_constructible(self) -> None:
        class Strict:
            def __init__(self, name: str):
                self.name = name

        with pytest.raises(ConfigurationError, match="constructible without arguments"):
            ReflectionFieldAccessor().to_instance(Strict, {})


class TestRepository:
    @pytest.mark.asyncio
    async def test_rollback_on_error(self, repository: InMemoryRepository) -> None:
        with pytest.raises(RuntimeError):
            async with repository.transaction():
                await repository.persist(Tag(label="lost"))
                raise RuntimeError("boom")
        assert await repository.count(Tag) == 0
        saved = await repository.persist(Tag(label="kept"))
        assert saved.id == 1

    @pytest.mark.asyncio
    async def test_stored_copies(self, repository: InMemoryRepository) -> None:
        tag = await repository.persist(Tag(label="a"), actor="alice")
        tag.label = "changed"
        stored = await repository.find(Tag, tag.id)
        assert stored is not None
        assert stored.label == "a"
        assert stored.created_by == "alice"
        assert stored.created_on is not None

    @pytest.mark.asyncio
    async def test_persist_rejects_stored_id(self, repository: InMemoryRepository) -> None:
        await repository.persist(Tag(label="a"), actor="alice")
        with pytest.raises(BadRequestError, match="Tag with id 1 already exists"):
            await repository.persist(Tag(id=1, label="b", created_by="mallory"))
        stored = await repository.find(Tag, 1)
        assert stored is not None
        assert stored.label == "a"
        assert stored.created_by == "alice"

    @pytest.mark.asyncio
    async def test_persist_with_new_id(self, repository: InMemoryRepository) -> None:
        await repository.persist(Tag(id=7, label="a"))
        assert (await repository.persist(Tag(label="b"))).id == 8

    @pytest.mark.asyncio
    async def test_lazy_page(self) -> None:
        repository = InMemoryRepository(lazy_loading=True)
        await repository.persist(Tag(label="a"))
        rows = await repository.page(Tag, 0, None)
        assert isinstance(rows[0], LazyReference)
        assert rows[0].label == "a"
        assert isinstance(unwrap(rows[0]), Tag)


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_create_and_find(self, dispatcher: GenericDispatcher) -> None:
        created = await dispatcher.create(Customer, {"name": "Ada", "active": "false"}, "alice")
        assert created["id"] == 1
        assert created["active"] is False
        assert created["created_by"] == "alice"
        assert "internal_notes" not in created

        found = await dispatcher.find_by_id(Customer, 1)
        assert found is not None
        assert found["name"] == "Ada"
        assert await dispatcher.find_by_id(Customer, 99) is None

    @pytest.mark.asyncio
    async def test_find_all_pages(self, dispatcher: GenericDispatcher) -> None:
        for label in "abcde":
            await dispatcher.create(Tag, {"label": label})
        page = await dispatcher.find_all(Tag, offset=1, limit=2)
        assert [row["label"] for row in page] == ["b", "c"]
        everything = await dispatcher.find_all(Tag, offset=-3, limit=0)
        assert len(everything) == 5

    @pytest.mark.asyncio
    async def test_update_replaces_fields(self, dispatcher: GenericDispatcher) -> None:
        created = await dispatcher.create(Invoice, {"number": "INV-1", "amount": "10"}, "alice")
        updated = await dispatcher.update(
            Invoice, {"id": created["id"], "number": "INV-1b", "paid": True}, "bob"
        )
        assert updated["number"] == "INV-1b"
        assert updated["amount"] == 0.0
        assert updated["paid"] is True
        assert updated["created_by"] == "alice"
        assert updated["updated_by"] == "bob"
        assert updated["created_on"] == created["created_on"]

    @pytest.mark.asyncio
    async def test_update_keeps_relations_and_ignored_fields(
        self, dispatcher: GenericDispatcher, repository: InMemoryRepository
    ) -> None:
        customer = await repository.persist(Customer(name="Ada", internal_notes="vip"))
        invoice = await repository.persist(Invoice(number="A", customer=customer))

        await dispatcher.update(Invoice, {"id": invoice.id, "number": "B", "customer_id": None})
        stored = await repository.find(Invoice, invoice.id)
        assert stored is not None
        assert stored.customer is not None
        assert stored.customer.name == "Ada"

        await dispatcher.update(Customer, {"id": customer.id, "name": "Ada L."})
        stored_customer = await repository.find(Customer, customer.id)
        assert stored_customer is not None
        assert stored_customer.internal_notes == "vip"

    @pytest.mark.asyncio
    async def test_update_errors(self, dispatcher: GenericDispatcher) -> None:
        with pytest.raises(BadRequestError, match="requires an id"):
            await dispatcher.update(Tag, {"label": "x"})
        with pytest.raises(NotFoundError, match="Tag with id 42 not found"):
            await dispatcher.update(Tag, {"id": 42, "label": "x"})

    @pytest.mark.asyncio
    async def test_bad_value_leaves_store_untouched(
        self, dispatcher: GenericDispatcher, repository: InMemoryRepository
    ) -> None:
        with pytest.raises(BadRequestError):
            await dispatcher.create(Invoice, {"number": "A", "amount": "lots"})
        assert await repository.count(Invoice) == 0

    @pytest.mark.asyncio
    async def test_delete(
        self,
        dispatcher: GenericDispatcher,
        received: list[EntityEvent[Any]],
    ) -> None:
        created = await dispatcher.create(Customer, {"name": "Ada"})
        await dispatcher.delete(Customer, created["id"])
        assert await dispatcher.find_by_id(Customer, created["id"]) is None
        await dispatcher.delete(Customer, created["id"])
        assert [e.type for e in received] == [EventType.CREATE, EventType.DELETE]
        assert received[1].entity is None


class TestDispatcherEvents:
    @pytest.mark.asyncio
    async def test_enabled_events_only(
        self, dispatcher: GenericDispatcher, received: list[EntityEvent[Any]]
    ) -> None:
        created = await dispatcher.create(Customer, {"name": "Ada"})
        await dispatcher.update(Customer, {"id": created["id"], "name": "Ada L."})
        await dispatcher.create(Tag, {"label": "quiet"})

        assert len(received) == 1
        event = received[0]
        assert event.type == EventType.CREATE
        assert event.resource == "Customer"
        assert isinstance(event.entity, Customer)
        assert event.entity.name == "Ada"

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_fail_operation(
        self, dispatcher: GenericDispatcher, events: ListenerEmitter
    ) -> None:
        def explode(event: EntityEvent[Any]) -> None:
            raise RuntimeError("listener down")

        events.subscribe(explode)
        created = await dispatcher.create(Customer, {"name": "Ada"})
        assert created["id"] == 1

    @pytest.mark.asyncio
    async def test_async_listener_awaited(
        self, dispatcher: GenericDispatcher, events: ListenerEmitter
    ) -> None:
        seen: list[EventType] = []

        async def listener(event: EntityEvent[Any]) -> None:
            seen.append(event.type)

        events.subscribe(listener)
        await dispatcher.create(Customer, {"name": "Ada"})
        assert seen == [EventType.CREATE]

    @pytest.mark.asyncio
    async def test_without_emitter(self, repository: InMemoryRepository) -> None:
        dispatcher = GenericDispatcher(repository)
        created = await dispatcher.create(Customer, {"name": "Ada"})
        assert created["name"] == "Ada"
        assert "internal_notes" not in created
