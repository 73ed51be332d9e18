"""Shared fixtures for the unit tests: sample registry, repository and apps."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sample_app.emitters import RecordingEmitter
from sample_app.models import Customer, Invoice, Ledger, Memo, Tag

from hyperapi.config import HyperApiSettings
from hyperapi.runtime.app_factory import create_app
from hyperapi.runtime.events import EntityEvent, ListenerEmitter
from hyperapi.runtime.registry import EntityRegistry
from hyperapi.runtime.repository import InMemoryRepository

SAMPLE_TYPES = (Tag, Customer, Invoice, Ledger, Memo)

TOKENS = {
    "acct-token": {"name": "alice", "roles": ["accountant"]},
    "clerk-token": {"name": "bob", "roles": ["clerk"]},
}


@pytest.fixture(autouse=True)
def _reset_recording_emitter() -> Iterator[None]:
    RecordingEmitter.received.clear()
    yield
    RecordingEmitter.received.clear()


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry(SAMPLE_TYPES)


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def events() -> ListenerEmitter:
    return ListenerEmitter()


@pytest.fixture
def received(events: ListenerEmitter) -> list[EntityEvent[Any]]:
    """Events delivered to the shared listener emitter."""
    captured: list[EntityEvent[Any]] = []
    events.subscribe(captured.append)
    return captured


@pytest.fixture
def settings() -> HyperApiSettings:
    return HyperApiSettings.model_validate({"tokens": TOKENS})


@pytest.fixture
def client(
    settings: HyperApiSettings,
    registry: EntityRegistry,
    repository: InMemoryRepository,
    events: ListenerEmitter,
) -> TestClient:
    """Generic ``/api/{entity}`` app."""
    app = create_app(settings, registry=registry, repository=repository, events=events)
    return TestClient(app)


@pytest.fixture
def generated_client(
    settings: HyperApiSettings,
    registry: EntityRegistry,
    repository: InMemoryRepository,
    events: ListenerEmitter,
) -> TestClient:
    """App serving one materialized router per resource."""
    app = create_app(
        settings,
        registry=registry,
        repository=repository,
        events=events,
        mode="generated",
    )
    return TestClient(app)
