"""Repositories the generated services are wired to."""

from hyperapi.runtime.repository import InMemoryRepository


class TagRepository(InMemoryRepository):
    pass


class CustomerRepository(InMemoryRepository):
    pass


class InvoiceRepository(InMemoryRepository):
    pass


class LedgerRepository(InMemoryRepository):
    pass


class MemoRepository(InMemoryRepository):
    pass
