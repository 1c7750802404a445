"""
Fake asyncpg pool and connection.

Each fake connection answers from queues of scripted results and records
every statement, so repository tests can check both the mapping of rows to
domain objects and the SQL parameters sent.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Tuple

import pytest


class FakeConnection:
    def __init__(self) -> None:
        self.fetchrow_results: List[Any] = []
        self.fetch_results: List[Any] = []
        self.fetchval_results: List[Any] = []
        self.execute_result = "INSERT 0 1"
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.transactions = 0
        self.in_transaction = False
        # indexes into statements issued inside a transaction block
        self.transactional: List[int] = []

    async def fetchrow(self, query: str, *args: Any) -> Any:
        self._record(query, args)
        return self.fetchrow_results.pop(0)

    async def fetch(self, query: str, *args: Any) -> Any:
        self._record(query, args)
        return self.fetch_results.pop(0)

    async def fetchval(self, query: str, *args: Any) -> Any:
        self._record(query, args)
        return self.fetchval_results.pop(0)

    async def execute(self, query: str, *args: Any) -> str:
        self._record(query, args)
        return self.execute_result

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        self.transactions += 1
        self.in_transaction = True
        try:
            yield
        finally:
            self.in_transaction = False

    def _record(self, query: str, args: Tuple[Any, ...]) -> None:
        if self.in_transaction:
            self.transactional.append(len(self.statements))
        self.statements.append((query, args))


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConnection]:
        yield self.conn


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def pool(conn: FakeConnection) -> FakePool:
    return FakePool(conn)
