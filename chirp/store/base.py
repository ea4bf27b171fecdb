from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

type Row = dict[str, Any]


@dataclass(frozen=True)
class WriteResult:
    affected_rows: int


class Store(ABC):
    """The four primitives every piece of the content layer is written against.

    Statements are SQL strings (or sqlalchemy text() clauses) with named parameters. Rows come back
    as plain dicts. Everything issued inside ``transaction()`` commits or rolls back together,
    nested ``transaction()`` blocks join the outermost one, and writes outside a transaction commit
    on their own.
    """

    name = 'abstract'

    @abstractmethod
    def execute_write(self, statement, params: dict | None = None) -> WriteResult:
        ...

    @abstractmethod
    def fetch_one(self, query, params: dict | None = None) -> Row | None:
        ...

    @abstractmethod
    def fetch_many(self, query, params: dict | None = None) -> list[Row]:
        ...

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        ...

    @abstractmethod
    def create_schema(self) -> None:
        ...

    def fetch_value(self, query, params: dict | None = None, default=None):
        row = self.fetch_one(query, params)
        if row is None:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    def ping(self) -> bool:
        return self.fetch_value('SELECT 1') == 1
