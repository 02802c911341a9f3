"""
tests/conftest.py

Shared fixtures: an in-memory stand-in for the Supabase query builder and
a few well-formed wallet addresses.
"""

import copy
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from postgrest.exceptions import APIError

from token_migration.db.store import MigrationStore


# ============================================================================
# Fake Supabase client
# ============================================================================

UNIQUE_COLUMNS = {
    "registered_users": ("solana_address", "evm_address"),
    "merkle": ("address",),
    "merkle_roots": ("campaign",),
}


class FakeQuery:
    """Records a chained query and applies it to FakeSupabase.tables on execute()."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.columns = None
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.bounds = None
        self.max_rows = None

    # --- operations ---

    def select(self, columns: str = "*"):
        self.op = "select"
        self.columns = [c.strip() for c in columns.split(",")]
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: str = None):
        self.op = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    # --- filters / modifiers ---

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def filter(self, column, operator, value):
        if operator == "not.is" and value == "null":
            self.filters.append(lambda row: row.get(column) is not None)
        else:
            raise NotImplementedError(f"filter {operator} {value}")
        return self

    def order(self, column):
        self.order_by = column
        return self

    def range(self, start, end):
        self.bounds = (start, end)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    # --- execution ---

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def _check_unique(self, rows: List[Dict[str, Any]], new_row: Dict[str, Any]):
        for column in UNIQUE_COLUMNS.get(self.table, ()):
            if any(row.get(column) == new_row.get(column) for row in rows):
                raise APIError({
                    "message": f'duplicate key value violates unique constraint "{self.table}_{column}_key"',
                    "code": "23505",
                    "hint": None,
                    "details": None,
                })

    def execute(self):
        self.db.calls.append((self.table, self.op))

        failure = self.db.raise_on.get((self.table, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            selected = [row for row in rows if self._matches(row)]
            if self.order_by:
                selected.sort(key=lambda row: row.get(self.order_by))
            if self.bounds:
                selected = selected[self.bounds[0]:self.bounds[1] + 1]
            if self.max_rows is not None:
                selected = selected[:self.max_rows]
            if self.columns != ["*"]:
                selected = [{c: row.get(c) for c in self.columns} for row in selected]
            return SimpleNamespace(data=copy.deepcopy(selected))

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            for new_row in new_rows:
                self._check_unique(rows, new_row)
                rows.append(dict(new_row))
            return SimpleNamespace(data=copy.deepcopy(new_rows))

        if self.op == "upsert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            for new_row in new_rows:
                existing = next(
                    (row for row in rows if row.get(self.on_conflict) == new_row.get(self.on_conflict)),
                    None,
                )
                if existing is None:
                    rows.append(copy.deepcopy(new_row))
                else:
                    existing.update(copy.deepcopy(new_row))
            return SimpleNamespace(data=copy.deepcopy(new_rows))

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        if self.op == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=removed)

        raise NotImplementedError(self.op)


class FakeSupabase:
    """Minimal in-memory Supabase client (table() -> chained query builder)."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls = []
        self.raise_on = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


# ============================================================================
# Fixtures
# ============================================================================

# Base58-encoded 32-byte public keys
SOL_ADDRESSES = [
    "79HZeHkX9A5WfBg72ankd1ppTXGepoSGpmkxW63wsrHY",
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "11111111111111111111111111111111",
    "So11111111111111111111111111111111111111112",
]

EVM_ADDRESSES = [
    "0x1111111111111111111111111111111111111111",
    "0x2222222222222222222222222222222222222222",
    "0x3333333333333333333333333333333333333333",
    "0x4444444444444444444444444444444444444444",
]


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def store(supabase):
    return MigrationStore(supabase, page_size=2)


@pytest.fixture
def registered(supabase):
    """Four registered wallet pairs without balances."""
    supabase.tables["registered_users"] = [
        {"id": i + 1, "solana_address": sol, "evm_address": evm, "solana_balance": None}
        for i, (sol, evm) in enumerate(zip(SOL_ADDRESSES, EVM_ADDRESSES))
    ]
    return supabase.tables["registered_users"]
