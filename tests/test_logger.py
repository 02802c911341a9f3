"""
tests/test_logger.py

Tests for run event logging.
"""

import pytest
from postgrest.exceptions import APIError

from token_migration.utils.logger import compute_payload_hash, log_run_event


class TestPayloadHash:

    def test_key_order_does_not_matter(self):
        assert compute_payload_hash({"a": 1, "b": "2"}) == compute_payload_hash({"b": "2", "a": 1})

    def test_is_sha256_hex(self):
        assert len(compute_payload_hash({})) == 64


class TestLogRunEvent:

    @pytest.mark.asyncio
    async def test_persists_event(self, store, supabase):
        row = await log_run_event(store, "MERKLE_ROOT_BUILT", {"root": "0xabc"})

        assert supabase.tables["migration_events"] == [row]
        assert row["payload_hash"] == compute_payload_hash({"root": "0xabc"})

    @pytest.mark.asyncio
    async def test_without_store(self):
        row = await log_run_event(None, "MERKLE_ROOT_BUILT", {"root": "0xabc"})
        assert row["event_type"] == "MERKLE_ROOT_BUILT"

    @pytest.mark.asyncio
    async def test_store_failure_is_not_fatal(self, store, supabase):
        supabase.raise_on[("migration_events", "insert")] = APIError({"message": "down", "code": "500"})

        assert await log_run_event(store, "SNAPSHOT_COMPLETED", {}) is None
