"""
tests/test_snapshot.py

Tests for the balance snapshot task:
- Balances recorded as exact strings, keyed by wallet
- Per-wallet failures reported, never fatal
- Batching and inter-batch delay
- Straggler re-runs
"""

import json

import pytest
from unittest.mock import AsyncMock, patch
from postgrest.exceptions import APIError

from token_migration.errors import OracleError
from token_migration.models.snapshot import TokenBalance
from token_migration.tasks.snapshot import read_account_list, take_snapshot, write_failed_accounts
from token_migration.utils.solana_rpc import SolanaBalanceOracle

from tests.conftest import SOL_ADDRESSES
from tests.test_oracle import MINT, FakeResponse, rpc_result, token_account


class FakeOracle:
    """Balance per owner; owners in `failing` fail on every endpoint."""

    def __init__(self, balances, failing=()):
        self.balances = balances
        self.failing = set(failing)
        self.calls = []

    async def get_balance(self, session, owner):
        self.calls.append(owner)
        if owner in self.failing:
            raise OracleError(f"All 3 endpoints failed for {owner}")
        return TokenBalance(amount=self.balances.get(owner, 0), decimals=9), "https://rpc"


BALANCES = {
    SOL_ADDRESSES[0]: 10 * 10 ** 9,
    SOL_ADDRESSES[1]: 20 * 10 ** 9,
    SOL_ADDRESSES[2]: 0,
    SOL_ADDRESSES[3]: 123456789,
}


@pytest.fixture
def no_sleep():
    with patch("token_migration.tasks.snapshot.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestTakeSnapshot:

    @pytest.mark.asyncio
    async def test_records_every_balance(self, store, supabase, registered, no_sleep):
        result = await take_snapshot(store, FakeOracle(BALANCES), batch_size=5, batch_delay=0, session=object())

        assert len(result.successful) == 4
        assert result.failed == []

        rows = {row["solana_address"]: row for row in supabase.tables["registered_users"]}
        assert rows[SOL_ADDRESSES[1]]["solana_balance"] == "20000000000"
        assert rows[SOL_ADDRESSES[2]]["solana_balance"] == "0"
        assert rows[SOL_ADDRESSES[3]]["solana_decimals"] == 9

    @pytest.mark.asyncio
    async def test_failed_wallets_reported_not_stored(self, store, supabase, registered, no_sleep):
        oracle = FakeOracle(BALANCES, failing=[SOL_ADDRESSES[1]])

        result = await take_snapshot(store, oracle, batch_size=2, batch_delay=0, session=object())

        assert [user.solana_address for user in result.failed] == [SOL_ADDRESSES[1]]
        assert len(result.successful) == 3
        rows = {row["solana_address"]: row for row in supabase.tables["registered_users"]}
        assert rows[SOL_ADDRESSES[1]]["solana_balance"] is None

    @pytest.mark.asyncio
    async def test_store_failure_counts_as_wallet_failure(self, store, supabase, registered, no_sleep):
        supabase.raise_on[("registered_users", "update")] = APIError({"message": "boom", "code": "500"})

        result = await take_snapshot(store, FakeOracle(BALANCES), batch_size=5, batch_delay=0, session=object())

        assert result.successful == []
        assert len(result.failed) == 4

    @pytest.mark.asyncio
    async def test_delay_between_batches_only(self, store, registered, no_sleep):
        await take_snapshot(store, FakeOracle(BALANCES), batch_size=2, batch_delay=3, session=object())

        # Two batches of two: one pause, none after the last batch
        no_sleep.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_rerun_overwrites_balance(self, store, supabase, registered, no_sleep):
        await take_snapshot(store, FakeOracle(BALANCES), batch_size=5, batch_delay=0, session=object())
        changed = dict(BALANCES, **{SOL_ADDRESSES[0]: 1})
        await take_snapshot(store, FakeOracle(changed), batch_size=5, batch_delay=0, session=object())

        rows = [row for row in supabase.tables["registered_users"] if row["solana_address"] == SOL_ADDRESSES[0]]
        assert len(rows) == 1
        assert rows[0]["solana_balance"] == "1"

    @pytest.mark.asyncio
    async def test_only_restricts_to_stragglers(self, store, registered, no_sleep):
        oracle = FakeOracle(BALANCES)

        result = await take_snapshot(
            store, oracle, batch_size=5, batch_delay=0, only={SOL_ADDRESSES[3]}, session=object()
        )

        assert oracle.calls == [SOL_ADDRESSES[3]]
        assert len(result.successful) == 1

    @pytest.mark.asyncio
    async def test_no_registered_users(self, store, no_sleep):
        result = await take_snapshot(store, FakeOracle({}), batch_size=5, batch_delay=0, session=object())

        assert result.successful == []
        assert result.failed == []

    @pytest.mark.asyncio
    async def test_balance_statistics(self, store, registered, no_sleep):
        result = await take_snapshot(store, FakeOracle(BALANCES), batch_size=5, batch_delay=0, session=object())

        stats = result.balance_statistics()
        assert stats["max"] == 20
        assert stats["min"] == 0


class TestFailedAccountsFile:

    @pytest.mark.asyncio
    async def test_round_trip(self, store, registered, no_sleep, tmp_path):
        oracle = FakeOracle(BALANCES, failing=[SOL_ADDRESSES[0], SOL_ADDRESSES[2]])
        result = await take_snapshot(store, oracle, batch_size=5, batch_delay=0, session=object())
        path = tmp_path / "failed.json"

        assert write_failed_accounts(result, str(path)) == 2
        assert read_account_list(str(path)) == {SOL_ADDRESSES[0], SOL_ADDRESSES[2]}

    def test_rejects_non_list(self, tmp_path):
        path = tmp_path / "failed.json"
        path.write_text(json.dumps({"a": 1}))

        with pytest.raises(ValueError):
            read_account_list(str(path))


class OwnerSession:
    """Replies per owner; the owner in `broken` gets a malformed answer from every endpoint."""

    def __init__(self, broken):
        self.broken = broken

    def post(self, endpoint, json=None, timeout=None):
        owner = json["params"][0]
        if owner == self.broken:
            return FakeResponse(body=rpc_result(token_account("-5", mint=MINT)))
        return FakeResponse(body=rpc_result(token_account(str(BALANCES[owner]), mint=MINT)))


class TestMalformedOracleAnswer:

    @pytest.mark.asyncio
    async def test_one_bad_wallet_does_not_abort_batch(self, store, supabase, registered, no_sleep):
        oracle = SolanaBalanceOracle(endpoints=["https://a", "https://b"], mint=MINT, timeout=1, default_decimals=9)

        result = await take_snapshot(
            store, oracle, batch_size=5, batch_delay=0, session=OwnerSession(SOL_ADDRESSES[1])
        )

        assert [user.solana_address for user in result.failed] == [SOL_ADDRESSES[1]]
        assert len(result.successful) == 3

        rows = {row["solana_address"]: row for row in supabase.tables["registered_users"]}
        assert rows[SOL_ADDRESSES[1]]["solana_balance"] is None
        assert rows[SOL_ADDRESSES[0]]["solana_balance"] == str(BALANCES[SOL_ADDRESSES[0]])
