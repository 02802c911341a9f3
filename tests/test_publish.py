"""
tests/test_publish.py

Tests for the publisher task:
- One row per address, amount as a decimal string
- Idempotent re-publish
- Pruning of rows from an earlier distribution
- Root record written last
"""

import json

import pytest

from token_migration.errors import InvariantViolation
from token_migration.models.distribution import ClaimProof, MerkleDistribution
from token_migration.tasks.merkle_build import build_distribution
from token_migration.tasks.publish import build_proof_rows, publish_distribution

from tests.conftest import EVM_ADDRESSES

BIG = 123456789 * 10 ** 30


@pytest.fixture
def distribution():
    return build_distribution({
        EVM_ADDRESSES[0]: BIG,
        EVM_ADDRESSES[1]: 2,
        EVM_ADDRESSES[2]: 3,
    })


class TestPublish:

    @pytest.mark.asyncio
    async def test_rows_and_root(self, store, supabase, distribution):
        summary = await publish_distribution(distribution, store=store, campaign="uos", batch_size=2)

        rows = {row["address"]: row for row in supabase.tables["merkle"]}
        assert set(rows) == set(EVM_ADDRESSES[:3])
        assert rows[EVM_ADDRESSES[0]]["balance"] == str(BIG)
        assert rows[EVM_ADDRESSES[0]]["proof"] == distribution.proofs[EVM_ADDRESSES[0]].proof

        roots = supabase.tables["merkle_roots"]
        assert len(roots) == 1
        assert roots[0]["campaign"] == "uos"
        assert roots[0]["merkle_root"] == distribution.root
        assert roots[0]["token_total"] == str(BIG + 5)

        assert summary["rows_written"] == 3
        assert supabase.calls.count(("merkle", "upsert")) == 2
        assert supabase.calls[-1] == ("merkle_roots", "upsert")

    @pytest.mark.asyncio
    async def test_republish_is_idempotent(self, store, supabase, distribution):
        await publish_distribution(distribution, store=store, campaign="uos")
        first = sorted(supabase.tables["merkle"], key=lambda row: row["address"])

        await publish_distribution(distribution, store=store, campaign="uos")
        second = sorted(supabase.tables["merkle"], key=lambda row: row["address"])

        assert second == first
        assert len(supabase.tables["merkle_roots"]) == 1

    @pytest.mark.asyncio
    async def test_prunes_stale_addresses(self, store, supabase, distribution):
        supabase.tables["merkle"] = [{"address": EVM_ADDRESSES[3], "balance": "9", "proof": []}]

        summary = await publish_distribution(distribution, store=store, campaign="uos")

        assert summary["rows_pruned"] == 1
        assert EVM_ADDRESSES[3] not in {row["address"] for row in supabase.tables["merkle"]}

    @pytest.mark.asyncio
    async def test_no_prune_keeps_stale_addresses(self, store, supabase, distribution):
        supabase.tables["merkle"] = [{"address": EVM_ADDRESSES[3], "balance": "9", "proof": []}]

        await publish_distribution(distribution, store=store, campaign="uos", prune=False)

        assert len(supabase.tables["merkle"]) == 4

    @pytest.mark.asyncio
    async def test_file_only(self, distribution, tmp_path):
        path = tmp_path / "merkleTree.json"

        summary = await publish_distribution(distribution, output_file=str(path))

        data = json.loads(path.read_text())
        assert data["root"] == distribution.root
        assert data["proofs"][EVM_ADDRESSES[0]]["balance"] == str(BIG)
        assert summary["rows_written"] == 0

    @pytest.mark.asyncio
    async def test_bad_distribution_never_published(self, store, supabase, distribution, tmp_path):
        broken = MerkleDistribution(
            root=distribution.root,
            proofs={EVM_ADDRESSES[0]: ClaimProof(claim_amount=1, proof=[])},
        )
        path = tmp_path / "merkleTree.json"

        with pytest.raises(InvariantViolation):
            await publish_distribution(broken, store=store, output_file=str(path))

        assert not path.exists()
        assert supabase.calls == []

    def test_proof_rows_sorted_with_string_amounts(self, distribution):
        rows = build_proof_rows(distribution)

        assert [row["address"] for row in rows] == sorted(EVM_ADDRESSES[:3])
        assert all(isinstance(row["balance"], str) for row in rows)


class TestWriteOrder:

    @pytest.mark.asyncio
    async def test_proofs_then_prune_then_root(self, store, supabase, distribution):
        supabase.tables["merkle"] = [{"address": EVM_ADDRESSES[3], "balance": "9", "proof": []}]

        await publish_distribution(distribution, store=store, campaign="uos")

        writes = [call for call in supabase.calls if call[1] != "select"]
        assert writes == [
            ("merkle", "upsert"),
            ("merkle", "delete"),
            ("merkle_roots", "upsert"),
        ]
