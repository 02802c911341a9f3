"""
CLI for Token Migration Pipeline
================================

Commands:
    token-migration snapshot                 Record every registered wallet's balance
    token-migration allocate                 Compute claim amounts (addresses.json)
    token-migration build                    Build the Merkle tree (merkleTree.json)
    token-migration publish                  Publish root and proofs to the store
    token-migration run                      All four stages end to end
    token-migration register <sol> <evm>     Register a wallet pair
    token-migration proof <address>          Look up a published proof
    token-migration verify <address>         Verify a proof against the root
    token-migration config                   Show and validate configuration

Author: Token Migration Team
"""

import asyncio
import json
import sys
from typing import Optional

import click

from migration_canonical.addresses import normalize_evm_address
from migration_canonical.merkle import verify_claim
from token_migration import __version__, config
from token_migration.db import MigrationStore, get_read_client, get_write_client
from token_migration.errors import AlreadyRegisteredError, MigrationError
from token_migration.pipeline import (
    run_allocation_stage,
    run_build_stage,
    run_pipeline,
    run_publish_stage,
    run_snapshot_stage,
)
from token_migration.tasks.merkle_build import (
    load_claims_file,
    load_distribution_file,
    write_claims_file,
    write_distribution_file,
)
from token_migration.tasks.snapshot import read_account_list, write_failed_accounts
from token_migration.utils.logger import setup_logging
from token_migration.utils.solana_rpc import SolanaBalanceOracle

CLI_ERRORS = (MigrationError, OSError, ValueError)


def _fail(action: str, error: Exception):
    click.echo()
    click.echo(f"❌ Error {action}: {error}", err=True)
    click.echo()
    sys.exit(1)


def _write_store() -> MigrationStore:
    return MigrationStore(get_write_client())


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING)")
def main(log_level: Optional[str]):
    """
    Token Migration CLI - snapshot, allocate, build and publish claims

    Examples:
        token-migration snapshot --failed-output failed.json
        token-migration snapshot --only-file failed.json
        token-migration allocate && token-migration build && token-migration publish
        token-migration verify 0xAbC...
    """
    setup_logging(log_level)


@main.command()
@click.option("--only-file", default=None, help="JSON list of Solana addresses to re-snapshot")
@click.option("--failed-output", default=None, help="Save failed addresses to a JSON file")
def snapshot(only_file: Optional[str], failed_output: Optional[str]):
    """Record the source-token balance of every registered wallet."""
    try:
        config.validate_config()
        only = read_account_list(only_file) if only_file else None

        store = _write_store()
        result = asyncio.run(run_snapshot_stage(store, SolanaBalanceOracle(), only=only))

        if failed_output and result.failed:
            count = write_failed_accounts(result, failed_output)
            click.echo(f"💾 Saved {count} failed address(es) to {failed_output}")

    except CLI_ERRORS as e:
        _fail("taking snapshot", e)


@main.command()
@click.option("--output", "-o", default="addresses.json", show_default=True, help="Claim map output file")
def allocate(output: str):
    """Compute claim amounts from the recorded balances."""
    try:
        config.validate_config()
        policy = config.load_allocation_policy()

        result = asyncio.run(run_allocation_stage(_write_store(), policy))
        write_claims_file(result.to_json_dict(), output)

        click.echo()
        click.echo(f"✅ Claim amounts written to {output}")

    except CLI_ERRORS as e:
        _fail("calculating claim amounts", e)


@main.command()
@click.option("--claims", default="addresses.json", show_default=True, help="Claim map input file")
@click.option("--output", "-o", default=None, help="Merkle tree output file (default: MERKLE_OUTPUT_FILE)")
def build(claims: str, output: Optional[str]):
    """Build the Merkle tree and proofs from a claim map file."""
    output = output or config.MERKLE_OUTPUT_FILE
    try:
        distribution = asyncio.run(run_build_stage(load_claims_file(claims)))
        write_distribution_file(distribution, output)

        click.echo(f"✅ Merkle tree written to {output}")
        click.echo(f"   Total proofs generated: {len(distribution.proofs)}")

    except CLI_ERRORS as e:
        _fail("building Merkle tree", e)


@main.command()
@click.option("--input", "input_file", default=None, help="Merkle tree file (default: MERKLE_OUTPUT_FILE)")
@click.option("--campaign", default=None, help="Campaign key for the root record (default: CAMPAIGN_ID)")
@click.option("--no-prune", is_flag=True, help="Keep proof rows for addresses not in this tree")
def publish(input_file: Optional[str], campaign: Optional[str], no_prune: bool):
    """Publish the root and every proof to the store."""
    input_file = input_file or config.MERKLE_OUTPUT_FILE
    try:
        config.validate_config()
        distribution = load_distribution_file(input_file)

        asyncio.run(run_publish_stage(
            distribution, _write_store(), campaign=campaign, prune=not no_prune
        ))

    except CLI_ERRORS as e:
        _fail("publishing distribution", e)


@main.command()
@click.option("--allow-partial", is_flag=True, help="Continue even if some wallets failed the snapshot")
@click.option("--skip-snapshot", is_flag=True, help="Allocate from balances already in the store")
@click.option("--output", "-o", default=None, help="Merkle tree output file (default: MERKLE_OUTPUT_FILE)")
@click.option("--campaign", default=None, help="Campaign key for the root record (default: CAMPAIGN_ID)")
def run(allow_partial: bool, skip_snapshot: bool, output: Optional[str], campaign: Optional[str]):
    """Run snapshot, allocation, build and publish end to end."""
    try:
        config.validate_config()
        policy = config.load_allocation_policy()

        report = asyncio.run(run_pipeline(
            _write_store(),
            SolanaBalanceOracle(),
            policy,
            output_file=output or config.MERKLE_OUTPUT_FILE,
            campaign=campaign,
            skip_snapshot=skip_snapshot,
            allow_partial=allow_partial,
        ))

        click.echo()
        click.echo(f"🎉 Pipeline complete - root {report.root}")

    except CLI_ERRORS as e:
        _fail("running pipeline", e)


@main.command()
@click.argument("solana_address")
@click.argument("evm_address")
def register(solana_address: str, evm_address: str):
    """Register a Solana wallet and its destination EVM wallet."""
    try:
        user = _write_store().register_user(solana_address, evm_address)
        click.echo(f"✅ Registered {user.solana_address} -> {user.evm_address}")

    except AlreadyRegisteredError as e:
        click.echo(f"⚠️  {e}", err=True)
        sys.exit(1)
    except CLI_ERRORS as e:
        _fail("registering wallet", e)


@main.command()
@click.argument("address")
def proof(address: str):
    """Look up the published claim and proof for an address."""
    try:
        row = MigrationStore(get_read_client()).fetch_proof(address)
        if row is None:
            click.echo(f"⚠️  No claim published for {address}", err=True)
            sys.exit(1)

        click.echo(json.dumps(row, indent=2))

    except CLI_ERRORS as e:
        _fail("fetching proof", e)


@main.command()
@click.argument("address")
@click.option("--input", "input_file", default=None, help="Merkle tree file (default: MERKLE_OUTPUT_FILE)")
def verify(address: str, input_file: Optional[str]):
    """Verify an address's proof against the root, as the contract would."""
    input_file = input_file or config.MERKLE_OUTPUT_FILE
    try:
        distribution = load_distribution_file(input_file)
        address = normalize_evm_address(address)

        claim = distribution.proofs.get(address)
        if claim is None:
            click.echo(f"⚠️  {address} has no claim in {input_file}", err=True)
            sys.exit(1)

        if not verify_claim(address, claim.claim_amount, claim.proof, distribution.root):
            click.echo(f"❌ Proof for {address} does NOT verify against {distribution.root}", err=True)
            sys.exit(1)

        click.echo(f"✅ Valid claim: {address} -> {claim.claim_amount}")
        click.echo(f"   Root: {distribution.root}")
        click.echo(f"   Proof length: {len(claim.proof)}")

    except CLI_ERRORS as e:
        _fail("verifying proof", e)


@main.command(name="config")
def show_config():
    """Show the configuration summary and validate it."""
    config.print_config_summary()
    try:
        config.validate_config()
        click.echo("✅ Configuration valid")
    except CLI_ERRORS as e:
        _fail("validating configuration", e)


if __name__ == "__main__":
    main()
