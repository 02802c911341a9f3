"""
Pipeline Configuration
======================

Loads all environment variables for the migration pipeline.

Environment variables should be set in .env file in the working directory.
"""

import os
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import List, Optional

from dotenv import load_dotenv

from migration_canonical.constants import (
    DEFAULT_RPC_ENDPOINTS,
    UOS_TOKEN_DECIMALS,
    UOS_TOKEN_MINT,
)
from token_migration.errors import ConfigurationError
from token_migration.models.distribution import AllocationPolicy

load_dotenv()

# ============================================================
# Build Info (recorded with every run event)
# ============================================================
BUILD_ID = os.getenv("BUILD_ID", "dev-local")

# ============================================================
# Supabase PostgreSQL (registered users, balances, proofs)
# ============================================================
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")  # Claim lookups only
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")  # Pipeline writes

# ============================================================
# Solana RPC (balance oracle)
# ============================================================
EXTRNODE_RPC_URL = os.getenv("EXTRNODE_RPC_URL")  # Private endpoint, tried first
_PUBLIC_RPC_ENDPOINTS = os.getenv("RPC_ENDPOINTS", ",".join(DEFAULT_RPC_ENDPOINTS))

RPC_ENDPOINTS: List[str] = [
    endpoint.strip()
    for endpoint in [EXTRNODE_RPC_URL or ""] + _PUBLIC_RPC_ENDPOINTS.split(",")
    if endpoint and endpoint.strip()
]

RPC_TIMEOUT_SECONDS = float(os.getenv("RPC_TIMEOUT_SECONDS", "10"))

SOURCE_TOKEN_MINT = os.getenv("SOURCE_TOKEN_MINT", UOS_TOKEN_MINT)
SOURCE_TOKEN_DECIMALS = int(os.getenv("SOURCE_TOKEN_DECIMALS", str(UOS_TOKEN_DECIMALS)))

# ============================================================
# Snapshot Batching (stay under public RPC rate limits)
# ============================================================
SNAPSHOT_BATCH_SIZE = int(os.getenv("SNAPSHOT_BATCH_SIZE", "5"))
SNAPSHOT_BATCH_DELAY_SECONDS = float(os.getenv("SNAPSHOT_BATCH_DELAY_SECONDS", "3"))

# ============================================================
# Distribution Policy
# ============================================================
# FIXED_RATIO=true  -> claim = floor(balance * MIGRATION_RATIO)
# FIXED_RATIO=false -> CLAIM_POOL_AMOUNT split proportionally (default)
FIXED_RATIO = os.getenv("FIXED_RATIO", "false").strip().lower() == "true"
MIGRATION_RATIO = os.getenv("MIGRATION_RATIO", "0.1")
CLAIM_POOL_AMOUNT = os.getenv("CLAIM_POOL_AMOUNT", "100000")  # Whole destination tokens
TOKEN_DECIMALS = os.getenv("TOKEN_DECIMALS", "18")
TOKEN_SYMBOL = os.getenv("TOKEN_SYMBOL", "TOKEN")
MIN_CLAIM_AMOUNT = os.getenv("MIN_CLAIM_AMOUNT", "1")  # Destination base units
ALLOCATION_PRECISION = os.getenv("ALLOCATION_PRECISION", "0")  # 0 = exact floor

# ============================================================
# Publishing
# ============================================================
CAMPAIGN_ID = os.getenv("CAMPAIGN_ID", "default")
MERKLE_OUTPUT_FILE = os.getenv("MERKLE_OUTPUT_FILE", "merkleTree.json")
PUBLISH_BATCH_SIZE = int(os.getenv("PUBLISH_BATCH_SIZE", "500"))

# ============================================================
# Logging
# ============================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _parse_int(name: str, raw: str, minimum: int) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_ratio(raw: str) -> Fraction:
    # Decimal keeps "0.1" exact; Fraction(float) would not
    try:
        ratio = Fraction(Decimal(str(raw).strip()))
    except (InvalidOperation, ValueError):
        raise ConfigurationError(f"MIGRATION_RATIO must be a decimal number, got {raw!r}")
    if ratio <= 0:
        raise ConfigurationError(f"MIGRATION_RATIO must be positive, got {raw!r}")
    return ratio


def load_allocation_policy(
    fixed_ratio: bool = FIXED_RATIO,
    migration_ratio: str = MIGRATION_RATIO,
    claim_pool_amount: str = CLAIM_POOL_AMOUNT,
    token_decimals: str = TOKEN_DECIMALS,
    token_symbol: str = TOKEN_SYMBOL,
    min_claim_amount: str = MIN_CLAIM_AMOUNT,
    precision: str = ALLOCATION_PRECISION,
) -> AllocationPolicy:
    """
    Build the distribution policy from configuration values.

    The pool is configured in whole tokens and scaled by 10^TOKEN_DECIMALS
    here, so the allocator only ever sees destination base units.

    Raises:
        ConfigurationError: If any policy parameter is missing or non-positive
    """
    decimals = _parse_int("TOKEN_DECIMALS", token_decimals, minimum=0)
    min_claim = _parse_int("MIN_CLAIM_AMOUNT", min_claim_amount, minimum=1)
    scale = _parse_int("ALLOCATION_PRECISION", precision, minimum=0)

    if fixed_ratio:
        return AllocationPolicy(
            mode="fixed_ratio",
            ratio=_parse_ratio(migration_ratio),
            min_claim=min_claim,
            token_decimals=decimals,
            token_symbol=token_symbol,
        )

    pool_tokens = _parse_int("CLAIM_POOL_AMOUNT", claim_pool_amount, minimum=1)
    return AllocationPolicy(
        mode="proportional",
        pool_total=pool_tokens * 10 ** decimals,
        min_claim=min_claim,
        precision=scale or None,
        token_decimals=decimals,
        token_symbol=token_symbol,
    )


def validate_config(require_store: bool = True, endpoints: Optional[List[str]] = None):
    """
    Validates that all required configuration is present.
    Called before any stage touches the store or the oracle.
    """
    errors = []

    if require_store:
        if not SUPABASE_URL:
            errors.append("SUPABASE_URL is not set")
        if not SUPABASE_SERVICE_ROLE_KEY:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is not set")

    if not (endpoints if endpoints is not None else RPC_ENDPOINTS):
        errors.append("No RPC endpoints configured (EXTRNODE_RPC_URL / RPC_ENDPOINTS)")
    if SNAPSHOT_BATCH_SIZE < 1:
        errors.append(f"SNAPSHOT_BATCH_SIZE must be positive, got {SNAPSHOT_BATCH_SIZE}")
    if SNAPSHOT_BATCH_DELAY_SECONDS < 0:
        errors.append(f"SNAPSHOT_BATCH_DELAY_SECONDS must be >= 0, got {SNAPSHOT_BATCH_DELAY_SECONDS}")
    if RPC_TIMEOUT_SECONDS <= 0:
        errors.append(f"RPC_TIMEOUT_SECONDS must be positive, got {RPC_TIMEOUT_SECONDS}")
    if PUBLISH_BATCH_SIZE < 1:
        errors.append(f"PUBLISH_BATCH_SIZE must be positive, got {PUBLISH_BATCH_SIZE}")

    try:
        load_allocation_policy()
    except ConfigurationError as e:
        errors.append(str(e))

    if errors:
        raise ConfigurationError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return True


def print_config_summary():
    """
    Prints a summary of the configuration (for debugging).
    NEVER prints secrets!
    """
    print("=" * 60)
    print("Token Migration Configuration Summary")
    print("=" * 60)
    print(f"Build ID: {BUILD_ID}")
    print(f"Supabase URL: {SUPABASE_URL or 'NOT SET'}")
    print(f"Supabase Service Key: {'SET' if SUPABASE_SERVICE_ROLE_KEY else 'NOT SET'}")
    print(f"RPC Endpoints: {len(RPC_ENDPOINTS)} ({'private first' if EXTRNODE_RPC_URL else 'public only'})")
    print(f"RPC Timeout: {RPC_TIMEOUT_SECONDS}s")
    print(f"Source Mint: {SOURCE_TOKEN_MINT}")
    print(f"Snapshot Batch: {SNAPSHOT_BATCH_SIZE} wallets, {SNAPSHOT_BATCH_DELAY_SECONDS}s delay")
    if FIXED_RATIO:
        print(f"Policy: fixed ratio {MIGRATION_RATIO}:1")
    else:
        print(f"Policy: proportional, pool {CLAIM_POOL_AMOUNT} {TOKEN_SYMBOL}")
    print(f"Token Decimals: {TOKEN_DECIMALS}")
    print(f"Minimum Claim: {MIN_CLAIM_AMOUNT} base unit(s)")
    print(f"Campaign: {CAMPAIGN_ID}")
    print(f"Output File: {MERKLE_OUTPUT_FILE}")
    print("=" * 60)
