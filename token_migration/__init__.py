"""
Token Migration Pipeline
========================

Offline batch tooling for migrating a Solana SPL token to an EVM chain via
a Merkle airdrop.

Stages (strictly ordered, each consuming the previous stage's output):
- snapshot: record every registered wallet's exact source-chain balance
- allocation: turn balances into exact integer claim amounts
- merkle_build: commit to (address, amount) pairs and emit per-claim proofs
- publish: persist the root and proofs for the contract deploy and claim UI
"""

__version__ = "1.0.0"
__author__ = "Token Migration Team"
