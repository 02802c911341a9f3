"""
Pipeline Stage Tasks

This package contains the four pipeline stages, run in order:
- snapshot: Records every registered wallet's exact source-chain balance
- allocation: Computes exact integer claim amounts under the distribution policy
- merkle_build: Builds the claim Merkle tree and a proof per recipient
- publish: Persists the root and proofs for the deploy step and the claim UI
"""
