"""
Pipeline Utilities
==================

Core utilities for:
- solana_rpc.py: Balance oracle over Solana JSON-RPC with endpoint fallback
- logger.py: Logging setup and per-stage run events
- executor.py: Running blocking store calls off the event loop
"""
