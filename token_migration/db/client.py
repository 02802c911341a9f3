"""
Supabase Client Management
==========================

Two cached clients, one per key:

- read:  ANON key, for public claim lookups (`token-migration proof`).
         Falls back to the SERVICE_ROLE key with a warning when no anon
         key is configured.
- write: SERVICE_ROLE key, for every pipeline stage (balances, proofs,
         root record, run events). Bypasses RLS.
"""

import logging
from typing import Dict, Optional

from supabase import create_client, Client

from token_migration import config
from token_migration.errors import ConfigurationError

logger = logging.getLogger(__name__)

_clients: Dict[str, Client] = {}


def _connect(role: str, key: Optional[str]) -> Client:
    if role in _clients:
        return _clients[role]

    if not config.SUPABASE_URL:
        raise ConfigurationError("SUPABASE_URL not configured")
    if not key:
        raise ConfigurationError(f"No Supabase key configured for {role} access")

    _clients[role] = create_client(config.SUPABASE_URL, key)
    logger.info(f"Supabase {role} client initialized")
    return _clients[role]


def get_read_client() -> Client:
    key = config.SUPABASE_ANON_KEY
    if not key:
        logger.warning("SUPABASE_ANON_KEY not configured - using SERVICE_ROLE_KEY for reads")
        key = config.SUPABASE_SERVICE_ROLE_KEY
    return _connect("read", key)


def get_write_client() -> Client:
    return _connect("write", config.SUPABASE_SERVICE_ROLE_KEY)


def reset_clients() -> None:
    """Drop cached clients (after configuration changes, and in tests)."""
    _clients.clear()
