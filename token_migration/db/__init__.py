"""
Store Client Module
===================

Provides Supabase client management and the MigrationStore that owns every
table and column name used by the pipeline.
"""

from token_migration.db.client import get_read_client, get_write_client
from token_migration.db.store import MigrationStore

__all__ = ["get_read_client", "get_write_client", "MigrationStore"]
