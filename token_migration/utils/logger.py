"""
Pipeline Logging Utility
========================

Two things live here:

1. setup_logging() - stdlib logging configuration for the CLI
2. log_run_event() - one record per completed stage in migration_events

RUN EVENT FORMAT:
{
    "event_type": "MERKLE_ROOT_BUILT",
    "payload": { ... },
    "payload_hash": "sha256(canonical_json(payload)).hex()",
    "build_id": "dev-local",
    "ts": "2025-01-01T00:00:00+00:00"
}

Run events are an operator audit trail, not pipeline state. A store failure
while logging one is reported as a warning and never fails the stage.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from token_migration import config
from token_migration.errors import StoreError
from token_migration.utils.executor import run_blocking

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure root logging once (CLI entry point)."""
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def compute_payload_hash(payload: dict) -> str:
    """
    Compute SHA256 hash of event payload for integrity verification.

    Args:
        payload: Event payload dictionary

    Returns:
        Hex-encoded SHA256 hash (64 characters)
    """
    # Canonical JSON serialization (sorted keys, no whitespace)
    payload_json = json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(payload_json.encode('utf-8')).hexdigest()


async def log_run_event(store, event_type: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Append a run event to migration_events.

    Args:
        store: MigrationStore (None skips persistence, e.g. file-only runs)
        event_type: One of the EVENT_TYPE_* constants
        payload: JSON-serializable payload (amounts as strings)

    Returns:
        The event row, or None if it could not be stored
    """
    row = {
        "event_type": event_type,
        "payload": payload,
        "payload_hash": compute_payload_hash(payload),
        "build_id": config.BUILD_ID,
        "ts": datetime.now(timezone.utc).isoformat(),
    }

    logger.info(f"{event_type} payload_hash={row['payload_hash'][:16]}...")

    if store is None:
        return row

    try:
        await run_blocking(store.insert_event, row)
    except StoreError as e:
        logger.warning(f"Could not record {event_type} event: {e}")
        return None

    return row
