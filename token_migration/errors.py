"""
Pipeline Errors
===============

Transient oracle failures are absorbed inside the snapshot stage and only
surface in its failure report. Everything else here aborts the stage that
raises it before any output is produced.
"""


class MigrationError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConfigurationError(MigrationError):
    """Raised when required configuration is missing or invalid."""
    pass


class DataIntegrityError(MigrationError):
    """Raised when an upstream stage produced no usable input for this one."""
    pass


class InvariantViolation(MigrationError):
    """Raised when a computed output fails its own correctness check."""
    pass


class StoreError(MigrationError):
    """Raised when a store request fails."""
    pass


class AlreadyRegisteredError(MigrationError):
    """
    Raised when a wallet is registered twice.

    This is an expected business rule (one claim per source wallet), not an
    internal error.
    """

    def __init__(self, field: str, address: str):
        self.field = field
        self.address = address
        chain = "Solana" if field == "solana_address" else "Base"
        super().__init__(
            f"This {chain} wallet address has already been registered for migration: {address}"
        )


class OracleError(MigrationError):
    """Raised when a balance lookup fails on an endpoint (or on all of them)."""

    def __init__(self, message: str, endpoint: str = None):
        self.endpoint = endpoint
        super().__init__(message)


class OracleRateLimited(OracleError):
    """Raised when an endpoint answers with a rate-limit response."""
    pass
