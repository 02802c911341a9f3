"""
Canonical Address Handling

Destination (EVM) addresses are always carried in their EIP-55 checksummed
form: the allocation map, the leaf encoding, the published rows and the claim
lookup all key on the same string. Source (Solana) addresses are only checked
for well-formedness; they are never re-encoded.
"""

import base58
from eth_utils import is_address, to_checksum_address

from migration_canonical.constants import SOLANA_PUBKEY_LENGTH


def normalize_evm_address(address: str) -> str:
    """
    Return the EIP-55 checksummed form of an EVM address.

    Accepts lowercase, uppercase or correctly checksummed input. A mixed-case
    string with a wrong checksum is rejected, since it is most likely a typo.

    Raises:
        ValueError: If the address is not a valid 20-byte hex address
    """
    if not isinstance(address, str):
        raise ValueError(f"EVM address must be a string, got {type(address).__name__}")

    candidate = address.strip()
    if not is_address(candidate):
        raise ValueError(f"Invalid EVM address: {address!r}")

    return to_checksum_address(candidate)


def is_solana_address(address: str) -> bool:
    """True if address is a base58 string decoding to a 32-byte public key."""
    if not isinstance(address, str) or not address:
        return False
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    return len(decoded) == SOLANA_PUBKEY_LENGTH
