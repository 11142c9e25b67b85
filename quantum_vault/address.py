"""
Vault address derivation

A vault lives at sha256(identity_digest || bump || program_id || marker).
The address is the only link between a record and its owner, so every
transition recomputes it from a freshly recovered digest.
"""

import hashlib
import logging
from typing import Tuple

from cryptography.hazmat.primitives import constant_time

from .errors import MalformedInput, AuthorizationFailure
from .svm_stack.keys import PDA_MARKER, find_program_address

logger = logging.getLogger(__name__)

PROGRAM_ID = bytes([
    0x0f, 0x1e, 0x6b, 0x14, 0x21, 0xc0, 0x4a, 0x07, 0x04, 0x31, 0x26, 0x5c, 0x19, 0xc5, 0xbb, 0xee,
    0x19, 0x92, 0xba, 0xe8, 0xaf, 0xd1, 0xcd, 0x07, 0x8e, 0xf8, 0xaf, 0x70, 0x47, 0xdc, 0x11, 0xf7,
])

DIGEST_LENGTH = 32
ADDRESS_LENGTH = 32


def derive_vault_address(identity_digest: bytes, bump: int, program_id: bytes = PROGRAM_ID) -> bytes:
    """Hash identity digest, bump, program id and marker into the vault address"""
    if len(identity_digest) != DIGEST_LENGTH:
        raise MalformedInput(f"Identity digest must be {DIGEST_LENGTH} bytes, got {len(identity_digest)}")
    if not 0 <= bump <= 255:
        raise MalformedInput(f"Bump must fit in one byte, got {bump}")

    hasher = hashlib.sha256()
    hasher.update(identity_digest)
    hasher.update(bytes([bump]))
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    return hasher.digest()


def verify_vault_address(candidate: bytes, identity_digest: bytes, bump: int,
                         program_id: bytes = PROGRAM_ID) -> bool:
    """Constant-time check that candidate is the vault of identity_digest"""
    if len(candidate) != ADDRESS_LENGTH:
        return False
    expected = derive_vault_address(identity_digest, bump, program_id)
    return constant_time.bytes_eq(expected, bytes(candidate))


def require_vault_address(candidate: bytes, identity_digest: bytes, bump: int,
                          program_id: bytes = PROGRAM_ID):
    """Raise AuthorizationFailure unless candidate is the vault of identity_digest"""
    if not verify_vault_address(candidate, identity_digest, bump, program_id):
        logger.info("Address mismatch for vault %s", bytes(candidate).hex())
        raise AuthorizationFailure(f"Vault {bytes(candidate).hex()} is not owned by the presented identity")


def find_vault_address(identity_digest: bytes, program_id: bytes = PROGRAM_ID) -> Tuple[bytes, int]:
    """Canonical (address, bump): highest bump whose address is off the curve"""
    if len(identity_digest) != DIGEST_LENGTH:
        raise MalformedInput(f"Identity digest must be {DIGEST_LENGTH} bytes, got {len(identity_digest)}")
    return find_program_address([identity_digest], program_id)
