"""
Ed25519 account keys and program-derived addresses
"""

import hashlib
from typing import List, Sequence, Tuple

from ecdsa import SigningKey, VerifyingKey, BadSignatureError
from ecdsa.curves import Ed25519
from ecdsa.ellipticcurve import PointEdwards
from ecdsa.errors import MalformedPointError

PUBKEY_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"


class Keypair:
    """Ed25519 key pair owning a ledger account"""

    def __init__(self, secret: bytes = None):
        if secret:
            self.signing_key = SigningKey.from_string(secret, curve=Ed25519)
        else:
            self.signing_key = SigningKey.generate(curve=Ed25519)

        self.verifying_key = self.signing_key.get_verifying_key()

    def pubkey(self) -> bytes:
        """32-byte compressed Edwards point, used as the account address"""
        return bytes(self.verifying_key.to_string())

    def secret(self) -> bytes:
        return bytes(self.signing_key.to_string())

    def sign_message(self, message: bytes) -> bytes:
        """Sign message and return the 64-byte signature"""
        return bytes(self.signing_key.sign(message))

    @staticmethod
    def verify_signature(pubkey: bytes, message: bytes, signature: bytes) -> bool:
        """Verify an Ed25519 signature against an account address"""
        try:
            vk = VerifyingKey.from_string(pubkey, curve=Ed25519)
            return vk.verify(signature, message)
        except (BadSignatureError, MalformedPointError, ValueError):
            return False

    @staticmethod
    def generate_key_pair() -> Tuple[str, str]:
        """Generate new key pair and return (secret_hex, pubkey_hex)"""
        key = Keypair()
        return key.secret().hex(), key.pubkey().hex()


def is_on_curve(data: bytes) -> bool:
    """True if data decodes to a point on the Ed25519 curve"""
    if len(data) != PUBKEY_LENGTH:
        return False
    try:
        PointEdwards.from_bytes(Ed25519.curve, data)
    except MalformedPointError:
        return False
    return True


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> bytes:
    """
    Hash seeds and program id into an address with no private key.

    Raises ValueError when a seed is too long, there are too many seeds,
    or the resulting hash happens to be a valid curve point.
    """
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"Too many seeds: {len(seeds)} > {MAX_SEEDS}")

    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"Seed length {len(seed)} exceeds {MAX_SEED_LENGTH}")
        hasher.update(seed)
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    address = hasher.digest()

    if is_on_curve(address):
        raise ValueError("Invalid seeds, address must fall off the curve")
    return address


def find_program_address(seeds: List[bytes], program_id: bytes) -> Tuple[bytes, int]:
    """Search bumps from 255 down and return the first off-curve address"""
    for bump in range(255, -1, -1):
        try:
            address = create_program_address(list(seeds) + [bytes([bump])], program_id)
        except ValueError:
            continue
        return address, bump

    raise ValueError("Unable to find a viable program address bump seed")
