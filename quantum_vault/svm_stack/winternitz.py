"""
Winternitz one-time signatures (Python implementation)
Byte-wise chains over truncated SHA-256, 896-byte signatures
"""

import hashlib
import secrets
from typing import List

HASH_LENGTH = 28          # bytes per chain element
CHAIN_COUNT = 32
MESSAGE_DIGITS = 30
CHECKSUM_DIGITS = 2
CHAIN_DEPTH = 255         # w = 256, one digit per byte

SIGNATURE_LENGTH = CHAIN_COUNT * HASH_LENGTH   # 896
PUBKEY_LENGTH = CHAIN_COUNT * HASH_LENGTH
DIGEST_LENGTH = 32

_LEAF_PREFIX = b"\x00"
_NODE_PREFIX = b"\x01"


def _hash(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()[:HASH_LENGTH]


def _chain(value: bytes, steps: int) -> bytes:
    for _ in range(steps):
        value = _hash(value)
    return value


def _split_chains(data: bytes, expected: int, what: str) -> List[bytes]:
    if len(data) != expected:
        raise ValueError(f"{what} must be {expected} bytes, got {len(data)}")
    return [data[i:i + HASH_LENGTH] for i in range(0, expected, HASH_LENGTH)]


def message_digits(message: bytes) -> List[int]:
    """
    Chain positions for a message.

    The first 30 digits are bytes of SHA-256(message); the last two encode
    the checksum sum(255 - d) big-endian, so raising any message digit
    lowers a checksum digit.
    """
    digits = list(hashlib.sha256(message).digest()[:MESSAGE_DIGITS])
    checksum = sum(CHAIN_DEPTH - d for d in digits)
    digits.extend(checksum.to_bytes(CHECKSUM_DIGITS, 'big'))
    return digits


class WinternitzPubkey:
    """Public key: the end of every hash chain"""

    def __init__(self, chains: List[bytes]):
        if len(chains) != CHAIN_COUNT:
            raise ValueError(f"Expected {CHAIN_COUNT} chains, got {len(chains)}")
        self.chains = chains

    @classmethod
    def from_bytes(cls, data: bytes) -> 'WinternitzPubkey':
        return cls(_split_chains(data, PUBKEY_LENGTH, "Public key"))

    def to_bytes(self) -> bytes:
        return b"".join(self.chains)

    def merklize(self) -> bytes:
        """Compress the public key into a 32-byte merkle root"""
        level = [hashlib.sha256(_LEAF_PREFIX + chain).digest() for chain in self.chains]
        while len(level) > 1:
            level = [
                hashlib.sha256(_NODE_PREFIX + level[i] + level[i + 1]).digest()
                for i in range(0, len(level), 2)
            ]
        return level[0]

    def __eq__(self, other) -> bool:
        return isinstance(other, WinternitzPubkey) and self.chains == other.chains

    def __hash__(self) -> int:
        return hash(self.to_bytes())


class WinternitzSignature:
    """Signature: every chain advanced to the digit of the signed message"""

    def __init__(self, chains: List[bytes]):
        if len(chains) != CHAIN_COUNT:
            raise ValueError(f"Expected {CHAIN_COUNT} chains, got {len(chains)}")
        self.chains = chains

    @classmethod
    def from_bytes(cls, data: bytes) -> 'WinternitzSignature':
        return cls(_split_chains(bytes(data), SIGNATURE_LENGTH, "Signature"))

    def to_bytes(self) -> bytes:
        return b"".join(self.chains)

    def recover_pubkey(self, message: bytes) -> WinternitzPubkey:
        """
        Finish every chain from the signed digit to the top.

        There is no separate validity result: a signature over another
        message simply recovers a different public key.
        """
        digits = message_digits(message)
        return WinternitzPubkey([
            _chain(element, CHAIN_DEPTH - digit)
            for element, digit in zip(self.chains, digits)
        ])


class WinternitzPrivkey:
    """Private key: the start of every hash chain"""

    def __init__(self, chains: List[bytes]):
        if len(chains) != CHAIN_COUNT:
            raise ValueError(f"Expected {CHAIN_COUNT} chains, got {len(chains)}")
        self.chains = chains

    @classmethod
    def generate(cls) -> 'WinternitzPrivkey':
        return cls([secrets.token_bytes(HASH_LENGTH) for _ in range(CHAIN_COUNT)])

    @classmethod
    def from_bytes(cls, data: bytes) -> 'WinternitzPrivkey':
        return cls(_split_chains(bytes(data), PUBKEY_LENGTH, "Private key"))

    def to_bytes(self) -> bytes:
        return b"".join(self.chains)

    def pubkey(self) -> WinternitzPubkey:
        return WinternitzPubkey([_chain(chain, CHAIN_DEPTH) for chain in self.chains])

    def sign(self, message: bytes) -> WinternitzSignature:
        """Sign once. Publishing a second signature makes forgeries possible."""
        digits = message_digits(message)
        return WinternitzSignature([
            _chain(chain, digit) for chain, digit in zip(self.chains, digits)
        ])
