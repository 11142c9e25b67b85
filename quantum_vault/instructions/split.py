import logging
from dataclasses import dataclass
from typing import Sequence

from ..address import require_vault_address
from ..errors import MalformedInput
from ..svm_stack.ledger import AccountInfo
from ..svm_stack.winternitz import SIGNATURE_LENGTH, WinternitzSignature
from . import VaultInstruction, require_length, require_live_vault, unpack_accounts

logger = logging.getLogger(__name__)

AMOUNT_LENGTH = 8
SPLIT_DATA_LENGTH = SIGNATURE_LENGTH + 1 + AMOUNT_LENGTH
SPLIT_MESSAGE_LENGTH = AMOUNT_LENGTH + 32 + 32


def split_message(amount: int, split: bytes, refund: bytes) -> bytes:
    """amount (u64 LE) || split address || refund address"""
    message = amount.to_bytes(AMOUNT_LENGTH, 'little') + bytes(split) + bytes(refund)
    if len(message) != SPLIT_MESSAGE_LENGTH:
        raise MalformedInput(f"Split message must be {SPLIT_MESSAGE_LENGTH} bytes")
    return message


@dataclass
class SplitVaultAccounts:
    vault: AccountInfo   # source vault, destroyed
    split: AccountInfo   # receives amount
    refund: AccountInfo  # receives the remainder

    @classmethod
    def from_accounts(cls, accounts: Sequence[AccountInfo]) -> 'SplitVaultAccounts':
        vault, split, refund = unpack_accounts(accounts, ("vault", "split", "refund"))
        if vault.key in (split.key, refund.key):
            raise MalformedInput("Split and refund accounts must differ from the vault")
        return cls(vault, split, refund)


@dataclass
class SplitVaultData:
    signature: bytes
    bump: int
    amount: int

    @classmethod
    def from_bytes(cls, data: bytes) -> 'SplitVaultData':
        require_length(data, SPLIT_DATA_LENGTH, "Split")
        return cls(
            signature=bytes(data[:SIGNATURE_LENGTH]),
            bump=data[SIGNATURE_LENGTH],
            amount=int.from_bytes(data[SIGNATURE_LENGTH + 1:], 'little'),
        )

    def to_bytes(self) -> bytes:
        return self.signature + bytes([self.bump]) + self.amount.to_bytes(AMOUNT_LENGTH, 'little')


@dataclass
class SplitVault:
    """
    Pay amount to split, the rest to refund, and close the vault.

    1. Assemble the 72-byte message from amount and the two destination keys.
    2. Recover the Winternitz public key and merklize it.
    3. Re-derive the vault address from that digest and the bump.
    4. Only then move lamports and close the vault.
    """
    DISCRIMINATOR = VaultInstruction.SPLIT

    accounts: SplitVaultAccounts
    instruction_data: SplitVaultData

    @classmethod
    def from_parts(cls, data: bytes, accounts: Sequence[AccountInfo]) -> 'SplitVault':
        return cls(SplitVaultAccounts.from_accounts(accounts), SplitVaultData.from_bytes(data))

    def process(self, program_id: bytes):
        vault = self.accounts.vault
        split = self.accounts.split
        refund = self.accounts.refund
        amount = self.instruction_data.amount

        require_live_vault(vault, program_id)

        message = split_message(amount, split.key, refund.key)
        digest = (
            WinternitzSignature.from_bytes(self.instruction_data.signature)
            .recover_pubkey(message)
            .merklize()
        )
        require_vault_address(vault.key, digest, self.instruction_data.bump, program_id)

        balance = vault.lamports
        if amount > balance:
            raise MalformedInput(f"Split amount {amount} exceeds vault balance {balance}")

        split.lamports += amount
        refund.lamports += balance - amount
        vault.close()
        logger.info(
            "Split vault %s: %d to %s, %d to %s",
            vault.key.hex(), amount, split.key.hex(), balance - amount, refund.key.hex(),
        )
