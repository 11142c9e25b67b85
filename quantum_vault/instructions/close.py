import logging
from dataclasses import dataclass
from typing import Sequence

from ..address import require_vault_address
from ..errors import MalformedInput
from ..svm_stack.ledger import AccountInfo
from ..svm_stack.winternitz import SIGNATURE_LENGTH, WinternitzSignature
from . import VaultInstruction, require_length, require_live_vault, unpack_accounts

logger = logging.getLogger(__name__)

CLOSE_DATA_LENGTH = SIGNATURE_LENGTH + 1


def close_message(refund: bytes) -> bytes:
    """The refund address alone"""
    return bytes(refund)


@dataclass
class CloseVaultAccounts:
    vault: AccountInfo
    refund: AccountInfo

    @classmethod
    def from_accounts(cls, accounts: Sequence[AccountInfo]) -> 'CloseVaultAccounts':
        vault, refund = unpack_accounts(accounts, ("vault", "refund"))
        if refund.key == vault.key:
            raise MalformedInput("Refund account must differ from the vault")
        return cls(vault, refund)


@dataclass
class CloseVaultData:
    signature: bytes
    bump: int

    @classmethod
    def from_bytes(cls, data: bytes) -> 'CloseVaultData':
        require_length(data, CLOSE_DATA_LENGTH, "Close")
        return cls(signature=bytes(data[:SIGNATURE_LENGTH]), bump=data[SIGNATURE_LENGTH])

    def to_bytes(self) -> bytes:
        return self.signature + bytes([self.bump])


@dataclass
class CloseVault:
    """Sweep the whole vault balance to refund and close the vault"""
    DISCRIMINATOR = VaultInstruction.CLOSE

    accounts: CloseVaultAccounts
    instruction_data: CloseVaultData

    @classmethod
    def from_parts(cls, data: bytes, accounts: Sequence[AccountInfo]) -> 'CloseVault':
        return cls(CloseVaultAccounts.from_accounts(accounts), CloseVaultData.from_bytes(data))

    def process(self, program_id: bytes):
        vault = self.accounts.vault
        refund = self.accounts.refund

        require_live_vault(vault, program_id)

        digest = (
            WinternitzSignature.from_bytes(self.instruction_data.signature)
            .recover_pubkey(close_message(refund.key))
            .merklize()
        )
        require_vault_address(vault.key, digest, self.instruction_data.bump, program_id)

        balance = vault.lamports
        refund.lamports += balance
        vault.close()
        logger.info("Closed vault %s: %d to %s", vault.key.hex(), balance, refund.key.hex())
