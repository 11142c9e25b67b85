import logging
from dataclasses import dataclass
from typing import Sequence

from ..address import DIGEST_LENGTH, require_vault_address
from ..errors import MalformedInput
from ..svm_stack import system_program
from ..svm_stack.ledger import SYSTEM_PROGRAM_ID, AccountInfo
from . import VaultInstruction, require_length, unpack_accounts

logger = logging.getLogger(__name__)

OPEN_DATA_LENGTH = DIGEST_LENGTH + 1


@dataclass
class OpenVaultAccounts:
    """Accounts for opening a vault"""
    payer: AccountInfo           # funds the rent-exempt minimum (signer)
    vault: AccountInfo           # address derived from the identity digest
    system_program: AccountInfo  # allocator

    @classmethod
    def from_accounts(cls, accounts: Sequence[AccountInfo]) -> 'OpenVaultAccounts':
        payer, vault, allocator = unpack_accounts(accounts, ("payer", "vault", "system_program"))
        if allocator.key != SYSTEM_PROGRAM_ID:
            raise MalformedInput(f"Expected system program, got {allocator.key.hex()}")
        return cls(payer, vault, allocator)


@dataclass
class OpenVaultData:
    identity_digest: bytes
    bump: int

    @classmethod
    def from_bytes(cls, data: bytes) -> 'OpenVaultData':
        require_length(data, OPEN_DATA_LENGTH, "Open")
        return cls(identity_digest=bytes(data[:DIGEST_LENGTH]), bump=data[DIGEST_LENGTH])

    def to_bytes(self) -> bytes:
        return self.identity_digest + bytes([self.bump])


@dataclass
class OpenVault:
    """
    Allocate an empty, rent-exempt vault owned by the program.

    No signature is needed: ownership is fixed by the address itself,
    which only the holder of the identity behind the digest can spend.
    """
    DISCRIMINATOR = VaultInstruction.OPEN

    accounts: OpenVaultAccounts
    instruction_data: OpenVaultData

    @classmethod
    def from_parts(cls, data: bytes, accounts: Sequence[AccountInfo]) -> 'OpenVault':
        return cls(OpenVaultAccounts.from_accounts(accounts), OpenVaultData.from_bytes(data))

    def process(self, program_id: bytes):
        digest = self.instruction_data.identity_digest
        bump = self.instruction_data.bump
        vault = self.accounts.vault

        require_vault_address(vault.key, digest, bump, program_id)

        lamports = system_program.Rent().minimum_balance(0)
        system_program.create_account(
            self.accounts.payer,
            vault,
            lamports=lamports,
            space=0,
            owner=program_id,
            signer_seeds=[digest, bytes([bump])],
            program_id=program_id,
        )
        logger.info("Opened vault %s with %d lamports", vault.key.hex(), lamports)
