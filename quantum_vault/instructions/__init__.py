"""
Vault instructions: tag byte followed by a fixed-width payload
"""

from enum import IntEnum
from typing import List, Sequence

from ..errors import MalformedInput, AccountNotFound, CollaboratorFailure
from ..svm_stack.ledger import SYSTEM_PROGRAM_ID, AccountInfo


class VaultInstruction(IntEnum):
    OPEN = 0
    SPLIT = 1
    CLOSE = 2


def unpack_accounts(accounts: Sequence[AccountInfo], names: Sequence[str]) -> List[AccountInfo]:
    """Require exactly one account per role name"""
    if len(accounts) != len(names):
        raise MalformedInput(
            f"Expected {len(names)} accounts ({', '.join(names)}), got {len(accounts)}"
        )
    return list(accounts)


def require_length(data: bytes, expected: int, what: str):
    if len(data) != expected:
        raise MalformedInput(f"{what} payload must be {expected} bytes, got {len(data)}")


def require_live_vault(vault: AccountInfo, program_id: bytes):
    """The record must still exist and belong to this program"""
    if vault.lamports == 0 and vault.owner == SYSTEM_PROGRAM_ID:
        raise AccountNotFound(f"Vault {vault.key.hex()} does not exist")
    if vault.owner != program_id:
        raise CollaboratorFailure(f"Vault {vault.key.hex()} is not owned by program {program_id.hex()}")
