"""
System program - account allocation and lamport transfers
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence

from ..errors import MalformedInput, CollaboratorFailure, InsufficientFunds
from .keys import create_program_address
from .ledger import SYSTEM_PROGRAM_ID, AccountInfo, AccountMeta, Instruction

ACCOUNT_STORAGE_OVERHEAD = 128

_CREATE_ACCOUNT_LAYOUT = struct.Struct('<IQQ32s')
_TRANSFER_LAYOUT = struct.Struct('<IQ')


class SystemInstruction(IntEnum):
    CREATE_ACCOUNT = 0
    ASSIGN = 1
    TRANSFER = 2


@dataclass(frozen=True)
class Rent:
    """Rent-exemption parameters"""
    lamports_per_byte_year: int = 3480
    exemption_threshold_years: int = 2

    def minimum_balance(self, data_len: int) -> int:
        """Lamports an account of data_len bytes must hold to be rent exempt"""
        return (ACCOUNT_STORAGE_OVERHEAD + data_len) * self.lamports_per_byte_year * self.exemption_threshold_years


def _debit(from_info: AccountInfo, lamports: int):
    if from_info.owner != SYSTEM_PROGRAM_ID:
        raise CollaboratorFailure(f"Account {from_info.key.hex()} is not owned by the system program")
    if not from_info.data_is_empty():
        raise CollaboratorFailure(f"Account {from_info.key.hex()} must not carry data")
    if from_info.lamports < lamports:
        raise InsufficientFunds(
            f"Account {from_info.key.hex()} has {from_info.lamports} lamports, needs {lamports}"
        )
    from_info.lamports -= lamports
    from_info.system_debits += lamports


def create_account(from_info: AccountInfo, to_info: AccountInfo, lamports: int, space: int,
                   owner: bytes, signer_seeds: Optional[Sequence[bytes]] = None,
                   program_id: Optional[bytes] = None):
    """
    Fund, allocate and assign a brand new account.

    The new account signs either through the transaction or, for a
    program-derived address, through signer_seeds of the calling program.
    """
    if not from_info.is_signer:
        raise CollaboratorFailure(f"Funding account {from_info.key.hex()} must sign")

    if not to_info.is_signer:
        if signer_seeds is None or program_id is None:
            raise CollaboratorFailure(f"New account {to_info.key.hex()} must sign")
        try:
            derived = create_program_address(signer_seeds, program_id)
        except ValueError as e:
            raise CollaboratorFailure(f"Invalid signer seeds: {e}") from e
        if derived != to_info.key:
            raise CollaboratorFailure(f"Signer seeds do not derive {to_info.key.hex()}")

    if to_info.lamports > 0 or not to_info.data_is_empty() or to_info.owner != SYSTEM_PROGRAM_ID:
        raise CollaboratorFailure(f"Account {to_info.key.hex()} already in use")

    _debit(from_info, lamports)
    to_info.lamports += lamports
    to_info.allocate(space)
    to_info.assign(owner)
    to_info.system_assigned = True


def transfer(from_info: AccountInfo, to_info: AccountInfo, lamports: int):
    """Move lamports out of a system-owned account that signed"""
    if not from_info.is_signer:
        raise CollaboratorFailure(f"Transfer source {from_info.key.hex()} must sign")
    _debit(from_info, lamports)
    to_info.lamports += lamports


def process_instruction(program_id: bytes, accounts: List[AccountInfo], data: bytes):
    """Entrypoint for top-level system instructions"""
    if len(data) < 4:
        raise MalformedInput("System instruction is missing its tag")

    tag = struct.unpack_from('<I', data)[0]
    if tag == SystemInstruction.CREATE_ACCOUNT:
        if len(data) != _CREATE_ACCOUNT_LAYOUT.size or len(accounts) != 2:
            raise MalformedInput("Malformed CreateAccount instruction")
        _, lamports, space, owner = _CREATE_ACCOUNT_LAYOUT.unpack(data)
        create_account(accounts[0], accounts[1], lamports, space, owner)
    elif tag == SystemInstruction.TRANSFER:
        if len(data) != _TRANSFER_LAYOUT.size or len(accounts) != 2:
            raise MalformedInput("Malformed Transfer instruction")
        _, lamports = _TRANSFER_LAYOUT.unpack(data)
        transfer(accounts[0], accounts[1], lamports)
    else:
        raise MalformedInput(f"Unsupported system instruction {tag}")


def create_account_instruction(from_pubkey: bytes, to_pubkey: bytes, lamports: int,
                               space: int, owner: bytes) -> Instruction:
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta.writable(from_pubkey, is_signer=True),
            AccountMeta.writable(to_pubkey, is_signer=True),
        ],
        data=_CREATE_ACCOUNT_LAYOUT.pack(SystemInstruction.CREATE_ACCOUNT, lamports, space, owner),
    )


def transfer_instruction(from_pubkey: bytes, to_pubkey: bytes, lamports: int) -> Instruction:
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta.writable(from_pubkey, is_signer=True),
            AccountMeta.writable(to_pubkey),
        ],
        data=_TRANSFER_LAYOUT.pack(SystemInstruction.TRANSFER, lamports),
    )
