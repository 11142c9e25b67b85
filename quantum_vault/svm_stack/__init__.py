"""
SVM stack - Python implementations of the host collaborators
(ledger, system program, account keys, Winternitz signatures)
"""

from .keys import Keypair, create_program_address, find_program_address, is_on_curve
from .ledger import (
    Account,
    AccountInfo,
    AccountMeta,
    Instruction,
    Ledger,
    Transaction,
    TransactionMetadata,
    LAMPORTS_PER_SOL,
    SYSTEM_PROGRAM_ID,
)
from .system_program import Rent, transfer_instruction, create_account_instruction
from .winternitz import WinternitzPrivkey, WinternitzPubkey, WinternitzSignature

__all__ = [
    "Keypair",
    "create_program_address",
    "find_program_address",
    "is_on_curve",
    "Account",
    "AccountInfo",
    "AccountMeta",
    "Instruction",
    "Ledger",
    "Transaction",
    "TransactionMetadata",
    "LAMPORTS_PER_SOL",
    "SYSTEM_PROGRAM_ID",
    "Rent",
    "transfer_instruction",
    "create_account_instruction",
    "WinternitzPrivkey",
    "WinternitzPubkey",
    "WinternitzSignature",
]
