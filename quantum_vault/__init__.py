"""
Quantum Vault - custody behind Winternitz one-time signatures
Using SVM-aligned interfaces implemented in Python
"""

from .address import PROGRAM_ID, derive_vault_address, verify_vault_address, find_vault_address
from .errors import (
    VaultError,
    MalformedInput,
    AuthorizationFailure,
    CollaboratorFailure,
    AccountNotFound,
    InsufficientFunds,
    KeyReuseError,
)
from .processor import process_instruction, deploy
from .vault import CustodyRecord, QuantumVault

__version__ = "0.1.0"
__all__ = [
    "PROGRAM_ID",
    "derive_vault_address",
    "verify_vault_address",
    "find_vault_address",
    "VaultError",
    "MalformedInput",
    "AuthorizationFailure",
    "CollaboratorFailure",
    "AccountNotFound",
    "InsufficientFunds",
    "KeyReuseError",
    "process_instruction",
    "deploy",
    "CustodyRecord",
    "QuantumVault",
]
