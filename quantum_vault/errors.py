"""
Error taxonomy shared by the vault program, the ledger and the client
"""


class VaultError(Exception):
    """Base class for every error raised by quantum_vault"""


class MalformedInput(VaultError, ValueError):
    """Wrong payload length, unknown tag or wrong account list"""


class AuthorizationFailure(VaultError):
    """Derived address does not match the record after signature recovery"""


class CollaboratorFailure(VaultError):
    """The ledger or the system program rejected an operation"""


class AccountNotFound(CollaboratorFailure):
    """Referenced account does not exist (or was already destroyed)"""


class InsufficientFunds(CollaboratorFailure):
    """Payer cannot cover a transfer, an allocation or a fee"""


class KeyReuseError(VaultError):
    """A one-time key was asked to sign a second, different message"""
