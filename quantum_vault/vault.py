import logging
from dataclasses import dataclass, asdict
from typing import List, Optional, Sequence, Union

from .address import PROGRAM_ID, find_vault_address, verify_vault_address
from .errors import KeyReuseError, MalformedInput
from .instructions import VaultInstruction
from .instructions.close import CloseVaultData, close_message
from .instructions.open import OpenVaultData
from .instructions.split import SplitVaultData, split_message
from .svm_stack.keys import Keypair
from .svm_stack.ledger import (
    SYSTEM_PROGRAM_ID,
    AccountMeta,
    Instruction,
    Ledger,
    Transaction,
    TransactionMetadata,
)
from .svm_stack.system_program import transfer_instruction
from .svm_stack.winternitz import WinternitzPrivkey, WinternitzSignature

logger = logging.getLogger(__name__)

MAX_AMOUNT = 2 ** 64 - 1


@dataclass
class CustodyRecord:
    """Vault state as seen on the ledger"""
    address: bytes
    identity_digest: bytes
    bump: int
    balance: int = 0
    exists: bool = False

    def verify(self, program_id: bytes = PROGRAM_ID) -> bool:
        """Check the address really derives from digest and bump"""
        return verify_vault_address(self.address, self.identity_digest, self.bump, program_id)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['address'] = self.address.hex()
        data['identity_digest'] = self.identity_digest.hex()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'CustodyRecord':
        return cls(
            address=bytes.fromhex(data['address']),
            identity_digest=bytes.fromhex(data['identity_digest']),
            bump=data['bump'],
            balance=data.get('balance', 0),
            exists=data.get('exists', False),
        )


def _signature_bytes(signature: Union[WinternitzSignature, bytes]) -> bytes:
    if isinstance(signature, WinternitzSignature):
        return signature.to_bytes()
    return bytes(signature)


def open_vault_instruction(payer: bytes, vault: bytes, identity_digest: bytes, bump: int,
                           program_id: bytes = PROGRAM_ID) -> Instruction:
    data = OpenVaultData(identity_digest, bump).to_bytes()
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta.writable(payer, is_signer=True),
            AccountMeta.writable(vault),
            AccountMeta.readonly(SYSTEM_PROGRAM_ID),
        ],
        data=bytes([VaultInstruction.OPEN]) + data,
    )


def split_vault_instruction(vault: bytes, split: bytes, refund: bytes,
                            signature: Union[WinternitzSignature, bytes], bump: int, amount: int,
                            program_id: bytes = PROGRAM_ID) -> Instruction:
    if not 0 <= amount <= MAX_AMOUNT:
        raise MalformedInput(f"Amount {amount} does not fit in a u64")
    data = SplitVaultData(_signature_bytes(signature), bump, amount).to_bytes()
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta.writable(vault),
            AccountMeta.writable(split),
            AccountMeta.writable(refund),
        ],
        data=bytes([VaultInstruction.SPLIT]) + data,
    )


def close_vault_instruction(vault: bytes, refund: bytes,
                            signature: Union[WinternitzSignature, bytes], bump: int,
                            program_id: bytes = PROGRAM_ID) -> Instruction:
    data = CloseVaultData(_signature_bytes(signature), bump).to_bytes()
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta.writable(vault),
            AccountMeta.writable(refund),
        ],
        data=bytes([VaultInstruction.CLOSE]) + data,
    )


class QuantumVault:
    """High-level interface for a vault guarded by one Winternitz key"""

    def __init__(self, ledger: Ledger, privkey: Optional[WinternitzPrivkey] = None,
                 program_id: bytes = PROGRAM_ID):
        self.ledger = ledger
        self.program_id = program_id
        self.privkey = privkey or WinternitzPrivkey.generate()
        self.identity_digest = self.privkey.pubkey().merklize()
        self.address, self.bump = find_vault_address(self.identity_digest, program_id)
        self._signed_message: Optional[bytes] = None
        self._history: List[dict] = []

    def record(self) -> CustodyRecord:
        """Read the vault back from the ledger"""
        account = self.ledger.get_account(self.address)
        exists = account is not None and account.owner == self.program_id
        return CustodyRecord(
            address=self.address,
            identity_digest=self.identity_digest,
            bump=self.bump,
            balance=account.lamports if exists else 0,
            exists=exists,
        )

    def sign(self, message: bytes) -> WinternitzSignature:
        """
        Sign with the vault key, at most one distinct message.

        Re-signing the same message reproduces the same signature and is
        allowed so a failed submission can be retried.
        """
        if self._signed_message is not None and self._signed_message != message:
            raise KeyReuseError(
                f"Key of vault {self.address.hex()} already signed a different message"
            )
        self._signed_message = message
        return self.privkey.sign(message)

    def open_instruction(self, payer: bytes) -> Instruction:
        return open_vault_instruction(payer, self.address, self.identity_digest, self.bump, self.program_id)

    def open(self, payer: Keypair, lamports: int = 0) -> TransactionMetadata:
        """Open the vault, funding it with lamports in the same transaction"""
        instructions = [self.open_instruction(payer.pubkey())]
        if lamports > 0:
            instructions.append(transfer_instruction(payer.pubkey(), self.address, lamports))
        meta = self._submit(payer, instructions)
        self._log('open', meta, amount=lamports)
        return meta

    def deposit(self, payer: Keypair, lamports: int) -> TransactionMetadata:
        meta = self._submit(payer, [transfer_instruction(payer.pubkey(), self.address, lamports)])
        self._log('deposit', meta, amount=lamports)
        return meta

    def split(self, payer: Keypair, amount: int, split_to: bytes, refund_to: bytes) -> TransactionMetadata:
        meta = self._submit(payer, [self._split_instruction(amount, split_to, refund_to)])
        self._log('split', meta, amount=amount, split=split_to.hex(), refund=refund_to.hex())
        return meta

    def close(self, payer: Keypair, refund_to: bytes) -> TransactionMetadata:
        signature = self.sign(close_message(refund_to))
        ix = close_vault_instruction(self.address, refund_to, signature, self.bump, self.program_id)
        meta = self._submit(payer, [ix])
        self._log('close', meta, refund=refund_to.hex())
        return meta

    def roll_over(self, payer: Keypair, amount: int, split_to: bytes,
                  successor: 'QuantumVault') -> TransactionMetadata:
        """
        Pay amount to split_to and move the remainder into successor,
        a vault under a fresh key. Opening the successor and splitting
        happen in one transaction.
        """
        instructions = []
        if not successor.record().exists:
            instructions.append(successor.open_instruction(payer.pubkey()))
        instructions.append(self._split_instruction(amount, split_to, successor.address))

        meta = self._submit(payer, instructions)
        self._log('roll_over', meta, amount=amount, split=split_to.hex(), successor=successor.address.hex())
        return meta

    def get_history(self) -> List[dict]:
        return self._history.copy()

    def _split_instruction(self, amount: int, split_to: bytes, refund_to: bytes) -> Instruction:
        if not 0 <= amount <= MAX_AMOUNT:
            raise MalformedInput(f"Amount {amount} does not fit in a u64")
        signature = self.sign(split_message(amount, split_to, refund_to))
        return split_vault_instruction(
            self.address, split_to, refund_to, signature, self.bump, amount, self.program_id
        )

    def _submit(self, payer: Keypair, instructions: Sequence[Instruction]) -> TransactionMetadata:
        tx = Transaction.new_signed_with_payer(
            instructions, payer.pubkey(), [payer], self.ledger.latest_blockhash()
        )
        return self.ledger.send_transaction(tx)

    def _log(self, action: str, meta: TransactionMetadata, **details):
        entry = {'action': action, 'signature': meta.signature.hex()}
        entry.update(details)
        self._history.append(entry)
        logger.info("Vault %s %s in %s", self.address.hex()[:16], action, entry['signature'][:16])
