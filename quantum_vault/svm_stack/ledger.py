"""
In-memory ledger (Python implementation)
SVM-aligned host runtime: accounts, signed transactions, atomic commit
"""

import copy
import logging
import secrets
import struct
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import (
    VaultError,
    CollaboratorFailure,
    AccountNotFound,
    InsufficientFunds,
)
from .keys import Keypair

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM_ID = bytes(32)
NATIVE_LOADER_ID = b"NativeLoader".ljust(32, b"\x00")
LAMPORTS_PER_SOL = 1_000_000_000
LAMPORTS_PER_SIGNATURE = 5000
MAX_LAMPORTS = 2 ** 64 - 1

Entrypoint = Callable[[bytes, List['AccountInfo'], bytes], None]


@dataclass
class Account:
    """Persisted account state"""
    lamports: int = 0
    owner: bytes = SYSTEM_PROGRAM_ID
    data: bytes = b""
    executable: bool = False


@dataclass(frozen=True)
class AccountMeta:
    """Account reference inside an instruction"""
    pubkey: bytes
    is_signer: bool = False
    is_writable: bool = False

    @classmethod
    def writable(cls, pubkey: bytes, is_signer: bool = False) -> 'AccountMeta':
        return cls(pubkey, is_signer, True)

    @classmethod
    def readonly(cls, pubkey: bytes, is_signer: bool = False) -> 'AccountMeta':
        return cls(pubkey, is_signer, False)


@dataclass
class Instruction:
    program_id: bytes
    accounts: List[AccountMeta]
    data: bytes


class AccountInfo:
    """
    Mutable view of one account for the duration of a transaction.

    Every instruction that references the same key gets the same
    AccountInfo, so aliased references observe each other's writes.
    """

    def __init__(self, key: bytes, account: Account, is_signer: bool, is_writable: bool):
        self.key = key
        self.is_signer = is_signer
        self.is_writable = is_writable
        self._account = account
        # Debits and reassignments performed through the system program
        self.system_debits = 0
        self.system_assigned = False

    def _require_writable(self):
        if not self.is_writable:
            raise CollaboratorFailure(f"Account {self.key.hex()} is not writable")
        if self._account.executable:
            raise CollaboratorFailure(f"Account {self.key.hex()} is executable")

    @property
    def lamports(self) -> int:
        return self._account.lamports

    @lamports.setter
    def lamports(self, value: int):
        self._require_writable()
        if value < 0:
            raise InsufficientFunds(f"Account {self.key.hex()} would go negative")
        if value > MAX_LAMPORTS:
            raise CollaboratorFailure(f"Lamport overflow on account {self.key.hex()}")
        self._account.lamports = value

    @property
    def owner(self) -> bytes:
        return self._account.owner

    @property
    def data(self) -> bytes:
        return self._account.data

    @property
    def executable(self) -> bool:
        return self._account.executable

    def data_is_empty(self) -> bool:
        return len(self._account.data) == 0

    def allocate(self, space: int):
        self._require_writable()
        self._account.data = bytes(space)

    def assign(self, owner: bytes):
        self._require_writable()
        self._account.owner = owner

    def close(self):
        """Zero lamports and data and hand the account back to the system program"""
        self.lamports = 0
        self._account.data = b""
        self._account.owner = SYSTEM_PROGRAM_ID


@dataclass
class Transaction:
    """Instructions plus Ed25519 signatures of every required signer"""
    instructions: List[Instruction]
    payer: bytes
    recent_blockhash: bytes
    signatures: Dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def new_signed_with_payer(cls, instructions: Sequence[Instruction], payer: bytes,
                              signers: Sequence[Keypair], recent_blockhash: bytes) -> 'Transaction':
        tx = cls(list(instructions), payer, recent_blockhash)
        tx.sign(signers)
        return tx

    def required_signers(self) -> List[bytes]:
        """Payer first, then every signer referenced by an instruction"""
        signers = [self.payer]
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.pubkey not in signers:
                    signers.append(meta.pubkey)
        return signers

    def message_bytes(self) -> bytes:
        """Serialize everything the signatures cover"""
        parts = [self.payer, self.recent_blockhash, struct.pack('<H', len(self.instructions))]
        for ix in self.instructions:
            parts.append(ix.program_id)
            parts.append(struct.pack('<B', len(ix.accounts)))
            for meta in ix.accounts:
                parts.append(meta.pubkey)
                parts.append(bytes([int(meta.is_signer) | int(meta.is_writable) << 1]))
            parts.append(struct.pack('<H', len(ix.data)))
            parts.append(bytes(ix.data))
        return b"".join(parts)

    def sign(self, keypairs: Sequence[Keypair]):
        required = self.required_signers()
        message = self.message_bytes()
        for keypair in keypairs:
            pubkey = keypair.pubkey()
            if pubkey not in required:
                raise ValueError(f"Keypair {pubkey.hex()} is not a required signer")
            self.signatures[pubkey] = keypair.sign_message(message)

    @property
    def signature(self) -> Optional[bytes]:
        """Payer signature, used as the transaction id"""
        return self.signatures.get(self.payer)


@dataclass
class TransactionMetadata:
    signature: bytes
    logs: List[str]
    fee: int

    def pretty_logs(self) -> str:
        return "\n".join(self.logs)


class Ledger:
    """
    Single-threaded ledger executing one transaction at a time.

    Instructions run against working copies of the referenced accounts;
    the copies replace the stored accounts only when every instruction
    succeeds. The fee is charged up front and kept on failure.
    """

    def __init__(self, fee_per_signature: int = LAMPORTS_PER_SIGNATURE):
        from . import system_program

        self.fee_per_signature = fee_per_signature
        self.rent = system_program.Rent()
        self._accounts: Dict[bytes, Account] = {}
        self._programs: Dict[bytes, Entrypoint] = {}
        self._processed = set()
        self._blockhash = secrets.token_bytes(32)

        self.add_program(SYSTEM_PROGRAM_ID, system_program.process_instruction)

    def add_program(self, program_id: bytes, entrypoint: Entrypoint):
        """Deploy a program under program_id"""
        self._programs[program_id] = entrypoint
        self._accounts[program_id] = Account(lamports=1, owner=NATIVE_LOADER_ID, executable=True)
        logger.debug("Deployed program %s", program_id.hex())

    def airdrop(self, pubkey: bytes, lamports: int):
        account = self._accounts.setdefault(pubkey, Account())
        account.lamports += lamports
        logger.debug("Airdropped %d lamports to %s", lamports, pubkey.hex())

    def get_account(self, pubkey: bytes) -> Optional[Account]:
        """Copy of the stored account, None if it does not exist"""
        account = self._accounts.get(pubkey)
        return copy.deepcopy(account) if account is not None else None

    def get_balance(self, pubkey: bytes) -> int:
        account = self._accounts.get(pubkey)
        return account.lamports if account is not None else 0

    def minimum_balance_for_rent_exemption(self, data_len: int) -> int:
        return self.rent.minimum_balance(data_len)

    def latest_blockhash(self) -> bytes:
        return self._blockhash

    def expire_blockhash(self):
        """Move to a new blockhash so identical transactions can be rebuilt"""
        self._blockhash = secrets.token_bytes(32)

    def send_transaction(self, tx: Transaction) -> TransactionMetadata:
        """Execute tx atomically; re-raises the failing instruction's error"""
        self._verify_signatures(tx)

        if tx.recent_blockhash != self._blockhash:
            raise CollaboratorFailure("Blockhash not found")
        signature = tx.signature
        if signature in self._processed:
            raise CollaboratorFailure("This transaction has already been processed")

        fee = self.fee_per_signature * len(tx.signatures)
        payer = self._accounts.get(tx.payer)
        if payer is None:
            raise AccountNotFound(f"Fee payer {tx.payer.hex()} does not exist")
        if payer.lamports < fee:
            raise InsufficientFunds(f"Fee payer cannot cover fee of {fee} lamports")
        payer.lamports -= fee
        if payer.lamports == 0:
            del self._accounts[tx.payer]
        self._processed.add(signature)

        signers = set(tx.signatures)
        writable = {tx.payer}
        for ix in tx.instructions:
            writable.update(meta.pubkey for meta in ix.accounts if meta.is_writable)

        working: Dict[bytes, Account] = {}
        infos: Dict[bytes, AccountInfo] = {}
        logs: List[str] = []

        try:
            for ix in tx.instructions:
                self._execute(ix, working, infos, signers, writable, logs)
        except VaultError as e:
            logger.info("Transaction %s failed: %s", signature.hex()[:16], e)
            raise

        for key, account in working.items():
            if account.lamports == 0 and not account.executable:
                self._accounts.pop(key, None)
            else:
                self._accounts[key] = account

        logger.debug("Transaction %s committed", signature.hex()[:16])
        return TransactionMetadata(signature=signature, logs=logs, fee=fee)

    def _verify_signatures(self, tx: Transaction):
        message = tx.message_bytes()
        for pubkey in tx.required_signers():
            signature = tx.signatures.get(pubkey)
            if signature is None:
                raise CollaboratorFailure(f"Missing signature for {pubkey.hex()}")
            if not Keypair.verify_signature(pubkey, message, signature):
                raise CollaboratorFailure(f"Invalid signature for {pubkey.hex()}")

    def _execute(self, ix: Instruction, working: Dict[bytes, Account],
                 infos: Dict[bytes, AccountInfo], signers: set, writable: set, logs: List[str]):
        program = self._programs.get(ix.program_id)
        if program is None:
            raise CollaboratorFailure(f"Program {ix.program_id.hex()} is not deployed")

        accounts = []
        for meta in ix.accounts:
            key = meta.pubkey
            if key not in working:
                stored = self._accounts.get(key)
                working[key] = copy.deepcopy(stored) if stored is not None else Account()
            if key not in infos:
                infos[key] = AccountInfo(key, working[key], key in signers, key in writable)
            accounts.append(infos[key])

        touched = {info.key: info for info in accounts}
        before = {}
        for key, info in touched.items():
            info.system_debits = 0
            info.system_assigned = False
            before[key] = (info.lamports, info.owner, info.data)

        program_hex = ix.program_id.hex()
        logs.append(f"Program {program_hex} invoke [1]")
        try:
            program(ix.program_id, accounts, bytes(ix.data))
            self._check_instruction(ix.program_id, touched, before)
        except VaultError as e:
            logs.append(f"Program {program_hex} failed: {e}")
            raise
        logs.append(f"Program {program_hex} success")

    @staticmethod
    def _check_instruction(program_id: bytes, touched: Dict[bytes, AccountInfo],
                           before: Dict[bytes, Tuple[int, bytes, bytes]]):
        total_before = sum(lamports for lamports, _, _ in before.values())
        total_after = sum(info.lamports for info in touched.values())
        if total_before != total_after:
            raise CollaboratorFailure(
                f"Unbalanced instruction: {total_before} lamports before, {total_after} after"
            )

        for key, info in touched.items():
            lamports, owner, data = before[key]
            if owner == program_id:
                continue
            if info.owner != owner and not info.system_assigned:
                raise CollaboratorFailure(f"Instruction modified owner of {key.hex()} without owning it")
            if lamports - info.lamports - info.system_debits > 0:
                raise CollaboratorFailure(f"Instruction spent from account {key.hex()} it does not own")
            if info.data != data and not info.system_assigned:
                raise CollaboratorFailure(f"Instruction modified data of {key.hex()} without owning it")
