import unittest

from quantum_vault.errors import AccountNotFound, CollaboratorFailure, InsufficientFunds
from quantum_vault.svm_stack.keys import Keypair
from quantum_vault.svm_stack.ledger import (
    LAMPORTS_PER_SOL,
    AccountMeta,
    Instruction,
    Ledger,
    Transaction,
)
from quantum_vault.svm_stack.system_program import create_account_instruction, transfer_instruction

ROGUE_PROGRAM_ID = b"\x42" * 32


def _mint(program_id, accounts, data):
    accounts[0].lamports += 1


def _steal(program_id, accounts, data):
    accounts[0].lamports -= 10
    accounts[1].lamports += 10


class TestLedger(unittest.TestCase):

    def setUp(self):
        """Set up a ledger with a funded payer"""
        self.ledger = Ledger()
        self.payer = Keypair()
        self.ledger.airdrop(self.payer.pubkey(), 10 * LAMPORTS_PER_SOL)

    def _send(self, instructions, signers=None):
        tx = Transaction.new_signed_with_payer(
            instructions, self.payer.pubkey(), signers or [self.payer], self.ledger.latest_blockhash()
        )
        return self.ledger.send_transaction(tx)

    def test_rent_exempt_minimum(self):
        """Test rent exemption for an empty account"""
        self.assertEqual(self.ledger.minimum_balance_for_rent_exemption(0), 890_880)

    def test_transfer_and_fee(self):
        """Test a transfer charges one signature fee"""
        recipient = Keypair().pubkey()
        meta = self._send([transfer_instruction(self.payer.pubkey(), recipient, 1_000)])

        self.assertEqual(meta.fee, 5_000)
        self.assertEqual(self.ledger.get_balance(recipient), 1_000)
        self.assertEqual(self.ledger.get_balance(self.payer.pubkey()), 10 * LAMPORTS_PER_SOL - 6_000)
        self.assertIn("success", meta.pretty_logs())

    def test_create_account(self):
        """Test CreateAccount funds, allocates and assigns a signing account"""
        new_account = Keypair()
        lamports = self.ledger.minimum_balance_for_rent_exemption(100)
        ix = create_account_instruction(
            self.payer.pubkey(), new_account.pubkey(), lamports, 100, ROGUE_PROGRAM_ID
        )
        meta = self._send([ix], signers=[self.payer, new_account])

        account = self.ledger.get_account(new_account.pubkey())
        self.assertEqual(meta.fee, 10_000)
        self.assertEqual(lamports, 1_586_880)
        self.assertEqual(account.lamports, lamports)
        self.assertEqual(account.owner, ROGUE_PROGRAM_ID)
        self.assertEqual(len(account.data), 100)

        with self.assertRaises(CollaboratorFailure):
            self._send([ix], signers=[self.payer])

    def test_failed_transaction_rolls_back(self):
        """Test every instruction is undone when a later one fails"""
        self.ledger.add_program(ROGUE_PROGRAM_ID, _mint)
        recipient = Keypair().pubkey()
        instructions = [
            transfer_instruction(self.payer.pubkey(), recipient, 1_000),
            Instruction(ROGUE_PROGRAM_ID, [AccountMeta.writable(recipient)], b""),
        ]

        with self.assertRaises(CollaboratorFailure):
            self._send(instructions)

        self.assertIsNone(self.ledger.get_account(recipient))
        self.assertEqual(self.ledger.get_balance(self.payer.pubkey()), 10 * LAMPORTS_PER_SOL - 5_000)

    def test_spending_foreign_account(self):
        """Test a program cannot debit an account it does not own"""
        self.ledger.add_program(ROGUE_PROGRAM_ID, _steal)
        thief = Keypair().pubkey()
        ix = Instruction(
            ROGUE_PROGRAM_ID,
            [AccountMeta.writable(self.payer.pubkey(), is_signer=True), AccountMeta.writable(thief)],
            b"",
        )

        with self.assertRaises(CollaboratorFailure):
            self._send([ix])
        self.assertEqual(self.ledger.get_balance(thief), 0)

    def test_readonly_accounts(self):
        """Test writes to read-only accounts fail"""
        self.ledger.add_program(ROGUE_PROGRAM_ID, _steal)
        other = Keypair().pubkey()
        ix = Instruction(
            ROGUE_PROGRAM_ID,
            [AccountMeta.readonly(self.payer.pubkey()), AccountMeta.readonly(other)],
            b"",
        )
        with self.assertRaises(CollaboratorFailure):
            self._send([ix])

    def test_insufficient_funds(self):
        """Test transfers beyond the balance are refused"""
        recipient = Keypair().pubkey()
        with self.assertRaises(InsufficientFunds):
            self._send([transfer_instruction(self.payer.pubkey(), recipient, 11 * LAMPORTS_PER_SOL)])

    def test_fee_empties_payer(self):
        """Test a payer drained by the fee disappears even when execution fails"""
        poor = Keypair()
        self.ledger.airdrop(poor.pubkey(), 5_000)
        tx = Transaction.new_signed_with_payer(
            [transfer_instruction(poor.pubkey(), self.payer.pubkey(), 10)],
            poor.pubkey(), [poor], self.ledger.latest_blockhash()
        )

        with self.assertRaises(InsufficientFunds):
            self.ledger.send_transaction(tx)
        self.assertIsNone(self.ledger.get_account(poor.pubkey()))
        self.assertEqual(self.ledger.get_balance(poor.pubkey()), 0)

    def test_missing_signature(self):
        """Test every signer referenced by an instruction must sign"""
        other = Keypair()
        self.ledger.airdrop(other.pubkey(), LAMPORTS_PER_SOL)
        tx = Transaction(
            [transfer_instruction(other.pubkey(), self.payer.pubkey(), 10)],
            self.payer.pubkey(),
            self.ledger.latest_blockhash(),
        )
        tx.sign([self.payer])

        with self.assertRaises(CollaboratorFailure):
            self.ledger.send_transaction(tx)

    def test_duplicate_and_stale_transactions(self):
        """Test the same transaction cannot run twice and old blockhashes expire"""
        recipient = Keypair().pubkey()
        tx = Transaction.new_signed_with_payer(
            [transfer_instruction(self.payer.pubkey(), recipient, 10)],
            self.payer.pubkey(), [self.payer], self.ledger.latest_blockhash()
        )
        self.ledger.send_transaction(tx)

        with self.assertRaises(CollaboratorFailure):
            self.ledger.send_transaction(tx)

        self.ledger.expire_blockhash()
        with self.assertRaises(CollaboratorFailure):
            self.ledger.send_transaction(tx)
        self.assertEqual(self.ledger.get_balance(recipient), 10)

    def test_unknown_payer(self):
        """Test a payer without an account cannot pay fees"""
        stranger = Keypair()
        tx = Transaction.new_signed_with_payer(
            [transfer_instruction(stranger.pubkey(), self.payer.pubkey(), 10)],
            stranger.pubkey(), [stranger], self.ledger.latest_blockhash()
        )
        with self.assertRaises(AccountNotFound):
            self.ledger.send_transaction(tx)

    def test_unknown_program(self):
        """Test instructions for undeployed programs fail"""
        with self.assertRaises(CollaboratorFailure):
            self._send([Instruction(b"\x99" * 32, [], b"")])


if __name__ == '__main__':
    unittest.main()
