#!/usr/bin/env python3
"""
Complete demo of the Quantum Vault
"""

import logging

from quantum_vault import QuantumVault, deploy
from quantum_vault.errors import VaultError
from quantum_vault.instructions.split import split_message
from quantum_vault.svm_stack import Keypair, Ledger, Transaction, LAMPORTS_PER_SOL
from quantum_vault.vault import split_vault_instruction


def sol(lamports):
    return lamports / LAMPORTS_PER_SOL


def main():
    logging.basicConfig(level=logging.WARNING)

    print("=" * 60)
    print("🔐 QUANTUM VAULT - COMPLETE DEMO")
    print("=" * 60)
    print()

    # Step 1: Setup
    print("🔧 STEP 1: Setting up the ledger")
    print("-" * 40)

    ledger = Ledger()
    program_id = deploy(ledger)
    payer = Keypair()
    ledger.airdrop(payer.pubkey(), 20 * LAMPORTS_PER_SOL)

    print(f"✅ Program deployed: {program_id.hex()[:16]}...")
    print(f"✅ Payer: {payer.pubkey().hex()[:16]}... ({sol(ledger.get_balance(payer.pubkey()))} SOL)")
    print(f"✅ Rent-exempt minimum: {ledger.minimum_balance_for_rent_exemption(0):,} lamports")
    print()

    # Step 2: Open vault
    print("🏗️  STEP 2: Opening a vault behind a Winternitz key")
    print("-" * 40)

    vault = QuantumVault(ledger)
    vault.open(payer)
    vault.deposit(payer, 5 * LAMPORTS_PER_SOL)
    record = vault.record()

    print(f"✅ Identity digest: {record.identity_digest.hex()[:16]}...")
    print(f"✅ Vault address: {record.address.hex()[:16]}... (bump {record.bump})")
    print(f"✅ Balance: {record.balance:,} lamports")
    print()

    # Step 3: Bad attempts
    print("🚫 STEP 3: Attempts that must fail")
    print("-" * 40)

    split_to = Keypair().pubkey()
    refund_to = Keypair().pubkey()
    amount = 2 * LAMPORTS_PER_SOL

    print("Test 1: Signature for swapped destinations")
    forged = vault.privkey.sign(split_message(amount, refund_to, split_to))
    ix = split_vault_instruction(vault.address, split_to, refund_to, forged, vault.bump, amount)
    tx = Transaction.new_signed_with_payer([ix], payer.pubkey(), [payer], ledger.latest_blockhash())
    try:
        ledger.send_transaction(tx)
        print("   ❌ UNEXPECTED: Should have failed")
    except VaultError as e:
        print(f"   ✅ EXPECTED FAILURE: {type(e).__name__}: {e}")

    print("Test 2: Split more than the vault holds")
    try:
        vault.split(payer, 6 * LAMPORTS_PER_SOL, split_to, refund_to)
        print("   ❌ UNEXPECTED: Should have failed")
    except VaultError as e:
        print(f"   ✅ EXPECTED FAILURE: {type(e).__name__}: {e}")

    print(f"💰 Vault balance unchanged: {vault.record().balance:,} lamports")
    print()

    # Step 4: Split
    print("✂️  STEP 4: Splitting a fresh vault")
    print("-" * 40)

    # The overdraft attempt used up the first key, start from a fresh one
    vault = QuantumVault(ledger)
    vault.open(payer)
    vault.deposit(payer, 5 * LAMPORTS_PER_SOL)
    successor = QuantumVault(ledger)
    vault.roll_over(payer, amount, split_to, successor)

    print(f"✅ Paid {sol(ledger.get_balance(split_to))} SOL to {split_to.hex()[:16]}...")
    print(f"✅ Remainder rolled into {successor.address.hex()[:16]}...: "
          f"{successor.record().balance:,} lamports")
    print(f"✅ Old vault exists: {vault.record().exists}")

    try:
        vault.split(payer, amount, refund_to, split_to)
        print("   ❌ UNEXPECTED: Key reused")
    except VaultError as e:
        print(f"   ✅ Key reuse refused: {e}")
    print()

    # Step 5: Close
    print("🔒 STEP 5: Closing the successor")
    print("-" * 40)

    meta = successor.close(payer, refund_to)
    print(f"✅ Transaction: {meta.signature.hex()[:16]}...")
    print(f"✅ Refund received: {ledger.get_balance(refund_to):,} lamports")
    print(f"✅ Successor exists: {successor.record().exists}")
    print()

    # Summary
    print("=" * 60)
    print("📊 SUMMARY")
    print("=" * 60)
    print(f"Payer balance: {ledger.get_balance(payer.pubkey()):,} lamports")
    for entry in vault.get_history() + successor.get_history():
        print(f"   {entry['action']:<10} {entry['signature'][:16]}...")
    print()
    print("🎉 Demo complete")


if __name__ == "__main__":
    main()
