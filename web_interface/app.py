#!/usr/bin/env python3
"""
Web interface for Quantum Vault
"""

from flask import Flask, request, jsonify
import os
import sys

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from quantum_vault import PROGRAM_ID, QuantumVault, deploy, __version__
from quantum_vault.errors import (
    VaultError,
    AuthorizationFailure,
    AccountNotFound,
    CollaboratorFailure,
    KeyReuseError,
)
from quantum_vault.svm_stack import Keypair, Ledger, LAMPORTS_PER_SOL

app = Flask(__name__)
app.secret_key = os.environ.get('QUANTUM_VAULT_SECRET_KEY', 'demo_secret_key_change_in_production')

# Global storage (in production, talk to a real cluster)
ledger = None
wallets = {}  # pubkey hex -> Keypair
vaults = {}   # vault address hex -> QuantumVault


def reset_state():
    """Start over with an empty ledger"""
    global ledger
    ledger = Ledger()
    deploy(ledger)
    wallets.clear()
    vaults.clear()


reset_state()


def _status_for(error: Exception) -> int:
    if isinstance(error, AuthorizationFailure):
        return 403
    if isinstance(error, AccountNotFound):
        return 404
    if isinstance(error, (KeyReuseError, CollaboratorFailure)):
        return 409
    return 400


def _error(error: Exception):
    app.logger.warning("Request failed: %s: %s", type(error).__name__, error)
    return jsonify({
        'success': False,
        'error': str(error),
        'error_type': type(error).__name__,
    }), _status_for(error)


def _wallet(pubkey_hex: str) -> Keypair:
    if pubkey_hex not in wallets:
        raise AccountNotFound(f"Wallet {pubkey_hex} not found")
    return wallets[pubkey_hex]


def _vault_info(vault: QuantumVault) -> dict:
    info = vault.record().to_dict()
    info['history'] = vault.get_history()
    return info


@app.route('/')
def index():
    """Service information"""
    return jsonify({
        'service': 'quantum-vault',
        'version': __version__,
        'program_id': PROGRAM_ID.hex(),
        'rent_exempt_minimum': ledger.minimum_balance_for_rent_exemption(0),
    })


@app.route('/api/wallet', methods=['POST'])
def create_wallet():
    """Create a funded wallet to pay fees and deposits"""
    data = request.get_json(silent=True) or {}
    try:
        lamports = int(data.get('lamports', 10 * LAMPORTS_PER_SOL))
        if lamports < 0:
            raise ValueError("lamports must be non-negative")

        keypair = Keypair()
        pubkey_hex = keypair.pubkey().hex()
        wallets[pubkey_hex] = keypair
        ledger.airdrop(keypair.pubkey(), lamports)

        app.logger.info("Created wallet %s with %d lamports", pubkey_hex, lamports)
        return jsonify({
            'success': True,
            'pubkey': pubkey_hex,
            'balance': ledger.get_balance(keypair.pubkey()),
        })

    except (VaultError, ValueError, TypeError) as e:
        return _error(e)


@app.route('/api/account/<pubkey>')
def get_account(pubkey):
    """Balance and owner of any account"""
    try:
        key = bytes.fromhex(pubkey)
    except ValueError as e:
        return _error(e)

    account = ledger.get_account(key)
    if account is None:
        return jsonify({'pubkey': pubkey, 'exists': False, 'balance': 0})

    return jsonify({
        'pubkey': pubkey,
        'exists': True,
        'balance': account.lamports,
        'owner': account.owner.hex(),
    })


@app.route('/api/create_vault', methods=['POST'])
def create_vault():
    """Generate a Winternitz key, open its vault and optionally deposit"""
    data = request.get_json(silent=True) or {}
    try:
        payer = _wallet(data['payer'])
        deposit = int(data.get('deposit', 0))

        vault = QuantumVault(ledger)
        vault.open(payer, deposit)

        address_hex = vault.address.hex()
        vaults[address_hex] = vault
        app.logger.info("Created vault %s", address_hex)

        result = {'success': True}
        result.update(_vault_info(vault))
        return jsonify(result)

    except KeyError as e:
        return _error(ValueError(f"Missing field {e}"))
    except (VaultError, ValueError, TypeError) as e:
        return _error(e)


@app.route('/api/vault/<address>')
def get_vault(address):
    """Vault record and client history"""
    if address not in vaults:
        return jsonify({'error': 'Vault not found'}), 404
    return jsonify(_vault_info(vaults[address]))


@app.route('/api/vault/<address>/split', methods=['POST'])
def split_vault(address):
    """Pay amount to split_to, the remainder to refund_to, destroy the vault"""
    if address not in vaults:
        return jsonify({'error': 'Vault not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        vault = vaults[address]
        payer = _wallet(data['payer'])
        amount = int(data['amount'])
        split_to = bytes.fromhex(data['split_to'])
        refund_to = bytes.fromhex(data['refund_to'])

        meta = vault.split(payer, amount, split_to, refund_to)

        return jsonify({
            'success': True,
            'signature': meta.signature.hex(),
            'logs': meta.logs,
            'split_balance': ledger.get_balance(split_to),
            'refund_balance': ledger.get_balance(refund_to),
        })

    except KeyError as e:
        return _error(ValueError(f"Missing field {e}"))
    except (VaultError, ValueError, TypeError) as e:
        return _error(e)


@app.route('/api/vault/<address>/close', methods=['POST'])
def close_vault(address):
    """Sweep the whole vault to refund_to and destroy it"""
    if address not in vaults:
        return jsonify({'error': 'Vault not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        vault = vaults[address]
        payer = _wallet(data['payer'])
        refund_to = bytes.fromhex(data['refund_to'])

        meta = vault.close(payer, refund_to)

        return jsonify({
            'success': True,
            'signature': meta.signature.hex(),
            'logs': meta.logs,
            'refund_balance': ledger.get_balance(refund_to),
        })

    except KeyError as e:
        return _error(ValueError(f"Missing field {e}"))
    except (VaultError, ValueError, TypeError) as e:
        return _error(e)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 10000))
    app.run(
        host="0.0.0.0",
        port=port,
        debug=False
    )
