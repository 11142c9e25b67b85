import unittest

from quantum_vault.svm_stack import Keypair, LAMPORTS_PER_SOL
import web_interface.app as web_app

RENT = 890_880


class TestWebInterface(unittest.TestCase):

    def setUp(self):
        """Set up a fresh ledger and a funded wallet"""
        web_app.reset_state()
        web_app.app.config['TESTING'] = True
        self.client = web_app.app.test_client()

        response = self.client.post('/api/wallet', json={'lamports': 10 * LAMPORTS_PER_SOL})
        self.assertEqual(response.status_code, 200)
        self.payer = response.get_json()['pubkey']

    def _create_vault(self, deposit=5 * LAMPORTS_PER_SOL):
        response = self.client.post('/api/create_vault', json={'payer': self.payer, 'deposit': deposit})
        self.assertEqual(response.status_code, 200)
        return response.get_json()

    def test_index(self):
        """Test service information"""
        data = self.client.get('/').get_json()
        self.assertEqual(data['service'], 'quantum-vault')
        self.assertEqual(data['rent_exempt_minimum'], RENT)

    def test_create_vault(self):
        """Test vault creation returns its custody record"""
        vault = self._create_vault()
        self.assertTrue(vault['success'])
        self.assertTrue(vault['exists'])
        self.assertEqual(vault['balance'], 5 * LAMPORTS_PER_SOL + RENT)

        response = self.client.get(f"/api/vault/{vault['address']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([h['action'] for h in response.get_json()['history']], ['open'])

        account = self.client.get(f"/api/account/{vault['address']}").get_json()
        self.assertTrue(account['exists'])
        self.assertEqual(account['owner'], web_app.PROGRAM_ID.hex())

    def test_split(self):
        """Test splitting a vault over the API"""
        vault = self._create_vault()
        split_to = Keypair().pubkey().hex()
        refund_to = Keypair().pubkey().hex()

        response = self.client.post(f"/api/vault/{vault['address']}/split", json={
            'payer': self.payer,
            'amount': 2 * LAMPORTS_PER_SOL,
            'split_to': split_to,
            'refund_to': refund_to,
        })
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['split_balance'], 2 * LAMPORTS_PER_SOL)
        self.assertEqual(data['refund_balance'], 3 * LAMPORTS_PER_SOL + RENT)

        record = self.client.get(f"/api/vault/{vault['address']}").get_json()
        self.assertFalse(record['exists'])

    def test_close_then_reuse(self):
        """Test a closed vault refuses to sign for anything else"""
        vault = self._create_vault()
        refund_to = Keypair().pubkey().hex()

        response = self.client.post(f"/api/vault/{vault['address']}/close", json={
            'payer': self.payer,
            'refund_to': refund_to,
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['refund_balance'], 5 * LAMPORTS_PER_SOL + RENT)

        response = self.client.post(f"/api/vault/{vault['address']}/close", json={
            'payer': self.payer,
            'refund_to': Keypair().pubkey().hex(),
        })
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error_type'], 'KeyReuseError')

    def test_create_vault_beyond_balance(self):
        """Test an unaffordable deposit opens nothing"""
        response = self.client.post('/api/create_vault', json={
            'payer': self.payer,
            'deposit': 20 * LAMPORTS_PER_SOL,
        })
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error_type'], 'InsufficientFunds')
        self.assertEqual(web_app.vaults, {})

        balance = self.client.get(f'/api/account/{self.payer}').get_json()['balance']
        self.assertEqual(balance, 10 * LAMPORTS_PER_SOL - 5_000)

    def test_split_overdraft(self):
        """Test an amount above the balance is a bad request"""
        vault = self._create_vault(deposit=LAMPORTS_PER_SOL)
        response = self.client.post(f"/api/vault/{vault['address']}/split", json={
            'payer': self.payer,
            'amount': 2 * LAMPORTS_PER_SOL,
            'split_to': Keypair().pubkey().hex(),
            'refund_to': Keypair().pubkey().hex(),
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error_type'], 'MalformedInput')

    def test_bad_requests(self):
        """Test missing fields, bad hex and unknown wallets"""
        vault = self._create_vault()

        response = self.client.post(f"/api/vault/{vault['address']}/close", json={'payer': self.payer})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(f"/api/vault/{vault['address']}/close", json={
            'payer': self.payer,
            'refund_to': 'not-hex',
        })
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/api/create_vault', json={'payer': '00' * 32})
        self.assertEqual(response.status_code, 404)

    def test_unknown_vault(self):
        """Test unknown vault addresses"""
        self.assertEqual(self.client.get(f"/api/vault/{'00' * 32}").status_code, 404)
        response = self.client.post(f"/api/vault/{'00' * 32}/close", json={})
        self.assertEqual(response.status_code, 404)

    def test_unknown_account(self):
        """Test accounts that were never funded"""
        data = self.client.get(f"/api/account/{'ab' * 32}").get_json()
        self.assertFalse(data['exists'])
        self.assertEqual(data['balance'], 0)


if __name__ == '__main__':
    unittest.main()
