import unittest
from unittest import mock

from web3.exceptions import TimeExhausted, TransactionNotFound

from raffle.ledger import InMemoryLedger, TransferUnconfirmed, Web3Ledger

WINNER = "0x" + "ab" * 20
TX_HASH = "0x" + "aa" * 32


class InMemoryLedgerTests(unittest.TestCase):
    def test_transfers_credit_recipient(self) -> None:
        ledger = InMemoryLedger()

        self.assertTrue(ledger.transfer("alice", 300))
        self.assertTrue(ledger.transfer("alice", 100))

        self.assertEqual(ledger.balance_of("alice"), 400)
        self.assertEqual(ledger.balance_of("bob"), 0)
        self.assertEqual(ledger.transfers, [("alice", 300), ("alice", 100)])

    def test_negative_amount_rejected(self) -> None:
        with self.assertRaises(ValueError):
            InMemoryLedger().transfer("alice", -1)


class Web3LedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.web3 = mock.MagicMock()
        self.account = self.web3.eth.account.from_key.return_value
        self.account.address = "0x" + "11" * 20
        self.web3.eth.get_transaction_count.return_value = 5
        self.web3.eth.gas_price = 1_000_000_000
        self.web3.eth.send_raw_transaction.return_value = bytes.fromhex("aa" * 32)
        self.web3.eth.block_number = 10
        self.ledger = Web3Ledger(self.web3, "0x" + "1" * 64, chain_id=31337, poll_latency=0)

    def test_successful_transfer(self) -> None:
        self.web3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}

        self.assertTrue(self.ledger.transfer(WINNER, 300))

        tx = self.account.sign_transaction.call_args[0][0]
        self.assertEqual(tx["to"].lower(), WINNER)
        self.assertEqual(tx["value"], 300)
        self.assertEqual(tx["nonce"], 5)
        self.assertEqual(tx["gas"], 21000)
        self.assertEqual(tx["chainId"], 31337)
        self.web3.eth.send_raw_transaction.assert_called_once_with(
            self.account.sign_transaction.return_value.raw_transaction
        )

    def test_reverted_transfer_is_not_confirmed(self) -> None:
        self.web3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 10}

        self.assertFalse(self.ledger.transfer(WINNER, 300))

    def test_receipt_timeout_after_send_is_unconfirmed(self) -> None:
        self.web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("no receipt")

        with self.assertRaises(TransferUnconfirmed) as ctx:
            self.ledger.transfer(WINNER, 300)

        self.assertEqual(ctx.exception.tx_ref, TX_HASH)
        self.web3.eth.send_raw_transaction.assert_called_once()

    def test_rpc_error_after_send_is_unconfirmed(self) -> None:
        self.web3.eth.wait_for_transaction_receipt.side_effect = ConnectionError("rpc dropped")

        with self.assertRaises(TransferUnconfirmed) as ctx:
            self.ledger.transfer(WINNER, 300)

        self.assertEqual(ctx.exception.tx_ref, TX_HASH)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_retry_with_mined_previous_tx_does_not_resend(self) -> None:
        self.web3.eth.get_transaction_receipt.return_value = {"status": 1, "blockNumber": 9}

        self.assertTrue(self.ledger.transfer(WINNER, 300, previous_tx=TX_HASH))

        self.web3.eth.get_transaction_receipt.assert_called_once_with(TX_HASH)
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_retry_with_unknown_previous_tx_does_not_resend(self) -> None:
        self.web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")

        with self.assertRaises(TransferUnconfirmed) as ctx:
            self.ledger.transfer(WINNER, 300, previous_tx=TX_HASH)

        self.assertEqual(ctx.exception.tx_ref, TX_HASH)
        self.web3.eth.send_raw_transaction.assert_not_called()

    def test_retry_with_reverted_previous_tx_sends_again(self) -> None:
        self.web3.eth.get_transaction_receipt.return_value = {"status": 0, "blockNumber": 9}
        self.web3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}

        self.assertTrue(self.ledger.transfer(WINNER, 300, previous_tx=TX_HASH))

        self.web3.eth.send_raw_transaction.assert_called_once()


if __name__ == "__main__":
    unittest.main()
