from __future__ import annotations

import abc
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .config import LedgerSettings

if TYPE_CHECKING:  # pragma: no cover
    from web3 import Web3


class TransferUnconfirmed(Exception):
    """A transfer was submitted but its outcome is not known yet.

    ``tx_ref`` identifies the submission; pass it back as ``previous_tx`` so the
    ledger checks it instead of paying again.
    """

    def __init__(self, tx_ref: str) -> None:
        super().__init__(f"Transfer {tx_ref} submitted but not confirmed")
        self.tx_ref = tx_ref


class Ledger(abc.ABC):
    """Value-transfer collaborator used to pay out the winner."""

    @abc.abstractmethod
    def transfer(self, to: str, amount: int, previous_tx: Optional[str] = None) -> bool:
        """Move ``amount`` to ``to``; return ``True`` only once the transfer is confirmed.

        ``previous_tx`` is the reference of an earlier unconfirmed attempt for the
        same payout. Raises ``TransferUnconfirmed`` when the outcome is unknown.
        """


class InMemoryLedger(Ledger):
    """Ledger kept in process memory; used for local runs and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = {}
        self.transfers: List[Tuple[str, int]] = []

    def transfer(self, to: str, amount: int, previous_tx: Optional[str] = None) -> bool:
        if amount < 0:
            raise ValueError("amount must not be negative")
        with self._lock:
            self._balances[to] = self._balances.get(to, 0) + amount
            self.transfers.append((to, amount))
        return True

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)


class Web3Ledger(Ledger):
    """Pays out with a signed native-value transaction."""

    def __init__(
        self,
        web3: "Web3",
        private_key: str,
        *,
        gas_limit: int = 21000,
        confirmations: int = 1,
        chain_id: Optional[int] = None,
        receipt_timeout: int = 180,
        poll_latency: float = 2,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._web3 = web3
        self._account = web3.eth.account.from_key(private_key)
        self._gas_limit = gas_limit
        self._confirmations = max(confirmations, 1)
        self._chain_id = chain_id
        self._receipt_timeout = receipt_timeout
        self._poll_latency = poll_latency
        self._logger = logger or logging.getLogger("raffle.ledger")

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> "Web3Ledger":
        from web3 import Web3
        from web3.middleware import ExtraDataToPOAMiddleware

        web3 = Web3(Web3.HTTPProvider(settings.rpc_url))
        if not web3.is_connected():
            raise ConnectionError(f"Cannot connect to RPC endpoint: {settings.rpc_url}")

        # PoA networks (Hardhat, Polygon) need the extra-data middleware.
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return cls(
            web3,
            settings.private_key,
            gas_limit=settings.gas_limit,
            confirmations=settings.confirmations,
            chain_id=settings.chain_id,
        )

    @property
    def address(self) -> str:
        return self._account.address

    def transfer(self, to: str, amount: int, previous_tx: Optional[str] = None) -> bool:
        from web3 import Web3

        web3 = self._web3
        if previous_tx is not None:
            receipt = self._receipt_of(previous_tx)
            if receipt is None:
                # Neither mined nor dropped for sure; sending again could pay twice.
                self._logger.warning("Earlier payout tx %s still has no receipt", previous_tx)
                raise TransferUnconfirmed(previous_tx)
            if receipt["status"] == 1:
                self._wait_for_confirmations(receipt)
                self._logger.info("Earlier payout tx %s to %s was mined", previous_tx, to)
                return True
            self._logger.warning("Earlier payout tx %s reverted; sending a new one", previous_tx)

        tx: Dict[str, Any] = {
            "from": self._account.address,
            "to": Web3.to_checksum_address(to),
            "value": int(amount),
            "nonce": web3.eth.get_transaction_count(self._account.address),
            "gas": self._gas_limit,
            "gasPrice": web3.eth.gas_price,
            "chainId": self._chain_id if self._chain_id is not None else int(web3.eth.chain_id),
        }

        signed = self._account.sign_transaction(tx)
        tx_hash = Web3.to_hex(web3.eth.send_raw_transaction(signed.raw_transaction))
        try:
            receipt = web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout, poll_latency=self._poll_latency
            )
        except Exception as exc:
            # Already sent: outcome unknown.
            self._logger.error("No receipt for payout tx %s: %s", tx_hash, exc)
            raise TransferUnconfirmed(tx_hash) from exc
        if receipt["status"] != 1:
            self._logger.warning("Payout transaction reverted: tx=%s", tx_hash)
            return False

        self._wait_for_confirmations(receipt)
        self._logger.info("Paid %s to %s in tx %s", amount, to, tx_hash)
        return True

    def _receipt_of(self, tx_hash: str) -> Optional[Any]:
        from web3.exceptions import TransactionNotFound

        try:
            return self._web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def _wait_for_confirmations(self, receipt: Any) -> None:
        target_block = receipt["blockNumber"] + self._confirmations - 1
        while self._web3.eth.block_number < target_block:
            time.sleep(self._poll_latency)
