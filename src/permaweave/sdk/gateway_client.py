"""
Ledger client over the HTTP gateway API.

Endpoints used:
    GET  /tx/{id}                 transaction envelope
    GET  /tx/{id}/data            transaction data (base64url text)
    GET  /info                    network height and current block
    GET  /tx_anchor               anchor for new transactions
    GET  /price/{bytes}[/{target}] fee for a transaction of that size
    POST /tx                      submit a signed transaction
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from permaweave.core.encoding import b64url_decode
from permaweave.core.exceptions import GatewayError, NotFoundError, ValidationError
from permaweave.core.ledger import NetworkInfo, PostResponse, TransactionOptions
from permaweave.core.transaction import Transaction
from permaweave.core.wallet import Wallet
from permaweave.sdk.http_client import HTTPClient

logger = logging.getLogger(__name__)


class GatewayClient:
    """LedgerClient backed by a gateway's HTTP API.

    Args:
        base_url: Gateway URL (default from config)
        http_client: Preconfigured HTTPClient; overrides the other arguments
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        self.http = http_client or HTTPClient(
            base_url=base_url, timeout=timeout, max_retries=max_retries
        )

    def get_transaction(self, tx_id: str) -> Transaction:
        try:
            payload = self.http.get(f"tx/{tx_id}")
        except NotFoundError as e:
            raise NotFoundError(f"Transaction {tx_id} not found", transaction_id=tx_id) from e

        # Pending transactions answer 202 with a plain-text body
        if not isinstance(payload, dict) or not payload.get("id"):
            raise NotFoundError(f"Transaction {tx_id} is not mined yet", transaction_id=tx_id)

        try:
            tx = Transaction.from_dict(payload)
        except ValidationError as e:
            raise GatewayError(f"Gateway returned a malformed transaction {tx_id}: {e}") from e

        data_size = int(payload.get("data_size") or 0)
        if data_size and not tx.data:
            tx.data = self.get_transaction_data(tx_id)
        return tx

    def get_transaction_data(self, tx_id: str) -> bytes:
        try:
            text = self.http.get_text(f"tx/{tx_id}/data")
        except NotFoundError as e:
            raise NotFoundError(f"Data of transaction {tx_id} not found", transaction_id=tx_id) from e
        try:
            return b64url_decode(text.strip())
        except ValueError as e:
            raise GatewayError(f"Gateway returned malformed data for {tx_id}: {e}") from e

    def get_network_info(self) -> NetworkInfo:
        payload = self.http.get("info")
        try:
            return NetworkInfo(height=int(payload["height"]), current=str(payload["current"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Gateway returned malformed network info: {e}") from e

    def get_anchor(self) -> str:
        return self.http.get_text("tx_anchor").strip()

    def get_price(self, byte_size: int, target: str = "") -> str:
        endpoint = f"price/{byte_size}/{target}" if target else f"price/{byte_size}"
        return self.http.get_text(endpoint).strip()

    def create_transaction(self, options: TransactionOptions, wallet: Optional[Wallet]) -> Transaction:
        data = options.data.encode("utf-8") if isinstance(options.data, str) else bytes(options.data)
        tx = Transaction(
            last_tx=self.get_anchor(),
            owner=wallet.owner if wallet is not None else "",
            target=options.target,
            quantity=options.quantity,
            data=data,
            reward=self.get_price(len(data), options.target),
        )
        return tx

    def sign(self, tx: Transaction, wallet: Wallet) -> None:
        wallet.sign_transaction(tx)

    def post_transaction(self, tx: Transaction) -> PostResponse:
        """Submit ``tx``. Error statuses are returned, not raised."""
        response = self.http.request("POST", "tx", json=tx.to_dict())
        return PostResponse(status=response.status_code, body=response.text)

    def get_address(self, wallet: Wallet) -> str:
        return wallet.address

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
