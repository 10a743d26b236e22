"""
Solscan Provider - Solana transaction detail (Pro API v2.0).
"""

import logging
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import FetchError
from onchain.models import TokenTransfer, TransactionDetail, TransactionFee
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


SOLSCAN_API_BASE = "https://pro-api.solscan.io/v2.0"
SOLSCAN_EXPLORER_URL = "https://solscan.io"
LAMPORTS_PER_SOL = 1e9


class SolscanProvider(BaseProvider):

    provider_id = ProviderId.SOLSCAN
    display_name = "Solscan"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _error_message(self, status: int, body: str) -> str:
        if status == 401:
            return "Invalid Solscan API key"
        return super()._error_message(status, body)

    async def get_transaction(
        self,
        tx_hash: str,
        chain: Optional[str] = None,
    ) -> OperationResult[TransactionDetail]:
        if not self._api_key:
            return self._not_configured("Solana transaction lookup")
        return await self._guard("transaction", self._fetch_transaction(tx_hash))

    async def _fetch_transaction(self, signature: str) -> TransactionDetail:
        data = await self._request_json(
            "GET",
            f"{SOLSCAN_API_BASE}/transaction/detail",
            params={"tx": signature},
            headers={"token": self._api_key or ""},
        )
        data = self._expect(data, dict, "transaction response")

        if not data.get("success") or not data.get("data"):
            raise FetchError("Transaction not found", provider=self.name, chain="solana")

        tx = data["data"]
        signers = tx.get("signer") or []
        sender = signers[0] if signers else ""
        fee_lamports = int(tx.get("fee") or 0)

        receiver, value_sol = _native_transfer(tx.get("sol_bal_change") or [], sender, fee_lamports)

        return TransactionDetail(
            hash=signature,
            chain="solana",
            block_number=int(tx.get("block_id") or 0),
            timestamp=int(tx.get("block_time") or 0),
            status="success" if tx.get("status") == "Success" else "failed",
            from_address=sender,
            to_address=receiver,
            value=str(round(value_sol * LAMPORTS_PER_SOL)),
            value_formatted=value_sol,
            fee=TransactionFee(amount=fee_lamports / LAMPORTS_PER_SOL, symbol="SOL"),
            token_transfers=tuple(_token_transfers(tx.get("token_bal_change") or [])),
            explorer_url=f"{SOLSCAN_EXPLORER_URL}/tx/{signature}",
        )


def _native_transfer(
    changes: list[dict[str, Any]],
    sender: str,
    fee_lamports: int,
) -> tuple[Optional[str], float]:
    """Main receiver and SOL amount from the balance-change list."""
    receiver = next((c for c in changes if c["change_amount"] > 0 and c["address"] != sender), None)
    if receiver:
        return receiver["address"], receiver["change_amount"] / LAMPORTS_PER_SOL

    sent = next((c for c in changes if c["change_amount"] < 0 and c["address"] == sender), None)
    if sent:
        return None, abs(sent["change_amount"] + fee_lamports) / LAMPORTS_PER_SOL
    return None, 0.0


def _token_transfers(changes: list[dict[str, Any]]) -> list[TokenTransfer]:
    transfers = []
    for change in changes:
        amount = float(change["change_amount"])
        if amount == 0:
            continue
        decimals = change.get("token_decimals") or 9
        transfers.append(TokenTransfer(
            token_type="SPL",
            contract_address=change["token_address"],
            from_address=change["address"] if amount < 0 else "",
            to_address=change["address"] if amount > 0 else "",
            amount=str(int(abs(amount))),
            amount_formatted=abs(amount) / 10 ** decimals,
            symbol=change.get("token_symbol"),
            decimals=change.get("token_decimals"),
        ))
    return transfers
