"""
Etherscan Provider - EVM transaction detail and gas oracle.

Uses Etherscan API V2 (unified multichain): a single endpoint selected per
chain by the ``chainid`` parameter.

Supported chains:
- Ethereum, Polygon, BSC, Arbitrum, Base, Optimism, Avalanche, Fantom
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from onchain.config.capabilities import ProviderId
from onchain.exceptions import ChainNotSupportedError, FetchError, OnchainError
from onchain.models import (
    ExplorerChain,
    GasEstimate,
    InternalTransaction,
    TokenTransfer,
    TransactionDetail,
    TransactionFee,
)
from onchain.providers.base import BaseProvider
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    explorer_url: str
    native_symbol: str
    decimals: int = 18


class EtherscanProvider(BaseProvider):
    """Block explorer API for every supported EVM chain."""

    provider_id = ProviderId.ETHERSCAN
    display_name = "Etherscan"

    V2_API_URL = "https://api.etherscan.io/v2/api"

    CHAIN_CONFIG = {
        ExplorerChain.ETHEREUM: ChainConfig(1, "https://etherscan.io", "ETH"),
        ExplorerChain.POLYGON: ChainConfig(137, "https://polygonscan.com", "POL"),
        ExplorerChain.BSC: ChainConfig(56, "https://bscscan.com", "BNB"),
        ExplorerChain.ARBITRUM: ChainConfig(42161, "https://arbiscan.io", "ETH"),
        ExplorerChain.BASE: ChainConfig(8453, "https://basescan.org", "ETH"),
        ExplorerChain.OPTIMISM: ChainConfig(10, "https://optimistic.etherscan.io", "ETH"),
        ExplorerChain.AVALANCHE: ChainConfig(43114, "https://snowtrace.io", "AVAX"),
        ExplorerChain.FANTOM: ChainConfig(250, "https://ftmscan.com", "FTM"),
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout, session)
        self._api_key = api_key

    def _chain_config(self, chain: str) -> tuple[ExplorerChain, ChainConfig]:
        try:
            explorer_chain = ExplorerChain.parse(chain)
        except ValueError as e:
            raise ChainNotSupportedError(
                str(e),
                provider=self.name,
                chain=chain,
                supported_chains=[c.value for c in self.CHAIN_CONFIG],
            ) from None
        return explorer_chain, self.CHAIN_CONFIG[explorer_chain]

    async def _call(self, config: ChainConfig, **params: str) -> Any:
        """One V2 API call; returns the ``result`` field or raises."""
        query = {**params, "chainid": str(config.chain_id), "apikey": self._api_key or ""}
        data = self._expect(await self._request_json("GET", self.V2_API_URL, params=query), dict, "response")

        if data.get("error"):
            error = data["error"]
            raise FetchError(
                f"Etherscan error: {error.get('message', error) if isinstance(error, dict) else error}",
                provider=self.name,
            )
        return data

    # ─────────────────────────────────────────────────────────────
    # Transaction detail
    # ─────────────────────────────────────────────────────────────

    async def get_transaction(
        self,
        tx_hash: str,
        chain: Optional[str] = None,
    ) -> OperationResult[TransactionDetail]:
        if not self._api_key:
            return self._not_configured("Transaction lookup")
        return await self._guard("transaction", self._fetch_transaction(tx_hash, chain or "ethereum"))

    async def _fetch_transaction(self, tx_hash: str, chain: str) -> TransactionDetail:
        explorer_chain, config = self._chain_config(chain)

        tx_data = await self._call(config, module="proxy", action="eth_getTransactionByHash", txhash=tx_hash)
        tx = tx_data.get("result")
        if isinstance(tx, str):
            raise FetchError(f"Etherscan error: {tx}", provider=self.name, chain=explorer_chain.value)
        if not tx:
            raise FetchError("Transaction not found", provider=self.name, chain=explorer_chain.value)

        receipt_data = await self._call(config, module="proxy", action="eth_getTransactionReceipt", txhash=tx_hash)
        receipt = receipt_data.get("result")
        if not isinstance(receipt, dict):
            receipt = None

        timestamp = 0
        if tx.get("blockNumber"):
            block_data = await self._call(
                config,
                module="proxy",
                action="eth_getBlockByNumber",
                tag=tx["blockNumber"],
                boolean="false",
            )
            block = block_data.get("result")
            if isinstance(block, dict) and block.get("timestamp"):
                timestamp = int(block["timestamp"], 16)

        value = int(tx.get("value") or "0x0", 16)
        gas_price = int(tx.get("gasPrice") or "0x0", 16)
        gas_used = int(receipt["gasUsed"], 16) if receipt and receipt.get("gasUsed") else None
        gas_limit = int(tx["gas"], 16) if tx.get("gas") else None
        fee_wei = gas_used * gas_price if gas_used and gas_price else 0

        tx_input = tx.get("input") or ""
        method_id = tx_input[:10] if len(tx_input) >= 10 else None

        return TransactionDetail(
            hash=tx_hash,
            chain=explorer_chain.value,
            block_number=int(tx["blockNumber"], 16) if tx.get("blockNumber") else 0,
            timestamp=timestamp,
            status=classify_receipt(receipt),
            from_address=tx["from"],
            to_address=tx.get("to"),
            value=str(value),
            value_formatted=value / 10 ** config.decimals,
            fee=TransactionFee(amount=fee_wei / 10 ** config.decimals, symbol=config.native_symbol),
            gas_used=gas_used,
            gas_limit=gas_limit,
            gas_price=str(gas_price),
            method_id=method_id,
            token_transfers=tuple(await self._token_transfers(config, tx_hash)),
            internal_transactions=tuple(await self._internal_transactions(config, tx_hash)),
            explorer_url=f"{config.explorer_url}/tx/{tx_hash}",
        )

    async def _token_transfers(self, config: ChainConfig, tx_hash: str) -> list[TokenTransfer]:
        """ERC20 and ERC721 transfers; empty when the lookup fails."""
        transfers: list[TokenTransfer] = []
        try:
            erc20 = await self._call(config, module="account", action="tokentx", txhash=tx_hash)
            erc721 = await self._call(config, module="account", action="tokennfttx", txhash=tx_hash)
        except OnchainError as e:
            logger.info(f"[{self.name}] token transfers unavailable: {e.message}")
            return transfers

        for item in _result_list(erc20):
            decimals = int(item.get("tokenDecimal") or 0) or 18
            transfers.append(TokenTransfer(
                token_type="ERC20",
                contract_address=item["contractAddress"],
                from_address=item["from"],
                to_address=item["to"],
                amount=item["value"],
                amount_formatted=int(item["value"]) / 10 ** decimals,
                symbol=item.get("tokenSymbol"),
                decimals=decimals,
            ))

        for item in _result_list(erc721):
            transfers.append(TokenTransfer(
                token_type="ERC721",
                contract_address=item["contractAddress"],
                from_address=item["from"],
                to_address=item["to"],
                symbol=item.get("tokenSymbol"),
                token_id=item.get("tokenID"),
            ))

        return transfers

    async def _internal_transactions(self, config: ChainConfig, tx_hash: str) -> list[InternalTransaction]:
        try:
            data = await self._call(config, module="account", action="txlistinternal", txhash=tx_hash)
        except OnchainError as e:
            logger.info(f"[{self.name}] internal transactions unavailable: {e.message}")
            return []

        return [
            InternalTransaction(
                from_address=item["from"],
                to_address=item["to"],
                value=item["value"],
                value_formatted=int(item["value"]) / 10 ** config.decimals,
                type=item.get("type") or "call",
                gas_used=int(item["gasUsed"]) if item.get("gasUsed") else None,
                is_error=item.get("isError") == "1",
            )
            for item in _result_list(data)
        ]

    # ─────────────────────────────────────────────────────────────
    # Gas oracle
    # ─────────────────────────────────────────────────────────────

    async def get_gas_estimate(self, chain: str = "ethereum") -> OperationResult[GasEstimate]:
        if not self._api_key:
            return self._not_configured("Gas estimates")
        return await self._guard("gas", self._fetch_gas(chain))

    async def _fetch_gas(self, chain: str) -> GasEstimate:
        explorer_chain, config = self._chain_config(chain)
        data = await self._call(config, module="gastracker", action="gasoracle")

        result = data.get("result")
        if data.get("status") != "1" or not isinstance(result, dict):
            raise FetchError(
                data.get("message") or "Failed to fetch gas estimate",
                provider=self.name,
                chain=explorer_chain.value,
            )

        return GasEstimate(
            chain=explorer_chain.value,
            safe_gwei=float(result["SafeGasPrice"]),
            propose_gwei=float(result["ProposeGasPrice"]),
            fast_gwei=float(result["FastGasPrice"]),
            base_fee_gwei=float(result["suggestBaseFee"]) if result.get("suggestBaseFee") else None,
            gas_used_ratio=result.get("gasUsedRatio"),
        )


def classify_receipt(receipt: Optional[dict[str, Any]]) -> str:
    """
    Transaction status from its receipt.

    Receipts from before the Byzantium fork carry no ``status`` field; a
    receipt with a block number is then a mined, successful transaction.
    """
    if not receipt:
        return "pending"
    if receipt.get("status"):
        return "success" if receipt["status"] == "0x1" else "failed"
    if receipt.get("blockNumber"):
        return "success"
    return "pending"


def _result_list(data: Any) -> list[dict[str, Any]]:
    result = data.get("result") if isinstance(data, dict) else None
    return result if isinstance(result, list) else []
