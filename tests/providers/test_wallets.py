"""
Wallet Provider Tests.

============================================================
PURPOSE
============================================================
Balance and history normalization for portfolio providers.

TEST CATEGORIES:
- Zerion: positions, transactions, cursors
- DeBank: token list, chain family checks, DeFi positions, NFTs
- Helius: NFTs
- Nansen: CLI output parsing, labels, smart money, screener
- Tool runner: missing tools, timeouts, cancellation
- Browser: shared deadline across steps

============================================================
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from onchain.exceptions import FetchError, NormalizationError, ToolNotAvailableError
from onchain.models import ChainType
from onchain.providers import BrowserProvider, DeBankProvider, HeliusProvider, NansenProvider, ZerionProvider
from onchain.providers.tooling import ToolRunner
from onchain.results import ErrorKind


ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


async def _never_finishes():
    await asyncio.sleep(60)


def _position(symbol, quantity, value, chain_id="ethereum"):
    return {"attributes": {
        "quantity": {"float": quantity, "int": str(int(quantity * 10 ** 18)), "decimals": 18},
        "value": value,
        "price": (value / quantity) if value else None,
        "fungible_info": {
            "symbol": symbol,
            "name": symbol.title(),
            "implementations": [{"chain_id": chain_id, "address": None}],
        },
    }}


# ============================================================
# ZERION TESTS
# ============================================================

class TestZerionProvider:
    """Tests for ZerionProvider."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        """Test no key returns NotConfigured."""
        result = await ZerionProvider().get_balances(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_balances_sorted_with_unpriced_last(self):
        """Test positions are sorted by value and totals add up."""
        provider = ZerionProvider("zk")
        response = {"data": [
            _position("SPAM", 1000.0, None),
            _position("ETH", 2.0, 6000.0),
            _position("USDC", 500.0, 500.0, chain_id="base"),
        ]}

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=response)) as request:
            result = await provider.get_balances(ADDRESS, ChainType.EVM, ["base"])

        report = result.payload
        assert result.source == "zerion"
        assert [b.symbol for b in report.balances] == ["ETH", "USDC", "SPAM"]
        assert report.balances[1].chain == "base"
        assert report.total_value_usd == 6500.0
        assert request.call_args.kwargs["params"]["filter[chain_ids]"] == "base"
        assert request.call_args.kwargs["headers"]["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_history_cursor(self):
        """Test the next cursor is read from links.next."""
        provider = ZerionProvider("zk")
        response = {
            "data": [{
                "id": "tx1",
                "attributes": {
                    "hash": "0xhash",
                    "mined_at": "2024-05-01T12:00:00Z",
                    "operation_type": "trade",
                    "status": "confirmed",
                    "transfers": [
                        {"fungible_info": {"symbol": "ETH"}, "quantity": {"float": 1.0},
                         "direction": "out", "value": 3000.0},
                        {"fungible_info": {"symbol": "USDC"}, "quantity": {"float": 2990.0},
                         "direction": "in", "value": 2990.0},
                    ],
                },
                "relationships": {"chain": {"data": {"id": "arbitrum"}}},
            }],
            "links": {"next": "https://api.zerion.io/v1/wallets/x/transactions/?page%5Bafter%5D=abc123"},
        }

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=response)):
            result = await provider.get_history(ADDRESS, ChainType.EVM, limit=1)

        page = result.payload
        tx = page.transactions[0]
        assert page.next_cursor == "abc123"
        assert tx.type == "swap"
        assert tx.status == "success"
        assert tx.chain == "arb"
        assert tx.value_usd == 3000.0

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        """Test a missing field becomes a provider failure."""
        provider = ZerionProvider("zk")

        with patch.object(provider, "_request_json", new=AsyncMock(return_value={"unexpected": True})):
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "Malformed Zerion response" in result.error.message

    @pytest.mark.asyncio
    async def test_null_relationships_default_chain(self):
        """Test a null relationships object falls back to the default chain."""
        provider = ZerionProvider("zk")
        response = {"data": [{
            "id": "tx1",
            "attributes": {"hash": "0xhash", "operation_type": "send", "status": "confirmed"},
            "relationships": None,
        }]}

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=response)):
            result = await provider.get_history(ADDRESS, ChainType.EVM)

        assert result.ok
        assert result.payload.transactions[0].chain == "eth"
        assert result.payload.next_cursor is None

    @pytest.mark.asyncio
    async def test_list_body_is_provider_failure(self):
        """Test a list where an object is expected fails cleanly."""
        provider = ZerionProvider("zk")

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=["unexpected"])):
            result = await provider.get_history(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "expected dict" in result.error.message

    @pytest.mark.asyncio
    async def test_attribute_error_in_payload(self):
        """Test a string where an object is expected does not escape."""
        provider = ZerionProvider("zk")
        response = {"data": [{"id": "tx1", "attributes": {"hash": "0x1"}, "relationships": {"chain": "eth"}}]}

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=response)):
            result = await provider.get_history(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "AttributeError" in result.error.message


# ============================================================
# DEBANK / HELIUS TESTS
# ============================================================

class TestChainFamilies:
    """Tests for single-family providers."""

    @pytest.mark.asyncio
    async def test_debank_rejects_solana(self):
        """Test DeBank fails on a Solana address without a request."""
        provider = DeBankProvider("dk")

        with patch.object(provider, "_request_json", new=AsyncMock()) as request:
            result = await provider.get_balances("So1ana", ChainType.SOLANA)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        request.assert_not_called()

    @pytest.mark.asyncio
    async def test_helius_rejects_evm(self):
        """Test Helius fails on an EVM address."""
        result = await HeliusProvider("hk").get_balances(ADDRESS, ChainType.EVM)

        assert result.error.message == "Helius only supports Solana addresses"

    @pytest.mark.asyncio
    async def test_debank_token_list(self):
        """Test zero amounts are skipped and values computed from price."""
        provider = DeBankProvider("dk")
        tokens = [
            {"symbol": "ETH", "name": "Ether", "chain": "eth", "amount": 1.5, "price": 3000.0, "id": "eth"},
            {"symbol": "DUST", "name": "Dust", "chain": "eth", "amount": 0, "price": 1.0, "id": "0xd"},
            {"symbol": "NOPRICE", "name": "No Price", "chain": "arb", "amount": 10, "id": "0xn"},
        ]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=tokens)) as request:
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        report = result.payload
        assert [b.symbol for b in report.balances] == ["ETH", "NOPRICE"]
        assert report.total_value_usd == 4500.0
        assert request.call_args.kwargs["headers"] == {"AccessKey": "dk"}


# ============================================================
# NANSEN / TOOL RUNNER TESTS
# ============================================================

class TestNansenProvider:
    """Tests for NansenProvider."""

    @pytest.mark.asyncio
    async def test_balances_from_cli_output(self):
        """Test CLI JSON output is normalized."""
        provider = NansenProvider(which=lambda name: "/usr/local/bin/nansen")
        output = {"success": True, "data": {"data": [
            {"token_symbol": "ETH", "token_name": "Ether", "token_amount": 2, "value_usd": 6000, "price_usd": 3000},
            {"token_symbol": "PEPE", "token_amount": 1000000, "value_usd": 10},
        ]}}

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=output)) as run:
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        assert result.source == "nansen"
        assert result.payload.total_value_usd == 6010.0
        assert result.payload.balances[1].name == "PEPE"
        assert run.call_args.args[0][:2] == ["profiler", "balance"]
        assert "ethereum" in run.call_args.args[0]

    @pytest.mark.asyncio
    async def test_cli_error(self):
        """Test an unsuccessful CLI response is a provider failure."""
        provider = NansenProvider(which=lambda name: "/usr/local/bin/nansen")
        output = {"success": False, "error": "Not logged in"}

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=output)):
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        assert result.error.message == "Not logged in"

    @pytest.mark.asyncio
    async def test_tool_missing(self):
        """Test a missing tool raises inside the runner."""
        runner = ToolRunner("nansen", "nansen", which=lambda name: None)

        assert runner.is_available() is False
        with pytest.raises(ToolNotAvailableError):
            await runner.run(["profiler"], timeout=1)

    @pytest.mark.asyncio
    async def test_unparseable_output(self):
        """Test non-JSON tool output raises a normalization error."""
        runner = ToolRunner("nansen", "nansen", which=lambda name: "/usr/local/bin/nansen")

        with patch.object(runner, "run", new=AsyncMock(return_value="Please log in first\n")):
            with pytest.raises(NormalizationError) as exc_info:
                await runner.run_json(["profiler"], timeout=1)

        assert exc_info.value.raw_data == "Please log in first\n"
        assert exc_info.value.provider == "nansen"

    def test_error_detail_for_debug_log(self):
        """Test to_dict keeps only the populated detail fields."""
        error = NormalizationError("bad output", provider="nansen", raw_data="oops", field_name="CLI output")

        assert error.to_dict() == {
            "error_type": "NormalizationError",
            "message": "bad output",
            "provider": "nansen",
            "field_name": "CLI output",
            "raw_data": "oops",
        }
        assert ToolNotAvailableError("missing").to_dict() == {"error_type": "ToolNotAvailableError", "message": "missing"}

    @pytest.mark.asyncio
    async def test_cancelled_run_kills_child(self):
        """Test cancelling the caller kills the running tool."""
        runner = ToolRunner("nansen", "nansen", which=lambda name: "/usr/local/bin/nansen")
        process = MagicMock()
        process.returncode = None
        process.pid = 4242
        process.communicate = AsyncMock(side_effect=_never_finishes)
        process.wait = AsyncMock(return_value=-9)

        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)):
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(runner.run(["profiler"], timeout=30), timeout=0.05)

        process.kill.assert_called_once()
        process.wait.assert_awaited()

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self):
        """Test the runner's own timeout kills the tool and raises FetchError."""
        runner = ToolRunner("nansen", "nansen", which=lambda name: "/usr/local/bin/nansen")
        process = MagicMock()
        process.returncode = None
        process.communicate = AsyncMock(side_effect=_never_finishes)
        process.wait = AsyncMock(return_value=-9)

        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)):
            with pytest.raises(FetchError) as exc_info:
                await runner.run(["profiler"], timeout=0.05)

        assert "timed out" in exc_info.value.message
        process.kill.assert_called_once()


# ============================================================
# BROWSER TESTS
# ============================================================

class TestBrowserProvider:
    """Tests for BrowserProvider."""

    @pytest.mark.asyncio
    async def test_steps_share_one_deadline(self):
        """Test eval gets only the time left after open and the render wait."""
        provider = BrowserProvider(timeout=1.0, which=lambda name: "/usr/local/bin/agent-browser", render_wait=0.1)
        extracted = {"totalValueUsd": 10, "balances": [{"symbol": "ETH", "amount": 1, "valueUsd": 10}]}

        async def slow_open(args, timeout):
            await asyncio.sleep(0.2)
            return ""

        with patch.object(provider._runner, "run", new=AsyncMock(side_effect=slow_open)) as run, \
                patch.object(provider._runner, "run_json", new=AsyncMock(return_value=extracted)) as run_json:
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        assert result.degraded
        assert result.payload.total_value_usd == 10
        assert run.call_args_list[0].kwargs["timeout"] <= 1.0
        assert run_json.call_args.kwargs["timeout"] < 0.8
        assert run.call_args_list[-1].args[0][-1] == "close"

    @pytest.mark.asyncio
    async def test_budget_spent_before_eval(self):
        """Test a slow open exhausts the budget and still closes the session."""
        provider = BrowserProvider(timeout=0.1, which=lambda name: "/usr/local/bin/agent-browser", render_wait=5.0)

        async def slow_open(args, timeout):
            if "open" in args:
                await asyncio.sleep(0.15)
            return ""

        with patch.object(provider._runner, "run", new=AsyncMock(side_effect=slow_open)) as run, \
                patch.object(provider._runner, "run_json", new=AsyncMock()) as run_json:
            result = await provider.get_balances(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "before render" in result.error.message
        run_json.assert_not_called()
        assert run.call_args_list[-1].args[0][-1] == "close"


# ============================================================
# DEFI / NFT TESTS
# ============================================================

class TestDefiAndNfts:
    """Tests for DeFi positions and NFT listings."""

    @pytest.mark.asyncio
    async def test_debank_defi_positions(self):
        """Test protocol items become typed positions with their assets."""
        provider = DeBankProvider("dk")
        protocols = [
            {"name": "Aave V3", "chain": "eth", "portfolio_item_list": [{
                "stats": {"net_usd_value": 1500.0},
                "detail_types": ["lending"],
                "detail": {
                    "supply_token_list": [{"symbol": "ETH", "amount": 1.0, "price": 3000.0}],
                    "health_rate": 1.8,
                },
            }]},
            {"name": "Lido", "chain": "eth", "portfolio_item_list": [{
                "stats": {"net_usd_value": 6000.0},
                "detail_types": ["common", "staked"],
                "detail": {"token_list": [{"symbol": "stETH", "amount": 2.0}]},
            }]},
        ]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=protocols)) as request:
            result = await provider.get_defi_positions(ADDRESS, ChainType.EVM)

        report = result.payload
        assert report.total_value_usd == 7500.0
        assert [p.type for p in report.positions] == ["lending", "staking"]
        assert report.positions[0].health_factor == 1.8
        assert report.positions[0].assets[0].value_usd == 3000.0
        assert report.positions[1].assets[0].value_usd is None
        assert report.protocol_totals() == [("Lido", 6000.0), ("Aave V3", 1500.0)]
        assert request.call_args.args[1].endswith("/user/all_complex_protocol_list")

    @pytest.mark.asyncio
    async def test_debank_defi_not_configured(self):
        """Test no key returns NotConfigured naming the feature."""
        result = await DeBankProvider(None).get_defi_positions(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.NOT_CONFIGURED
        assert "DEBANK_API_KEY" in result.error.message

    @pytest.mark.asyncio
    async def test_debank_nfts_floor_estimate(self):
        """Test floor prices are summed and names fall back to the token id."""
        provider = DeBankProvider("dk")
        items = [
            {"id": "n1", "inner_id": 7, "name": "Punk #7", "chain": "eth", "contract_id": "0xp",
             "collection": {"name": "Punks", "floor_price": 50000.0}},
            {"id": "n2", "inner_id": 9, "chain": "eth", "contract_id": "0xq", "collection": {}},
        ]

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=items)):
            result = await provider.get_nfts(ADDRESS, ChainType.EVM)

        report = result.payload
        assert report.estimated_value_usd == 50000.0
        assert [n.name for n in report.nfts] == ["Punk #7", "#9"]
        assert report.nfts[1].collection == "Unknown"

    @pytest.mark.asyncio
    async def test_helius_nfts(self):
        """Test the collection comes from the grouping entry."""
        provider = HeliusProvider("hk")
        response = {"nfts": [{
            "id": "AbCdEfGh12345",
            "content": {"metadata": {}, "links": {"image": "https://img"}},
            "grouping": [{"group_key": "collection", "group_value": "Coll1",
                          "collection_metadata": {"name": "Mad Lads"}}],
        }]}

        with patch.object(provider, "_request_json", new=AsyncMock(return_value=response)) as request:
            result = await provider.get_nfts("So1anaAddress", ChainType.SOLANA)

        nft = result.payload.nfts[0]
        assert nft.collection == "Mad Lads"
        assert nft.name == "#AbCdEfGh"
        assert nft.image_url == "https://img"
        assert result.payload.estimated_value_usd is None
        assert request.call_args.kwargs["params"] == {"api-key": "hk"}

    @pytest.mark.asyncio
    async def test_helius_nfts_reject_evm(self):
        """Test Helius NFTs fail on an EVM address."""
        result = await HeliusProvider("hk").get_nfts(ADDRESS, ChainType.EVM)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE


# ============================================================
# NANSEN WALLET INTELLIGENCE TESTS
# ============================================================

class TestNansenIntel:
    """Tests for Nansen labels, smart-money holdings and the screener."""

    @staticmethod
    def _provider():
        return NansenProvider(which=lambda name: "/usr/local/bin/nansen")

    @pytest.mark.asyncio
    async def test_labels_dedup_and_entity(self):
        """Test duplicate labels collapse and the entity loses its emoji."""
        provider = self._provider()
        output = {"success": True, "data": [
            {"label": "Smart Trader", "category": "behavioral", "fullname": "\U0001f3e6 Vitalik Buterin"},
            {"label": "Smart Trader", "category": "behavioral"},
            {"label": "ENS Holder", "category": "others", "definition": "Holds an ENS name"},
        ]}

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=output)) as run:
            result = await provider.get_wallet_labels(ADDRESS, chain="eth")

        labels = result.payload
        assert labels.entity == "Vitalik Buterin"
        assert labels.chain == "ethereum"
        assert [label.label for label in labels.labels] == ["Smart Trader", "ENS Holder"]
        assert labels.labels[0].is_smart_money is True
        assert labels.labels[1].is_smart_money is False
        assert run.call_args.args[0][:2] == ["profiler", "labels"]

    @pytest.mark.asyncio
    async def test_smart_money_percentages(self):
        """Test fractional changes are reported as percentages."""
        provider = self._provider()
        output = {"success": True, "data": {"data": [{
            "token_address": "So111", "token_symbol": "SOL", "value_usd": 1e6,
            "balance_24h_percent_change": 0.05, "holders_count": 12,
            "share_of_holdings_percent": 0.2, "token_age_days": 900, "token_sectors": ["L1"],
        }]}}

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=output)):
            result = await provider.get_smart_money_holdings(chain="solana", limit=5)

        holding = result.payload.holdings[0]
        assert holding.change_24h_percent == pytest.approx(5.0)
        assert holding.share_of_holdings_percent == pytest.approx(20.0)
        assert holding.sectors == ("L1",)

    @pytest.mark.asyncio
    async def test_screener(self):
        """Test screener rows are normalized and the timeframe passed through."""
        provider = self._provider()
        output = {"success": True, "data": {"data": [{
            "token_address": "0xt", "token_symbol": "TKN", "price_usd": 1.5,
            "price_change": -0.1, "volume": 2000, "netflow": -50,
        }]}}

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=output)) as run:
            result = await provider.get_token_screener(chain="base", timeframe="1h")

        token = result.payload.tokens[0]
        assert token.price_change_percent == pytest.approx(-10.0)
        assert result.payload.timeframe == "1h"
        assert run.call_args.args[0][-2:] == ["--timeframe", "1h"]

    @pytest.mark.asyncio
    async def test_unknown_chain(self):
        """Test an unsupported chain fails without running the CLI."""
        provider = self._provider()

        with patch.object(provider._runner, "run_json", new=AsyncMock()) as run:
            result = await provider.get_smart_money_holdings(chain="tron")

        assert "not supported by Nansen" in result.error.message
        run.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_object_output(self):
        """Test a JSON list from the CLI is a provider failure."""
        provider = self._provider()

        with patch.object(provider._runner, "run_json", new=AsyncMock(return_value=[1, 2])):
            result = await provider.get_wallet_labels(ADDRESS)

        assert result.error.kind is ErrorKind.PROVIDER_FAILURE
        assert "expected dict for CLI output" in result.error.message
