"""
CLI Tests.

============================================================
PURPOSE
============================================================
Argument parsing, command dispatch, output and exit codes.

TEST CATEGORIES:
- Parser: subcommands and options
- Commands: JSON vs text output, error lines, routing, repeatable JSON
- Provider checks: exit codes and summary
- Entry point: exit codes

============================================================
"""

import argparse
import io
import json
import logging
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from onchain.cli.commands import (
    CliContext,
    cmd_balance,
    cmd_config,
    cmd_nansen,
    cmd_polymarket,
    cmd_portfolio,
    cmd_price,
    cmd_search,
    cmd_test,
    cmd_tx,
    cmd_wallet,
    market_filter_from_args,
)
from onchain.cli.main import async_main, create_parser, main, setup_logging
from onchain.config import AppConfig
from onchain.config.capabilities import CapabilityFlags, ProviderId
from onchain.models import BalanceReport, MarketFilter, MarketTag, MarketTagList, TokenBalance, TokenPrice
from onchain.orchestrator import Orchestrator, ProviderRegistry, build_provider_registry
from onchain.results import OperationResult
from onchain.session import SessionStore


EVM_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
EVM_HASH = "0x" + "ab" * 32


def _no_tools(name):
    return None


def _ctx(orchestrator=None, json_output=False, **kwargs):
    return CliContext(
        config=kwargs.pop("config", AppConfig()),
        orchestrator=orchestrator or MagicMock(),
        json_output=json_output,
        **kwargs,
    )


def _eth_price():
    return TokenPrice(id="ethereum", symbol="ETH", name="Ethereum", price_usd=3000.0, change_24h=2.5)


class FakeZerion:
    """Canned Zerion balances."""

    provider_id = "zerion"

    def __init__(self, fail=False):
        self.fail = fail

    async def get_balances(self, address, chain_type, chains=None):
        if self.fail:
            return OperationResult.provider_failure("zerion", "HTTP 401")
        return OperationResult.success(BalanceReport(
            address=address,
            chain_type=chain_type,
            total_value_usd=3000.0,
            balances=(TokenBalance(symbol="ETH", name="Ether", chain="ethereum", balance=1.0, value_usd=3000.0),),
        ), "zerion")


def _registry(flags, *providers):
    registry = ProviderRegistry(CapabilityFlags({ProviderId(k): v for k, v in flags.items()}))
    for provider in providers:
        registry.register(provider)
    return registry


# ============================================================
# PARSER TESTS
# ============================================================

class TestParser:
    """Tests for create_parser."""

    def test_balance_options(self):
        """Test balance flags."""
        args = create_parser().parse_args(
            ["--json", "balance", EVM_ADDRESS, "--chain", "base", "--min-value", "5", "--browser"]
        )

        assert args.command == "balance"
        assert args.json is True
        assert args.chain == "base"
        assert args.min_value == 5.0
        assert args.limit == 50
        assert args.browser is True

    def test_exchange_subcommands(self):
        """Test exchange commands carry the exchange name."""
        args = create_parser().parse_args(["binance", "history", "--symbol", "ethusdt", "-n", "5"])

        assert args.command == "binance"
        assert args.exchange == "binance"
        assert args.action == "history"
        assert args.symbol == "ethusdt"
        assert args.limit == 5

    def test_polymarket_filters(self):
        """Test tag filter options on market listings."""
        args = create_parser().parse_args(["polymarket", "sentiment", "fed", "--exclude", "sports", "--all"])

        assert args.topic == "fed"
        assert args.exclude == "sports"
        assert args.all is True

    def test_config_set_global(self):
        """Test config set destination flag."""
        args = create_parser().parse_args(["config", "set", "timeout_seconds", "10", "--global"])

        assert (args.key, args.value, args.global_) == ("timeout_seconds", "10", True)

    def test_timeout_must_be_positive(self):
        """Test invalid timeouts are usage errors."""
        with pytest.raises(SystemExit) as exc:
            create_parser().parse_args(["--timeout", "0", "markets"])

        assert exc.value.code == 2

    def test_new_commands(self):
        """Test portfolio, search, tags, nansen and test parse."""
        parser = create_parser()

        assert parser.parse_args(["portfolio", EVM_ADDRESS]).address == EVM_ADDRESS
        assert parser.parse_args(["search", "pepe", "-n", "3"]).limit == 3
        assert parser.parse_args(["polymarket", "tags", "--popular"]).popular is True
        assert parser.parse_args(["test"]).command == "test"

        screener = parser.parse_args(["nansen", "screener", "--timeframe", "1h"])
        assert (screener.action, screener.chain, screener.limit, screener.timeframe) == ("screener", "solana", 20, "1h")
        assert parser.parse_args(["nansen", "labels", EVM_ADDRESS]).chain == "ethereum"

    def test_unknown_screener_timeframe(self):
        """Test the timeframe is limited to what the screener accepts."""
        with pytest.raises(SystemExit) as exc:
            create_parser().parse_args(["nansen", "screener", "--timeframe", "2h"])

        assert exc.value.code == 2

    def test_command_required(self):
        """Test a bare invocation is a usage error."""
        with pytest.raises(SystemExit) as exc:
            create_parser().parse_args([])

        assert exc.value.code == 2


# ============================================================
# COMMAND TESTS
# ============================================================

class TestCommands:
    """Tests for command handlers."""

    @pytest.mark.asyncio
    async def test_price_json(self, capsys):
        """Test --json prints only the payload."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.success(_eth_price(), "coingecko"))

        code = await cmd_price(_ctx(orchestrator, json_output=True), argparse.Namespace(token="eth"))

        out = json.loads(capsys.readouterr().out)
        assert code == 0
        assert out["symbol"] == "ETH"
        assert "source" not in out
        orchestrator.run.assert_awaited_once_with("price.token", {"token": "eth"})

    @pytest.mark.asyncio
    async def test_price_text_cites_source(self, capsys):
        """Test text output ends with the source line."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.success(_eth_price(), "coinmarketcap"))

        await cmd_price(_ctx(orchestrator), argparse.Namespace(token="eth"))

        out = capsys.readouterr().out
        assert "Ethereum (ETH)" in out
        assert "+2.50%" in out
        assert out.strip().endswith("Source: coinmarketcap")

    @pytest.mark.asyncio
    async def test_failure_prints_error_kind(self, capsys):
        """Test a failed result is one stderr line and exit code 1."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.provider_failure("coingecko", "HTTP 500"))

        code = await cmd_price(_ctx(orchestrator), argparse.Namespace(token="eth"))

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert captured.err.strip() == "Error: [provider failure] HTTP 500"

    @pytest.mark.asyncio
    async def test_tx_url_pins_chain(self):
        """Test an explorer URL makes exactly one lookup on its chain."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.provider_failure("etherscan", "nope"))

        await cmd_tx(_ctx(orchestrator), argparse.Namespace(hash=f"https://basescan.org/tx/{EVM_HASH}", chain=None))

        orchestrator.run.assert_awaited_once_with("tx.evm", {"hash": EVM_HASH, "chain": "base"})

    @pytest.mark.asyncio
    async def test_tx_solana_signature(self):
        """Test a Solana signature goes to the Solana lookup."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.provider_failure("solscan", "nope"))
        signature = "5" + "K" * 86

        await cmd_tx(_ctx(orchestrator), argparse.Namespace(hash=signature, chain=None))

        orchestrator.run.assert_awaited_once_with("tx.solana", {"hash": signature})

    @pytest.mark.asyncio
    async def test_tx_invalid_reference(self, capsys):
        """Test garbage input fails before any lookup."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock()

        code = await cmd_tx(_ctx(orchestrator), argparse.Namespace(hash="hello", chain=None))

        assert code == 1
        assert "Invalid transaction reference" in capsys.readouterr().err
        orchestrator.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_config_show_json(self, tmp_path, capsys):
        """Test config show reports provider usability without secrets."""
        config = AppConfig.load(
            env={"ZERION_API_KEY": "zk_live_secret"},
            global_path=tmp_path / "global.yaml",
            local_path=tmp_path / "local.yaml",
        )
        registry = build_provider_registry(config, which=_no_tools)
        ctx = _ctx(Orchestrator(registry), json_output=True, config=config)

        await cmd_config(ctx, argparse.Namespace(action="show"))
        await registry.close()

        out = capsys.readouterr().out
        data = json.loads(out)
        assert data["providers"]["zerion"] is True
        assert data["providers"]["debank"] is False
        assert "zk_live_secret" not in out

    @pytest.mark.asyncio
    async def test_wallet_status_disconnected(self, tmp_path, capsys):
        """Test wallet status with no session file."""
        ctx = _ctx(session_store=SessionStore(tmp_path / "session.json"))

        code = await cmd_wallet(ctx, argparse.Namespace(action="status"))

        assert code == 0
        assert "No wallet connected" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_portfolio_invalid_address(self, capsys):
        """Test portfolio rejects an unknown address format."""
        code = await cmd_portfolio(_ctx(), argparse.Namespace(address="nope"))

        assert code == 1
        assert "Invalid address" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_portfolio_json(self, capsys):
        """Test the portfolio overview is printed as JSON."""
        orchestrator = Orchestrator(_registry({"zerion": True}, FakeZerion()))

        code = await cmd_portfolio(_ctx(orchestrator, json_output=True), argparse.Namespace(address=EVM_ADDRESS))

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["tokens"]["count"] == 1
        assert data["defi"] is None
        assert "defi" in data["errors"]

    @pytest.mark.asyncio
    async def test_search_routes_to_token_search(self):
        """Test search passes the query and limit."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.provider_failure("coingecko", "nope"))

        await cmd_search(_ctx(orchestrator), argparse.Namespace(query="pepe", limit=3))

        orchestrator.run.assert_awaited_once_with("token.search", {"query": "pepe", "limit": 3})

    @pytest.mark.asyncio
    async def test_polymarket_popular_tags(self, capsys):
        """Test popular tags render with their event counts."""
        tags = MarketTagList(tags=(MarketTag(id="2", label="Crypto", slug="crypto", event_count=7),), popular=True)
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.success(tags, "polymarket"))

        code = await cmd_polymarket(
            _ctx(orchestrator), argparse.Namespace(action="tags", popular=True, all=False, include=None, exclude=None)
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "Popular Polymarket tags" in out
        assert "7 events" in out
        orchestrator.run.assert_awaited_once_with("markets.tags", {"popular": True})

    @pytest.mark.asyncio
    async def test_nansen_routing(self):
        """Test each nansen action maps to its operation."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=OperationResult.provider_failure("nansen", "nope"))
        ctx = _ctx(orchestrator)

        await cmd_nansen(ctx, argparse.Namespace(action="labels", address=EVM_ADDRESS, chain="base"))
        await cmd_nansen(ctx, argparse.Namespace(action="smart-money", chain="solana", limit=5))
        await cmd_nansen(ctx, argparse.Namespace(action="screener", chain="solana", limit=5, timeframe="7d"))

        assert [c.args[0] for c in orchestrator.run.await_args_list] == [
            "nansen.labels", "nansen.smart_money", "nansen.screener",
        ]
        assert orchestrator.run.await_args_list[2].args[1]["timeframe"] == "7d"

    @pytest.mark.asyncio
    async def test_provider_checks_exit_code(self, capsys):
        """Test a failed check exits 1 and JSON carries the summary."""
        orchestrator = Orchestrator(_registry({"zerion": True}, FakeZerion(fail=True)))

        code = await cmd_test(_ctx(orchestrator, json_output=True), argparse.Namespace())

        data = json.loads(capsys.readouterr().out)
        assert code == 1
        assert data["summary"] == {"passed": 0, "failed": 1, "skipped": 0}

    @pytest.mark.asyncio
    async def test_provider_checks_text(self, capsys):
        """Test skipped providers still exit 0."""
        orchestrator = Orchestrator(_registry({"zerion": False}, FakeZerion()))

        code = await cmd_test(_ctx(orchestrator), argparse.Namespace())

        out = capsys.readouterr().out
        assert code == 0
        assert "[skip] zerion" in out
        assert "0 passed, 0 failed, 1 skipped" in out

    @pytest.mark.asyncio
    async def test_json_output_repeatable(self):
        """Test two runs with the same providers print identical JSON."""
        orchestrator = Orchestrator(_registry({"zerion": True}, FakeZerion()))
        args = argparse.Namespace(address=EVM_ADDRESS, chain=None, browser=False, min_value=0.0, limit=50)
        outputs = []

        for _ in range(2):
            stdout = io.StringIO()
            code = await cmd_balance(_ctx(orchestrator, json_output=True, stdout=stdout), args)
            assert code == 0
            outputs.append(stdout.getvalue())

        assert outputs[0] == outputs[1]
        assert json.loads(outputs[0])["balances"][0]["symbol"] == "ETH"

    def test_market_filter_from_args(self):
        """Test --all, --include/--exclude and the configured default."""
        config = AppConfig(polymarket_exclude_tags=("sports",))

        assert market_filter_from_args(config, argparse.Namespace(all=True)) == MarketFilter()
        assert market_filter_from_args(config, argparse.Namespace(all=False, include=None, exclude=None)) is None
        assert market_filter_from_args(
            config, argparse.Namespace(all=False, include="Crypto, politics", exclude=None)
        ) == MarketFilter(include_tags=("crypto", "politics"), exclude_tags=("sports",))


# ============================================================
# ENTRY POINT TESTS
# ============================================================

class TestEntryPoint:
    """Tests for async_main and main."""

    @pytest.mark.asyncio
    async def test_not_configured_balance(self, capsys):
        """Test balances without credentials fail with the missing env vars."""
        args = create_parser().parse_args(["balance", EVM_ADDRESS])

        code = await async_main(args, config=AppConfig(), which=_no_tools)

        err = capsys.readouterr().err
        assert code == 1
        assert "[not configured]" in err
        assert "ZERION_API_KEY" in err
        assert "DEBANK_API_KEY" in err

    @pytest.mark.asyncio
    async def test_invalid_address(self, capsys):
        """Test an invalid address exits 1 without lookups."""
        args = create_parser().parse_args(["history", "nope"])

        code = await async_main(args, config=AppConfig(), which=_no_tools)

        assert code == 1
        assert "Invalid address" in capsys.readouterr().err

    def test_keyboard_interrupt(self):
        """Test Ctrl-C exits 130."""
        def interrupt(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("onchain.cli.main.setup_logging"), \
                patch("onchain.cli.main.asyncio.run", side_effect=interrupt):
            assert main(["markets"]) == 130

    def test_setup_logging_uses_stderr(self):
        """Test log output never goes to stdout."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        try:
            setup_logging("DEBUG", "json")

            assert len(root.handlers) == 1
            assert root.handlers[0].stream is sys.stderr
            assert root.level == logging.DEBUG
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
