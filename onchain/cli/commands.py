"""
CLI command handlers.

Each handler takes the invocation context and the parsed arguments and
returns a process exit code. Operation failures are printed as one line on
stderr citing the error kind.
"""

import dataclasses
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TextIO

from onchain.config.capabilities import PROVIDER_REQUIREMENTS
from onchain.config.credentials import CREDENTIAL_FIELDS
from onchain.config.loader import AppConfig, get_config_path, set_config_value
from onchain.cli import render
from onchain.exceptions import ConfigurationError
from onchain.models import ChainType, MarketFilter
from onchain.orchestrator import MultiChainResolver, Orchestrator, PortfolioBuilder, run_provider_checks
from onchain.results import OperationResult
from onchain.sentiment import SentimentEngine
from onchain.session import SessionStore, WalletSessionManager
from onchain.utils.addresses import detect_chain_type, parse_tx_input
from onchain.utils.masking import mask_value


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass
class CliContext:
    """Everything a command needs for one invocation."""
    config: AppConfig
    orchestrator: Orchestrator
    json_output: bool = False
    session_store: SessionStore = field(default_factory=SessionStore)
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    stderr: TextIO = field(default_factory=lambda: sys.stderr)

    def print(self, line: str = "") -> None:
        print(line, file=self.stdout)

    def fail(self, message: str) -> int:
        print(f"Error: {message}", file=self.stderr)
        return EXIT_FAILURE

    def print_json(self, data: Any) -> None:
        print(json.dumps(data, indent=2, default=str), file=self.stdout)

    def emit(
        self,
        result: OperationResult[Any],
        renderer: Callable[[Any], list[str]],
    ) -> int:
        """Print a result: the payload as JSON, or rendered text."""
        if not result.ok:
            return self.fail(result.error.describe())

        payload = result.payload
        if self.json_output:
            self.print_json(payload.to_dict() if hasattr(payload, "to_dict") else payload)
            return EXIT_OK

        for line in renderer(payload):
            self.print(line)
        self.print()
        self.print(render.source_line(result.source, result.degraded))
        return EXIT_OK


# ============================================================
# WALLET DATA
# ============================================================

def _chain_type_or_fail(ctx: CliContext, address: str) -> Optional[ChainType]:
    chain_type = detect_chain_type(address)
    if chain_type is None:
        ctx.fail(f"Invalid address: {address}. Expected an EVM (0x...) or Solana address.")
    return chain_type


async def cmd_balance(ctx: CliContext, args) -> int:
    chain_type = _chain_type_or_fail(ctx, args.address)
    if chain_type is None:
        return EXIT_FAILURE

    result = await ctx.orchestrator.run(
        f"balances.{chain_type.value}",
        {"address": args.address, "chains": [args.chain] if args.chain else None},
        only=["browser"] if args.browser else None,
    )
    if result.ok:
        result = dataclasses.replace(result, payload=result.payload.filtered(args.min_value, args.limit))
    return ctx.emit(result, render.render_balances)


async def cmd_portfolio(ctx: CliContext, args) -> int:
    chain_type = _chain_type_or_fail(ctx, args.address)
    if chain_type is None:
        return EXIT_FAILURE

    result = await PortfolioBuilder(ctx.orchestrator).build(args.address, chain_type)
    return ctx.emit(result, render.render_portfolio)


async def cmd_history(ctx: CliContext, args) -> int:
    chain_type = _chain_type_or_fail(ctx, args.address)
    if chain_type is None:
        return EXIT_FAILURE

    result = await ctx.orchestrator.run(
        f"history.{chain_type.value}",
        {"address": args.address, "limit": args.limit, "cursor": args.cursor, "chain": args.chain},
    )
    return ctx.emit(result, render.render_history)


async def cmd_tx(ctx: CliContext, args) -> int:
    parsed = parse_tx_input(args.hash)
    if parsed.chain_type is None:
        return ctx.fail(
            f"Invalid transaction reference: {args.hash}. "
            "Expected an EVM hash, a Solana signature or a block explorer URL."
        )

    if parsed.chain_type is ChainType.SOLANA:
        result = await ctx.orchestrator.run("tx.solana", {"hash": parsed.hash})
    else:
        resolver = MultiChainResolver(ctx.orchestrator)
        result = await resolver.find_transaction(parsed.hash, chain=args.chain or parsed.chain)
    return ctx.emit(result, render.render_transaction)


async def cmd_gas(ctx: CliContext, args) -> int:
    result = await ctx.orchestrator.run("gas.estimate", {"chain": args.chain})
    return ctx.emit(result, render.render_gas)


# ============================================================
# PRICES
# ============================================================

async def cmd_price(ctx: CliContext, args) -> int:
    result = await ctx.orchestrator.run("price.token", {"token": args.token})
    return ctx.emit(result, render.render_price)


async def cmd_markets(ctx: CliContext, args) -> int:
    result = await ctx.orchestrator.run("market.overview")
    return ctx.emit(result, render.render_market_overview)


async def cmd_search(ctx: CliContext, args) -> int:
    result = await ctx.orchestrator.run("token.search", {"query": args.query, "limit": args.limit})
    return ctx.emit(result, render.render_token_search)


# ============================================================
# EXCHANGES
# ============================================================

async def cmd_exchange(ctx: CliContext, args) -> int:
    if args.action == "balance":
        result = await ctx.orchestrator.run(f"cex.{args.exchange}.balances")
        return ctx.emit(result, render.render_cex_balances)

    result = await ctx.orchestrator.run(
        f"cex.{args.exchange}.history",
        {"limit": args.limit, "cursor": args.cursor, "symbol": getattr(args, "symbol", None)},
    )
    return ctx.emit(result, render.render_cex_history)


# ============================================================
# POLYMARKET
# ============================================================

def market_filter_from_args(config: AppConfig, args) -> Optional[MarketFilter]:
    """
    ``--all`` disables tag filtering, ``--include``/``--exclude`` replace
    the configured lists, otherwise the provider default applies.
    """
    if getattr(args, "all", False):
        return MarketFilter()
    include = _split_tags(getattr(args, "include", None))
    exclude = _split_tags(getattr(args, "exclude", None))
    if not include and not exclude:
        return None
    return MarketFilter(
        include_tags=include or config.polymarket_include_tags,
        exclude_tags=exclude or config.polymarket_exclude_tags,
    )


def _split_tags(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(t.strip().lower() for t in value.split(",") if t.strip())


async def cmd_polymarket(ctx: CliContext, args) -> int:
    market_filter = market_filter_from_args(ctx.config, args)

    if args.action == "trending":
        result = await ctx.orchestrator.run(
            "markets.trending", {"limit": args.limit, "market_filter": market_filter}
        )
        return ctx.emit(result, render.render_market_list)

    if args.action == "search":
        result = await ctx.orchestrator.run(
            "markets.search", {"query": args.query, "limit": args.limit, "market_filter": market_filter}
        )
        return ctx.emit(result, render.render_market_list)

    if args.action == "view":
        result = await ctx.orchestrator.run("markets.detail", {"id_or_slug": args.id_or_slug})
        return ctx.emit(result, render.render_market)

    if args.action == "tags":
        result = await ctx.orchestrator.run("markets.tags", {"popular": args.popular})
        return ctx.emit(result, render.render_market_tags)

    engine = SentimentEngine(ctx.orchestrator)
    result = await engine.analyze(args.topic, limit=args.limit, market_filter=market_filter)
    return ctx.emit(result, render.render_sentiment)


# ============================================================
# WALLET INTELLIGENCE
# ============================================================

async def cmd_nansen(ctx: CliContext, args) -> int:
    if args.action == "labels":
        result = await ctx.orchestrator.run("nansen.labels", {"address": args.address, "chain": args.chain})
        return ctx.emit(result, render.render_wallet_labels)

    if args.action == "smart-money":
        result = await ctx.orchestrator.run("nansen.smart_money", {"chain": args.chain, "limit": args.limit})
        return ctx.emit(result, render.render_smart_money)

    result = await ctx.orchestrator.run(
        "nansen.screener", {"chain": args.chain, "limit": args.limit, "timeframe": args.timeframe}
    )
    return ctx.emit(result, render.render_screener)


# ============================================================
# PROVIDER CHECKS
# ============================================================

async def cmd_test(ctx: CliContext, args) -> int:
    report = await run_provider_checks(ctx.orchestrator)
    if ctx.json_output:
        ctx.print_json(report.to_dict())
    else:
        for line in render.render_health(report):
            ctx.print(line)
    return EXIT_FAILURE if report.failed else EXIT_OK


# ============================================================
# CONFIG
# ============================================================

async def cmd_config(ctx: CliContext, args) -> int:
    if args.action == "path":
        if ctx.json_output:
            ctx.print_json({
                "global": str(get_config_path(global_=True)),
                "local": str(get_config_path(global_=False)),
            })
        else:
            ctx.print(f"Global: {get_config_path(global_=True)}")
            ctx.print(f"Local:  {get_config_path(global_=False)}")
        return EXIT_OK

    if args.action == "set":
        try:
            path = set_config_value(args.key, args.value, get_config_path(global_=args.global_))
        except ConfigurationError as e:
            return ctx.fail(e.message)
        ctx.print(f"Saved {args.key} to {path}")
        return EXIT_OK

    return _show_config(ctx)


def _show_config(ctx: CliContext) -> int:
    config = ctx.config
    creds = config.credentials
    capabilities = ctx.orchestrator.registry.capabilities

    if ctx.json_output:
        ctx.print_json({
            "timeout_seconds": config.timeout_seconds,
            "polymarket": {
                "exclude_tags": list(config.polymarket_exclude_tags),
                "include_tags": list(config.polymarket_include_tags),
            },
            "providers": capabilities.to_dict(),
            "warnings": list(config.warnings),
        })
        return EXIT_OK

    ctx.print("Config files:")
    ctx.print(f"  Global: {get_config_path(global_=True)}")
    ctx.print(f"  Local:  {get_config_path(global_=False)}")
    ctx.print()
    ctx.print("Credentials:")
    for cred in CREDENTIAL_FIELDS:
        value = creds.get(cred.name)
        shown = f"{mask_value(value)} ({creds.origin(cred.name)})" if value else "not set"
        ctx.print(f"  {cred.env_var:<26} {shown}")
    ctx.print()
    ctx.print("Providers:")
    for provider, requirement in PROVIDER_REQUIREMENTS.items():
        status = "usable" if capabilities.is_capable(provider) else f"needs {requirement.describe_missing()}"
        ctx.print(f"  {provider.value:<14} {status}")
    ctx.print()
    ctx.print(f"Timeout: {config.timeout_seconds:g}s")
    if config.polymarket_exclude_tags:
        ctx.print(f"Polymarket excluded tags: {', '.join(config.polymarket_exclude_tags)}")
    if config.polymarket_include_tags:
        ctx.print(f"Polymarket included tags: {', '.join(config.polymarket_include_tags)}")
    for warning in config.warnings:
        ctx.print(f"Warning: {warning}")
    return EXIT_OK


# ============================================================
# WALLET SESSION
# ============================================================

async def cmd_wallet(ctx: CliContext, args) -> int:
    manager = WalletSessionManager(ctx.session_store)

    if args.action == "disconnect":
        removed = manager.disconnect()
        if ctx.json_output:
            ctx.print_json({"disconnected": removed})
        else:
            ctx.print("Wallet disconnected" if removed else "No wallet connected")
        return EXIT_OK

    status = manager.status()
    if ctx.json_output:
        ctx.print_json(status.to_dict())
    else:
        for line in render.render_wallet_status(status):
            ctx.print(line)
    return EXIT_OK


COMMANDS = {
    "balance": cmd_balance,
    "portfolio": cmd_portfolio,
    "history": cmd_history,
    "tx": cmd_tx,
    "gas": cmd_gas,
    "price": cmd_price,
    "markets": cmd_markets,
    "search": cmd_search,
    "binance": cmd_exchange,
    "coinbase": cmd_exchange,
    "polymarket": cmd_polymarket,
    "nansen": cmd_nansen,
    "test": cmd_test,
    "config": cmd_config,
    "wallet": cmd_wallet,
}
