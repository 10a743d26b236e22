"""
onchain - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point.

- Provides the argparse command tree
- Configures logging (stderr, so --json stdout stays clean)
- Loads configuration once per invocation
- Runs one command under asyncio.run

============================================================
USAGE
============================================================
onchain balance 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045
onchain tx https://etherscan.io/tx/0x...
onchain --json price eth
onchain polymarket sentiment btc --limit 5

============================================================
EXIT CODES
============================================================
0   success
1   operation failure or invalid input
2   usage error (argparse)
130 interrupted

============================================================
"""

import argparse
import asyncio
import json
import logging
import shutil
import sys
from typing import Callable, List, Optional

from onchain import __version__
from onchain.cli.commands import COMMANDS, EXIT_FAILURE, CliContext
from onchain.config.loader import AppConfig
from onchain.models import ExplorerChain
from onchain.orchestrator import Orchestrator, build_provider_registry
from onchain.providers.nansen import SCREENER_TIMEFRAMES


EXIT_INTERRUPTED = 130


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "WARNING", log_format: str = "text") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("onchain")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return number


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return number


def _add_market_filter_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--limit", "-n", type=_positive_int, default=10, help="Maximum results (default: 10)")
    parser.add_argument("--exclude", metavar="TAGS", help="Comma-separated tags to exclude")
    parser.add_argument("--include", metavar="TAGS", help="Comma-separated tags to require")
    parser.add_argument("--all", action="store_true", help="Ignore configured tag filters")


def _add_exchange_parser(subparsers, name: str, with_symbol: bool) -> None:
    exchange = subparsers.add_parser(name, help=f"{name.capitalize()} account (read-only API key)")
    exchange.set_defaults(exchange=name)
    actions = exchange.add_subparsers(dest="action", required=True)

    actions.add_parser("balance", help="Spot balances with USD values")

    history = actions.add_parser("history", help="Recent trades")
    history.add_argument("--limit", "-n", type=_positive_int, default=50, help="Trades to show (default: 50)")
    history.add_argument("--cursor", help="Pagination cursor from a previous page")
    if with_symbol:
        history.add_argument("--symbol", help="Trading pair, e.g. BTCUSDT")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="onchain",
        description="Crypto portfolio, market and prediction-market data from many providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s balance 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045
  %(prog)s history <solana-address> --limit 10
  %(prog)s tx 0x<hash> --chain base
  %(prog)s --json price sol
  %(prog)s polymarket sentiment fed
  %(prog)s portfolio 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045
  %(prog)s nansen smart-money --chain ethereum
        """
    )

    # --------------------------------------------------------
    # Global Options
    # --------------------------------------------------------
    parser.add_argument("--json", action="store_true", help="Print the result payload as JSON")
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        metavar="SECONDS",
        help="Per-provider request timeout (default: from config, else 30)",
    )

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --------------------------------------------------------
    # Wallets
    # --------------------------------------------------------
    balance = subparsers.add_parser("balance", help="Wallet token balances")
    balance.add_argument("address", help="EVM (0x...) or Solana address")
    balance.add_argument("--chain", help="Restrict to one chain (EVM wallets)")
    balance.add_argument("--min-value", type=float, default=0.0, metavar="USD", help="Hide positions below this value")
    balance.add_argument("--limit", "-n", type=_positive_int, default=50, help="Maximum tokens (default: 50)")
    balance.add_argument("--browser", action="store_true", help="Scrape a public profile page (agent-browser)")

    portfolio = subparsers.add_parser("portfolio", help="Tokens, DeFi positions and NFTs in one view")
    portfolio.add_argument("address", help="EVM (0x...) or Solana address")

    history = subparsers.add_parser("history", help="Wallet transaction history")
    history.add_argument("address", help="EVM (0x...) or Solana address")
    history.add_argument("--chain", help="Restrict to one chain (EVM wallets)")
    history.add_argument("--limit", "-n", type=_positive_int, default=20, help="Transactions (default: 20)")
    history.add_argument("--cursor", help="Pagination cursor from a previous page")

    chains = ", ".join(c.value for c in ExplorerChain)

    tx = subparsers.add_parser("tx", help="Transaction detail (hash, signature or explorer URL)")
    tx.add_argument("hash", help="Transaction hash, Solana signature, or block explorer URL")
    tx.add_argument("--chain", "-c", help=f"EVM chain; skips the chain search ({chains})")

    gas = subparsers.add_parser("gas", help="Gas price estimates")
    gas.add_argument("--chain", "-c", default="ethereum", help=f"EVM chain (default: ethereum; {chains})")

    # --------------------------------------------------------
    # Prices
    # --------------------------------------------------------
    price = subparsers.add_parser("price", help="Token price")
    price.add_argument("token", help="Symbol or CoinGecko id (btc, eth, solana, ...)")

    subparsers.add_parser("markets", help="Global crypto market overview")

    token_search = subparsers.add_parser("search", help="Find tokens by name or symbol")
    token_search.add_argument("query")
    token_search.add_argument("--limit", "-n", type=_positive_int, default=10, help="Maximum results (default: 10)")

    # --------------------------------------------------------
    # Exchanges
    # --------------------------------------------------------
    _add_exchange_parser(subparsers, "binance", with_symbol=True)
    _add_exchange_parser(subparsers, "coinbase", with_symbol=False)

    # --------------------------------------------------------
    # Prediction markets
    # --------------------------------------------------------
    polymarket = subparsers.add_parser("polymarket", help="Polymarket prediction markets")
    pm_actions = polymarket.add_subparsers(dest="action", required=True)

    _add_market_filter_options(pm_actions.add_parser("trending", help="Top markets by volume"))

    search = pm_actions.add_parser("search", help="Search markets by title")
    search.add_argument("query")
    _add_market_filter_options(search)

    view = pm_actions.add_parser("view", help="One market by id or slug")
    view.add_argument("id_or_slug")

    sentiment = pm_actions.add_parser("sentiment", help="Directional sentiment for a topic")
    sentiment.add_argument("topic", help="btc, eth, fed, election, ... or any search term")
    _add_market_filter_options(sentiment)

    tags = pm_actions.add_parser("tags", help="Market tags usable with --include and --exclude")
    tags.add_argument("--popular", action="store_true", help="Rank tags by use in the top active events")

    # --------------------------------------------------------
    # Wallet intelligence
    # --------------------------------------------------------
    nansen = subparsers.add_parser("nansen", help="Nansen wallet intelligence (nansen CLI)")
    nansen_actions = nansen.add_subparsers(dest="action", required=True)

    labels = nansen_actions.add_parser("labels", help="Labels and entity for a wallet")
    labels.add_argument("address")
    labels.add_argument("--chain", default="ethereum", help="Chain (default: ethereum)")

    smart_money = nansen_actions.add_parser("smart-money", help="Tokens held by smart-money wallets")
    smart_money.add_argument("--chain", default="solana", help="Chain (default: solana)")
    smart_money.add_argument("--limit", "-n", type=_positive_int, default=20, help="Maximum tokens (default: 20)")

    screener = nansen_actions.add_parser("screener", help="Token screener")
    screener.add_argument("--chain", default="solana", help="Chain (default: solana)")
    screener.add_argument("--limit", "-n", type=_positive_int, default=20, help="Maximum tokens (default: 20)")
    screener.add_argument("--timeframe", choices=SCREENER_TIMEFRAMES, default="24h", help="Window (default: 24h)")

    # --------------------------------------------------------
    # Config and wallet session
    # --------------------------------------------------------
    config = subparsers.add_parser("config", help="View and manage configuration")
    config_actions = config.add_subparsers(dest="action")
    config_actions.add_parser("show", help="Show configuration (default)")
    config_actions.add_parser("path", help="Show config file locations")
    config_set = config_actions.add_parser("set", help="Set a config value")
    config_set.add_argument("key", help="e.g. etherscan_api_key, timeout_seconds, polymarket.exclude_tags")
    config_set.add_argument("value")
    config_set.add_argument("--global", dest="global_", action="store_true", help="Write the global config file")

    wallet = subparsers.add_parser("wallet", help="Wallet-connect session")
    wallet_actions = wallet.add_subparsers(dest="action", required=True)
    wallet_actions.add_parser("status", help="Show the stored session")
    wallet_actions.add_parser("disconnect", help="Forget the stored session")

    subparsers.add_parser("test", help="Check every configured provider")

    return parser


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(
    args: argparse.Namespace,
    config: Optional[AppConfig] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments
        config: Preloaded configuration (tests); loaded from disk otherwise
        which: PATH lookup for tool-gated providers

    Returns:
        Exit code
    """
    config = (config or AppConfig.load()).with_timeout(args.timeout)
    for warning in config.warnings:
        logging.getLogger("onchain").warning(warning)

    registry = build_provider_registry(config, which)
    orchestrator = Orchestrator(registry, timeout=config.timeout_seconds)
    ctx = CliContext(config=config, orchestrator=orchestrator, json_output=args.json)

    try:
        return await COMMANDS[args.command](ctx, args)
    finally:
        await registry.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except ValueError as e:
        # Invalid user input surfaced by a parser (e.g. unknown chain name)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
