"""
Plain-text rendering of normalized payloads.

Every ``render_*`` function returns the lines to print; the CLI decides
where they go.
"""

from datetime import datetime, timezone
from typing import Optional

from onchain.models import (
    TOP_ENTRIES,
    BalanceReport,
    CexBalanceReport,
    CexHistoryPage,
    GasEstimate,
    HistoryPage,
    MarketList,
    MarketOverview,
    MarketTagList,
    PortfolioOverview,
    PredictionMarket,
    SmartMoneyHoldings,
    TokenPrice,
    TokenScreener,
    TokenSearchResults,
    TransactionDetail,
    WalletLabels,
)
from onchain.orchestrator.health import CheckStatus, HealthReport
from onchain.sentiment.models import SentimentVerdict
from onchain.session.manager import WalletStatus, chain_name
from onchain.utils.addresses import truncate_address, truncate_hash


SEPARATOR = "=" * 60


# ============================================================
# FORMATTERS
# ============================================================

def format_usd(value: Optional[float]) -> str:
    if value is None:
        return "-"
    if abs(value) >= 1_000_000_000:
        return f"${value / 1_000_000_000:,.2f}B"
    if abs(value) >= 1_000_000:
        return f"${value / 1_000_000:,.2f}M"
    if 0 < abs(value) < 0.01:
        return f"${value:.6f}"
    return f"${value:,.2f}"


def format_amount(value: float) -> str:
    if value == 0:
        return "0"
    if abs(value) < 0.0001:
        return f"{value:.8f}".rstrip("0")
    if abs(value) < 1:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:,.4f}".rstrip("0").rstrip(".")


def format_percent(value: Optional[float]) -> str:
    if value is None:
        return "-"
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"


def format_timestamp(epoch: float) -> str:
    if not epoch:
        return "-"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _header(title: str) -> list[str]:
    return ["", title, SEPARATOR]


def source_line(source: Optional[str], degraded: bool = False) -> str:
    if degraded:
        return f"Source: {source} (degraded: scraped from a public page, figures may be incomplete)"
    return f"Source: {source}"


# ============================================================
# WALLETS
# ============================================================

def render_balances(report: BalanceReport) -> list[str]:
    lines = _header(f"Wallet {truncate_address(report.address)} ({report.chain_type.value})")
    lines.append(f"Total value: {format_usd(report.total_value_usd)}")
    lines.append("")
    if not report.balances:
        lines.append("  No balances found")
        return lines
    for b in report.balances:
        lines.append(
            f"  {b.symbol:<10} {format_amount(b.balance):>18}  {format_usd(b.value_usd):>14}  {b.chain}"
        )
    return lines


def render_portfolio(overview: PortfolioOverview) -> list[str]:
    total = overview.total_value_usd
    lines = _header(f"Portfolio {truncate_address(overview.address)} ({overview.chain_type.value})")
    lines.append(f"Total value: {format_usd(total)}")

    tokens = overview.tokens
    lines.extend(["", "Tokens"])
    if tokens is None:
        lines.append("  unavailable")
    else:
        lines.append(f"  {len(tokens.balances)} tokens worth {format_usd(tokens.total_value_usd)}")
        for b in tokens.balances[:TOP_ENTRIES]:
            share = f"{b.value_usd / total * 100:.1f}%" if b.value_usd is not None and total > 0 else ""
            lines.append(f"    {b.symbol:<10} {format_usd(b.value_usd):>14}  {share}")

    if overview.defi is not None:
        lines.extend(["", "DeFi positions"])
        lines.append(
            f"  {len(overview.defi.positions)} positions worth {format_usd(overview.defi.total_value_usd)}"
        )
        for name, value in overview.defi.protocol_totals()[:TOP_ENTRIES]:
            lines.append(f"    {name:<20} {format_usd(value):>14}")

    if overview.nfts is not None and overview.nfts.nfts:
        estimate = overview.nfts.estimated_value_usd
        suffix = f" (est. {format_usd(estimate)})" if estimate else ""
        lines.extend(["", "NFTs", f"  {len(overview.nfts.nfts)} NFTs{suffix}"])

    for section, message in overview.errors:
        lines.append("")
        lines.append(f"Warning: {section} unavailable: {message}")
    return lines


def render_history(page: HistoryPage) -> list[str]:
    lines = _header(f"History {truncate_address(page.address)} ({page.chain_type.value})")
    if not page.transactions:
        lines.append("  No transactions found")
    for tx in page.transactions:
        tokens = ", ".join(
            f"{'+' if t.direction == 'in' else '-'}{format_amount(t.amount)} {t.symbol}" for t in tx.tokens
        )
        lines.append(
            f"  {format_timestamp(tx.timestamp)}  {tx.type:<8} {tx.status:<8} "
            f"{tx.chain:<10} {truncate_hash(tx.hash)}  {tokens}"
        )
    if page.next_cursor:
        lines.append("")
        lines.append(f"Next page: --cursor {page.next_cursor}")
    return lines


# ============================================================
# TRANSACTIONS
# ============================================================

def render_transaction(tx: TransactionDetail) -> list[str]:
    lines = _header(f"Transaction {truncate_hash(tx.hash)}")
    lines.extend([
        f"  Chain:   {tx.chain}",
        f"  Status:  {tx.status}",
        f"  Block:   {tx.block_number}",
        f"  Time:    {format_timestamp(tx.timestamp)}",
        f"  From:    {tx.from_address}",
        f"  To:      {tx.to_address or '(contract creation)'}",
        f"  Value:   {format_amount(tx.value_formatted)}",
        f"  Fee:     {format_amount(tx.fee.amount)} {tx.fee.symbol}",
    ])
    if tx.method_id:
        lines.append(f"  Method:  {tx.method_id}")
    if tx.token_transfers:
        lines.append("")
        lines.append("  Token transfers:")
        for t in tx.token_transfers:
            amount = format_amount(t.amount_formatted) if t.amount_formatted is not None else f"#{t.token_id}"
            lines.append(
                f"    {t.token_type:<7} {amount} {t.symbol or truncate_address(t.contract_address)} "
                f"{truncate_address(t.from_address) or '-'} -> {truncate_address(t.to_address) or '-'}"
            )
    if tx.internal_transactions:
        lines.append("")
        lines.append(f"  Internal transactions: {len(tx.internal_transactions)}")
    if tx.explorer_url:
        lines.append("")
        lines.append(f"  {tx.explorer_url}")
    return lines


def render_gas(gas: GasEstimate) -> list[str]:
    lines = _header(f"Gas ({gas.chain})")
    lines.extend([
        f"  Safe:     {gas.safe_gwei:g} gwei",
        f"  Standard: {gas.propose_gwei:g} gwei",
        f"  Fast:     {gas.fast_gwei:g} gwei",
    ])
    if gas.base_fee_gwei is not None:
        lines.append(f"  Base fee: {gas.base_fee_gwei:.2f} gwei")
    return lines


# ============================================================
# PRICES
# ============================================================

def render_price(token: TokenPrice) -> list[str]:
    lines = _header(f"{token.name} ({token.symbol})")
    lines.extend([
        f"  Price:      {format_usd(token.price_usd)}",
        f"  1h:         {format_percent(token.change_1h)}",
        f"  24h:        {format_percent(token.change_24h)}",
        f"  7d:         {format_percent(token.change_7d)}",
        f"  Market cap: {format_usd(token.market_cap)}"
        + (f" (#{token.market_cap_rank})" if token.market_cap_rank else ""),
        f"  Volume 24h: {format_usd(token.volume_24h)}",
    ])
    return lines


def render_market_overview(market: MarketOverview) -> list[str]:
    lines = _header("Crypto market")
    lines.extend([
        f"  Market cap:    {format_usd(market.total_market_cap)} ({format_percent(market.market_cap_change_24h)})",
        f"  Volume 24h:    {format_usd(market.total_volume_24h)}",
        f"  BTC dominance: {market.btc_dominance:.1f}%",
    ])
    if market.eth_dominance is not None:
        lines.append(f"  ETH dominance: {market.eth_dominance:.1f}%")
    return lines


def render_token_search(results: TokenSearchResults) -> list[str]:
    lines = _header(f"Tokens matching \"{results.query}\"")
    if not results.tokens:
        lines.append("  No tokens found")
    for t in results.tokens:
        rank = f"#{t.market_cap_rank}" if t.market_cap_rank else "-"
        lines.append(f"  {rank:>6}  {t.symbol:<10} {t.name:<30} {t.id}")
    return lines


# ============================================================
# EXCHANGES
# ============================================================

def render_cex_balances(report: CexBalanceReport) -> list[str]:
    lines = _header(f"{report.exchange.capitalize()} balances")
    lines.append(f"Total value: {format_usd(report.total_value_usd)}")
    lines.append("")
    if not report.balances:
        lines.append("  No balances found")
    for b in report.balances:
        locked = f" ({format_amount(b.locked)} locked)" if b.locked else ""
        lines.append(f"  {b.asset:<8} {format_amount(b.total):>18}{locked}  {format_usd(b.value_usd):>14}")
    return lines


def render_cex_history(page: CexHistoryPage) -> list[str]:
    lines = _header(f"{page.exchange.capitalize()} trades")
    if not page.trades:
        lines.append("  No trades found")
    for t in page.trades:
        lines.append(
            f"  {format_timestamp(t.timestamp)}  {t.side.upper():<4} {t.symbol:<12} "
            f"{format_amount(t.quantity)} @ {format_usd(t.price)}  = {format_usd(t.total)}"
        )
    if page.next_cursor:
        lines.append("")
        lines.append(f"Next page: --cursor {page.next_cursor}")
    return lines


# ============================================================
# PREDICTION MARKETS
# ============================================================

def _outcomes(market: PredictionMarket) -> str:
    return "  ".join(f"{o.name} {o.price * 100:.0f}%" for o in market.outcomes)


def render_market_list(markets: MarketList) -> list[str]:
    lines = _header("Prediction markets")
    if not markets.markets:
        lines.append("  No markets found")
    for i, m in enumerate(markets.markets, 1):
        lines.append(f"  {i:2d}. {m.question}")
        lines.append(f"      {_outcomes(m)}  |  volume {format_usd(m.volume)}")
    return lines


def render_market(market: PredictionMarket) -> list[str]:
    lines = _header(market.question)
    lines.append(f"  Outcomes:  {_outcomes(market)}")
    lines.append(f"  Volume:    {format_usd(market.volume)}")
    lines.append(f"  Liquidity: {format_usd(market.liquidity)}")
    if market.end_date:
        lines.append(f"  Ends:      {market.end_date}")
    if market.slug:
        lines.append(f"  Slug:      {market.slug}")
    if market.tags:
        lines.append(f"  Tags:      {', '.join(market.tags)}")
    return lines


def render_market_tags(tag_list: MarketTagList) -> list[str]:
    lines = _header("Popular Polymarket tags" if tag_list.popular else "Polymarket tags")
    if not tag_list.tags:
        lines.append("  No tags found")
    for tag in tag_list.tags:
        count = f"{tag.event_count:>4} events  " if tag.event_count is not None else ""
        lines.append(f"  {count}{tag.slug:<30} {tag.label}")
    return lines


def render_sentiment(verdict: SentimentVerdict) -> list[str]:
    score = f"+{verdict.score}" if verdict.score > 0 else str(verdict.score)
    lines = _header(f"Polymarket sentiment: {verdict.topic.upper()}")
    lines.append(f"  Overall: {verdict.overall_sentiment.value.upper()}  (score: {score})")
    lines.append(f"  Confidence: {verdict.confidence}%  |  Signals: {len(verdict.signals)}")
    lines.append("")
    lines.append(f"  {verdict.summary}")
    lines.append("")
    for s in verdict.signals:
        lines.append(
            f"  [{s.sentiment.value:<7}] {s.question}  "
            f"({s.probability * 100:.0f}% yes, {format_usd(s.volume)})"
        )
    return lines


# ============================================================
# WALLET SESSION
# ============================================================

def render_wallet_status(status: WalletStatus) -> list[str]:
    if not status.connected or status.session is None:
        return ["No wallet connected"]
    session = status.session
    lines = _header("Wallet status")
    lines.append("  Connected")
    lines.append(f"  Address: {session.address}")
    if session.wallet_name:
        lines.append(f"  Wallet:  {session.wallet_name}")
    if session.chain_type == "eip155" and session.chain_id:
        lines.append(f"  Chain:   {chain_name(session.chain_id)} ({session.chain_id})")
    elif session.chain_type == "solana":
        lines.append(f"  Network: Solana {session.cluster or 'mainnet-beta'}")
    lines.append(f"  Expires: {status.expires_in}")
    return lines


# ============================================================
# WALLET INTELLIGENCE
# ============================================================

def render_wallet_labels(labels: WalletLabels) -> list[str]:
    lines = _header(f"Nansen labels {truncate_address(labels.address)} ({labels.chain})")
    if labels.entity:
        lines.append(f"  Entity: {labels.entity}")
    if not labels.labels:
        lines.append("  No labels found")
    for category, entries in labels.by_category().items():
        lines.append("")
        lines.append(f"  {category.capitalize()}")
        for label in entries:
            marker = " [smart money]" if label.is_smart_money else ""
            lines.append(f"    {label.label}{marker}")
    return lines


def render_smart_money(holdings: SmartMoneyHoldings) -> list[str]:
    lines = _header(f"Smart-money holdings ({holdings.chain})")
    if not holdings.holdings:
        lines.append("  No holdings found")
    for h in holdings.holdings:
        lines.append(
            f"  {h.symbol:<10} {format_usd(h.value_usd):>14}  24h {format_percent(h.change_24h_percent):>9}  "
            f"{h.holders_count} holders  {h.share_of_holdings_percent:.2f}% of holdings"
        )
    return lines


def render_screener(screener: TokenScreener) -> list[str]:
    lines = _header(f"Token screener ({screener.chain}, {screener.timeframe})")
    if not screener.tokens:
        lines.append("  No tokens found")
    for t in screener.tokens:
        lines.append(
            f"  {t.symbol:<10} {format_usd(t.price_usd):>12} {format_percent(t.price_change_percent):>9}  "
            f"vol {format_usd(t.volume)}  netflow {format_usd(t.netflow)}"
        )
    return lines


# ============================================================
# PROVIDER CHECKS
# ============================================================

_CHECK_MARKERS = {CheckStatus.OK: "ok  ", CheckStatus.SKIP: "skip", CheckStatus.FAIL: "FAIL"}


def render_health(report: HealthReport) -> list[str]:
    lines = _header("Provider checks")
    for r in report.results:
        duration = f" ({r.duration_ms}ms)" if r.duration_ms is not None else ""
        lines.append(f"  [{_CHECK_MARKERS[r.status]}] {r.provider:<14} {r.message}{duration}")
    lines.append("")
    summary = report.to_dict()["summary"]
    lines.append(f"Summary: {summary['passed']} passed, {summary['failed']} failed, {summary['skipped']} skipped")
    return lines
