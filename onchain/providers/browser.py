"""
Browser Provider - degraded wallet balances scraped from public profile pages.

Drives the `agent-browser` CLI: open the profile page, wait for it to
render, evaluate an extraction script, close the session. Every call uses
a fresh randomly named session and always attempts to close it.
"""

import asyncio
import logging
import secrets
import shutil
from typing import Any, Callable, Optional

from onchain.config.capabilities import ProviderId
from onchain.exceptions import FetchError, OnchainError
from onchain.models import BalanceReport, ChainType, TokenBalance, sort_by_value
from onchain.providers.base import BaseProvider
from onchain.providers.tooling import ToolRunner
from onchain.results import OperationResult


logger = logging.getLogger(__name__)


RENDER_WAIT_SECONDS = 5.0
CLOSE_TIMEOUT_SECONDS = 5.0
MAX_ROWS = 100

DEBANK_PROFILE_URL = "https://debank.com/profile/{address}"
SOLSCAN_ACCOUNT_URL = "https://solscan.io/account/{address}"

# Evaluated in the page; agent-browser prints the returned object as JSON.
DEBANK_EXTRACT_SCRIPT = """
(function() {
  const text = document.body.innerText;
  const header = "Token\\nPrice\\nAmount\\nUSD Value";
  const totalMatch = text.match(/\\$[\\d,]+(?:\\.\\d+)?/);
  const totalValueUsd = totalMatch ? parseFloat(totalMatch[0].replace(/[$,]/g, "")) : 0;
  const balances = [];
  const start = text.indexOf(header);
  if (start > -1) {
    const lines = text.substring(start + header.length).split("\\n").filter(l => l.trim());
    let i = 0;
    while (i + 3 < lines.length && balances.length < %(max_rows)d) {
      const symbol = lines[i];
      if (/Protocol|Show all|Unfold/.test(symbol)) break;
      if (lines[i + 1].startsWith("$") && lines[i + 3].startsWith("$")) {
        balances.push({
          symbol: symbol.replace(/\\s*\\([^)]*\\)/g, "").trim(),
          amount: parseFloat(lines[i + 2].replace(/,/g, "")) || 0,
          valueUsd: parseFloat(lines[i + 3].replace(/[$,]/g, "")) || 0
        });
        i += 4;
      } else {
        i++;
      }
    }
  }
  return {totalValueUsd, balances};
})()
""".strip() % {"max_rows": MAX_ROWS}

SOLSCAN_EXTRACT_SCRIPT = """
(function() {
  const text = document.body.innerText;
  const solMatch = text.match(/(\\d+\\.?\\d*)\\s*SOL/);
  const solBalance = solMatch ? parseFloat(solMatch[1]) : 0;
  const totalMatch = text.match(/\\$[\\d,]+(?:\\.\\d+)?/);
  const totalValueUsd = totalMatch ? parseFloat(totalMatch[0].replace(/[$,]/g, "")) : 0;
  const balances = [];
  if (solBalance > 0) balances.push({symbol: "SOL", amount: solBalance, valueUsd: null});
  const start = text.indexOf("Token");
  if (start > -1) {
    const lines = text.substring(start).split("\\n").filter(l => l.trim());
    for (let i = 0; i < lines.length && balances.length < %(max_rows)d; i++) {
      const line = lines[i];
      if (!/^[A-Z][A-Z0-9]{1,9}$/.test(line) || line === "SOL") continue;
      let amount = 0;
      let valueUsd = null;
      for (let j = 1; j <= 3 && i + j < lines.length; j++) {
        const next = lines[i + j];
        if (/^[\\d,]+\\.?\\d*$/.test(next.replace(/,/g, ""))) amount = parseFloat(next.replace(/,/g, "")) || 0;
        if (next.startsWith("$")) valueUsd = parseFloat(next.replace(/[$,]/g, "")) || null;
      }
      if (amount > 0 && !balances.some(b => b.symbol === line)) balances.push({symbol: line, amount, valueUsd});
    }
  }
  return {totalValueUsd, balances};
})()
""".strip() % {"max_rows": MAX_ROWS}


def new_session_name() -> str:
    return f"onchain-{secrets.token_hex(4)}"


class BrowserProvider(BaseProvider):
    """Last-resort balance scraper; results are always marked degraded."""

    provider_id = ProviderId.BROWSER
    display_name = "Browser scraping"

    def __init__(
        self,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
        which: Callable[[str], Optional[str]] = shutil.which,
        render_wait: float = RENDER_WAIT_SECONDS,
    ) -> None:
        super().__init__(timeout)
        self._runner = ToolRunner("agent-browser", self.name, which)
        self._render_wait = render_wait

    def is_available(self) -> bool:
        return self._runner.is_available()

    async def get_balances(
        self,
        address: str,
        chain_type: ChainType,
        chains: Optional[list[str]] = None,
    ) -> OperationResult[BalanceReport]:
        return await self._guard("balances", self._scrape(address, chain_type), degraded=True)

    async def _scrape(self, address: str, chain_type: ChainType) -> BalanceReport:
        if chain_type is ChainType.EVM:
            url = DEBANK_PROFILE_URL.format(address=address)
            script = DEBANK_EXTRACT_SCRIPT
            chain = "evm"
        else:
            url = SOLSCAN_ACCOUNT_URL.format(address=address)
            script = SOLSCAN_EXTRACT_SCRIPT
            chain = "solana"

        session = new_session_name()
        deadline = asyncio.get_running_loop().time() + self._timeout
        try:
            await self._runner.run(["--session", session, "open", url], timeout=self._remaining(deadline, "open"))
            await asyncio.sleep(min(self._render_wait, self._remaining(deadline, "render")))
            data = await self._runner.run_json(
                ["--session", session, "eval", script],
                timeout=self._remaining(deadline, "eval"),
            )
            data = self._expect(data, dict, "extraction result")
        finally:
            await self._close_session(session)

        return self._normalize(address, chain_type, chain, data)

    def _remaining(self, deadline: float, step: str) -> float:
        """Seconds left for ``step`` out of the one budget shared by open, render and eval."""
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise FetchError(
                f"agent-browser timed out after {self._timeout:g}s before {step}",
                provider=self.name,
            )
        return remaining

    async def _close_session(self, session: str) -> None:
        try:
            await self._runner.run(["--session", session, "close"], timeout=CLOSE_TIMEOUT_SECONDS)
        except OnchainError as e:
            logger.debug(f"[{self.name}] closing session {session} failed: {e.message}")

    @staticmethod
    def _normalize(
        address: str,
        chain_type: ChainType,
        chain: str,
        data: dict[str, Any],
    ) -> BalanceReport:
        balances = []
        for row in data.get("balances") or []:
            amount = float(row.get("amount") or 0)
            value = row.get("valueUsd")
            balances.append(TokenBalance(
                symbol=row["symbol"],
                name=row["symbol"],
                chain=chain,
                balance=amount,
                price_usd=value / amount if value and amount > 0 else None,
                value_usd=value,
                decimals=0,
                balance_raw=str(amount),
            ))

        total = float(data.get("totalValueUsd") or 0) or sum(b.value_usd or 0.0 for b in balances)
        return BalanceReport(
            address=address,
            chain_type=chain_type,
            total_value_usd=total,
            balances=sort_by_value(balances),
        )
