"""
Address and transaction-hash detection.

Classifies raw user input as an EVM or Solana identifier and extracts the
hash (plus chain) from block explorer URLs.
"""

import re
from dataclasses import dataclass
from typing import Optional

from onchain.models import ChainType


EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
EVM_TX_HASH_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
SOLANA_SIGNATURE_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{43,88}$")

_EVM_HASH = r"(0x[a-fA-F0-9]{64})"
_SOLANA_SIG = r"([1-9A-HJ-NP-Za-km-z]{43,88})"

# (pattern, chain) pairs checked in order
EXPLORER_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(rf"^https?://(?:www\.)?etherscan\.io/tx/{_EVM_HASH}"), "ethereum"),
    (re.compile(rf"^https?://(?:www\.)?polygonscan\.com/tx/{_EVM_HASH}"), "polygon"),
    (re.compile(rf"^https?://(?:www\.)?bscscan\.com/tx/{_EVM_HASH}"), "bsc"),
    (re.compile(rf"^https?://(?:www\.)?arbiscan\.io/tx/{_EVM_HASH}"), "arbitrum"),
    (re.compile(rf"^https?://(?:www\.)?basescan\.org/tx/{_EVM_HASH}"), "base"),
    (re.compile(rf"^https?://(?:www\.)?optimistic\.etherscan\.io/tx/{_EVM_HASH}"), "optimism"),
    (re.compile(rf"^https?://(?:www\.)?snowtrace\.io/tx/{_EVM_HASH}"), "avalanche"),
    (re.compile(rf"^https?://(?:www\.)?ftmscan\.com/tx/{_EVM_HASH}"), "fantom"),
    (re.compile(rf"^https?://(?:www\.)?solscan\.io/tx/{_SOLANA_SIG}"), "solana"),
    (re.compile(rf"^https?://(?:www\.)?explorer\.solana\.com/tx/{_SOLANA_SIG}"), "solana"),
]


def is_evm_address(address: str) -> bool:
    return bool(EVM_ADDRESS_RE.match(address))


def is_solana_address(address: str) -> bool:
    if address.startswith("0x"):
        return False
    return bool(SOLANA_ADDRESS_RE.match(address))


def detect_chain_type(address: str) -> Optional[ChainType]:
    """Return the address family, or None if the input is neither."""
    if is_evm_address(address):
        return ChainType.EVM
    if is_solana_address(address):
        return ChainType.SOLANA
    return None


def is_evm_tx_hash(value: str) -> bool:
    return bool(EVM_TX_HASH_RE.match(value))


def is_solana_signature(value: str) -> bool:
    return bool(SOLANA_SIGNATURE_RE.match(value))


def detect_tx_hash_type(value: str) -> Optional[ChainType]:
    if is_evm_tx_hash(value):
        return ChainType.EVM
    if is_solana_signature(value):
        return ChainType.SOLANA
    return None


@dataclass(frozen=True)
class ParsedTxInput:
    """A transaction reference extracted from a raw hash or explorer URL."""
    hash: str
    chain_type: Optional[ChainType]
    chain: Optional[str] = None


def parse_tx_input(value: str) -> ParsedTxInput:
    """
    Parse a raw hash or an explorer URL.

    A chain is only set when it came from a URL; it must then be treated as
    an explicit chain (no chain search).
    """
    text = value.strip()

    if text.startswith(("http://", "https://")):
        for pattern, chain in EXPLORER_PATTERNS:
            match = pattern.match(text)
            if match:
                chain_type = ChainType.SOLANA if chain == "solana" else ChainType.EVM
                return ParsedTxInput(hash=match.group(1), chain_type=chain_type, chain=chain)
        return ParsedTxInput(hash=text, chain_type=None)

    return ParsedTxInput(hash=text, chain_type=detect_tx_hash_type(text))


def truncate_address(address: str, prefix_len: int = 6, suffix_len: int = 4) -> str:
    if len(address) <= prefix_len + suffix_len + 3:
        return address
    return f"{address[:prefix_len]}...{address[-suffix_len:]}"


def truncate_hash(value: str, chars: int = 6) -> str:
    if len(value) <= chars * 2 + 3:
        return value
    prefix_len = 2 if value.startswith("0x") else 0
    return f"{value[:chars + prefix_len]}...{value[-chars:]}"
