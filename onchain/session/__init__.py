"""Wallet-connect session persistence."""

from onchain.session.manager import WalletSessionManager, WalletStatus, chain_name, format_expiry
from onchain.session.store import SessionStore, WalletSession, get_session_path

__all__ = [
    "WalletSessionManager",
    "WalletStatus",
    "chain_name",
    "format_expiry",
    "SessionStore",
    "WalletSession",
    "get_session_path",
]
