"""
Wallet session manager - status and disconnect over a SessionStore.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from onchain.session.store import SessionStore, WalletSession


logger = logging.getLogger(__name__)


CHAIN_ID_TO_NAME = {
    1: "Ethereum",
    10: "Optimism",
    56: "BNB Chain",
    100: "Gnosis",
    137: "Polygon",
    250: "Fantom",
    324: "zkSync Era",
    8453: "Base",
    42161: "Arbitrum",
    43114: "Avalanche",
    59144: "Linea",
    534352: "Scroll",
    11155111: "Sepolia",
}


def chain_name(chain_id: int) -> str:
    return CHAIN_ID_TO_NAME.get(chain_id, f"Chain {chain_id}")


def format_expiry(expiry: int, now: float) -> str:
    """Remaining lifetime as ``3d 4h``, ``5h`` or ``soon``."""
    remaining = int(expiry - now)
    days, rest = divmod(max(remaining, 0), 86400)
    hours = rest // 3600
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h"
    return "soon"


@dataclass(frozen=True)
class WalletStatus:
    connected: bool
    session: Optional[WalletSession] = None
    expires_in: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if not self.connected or self.session is None:
            return {"connected": False}
        session = self.session
        return {
            "connected": True,
            "address": session.address,
            "chain_type": session.chain_type,
            "chain_id": session.chain_id,
            "chain_name": chain_name(session.chain_id) if session.chain_id else None,
            "cluster": session.cluster,
            "wallet_name": session.wallet_name,
            "expires_at": session.expiry,
            "expires_in": self.expires_in,
        }


class WalletSessionManager:

    def __init__(self, store: SessionStore, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> SessionStore:
        return self._store

    def status(self) -> WalletStatus:
        session = self._store.load()
        if session is None:
            return WalletStatus(connected=False)
        return WalletStatus(
            connected=True,
            session=session,
            expires_in=format_expiry(session.expiry, self._clock()),
        )

    def disconnect(self) -> bool:
        """Forget the stored session; True when one was removed."""
        removed = self._store.delete()
        if removed:
            logger.info(f"Removed wallet session at {self._store.path}")
        return removed
