"""
Wallet session persistence.

One JSON file holds the current wallet-connect session. An expired or
unreadable file is removed on load.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


def get_session_path() -> Path:
    return Path.home() / ".config" / "onchain" / "walletconnect-session.json"


@dataclass(frozen=True)
class WalletSession:
    topic: str
    address: str
    chain_type: str  # eip155 | solana
    expiry: int  # epoch seconds
    chain_id: Optional[int] = None
    cluster: Optional[str] = None
    wallet_name: Optional[str] = None
    pairing_topic: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return bool(self.expiry) and now > self.expiry

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "topic": self.topic,
            "address": self.address,
            "chainType": self.chain_type,
            "expiry": self.expiry,
        }
        if self.chain_id is not None:
            data["chainId"] = self.chain_id
        if self.cluster:
            data["cluster"] = self.cluster
        if self.wallet_name:
            data["walletName"] = self.wallet_name
        if self.pairing_topic:
            data["pairingTopic"] = self.pairing_topic
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WalletSession":
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        def pick(camel: str, snake: str) -> Any:
            return data.get(camel, data.get(snake))

        chain_id = pick("chainId", "chain_id")
        return cls(
            topic=data["topic"],
            address=data["address"],
            chain_type=pick("chainType", "chain_type") or "eip155",
            expiry=int(data["expiry"]),
            chain_id=int(chain_id) if chain_id is not None else None,
            cluster=data.get("cluster"),
            wallet_name=pick("walletName", "wallet_name"),
            pairing_topic=pick("pairingTopic", "pairing_topic"),
        )


class SessionStore:
    """
    File-backed session store.

    Usage:
        store = SessionStore()
        session = store.load()  # None when absent, expired or corrupt
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = path or get_session_path()
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[WalletSession]:
        if not self._path.exists():
            return None

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                session = WalletSession.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Removing unreadable wallet session at {self._path}: {e}")
            self.delete()
            return None

        if session.is_expired(self._clock()):
            logger.info("Wallet session expired, removing")
            self.delete()
            return None

        return session

    def save(self, session: WalletSession) -> Path:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2)
        return self._path

    def delete(self) -> bool:
        """Remove the session file; returns whether one existed."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True
