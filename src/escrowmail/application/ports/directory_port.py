from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: str
    display_name: Optional[str] = None

    def label(self) -> str:
        return self.display_name or self.email


@runtime_checkable
class DirectoryPort(Protocol):
    """Resolves registered users to profiles and per-chain wallet addresses."""

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    async def get_wallet_for_chain(self, user_id: str, chain: str) -> Optional[str]:
        ...
