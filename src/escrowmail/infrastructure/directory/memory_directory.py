from __future__ import annotations

from typing import Dict, Optional, Tuple

from escrowmail.application.ports.directory_port import DirectoryPort, UserProfile


class InMemoryDirectory(DirectoryPort):
    """Directory backed by dicts; seeded from config or by tests."""

    def __init__(self) -> None:
        self._profiles: Dict[str, UserProfile] = {}
        self._wallets: Dict[Tuple[str, str], str] = {}

    def register_user(
        self,
        user_id: str,
        email: str,
        display_name: Optional[str] = None,
        wallets: Optional[Dict[str, str]] = None,
    ) -> UserProfile:
        profile = UserProfile(user_id=user_id, email=email, display_name=display_name)
        self._profiles[user_id] = profile
        for chain, address in (wallets or {}).items():
            self.set_wallet(user_id, chain, address)
        return profile

    def set_wallet(self, user_id: str, chain: str, address: str) -> None:
        self._wallets[(user_id, chain.lower())] = address

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    async def get_wallet_for_chain(self, user_id: str, chain: str) -> Optional[str]:
        return self._wallets.get((user_id, chain.lower()))
