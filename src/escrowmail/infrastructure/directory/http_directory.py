from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from escrowmail.application.ports.directory_port import DirectoryPort, UserProfile
from escrowmail.infrastructure.api_clients.base import APIClient


class HttpDirectory(DirectoryPort):
    """
    User directory over HTTP.

    GET /users/{id}                  -> {email, display_name}
    GET /users/{id}/wallets/{chain}  -> {address}
    404 means unknown user / no wallet.
    """

    def __init__(self, client: APIClient):
        self.client = client

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        data = await self.client.get(f"users/{quote(user_id, safe='')}", allow_404=True)
        if not data or not data.get("email"):
            return None
        return UserProfile(user_id=user_id, email=str(data["email"]), display_name=data.get("display_name"))

    async def get_wallet_for_chain(self, user_id: str, chain: str) -> Optional[str]:
        data = await self.client.get(f"users/{quote(user_id, safe='')}/wallets/{quote(chain, safe='')}", allow_404=True)
        if not data:
            return None
        return data.get("address") or None

    async def close(self) -> None:
        await self.client.close()
