"""
Token Manager
Version: 1.0

Keeps the signed-in user's ID token fresh.
DEPENDS ON: identity_provider.py, config.py
"""

import asyncio
import logging
from typing import Optional

from config import get_settings
from marketplace.errors import AuthError
from marketplace.identity_provider import IdentityProvider, ProviderUser

logger = logging.getLogger(__name__)
settings = get_settings()


class TokenManager:
    """
    ID token manager for one signed-in user.

    Features:
    - Automatic refresh before expiry
    - Lock to prevent concurrent refreshes
    """

    def __init__(
        self,
        provider: IdentityProvider,
        user: ProviderUser,
        refresh_buffer: Optional[int] = None
    ):
        """
        Args:
            provider: Identity provider used for refresh
            user: Freshly signed-in user
            refresh_buffer: Seconds before expiry at which a token is refreshed
        """
        self.provider = provider
        self._user = user
        self._refresh_lock = asyncio.Lock()
        self.refresh_buffer = (
            refresh_buffer if refresh_buffer is not None
            else settings.TOKEN_REFRESH_BUFFER_SECONDS
        )

    @property
    def user(self) -> ProviderUser:
        return self._user

    def replace_user(self, user: ProviderUser) -> None:
        """Adopt credentials returned by a profile update."""
        self._user = user

    async def get_token(self) -> str:
        """
        Get a valid ID token.

        Raises:
            AuthError if the token cannot be refreshed
        """
        if self.is_valid:
            return self._user.id_token

        async with self._refresh_lock:
            # Double-check after lock
            if self.is_valid:
                return self._user.id_token

            try:
                self._user = await self.provider.refresh(self._user)
            except AuthError:
                logger.error("Token refresh failed")
                raise

            logger.info(f"Token refreshed, valid until {self._user.expires_at.isoformat()}")
            return self._user.id_token

    @property
    def is_valid(self) -> bool:
        return bool(self._user.id_token) and not self._user.expires_within(self.refresh_buffer)
