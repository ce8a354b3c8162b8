"""
Session Boundary
Version: 1.0

Single owner of the current identity.
Readers subscribe; only this module writes the session value.
DEPENDS ON: identity_provider.py, token_manager.py, errors.py
"""

import re
from typing import Callable, List, Optional

from marketplace.errors import AuthError, ValidationError
from marketplace.identity_provider import IdentityProvider, ProviderUser
from marketplace.logging_config import get_logger
from marketplace.sanitizer import get_sanitizer
from marketplace.token_manager import TokenManager
from schemas import Identity, RegistrationDraft

logger = get_logger(__name__)

Listener = Callable[[Optional[Identity]], None]


def validate_password(password: str) -> List[str]:
    """Registration password policy. Returns every violated rule."""
    errors = []
    if len(password) < 6:
        errors.append("Password must be at least 6 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    return errors


class SessionBoundary:
    """
    Observable session value.

    current is None (anonymous) or an Identity snapshot. Listeners are
    called synchronously with the new value after every change, and once
    with the current value when they subscribe.
    """

    def __init__(self, provider: IdentityProvider, refresh_buffer: Optional[int] = None):
        self.provider = provider
        self.refresh_buffer = refresh_buffer
        self._tokens: Optional[TokenManager] = None
        self._current: Optional[Identity] = None
        self._listeners: List[Listener] = []

    # === READERS ===

    @property
    def current(self) -> Optional[Identity]:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)
        listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def get_token(self) -> Optional[str]:
        """Current ID token, refreshed if close to expiry. None when anonymous."""
        if self._tokens is None:
            return None
        return await self._tokens.get_token()

    # === LIFECYCLE ===

    async def sign_in(self, email: str, password: str) -> Identity:
        user = await self.provider.sign_in_with_password(email, password)
        return self._set_user(user, "password")

    async def sign_in_with_provider(self) -> Identity:
        user = await self.provider.sign_in_with_idp()
        return self._set_user(user, "provider")

    async def sign_up(self, email: str, password: str) -> Identity:
        user = await self.provider.sign_up(email, password)
        return self._set_user(user, "sign_up")

    async def register(self, draft: RegistrationDraft) -> Identity:
        """
        Create an account and set its profile.

        The password policy is checked before the provider is contacted.
        """
        violations = validate_password(draft.password)
        if violations:
            raise ValidationError(violations)

        await self.sign_up(draft.email, draft.password)
        return await self.update_profile(draft.name, draft.photo_url)

    async def update_profile(self, name: Optional[str], photo_url: Optional[str]) -> Identity:
        if self._tokens is None:
            raise AuthError("Not signed in")

        # make sure the token sent to the provider is fresh
        await self._tokens.get_token()
        user = await self.provider.update_profile(self._tokens.user, name, photo_url)
        self._tokens.replace_user(user)
        self._publish(user.to_identity())
        logger.info("Profile updated", uid=user.uid)
        return self._current

    async def sign_out(self) -> None:
        if self._tokens is None:
            return

        user = self._tokens.user
        try:
            await self.provider.sign_out(user)
        finally:
            self._tokens = None
            self._publish(None)
            logger.info("Signed out", uid=user.uid)

    # === INTERNAL ===

    def _set_user(self, user: ProviderUser, method: str) -> Identity:
        self._tokens = TokenManager(self.provider, user, self.refresh_buffer)
        identity = user.to_identity()
        self._publish(identity)
        logger.info(
            "Signed in",
            method=method,
            email=get_sanitizer().mask_email(user.email)
        )
        return identity

    def _publish(self, identity: Optional[Identity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)
