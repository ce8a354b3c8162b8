"""
Identity Provider
Version: 1.0

Opaque token source behind the session boundary.
IdentityProvider is the contract; FirebaseIdentityProvider talks to the
Identity Toolkit REST API.
DEPENDS ON: config.py, errors.py
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from config import get_settings
from marketplace.errors import AuthError
from schemas import Identity

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class ProviderUser:
    """Signed-in user as the provider sees it, credentials included."""
    uid: str
    email: str
    id_token: str
    refresh_token: str
    expires_at: datetime
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    def to_identity(self) -> Identity:
        return Identity(
            uid=self.uid,
            email=self.email,
            display_name=self.display_name,
            photo_url=self.photo_url,
        )

    def expires_within(self, seconds: int) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(seconds=seconds)


@dataclass(frozen=True)
class IdpCredential:
    """Credential obtained from an external provider (e.g. a Google popup)."""
    provider_id: str
    id_token: Optional[str] = None
    access_token: Optional[str] = None


# Returns None when the user closes the provider dialog.
CredentialSource = Callable[[], Awaitable[Optional[IdpCredential]]]


class IdentityProvider(ABC):
    """Contract of an identity provider. Every method raises AuthError."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> ProviderUser:
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> ProviderUser:
        ...

    @abstractmethod
    async def sign_in_with_idp(self) -> ProviderUser:
        ...

    @abstractmethod
    async def update_profile(
        self,
        user: ProviderUser,
        display_name: Optional[str],
        photo_url: Optional[str]
    ) -> ProviderUser:
        ...

    @abstractmethod
    async def refresh(self, user: ProviderUser) -> ProviderUser:
        ...

    async def sign_out(self, user: ProviderUser) -> None:
        """Local sign-out needs no provider call by default."""
        return None

    async def close(self) -> None:
        return None


class FirebaseIdentityProvider(IdentityProvider):
    """
    Firebase Authentication over the Identity Toolkit REST API.

    Features:
    - Email/password sign-in and sign-up
    - Federated sign-in from an injected credential source
    - Profile update
    - ID token refresh via the secure token endpoint
    """

    DEFAULT_TIMEOUT = 15.0

    # Provider error code -> readable reason
    ERROR_REASONS = {
        "EMAIL_NOT_FOUND": "No account exists for this email",
        "INVALID_PASSWORD": "Incorrect password",
        "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
        "INVALID_EMAIL": "Invalid email address",
        "MISSING_PASSWORD": "Password is required",
        "EMAIL_EXISTS": "An account with this email already exists",
        "WEAK_PASSWORD": "Password is too weak",
        "USER_DISABLED": "This account has been disabled",
        "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts, try again later",
        "OPERATION_NOT_ALLOWED": "This sign-in method is disabled",
        "TOKEN_EXPIRED": "Session expired, please sign in again",
        "INVALID_ID_TOKEN": "Session expired, please sign in again",
        "INVALID_REFRESH_TOKEN": "Session expired, please sign in again",
        "USER_NOT_FOUND": "Account no longer exists",
        "INVALID_IDP_RESPONSE": "Provider sign-in failed",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        token_url: Optional[str] = None,
        credential_source: Optional[CredentialSource] = None,
        request_uri: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            api_key: Web API key (defaults to settings)
            base_url: Identity Toolkit base URL (defaults to settings)
            token_url: Secure token endpoint (defaults to settings)
            credential_source: Async callable producing an IdpCredential
            request_uri: Continue URI sent with federated sign-in
            client: Preconfigured httpx client (tests inject a mock transport)
        """
        self.api_key = api_key if api_key is not None else settings.IDENTITY_API_KEY
        self.base_url = (base_url or settings.IDENTITY_API_URL).rstrip("/")
        self.token_url = token_url or settings.IDENTITY_TOKEN_URL
        self.request_uri = request_uri or settings.IDP_REQUEST_URI
        self.credential_source = credential_source
        self.client = client or httpx.AsyncClient(timeout=self.DEFAULT_TIMEOUT)

        if not self.api_key:
            logger.warning("IDENTITY_API_KEY is not configured; sign-in calls will be rejected")

    # === CONTRACT ===

    async def sign_in_with_password(self, email: str, password: str) -> ProviderUser:
        data = await self._post_account("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return self._user_from_account(data)

    async def sign_up(self, email: str, password: str) -> ProviderUser:
        data = await self._post_account("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return self._user_from_account(data)

    async def sign_in_with_idp(self) -> ProviderUser:
        if self.credential_source is None:
            raise AuthError("Provider sign-in is not available")

        credential = await self.credential_source()
        if credential is None:
            raise AuthError("Provider sign-in was cancelled")

        post_body = {"providerId": credential.provider_id}
        if credential.id_token:
            post_body["id_token"] = credential.id_token
        if credential.access_token:
            post_body["access_token"] = credential.access_token

        data = await self._post_account("signInWithIdp", {
            "postBody": urlencode(post_body),
            "requestUri": self.request_uri,
            "returnIdpCredential": True,
            "returnSecureToken": True,
        })
        return self._user_from_account(data)

    async def update_profile(
        self,
        user: ProviderUser,
        display_name: Optional[str],
        photo_url: Optional[str]
    ) -> ProviderUser:
        payload: Dict[str, Any] = {"idToken": user.id_token, "returnSecureToken": True}
        delete_attributes = []

        if display_name:
            payload["displayName"] = display_name
        if photo_url:
            payload["photoUrl"] = photo_url
        elif photo_url == "":
            delete_attributes.append("PHOTO_URL")
        if delete_attributes:
            payload["deleteAttribute"] = delete_attributes

        data = await self._post_account("update", payload)

        new_photo = None if delete_attributes else user.photo_url
        updated = replace(
            user,
            display_name=data.get("displayName", user.display_name),
            photo_url=data.get("photoUrl", new_photo),
        )
        # update may rotate the tokens
        if data.get("idToken"):
            updated = replace(
                updated,
                id_token=data["idToken"],
                refresh_token=data.get("refreshToken", user.refresh_token),
                expires_at=self._expiry(data.get("expiresIn")),
            )
        return updated

    async def refresh(self, user: ProviderUser) -> ProviderUser:
        logger.info("Refreshing identity token...")
        data = await self._post(
            self.token_url,
            form={"grant_type": "refresh_token", "refresh_token": user.refresh_token},
        )
        try:
            return replace(
                user,
                id_token=data["id_token"],
                refresh_token=data.get("refresh_token", user.refresh_token),
                expires_at=self._expiry(data.get("expires_in")),
            )
        except (KeyError, ValueError) as e:
            raise AuthError(f"Incomplete token response: {e}")

    async def close(self) -> None:
        await self.client.aclose()

    # === TRANSPORT ===

    async def _post_account(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post(f"{self.base_url}/accounts:{action}", json=payload)

    async def _post(
        self,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        form: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise AuthError("Identity provider is not configured")

        try:
            response = await self.client.post(
                url,
                params={"key": self.api_key},
                json=json,
                data=form,
            )
        except httpx.TimeoutException:
            logger.error("Identity provider timeout")
            raise AuthError("Network error: identity provider timed out")
        except httpx.RequestError as e:
            logger.error(f"Identity provider network error: {e}")
            raise AuthError(f"Network error: {e}")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Identity provider returned non-JSON ({response.status_code})")
            raise AuthError("Network error: unexpected response from identity provider")

        if response.status_code != 200:
            reason = self._reason_from_error(data)
            logger.warning(f"Identity call failed: {response.status_code} - {reason}")
            raise AuthError(reason)

        if not isinstance(data, dict):
            logger.error("Identity provider returned a non-object body")
            raise AuthError("Network error: unexpected response from identity provider")

        return data

    def _reason_from_error(self, data: Any) -> str:
        error = data.get("error") if isinstance(data, dict) else None
        message = str(error.get("message") or "") if isinstance(error, dict) else str(error or "")

        # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
        code, _, detail = message.partition(" : ")
        code = code.strip()
        if code in self.ERROR_REASONS:
            reason = self.ERROR_REASONS[code]
            return f"{reason}: {detail.strip()}" if detail else reason
        return message or "Authentication failed"

    def _user_from_account(self, data: Dict[str, Any]) -> ProviderUser:
        try:
            return ProviderUser(
                uid=data["localId"],
                email=data["email"],
                id_token=data["idToken"],
                refresh_token=data["refreshToken"],
                expires_at=self._expiry(data.get("expiresIn")),
                display_name=data.get("displayName") or None,
                photo_url=data.get("photoUrl") or None,
            )
        except (KeyError, ValueError) as e:
            raise AuthError(f"Incomplete identity response: {e}")

    @staticmethod
    def _expiry(expires_in: Any) -> datetime:
        seconds = int(expires_in or 3600)
        return datetime.now(timezone.utc) + timedelta(seconds=seconds)
