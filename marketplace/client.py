"""
Marketplace Client
Version: 1.0

Composition root: settings -> logging -> identity provider -> session ->
gateway -> services. One instance per signed-in browser tab equivalent.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from config import Settings, get_settings
from marketplace.api_gateway import APIGateway
from marketplace.booking_service import BookingReconciler
from marketplace.error_translator import ErrorTranslator, Notification, get_translator
from marketplace.errors import MarketplaceError
from marketplace.identity_provider import (
    CredentialSource,
    FirebaseIdentityProvider,
    IdentityProvider,
)
from marketplace.listing_filter import ListingView
from marketplace.logging_config import configure_logging
from marketplace.session import SessionBoundary
from marketplace.vehicle_service import MyVehicles, VehicleService

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """Outcome of a user action: the value (None on failure) and the notification."""
    value: Optional[T]
    notification: Notification

    @property
    def ok(self) -> bool:
        return self.notification.level == "success"


class MarketplaceClient:
    """
    Wires the client together.

    Usage:
        async with MarketplaceClient.create() as client:
            await client.session.sign_in(email, password)
            listing = client.listing()
            await listing.refresh()
    """

    def __init__(
        self,
        provider: IdentityProvider,
        settings: Optional[Settings] = None,
        gateway: Optional[APIGateway] = None,
        translator: Optional[ErrorTranslator] = None
    ):
        self.settings = settings or get_settings()
        self.provider = provider
        self.session = SessionBoundary(provider, self.settings.TOKEN_REFRESH_BUFFER_SECONDS)
        self.gateway = gateway or APIGateway(session=self.session, base_url=self.settings.MARKETPLACE_API_URL)
        self.vehicles = VehicleService(self.gateway, self.session)
        self.translator = translator or get_translator()

    @classmethod
    def create(
        cls,
        credential_source: Optional[CredentialSource] = None,
        settings: Optional[Settings] = None,
        setup_logging: bool = True
    ) -> "MarketplaceClient":
        """Build a client backed by Firebase authentication."""
        settings = settings or get_settings()
        if setup_logging:
            configure_logging(json_format=settings.json_logs, log_level=settings.LOG_LEVEL)

        provider = FirebaseIdentityProvider(
            api_key=settings.IDENTITY_API_KEY,
            base_url=settings.IDENTITY_API_URL,
            token_url=settings.IDENTITY_TOKEN_URL,
            request_uri=settings.IDP_REQUEST_URI,
            credential_source=credential_source,
        )
        logger.info(f"Marketplace client created for {settings.MARKETPLACE_API_URL}")
        return cls(provider, settings=settings)

    # === VIEW MODELS ===

    def listing(self) -> ListingView:
        return ListingView(self.vehicles)

    def my_vehicles(self) -> MyVehicles:
        return MyVehicles(self.vehicles)

    def booking(self, vehicle_id: str) -> BookingReconciler:
        return BookingReconciler(self.vehicles, vehicle_id)

    # === ACTIONS ===

    async def perform(self, action: str, operation: Awaitable[T]) -> ActionResult[T]:
        """
        Run a user action and turn its outcome into a notification.

        Client errors never escape: they become an error notification and
        the action can be repeated.
        """
        try:
            value = await operation
        except MarketplaceError as e:
            logger.info(f"Action {action} failed: {e.category}")
            return ActionResult(value=None, notification=self.translator.translate(e, action))
        return ActionResult(value=value, notification=self.translator.success(action))

    # === LIFECYCLE ===

    async def close(self) -> None:
        await self.gateway.close()
        await self.provider.close()

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
