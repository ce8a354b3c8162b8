"""
Tests for MarketplaceClient
Version: 1.0

Wiring and the perform() notification contract.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from config import Settings
from marketplace.booking_service import BookingReconciler
from marketplace.client import MarketplaceClient
from marketplace.errors import ApplicationError, NetworkError
from marketplace.identity_provider import FirebaseIdentityProvider
from marketplace.listing_filter import ListingView
from marketplace.vehicle_service import MyVehicles

API_BASE = "http://api.test"


@pytest.fixture
def settings():
    return Settings(MARKETPLACE_API_URL=API_BASE, IDENTITY_API_KEY="web-key", TOKEN_REFRESH_BUFFER_SECONDS=30)


@pytest_asyncio.fixture
async def client(mock_provider, settings):
    c = MarketplaceClient(mock_provider, settings=settings)
    yield c
    await c.close()


class TestMarketplaceClient:
    """Test MarketplaceClient class."""

    # ========================================================================
    # WIRING
    # ========================================================================

    def test_components_share_one_session(self, client):
        assert client.vehicles.session is client.session
        assert client.gateway.session is client.session
        assert client.gateway.base_url == API_BASE

    def test_view_models(self, client):
        assert isinstance(client.listing(), ListingView)
        assert isinstance(client.my_vehicles(), MyVehicles)

        reconciler = client.booking("veh-1")
        assert isinstance(reconciler, BookingReconciler)
        assert reconciler.vehicle_id == "veh-1"
        reconciler.close()

    @pytest.mark.asyncio
    async def test_create_uses_settings(self, settings):
        client = MarketplaceClient.create(settings=settings, setup_logging=False)

        assert isinstance(client.provider, FirebaseIdentityProvider)
        assert client.provider.api_key == "web-key"
        assert client.session.current is None
        await client.close()

    # ========================================================================
    # PERFORM
    # ========================================================================

    @pytest.mark.asyncio
    async def test_perform_success(self, client):
        result = await client.perform("sign_in", client.session.sign_in("jane@example.com", "Secret123"))

        assert result.ok
        assert result.value.email == "jane@example.com"
        assert result.notification.message == "Logged in successfully!"

    @pytest.mark.asyncio
    async def test_perform_failure_becomes_notification(self, client):
        result = await client.perform("book", AsyncMock(side_effect=ApplicationError("Vehicle already booked", 409))())

        assert not result.ok
        assert result.value is None
        assert result.notification.level == "error"
        assert result.notification.message == "Vehicle already booked"

    @pytest.mark.asyncio
    async def test_perform_uses_action_fallback(self, client):
        result = await client.perform("load_vehicles", AsyncMock(side_effect=NetworkError("Malformed payload"))())

        assert result.notification.message == "Failed to load vehicles"

    @pytest.mark.asyncio
    async def test_perform_does_not_swallow_programming_errors(self, client):
        with pytest.raises(KeyError):
            await client.perform("book", AsyncMock(side_effect=KeyError("vehicle"))())

    @pytest.mark.asyncio
    async def test_close_releases_provider(self, mock_provider, settings):
        async with MarketplaceClient(mock_provider, settings=settings):
            pass

        mock_provider.close.assert_awaited_once()
