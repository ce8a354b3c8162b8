"""
Test Configuration and Fixtures
Version: 1.0
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Tuple, Union
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from marketplace.api_gateway import APIGateway
from marketplace.identity_provider import ProviderUser
from marketplace.session import SessionBoundary
from marketplace.vehicle_service import VehicleService
from schemas import Vehicle


API_BASE = "http://api.test"


# ============================================================================
# FAKE MARKETPLACE API
# ============================================================================

class FakeAPI:
    """
    Route table behind an httpx.MockTransport.

    Unknown routes answer 404 {"error": "Not found"}. Every request is
    recorded for assertions.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[httpx.Response, Callable]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, json: Any = None, status: int = 200, **kwargs) -> None:
        if "content" in kwargs or "text" in kwargs:
            self.routes[(method, path)] = httpx.Response(status, **kwargs)
        else:
            self.routes[(method, path)] = httpx.Response(status, json=json)

    def add_handler(self, method: str, path: str, handler: Callable) -> None:
        self.routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            return route(request)
        return route

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeAPI:
    return FakeAPI()


# ============================================================================
# IDENTITY FIXTURES
# ============================================================================

def _provider_user(
    uid: str = "uid-jane",
    email: str = "jane@example.com",
    display_name: str = "Jane Doe",
    token: str = "id-token-1",
    expires_in: int = 3600
) -> ProviderUser:
    return ProviderUser(
        uid=uid,
        email=email,
        id_token=token,
        refresh_token="refresh-token-1",
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        display_name=display_name,
    )


@pytest.fixture
def make_provider_user() -> Callable[..., ProviderUser]:
    return _provider_user


@pytest.fixture
def mock_provider():
    """Identity provider double; signs in Jane Doe."""
    provider = MagicMock()
    user = _provider_user()

    provider.sign_in_with_password = AsyncMock(return_value=user)
    provider.sign_up = AsyncMock(return_value=replace(user, display_name=None))
    provider.sign_in_with_idp = AsyncMock(return_value=user)
    provider.update_profile = AsyncMock(
        side_effect=lambda u, name, photo: replace(u, display_name=name, photo_url=photo)
    )
    provider.refresh = AsyncMock(
        side_effect=lambda u: replace(
            u,
            id_token="id-token-refreshed",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
    )
    provider.sign_out = AsyncMock(return_value=None)
    provider.close = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def session(mock_provider) -> SessionBoundary:
    return SessionBoundary(mock_provider, refresh_buffer=60)


@pytest_asyncio.fixture
async def signed_in_session(session) -> SessionBoundary:
    await session.sign_in("jane@example.com", "Secret123")
    return session


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def gateway(session, fake_api):
    gw = APIGateway(session=session, base_url=API_BASE, transport=fake_api.transport)
    yield gw
    await gw.close()


@pytest.fixture
def vehicle_service(gateway, session) -> VehicleService:
    return VehicleService(gateway, session)


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

def _vehicle_record(**overrides) -> Dict[str, Any]:
    record = {
        "_id": "veh-1",
        "vehicleName": "Honda Civic",
        "owner": "Sam Owner",
        "category": "Sedan",
        "pricePerDay": 40,
        "location": "Dhaka, Gulshan",
        "availability": "Available",
        "description": "Clean and efficient",
        "coverImage": "https://img.example.com/civic.jpg",
        "userEmail": "sam@example.com",
        "createdAt": "2024-03-01T10:00:00.000Z",
    }
    record.update(overrides)
    return record


@pytest.fixture
def vehicle_record() -> Callable[..., Dict[str, Any]]:
    """Factory for wire-format vehicle records."""
    return _vehicle_record


@pytest.fixture
def make_vehicle() -> Callable[..., Vehicle]:
    """Factory for parsed vehicles."""
    return lambda **overrides: Vehicle.model_validate(_vehicle_record(**overrides))


@pytest.fixture
def sample_vehicles(make_vehicle) -> List[Vehicle]:
    return [
        make_vehicle(_id="v1", vehicleName="Honda Civic", category="Sedan", pricePerDay=40,
                     location="Dhaka", createdAt="2024-01-10T00:00:00Z"),
        make_vehicle(_id="v2", vehicleName="Honda CR-V", category="SUV", pricePerDay=60,
                     location="Chittagong", createdAt="2024-03-05T00:00:00Z"),
        make_vehicle(_id="v3", vehicleName="Tesla Model 3", category="Electric", pricePerDay=90,
                     location="Dhaka Cantonment", createdAt="2024-02-20T00:00:00Z"),
        make_vehicle(_id="v4", vehicleName="Toyota RAV4", category="SUV", pricePerDay=55,
                     location="Dhaka", createdAt="2023-12-01T00:00:00Z"),
        make_vehicle(_id="v5", vehicleName="Ford Transit", category="Van", pricePerDay=70,
                     location="Sylhet", createdAt="2024-04-01T00:00:00Z"),
    ]
