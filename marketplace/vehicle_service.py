"""
Vehicle Service
Version: 1.0

Typed operations over the marketplace HTTP surface, plus the
"my vehicles" view model.
DEPENDS ON: api_gateway.py, session.py, schemas.py
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import pydantic

from marketplace.api_gateway import APIGateway
from marketplace.errors import ApplicationError, NetworkError, ValidationError
from marketplace.sequencing import RequestSequencer
from marketplace.session import SessionBoundary
from schemas import Booking, Identity, Vehicle, VehicleDraft

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=pydantic.BaseModel)


def parse_vehicle_form(form: Dict[str, Any]) -> VehicleDraft:
    """
    Validate raw form values (strings from inputs) into a VehicleDraft.

    Raises:
        ValidationError with one message per rejected field
    """
    try:
        return VehicleDraft.model_validate(form)
    except pydantic.ValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def _segment(value: str) -> str:
    return quote(value, safe="@")


class VehicleService:
    """
    Vehicle and booking reads/writes.

    Writes and per-user reads require a session and are rejected locally
    (ValidationError) without one.
    """

    def __init__(self, gateway: APIGateway, session: SessionBoundary):
        self.gateway = gateway
        self.session = session

    # === READS ===

    async def list_vehicles(self) -> List[Vehicle]:
        return self._parse_list(await self.gateway.get("/vehicles"), Vehicle)

    async def latest_vehicles(self) -> List[Vehicle]:
        return self._parse_list(await self.gateway.get("/vehicles/latest"), Vehicle)

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        data = await self.gateway.get(f"/vehicles/{_segment(vehicle_id)}")
        if not data:
            raise ApplicationError("Vehicle not found", status_code=404)
        return self._parse_one(data, Vehicle)

    async def my_vehicles(self) -> List[Vehicle]:
        identity = self._require_identity("Please login to see your vehicles")
        data = await self.gateway.get(f"/my-vehicles/{_segment(identity.email)}")
        return self._parse_list(data, Vehicle)

    async def my_bookings(self) -> List[Booking]:
        identity = self._require_identity("Please login to see your bookings")
        data = await self.gateway.get(f"/my-bookings/{_segment(identity.email)}")
        return self._parse_list(data, Booking)

    # === WRITES ===

    async def add_vehicle(self, draft: VehicleDraft) -> Vehicle:
        """
        List a new vehicle owned by the current user.

        Owner e-mail and creation time are stamped here; the owner name
        defaults to the display name.
        """
        identity = self._require_identity("Please login to add a vehicle")

        payload = draft.to_wire()
        payload["owner"] = draft.owner or identity.display_name or ""
        payload["userEmail"] = identity.email
        payload["createdAt"] = datetime.now(timezone.utc).isoformat()

        result = await self.gateway.post("/vehicles", payload)
        vehicle_id = self._inserted_id(result)
        logger.info(f"Vehicle added: {vehicle_id}")

        return Vehicle.model_validate({**payload, "_id": vehicle_id or ""})

    async def update_vehicle(self, vehicle_id: str, draft: VehicleDraft) -> Any:
        self._require_identity("Please login to update a vehicle")
        result = await self.gateway.put(f"/vehicles/{_segment(vehicle_id)}", draft.to_wire())
        logger.info(f"Vehicle updated: {vehicle_id}")
        return result

    async def delete_vehicle(self, vehicle_id: str) -> Any:
        self._require_identity("Please login to delete a vehicle")
        result = await self.gateway.delete(f"/vehicles/{_segment(vehicle_id)}")
        logger.info(f"Vehicle deleted: {vehicle_id}")
        return result

    async def create_booking(self, booking: Booking) -> Booking:
        result = await self.gateway.post("/bookings", booking.to_wire(exclude={"id"}))
        return booking.model_copy(update={"id": self._inserted_id(result)})

    # === HELPERS ===

    def _require_identity(self, message: str) -> Identity:
        identity = self.session.current
        if identity is None:
            raise ValidationError(message)
        return identity

    @staticmethod
    def _inserted_id(result: Any) -> Optional[str]:
        if isinstance(result, dict):
            value = result.get("insertedId") or result.get("_id")
            return str(value) if value else None
        return None

    @staticmethod
    def _parse_one(data: Any, model: Type[T]) -> T:
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            logger.warning(f"Malformed {model.__name__} record: {e.error_count()} error(s)")
            raise NetworkError(f"Malformed {model.__name__} in response") from e

    @staticmethod
    def _parse_list(data: Any, model: Type[T]) -> List[T]:
        """Parse a list response, skipping records that fail validation."""
        if not isinstance(data, list):
            raise NetworkError(f"Expected a list of {model.__name__} records")

        items = []
        for raw in data:
            try:
                items.append(model.model_validate(raw))
            except pydantic.ValidationError as e:
                record_id = raw.get("_id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed {model.__name__} {record_id}: {e.error_count()} error(s)")
        return items


class MyVehicles:
    """
    The current user's listed vehicles.

    A vehicle leaves the list only after the server confirms its deletion.
    """

    def __init__(self, service: VehicleService):
        self.service = service
        self.vehicles: List[Vehicle] = []
        self.loading = False
        self._sequencer = RequestSequencer("my-vehicles")

    async def load(self) -> List[Vehicle]:
        ticket = self._sequencer.issue()
        self.loading = True
        try:
            vehicles = await self.service.my_vehicles()
        finally:
            if self._sequencer.is_current(ticket):
                self.loading = False

        if self._sequencer.is_current(ticket):
            self.vehicles = vehicles
        return self.vehicles

    def find(self, vehicle_id: str) -> Optional[Vehicle]:
        return next((v for v in self.vehicles if v.id == vehicle_id), None)

    async def update(self, vehicle_id: str, draft: VehicleDraft) -> Vehicle:
        vehicle = self._owned(vehicle_id)
        await self.service.update_vehicle(vehicle_id, draft)

        updated = vehicle.model_copy(update=draft.model_dump())
        self.vehicles = [updated if v.id == vehicle_id else v for v in self.vehicles]
        return updated

    async def delete(self, vehicle_id: str) -> None:
        self._owned(vehicle_id)
        await self.service.delete_vehicle(vehicle_id)
        self.vehicles = [v for v in self.vehicles if v.id != vehicle_id]

    def _owned(self, vehicle_id: str) -> Vehicle:
        identity = self.service.session.current
        if identity is None:
            raise ValidationError("Please login to manage your vehicles")

        vehicle = self.find(vehicle_id)
        if vehicle is None or vehicle.user_email != identity.email:
            raise ValidationError("You can only modify your own vehicles")
        return vehicle
