"""
Booking Service
Version: 1.0

Booking state for one vehicle as seen by the current viewer.

States: UNKNOWN -> CHECKED -> SUBMITTING -> CONFIRMED | FAILED.
already_booked is the idempotency guard: it turns true only after the
server confirms a booking (or the viewer's history shows one), never on
an error path. Different viewers are not coordinated; the API has no
atomic reserve, so two viewers can both be confirmed for one vehicle.
DEPENDS ON: vehicle_service.py, session.py, schemas.py
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from marketplace.errors import MarketplaceError, ValidationError
from marketplace.logging_config import get_logger
from marketplace.sequencing import RequestSequencer
from marketplace.vehicle_service import VehicleService
from schemas import Booking, Identity, Vehicle

logger = get_logger(__name__)


def _same_viewer(a: Optional[Identity], b: Optional[Identity]) -> bool:
    if a is None or b is None:
        return a is b
    return a.uid == b.uid


class BookingState(str, Enum):
    UNKNOWN = "unknown"
    CHECKED = "checked"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class BookingReconciler:
    """
    Decides whether the viewer may book a vehicle and submits the booking.

    Usage:
        reconciler = BookingReconciler(vehicle_service, vehicle_id)
        await reconciler.load()
        if reconciler.can_book:
            await reconciler.book()
    """

    def __init__(self, service: VehicleService, vehicle_id: str):
        self.service = service
        self.session = service.session
        self.vehicle_id = vehicle_id

        self.vehicle: Optional[Vehicle] = None
        self.state = BookingState.UNKNOWN
        self.already_booked = False
        self.last_error: Optional[MarketplaceError] = None

        self._sequencer = RequestSequencer(f"booking:{vehicle_id}")
        self._viewer: Optional[Identity] = self.session.current
        # bumped on every viewer change; a submission only updates state for its own generation
        self._generation = 0
        self._unsubscribe = self.session.subscribe(self._on_identity_change)

    # === READS ===

    async def load(self) -> Optional[Vehicle]:
        """
        Read the vehicle and the viewer's bookings concurrently.

        Raises the vehicle read's error, if any. A failed bookings read
        leaves the guard UNKNOWN, which keeps the action disabled.
        """
        ticket = self._sequencer.issue()
        viewer = self.session.current

        vehicle_read = self.service.get_vehicle(self.vehicle_id)
        if viewer is not None:
            vehicle_result, bookings_result = await asyncio.gather(
                vehicle_read, self.service.my_bookings(), return_exceptions=True
            )
        else:
            vehicle_result, = await asyncio.gather(vehicle_read, return_exceptions=True)
            bookings_result = []

        if not self._sequencer.is_current(ticket):
            return self.vehicle

        if isinstance(vehicle_result, BaseException):
            self.vehicle = None
            if self.state != BookingState.SUBMITTING:
                self.state = BookingState.UNKNOWN
            self.last_error = vehicle_result if isinstance(vehicle_result, MarketplaceError) else None
            logger.warning("Vehicle read failed", vehicle_id=self.vehicle_id, error=str(vehicle_result))
            raise vehicle_result

        self.vehicle = vehicle_result

        if self.state == BookingState.SUBMITTING:
            # history may not include the booking in flight yet
            return self.vehicle

        if isinstance(bookings_result, BaseException):
            if not isinstance(bookings_result, MarketplaceError):
                raise bookings_result
            self.state = BookingState.UNKNOWN
            self.already_booked = False
            self.last_error = bookings_result
            logger.warning("Bookings read failed", vehicle_id=self.vehicle_id, error=str(bookings_result))
            return self.vehicle

        self.already_booked = any(b.vehicle_id == self.vehicle_id for b in bookings_result)
        self.state = BookingState.CHECKED
        self.last_error = None
        return self.vehicle

    # === ACTION ===

    @property
    def can_book(self) -> bool:
        return self._rejection() is None

    @property
    def action_label(self) -> str:
        if self.already_booked:
            return "Already Booked"
        if self.vehicle is not None and self.vehicle.is_available:
            return "Book Now"
        return "Not Available"

    async def book(self) -> Booking:
        """
        Submit a booking built from the vehicle's current fields.

        Raises:
            ValidationError: the action is disabled; nothing was sent
            MarketplaceError: the server or transport failed; retryable
        """
        rejection = self._rejection()
        if rejection is not None:
            raise ValidationError(rejection)

        viewer = self.session.current
        generation = self._generation
        vehicle = self.vehicle
        booking = Booking(
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.vehicle_name,
            price_per_day=vehicle.price_per_day,
            user_email=viewer.email,
            user_name=viewer.name_or_email,
            booking_date=datetime.now(timezone.utc),
        )

        self.state = BookingState.SUBMITTING
        try:
            confirmed = await self.service.create_booking(booking)
        except MarketplaceError as e:
            logger.warning("Booking failed", vehicle_id=vehicle.id, error=e.message)
            if generation == self._generation:
                self.state = BookingState.FAILED
                self.last_error = e
            raise

        if generation != self._generation:
            # signed out or switched user while the request was in flight
            logger.info("Booking confirmed for a previous viewer", vehicle_id=vehicle.id)
            return confirmed

        self.state = BookingState.CONFIRMED
        self.already_booked = True
        self.last_error = None
        logger.info("Booking confirmed", vehicle_id=vehicle.id, booking_id=confirmed.id)
        return confirmed

    def close(self) -> None:
        """Stop observing the session."""
        self._unsubscribe()

    # === INTERNAL ===

    def _rejection(self) -> Optional[str]:
        """Why the action is disabled, or None if it is enabled."""
        if self.session.current is None:
            return "Please login to book a vehicle"
        if self.vehicle is None:
            return "Vehicle details are not loaded"
        if self.already_booked:
            return "You have already booked this vehicle"
        if not self.vehicle.is_available:
            return "This vehicle is not available"
        if self.state == BookingState.SUBMITTING:
            return "Booking is already in progress"
        if self.state == BookingState.UNKNOWN:
            return "Booking status has not been checked yet"
        return None

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        if _same_viewer(identity, self._viewer):
            self._viewer = identity
            return

        # booking history belongs to the previous viewer
        self._viewer = identity
        self._generation += 1
        self._sequencer.invalidate()
        self.already_booked = False
        self.state = BookingState.UNKNOWN
        logger.debug("Viewer changed, booking check reset", vehicle_id=self.vehicle_id)
