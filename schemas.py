"""
Pydantic Schemas
Version: 1.0

Marketplace entities and form drafts.
Wire names are camelCase (by_alias=True); Python names are snake_case.
NO DEPENDENCIES on services.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# === ENUMS ===

class Category(str, Enum):
    SEDAN = "Sedan"
    SUV = "SUV"
    ELECTRIC = "Electric"
    VAN = "Van"
    MOTORCYCLE = "Motorcycle"


class Availability(str, Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class WireModel(BaseModel):
    """Base for payloads exchanged with the marketplace API."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


# === VEHICLE SCHEMAS ===

class VehicleDraft(WireModel):
    """Editable vehicle fields, as entered on the add/update forms."""
    vehicle_name: str = Field(..., alias="vehicleName", min_length=1)
    owner: str = ""
    category: Category = Category.SEDAN
    price_per_day: float = Field(..., alias="pricePerDay", gt=0)
    location: str = ""
    availability: Availability = Availability.AVAILABLE
    description: str = ""
    cover_image: str = Field(default="", alias="coverImage")

    @field_validator("vehicle_name", "owner", "location", "description", "cover_image", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("cover_image")
    @classmethod
    def validate_cover_image(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Cover image must be an http(s) URL")
        return v


class Vehicle(VehicleDraft):
    """A listed vehicle as returned by the API."""
    id: str = Field(..., alias="_id")
    user_email: str = Field(..., alias="userEmail")
    created_at: datetime = Field(..., alias="createdAt")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # Mongo extended JSON: {"$oid": "..."}
        if isinstance(v, dict) and "$oid" in v:
            return v["$oid"]
        return v

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def is_available(self) -> bool:
        return self.availability == Availability.AVAILABLE


# === BOOKING SCHEMAS ===

class Booking(WireModel):
    """
    A booking of another user's vehicle.

    vehicle_name and price_per_day are copied from the vehicle at booking
    time and never re-read.
    """
    id: Optional[str] = Field(default=None, alias="_id")
    vehicle_id: str = Field(..., alias="vehicleId")
    vehicle_name: str = Field(..., alias="vehicleName")
    price_per_day: float = Field(..., alias="pricePerDay", gt=0)
    user_email: str = Field(..., alias="userEmail")
    user_name: str = Field(..., alias="userName")
    booking_date: datetime = Field(..., alias="bookingDate")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("id", "vehicle_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if isinstance(v, dict) and "$oid" in v:
            return v["$oid"]
        return v

    @field_validator("booking_date")
    @classmethod
    def normalize_booking_date(cls, v: datetime) -> datetime:
        return _as_utc(v)


# === IDENTITY SCHEMAS ===

class RegistrationDraft(BaseModel):
    """Sign-up form."""
    name: str = ""
    email: str = Field(..., min_length=3)
    photo_url: Optional[str] = None
    password: str


class Identity(BaseModel):
    """Read-only snapshot of the signed-in user."""
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def name_or_email(self) -> str:
        return self.display_name or self.email
