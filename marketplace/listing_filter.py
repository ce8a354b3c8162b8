"""
Listing Filter
Version: 1.0

Search, category, location and sort over a vehicle list.
derive() is pure; ListingView holds the full list and the current
FilterSpec and recomputes the visible list on every change.
DEPENDS ON: schemas.py, vehicle_service.py (ListingView only)
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Union

from marketplace.errors import ValidationError
from marketplace.sequencing import RequestSequencer
from schemas import Category, Vehicle

logger = logging.getLogger(__name__)


class SortKey(str, Enum):
    NONE = ""
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    NEWEST = "newest"


@dataclass(frozen=True)
class FilterSpec:
    """Current search/category/location/sort selection. Empty = no filtering."""
    search: str = ""
    category: Optional[Category] = None
    location: str = ""
    sort: SortKey = SortKey.NONE

    @property
    def is_empty(self) -> bool:
        return self == FilterSpec()


def derive(full_list: Sequence[Vehicle], spec: FilterSpec) -> List[Vehicle]:
    """
    Visible subset of full_list under spec.

    Filters are conjunctive and applied before the sort. Sorts are stable;
    with no sort key the input order is kept. full_list is never mutated.
    """
    result = list(full_list)

    if spec.search:
        needle = spec.search.lower()
        result = [v for v in result if needle in v.vehicle_name.lower()]

    if spec.category is not None:
        result = [v for v in result if v.category == spec.category]

    if spec.location:
        needle = spec.location.lower()
        result = [v for v in result if needle in v.location.lower()]

    if spec.sort == SortKey.PRICE_LOW:
        result.sort(key=lambda v: v.price_per_day)
    elif spec.sort == SortKey.PRICE_HIGH:
        result.sort(key=lambda v: v.price_per_day, reverse=True)
    elif spec.sort == SortKey.NEWEST:
        result.sort(key=lambda v: v.created_at, reverse=True)

    return result


def _coerce_category(value: Union[Category, str, None]) -> Optional[Category]:
    if value is None or value == "":
        return None
    try:
        return Category(value)
    except ValueError:
        raise ValidationError(f"Unknown category: {value}")


def _coerce_sort(value: Union[SortKey, str, None]) -> SortKey:
    if value is None:
        return SortKey.NONE
    try:
        return SortKey(value)
    except ValueError:
        raise ValidationError(f"Unknown sort option: {value}")


class ListingView:
    """
    All-vehicles listing state.

    Usage:
        view = ListingView(vehicle_service)
        await view.refresh()
        view.set_filter(search="civic", sort="price-low")
        view.visible
    """

    def __init__(self, service, spec: Optional[FilterSpec] = None):
        self.service = service
        self.vehicles: List[Vehicle] = []
        self.spec = spec or FilterSpec()
        self.visible: List[Vehicle] = []
        self.loading = False
        self._sequencer = RequestSequencer("listing")

    async def refresh(self) -> List[Vehicle]:
        """
        Fetch the full list. A response is applied only if no newer
        refresh was issued while it was in flight.
        """
        ticket = self._sequencer.issue()
        self.loading = True
        try:
            vehicles = await self.service.list_vehicles()
        except Exception:
            if self._sequencer.is_current(ticket):
                self.loading = False
            raise

        if self._sequencer.is_current(ticket):
            self.loading = False
            self.set_vehicles(vehicles)
        return self.visible

    def set_vehicles(self, vehicles: Sequence[Vehicle]) -> None:
        self.vehicles = list(vehicles)
        self._recompute()

    def set_filter(self, **changes) -> FilterSpec:
        """
        Replace fields of the spec. Category and sort accept the raw form
        strings; an empty string clears them.
        """
        if "category" in changes:
            changes["category"] = _coerce_category(changes["category"])
        if "sort" in changes:
            changes["sort"] = _coerce_sort(changes["sort"])
        for key in ("search", "location"):
            if key in changes and changes[key] is None:
                changes[key] = ""

        try:
            self.spec = replace(self.spec, **changes)
        except TypeError as e:
            raise ValidationError(f"Unknown filter field: {e}")

        self._recompute()
        return self.spec

    def reset(self) -> None:
        self.spec = FilterSpec()
        self._recompute()

    @property
    def count(self) -> int:
        return len(self.visible)

    def _recompute(self) -> None:
        self.visible = derive(self.vehicles, self.spec)
        logger.debug(f"Listing: {self.count}/{len(self.vehicles)} visible")
