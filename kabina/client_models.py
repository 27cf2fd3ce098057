"""Entities as seen by the simulated cabs and customers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import _float, _int, _list, _lookup, _require_mapping, _str, _bool


@dataclass
class CabInfo:
    """A cab's identity, stand and status."""

    id: int = 0
    location: int = 0
    status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"Id": self.id, "Location": self.location, "Status": self.status}

    @classmethod
    def from_dict(cls, data: Any) -> CabInfo:
        data = _require_mapping(data, "cab")
        return cls(
            id=_int(data, "Id"),
            location=_int(data, "Location"),
            status=_str(data, "Status"),
        )


@dataclass
class StopInfo:
    """A stand with its position."""

    id: int = 0
    name: str = ""
    bearing: str = ""
    latitude: float = 0.0
    longitude: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "Name": self.name,
            "Bearing": self.bearing,
            "Latitude": self.latitude,
            "Longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Any) -> StopInfo:
        data = _require_mapping(data, "stop")
        bearing = _lookup(data, "Bearing")
        if bearing is None:
            bearing = ""
        elif isinstance(bearing, int) and not isinstance(bearing, bool):
            bearing = str(bearing)
        elif not isinstance(bearing, str):
            raise TypeError(f"field 'Bearing' must be a string or integer, got {bearing!r}")
        return cls(
            id=_int(data, "Id"),
            name=_str(data, "Name"),
            bearing=bearing,
            latitude=_float(data, "Latitude"),
            longitude=_float(data, "Longitude"),
        )


@dataclass
class Task:
    """One leg of a route, as the cab executes it."""

    id: int = 0
    from_stand: int = 0
    to_stand: int = 0
    place: int = 0
    status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "From": self.from_stand,
            "To": self.to_stand,
            "Place": self.place,
            "Status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Task:
        data = _require_mapping(data, "task")
        return cls(
            id=_int(data, "Id"),
            from_stand=_int(data, "From", "FromStand"),
            to_stand=_int(data, "To", "ToStand"),
            place=_int(data, "Place"),
            status=_str(data, "Status"),
        )


@dataclass
class RouteInfo:
    """A route assigned to a cab, with its tasks."""

    id: int = 0
    status: str = ""
    legs: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "Status": self.status,
            "Legs": [leg.to_dict() for leg in self.legs],
        }

    @classmethod
    def from_dict(cls, data: Any) -> RouteInfo:
        data = _require_mapping(data, "route")
        return cls(
            id=_int(data, "Id"),
            status=_str(data, "Status"),
            legs=[Task.from_dict(item) for item in _list(data, "Legs")],
        )


@dataclass
class Demand:
    """A customer's trip request and its progress."""

    id: int = 0
    from_stand: int = 0
    to_stand: int = 0
    eta: int = 0  # set when assigned
    shared: bool = False
    in_pool: bool = False
    cab: CabInfo = field(default_factory=CabInfo)
    status: str = ""
    wait: int = 0  # max wait for assignment, minutes
    loss: int = 0  # [%] detour accepted in a pool
    distance: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "From": self.from_stand,
            "To": self.to_stand,
            "Eta": self.eta,
            "Shared": self.shared,
            "InPool": self.in_pool,
            "Cab": self.cab.to_dict(),
            "Status": self.status,
            "Wait": self.wait,
            "Loss": self.loss,
            "Distance": self.distance,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Demand:
        data = _require_mapping(data, "demand")
        cab_data = _lookup(data, "Cab")
        return cls(
            id=_int(data, "Id"),
            from_stand=_int(data, "From", "fromStand"),
            to_stand=_int(data, "To", "toStand"),
            eta=_int(data, "Eta"),
            shared=_bool(data, "Shared"),
            in_pool=_bool(data, "InPool"),
            cab=CabInfo() if cab_data is None else CabInfo.from_dict(cab_data),
            status=_str(data, "Status"),
            wait=_int(data, "Wait", "MaxWait"),
            loss=_int(data, "Loss", "MaxLoss"),
            distance=_int(data, "Distance"),
        )