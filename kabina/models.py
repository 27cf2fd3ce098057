"""Entities exchanged by the dispatch API, with their JSON shapes and status codes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class CabStatus(IntEnum):
    """Cab states as stored in the database."""

    ASSIGNED = 0
    FREE = 1
    CHARGING = 2


class LegStatus(IntEnum):
    """Leg (and route) states as stored in the database."""

    PLANNED = 0  # proposed by the pool finder
    ASSIGNED = 1  # not confirmed, initial status
    ACCEPTED = 2  # plan accepted by the customer, waiting for the cab
    REJECTED = 3  # proposal rejected by the customer(s)
    ABANDONED = 4  # cancelled after assignment but before pick-up
    STARTED = 5
    COMPLETED = 6


class OrderStatus(IntEnum):
    """Order states as stored in the database."""

    RECEIVED = 0  # sent by the customer
    ASSIGNED = 1  # assigned to a cab, a proposal sent with time of arrival
    ACCEPTED = 2  # plan accepted by the customer, waiting for the cab
    CANCELLED = 3  # cancelled by the customer before assignment
    REJECTED = 4  # proposal rejected by the customer
    ABANDONED = 5  # cancelled after assignment but before pick-up
    REFUSED = 6  # no cab available, or the cab broke down
    PICKEDUP = 7
    COMPLETED = 8


def _require_mapping(data: Any, kind: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise TypeError(f"{kind} must be a JSON object, got {type(data).__name__}")
    return data


def _lookup(data: Mapping, *names: str) -> Any:
    """Find a field by exact name first, then case-insensitively; None if absent."""
    for name in names:
        if name in data:
            return data[name]
    folded = {key.lower(): value for key, value in data.items() if isinstance(key, str)}
    for name in names:
        if name.lower() in folded:
            return folded[name.lower()]
    return None


def _int(data: Mapping, *names: str) -> int:
    value = _lookup(data, *names)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"field {names[0]!r} must be an integer, got {value!r}")
    return value


def _float(data: Mapping, *names: str) -> float:
    value = _lookup(data, *names)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"field {names[0]!r} must be a number, got {value!r}")
    return float(value)


def _bool(data: Mapping, *names: str) -> bool:
    value = _lookup(data, *names)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"field {names[0]!r} must be a boolean, got {value!r}")
    return value


def _str(data: Mapping, *names: str) -> str:
    value = _lookup(data, *names)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"field {names[0]!r} must be a string, got {value!r}")
    return value


def _list(data: Mapping, *names: str) -> list:
    value = _lookup(data, *names)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"field {names[0]!r} must be a list, got {value!r}")
    return value


@dataclass
class Cab:
    """A cab with its current stand and status."""

    id: int = 0
    location: int = 0
    status: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "location": self.location,
            "status": self.status,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Cab:
        data = _require_mapping(data, "cab")
        return cls(
            id=_int(data, "id"),
            location=_int(data, "location"),
            status=_str(data, "status"),
            name=_str(data, "name"),
        )


@dataclass
class Stop:
    """A stand where cabs pick up and drop off customers."""

    id: int = 0
    no: str = ""
    name: str = ""
    type: str = ""
    bearing: int = 0
    latitude: float = 0.0
    longitude: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "No": self.no,
            "Name": self.name,
            "Type": self.type,
            "Bearing": self.bearing,
            "Latitude": self.latitude,
            "Longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Stop:
        data = _require_mapping(data, "stop")
        return cls(
            id=_int(data, "Id"),
            no=_str(data, "No"),
            name=_str(data, "Name"),
            type=_str(data, "Type"),
            bearing=_int(data, "Bearing"),
            latitude=_float(data, "Latitude"),
            longitude=_float(data, "Longitude"),
        )


@dataclass
class Leg:
    """One move of a cab between two stands within a route."""

    id: int = 0
    from_stand: int = 0
    to_stand: int = 0
    place: int = 0
    status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "FromStand": self.from_stand,
            "ToStand": self.to_stand,
            "Place": self.place,
            "Status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Leg:
        data = _require_mapping(data, "leg")
        return cls(
            id=_int(data, "Id"),
            from_stand=_int(data, "FromStand", "From"),
            to_stand=_int(data, "ToStand", "To"),
            place=_int(data, "Place"),
            status=_str(data, "Status"),
        )


@dataclass
class Route:
    """A sequence of legs assigned to one cab."""

    id: int = 0
    status: str = ""
    legs: list[Leg] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "Status": self.status,
            "Legs": [leg.to_dict() for leg in self.legs],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Route:
        data = _require_mapping(data, "route")
        return cls(
            id=_int(data, "Id"),
            status=_str(data, "Status"),
            legs=[Leg.from_dict(item) for item in _list(data, "Legs")],
        )


@dataclass
class Order:
    """A customer's request for a trip, and what the dispatcher made of it."""

    id: int = 0
    from_stand: int = 0
    to_stand: int = 0
    eta: int = 0  # set when assigned
    in_pool: bool = False  # set when assigned
    shared: bool = False  # willing to share?
    cab: Cab = field(default_factory=Cab)
    status: str = ""
    max_wait: int = 0  # max wait for assignment, minutes
    max_loss: int = 0  # [%] detour accepted in a pool
    distance: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "fromStand": self.from_stand,
            "toStand": self.to_stand,
            "Eta": self.eta,
            "InPool": self.in_pool,
            "Shared": self.shared,
            "Cab": self.cab.to_dict(),
            "Status": self.status,
            "MaxWait": self.max_wait,
            "MaxLoss": self.max_loss,
            "Distance": self.distance,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Order:
        data = _require_mapping(data, "order")
        cab_data = _lookup(data, "Cab")
        return cls(
            id=_int(data, "Id"),
            from_stand=_int(data, "fromStand", "From"),
            to_stand=_int(data, "toStand", "To"),
            eta=_int(data, "Eta"),
            in_pool=_bool(data, "InPool"),
            shared=_bool(data, "Shared"),
            cab=Cab() if cab_data is None else Cab.from_dict(cab_data),
            status=_str(data, "Status"),
            max_wait=_int(data, "MaxWait", "Wait"),
            max_loss=_int(data, "MaxLoss", "Loss"),
            distance=_int(data, "Distance"),
        )