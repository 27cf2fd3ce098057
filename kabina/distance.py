"""Great-circle distances between stands and travel times for cabs."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable
from typing import Any, Optional

log = logging.getLogger(__name__)

CAB_SPEED = 30.0  # km/h
MAX_TRIP = 4


def deg2rad(deg: float) -> float:
    return deg * math.pi / 180.0


def rad2deg(rad: float) -> float:
    return rad * 180.0 / math.pi


def dist(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in kilometres between two points given in degrees."""
    theta = lon1 - lon2
    value = (math.sin(deg2rad(lat1)) * math.sin(deg2rad(lat2))
             + math.cos(deg2rad(lat1)) * math.cos(deg2rad(lat2)) * math.cos(deg2rad(theta)))
    # rounding can push the cosine just past 1 for identical points
    value = max(-1.0, min(1.0, value))
    result = rad2deg(math.acos(value))
    result = result * 60 * 1.1515
    result = result * 1.609344
    return result


def _find(stops: Iterable[Any], stop_id: int) -> Optional[Any]:
    return next((stop for stop in stops if stop.id == stop_id), None)


def stop_distance(stops: Iterable[Any], from_id: int, to_id: int) -> int:
    """Whole kilometres between two stands, or -1 when either is unknown."""
    stops = list(stops)
    origin = _find(stops, from_id)
    target = _find(stops, to_id)
    if origin is None or target is None:
        log.warning("from %d or to %d ID not found in stops", from_id, to_id)
        return -1
    return int(dist(origin.latitude, origin.longitude, target.latitude, target.longitude))


def travel_minutes(stops: Iterable[Any], from_id: int, to_id: int) -> int:
    """Minutes a cab needs between two stands, at least one; -1 when either is unknown."""
    km = stop_distance(stops, from_id, to_id)
    if km == -1:
        return -1
    minutes = km * int(60.0 / CAB_SPEED)
    return minutes if minutes != 0 else 1


def random_to(from_stand: int, max_stand: int, rng: Optional[random.Random] = None) -> int:
    """A destination stand a few positions away from the given one."""
    source = rng if rng is not None else random
    diff = source.randrange(MAX_TRIP * 2) - MAX_TRIP
    if diff == 0:
        diff = 1
    if from_stand + diff > max_stand - 1:
        return from_stand - diff
    if from_stand + diff < 0:
        return 0
    return from_stand + diff