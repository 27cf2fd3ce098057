"""Database access for cabs, orders, legs, routes and stops."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import IntEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

from .distance import stop_distance
from .models import Cab, CabStatus, Leg, LegStatus, Order, OrderStatus, Route, Stop

log = logging.getLogger(__name__)

METADATA = MetaData()

_cab = Table(
    "cab",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("location", Integer),
    Column("status", Integer),
    Column("name", String, nullable=True),
)

_taxi_order = Table(
    "taxi_order",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("from_stand", Integer),
    Column("to_stand", Integer),
    Column("max_loss", Integer),
    Column("max_wait", Integer),
    Column("shared", Boolean),
    Column("in_pool", Boolean),
    Column("eta", Integer),
    Column("status", Integer),
    Column("received", DateTime, nullable=True),
    Column("distance", Integer),
    Column("customer_id", Integer, nullable=True),
    Column("cab_id", Integer, nullable=True),
)

_leg = Table(
    "leg",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("from_stand", Integer),
    Column("to_stand", Integer),
    Column("place", Integer),
    Column("status", Integer),
    Column("route_id", Integer),
)

_route = Table(
    "route",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("cab_id", Integer),
    Column("status", Integer),
)

_stop = Table(
    "stop",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("no", String),
    Column("name", String),
    Column("type", String, nullable=True),
    Column("bearing", Integer),
    Column("latitude", Float),
    Column("longitude", Float),
)


class RefusedError(ValueError):
    """The request cannot be accepted, e.g. a trip that starts where it ends."""


class NotFoundError(LookupError):
    """The requested entity is not in the database."""


def _code(enum_cls: type[IntEnum], name: str) -> int:
    """Database code for a status name; unknown names map to 0."""
    try:
        return int(enum_cls[name])
    except KeyError:
        return 0


def _name(enum_cls: type[IntEnum], code: Optional[int]) -> str:
    """Status name for a database code; unknown codes map to an empty string."""
    try:
        return enum_cls(code).name
    except ValueError:
        return ""


class Repository:
    """Reads and writes the dispatcher's entities through an SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._stops: Optional[list[Stop]] = None

    # CAB
    def get_cab(self, cab_id: int) -> Cab:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_cab.c.location, _cab.c.status, _cab.c.name).where(_cab.c.id == cab_id)
            ).first()
        if row is None:
            log.info("Select cab failed: cab_id=%d not found", cab_id)
            raise NotFoundError(f"cab {cab_id} not found")
        return Cab(
            id=cab_id,
            location=row.location,
            status=_name(CabStatus, row.status),
            name=row.name or "",
        )

    def put_cab(self, cab: Cab) -> Cab:
        with self.engine.begin() as conn:
            conn.execute(
                update(_cab)
                .where(_cab.c.id == cab.id)
                .values(status=_code(CabStatus, cab.status), location=cab.location)
            )
        return cab

    def post_cab(self, cab: Cab) -> Cab:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(_cab).values(
                    name=cab.name,
                    status=_code(CabStatus, cab.status),
                    location=cab.location,
                )
            )
            cab.id = result.inserted_primary_key[0]
        return cab

    # ORDER
    def get_order(self, order_id: int) -> Order:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_taxi_order).where(_taxi_order.c.id == order_id)
            ).first()
            if row is None:
                log.info("Select order failed: order_id=%d not found", order_id)
                raise NotFoundError(f"order {order_id} not found")
            order = Order(
                id=order_id,
                from_stand=row.from_stand,
                to_stand=row.to_stand,
                eta=row.eta,
                in_pool=bool(row.in_pool),
                shared=bool(row.shared),
                status=_name(OrderStatus, row.status),
                max_wait=row.max_wait,
                max_loss=row.max_loss,
                distance=row.distance,
            )
            if row.cab_id is not None:
                cab_row = conn.execute(
                    select(_cab.c.location, _cab.c.status, _cab.c.name).where(
                        _cab.c.id == row.cab_id
                    )
                ).first()
                if cab_row is None:
                    log.info("SELECT cab failed for order_id=%d cab_id=%d", order_id, row.cab_id)
                    raise NotFoundError(f"cab {row.cab_id} of order {order_id} not found")
                order.cab = Cab(
                    id=row.cab_id,
                    location=cab_row.location,
                    status=_name(CabStatus, cab_row.status),
                    name=cab_row.name or "",
                )
        return order

    def put_order(self, order: Order) -> Order:
        with self.engine.begin() as conn:
            conn.execute(
                update(_taxi_order)
                .where(_taxi_order.c.id == order.id)
                .values(status=_code(OrderStatus, order.status))
            )
        return order

    def post_order(self, order: Order, cust_id: int) -> Order:
        if order.from_stand == order.to_stand:
            log.info("cust_id=%d is a joker", cust_id)
            raise RefusedError("Refused")
        stops = self._stops if self._stops is not None else self.get_stops()
        distance = stop_distance(stops, order.from_stand, order.to_stand)
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(_taxi_order).values(
                    from_stand=order.from_stand,
                    to_stand=order.to_stand,
                    max_loss=order.max_loss,
                    max_wait=order.max_wait,
                    shared=order.shared,
                    in_pool=False,
                    eta=-1,
                    status=int(OrderStatus.ASSIGNED),
                    received=datetime.now().replace(microsecond=0),
                    distance=distance,
                    customer_id=cust_id,
                )
            )
            order.id = result.inserted_primary_key[0]
        return order

    # LEG
    def put_leg(self, leg: Leg) -> Leg:
        with self.engine.begin() as conn:
            conn.execute(
                update(_leg)
                .where(_leg.c.id == leg.id)
                .values(status=_code(LegStatus, leg.status))
            )
        return leg

    # ROUTE
    def get_route(self, cab_id: int) -> Route:
        with self.engine.connect() as conn:
            route_id = conn.execute(
                select(_route.c.id)
                .where(_route.c.cab_id == cab_id, _route.c.status == int(LegStatus.ASSIGNED))
                .order_by(_route.c.id)
                .limit(1)
            ).scalar()
            if route_id is None:
                log.info("Select route failed: no assigned route for cab_id=%d", cab_id)
                raise NotFoundError(f"no assigned route for cab {cab_id}")
            rows = conn.execute(
                select(_leg.c.id, _leg.c.from_stand, _leg.c.to_stand, _leg.c.place, _leg.c.status)
                .where(_leg.c.route_id == route_id)
                .order_by(_leg.c.id)
            ).all()
        legs = [
            Leg(
                id=row.id,
                from_stand=row.from_stand,
                to_stand=row.to_stand,
                place=row.place,
                status=_name(LegStatus, row.status),
            )
            for row in rows
        ]
        return Route(id=route_id, status="ASSIGNED", legs=legs)

    def put_route(self, route: Route) -> Route:
        with self.engine.begin() as conn:
            conn.execute(
                update(_route)
                .where(_route.c.id == route.id)
                .values(status=_code(LegStatus, route.status))
            )
        return route

    # STOP
    def get_stops(self) -> list[Stop]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(
                    _stop.c.id,
                    _stop.c.no,
                    _stop.c.name,
                    _stop.c.type,
                    _stop.c.bearing,
                    _stop.c.latitude,
                    _stop.c.longitude,
                )
            ).all()
        stops = [
            Stop(
                id=row.id,
                no=row.no,
                name=row.name,
                type=row.type or "",
                bearing=row.bearing,
                latitude=row.latitude,
                longitude=row.longitude,
            )
            for row in rows
        ]
        self._stops = stops
        return stops