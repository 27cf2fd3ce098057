"""Simulated cabs and customers that drive traffic through the dispatcher API."""

from __future__ import annotations

import argparse
import csv
import logging
import random
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import Optional

from .api_client import DEFAULT_HOST, ApiClient, ApiError
from .client_models import CabInfo, Demand, RouteInfo, StopInfo, Task
from .distance import travel_minutes

log = logging.getLogger(__name__)

# cabs
MAX_TIME = 60  # minutes of customer traffic
CHECK_INTERVAL = 15  # seconds between polls
MAX_CABS = 3000
MAX_STAND = 5191
STOP_WAIT = 60  # seconds for pick-up and drop-off at a stand
SECONDS_PER_TRAVEL_MINUTE = 3600 // 60

# customers
REQ_PER_MIN = 300
MAX_WAIT = 15
MAX_POOL_LOSS = 70  # [%] detour
MAX_WAIT_FOR_RESPONSE = 3
MAX_WAIT_FOR_CAB_TOLERANCE = 5
MAX_TRIP = 10  # longest trip a customer asks for, minutes
MAX_TRIP_LEN = 30  # a trip longer than this means something went wrong
MAX_TRIP_LOSS = 2

DEFAULT_ORDERS_FILE = "orders.txt"
CAB_LOG_FILE = "cabs.log"
CUSTOMER_LOG_FILE = "customers.log"
FINAL_WAIT = 3 * 3600  # seconds to let running threads finish

_CHECKS_PER_MINUTE = 60 // CHECK_INTERVAL


def read_csv(path: str) -> list[list[str]]:
    """All non-empty records of a CSV file; every record must have the same number of fields."""
    with open(path, newline="") as handle:
        rows = [row for row in csv.reader(handle) if row]
    if rows:
        width = len(rows[0])
        for number, row in enumerate(rows, 1):
            if len(row) != width:
                raise csv.Error(
                    f"{path}: record {number} has {len(row)} fields, expected {width}"
                )
    return rows


def _by_place(legs: Iterable[Task]) -> list[Task]:
    return sorted(legs, key=lambda leg: leg.place)


def _atoi(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class Simulator:
    """Plays cabs and customers against the dispatcher."""

    def __init__(
        self,
        client: ApiClient,
        stops: Iterable[StopInfo],
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.stops = list(stops)
        self.sleep = sleep
        self.stop_event = threading.Event()

    def _travel(self, from_id: int, to_id: int) -> int:
        return travel_minutes(self.stops, from_id, to_id)

    def _fetch_cab(self, usr: str, cab_id: int) -> Optional[CabInfo]:
        try:
            return self.client.get_entity(usr, f"/cabs/{cab_id}", CabInfo)
        except ApiError:
            return None

    def _fetch_route(self, usr: str) -> Optional[RouteInfo]:
        try:
            return self.client.get_entity(usr, "/routes", RouteInfo)
        except ApiError:
            return None

    def _put_demand(self, usr: str, demand: Demand) -> None:
        try:
            self.client.save_demand("PUT", usr, demand)
        except ApiError as exc:
            log.info("Update of order_id=%d failed: %s", demand.id, exc)

    # CAB
    def run_cab(self, cab_id: int, stand: int) -> None:
        """Serve routes as cab ``cab_id`` starting at ``stand`` until ``stop_event`` is set."""
        usr = f"cab{cab_id}"
        log.info("Starting my shift, cab_id=%d", cab_id)
        cab = self._fetch_cab(usr, cab_id)
        if cab is None:
            log.info("cab_id=%d not activated 1st try", cab_id)
            cab = self._fetch_cab(usr, cab_id)
            if cab is None:
                log.info("cab_id=%d not activated 2nd try", cab_id)
                return

        log.info("Updating cab_id=%d, free at: %d", cab_id, stand)
        self.client.update_cab(usr, cab_id, stand, "FREE")
        # the stored location may be stale, e.g. from the day before
        cab.location = stand

        while not self.stop_event.is_set():
            route = self._fetch_route(usr)
            if route is not None and route.id != -1:
                self._run_route(usr, cab_id, cab, route)
            self.sleep(CHECK_INTERVAL)

    def _run_route(self, usr: str, cab_id: int, cab: CabInfo, route: RouteInfo) -> None:
        log.info("New route to run, cab_id=%d, route_id=%d", cab_id, route.id)
        legs = _by_place(route.legs)
        if not legs:
            log.info("Error - route has no legs, cab_id=%d, route_id=%d", cab_id, route.id)
            return
        first = legs[0]
        if first.from_stand != cab.location:
            log.info(
                "Error, first leg (%d) does not start at cab's location: %d, cab_id=%d, "
                "moving to stand %d",
                first.id, cab.location, cab_id, first.from_stand,
            )
            minutes = self._travel(cab.location, first.from_stand)
            if minutes == -1:
                log.info(
                    "GetDistance failed, cab_id=%d, from: %d to: %d",
                    cab.id, cab.location, first.from_stand,
                )
                self.sleep(SECONDS_PER_TRAVEL_MINUTE)
            else:
                self.sleep(SECONDS_PER_TRAVEL_MINUTE * minutes)
            cab.location = first.from_stand
            self.client.update_cab(usr, cab_id, cab.location, "ASSIGNED")
        cab.location = self.deliver_passengers(usr, legs, cab)
        finished = replace(route, legs=legs, status="COMPLETED")
        self.client.update_entity(usr, "/routes/", finished.to_dict())

    def deliver_passengers(self, usr: str, legs: Sequence[Task], cab: CabInfo) -> int:
        """Drive the legs in order, reporting each one; return the stand the cab ends at.

        The route is read again after every leg, as it may have been extended.
        """
        cab = replace(cab)
        legs = list(legs)
        index = 0
        while index < len(legs):
            self.sleep(STOP_WAIT)
            task = replace(legs[index], status="STARTED")
            log.info(
                "Cab cab_id=%d, is moving from %d to %d, leg_id=%d",
                cab.id, task.from_stand, task.to_stand, task.id,
            )
            self.client.update_entity(usr, "/legs/", task.to_dict())
            minutes = self._travel(task.from_stand, task.to_stand)
            if minutes > 0:
                self.sleep(SECONDS_PER_TRAVEL_MINUTE * minutes)
            cab.location = task.to_stand

            task.status = "COMPLETED"
            self.client.update_entity(usr, "/legs/", task.to_dict())

            if index == len(legs) - 1:
                cab.status = "FREE"
                log.info("Cab is free, cab_id=%d", cab.id)
            else:
                cab.status = "ASSIGNED"
            self.client.update_cab(usr, cab.id, task.to_stand, cab.status)

            try:
                route = self.client.get_entity(usr, "/routes", RouteInfo)
            except ApiError as exc:
                log.info("Could not check route for updates, cab_id=%d, err=%s", cab.id, exc)
            else:
                if len(route.legs) > len(legs):
                    log.info(
                        "Route has been extended by %d legs, cab_id=%d",
                        len(route.legs) - len(legs), cab.id,
                    )
                legs = _by_place(route.legs)
            index += 1
        return cab.location

    # CUSTOMER
    def run_customer(self, cust_id: int, demand: Demand) -> None:
        """Request a trip, wait for a cab, ride it and report the outcome."""
        usr = f"cust{cust_id}"
        log.info(
            "Request cust_id=%d, from=%d to=%d", cust_id, demand.from_stand, demand.to_stand
        )
        demand = replace(
            demand, status="RECEIVED", cab=replace(demand.cab, status="FREE"), id=-1
        )
        try:
            order = self.client.save_demand("POST", usr, demand)
        except ApiError:
            order = None
        if order is None or order.id == -1:
            log.info("Unable to request a cab, cust_id=%d", cust_id)
            return

        log.info("Cab requested, cust_id=%d, order_id=%d", cust_id, order.id)
        self.sleep(CHECK_INTERVAL)  # give the solver some time

        order_id = order.id
        assigned = self.wait_for_assignment(usr, order_id, cust_id)
        if assigned is None:
            log.info("Waited in vain, cust_id=%d, order_id=%d", cust_id, order_id)
            return
        order = assigned
        log.info(
            "Assigned, cust_id=%d, order_id=%d, cab_id=%d", cust_id, order.id, order.cab.id
        )
        if order.eta > order.wait:
            log.info("ETA exceeds Wait, cust_id=%d, order_id=%d", cust_id, order.id)

        order.status = "ACCEPTED"
        self._put_demand(usr, order)
        log.info(
            "Accepted, waiting for that cab, cust_id=%d, order_id=%d, cab_id=%d",
            cust_id, order.id, order.cab.id,
        )

        if not self.has_arrived(
            usr, order.cab.id, demand.from_stand, demand.wait, MAX_WAIT_FOR_CAB_TOLERANCE
        ):
            log.info(
                "Cab has not arrived, cust_id=%d, order_id=%d, cab_id=%d",
                cust_id, order.id, order.cab.id,
            )
            order.status = "CANCELLED"
            self._put_demand(usr, order)
            return

        status = self.take_a_trip(usr, cust_id, order)
        if status != "COMPLETED":
            order.status = "CANCELLED"
            log.info(
                "Status is not COMPLETED, cancelling the trip, cust_id=%d, order_id=%d, cab_id=%d",
                cust_id, order.id, order.cab.id,
            )
            self._put_demand(usr, order)

    def wait_for_assignment(self, usr: str, order_id: int, cust_id: int) -> Optional[Demand]:
        """Poll the order until it is assigned; None when refused or never assigned."""
        for _ in range(MAX_WAIT_FOR_RESPONSE * _CHECKS_PER_MINUTE):
            try:
                order = self.client.get_entity(usr, f"/orders/{order_id}", Demand)
            except ApiError:
                log.info(
                    "Serious error, order not found or received, cust_id=%d, order_id=%d",
                    cust_id, order_id,
                )
            else:
                if order.status == "REFUSED":
                    log.info("Refused, cust_id=%d, order_id=%d", cust_id, order_id)
                    return None
                if order.status == "ASSIGNED":
                    return order
            self.sleep(CHECK_INTERVAL)
        log.info("Not assigned, cust_id=%d, order_id=%d", cust_id, order_id)
        return None

    def has_arrived(
        self, usr: str, cab_id: int, from_stand: int, wait: int, wait_delay: int
    ) -> bool:
        """Whether the cab reaches ``from_stand`` within ``wait + wait_delay`` minutes."""
        for check in range((wait + wait_delay) * _CHECKS_PER_MINUTE):
            self.sleep(CHECK_INTERVAL)
            cab = self._fetch_cab(usr, cab_id)
            if cab is None:
                continue
            if cab.location == from_stand:
                if check > wait * _CHECKS_PER_MINUTE:
                    log.info("Cab was late, cust_id=%s, cab_id=%d", usr, cab_id)
                return True
        return False

    def take_a_trip(self, usr: str, cust_id: int, order: Demand) -> str:
        """Ride the cab to the destination and return the order's final status."""
        order = replace(order)
        log.info(
            "Picked up, cust_id=%d, order_id=%d, cab_id=%d", cust_id, order.id, order.cab.id
        )
        order.status = "PICKEDUP"
        self._put_demand(usr, order)

        arrived_after: Optional[int] = None
        for duration in range(MAX_TRIP_LEN * _CHECKS_PER_MINUTE):
            self.sleep(CHECK_INTERVAL)
            cab = self._fetch_cab(usr, order.cab.id)
            if cab is None:
                continue
            if cab.location == order.to_stand:
                log.info(
                    "Arrived at %d, cust_id=%d, order_id=%d, cab_id=%d",
                    order.to_stand, cust_id, order.id, order.cab.id,
                )
                order.status = "COMPLETED"
                self._put_demand(usr, order)
                arrived_after = duration
                break

        if arrived_after is None:
            log.info(
                "Something wrong - customer has never reached the destination, "
                "cust_id=%d, order_id=%d, cab_id=%d",
                cust_id, order.id, order.cab.id,
            )
            return order.status

        minutes = arrived_after / _CHECKS_PER_MINUTE
        if order.in_pool:
            max_duration = order.distance * (1.0 + order.loss / 100.0) + MAX_TRIP_LOSS
            if minutes > max_duration:
                log.info(
                    "Duration in pool was too long - duration: %d, distance: %d, Loss: %d, "
                    "%f>%f, cust_id=%d, order_id=%d, cab_id=%d",
                    arrived_after // _CHECKS_PER_MINUTE, order.distance, order.loss,
                    minutes, max_duration, cust_id, order.id, order.cab.id,
                )
        elif minutes > order.distance + MAX_TRIP_LOSS:
            log.info(
                "Duration took too long - duration: %d, distance: %d, %f>%f, "
                "cust_id=%d, order_id=%d, cab_id=%d",
                arrived_after // _CHECKS_PER_MINUTE, order.distance, minutes,
                float(order.distance + MAX_TRIP_LOSS), cust_id, order.id, order.cab.id,
            )
        return order.status

    def _spawn_cabs(self) -> None:
        log.info("Starting cabs ...")
        for cab_id in range(MAX_CABS):
            threading.Thread(
                target=self.run_cab,
                args=(cab_id, random.randrange(MAX_STAND)),
                daemon=True,
            ).start()
            self.sleep(0.005)

    def _spawn_customers(self, orders: Sequence[Sequence[str]]) -> None:
        pause = 60 / REQ_PER_MIN
        usr_id = 1
        for _minute in range(MAX_TIME):
            for _request in range(REQ_PER_MIN):
                if usr_id >= len(orders):
                    log.info("Out of orders after cust_id=%d", usr_id - 1)
                    return
                row = orders[usr_id]
                from_stand, to_stand = _atoi(row[0]), _atoi(row[1])
                if from_stand == to_stand or self._travel(from_stand, to_stand) > MAX_TRIP:
                    self.sleep(pause)
                    continue
                demand = Demand(
                    from_stand=from_stand,
                    to_stand=to_stand,
                    wait=MAX_WAIT,
                    loss=MAX_POOL_LOSS,
                    shared=True,
                )
                threading.Thread(
                    target=self.run_customer, args=(usr_id, demand), daemon=True
                ).start()
                self.sleep(pause)
                usr_id += 1


def main(argv: Optional[list[str]] = None) -> int:
    """Run either the fleet of cabs ('cab') or the stream of customers (anything else)."""
    parser = argparse.ArgumentParser(description="Simulate cabs or customers.")
    parser.add_argument("role", nargs="?", default="customer",
                        help="'cab' to simulate cabs, anything else for customers")
    parser.add_argument("--host", default=DEFAULT_HOST, help="dispatcher base URL")
    parser.add_argument("--orders", default=DEFAULT_ORDERS_FILE, help="CSV of from,to stands")
    args = parser.parse_args(argv)

    try:
        orders = read_csv(args.orders)
    except (OSError, csv.Error) as exc:
        log.error("Unable to read file %s: %s", args.orders, exc)
        return 1

    client = ApiClient(args.host)
    try:
        stops = client.get_entity("cab0", "/stops", StopInfo)
    except ApiError as exc:
        log.error("Unable to read stops: %s", exc)
        stops = []
    simulator = Simulator(client, stops)

    log_file = CAB_LOG_FILE if args.role == "cab" else CUSTOMER_LOG_FILE
    logging.basicConfig(filename=log_file, level=logging.INFO, format="%(asctime)s %(message)s")
    if args.role == "cab":
        simulator._spawn_cabs()
    else:
        simulator._spawn_customers(orders)

    simulator.sleep(FINAL_WAIT)
    simulator.stop_event.set()
    return 0