"""HTTP API of the dispatcher: cabs, orders, legs, routes and stops."""

from __future__ import annotations

import argparse
import logging
import re
from collections.abc import Iterable
from http import HTTPStatus
from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from .models import Cab, Leg, Order, Route, Stop
from .repository import NotFoundError, RefusedError, Repository

log = logging.getLogger(__name__)

DEFAULT_DATABASE = "postgresql://kabina@localhost:5432/kabina"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080
DEFAULT_LOG_FILE = "kapi.log"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_CREDENTIAL_PREFIXES = ("cab", "cust", "adm")


class _BadBody(ValueError):
    """The request body is not a valid entity."""


def parse_id(value: Optional[str]) -> int:
    """The integer in a path segment, or -1 when it is not a plain integer."""
    if value is None or not _INTEGER.fullmatch(value):
        return -1
    return int(value)


def user_id_from(username: Optional[str]) -> int:
    """The numeric id in a user name such as 'cab12', 'adm1' or 'cust28'; -1 otherwise."""
    if not username:
        return -1
    if username.startswith(("cab", "adm")):
        return parse_id(username[3:])
    if username.startswith("cust"):
        return parse_id(username[4:])
    return -1


def check_credentials(user: str, password: str) -> bool:
    """Whether the user and password both carry the same known role prefix."""
    return any(
        user.startswith(prefix) and password.startswith(prefix)
        for prefix in _CREDENTIAL_PREFIXES
    )


def _message(status: HTTPStatus, text: str) -> tuple[Response, int]:
    return jsonify(message=text), int(status)


def _current_user() -> int:
    auth = request.authorization
    return user_id_from(auth.username if auth is not None else None)


def _body(kind: Any) -> Any:
    data = request.get_json(silent=True)
    if data is None:
        raise _BadBody("request body is not JSON")
    try:
        return kind.from_dict(data)
    except TypeError as exc:
        raise _BadBody(str(exc)) from exc


def create_app(repository: Repository, stops: Iterable[Stop]) -> Flask:
    """Build the Flask application serving the dispatcher API."""
    app = Flask(__name__)
    stop_list = list(stops)

    @app.before_request
    def _authenticate() -> Optional[Response]:
        auth = request.authorization
        if auth is None or not check_credentials(auth.username or "", auth.password or ""):
            response = jsonify(message="unauthorized")
            response.status_code = int(HTTPStatus.UNAUTHORIZED)
            response.headers["WWW-Authenticate"] = "Basic realm=Restricted"
            return response
        return None

    @app.errorhandler(NotFoundError)
    def _not_found(exc: NotFoundError):
        return _message(HTTPStatus.NOT_FOUND, str(exc))

    @app.errorhandler(RefusedError)
    def _refused(exc: RefusedError):
        return _message(HTTPStatus.BAD_REQUEST, str(exc))

    @app.errorhandler(_BadBody)
    def _bad_body(exc: _BadBody):
        return _message(HTTPStatus.BAD_REQUEST, str(exc))

    # CAB
    @app.get("/cabs/<cab_id>")
    def get_cab(cab_id: str):
        user = _current_user()
        cab = parse_id(cab_id)
        log.info("GET cab_id=%d, usr_id=%d", cab, user)
        if cab == -1 or user == -1:
            return _message(HTTPStatus.FORBIDDEN, "wrong cab_id or user")
        return jsonify(repository.get_cab(cab).to_dict())

    @app.put("/cabs")
    @app.put("/cabs/")
    def put_cab():
        user = _current_user()
        try:
            cab = _body(Cab)
        except _BadBody:
            log.info("PUT cab failed, usr_id=%d", user)
            raise
        log.info(
            "PUT cab_id=%d, status=%s location=%d usr_id=%d",
            cab.id, cab.status, cab.location, user,
        )
        return jsonify(repository.put_cab(cab).to_dict())

    # ORDER
    @app.get("/orders/<order_id>")
    def get_order(order_id: str):
        user = _current_user()
        order = parse_id(order_id)
        log.info("GET order_id=%d, usr_id=%d", order, user)
        if order == -1 or user == -1:
            return _message(HTTPStatus.FORBIDDEN, "wrong order_id or user")
        return jsonify(repository.get_order(order).to_dict())

    @app.put("/orders")
    @app.put("/orders/")
    def put_order():
        user = _current_user()
        try:
            order = _body(Order)
        except _BadBody:
            log.info("PUT order failed, usr_id=%d", user)
            raise
        log.info("PUT order_id=%d, status=%s usr_id=%d", order.id, order.status, user)
        return jsonify(repository.put_order(order).to_dict())

    @app.post("/orders")
    @app.post("/orders/")
    def post_order():
        user = _current_user()
        try:
            order = _body(Order)
        except _BadBody:
            log.info("POST order failed, usr_id=%d", user)
            raise
        log.info("POST order from=%d to=%d usr_id=%d", order.from_stand, order.to_stand, user)
        try:
            saved = repository.post_order(order, user)
        except RefusedError as exc:
            log.info("POST order failed: %s", exc)
            raise
        return jsonify(saved.to_dict())

    # LEG
    @app.put("/legs")
    @app.put("/legs/")
    def put_leg():
        user = _current_user()
        try:
            leg = _body(Leg)
        except _BadBody:
            log.info("PUT leg failed, usr_id=%d", user)
            raise
        log.info("PUT leg_id=%d, status=%s usr_id=%d", leg.id, leg.status, user)
        return jsonify(repository.put_leg(leg).to_dict())

    # ROUTE
    @app.get("/routes")
    @app.get("/routes/")
    def get_route():
        user = _current_user()
        log.info("GET route usr_id=%d", user)
        if user == -1:
            return _message(HTTPStatus.FORBIDDEN, "wrong user")
        return jsonify(repository.get_route(user).to_dict())

    @app.put("/routes")
    @app.put("/routes/")
    def put_route():
        user = _current_user()
        try:
            route = _body(Route)
        except _BadBody:
            log.info("PUT route failed, usr_id=%d", user)
            raise
        log.info("PUT route_id=%d, status=%s usr_id=%d", route.id, route.status, user)
        return jsonify(repository.put_route(route).to_dict())

    # STOP
    @app.get("/stops")
    @app.get("/stops/")
    def get_stops():
        user = _current_user()
        log.info("GET stops usr_id=%d", user)
        if user == -1:
            return _message(HTTPStatus.FORBIDDEN, "wrong user")
        return jsonify([stop.to_dict() for stop in stop_list])

    return app


def main(argv: Optional[list[str]] = None) -> int:
    """Connect to the database, load the stops and serve the API."""
    parser = argparse.ArgumentParser(description="Cab dispatcher HTTP API.")
    parser.add_argument("--database", default=DEFAULT_DATABASE, help="SQLAlchemy database URL")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    args = parser.parse_args(argv)

    logging.basicConfig(
        filename=args.log_file,
        level=logging.INFO,
        format="%(asctime)s %(message)s",
    )
    log.info("Started")

    try:
        engine = create_engine(args.database)
        repository = Repository(engine)
        stops = repository.get_stops()
    except SQLAlchemyError as exc:
        log.error("Unable to get stops: %s", exc)
        return 1
    log.info("Read %d stops", len(stops))

    app = create_app(repository, stops)
    app.run(host=args.host, port=args.port)
    return 0