import pytest
from sqlalchemy import create_engine, insert, select

from kabina.distance import stop_distance
from kabina.models import Cab, Leg, Order, Route
from kabina.repository import METADATA, NotFoundError, RefusedError, Repository


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'kabina.db'}")
    METADATA.create_all(eng)
    with eng.begin() as conn:
        conn.execute(
            insert(METADATA.tables["stop"]),
            [
                {"id": 1, "no": "1", "name": "Alpha", "type": None, "bearing": 0,
                 "latitude": 52.0, "longitude": 21.0},
                {"id": 2, "no": "2", "name": "Beta", "type": "bus", "bearing": 90,
                 "latitude": 52.1, "longitude": 21.1},
            ],
        )
    yield eng
    eng.dispose()


@pytest.fixture
def repo(engine):
    return Repository(engine)


def _status_of(engine, table, row_id):
    tbl = METADATA.tables[table]
    with engine.connect() as conn:
        return conn.execute(select(tbl.c.status).where(tbl.c.id == row_id)).scalar()


def test_get_missing_cab_raises(repo):
    with pytest.raises(NotFoundError):
        repo.get_cab(42)


def test_post_cab_round_trip(repo):
    cab = repo.post_cab(Cab(location=7, status="FREE", name="A2"))
    loaded = repo.get_cab(cab.id)
    assert loaded == Cab(id=cab.id, location=7, status="FREE", name="A2")


def test_put_cab_updates_status_and_location(repo):
    cab = repo.post_cab(Cab(location=7, status="FREE", name="A2"))
    returned = repo.put_cab(Cab(id=cab.id, location=123, status="CHARGING", name="A2"))
    assert returned.location == 123
    loaded = repo.get_cab(cab.id)
    assert (loaded.location, loaded.status) == (123, "CHARGING")


def test_unknown_cab_status_is_stored_as_zero(repo, engine):
    cab = repo.post_cab(Cab(location=1, status="FREE", name="X"))
    repo.put_cab(Cab(id=cab.id, location=1, status="BROKEN"))
    assert _status_of(engine, "cab", cab.id) == 0
    assert repo.get_cab(cab.id).status == "ASSIGNED"


def test_post_order_same_stands_refused(repo):
    with pytest.raises(RefusedError):
        repo.post_order(Order(from_stand=1, to_stand=1), 28)


def test_post_order_round_trip(repo, engine):
    order = repo.post_order(
        Order(from_stand=1, to_stand=2, max_wait=10, max_loss=90, shared=True), 28
    )
    loaded = repo.get_order(order.id)
    assert loaded.id == order.id
    assert (loaded.from_stand, loaded.to_stand) == (1, 2)
    assert (loaded.max_wait, loaded.max_loss, loaded.shared) == (10, 90, True)
    assert loaded.eta == -1
    assert loaded.in_pool is False
    assert loaded.status == "ASSIGNED"
    assert loaded.distance == stop_distance(repo.get_stops(), 1, 2)
    orders = METADATA.tables["taxi_order"]
    with engine.connect() as conn:
        row = conn.execute(select(orders).where(orders.c.id == order.id)).one()
    assert row.customer_id == 28
    assert row.received is not None


def test_post_order_unknown_stand_stores_minus_one(repo):
    order = repo.post_order(Order(from_stand=1, to_stand=999), 3)
    assert repo.get_order(order.id).distance == -1


def test_get_missing_order_raises(repo):
    with pytest.raises(NotFoundError):
        repo.get_order(51150)


def test_get_order_with_cab(repo, engine):
    cab = repo.post_cab(Cab(location=5, status="ASSIGNED", name="C5"))
    order = repo.post_order(Order(from_stand=1, to_stand=2), 4)
    orders = METADATA.tables["taxi_order"]
    with engine.begin() as conn:
        conn.execute(orders.update().where(orders.c.id == order.id).values(cab_id=cab.id))
    loaded = repo.get_order(order.id)
    assert loaded.cab == Cab(id=cab.id, location=5, status="ASSIGNED", name="C5")


def test_get_order_with_missing_cab_raises(repo, engine):
    order = repo.post_order(Order(from_stand=1, to_stand=2), 4)
    orders = METADATA.tables["taxi_order"]
    with engine.begin() as conn:
        conn.execute(orders.update().where(orders.c.id == order.id).values(cab_id=777))
    with pytest.raises(NotFoundError):
        repo.get_order(order.id)


def test_put_order_updates_status(repo):
    order = repo.post_order(Order(from_stand=1, to_stand=2), 4)
    order.status = "PICKEDUP"
    repo.put_order(order)
    assert repo.get_order(order.id).status == "PICKEDUP"


def _add_route(engine, route_id, cab_id, status, legs):
    with engine.begin() as conn:
        conn.execute(insert(METADATA.tables["route"]).values(id=route_id, cab_id=cab_id, status=status))
        for leg_id, from_stand, to_stand, place, leg_status in legs:
            conn.execute(
                insert(METADATA.tables["leg"]).values(
                    id=leg_id, from_stand=from_stand, to_stand=to_stand,
                    place=place, status=leg_status, route_id=route_id,
                )
            )


def test_get_route_without_assignment_raises(repo, engine):
    _add_route(engine, 5, 2, 6, [])
    with pytest.raises(NotFoundError):
        repo.get_route(2)


def test_get_route_returns_first_assigned_with_legs(repo, engine):
    _add_route(engine, 9, 2, 1, [(91, 1, 2, 0, 1)])
    _add_route(engine, 8, 2, 1, [(81, 1, 2, 0, 1), (82, 2, 1, 1, 5)])
    route = repo.get_route(2)
    assert route.id == 8
    assert route.status == "ASSIGNED"
    assert route.legs == [
        Leg(id=81, from_stand=1, to_stand=2, place=0, status="ASSIGNED"),
        Leg(id=82, from_stand=2, to_stand=1, place=1, status="STARTED"),
    ]


def test_put_leg_and_route(repo, engine):
    _add_route(engine, 3, 1, 1, [(31, 1, 2, 0, 1)])
    repo.put_leg(Leg(id=31, status="COMPLETED"))
    assert repo.get_route(1).legs[0].status == "COMPLETED"
    returned = repo.put_route(Route(id=3, status="COMPLETED"))
    assert returned.status == "COMPLETED"
    with pytest.raises(NotFoundError):
        repo.get_route(1)


def test_get_stops(repo):
    stops = repo.get_stops()
    by_id = {stop.id: stop for stop in stops}
    assert set(by_id) == {1, 2}
    assert by_id[1].type == ""
    assert by_id[2].type == "bus"
    assert by_id[2].bearing == 90
    assert (by_id[2].latitude, by_id[2].longitude) == (52.1, 21.1)
    assert by_id[1].name == "Alpha"