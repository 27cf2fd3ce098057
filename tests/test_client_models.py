import json

import pytest

from kabina.client_models import CabInfo, Demand, RouteInfo, StopInfo, Task
from kabina.models import Cab, Leg, Order, Route, Stop


def test_cab_info_round_trip():
    cab = CabInfo(id=5, location=10, status="FREE")
    assert CabInfo.from_dict(json.loads(json.dumps(cab.to_dict()))) == cab


def test_cab_info_reads_server_cab():
    server_cab = Cab(id=2, location=123, status="FREE", name="A2")
    assert CabInfo.from_dict(server_cab.to_dict()) == CabInfo(id=2, location=123, status="FREE")


def test_cab_info_rejects_wrong_type():
    with pytest.raises(TypeError):
        CabInfo.from_dict({"Id": 1.5})


def test_stop_info_round_trip():
    stop = StopInfo(id=1, name="Main", bearing="90", latitude=47.5, longitude=19.0)
    assert StopInfo.from_dict(stop.to_dict()) == stop


def test_stop_info_accepts_numeric_bearing_from_server():
    server_stop = Stop(id=9, no="9", name="North", type="", bearing=180,
                       latitude=47.6, longitude=19.1)
    info = StopInfo.from_dict(server_stop.to_dict())
    assert info.bearing == "180"
    assert info.id == 9
    assert info.latitude == 47.6


def test_stop_info_rejects_object_bearing():
    with pytest.raises(TypeError):
        StopInfo.from_dict({"Bearing": {"deg": 1}})


def test_task_round_trip():
    task = Task(id=3, from_stand=1, to_stand=2, place=1, status="STARTED")
    assert Task.from_dict(task.to_dict()) == task


def test_task_reads_server_leg():
    leg = Leg(id=17081, from_stand=11, to_stand=12, place=2, status="ASSIGNED")
    task = Task.from_dict(leg.to_dict())
    assert (task.id, task.from_stand, task.to_stand, task.place, task.status) == (
        17081, 11, 12, 2, "ASSIGNED")


def test_route_info_reads_server_route():
    route = Route(id=9724, status="ASSIGNED",
                  legs=[Leg(id=1, from_stand=1, to_stand=2, place=0, status="PLANNED")])
    info = RouteInfo.from_dict(json.loads(json.dumps(route.to_dict())))
    assert info.id == 9724
    assert [t.to_stand for t in info.legs] == [2]


def test_route_info_null_legs():
    assert RouteInfo.from_dict({"Id": -1, "Legs": None}).legs == []


def test_demand_round_trip():
    demand = Demand(id=-1, from_stand=4082, to_stand=4083, eta=0, shared=True,
                    in_pool=False, cab=CabInfo(status="FREE"), status="RECEIVED",
                    wait=15, loss=70, distance=0)
    assert Demand.from_dict(json.loads(json.dumps(demand.to_dict()))) == demand


def test_demand_reads_server_order():
    order = Order(id=51150, from_stand=1, to_stand=5, eta=3, in_pool=True, shared=True,
                  cab=Cab(id=8, location=1, status="ASSIGNED"), status="ASSIGNED",
                  max_wait=15, max_loss=70, distance=4)
    demand = Demand.from_dict(order.to_dict())
    assert demand.from_stand == 1
    assert demand.to_stand == 5
    assert demand.wait == 15
    assert demand.loss == 70
    assert demand.cab.id == 8
    assert demand.in_pool is True


def test_server_order_reads_demand():
    demand = Demand(from_stand=4, to_stand=7, shared=True, wait=10, loss=90)
    order = Order.from_dict(demand.to_dict())
    assert (order.from_stand, order.to_stand, order.max_wait, order.max_loss) == (4, 7, 10, 90)


def test_demand_requires_object():
    with pytest.raises(TypeError):
        Demand.from_dict("not an object")