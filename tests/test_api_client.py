import base64
import json

import pytest
import requests
import responses

from kabina.api_client import DEFAULT_HOST, ApiClient, ApiError
from kabina.client_models import CabInfo, Demand, RouteInfo, StopInfo

HOST = "http://localhost:8080"


@pytest.fixture
def client():
    api = ApiClient(HOST, 5)
    api.retry_delay = 0
    return api


def _basic(usr):
    return "Basic " + base64.b64encode(f"{usr}:{usr}".encode()).decode()


def test_default_host_is_local_dispatcher():
    assert ApiClient().host == DEFAULT_HOST == "http://localhost:8080"


def test_get_entity_decodes_cab_and_sends_basic_auth(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/cabs/7",
                 json={"Id": 7, "Location": 12, "Status": "FREE"})
        cab = client.get_entity("cab7", "/cabs/7", CabInfo)
        request = rsps.calls[0].request
    assert cab == CabInfo(id=7, location=12, status="FREE")
    assert request.headers["Authorization"] == _basic("cab7")
    assert "Content-Type" not in request.headers


def test_get_entity_decodes_list_of_stops(client):
    payload = [
        {"Id": 1, "Name": "A", "Bearing": 90, "Latitude": 49.5, "Longitude": 19.0},
        {"Id": 2, "Name": "B", "Bearing": "N", "Latitude": 49.6, "Longitude": 19.1},
    ]
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/stops", json=payload)
        stops = client.get_entity("cab0", "/stops", StopInfo)
    assert [stop.id for stop in stops] == [1, 2]
    assert stops[0].bearing == "90"
    assert stops[1].latitude == 49.6


def test_get_entity_decodes_route_with_legs(client):
    payload = {"Id": 3, "Status": "ASSIGNED", "Legs": [
        {"Id": 10, "FromStand": 1, "ToStand": 2, "Place": 0, "Status": "ASSIGNED"},
    ]}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/routes", json=payload)
        route = client.get_entity("cab3", "/routes", RouteInfo)
    assert route.id == 3
    assert route.legs[0].from_stand == 1
    assert route.legs[0].to_stand == 2


def test_get_entity_empty_body_raises(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/routes", body=b"")
        with pytest.raises(ApiError, match="Empty body"):
            client.get_entity("cab1", "/routes", RouteInfo)


def test_get_entity_message_reply_raises(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/cabs/1", status=404, json={"message": "not found"})
        with pytest.raises(ApiError):
            client.get_entity("cab1", "/cabs/1", CabInfo)


def test_get_entity_invalid_json_raises(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/cabs/1", body=b"{broken")
        with pytest.raises(ApiError):
            client.get_entity("cab1", "/cabs/1", CabInfo)


def test_send_request_retries_after_connection_error(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/stops", body=requests.ConnectionError("down"))
        rsps.add(responses.GET, HOST + "/stops", body=b"[]")
        content = client.send_request("cab1", "/stops", "GET")
        calls = len(rsps.calls)
    assert content == b"[]"
    assert calls == 2


def test_send_request_gives_up_after_second_connection_error(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, HOST + "/stops", body=requests.ConnectionError("down"))
        rsps.add(responses.GET, HOST + "/stops", body=requests.ConnectionError("down"))
        with pytest.raises(ApiError):
            client.send_request("cab1", "/stops", "GET")


def test_update_cab_puts_json_body(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, HOST + "/cabs/", json={"id": 5})
        ok = client.update_cab("cab5", 5, 44, "FREE")
        request = rsps.calls[0].request
    assert ok is True
    assert json.loads(request.body) == CabInfo(id=5, location=44, status="FREE").to_dict()
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Authorization"] == _basic("cab5")


def test_update_entity_retries_once_on_error_reply(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, HOST + "/legs/", json={"message": "busy"})
        rsps.add(responses.PUT, HOST + "/legs/", json={"Id": 9})
        ok = client.update_entity("cab1", "/legs/", {"Id": 9, "Status": "STARTED"})
        calls = len(rsps.calls)
    assert ok is True
    assert calls == 2


def test_update_entity_reports_failure(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, HOST + "/routes/", json={"message": "no"})
        rsps.add(responses.PUT, HOST + "/routes/", json={"message": "no"})
        ok = client.update_entity("cab1", "/routes/", {"Id": 1, "Status": "COMPLETED"})
    assert ok is False


def test_save_demand_post_returns_stored_demand(client):
    demand = Demand(id=-1, from_stand=4082, to_stand=4083, shared=True,
                    status="RECEIVED", wait=15, loss=70)
    stored = Demand(id=51150, from_stand=4082, to_stand=4083, shared=True,
                    status="RECEIVED", wait=15, loss=70)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, HOST + "/orders/", json=stored.to_dict())
        result = client.save_demand("POST", "cust28", demand)
        request = rsps.calls[0].request
    assert result == stored
    assert Demand.from_dict(json.loads(request.body)) == demand
    assert request.headers["Authorization"] == _basic("cust28")


def test_save_demand_put_returns_none(client):
    demand = Demand(id=12, status="ACCEPTED")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, HOST + "/orders/", json=demand.to_dict())
        result = client.save_demand("PUT", "cust1", demand)
        body = json.loads(rsps.calls[0].request.body)
    assert result is None
    assert body["Status"] == "ACCEPTED"


def test_save_demand_empty_body_raises(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, HOST + "/orders/", body=b"")
        with pytest.raises(ApiError, match="Empty body"):
            client.save_demand("PUT", "cust1", Demand(id=1))


def test_save_demand_error_reply_raises(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, HOST + "/orders/", status=400, json={"message": "Refused"})
        with pytest.raises(ApiError):
            client.save_demand("POST", "cust1", Demand(from_stand=1, to_stand=1))