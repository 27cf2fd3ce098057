# kabina

An HTTP API for a shared-taxi dispatcher, and a simulator that plays cabs
and customers against it to put it under load.

## Install

    pip install .

For the test suite:

    pip install ".[test]"
    pytest

## The server

    kabina-server [--database URL] [--host HOST] [--port PORT] [--log-file FILE]

By default the server listens on `localhost:8080` and logs to `kapi.log`.
`--database` takes a SQLAlchemy database URL. The default is
`postgresql://kabina@localhost:5432/kabina`. To use it you must install a
PostgreSQL driver for SQLAlchemy yourself, because none is a dependency of
this package. The server reads all stops once at start-up. It exits with
status 1 if it cannot read them.

The database must hold the `cab`, `taxi_order`, `route`, `leg` and `stop`
tables. They are described in `kabina.repository.METADATA`, so
`METADATA.create_all(engine)` creates them in an empty database.

Every request needs HTTP basic auth. The user name and the password must
both start with the same prefix, either `cab`, `cust` or `adm`. If they do
not, the answer is 401. The number after the prefix of the user name is the
caller's id, as in `cab12` or `cust28`. Endpoints that need an id answer 403
when the user name carries none.

| Method | Path           | Answer                                             |
|--------|----------------|----------------------------------------------------|
| GET    | `/cabs/<id>`   | the cab's location, status and name                |
| PUT    | `/cabs`        | stores the cab's status and location               |
| GET    | `/orders/<id>` | the order, with the cab assigned to it if any      |
| PUT    | `/orders`      | stores the order's status                          |
| POST   | `/orders`      | creates an order between two stands                |
| PUT    | `/legs`        | stores the leg's status                            |
| GET    | `/routes`      | the caller's first route with status ASSIGNED      |
| PUT    | `/routes`      | stores the route's status                          |
| GET    | `/stops`       | all stops                                          |

The PUT and POST paths also accept a trailing slash, and so do `/routes`
and `/stops`. A missing entity gives 404. A body that is not a valid entity
gives 400. An order whose start and end stands are the same is refused with
400. A new order is stored with the distance between its stands in
kilometres.

Example:

    curl -u cab1:cab1 http://localhost:8080/cabs/1916

To embed the server, build a `kabina.repository.Repository` on a SQLAlchemy
engine. Then pass it, together with the stops, to
`kabina.server.create_app`, which returns a Flask application. The entities
it exchanges are the dataclasses in `kabina.models`: `Cab`, `Order`, `Leg`,
`Route` and `Stop`. Each has `to_dict` and `from_dict`. The status names are
given by `CabStatus`, `OrderStatus` and `LegStatus`.

## The simulator

    kabina-sim cab     # a fleet of cabs that poll for routes and drive them
    kabina-sim         # a stream of customer requests

Options:

- `--host URL` sets the dispatcher. The default is `http://localhost:8080`.
- `--orders FILE` sets the trip requests. The default is `orders.txt`.

The orders file is a CSV file whose rows hold a from-stand and a to-stand.
The first row is never used as a request. The file is read in both modes,
and the simulator exits with status 1 if it cannot read the file.

In cab mode the simulator starts 3000 cabs, each at a random stand.

In customer mode it sends 300 requests a minute for an hour. It skips trips
that start where they end, and trips longer than 10 minutes of driving.

Activity is appended to `cabs.log` or `customers.log`. After it has started
everything, the process waits three hours before it stops.

You can also drive `kabina.simulator.Simulator` yourself. Give it a
`kabina.api_client.ApiClient`, a list of stops and a sleep function of your
own, then call `run_cab`, `run_customer` or the steps of a trip. The
entities the simulator uses are in `kabina.client_models`.

## Distances

`kabina.distance` provides:

- `dist`: the great-circle distance in kilometres between two coordinates
  given in degrees.
- `stop_distance`: the distance between two stops in whole kilometres, or -1
  when a stop is unknown.
- `travel_minutes`: a cab's driving time in minutes, at least 1, or -1 when a
  stop is unknown.
- `random_to`: picks a destination a few stands away from a given one.

## What this package does not do

Nothing here assigns cabs to orders or plans routes. The server stores new
orders and hands out routes that are already in the database. The `route`
and `leg` rows, and the link from an order to its cab, must be written by
some other process.