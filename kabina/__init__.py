"""Shared-taxi dispatch HTTP API, database repository, distance helpers and cab/customer simulator."""

__version__ = "0.1.0"