"""Help-desk ticketing: a ticket store, request handling, a TCP server and a terminal client."""

__version__ = "0.1.0"