"""TCP front end that serves ticket requests, one session table per connection."""

from __future__ import annotations

import argparse
import logging
import socketserver
from pathlib import Path

from ticketdesk.auth import DEFAULT_USERS_FILE, UserStore
from ticketdesk.handlers import RequestHandler, SessionRegistry
from ticketdesk.tickets import DEFAULT_TICKETS_FILE, TicketStore

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
BUF_SIZE = 1024
LISTEN_BACKLOG = 3


class TicketRequestHandler(socketserver.BaseRequestHandler):
    """Serves every request arriving on one client connection."""

    server: TicketServer

    def handle(self) -> None:
        host, port = self.client_address[:2]
        log.info("Connessione accettata da %s:%d", host, port)
        handler = RequestHandler(self.server.tickets, self.server.users, SessionRegistry())
        while True:
            try:
                data = self.request.recv(BUF_SIZE)
            except OSError as exc:
                log.info("Read failed o connessione chiusa: %s", exc)
                break
            if not data:
                log.info("Read failed o connessione chiusa")
                break
            message = data.decode("utf-8", "replace").split("\0", 1)[0]
            reply = handler.handle(self, message)
            try:
                self.request.sendall(reply.payload)
            except OSError as exc:
                log.info("Invio fallito: %s", exc)
                break
        log.info("Connessione con il client chiusa.")


class TicketServer(socketserver.ThreadingTCPServer):
    """Threaded TCP server sharing one ticket store and one user store."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = LISTEN_BACKLOG

    def __init__(
        self, address: tuple[str, int], tickets: TicketStore, users: UserStore
    ) -> None:
        self.tickets = tickets
        self.users = users
        super().__init__(address, TicketRequestHandler)


def make_server(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    tickets_path: str | Path = DEFAULT_TICKETS_FILE,
    users_path: str | Path = DEFAULT_USERS_FILE,
) -> TicketServer:
    """Bind a server to ``host:port`` backed by the given data files."""
    return TicketServer((host, port), TicketStore(tickets_path), UserStore(users_path))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ticket server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--tickets", default=DEFAULT_TICKETS_FILE)
    parser.add_argument("--users", default=DEFAULT_USERS_FILE)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        server = make_server(args.host, args.port, args.tickets, args.users)
    except OSError as exc:
        log.error("Bind failed: %s", exc)
        return 1
    with server:
        print(f"Server in ascolto sulla porta {server.server_address[1]}...")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0