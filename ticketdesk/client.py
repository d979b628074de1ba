"""Command-line client: connects, logs in and opens the menu for the user's role."""

from __future__ import annotations

import argparse
import socket
import sys

from ticketdesk.client_utils import Connection, FieldTooLongError, Reader, read_input
from ticketdesk.menus import run_agent_menu, run_client_menu

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
MAX_ATTEMPTS = 3
ROLE_CLIENT = "CLIENT"
ROLE_AGENT = "AGENTE"

_CREDENTIAL_LIMIT = 63
_LOGIN_MESSAGE_SIZE = 256
_LOGIN_OK = "OK|Login riuscito|"
_LOGIN_EXHAUSTED = "ERR|Login fallito dopo 3 tentativi"
_EXHAUSTED_TEXT = "Hai esaurito i tentativi. Connessione terminata."
_USERNAME_PROMPT = "Login\nUsername(mail): "
_SECOND_PROMPT = "Password: "


class LoginFailed(Exception):
    """The user could not log in within the allowed attempts."""


def login(connection: Connection, reader: Reader = input) -> tuple[str, str]:
    """Ask for credentials until the server accepts them; return (username, role)."""
    for _ in range(MAX_ATTEMPTS):
        username = read_input(_USERNAME_PROMPT, reader)[:_CREDENTIAL_LIMIT]
        password = read_input(_SECOND_PROMPT, reader)[:_CREDENTIAL_LIMIT]
        message = f"LOGIN|{username}|{password}"
        message = message.encode("utf-8")[: _LOGIN_MESSAGE_SIZE - 1].decode("utf-8", "ignore")
        response = connection.request(message)
        for role in (ROLE_CLIENT, ROLE_AGENT):
            if response.startswith(_LOGIN_OK + role):
                return username, role
        if response.startswith(_LOGIN_EXHAUSTED):
            raise LoginFailed(_EXHAUSTED_TEXT)
        print(f"Login fallito: {response}")
    raise LoginFailed(_EXHAUSTED_TEXT)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ticket client.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)

    try:
        sock = socket.create_connection((args.host, args.port))
    except OSError as exc:
        print(f"Connection failed: {exc}", file=sys.stderr)
        return 1
    print("Connessione al server avvenuta con successo.")

    with Connection(sock) as connection:
        try:
            username, role = login(connection)
        except LoginFailed as exc:
            print(exc)
            return 1
        except OSError as exc:
            print(f"Errore nella comunicazione con il server: {exc}", file=sys.stderr)
            return 1
        except EOFError:
            return 1

        menu = run_client_menu if role == ROLE_CLIENT else run_agent_menu
        try:
            menu(connection, username)
        except FieldTooLongError as exc:
            print(f"Errore: {exc}", file=sys.stderr)
            return 1
    return 0