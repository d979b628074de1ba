"""Console input helpers and the request/response connection used by the client."""

from __future__ import annotations

import socket
from collections.abc import Callable, Iterable
from enum import Enum

from ticketdesk.tickets import Priority, Status

Reader = Callable[[str], str]

RESPONSE_SIZE = 8192
PRIORITY_CHOICES = tuple(p.label() for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW))
STATUS_CHOICES = tuple(s.label() for s in Status)
RECEIVE_ERROR = "Errore durante la ricezione della risposta dal server."


class TicketField(Enum):
    """Editable ticket fields with their prompt name and maximum length."""

    TITLE = ("titolo", 99)
    DESCRIPTION = ("descrizione", 255)
    PRIORITY = ("priorità", 19)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def max_length(self) -> int:
        return self.value[1]


class FieldTooLongError(ValueError):
    """A ticket field typed by the user exceeds its maximum length."""

    def __init__(self, field: TicketField) -> None:
        super().__init__(
            f"Il {field.label} supera la lunghezza massima di {field.max_length} caratteri."
        )
        self.field = field


def read_input(prompt: str, reader: Reader = input) -> str:
    """Show ``prompt`` and return the line typed, without its newline."""
    return reader(prompt).split("\n", 1)[0]


def is_valid_input(value: str, choices: Iterable[str]) -> bool:
    """True if ``value`` equals one of ``choices`` ignoring case."""
    lowered = value.lower()
    return any(lowered == choice.lower() for choice in choices)


def prompt_choice(
    prompt: str, choices: Iterable[str], error_message: str, reader: Reader = input
) -> str:
    """Ask until the answer is one of ``choices``, printing ``error_message`` otherwise."""
    options = tuple(choices)
    while True:
        answer = read_input(prompt, reader)
        if is_valid_input(answer, options):
            return answer
        print(error_message)


def _read_field(field: TicketField, reader: Reader) -> str:
    text = read_input(f"Inserisci il {field.label} del ticket: ", reader)
    if len(text) > field.max_length:
        raise FieldTooLongError(field)
    return text


def build_ticket_message(reader: Reader = input) -> str:
    """Ask for title, description and priority and build a NEW_TICKET request."""
    title = _read_field(TicketField.TITLE, reader)
    description = _read_field(TicketField.DESCRIPTION, reader)
    priority = prompt_choice(
        "Inserisci la priorità del ticket (Alta / Media / Bassa): ",
        PRIORITY_CHOICES,
        "Priorità non valida. Riprova.",
        reader,
    )
    return f"NEW_TICKET|{title}|{description}|{priority}"


class Connection:
    """A client socket that sends one request and reads one reply at a time."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock

    def request(self, message: str) -> str:
        """Send ``message`` and return the server's reply."""
        self.sock.sendall(message.encode("utf-8"))
        data = self.sock.recv(RESPONSE_SIZE - 1)
        if not data:
            raise ConnectionError(RECEIVE_ERROR)
        return data.decode("utf-8", "replace")

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()