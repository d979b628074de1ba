"""Command parsing, session tracking and request handling for the ticket server."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from ticketdesk.auth import UserStore
from ticketdesk.tickets import (
    SearchField,
    Ticket,
    TicketError,
    TicketStore,
    TicketSyntaxError,
    render_tickets,
)

log = logging.getLogger(__name__)

MAX_SESSIONS = 100
_USERNAME_LIMIT = 63
_SHORT_COPY = 128
_LONG_COPY = 512
_DETAIL_SIZE = 1024
_LOGIN_REPLY_SIZE = 64
_ROLE_SIZE = 32
_ROLE_REPLY_SIZE = 64
_SEARCH_LIMIT = 4096
_LOGIN_BODY_OFFSET = len("LOGIN|")

UNKNOWN_COMMAND = "ERR|Comando sconosciuto"
INVALID_FORMAT = "ERR|Formato comando non valido"
READ_ERROR = "ERR|Errore lettura tickets"
NO_TICKETS = "OK|Nessun ticket presente"
NO_AGENT_TICKETS = "Nessun ticket a te assegnato"
NOT_FOUND = "ERR|Ticket non trovato"
NO_SESSION = "ERR|Sessione non trovata"
NEW_TICKET_SYNTAX = "ERR|Sintassi: NEW_TICKET|Titolo|Descrizione|Priorita"
SAVE_ERROR = "ERR|Errore salvataggio"
LOGIN_FORMAT = "ERR|Formato: LOGIN|username|password"
BAD_CREDENTIALS = "ERR|Credenziali non valide"
NO_RESULTS = "ERR|Nessun risultato trovato"
UPDATE_DONE = "OK|Modifica completata"
UPDATE_FAILED = "ERR|Modifica fallita"
UPDATE_NOT_FOUND = "OK|Ticket non trovato"
NOT_OWNER = "ERR|Non autorizzato: il ticket non ti appartiene"
USER_NOT_FOUND = "ERR|Utente non trovato"


class Command(Enum):
    """Request kinds, keyed by the prefix that selects them, in matching order."""

    NEW_TICKET = "NEW_TICKET|"
    GET_ALL_BY_USER = "GET_ALL_TICKETS_BY_USER|"
    CHECK_USER_ROLE = "CHECK_USER_ROLE|"
    GET_ALL_TICKETS = "GET_ALL_TICKETS|"
    GET_TICKETS_BY_AGENT = "GET_ALL_TICKETS_BY_AGENT|"
    GET_BY_ID_BY_USER = "GET_TICKET_BY_ID_AND_USER|"
    BY_TITLE_BY_USER = "GET_TICKET_BY_TITOLO_BY_USER|"
    BY_DESCRIPTION_BY_USER = "GET_TICKET_BY_DESCRIZIONE_BY_USER|"
    BY_STATUS_BY_USER = "GET_TICKET_BY_STATO_BY_USER|"
    UPDATE_YOUR_TICKET = "UPDATE_YOUR_TICKET|"
    UPDATE_TICKET_STATUS = "UPDATE_TICKET_STATUS|"
    UPDATE_ASSIGNED_AGENT = "UPDATE_ASSIGNED_AGENT|"
    UPDATE_TICKET_PRIORITY = "UPDATE_TICKET_PRIORITY|"
    GET_TICKET_BY_ID = "GET_TICKET_BY_ID|"
    LOGIN = "LOGIN"
    UNKNOWN = ""


def parse_command(message: str) -> Command:
    """Return the first command whose prefix starts the message."""
    return next(
        (c for c in Command if c is not Command.UNKNOWN and message.startswith(c.value)),
        Command.UNKNOWN,
    )


@dataclass(frozen=True)
class Reply:
    """Text sent back to the client for one request."""

    text: str

    @property
    def payload(self) -> bytes:
        return self.text.encode("utf-8")


class SessionRegistry:
    """Maps connections to the user logged in on them, up to a fixed capacity."""

    def __init__(self, capacity: int = MAX_SESSIONS) -> None:
        self.capacity = capacity
        self._users: dict[object, str] = {}

    def save(self, connection_id: object, username: str) -> None:
        """Record the user of a connection; new ones are dropped once full."""
        name = username[:_USERNAME_LIMIT]
        if connection_id in self._users or len(self._users) < self.capacity:
            self._users[connection_id] = name

    def username_for(self, connection_id: object) -> str | None:
        return self._users.get(connection_id)


def _clip(text: str, size: int) -> str:
    """Keep what fits in a buffer of ``size`` bytes including its terminator."""
    return text.encode("utf-8")[: size - 1].decode("utf-8", "ignore")


def _tokens(text: str) -> list[str]:
    """Split on '|' dropping empty pieces, as a tokenizer on that delimiter does."""
    return [part for part in text.split("|") if part]


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


_SEARCH_PATTERN = re.compile(r"([^|]{1,127})\|\s*(\S{1,63})")

_SEARCH_FIELDS = {
    Command.BY_TITLE_BY_USER: SearchField.TITLE,
    Command.BY_DESCRIPTION_BY_USER: SearchField.DESCRIPTION,
    Command.BY_STATUS_BY_USER: SearchField.STATUS,
}


class RequestHandler:
    """Turns one request message into the reply the server sends back."""

    def __init__(
        self,
        tickets: TicketStore,
        users: UserStore,
        sessions: SessionRegistry | None = None,
    ) -> None:
        self.tickets = tickets
        self.users = users
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self._dispatch: dict[Command, Callable[[object, str], str]] = {
            Command.NEW_TICKET: self._new_ticket,
            Command.GET_ALL_BY_USER: self._all_by_user,
            Command.GET_BY_ID_BY_USER: self._by_id_and_user,
            Command.BY_TITLE_BY_USER: self._search,
            Command.BY_DESCRIPTION_BY_USER: self._search,
            Command.BY_STATUS_BY_USER: self._search,
            Command.LOGIN: self._login,
            Command.GET_ALL_TICKETS: self._all_tickets,
            Command.CHECK_USER_ROLE: self._check_role,
            Command.GET_TICKETS_BY_AGENT: self._by_agent,
            Command.UPDATE_YOUR_TICKET: self._update_own,
            Command.UPDATE_TICKET_STATUS: self._update_status,
            Command.UPDATE_ASSIGNED_AGENT: self._assign_agent,
            Command.UPDATE_TICKET_PRIORITY: self._update_priority,
            Command.GET_TICKET_BY_ID: self._by_id,
        }

    def handle(self, connection_id: object, message: str) -> Reply:
        """Process one request from ``connection_id`` and return the reply."""
        log.info("Messaggio ricevuto: %s", message)
        action = self._dispatch.get(parse_command(message))
        if action is None:
            return Reply(UNKNOWN_COMMAND)
        return Reply(action(connection_id, message))

    # listings

    def _listing(self, fetch: Callable[[], Iterable[Ticket]], empty_text: str) -> str:
        try:
            tickets = fetch()
        except TicketError:
            return READ_ERROR
        text = render_tickets(tickets)
        log.info("Ticket letti: %d", text.count("ID: "))
        return text or empty_text

    def _all_tickets(self, connection_id: object, message: str) -> str:
        return self._listing(self.tickets.all_tickets, NO_TICKETS)

    def _all_by_user(self, connection_id: object, message: str) -> str:
        username = message[len(Command.GET_ALL_BY_USER.value):]
        return self._listing(lambda: self.tickets.by_user(username), NO_TICKETS)

    def _by_agent(self, connection_id: object, message: str) -> str:
        agent = message[len(Command.GET_TICKETS_BY_AGENT.value):]
        return self._listing(lambda: self.tickets.by_agent(agent), NO_AGENT_TICKETS)

    def _search(self, connection_id: object, message: str) -> str:
        command = parse_command(message)
        match = _SEARCH_PATTERN.match(message[len(command.value):])
        if match is None:
            return NO_RESULTS
        keyword, username = match.groups()
        try:
            found = self.tickets.search_by_user(username, keyword, _SEARCH_FIELDS[command])
        except TicketError:
            return NO_RESULTS
        return render_tickets(found, _SEARCH_LIMIT) or NO_RESULTS

    # single tickets

    def _by_id_and_user(self, connection_id: object, message: str) -> str:
        copy = message[: _SHORT_COPY - 1]
        parts = _tokens(copy[len(Command.GET_BY_ID_BY_USER.value):])
        if len(parts) < 2:
            return INVALID_FORMAT
        ticket = self.tickets.get_for_user(_atoi(parts[0]), parts[1])
        if ticket is None:
            return NOT_FOUND
        return _clip(ticket.describe(include_creator=False), _DETAIL_SIZE)

    def _by_id(self, connection_id: object, message: str) -> str:
        copy = message[: _SHORT_COPY - 1]
        parts = _tokens(copy[len(Command.GET_TICKET_BY_ID.value):])
        if not parts:
            return INVALID_FORMAT
        ticket = self.tickets.get(_atoi(parts[0]))
        if ticket is None:
            return NOT_FOUND
        return _clip(ticket.describe(include_creator=True) + "\n", _DETAIL_SIZE)

    def _new_ticket(self, connection_id: object, message: str) -> str:
        username = self.sessions.username_for(connection_id)
        if username is None:
            return NO_SESSION
        try:
            ticket = self.tickets.create_from_message(message, username)
        except TicketSyntaxError:
            return NEW_TICKET_SYNTAX
        except TicketError:
            return SAVE_ERROR
        log.info("Ticket salvato (ID: %d)", ticket.id)
        return f"OK|Ticket salvato con ID {ticket.id}"

    # accounts

    def _login(self, connection_id: object, message: str) -> str:
        copy = message[: _SHORT_COPY - 1]
        parts = _tokens(copy[_LOGIN_BODY_OFFSET:])
        if len(parts) < 2:
            return LOGIN_FORMAT
        username, secret = parts[0], parts[1]
        role = self.users.authenticate(username, secret)
        if role is None:
            return BAD_CREDENTIALS
        self.sessions.save(connection_id, username)
        return _clip(f"OK|Login riuscito|{role}", _LOGIN_REPLY_SIZE)

    def _check_role(self, connection_id: object, message: str) -> str:
        username = message[len(Command.CHECK_USER_ROLE.value):]
        role = self.users.get_role(username)
        if role is None:
            return USER_NOT_FOUND
        return _clip(f"OK|{_clip(role, _ROLE_SIZE)}", _ROLE_REPLY_SIZE)

    # updates

    def _update_own(self, connection_id: object, message: str) -> str:
        copy = message[: _LONG_COPY - 1]
        parts = _tokens(copy[len(Command.UPDATE_YOUR_TICKET.value):])
        username = self.sessions.username_for(connection_id)
        if len(parts) < 3 or username is None:
            return INVALID_FORMAT
        ticket_id, title, description = parts[:3]
        try:
            changed = self.tickets.update_title_and_description(
                _atoi(ticket_id), username, title, description
            )
        except TicketError:
            return UPDATE_FAILED
        return UPDATE_DONE if changed else NOT_OWNER

    def _simple_update(
        self, command: Command, message: str, apply: Callable[[int, str], bool]
    ) -> str:
        copy = message[: _LONG_COPY - 1]
        parts = _tokens(copy[len(command.value):])
        if len(parts) < 2:
            return INVALID_FORMAT
        try:
            changed = apply(_atoi(parts[0]), parts[1])
        except TicketError:
            return UPDATE_FAILED
        return UPDATE_DONE if changed else UPDATE_NOT_FOUND

    def _assign_agent(self, connection_id: object, message: str) -> str:
        return self._simple_update(
            Command.UPDATE_ASSIGNED_AGENT, message, self.tickets.assign_agent
        )

    def _update_status(self, connection_id: object, message: str) -> str:
        return self._simple_update(
            Command.UPDATE_TICKET_STATUS, message, self.tickets.update_status
        )

    def _update_priority(self, connection_id: object, message: str) -> str:
        return self._simple_update(
            Command.UPDATE_TICKET_PRIORITY, message, self.tickets.update_priority
        )