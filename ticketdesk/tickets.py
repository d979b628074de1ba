"""Ticket records and their fixed-size binary store."""

from __future__ import annotations

import os
import struct
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from pathlib import Path

DEFAULT_TICKETS_FILE = "tickets.db"
DEFAULT_AGENT = "nessuno"
RENDER_LIMIT = 8192
_ENTRY_LIMIT = 511
_MESSAGE_LIMIT = 1023
_NEW_TICKET_PREFIX_LEN = len("NEW_TICKET|")

_TITLE_SIZE = 100
_DESCRIPTION_SIZE = 256
_DATE_SIZE = 20
_AGENT_SIZE = 50
_USERNAME_SIZE = 50

_RECORD = struct.Struct(
    f"<i{_TITLE_SIZE}s{_DESCRIPTION_SIZE}s{_DATE_SIZE}sii{_AGENT_SIZE}s{_USERNAME_SIZE}s"
)
RECORD_SIZE = _RECORD.size


class TicketError(Exception):
    """The ticket store could not be read or written."""


class TicketSyntaxError(TicketError):
    """A new-ticket message lacks title, description or priority."""


class Priority(Enum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @classmethod
    def parse(cls, text: str) -> Priority:
        """Parse a label case-insensitively; unknown text means LOW."""
        lowered = text.lower()
        return next((p for p in cls if p.label().lower() == lowered), cls.LOW)

    def label(self) -> str:
        return _PRIORITY_LABELS[self]


_PRIORITY_LABELS = {Priority.HIGH: "Alta", Priority.MEDIUM: "Media", Priority.LOW: "Bassa"}


class Status(Enum):
    OPEN = 0
    IN_PROGRESS = 1
    CLOSED = 2

    @classmethod
    def parse(cls, text: str) -> Status:
        """Parse a label case-insensitively; unknown text means OPEN."""
        lowered = text.lower()
        return next((s for s in cls if s.label().lower() == lowered), cls.OPEN)

    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {Status.OPEN: "Aperto", Status.IN_PROGRESS: "In Corso", Status.CLOSED: "Chiuso"}


class SearchField(Enum):
    TITLE = 0
    DESCRIPTION = 1
    STATUS = 2


def _encode(text: str, size: int) -> bytes:
    raw = text.encode("utf-8")[: size - 1]
    return raw.decode("utf-8", "ignore").encode("utf-8")


def _decode(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


@dataclass
class Ticket:
    id: int
    title: str
    description: str
    created: str
    priority: Priority = Priority.LOW
    status: Status = Status.OPEN
    agent: str = DEFAULT_AGENT
    username: str = ""

    def to_bytes(self) -> bytes:
        """Encode as one fixed-size record; long text fields are truncated."""
        return _RECORD.pack(
            self.id,
            _encode(self.title, _TITLE_SIZE),
            _encode(self.description, _DESCRIPTION_SIZE),
            _encode(self.created, _DATE_SIZE),
            self.priority.value,
            self.status.value,
            _encode(self.agent, _AGENT_SIZE),
            _encode(self.username, _USERNAME_SIZE),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Ticket:
        if len(data) != RECORD_SIZE:
            raise TicketError(f"record must be {RECORD_SIZE} bytes, got {len(data)}")
        tid, title, desc, created, prio, stat, agent, user = _RECORD.unpack(data)
        try:
            priority, status = Priority(prio), Status(stat)
        except ValueError as exc:
            raise TicketError(f"corrupt record for ticket {tid}") from exc
        return cls(
            id=tid,
            title=_decode(title),
            description=_decode(desc),
            created=_decode(created),
            priority=priority,
            status=status,
            agent=_decode(agent),
            username=_decode(user),
        )

    def describe(self, include_creator: bool = True) -> str:
        """Human-readable multi-line summary."""
        text = (
            f"ID: {self.id}\n"
            f"Titolo: {self.title}\n"
            f"Descrizione: {self.description}\n"
            f"Data: {self.created}\n"
            f"Priorità: {self.priority.label()}\n"
            f"Stato: {self.status.label()}\n"
            f"Agente: {self.agent}\n"
        )
        if include_creator:
            text += f"Creatore: {self.username}\n"
        return text


def render_tickets(tickets: Iterable[Ticket], limit: int = RENDER_LIMIT) -> str:
    """Concatenate ticket summaries while their UTF-8 size stays below ``limit``."""
    out = bytearray()
    for ticket in tickets:
        entry = ticket.describe().encode("utf-8")[:_ENTRY_LIMIT]
        if len(out) + len(entry) >= limit:
            break
        out += entry
    return out.decode("utf-8", "ignore")


def _clean_username(name: str) -> str:
    for sep in ("\n", "\r"):
        name = name.split(sep, 1)[0]
    return name


class TicketStore:
    """Tickets kept as consecutive fixed-size records in one file."""

    def __init__(self, path: str | Path = DEFAULT_TICKETS_FILE) -> None:
        self.path = Path(path)

    def __iter__(self) -> Iterator[Ticket]:
        try:
            handle = self.path.open("rb")
        except OSError as exc:
            raise TicketError(f"cannot read {self.path}") from exc
        with handle:
            while len(chunk := handle.read(RECORD_SIZE)) == RECORD_SIZE:
                yield Ticket.from_bytes(chunk)

    def next_id(self) -> int:
        try:
            return max((t.id for t in self), default=0) + 1
        except TicketError:
            return 1

    def _first(self, predicate: Callable[[Ticket], bool]) -> Ticket | None:
        try:
            return next((t for t in self if predicate(t)), None)
        except TicketError:
            return None

    def get(self, ticket_id: int) -> Ticket | None:
        return self._first(lambda t: t.id == ticket_id)

    def get_for_user(self, ticket_id: int, username: str) -> Ticket | None:
        return self._first(lambda t: t.id == ticket_id and t.username == username)

    def all_tickets(self) -> list[Ticket]:
        return list(self)

    def by_user(self, username: str) -> list[Ticket]:
        return [t for t in self if t.username == username]

    def by_agent(self, agent: str) -> list[Ticket]:
        return [t for t in self if t.agent == agent]

    def search_by_user(self, username: str, keyword: str, field: SearchField) -> list[Ticket]:
        """Tickets of a user (any case) whose field matches the keyword, ignoring case."""
        user = username.lower()
        needle = keyword.lower()

        def matches(t: Ticket) -> bool:
            if field is SearchField.TITLE:
                return needle in t.title.lower()
            if field is SearchField.DESCRIPTION:
                return needle in t.description.lower()
            return t.status.label().lower() == needle

        return [t for t in self if t.username.lower() == user and matches(t)]

    def create(
        self, title: str, description: str, priority: Priority | str, username: str
    ) -> Ticket:
        """Append a new open, unassigned ticket and return it as stored."""
        if not isinstance(priority, Priority):
            priority = Priority.parse(priority)
        ticket = Ticket(
            id=self.next_id(),
            title=title,
            description=description,
            created=date.today().isoformat(),
            priority=priority,
            status=Status.OPEN,
            agent=DEFAULT_AGENT,
            username=username,
        )
        record = ticket.to_bytes()
        try:
            with self.path.open("ab") as handle:
                handle.write(record)
        except OSError as exc:
            raise TicketError(f"cannot write {self.path}") from exc
        return Ticket.from_bytes(record)

    def create_from_message(self, message: str, username: str) -> Ticket:
        """Create a ticket from ``NEW_TICKET|title|description|priority``."""
        body = message[:_MESSAGE_LIMIT][_NEW_TICKET_PREFIX_LEN:]
        fields = [part for part in body.split("|") if part]
        if len(fields) < 3:
            raise TicketSyntaxError("expected NEW_TICKET|Titolo|Descrizione|Priorita")
        title, description, priority = fields[:3]
        return self.create(title, description, Priority.parse(priority), username)

    def _update(
        self,
        ticket_id: int,
        change: Callable[[Ticket], Ticket],
        allowed: Callable[[Ticket], bool] = lambda t: True,
    ) -> bool:
        try:
            handle = self.path.open("r+b")
        except OSError as exc:
            raise TicketError(f"cannot open {self.path}") from exc
        with handle:
            while len(chunk := handle.read(RECORD_SIZE)) == RECORD_SIZE:
                ticket = Ticket.from_bytes(chunk)
                if ticket.id == ticket_id and allowed(ticket):
                    handle.seek(-RECORD_SIZE, os.SEEK_CUR)
                    handle.write(change(ticket).to_bytes())
                    return True
        return False

    def update_title_and_description(
        self, ticket_id: int, username: str, title: str, description: str
    ) -> bool:
        """Change title and description of a ticket owned by ``username``."""
        return self._update(
            ticket_id,
            lambda t: replace(t, title=title, description=description),
            lambda t: _clean_username(t.username) == username,
        )

    def assign_agent(self, ticket_id: int, agent: str) -> bool:
        return self._update(ticket_id, lambda t: replace(t, agent=agent))

    def update_status(self, ticket_id: int, status: Status | str) -> bool:
        if not isinstance(status, Status):
            status = Status.parse(status)
        return self._update(ticket_id, lambda t: replace(t, status=status))

    def update_priority(self, ticket_id: int, priority: Priority | str) -> bool:
        if not isinstance(priority, Priority):
            priority = Priority.parse(priority)
        return self._update(ticket_id, lambda t: replace(t, priority=priority))