from datetime import date

import pytest

from ticketdesk.tickets import (
    RECORD_SIZE,
    Priority,
    SearchField,
    Status,
    Ticket,
    TicketError,
    TicketStore,
    TicketSyntaxError,
    render_tickets,
)


@pytest.fixture
def store(tmp_path):
    return TicketStore(tmp_path / "tickets.db")


def make_ticket(**overrides):
    values = dict(
        id=7,
        title="Stampante",
        description="Non stampa",
        created="2024-01-02",
        priority=Priority.HIGH,
        status=Status.IN_PROGRESS,
        agent="bob@example.com",
        username="alice@example.com",
    )
    values.update(overrides)
    return Ticket(**values)


def test_priority_parse_and_label():
    assert Priority.parse("alta") is Priority.HIGH
    assert Priority.parse("MEDIA") is Priority.MEDIUM
    assert Priority.parse("whatever") is Priority.LOW
    assert Priority.HIGH.label() == "Alta"


def test_status_parse_and_label():
    assert Status.parse("in corso") is Status.IN_PROGRESS
    assert Status.parse("CHIUSO") is Status.CLOSED
    assert Status.parse("boh") is Status.OPEN
    assert Status.IN_PROGRESS.label() == "In Corso"


def test_record_size_and_round_trip():
    ticket = make_ticket()
    data = ticket.to_bytes()
    assert len(data) == RECORD_SIZE == 488
    assert Ticket.from_bytes(data) == ticket


def test_from_bytes_rejects_wrong_length():
    with pytest.raises(TicketError):
        Ticket.from_bytes(b"short")


def test_to_bytes_truncates_title():
    ticket = make_ticket(title="x" * 150)
    assert Ticket.from_bytes(ticket.to_bytes()).title == "x" * 99


def test_describe_with_and_without_creator():
    ticket = make_ticket()
    base = (
        "ID: 7\nTitolo: Stampante\nDescrizione: Non stampa\nData: 2024-01-02\n"
        "Priorità: Alta\nStato: In Corso\nAgente: bob@example.com\n"
    )
    assert ticket.describe(include_creator=False) == base
    assert ticket.describe() == base + "Creatore: alice@example.com\n"


def test_render_tickets_respects_limit():
    first, second = make_ticket(id=1), make_ticket(id=2)
    size = len(first.describe().encode("utf-8"))
    assert render_tickets([first, second], limit=size + 1) == first.describe()
    assert render_tickets([first, second], limit=size) == ""
    assert render_tickets([first, second]) == first.describe() + second.describe()


def test_missing_store(store):
    assert store.next_id() == 1
    assert store.get(1) is None
    with pytest.raises(TicketError):
        store.all_tickets()
    with pytest.raises(TicketError):
        store.assign_agent(1, "bob@example.com")


def test_create_assigns_increasing_ids(store):
    first = store.create("A", "desc a", "media", "alice@example.com")
    second = store.create("B", "desc b", Priority.HIGH, "alice@example.com")
    assert first.id == 1
    assert second.id > first.id
    assert store.next_id() == second.id + 1
    assert first.priority is Priority.MEDIUM
    assert first.status is Status.OPEN
    assert first.agent == "nessuno"
    assert first.created == date.today().isoformat()
    assert store.all_tickets() == [first, second]


def test_create_from_message(store):
    ticket = store.create_from_message("NEW_TICKET|Rete|Wifi giu|Alta", "alice@example.com")
    assert (ticket.title, ticket.description, ticket.priority) == ("Rete", "Wifi giu", Priority.HIGH)
    assert store.get(ticket.id) == ticket


def test_create_from_message_skips_empty_fields(store):
    ticket = store.create_from_message("NEW_TICKET||Rete||Wifi|bassa", "alice@example.com")
    assert (ticket.title, ticket.description, ticket.priority) == ("Rete", "Wifi", Priority.LOW)


def test_create_from_message_syntax_error(store):
    with pytest.raises(TicketSyntaxError):
        store.create_from_message("NEW_TICKET|Solo titolo", "alice@example.com")


def test_get_for_user(store):
    ticket = store.create("A", "d", "alta", "alice@example.com")
    assert store.get_for_user(ticket.id, "alice@example.com") == ticket
    assert store.get_for_user(ticket.id, "bob@example.com") is None


def test_by_user_and_agent(store):
    a = store.create("A", "d", "alta", "alice@example.com")
    b = store.create("B", "d", "alta", "carol@example.com")
    assert store.by_user("alice@example.com") == [a]
    assert store.assign_agent(b.id, "bob@example.com") is True
    assert [t.id for t in store.by_agent("bob@example.com")] == [b.id]


def test_search_by_user(store):
    a = store.create("Stampante rotta", "carta inceppata", "alta", "alice@example.com")
    store.create("Rete", "wifi", "alta", "alice@example.com")
    store.create("Stampante", "altro", "alta", "carol@example.com")
    assert store.search_by_user("ALICE@example.com", "STAMP", SearchField.TITLE) == [a]
    assert store.search_by_user("alice@example.com", "Inceppata", SearchField.DESCRIPTION) == [a]
    assert len(store.search_by_user("alice@example.com", "aperto", SearchField.STATUS)) == 2
    assert store.search_by_user("alice@example.com", "chiuso", SearchField.STATUS) == []


def test_update_title_and_description_requires_owner(store):
    ticket = store.create("A", "d", "alta", "alice@example.com")
    assert store.update_title_and_description(ticket.id, "bob@example.com", "X", "Y") is False
    assert store.update_title_and_description(ticket.id, "alice@example.com", "X", "Y") is True
    updated = store.get(ticket.id)
    assert (updated.title, updated.description) == ("X", "Y")


def test_update_status_and_priority(store):
    ticket = store.create("A", "d", "bassa", "alice@example.com")
    assert store.update_status(ticket.id, "chiuso") is True
    assert store.update_priority(ticket.id, Priority.HIGH) is True
    updated = store.get(ticket.id)
    assert (updated.status, updated.priority) == (Status.CLOSED, Priority.HIGH)
    assert store.update_status(ticket.id + 100, "aperto") is False


def test_update_leaves_other_records(store):
    a = store.create("A", "d", "bassa", "alice@example.com")
    b = store.create("B", "d", "bassa", "alice@example.com")
    store.assign_agent(a.id, "bob@example.com")
    assert store.get(b.id) == b
    assert store.get(a.id).agent == "bob@example.com"