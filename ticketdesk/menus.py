"""Interactive menus for customers and support agents."""

from __future__ import annotations

from collections.abc import Callable

from ticketdesk.client_utils import (
    PRIORITY_CHOICES,
    RECEIVE_ERROR,
    STATUS_CHOICES,
    Connection,
    Reader,
    build_ticket_message,
    prompt_choice,
    read_input,
)

MESSAGE_SIZE = 512
_ID_SIZE = 10

_CLIENT_MENU = (
    "\n--- MENU CLIENT ---\n"
    "1. Inserisci un nuovo ticket\n"
    "2. Visualizza tutti i tuoi ticket\n"
    "3. Cerca un tuo ticket per ID\n"
    "4. Cerca tuoi ticket per titolo\n"
    "5. Cerca tuoi ticket per descrizione\n"
    "6. Cerca tuoi ticket per stato (Aperto/In Corso/Chiuso)\n"
    "7. Modifica titolo e descrizione di un tuo ticket\n"
    "0. Esci\nScelta: "
)

_AGENT_MENU = (
    "\n--- MENU AGENTE ---\n"
    "1. Visualizza tutti i ticket\n"
    "2. Visualizza tutti i ticket assegnati a te\n"
    "3. Assegna un agente ad un ticket\n"
    "4. Modifica stato di un ticket\n"
    "5. Modifica priorita' di un ticket\n"
    "6. Cerca un ticket per id\n"
    "0. Esci\nScelta: "
)

Action = Callable[[Connection, str, Reader], None]


def _ask(prompt: str, size: int, reader: Reader) -> str:
    """Read a line keeping at most ``size - 1`` characters."""
    return read_input(prompt, reader)[: size - 1]


def _clip(message: str) -> str:
    return message.encode("utf-8")[: MESSAGE_SIZE - 1].decode("utf-8", "ignore")


def _exchange(connection: Connection, message: str) -> str:
    """Send a request, print the reply and return it ("" when none came)."""
    try:
        response = connection.request(_clip(message))
    except OSError:
        print(RECEIVE_ERROR)
        return ""
    print(response)
    return response


def _run_menu(
    menu: str,
    actions: dict[str, Action],
    connection: Connection,
    username: str,
    reader: Reader,
) -> None:
    while True:
        try:
            choice = read_input(menu, reader)[:1]
            if choice == "0":
                print("Uscita...")
                break
            action = actions.get(choice)
            if action is None:
                print("Scelta non valida.")
                continue
            action(connection, username, reader)
        except EOFError:
            break
    connection.close()


# customer actions


def _new_ticket(connection: Connection, username: str, reader: Reader) -> None:
    print("\nInserimento nuovo ticket:")
    _exchange(connection, build_ticket_message(reader))


def _own_tickets(connection: Connection, username: str, reader: Reader) -> None:
    _exchange(connection, f"GET_ALL_TICKETS_BY_USER|{username}")


def _own_ticket_by_id(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("Inserisci ID: ", _ID_SIZE, reader)
    _exchange(connection, f"GET_TICKET_BY_ID_AND_USER|{ticket_id}|{username}")


def _own_by_title(connection: Connection, username: str, reader: Reader) -> None:
    title = _ask("Inserisci una parola contenuta nel titolo: ", 100, reader)
    _exchange(connection, f"GET_TICKET_BY_TITOLO_BY_USER|{title}|{username}")


def _own_by_description(connection: Connection, username: str, reader: Reader) -> None:
    words = _ask("Inserisci una parola nella descrizione: ", 200, reader)
    _exchange(connection, f"GET_TICKET_BY_DESCRIZIONE_BY_USER|{words}|{username}")


def _own_by_status(connection: Connection, username: str, reader: Reader) -> None:
    status = prompt_choice(
        "Inserisci stato (Aperto, In Corso, Chiuso): ",
        STATUS_CHOICES,
        "Stato non valido. Riprova.",
        reader,
    )
    _exchange(connection, f"GET_TICKET_BY_STATO_BY_USER|{status}|{username}")


def _edit_own(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("Inserisci ID del ticket da modificare: ", _ID_SIZE, reader)
    title = _ask("Nuovo titolo: ", 100, reader)
    description = _ask("Nuova descrizione: ", 256, reader)
    _exchange(connection, f"UPDATE_YOUR_TICKET|{ticket_id}|{title}|{description}")


_CLIENT_ACTIONS: dict[str, Action] = {
    "1": _new_ticket,
    "2": _own_tickets,
    "3": _own_ticket_by_id,
    "4": _own_by_title,
    "5": _own_by_description,
    "6": _own_by_status,
    "7": _edit_own,
}


# agent actions


def _all_tickets(connection: Connection, username: str, reader: Reader) -> None:
    _exchange(connection, f"GET_ALL_TICKETS|{username}")


def _assigned_tickets(connection: Connection, username: str, reader: Reader) -> None:
    _exchange(connection, f"GET_ALL_TICKETS_BY_AGENT|{username}")


def _assign_agent(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("ID del ticket da assegnare: ", _ID_SIZE, reader)
    while True:
        agent = _ask("Mail dell'agente da assegnare: ", 64, reader)
        check = _exchange(connection, f"CHECK_USER_ROLE|{agent}")
        if check.startswith("OK|AGENTE"):
            break
        print("Utente non valido o non è un agente. Riprova.")
    reply = _exchange(connection, f"UPDATE_ASSIGNED_AGENT|{ticket_id}|{agent}")
    print(reply)


def _change_status(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("Inserisci ID del ticket da modificare: ", _ID_SIZE, reader)
    status = prompt_choice(
        "Nuovo stato (Aperto / In Corso / Chiuso): ",
        STATUS_CHOICES,
        "Stato non valido. Riprova.",
        reader,
    )
    _exchange(connection, f"UPDATE_TICKET_STATUS|{ticket_id}|{status}")


def _change_priority(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("Inserisci ID del ticket da modificare: ", _ID_SIZE, reader)
    priority = prompt_choice(
        "Nuova priorita' (Alta / Media / Bassa): ",
        PRIORITY_CHOICES,
        "Priorità non valida. Riprova.",
        reader,
    )
    _exchange(connection, f"UPDATE_TICKET_PRIORITY|{ticket_id}|{priority}")


def _ticket_by_id(connection: Connection, username: str, reader: Reader) -> None:
    ticket_id = _ask("Inserisci ID: ", _ID_SIZE, reader)
    _exchange(connection, f"GET_TICKET_BY_ID|{ticket_id}")


_AGENT_ACTIONS: dict[str, Action] = {
    "1": _all_tickets,
    "2": _assigned_tickets,
    "3": _assign_agent,
    "4": _change_status,
    "5": _change_priority,
    "6": _ticket_by_id,
}


def run_client_menu(connection: Connection, username: str, reader: Reader = input) -> None:
    """Run the customer menu until the user exits; the connection is closed on return."""
    _run_menu(_CLIENT_MENU, _CLIENT_ACTIONS, connection, username, reader)


def run_agent_menu(connection: Connection, username: str, reader: Reader = input) -> None:
    """Run the agent menu until the user exits; the connection is closed on return."""
    _run_menu(_AGENT_MENU, _AGENT_ACTIONS, connection, username, reader)