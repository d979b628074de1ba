# ticketdesk

A small help-desk ticketing system: a threaded TCP server that stores tickets
in a binary file of fixed-size records and checks logins against a plain-text
user list, and a terminal client with separate menus for customers and agents.
It has no dependencies outside the standard library.

## Installation

```
pip install .
```

## User file

The server reads users from a text file with one user on each line, as
`username,password,role`. The role is `CLIENT` or `AGENTE`:

```
alice@example.com,password,CLIENT
bob@example.com,password,AGENTE
```

Malformed lines are skipped. Logins match the username exactly; role lookups
(used when an agent assigns a ticket) ignore case. The package only reads this
file: there is no command for adding or changing users, so it is kept by hand.

## Running the server

```
ticketdesk-server [--host HOST] [--port PORT] [--tickets PATH] [--users PATH]
```

By default it listens on `0.0.0.0:8080`, reads `users.txt` and keeps tickets
in `tickets.db`, both in the working directory. Each connection is served in
its own thread and keeps its own login session. Stop it with Ctrl-C.

## Running the client

```
ticketdesk-client [--host HOST] [--port PORT]
```

The client connects to `127.0.0.1:8080` by default and asks for a username
(the e-mail address) and a password. You have three tries. After a successful
login it shows the menu for your role.

Customers (`CLIENT`) can:

- open a new ticket with a title (up to 99 characters), a description (up to
  255) and a priority (Alta / Media / Bassa)
- list their own tickets
- look up one of their tickets by ID
- search their tickets by a word in the title or the description, or by
  status (Aperto / In Corso / Chiuso), ignoring case
- change the title and description of one of their tickets

Agents (`AGENTE`) can:

- list all tickets, or only the tickets assigned to them
- assign a ticket to an agent (the name is checked to belong to an agent)
- change a ticket's status or priority
- look up any ticket by ID

New tickets are open, dated today and assigned to `nessuno`.

## Using the library

The storage and request handling work without the network:

```python
from ticketdesk.auth import UserStore
from ticketdesk.handlers import RequestHandler, SessionRegistry
from ticketdesk.tickets import Priority, Status, TicketStore

tickets = TicketStore("tickets.db")
ticket = tickets.create("Printer", "Does not print", Priority.HIGH, "alice@example.com")
tickets.update_status(ticket.id, Status.IN_PROGRESS)
print(tickets.get(ticket.id).describe())

handler = RequestHandler(tickets, UserStore("users.txt"), SessionRegistry(100))
print(handler.handle("conn-1", "LOGIN|alice@example.com|password").text)
print(handler.handle("conn-1", "NEW_TICKET|Network|No connection|Media").text)
```

The modules are:

- `ticketdesk.auth` – `User`, `UserStore` and `parse_user_line`
- `ticketdesk.tickets` – `Ticket`, `Priority`, `Status`, `SearchField`,
  `TicketStore`, `render_tickets`, and the errors `TicketError` and
  `TicketSyntaxError`
- `ticketdesk.handlers` – `Command`, `parse_command`, `Reply`,
  `SessionRegistry` and `RequestHandler`, which turns one request message
  into its reply
- `ticketdesk.server` – `TicketServer`, `TicketRequestHandler`, `make_server`
  and `main`
- `ticketdesk.client_utils` – input helpers (`read_input`, `is_valid_input`,
  `prompt_choice`, `build_ticket_message`) and `Connection`
- `ticketdesk.menus` – `run_client_menu` and `run_agent_menu`
- `ticketdesk.client` – `login`, `LoginFailed` and `main`

## Protocol

Each request is one message with its fields separated by `|`, for example
`GET_TICKET_BY_ID|3` or `UPDATE_TICKET_STATUS|3|Chiuso`. Replies start with
`OK|` or `ERR|`, or they hold the text of the tickets that were asked for.
Ticket listings are cut off below 8192 bytes, search results below 4096.

## Tests

```
pip install .[test]
pytest
```