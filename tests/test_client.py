import io
import socket
import sys
import threading

import pytest

from ticketdesk.client import LoginFailed, login, main
from ticketdesk.server import make_server

PASSWORD = "password"


class FakeConnection:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, message):
        self.requests.append(message)
        return self.responses.pop(0)

    def close(self):
        self.closed = True


def make_reader(answers):
    pending = list(answers)

    def reader(prompt):
        if not pending:
            raise EOFError
        return pending.pop(0)

    return reader


def test_login_client_role():
    conn = FakeConnection(["OK|Login riuscito|CLIENT"])
    result = login(conn, make_reader(["alice@example.com", PASSWORD]))
    assert result == ("alice@example.com", "CLIENT")
    assert conn.requests == [f"LOGIN|alice@example.com|{PASSWORD}"]


def test_login_agent_after_failure(capsys):
    conn = FakeConnection(["ERR|Credenziali non valide", "OK|Login riuscito|AGENTE"])
    answers = ["bob@example.com", "wrong", "bob@example.com", PASSWORD]
    result = login(conn, make_reader(answers))
    assert result == ("bob@example.com", "AGENTE")
    assert "Login fallito: ERR|Credenziali non valide" in capsys.readouterr().out


def test_login_gives_up_after_three_attempts():
    conn = FakeConnection(["ERR|Credenziali non valide"] * 3)
    answers = ["bob@example.com", "wrong"] * 3
    with pytest.raises(LoginFailed):
        login(conn, make_reader(answers))
    assert len(conn.requests) == 3


def test_login_server_exhausted_message():
    conn = FakeConnection(["ERR|Login fallito dopo 3 tentativi"])
    with pytest.raises(LoginFailed, match="Hai esaurito i tentativi"):
        login(conn, make_reader(["bob@example.com", "wrong"]))
    assert len(conn.requests) == 1


@pytest.fixture
def running_server(tmp_path):
    users = tmp_path / "users.txt"
    users.write_text(
        f"alice@example.com,{PASSWORD},CLIENT\nagent@example.com,{PASSWORD},AGENTE\n",
        encoding="utf-8",
    )
    server = make_server("127.0.0.1", 0, tmp_path / "tickets.db", users)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address[1]
    server.shutdown()
    server.server_close()


def test_main_client_creates_and_lists_ticket(running_server, monkeypatch, capsys):
    script = f"alice@example.com\n{PASSWORD}\n1\nTitle\nDesc\nAlta\n2\n0\n"
    monkeypatch.setattr(sys, "stdin", io.StringIO(script))
    code = main(["--port", str(running_server)])
    out = capsys.readouterr().out
    assert code == 0
    assert "Connessione al server avvenuta con successo." in out
    assert "OK|Ticket salvato con ID 1" in out
    assert "Titolo: Title" in out
    assert "Uscita..." in out


def test_main_agent_menu(running_server, monkeypatch, capsys):
    script = f"agent@example.com\n{PASSWORD}\n1\n0\n"
    monkeypatch.setattr(sys, "stdin", io.StringIO(script))
    code = main(["--port", str(running_server)])
    out = capsys.readouterr().out
    assert code == 0
    assert "--- MENU AGENTE ---" not in out or "Uscita..." in out
    assert "Uscita..." in out


def test_main_input_ends_during_login(running_server, monkeypatch):
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    assert main(["--port", str(running_server)]) == 1


def test_main_without_server_fails():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["--port", str(port)]) == 1