import pytest

from ticketdesk.auth import User, UserStore, parse_user_line

USERS = (
    "alice@example.com,password,CLIENT\n"
    "broken line without fields\n"
    "bob@example.com,secret,AGENTE\n"
    "alice@example.com,token,AGENTE\n"
)


@pytest.fixture
def store(tmp_path):
    path = tmp_path / "users.txt"
    path.write_text(USERS, encoding="utf-8")
    return UserStore(path)


def test_parse_valid_line():
    assert parse_user_line("bob@example.com,secret,AGENTE\n") == User(
        "bob@example.com", "secret", "AGENTE"
    )


def test_parse_line_missing_field():
    assert parse_user_line("bob@example.com,secret\n") is None


def test_parse_line_empty_role():
    assert parse_user_line("bob@example.com,secret,\n") is None


def test_parse_role_keeps_commas():
    user = parse_user_line("bob@example.com,secret,AGENTE,extra\n")
    assert user.role == "AGENTE,extra"


def test_parse_rejects_overlong_username():
    assert parse_user_line("u" * 64 + ",secret,CLIENT") is None


def test_authenticate_ok(store):
    password = "password"
    assert store.authenticate("alice@example.com", password) == "CLIENT"


def test_authenticate_wrong_password(store):
    password = "secret"
    assert store.authenticate("alice@example.com", password) is None


def test_authenticate_is_case_sensitive(store):
    password = "password"
    assert store.authenticate("ALICE@example.com", password) is None


def test_authenticate_first_match_wins(store):
    password = "token"
    assert store.authenticate("alice@example.com", password) is None


def test_get_role_case_insensitive(store):
    assert store.get_role("BOB@EXAMPLE.COM") == "AGENTE"


def test_get_role_unknown_user(store):
    assert store.get_role("nobody@example.com") is None


def test_find_skips_malformed_lines(store):
    user = store.find("bob@example.com")
    assert user == User("bob@example.com", "secret", "AGENTE")


def test_missing_file(tmp_path):
    missing = UserStore(tmp_path / "absent.txt")
    password = "password"
    assert missing.authenticate("alice@example.com", password) is None
    assert missing.get_role("alice@example.com") is None