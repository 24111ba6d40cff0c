import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from book import BookFields
from main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    monkeypatch.setenv("LIB_CLI_OUTPUT", "plain")


def invoke(db_file, *args):
    return runner.invoke(app, ["--db", db_file, *args])


def test_list_no_books(lib, db_file):
    result = invoke(db_file, "list")
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_add_and_list(lib, db_file):
    result = invoke(db_file, "add", "Дубровский", "А. Пушкин", "--pages", "150")
    assert result.exit_code == 0
    assert "Added book #1: Дубровский by А. Пушкин" in result.stdout

    result = invoke(db_file, "list")
    assert "#1 Дубровский by А. Пушкин [available]" in result.stdout
    assert lib.get_book(1).page_count == 150


def test_add_invalid_cover(lib, db_file):
    result = invoke(db_file, "add", "Title", "Author", "--cover", "leather")
    assert result.exit_code == 1
    assert "Error: Cover type must be one of: soft, hard." in result.stdout


def test_show_and_update(lib, db_file):
    book_id = lib.create_book(BookFields(title="Old", author="Author"))

    result = invoke(db_file, "update", str(book_id), "--title", "New")
    assert result.exit_code == 0
    assert "Updated book #1: New by Author" in result.stdout

    result = invoke(db_file, "show", str(book_id))
    assert result.exit_code == 0
    assert "Title: New" in result.stdout
    assert "Status: available" in result.stdout


def test_update_without_fields(lib, db_file):
    book_id = lib.create_book(BookFields(title="Old", author="Author"))
    result = invoke(db_file, "update", str(book_id))
    assert result.exit_code == 1
    assert "Nothing to update" in result.stdout


def test_remove_missing_book(lib, db_file):
    result = invoke(db_file, "remove", "99")
    assert result.exit_code == 1
    assert "Error: Book 99 not found." in result.stdout


def test_reader_and_lending_flow(lib, db_file):
    book_id = lib.create_book(BookFields(title="Дубровский", author="А. Пушкин"))

    result = invoke(db_file, "register", "79991112233", "Ivan", "Petrov", "1990-05-15")
    assert result.exit_code == 0
    assert "Registered reader Ivan Petrov (79991112233)" in result.stdout

    result = invoke(db_file, "readers")
    assert "79991112233 - Ivan Petrov" in result.stdout

    result = invoke(db_file, "borrow", str(book_id), "79991112233")
    assert result.exit_code == 0
    assert "lent to 79991112233" in result.stdout

    result = invoke(db_file, "unregister", "79991112233")
    assert result.exit_code == 1
    assert "1 book(s) still borrowed" in result.stdout

    result = invoke(db_file, "return", str(book_id))
    assert result.exit_code == 0
    assert "returned" in result.stdout

    result = invoke(db_file, "unregister", "79991112233")
    assert result.exit_code == 0


def test_borrow_unknown_reader(lib, db_file):
    book_id = lib.create_book(BookFields(title="T", author="A"))
    result = invoke(db_file, "borrow", str(book_id), "70000000000")
    assert result.exit_code == 1
    assert "Register the reader first" in result.stdout


def test_overdue_empty(lib, db_file):
    result = invoke(db_file, "overdue")
    assert result.exit_code == 0
    assert "No overdue books." in result.stdout


def test_stats_json(lib, db_file, reader):
    lib.create_book(BookFields(title="T", author="A"))
    result = invoke(db_file, "--output", "json", "stats")
    assert result.exit_code == 0
    assert json.loads(result.stdout.strip().splitlines()[-1]) == {
        "total_books": 1, "available_books": 1, "borrowed_books": 0, "total_readers": 1,
    }


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--port", "8123"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:app" in args
    assert "8123" in args


@patch("main.logging.basicConfig")
def test_logging_level_from_settings(mock_basic_config, lib, db_file, monkeypatch):
    monkeypatch.setattr("main.settings.log_level", "ERROR")
    monkeypatch.setattr("main.settings.debug", False)
    invoke(db_file, "stats")
    mock_basic_config.assert_called_with(level="ERROR")

    runner.invoke(app, ["--verbose", "--db", db_file, "stats"])
    mock_basic_config.assert_called_with(level="DEBUG")
