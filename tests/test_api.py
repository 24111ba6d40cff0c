from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

import api as api_module
from book import BookFields


@pytest.fixture
def client(lib):
    # Route every request to the per-test database
    api_module.app.dependency_overrides[api_module.get_library] = lambda: lib
    try:
        yield TestClient(api_module.app)
    finally:
        api_module.app.dependency_overrides.clear()


def _register(client, phone="79991112233"):
    payload = {"phone": phone, "first_name": "Ivan", "last_name": "Petrov", "birth_date": "1990-05-15"}
    return client.post("/api/readers", json=payload)


def test_get_books_empty(client):
    response = client.get("/api/books")
    assert response.status_code == 200
    assert response.json() == []


def test_book_lifecycle(client):
    response = client.post("/api/books", json={"title": "Дубровский", "author": "А. Пушкин"})
    assert response.status_code == 201
    book_id = response.json()["id"]

    response = client.get(f"/api/books/{book_id}")
    assert response.status_code == 200
    book = response.json()
    assert book["title"] == "Дубровский"
    assert book["status"] == "available"
    assert book["cover_type"] == "hard"
    assert book["condition"] == "good"
    assert book["genre"] == "unspecified"

    response = client.put(f"/api/books/{book_id}", json={"genre": "Novel", "page_count": 200})
    assert response.status_code == 200
    book = client.get(f"/api/books/{book_id}").json()
    assert book["genre"] == "Novel"
    assert book["page_count"] == 200
    assert book["title"] == "Дубровский"

    response = client.delete(f"/api/books/{book_id}")
    assert response.status_code == 200
    assert client.get(f"/api/books/{book_id}").status_code == 404


def test_create_book_validation(client):
    response = client.post("/api/books", json={"title": "  ", "author": "A"})
    assert response.status_code == 400
    assert "Title" in response.json()["detail"]

    response = client.post("/api/books", json={"title": "T", "author": "A", "cover_type": "leather"})
    assert response.status_code == 400


def test_missing_or_mistyped_fields_are_bad_requests(client):
    response = client.post("/api/books", json={"author": "A"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request: title: Field required"

    response = client.post("/api/books", json={"title": "T", "author": "A", "page_count": "many"})
    assert response.status_code == 400
    assert "page_count" in response.json()["detail"]

    payload = {"phone": "79991112233", "first_name": "Ivan", "last_name": "Petrov"}
    response = client.post("/api/readers", json=payload)
    assert response.status_code == 400
    assert "birth_date" in response.json()["detail"]
    assert client.get("/api/readers").json() == []


def test_update_and_delete_missing_book(client):
    assert client.put("/api/books/999", json={"title": "X"}).status_code == 404
    assert client.delete("/api/books/999").status_code == 404


def test_list_books_filters(client, lib):
    lib.create_book(BookFields(title="Test Book", author="Author One"))
    lib.create_book(BookFields(title="Other", author="Author Two"))

    assert len(client.get("/api/books", params={"q": "Test"}).json()) == 1
    assert len(client.get("/api/books", params={"status": "available"}).json()) == 2
    assert client.get("/api/books", params={"status": "lost"}).status_code == 400


def test_reader_endpoints(client):
    response = _register(client)
    assert response.status_code == 201
    assert response.json()["id"] == "79991112233"

    response = client.get("/api/readers/79991112233")
    assert response.status_code == 200
    assert response.json()["registration_date"] == date.today().isoformat()

    assert _register(client).status_code == 409
    assert len(client.get("/api/readers").json()) == 1

    assert client.delete("/api/readers/79991112233").status_code == 200
    assert client.get("/api/readers/79991112233").status_code == 404
    assert client.delete("/api/readers/79991112233").status_code == 404


def test_register_invalid_phone(client):
    response = _register(client, phone="12345")
    assert response.status_code == 400
    assert "7XXXXXXXXXX" in response.json()["detail"]


def test_borrow_and_return(client, lib):
    book_id = lib.create_book(BookFields(title="Дубровский", author="А. Пушкин"))
    _register(client)

    response = client.post("/api/borrow", json={"book_id": book_id, "phone": "79991112233"})
    assert response.status_code == 200
    book = client.get(f"/api/books/{book_id}").json()
    assert book["status"] == "borrowed"
    assert book["borrower_phone"] == "79991112233"
    assert book["first_name"] == "Ivan"

    response = client.post("/api/borrow", json={"book_id": book_id, "phone": "79991112233"})
    assert response.status_code == 400

    response = client.delete("/api/readers/79991112233")
    assert response.status_code == 409
    assert response.json()["count"] == 1

    response = client.post("/api/return", json={"book_id": book_id})
    assert response.status_code == 200
    book = client.get(f"/api/books/{book_id}").json()
    assert book["status"] == "available"
    assert book["borrower_phone"] is None
    assert book["borrowed_date"] is None


def test_borrow_unknown_reader(client, lib):
    book_id = lib.create_book(BookFields(title="T", author="A"))
    response = client.post("/api/borrow", json={"book_id": book_id, "phone": "70000000000"})
    assert response.status_code == 404
    assert "Register the reader first" in response.json()["detail"]


def test_return_missing_book(client):
    assert client.post("/api/return", json={"book_id": 404}).status_code == 404


def test_overdue_and_stats(client, lib, reader):
    late = lib.create_book(BookFields(title="Late", author="A"))
    lib.create_book(BookFields(title="Shelf", author="B"))
    lib.borrow_book(late, reader.phone, today=date.today() - timedelta(days=20))

    overdue = client.get("/api/overdue").json()
    assert len(overdue) == 1
    assert overdue[0]["id"] == late
    assert overdue[0]["days_overdue"] == 20
    assert overdue[0]["reader_phone"] == reader.phone

    stats = client.get("/api/stats").json()
    assert stats == {"total_books": 2, "available_books": 1, "borrowed_books": 1, "total_readers": 1}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
