import pytest

from library import Library

@pytest.fixture
def db_file(tmp_path):
    # tmp_path is already unique per test
    return str(tmp_path / "library.db")

@pytest.fixture
def lib(db_file):
    return Library(db_file=db_file)

@pytest.fixture
def reader(lib):
    return lib.register_reader("79991112233", "Ivan", "Petrov", "1990-05-15")
