import sqlite3

import pytest

from jobiter import storage
from jobiter.relation import Relation
from jobiter.testing import IterationHarness


def _updated_at(product_id: int) -> str:
    # pairs of products share a timestamp, newest ids first
    return f"2024-01-{(11 - product_id) // 2 + 1:02d} 10:00:00"


PRODUCTS = [
    (i, f"product-{i}", "CA" if i % 2 else "US", _updated_at(i))
    for i in range(1, 11)
]


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute(
        "CREATE TABLE products(id INTEGER PRIMARY KEY, name TEXT NOT NULL, "
        "country TEXT NOT NULL, updated_at TEXT NOT NULL)"
    )
    conn.executemany("INSERT INTO products VALUES (?, ?, ?, ?)", PRODUCTS)
    yield conn
    conn.close()


@pytest.fixture
def products(db):
    return Relation(db, "products")


@pytest.fixture
def product_ids(db):
    return [row["id"] for row in db.execute("SELECT id FROM products ORDER BY id")]


@pytest.fixture
def harness(db):
    return IterationHarness(db=db)


@pytest.fixture
def queue_home(tmp_path, monkeypatch):
    """Point the SQLite queue at a fresh database."""
    storage.close_conn()
    monkeypatch.setenv("JOBITER_HOME", str(tmp_path))
    yield tmp_path
    storage.close_conn()
