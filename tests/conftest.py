import pytest
import threadlite


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def db():
    conn = threadlite.connect(":memory:")
    conn.execute("CREATE TABLE t (x, y, z)")
    conn.execute("INSERT INTO t VALUES (1, 2, 3)")
    conn.execute("INSERT INTO t VALUES (4, 5, 6)")
    yield conn
    conn.close()


@pytest.fixture
def file_db(db_path):
    conn = threadlite.connect(db_path)
    conn.execute("CREATE TABLE t (x, y, z)")
    conn.execute("INSERT INTO t VALUES (1, 2, 3)")
    conn.execute("INSERT INTO t VALUES (4, 5, 6)")
    yield conn
    conn.close()
