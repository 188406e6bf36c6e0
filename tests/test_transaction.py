import queue
import threading

import pytest
import threadlite


def test_transaction_commits(file_db, db_path):
    other = threadlite.connect(db_path)
    with file_db.transaction() as conn:
        assert conn is file_db
        assert file_db.transaction_active
        file_db.execute("INSERT INTO t VALUES (7, 8, 9)")
        assert other.query_single_value("SELECT count(*) FROM t") == 2
    assert not file_db.transaction_active
    assert other.query_single_value("SELECT count(*) FROM t") == 3
    other.close()


def test_transaction_rolls_back_on_exception(db):
    with pytest.raises(ZeroDivisionError):
        with db.transaction():
            db.execute("INSERT INTO t VALUES (7, 8, 9)")
            1 / 0
    assert not db.transaction_active
    assert db.query_single_value("SELECT count(*) FROM t") == 2


def test_rollback_signal(db):
    with db.transaction():
        db.execute("INSERT INTO t VALUES (7, 8, 9)")
        db.rollback()
        pytest.fail("rollback() must leave the block")
    assert not db.transaction_active
    assert db.query_single_value("SELECT count(*) FROM t") == 2


def test_rollback_signal_passes_exception_handlers(db):
    with db.transaction():
        db.execute("INSERT INTO t VALUES (7, 8, 9)")
        try:
            raise threadlite.Rollback()
        except Exception:
            pytest.fail("Rollback is not an application error")
    assert db.query_single_value("SELECT count(*) FROM t") == 2


def test_rollback_outside_transaction(db):
    with pytest.raises(threadlite.Error):
        db.rollback()


def test_transaction_not_reentrant(db):
    with pytest.raises(threadlite.SQLError):
        with db.transaction():
            db.execute("INSERT INTO t VALUES (7, 8, 9)")
            with db.transaction():
                pass
    assert not db.transaction_active
    assert db.query_single_value("SELECT count(*) FROM t") == 2


@pytest.mark.parametrize("mode", ["deferred", "immediate", "exclusive"])
def test_transaction_modes(db, mode):
    with db.transaction(mode):
        db.execute("INSERT INTO t VALUES (7, 8, 9)")
    assert db.query_single_value("SELECT count(*) FROM t") == 3


def test_transaction_invalid_mode(db):
    with pytest.raises(threadlite.ArgumentError):
        with db.transaction("nested"):
            pass
    assert not db.transaction_active


def test_transaction_active_tracks_raw_sql(db):
    assert not db.transaction_active
    db.execute("BEGIN")
    assert db.transaction_active
    db.execute("COMMIT")
    assert not db.transaction_active


def test_block_may_end_transaction_itself(db):
    with db.transaction():
        db.execute("INSERT INTO t VALUES (7, 8, 9)")
        db.execute("ROLLBACK")
        db.rollback()
    assert db.query_single_value("SELECT count(*) FROM t") == 2


def test_commit_visible_from_other_thread(db_path):
    writer_ready = queue.Queue()
    reader_done = queue.Queue()

    def writer():
        conn = threadlite.connect(db_path)
        try:
            with conn.transaction():
                conn.execute("INSERT INTO t VALUES (7, 8, 9)")
                writer_ready.put("inserted")
                reader_done.get(timeout=5)
        finally:
            conn.close()

    reader = threadlite.connect(db_path)
    reader.execute("CREATE TABLE t (x, y, z)")

    thread = threading.Thread(target=writer)
    thread.start()
    assert writer_ready.get(timeout=5) == "inserted"
    assert reader.query_single_value("SELECT count(*) FROM t") == 0
    reader_done.put("checked")
    thread.join(timeout=5)

    assert reader.query_single_value("SELECT count(*) FROM t") == 1
    reader.close()
