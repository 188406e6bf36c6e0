import pytest
import threadlite
from threadlite import errors
from threadlite.native import SQLITE_BUSY, SQLITE_BUSY_SNAPSHOT, SQLITE_CONSTRAINT_UNIQUE, SQLITE_INTERRUPT


def test_hierarchy():
    assert issubclass(threadlite.ArgumentError, ValueError)
    for cls in (threadlite.OpenError, threadlite.SQLError, threadlite.BusyError, threadlite.InterruptError):
        assert issubclass(cls, threadlite.EngineError)
        assert issubclass(cls, threadlite.Error)
    assert not issubclass(threadlite.Rollback, Exception)


@pytest.mark.parametrize("rc, cls", [
    (SQLITE_BUSY, threadlite.BusyError),
    (SQLITE_BUSY_SNAPSHOT, threadlite.BusyError),
    (SQLITE_INTERRUPT, threadlite.InterruptError),
    (SQLITE_CONSTRAINT_UNIQUE, threadlite.SQLError),
])
def test_engine_error_classification(rc, cls):
    err = errors.engine_error(rc, (rc, "boom", None), sql="SELECT 1", params=(1,))
    assert type(err) is cls
    assert err.code == rc
    assert str(err) == "boom"
    assert err.context == {"native_code": rc, "sql": "SELECT 1", "params": [1]}


def test_engine_error_explicit_class():
    err = errors.engine_error(SQLITE_BUSY, (SQLITE_BUSY, "locked", 3), cls=threadlite.OpenError)
    assert type(err) is threadlite.OpenError
    assert err.offset == 3
    assert "sql" not in err.context


def test_capture_without_handle():
    code, message, offset = errors.capture(None, SQLITE_BUSY)
    assert code == SQLITE_BUSY
    assert message == "database is locked"
    assert offset is None


def test_describe_params():
    described = errors.describe_params(("x" * 500, b"\x01" * 100, None, 1.5, [1, 2]))
    assert described[0] == "x" * 200 + "…"
    assert described[1] == {"_type": "bytes", "len": 100, "hex": "01" * 64, "truncated": True}
    assert described[2:4] == [None, 1.5]
    assert described[4] == [1, 2]


def test_describe_value_binary_types():
    assert errors.describe_value(threadlite.Blob("ab")) == {"_type": "Blob", "len": 2, "hex": "6162"}
    assert errors.describe_value(bytearray(b"\x00")) == {"_type": "bytearray", "len": 1, "hex": "00"}
    assert errors.describe_value(object()).startswith("<object object at")


def test_describe_params_truncates():
    described = errors.describe_params(list(range(60)))
    assert len(described) == 51
    assert described[-1] == "<truncated>"

    described = errors.describe_params({str(i): i for i in range(60)})
    assert len(described) == 51
    assert described["_truncated"] is True


def test_decode_error():
    assert issubclass(threadlite.DecodeError, threadlite.Error)
    assert issubclass(threadlite.DecodeError, ValueError)
