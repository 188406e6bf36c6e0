import ctypes
import logging
import os
import threading

from . import errors
from .backup import BackupEngine
from .errors import ArgumentError, BusyError, ClosedError, OpenError, SQLError
from .native import (
    load_library,
    LIMIT_CATEGORIES,
    SQLITE_OK,
    SQLITE_OPEN_CREATE, SQLITE_OPEN_FULLMUTEX, SQLITE_OPEN_READONLY,
    SQLITE_OPEN_READWRITE, SQLITE_OPEN_URI,
)
from .results import ResultShape, materialize
from .scheduling import BusyRetryController, normalize_yield_threshold
from .statement import PreparedStatement, compile_chain, is_blank
from .transaction import TransactionManager

logger = logging.getLogger(__name__)

MEMORY_SOURCES = ("", ":memory:")


class Connection:
    """An open SQLite database handle and everything stepped through it.

    The connection is the single owner of its native handle and of every
    statement compiled on it; ``close()`` releases all of them. One step runs
    on the handle at a time. Other threads may call ``interrupt()`` at any
    moment.
    """

    def __init__(self, source=":memory:", read_only=False, busy_timeout=None, yield_threshold=None):
        self._lib = load_library()
        self._source = os.fspath(source)
        self._db = None
        self._busy = BusyRetryController(busy_timeout)
        self._yield_threshold = normalize_yield_threshold(yield_threshold)
        self._trace = None
        self._lock = threading.RLock()
        self._statements = set()
        self._transactions = TransactionManager(self)
        self._open(read_only)

    def _open(self, read_only):
        if "\0" in self._source:
            raise OpenError("Database path contains a null character")

        if read_only:
            flags = SQLITE_OPEN_READONLY
        else:
            flags = SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE
        flags |= SQLITE_OPEN_URI | SQLITE_OPEN_FULLMUTEX

        db = ctypes.c_void_p()
        rc = self._lib.sqlite3_open_v2(self._source.encode("utf-8"), ctypes.byref(db), flags, None)
        if rc != SQLITE_OK:
            snapshot = errors.capture(db.value, rc)
            # The engine hands back a handle even on failure; it must still be closed.
            if db.value:
                self._lib.sqlite3_close_v2(db.value)
            raise errors.engine_error(rc, snapshot, cls=OpenError)

        self._db = db.value
        logger.debug("Opened %s (read_only=%s)", self._source, read_only)
        if self._source not in MEMORY_SOURCES:
            self._check_header()

    def _check_header(self):
        # Reading the schema cookie forces the engine to parse the file header.
        try:
            self.query_single_value("PRAGMA schema_version")
        except BusyError:
            logger.debug("%s is locked; header check deferred to first use", self._source)
        except SQLError as exc:
            self.close()
            raise OpenError(exc.message, code=exc.code, offset=exc.offset, context=exc.context) from exc

    def __repr__(self):
        if self._db is None:
            return f"<threadlite.Connection 0x{id(self):x} (closed)>"
        return f"<threadlite.Connection 0x{id(self):x} {self._source}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Lifecycle

    @property
    def source(self):
        return self._source

    @property
    def closed(self):
        return self._db is None

    def close(self):
        with self._lock:
            if self._db is None:
                return self
            for statement in list(self._statements):
                statement.close()
            rc = self._lib.sqlite3_close_v2(self._db)
            self._db = None
        logger.debug("Closed %s", self._source)
        if rc != SQLITE_OK:
            errors.raise_error(None, rc)
        return self

    def _check_open(self):
        if self._db is None:
            raise ClosedError("Database is closed")

    @property
    def read_only(self):
        self._check_open()
        return self._lib.sqlite3_db_readonly(self._db, b"main") == 1

    # Compilation

    def _compile(self, encoded):
        """Compile the first statement of ``encoded``.

        Returns ``(handle, consumed)``; the handle is None when the consumed
        text held no statement.
        """
        self._check_open()
        buf = ctypes.create_string_buffer(encoded)
        handle = ctypes.c_void_p()
        tail = ctypes.c_void_p()
        with self._lock:
            rc = self._lib.sqlite3_prepare_v2(
                self._db, buf, len(encoded) + 1, ctypes.byref(handle), ctypes.byref(tail)
            )
            if rc != SQLITE_OK:
                errors.raise_error(self._db, rc, sql=encoded.decode("utf-8", errors="replace"))
        if tail.value:
            consumed = min(tail.value - ctypes.addressof(buf), len(encoded))
        else:
            consumed = len(encoded)
        return handle.value, consumed

    def prepare(self, sql, *params):
        """Compile a single statement for repeated execution."""
        self._check_open()
        if "\0" in sql:
            raise ArgumentError("SQL contains a null character")
        encoded = sql.encode("utf-8")
        handle, consumed = self._compile(encoded)
        if handle is None:
            raise ArgumentError("No SQL statement to prepare")
        if not is_blank(encoded[consumed:]):
            self._lib.sqlite3_finalize(handle)
            raise ArgumentError("Only a single statement can be prepared")
        statement = PreparedStatement(self, handle, encoded[:consumed].decode("utf-8").strip())
        if params:
            statement.bind(*params)
        return statement

    # Queries

    def _query(self, shape, sql, params):
        self._check_open()
        if "\0" in sql:
            raise ArgumentError("SQL contains a null character")
        statement = compile_chain(self, sql)
        if statement is None:
            return None
        try:
            if params:
                statement.bind(*params)
            return materialize(statement, shape)
        finally:
            statement.close()

    def query(self, sql, *params):
        return self._query(ResultShape.MAPPING, sql, params)

    def query_tuple(self, sql, *params):
        return self._query(ResultShape.TUPLE, sql, params)

    def query_single_row(self, sql, *params):
        return self._query(ResultShape.SINGLE_ROW, sql, params)

    def query_single_column(self, sql, *params):
        return self._query(ResultShape.SINGLE_COLUMN, sql, params)

    def query_single_value(self, sql, *params):
        return self._query(ResultShape.SINGLE_VALUE, sql, params)

    def columns(self, sql):
        return self._query(ResultShape.COLUMNS, sql, ())

    def execute(self, sql, *params):
        """Run ``sql`` for its effects; return the changes of its last statement."""
        self._check_open()
        if "\0" in sql:
            raise ArgumentError("SQL contains a null character")
        statement = compile_chain(self, sql)
        if statement is None:
            return None
        try:
            return statement.execute(*params)
        finally:
            statement.close()

    def batch_execute(self, sql, parameters):
        """Run one statement for each parameter set; return the total changes.

        ``parameters`` is an iterable of parameter sets, or a callable that
        returns the next set and None once exhausted.
        """
        with self.prepare(sql) as statement:
            return statement.batch_execute(parameters)

    # Transactions

    def transaction(self, mode="deferred"):
        return self._transactions.transaction(mode)

    def rollback(self):
        self._check_open()
        self._transactions.rollback()

    @property
    def transaction_active(self):
        return self._transactions.active

    # Tuning

    @property
    def busy_timeout(self):
        return self._busy.timeout

    @busy_timeout.setter
    def busy_timeout(self, value):
        self._check_open()
        self._busy = BusyRetryController(value)

    @property
    def yield_threshold(self):
        return self._yield_threshold

    @yield_threshold.setter
    def yield_threshold(self, value):
        self._check_open()
        self._yield_threshold = normalize_yield_threshold(value)

    def trace(self, sink=None):
        """Send the SQL text of every statement executed from now on to ``sink``."""
        self._check_open()
        if sink is not None and not callable(sink):
            raise ArgumentError("trace sink must be callable or None")
        self._trace = sink
        return self

    def _trace_statement(self, sql):
        sink = self._trace
        if sink is not None:
            sink(sql)

    def limit(self, category, value=None):
        """Return the run-time limit ``category``, setting it to ``value`` if given."""
        self._check_open()
        if isinstance(category, bool) or not isinstance(category, int) or category not in LIMIT_CATEGORIES:
            raise ArgumentError(f"Invalid limit category {category!r}")
        if value is None:
            value = -1
        elif isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ArgumentError(f"Invalid limit value {value!r}")
        return self._lib.sqlite3_limit(self._db, category, value)

    def interrupt(self):
        """Abort whatever statement is stepping on this connection.

        Safe to call from any thread; the engine observes the request at its
        next progress check and clears it once no statement is running.
        """
        self._check_open()
        logger.debug("Interrupt requested on %s", self._source)
        self._lib.sqlite3_interrupt(self._db)
        return self

    def _settle_interrupt(self, interrupted):
        # The engine keeps the interrupt flag raised while any statement on the
        # handle is mid-iteration, so those are stopped too.
        with self._lock:
            for statement in list(self._statements):
                if statement is not interrupted:
                    statement._abandon()

    # Introspection

    @property
    def total_changes(self):
        self._check_open()
        if hasattr(self._lib, "sqlite3_total_changes64"):
            return self._lib.sqlite3_total_changes64(self._db)
        return self._lib.sqlite3_total_changes(self._db)

    @property
    def changes(self):
        self._check_open()
        return self._lib.sqlite3_changes(self._db)

    @property
    def last_insert_rowid(self):
        self._check_open()
        return self._lib.sqlite3_last_insert_rowid(self._db)

    @property
    def errcode(self):
        self._check_open()
        return self._lib.sqlite3_extended_errcode(self._db)

    @property
    def errmsg(self):
        self._check_open()
        msg = self._lib.sqlite3_errmsg(self._db)
        return msg.decode("utf-8", errors="replace") if msg else ""

    @property
    def error_offset(self):
        self._check_open()
        if not hasattr(self._lib, "sqlite3_error_offset"):
            return None
        offset = self._lib.sqlite3_error_offset(self._db)
        return offset if offset >= 0 else None

    # Backup

    def backup(self, destination, source_schema="main", dest_schema="main", progress=None):
        """Copy ``source_schema`` into ``destination`` (a Connection or a path)."""
        return BackupEngine(self).run(destination, source_schema, dest_schema, progress)


def connect(source=":memory:", **kwargs):
    return Connection(source, **kwargs)
