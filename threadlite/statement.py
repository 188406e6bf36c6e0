from . import errors
from .binding import bind_parameters
from .errors import ClosedError
from .native import load_library, SQLITE_ROW, SQLITE_DONE, SQLITE_INTERRUPT
from .results import ResultShape, column_names, materialize, read_row
from .scheduling import CooperativeYieldController

# Cursor states
COMPILED = "compiled"
STEPPING = "stepping"
DONE = "done"
FAULTED = "faulted"
CLOSED = "closed"


def is_blank(sql):
    """True when ``sql`` (bytes) holds only whitespace, semicolons and comments."""
    index = 0
    length = len(sql)
    while index < length:
        char = sql[index:index + 1]
        index += 1
        if char in b" \t\f\n\r;":
            continue
        if char == b"-" and sql[index:index + 1] == b"-":
            newline = sql.find(b"\n", index)
            if newline < 0:
                return True
            index = newline + 1
            continue
        if char == b"/" and sql[index:index + 1] == b"*":
            close = sql.find(b"*/", index + 1)
            if close < 0:
                # An unterminated comment is left for the engine to reject.
                return False
            index = close + 2
            continue
        return False
    return True


def compile_chain(connection, sql):
    """Compile ``sql`` one statement at a time, left to right.

    Every statement except the last is run to completion and finalized as
    soon as it is compiled. The last one is returned unstepped, or None if
    the text holds no statement at all. A fault anywhere stops the chain;
    nothing already executed is undone.
    """
    remaining = sql.encode("utf-8")
    while True:
        handle, consumed = connection._compile(remaining)
        text, remaining = remaining[:consumed], remaining[consumed:]
        last = is_blank(remaining)
        if handle is None:
            if last or consumed == 0:
                return None
            continue

        statement = PreparedStatement(connection, handle, text.decode("utf-8").strip())
        if last:
            return statement
        try:
            statement._run_to_completion()
        finally:
            statement.close()


def parameter_sets(parameters):
    """Iterate batch parameter sets from an iterable or a producer callable."""
    if callable(parameters):
        return iter(parameters, None)
    return iter(parameters)


class PreparedStatement:
    def __init__(self, connection, handle, sql):
        self._connection = connection
        self._handle = handle
        self._lib = load_library()
        self._sql = sql
        self._columns = column_names(handle)
        self._state = COMPILED
        self._rows_seen = False
        self._params = None
        self._failure = None
        self._abandoned = None
        self._yielder = CooperativeYieldController(connection)
        connection._statements.add(self)

    def __repr__(self):
        state = "closed" if self._handle is None else self._state
        return f"<threadlite.PreparedStatement 0x{id(self):x} {state} {self._sql!r}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def sql(self):
        return self._sql

    @property
    def columns(self):
        self._check_open()
        return list(self._columns)

    @property
    def closed(self):
        return self._handle is None

    @property
    def eof(self):
        return self._state == DONE

    @property
    def parameter_count(self):
        self._check_open()
        return self._lib.sqlite3_bind_parameter_count(self._handle)

    def close(self):
        if self._handle is None:
            return self
        self._lib.sqlite3_finalize(self._handle)
        self._handle = None
        self._state = CLOSED
        self._connection._statements.discard(self)
        return self

    def reset(self):
        self._check_open()
        # The return value repeats the last step's error, already reported.
        self._lib.sqlite3_reset(self._handle)
        self._state = COMPILED
        self._rows_seen = False
        self._abandoned = None
        self._yielder.reset()
        return self

    def bind(self, *params):
        self.reset()
        self._lib.sqlite3_clear_bindings(self._handle)
        self._params = params
        bind_parameters(self._handle, params)
        return self

    # Iteration

    def next_tuple(self):
        """Step once; return the row as a tuple, or None when exhausted."""
        if not self._step():
            return None
        return read_row(self._handle, len(self._columns))

    def next_row(self):
        row = self.next_tuple()
        return None if row is None else dict(zip(self._columns, row))

    def next(self, shape=ResultShape.MAPPING):
        row = self.next_tuple()
        if row is None or shape is ResultShape.TUPLE:
            return row
        if shape is ResultShape.MAPPING:
            return dict(zip(self._columns, row))
        if shape in (ResultShape.SINGLE_COLUMN, ResultShape.SINGLE_VALUE):
            return row[0]
        raise errors.ArgumentError(f"Shape {shape!r} cannot be fetched one row at a time")

    def __iter__(self):
        self.reset()
        while True:
            row = self.next_row()
            if row is None:
                return
            yield row

    def to_list(self):
        return materialize(self.reset(), ResultShape.MAPPING)

    def to_tuples(self):
        return materialize(self.reset(), ResultShape.TUPLE)

    def to_column(self):
        return materialize(self.reset(), ResultShape.SINGLE_COLUMN)

    def single_row(self):
        return materialize(self.reset(), ResultShape.SINGLE_ROW)

    def value(self):
        return materialize(self.reset(), ResultShape.SINGLE_VALUE)

    # Mutation

    def execute(self, *params):
        if params:
            self.bind(*params)
        else:
            self.reset()
        self._run_to_completion()
        return self._lib.sqlite3_changes(self._connection._db)

    def batch_execute(self, parameters):
        """Run the statement once per parameter set; return the summed changes.

        A failing set raises at once. Sets already applied stay applied unless
        the caller wraps the batch in a transaction.
        """
        self._check_open()
        changes = 0
        for params in parameter_sets(parameters):
            self.bind(params)
            self._run_to_completion()
            changes += self._lib.sqlite3_changes(self._connection._db)
        self.reset()
        return changes

    # Stepping

    def _check_open(self):
        if self._handle is None:
            raise ClosedError("Statement is closed")
        self._connection._check_open()

    def _attempt_step(self):
        conn = self._connection
        with conn._lock:
            started = bool(self._lib.sqlite3_stmt_busy(self._handle))
            rc = self._yielder.call(started, "sqlite3_step", self._handle)
            if rc != SQLITE_ROW and rc != SQLITE_DONE:
                self._failure = errors.capture(conn._db, rc)
            return rc

    def _step(self):
        self._check_open()
        if self._state == DONE:
            return False
        if self._state == FAULTED:
            abandoned = self._abandoned
            self.reset()
            if abandoned is not None:
                raise errors.engine_error(SQLITE_INTERRUPT, abandoned, sql=self._sql, params=self._params)
        if self._state == COMPILED:
            self._connection._trace_statement(self._sql)
            self._state = STEPPING

        # Rows already handed out would be delivered twice by a retry.
        rc = self._connection._busy.run(self._attempt_step, retryable=not self._rows_seen)
        if rc == SQLITE_ROW:
            self._rows_seen = True
            return True
        if rc == SQLITE_DONE:
            self._state = DONE
            return False

        self._state = FAULTED
        failure, self._failure = self._failure, None
        if rc & 0xFF == SQLITE_INTERRUPT:
            self._connection._settle_interrupt(self)
        raise errors.engine_error(rc, failure, sql=self._sql, params=self._params)

    def _abandon(self):
        """Stop a statement left mid-iteration by an interrupt on its connection.

        The next step reports the interrupt; after that the statement runs
        again from its first row.
        """
        if self._handle is None or not self._lib.sqlite3_stmt_busy(self._handle):
            return
        self._lib.sqlite3_reset(self._handle)
        self._state = FAULTED
        self._abandoned = (SQLITE_INTERRUPT, "interrupted", None)

    def _run_to_completion(self):
        while self._step():
            pass
