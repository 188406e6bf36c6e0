import contextlib
import logging

from .errors import ArgumentError, Error

logger = logging.getLogger(__name__)

TRANSACTION_MODES = ("deferred", "immediate", "exclusive")


class Rollback(BaseException):
    """Control signal: roll back the innermost ``transaction()`` block quietly.

    Derived from BaseException so that ``except Exception`` handlers inside
    the block do not mistake it for an application error.
    """


class TransactionManager:
    def __init__(self, connection):
        self._connection = connection
        self._depth = 0

    @property
    def active(self):
        conn = self._connection
        conn._check_open()
        return not conn._lib.sqlite3_get_autocommit(conn._db)

    @property
    def depth(self):
        return self._depth

    @contextlib.contextmanager
    def transaction(self, mode="deferred"):
        if mode not in TRANSACTION_MODES:
            raise ArgumentError(f"Invalid transaction mode {mode!r}: expected one of {', '.join(TRANSACTION_MODES)}")

        conn = self._connection
        # The engine itself rejects a BEGIN inside an open transaction.
        conn.execute(f"BEGIN {mode.upper()}")
        self._depth += 1
        try:
            yield conn
        except Rollback:
            logger.debug("Rollback requested inside transaction on %r", conn)
            self._rollback_if_active()
        except BaseException:
            self._rollback_if_active()
            raise
        else:
            try:
                conn.execute("COMMIT")
            except BaseException:
                self._rollback_if_active()
                raise
        finally:
            self._depth -= 1

    def rollback(self):
        if self._depth == 0:
            raise Error("rollback() called outside of a transaction block")
        raise Rollback()

    def _rollback_if_active(self):
        # The block may have ended the transaction itself with raw SQL, or
        # closed the connection.
        if not self._connection.closed and self.active:
            self._connection.execute("ROLLBACK")
