import logging

from . import errors
from .errors import ArgumentError
from .native import (
    load_library,
    SQLITE_OK, SQLITE_DONE, SQLITE_BUSY, SQLITE_LOCKED,
)
from .scheduling import CooperativeYieldController

logger = logging.getLogger(__name__)

BACKUP_BATCH_PAGES = 16


class BackupEngine:
    """Online copy of one schema of a connection into another database."""

    def __init__(self, source):
        self._source = source
        self._lib = load_library()

    def run(self, destination, source_schema="main", dest_schema="main", progress=None):
        src = self._source
        src._check_open()
        if progress is not None and not callable(progress):
            raise ArgumentError("progress must be callable")

        owned = not isinstance(destination, type(src))
        dest = type(src)(destination) if owned else destination
        try:
            dest._check_open()
            if dest is src:
                raise ArgumentError("Cannot back up a connection into itself")
            self._copy(dest, source_schema, dest_schema, progress)
        finally:
            if owned:
                dest.close()
        return src

    def _copy(self, dest, source_schema, dest_schema, progress):
        src = self._source
        lib = self._lib
        handle = lib.sqlite3_backup_init(
            dest._db, dest_schema.encode("utf-8"),
            src._db, source_schema.encode("utf-8"),
        )
        if not handle:
            errors.raise_error(dest._db)

        yielder = CooperativeYieldController(src)
        state = {"started": False}

        def attempt():
            with src._lock:
                rc = yielder.call(state["started"], "sqlite3_backup_step", handle, BACKUP_BATCH_PAGES)
            state["started"] = True
            return rc

        rc = SQLITE_OK
        try:
            while True:
                rc = src._busy.run(attempt, contention=(SQLITE_BUSY, SQLITE_LOCKED))
                if rc != SQLITE_OK and rc != SQLITE_DONE:
                    break
                remaining = lib.sqlite3_backup_remaining(handle)
                total = lib.sqlite3_backup_pagecount(handle)
                logger.debug("Backup progress: %d of %d pages remaining", remaining, total)
                if progress is not None:
                    progress(remaining, total)
                if rc == SQLITE_DONE:
                    break
        finally:
            finish_rc = lib.sqlite3_backup_finish(handle)

        if rc != SQLITE_DONE:
            errors.raise_error(dest._db, rc)
        if finish_rc != SQLITE_OK:
            errors.raise_error(dest._db, finish_rc)
