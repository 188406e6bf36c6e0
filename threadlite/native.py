import ctypes
import ctypes.util
import logging
import os
import sys
from ctypes import c_int, c_int64, c_double, c_char_p, c_void_p, POINTER

logger = logging.getLogger(__name__)

# Result codes (primary codes; extended codes keep these in the low byte).
SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_EMPTY = 16
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_ROW = 100
SQLITE_DONE = 101

# A few extended codes callers commonly match on.
SQLITE_BUSY_SNAPSHOT = SQLITE_BUSY | (2 << 8)
SQLITE_CONSTRAINT_NOTNULL = SQLITE_CONSTRAINT | (5 << 8)
SQLITE_CONSTRAINT_PRIMARYKEY = SQLITE_CONSTRAINT | (6 << 8)
SQLITE_CONSTRAINT_UNIQUE = SQLITE_CONSTRAINT | (8 << 8)

# Open flags
SQLITE_OPEN_READONLY = 0x00000001
SQLITE_OPEN_READWRITE = 0x00000002
SQLITE_OPEN_CREATE = 0x00000004
SQLITE_OPEN_URI = 0x00000040
SQLITE_OPEN_FULLMUTEX = 0x00010000

# Fundamental datatypes reported by sqlite3_column_type
SQLITE_INTEGER = 1
SQLITE_FLOAT = 2
SQLITE_TEXT = 3
SQLITE_BLOB = 4
SQLITE_NULL = 5

# Run-time limit categories (sqlite3_limit)
SQLITE_LIMIT_LENGTH = 0
SQLITE_LIMIT_SQL_LENGTH = 1
SQLITE_LIMIT_COLUMN = 2
SQLITE_LIMIT_EXPR_DEPTH = 3
SQLITE_LIMIT_COMPOUND_SELECT = 4
SQLITE_LIMIT_VDBE_OP = 5
SQLITE_LIMIT_FUNCTION_ARG = 6
SQLITE_LIMIT_ATTACHED = 7
SQLITE_LIMIT_LIKE_PATTERN_LENGTH = 8
SQLITE_LIMIT_VARIABLE_NUMBER = 9
SQLITE_LIMIT_TRIGGER_DEPTH = 10
SQLITE_LIMIT_WORKER_THREADS = 11

LIMIT_CATEGORIES = frozenset(range(SQLITE_LIMIT_LENGTH, SQLITE_LIMIT_WORKER_THREADS + 1))

# Destructor sentinel telling the engine to copy bound text/blob buffers.
SQLITE_TRANSIENT = c_void_p(-1)

# Two views of the same shared library:
#   _lib      (PyDLL) calls run with the GIL held. This is the default for
#             every call, so host-level work stays serialized.
#   _release  (CDLL)  calls drop the GIL for their duration. Only the
#             long-running entry points are declared on it.
_lib = None
_release = None
_lib_path = None


def _candidate_paths():
    env_path = os.environ.get("THREADLITE_SQLITE_LIB")
    if env_path:
        return [env_path]

    candidates = []
    found = ctypes.util.find_library("sqlite3")
    if found:
        candidates.append(found)

    # Common sonames, for systems where find_library has no ldconfig/gcc.
    if sys.platform == "darwin":
        candidates.append("libsqlite3.dylib")
    elif sys.platform == "win32":
        candidates.append("sqlite3.dll")
    else:
        candidates.extend(["libsqlite3.so.0", "libsqlite3.so"])

    # Last resort: the interpreter's own sqlite3 extension module links the
    # engine, so its symbols resolve through that module's handle.
    try:
        import _sqlite3
    except ImportError:
        pass
    else:
        module_path = getattr(_sqlite3, "__file__", None)
        if module_path:
            candidates.append(module_path)

    return candidates


def _open_library():
    global _lib_path
    errors = []
    for path in _candidate_paths():
        try:
            lib = ctypes.PyDLL(path)
        except OSError as e:
            errors.append(f"{path}: {e}")
            continue
        if not hasattr(lib, "sqlite3_prepare_v2"):
            errors.append(f"{path}: no sqlite3 symbols")
            continue
        _lib_path = path
        logger.debug("Loaded SQLite library from %s", path)
        return lib

    detail = "; ".join(errors) if errors else "no candidates"
    raise RuntimeError(
        f"Could not find the SQLite native library ({detail}). "
        "Set THREADLITE_SQLITE_LIB env var."
    )


def load_library():
    """Return the GIL-holding view of the SQLite library, loading it once."""
    global _lib
    if _lib is not None:
        return _lib

    lib = _open_library()

    # Version
    lib.sqlite3_libversion.argtypes = []
    lib.sqlite3_libversion.restype = c_char_p

    # Connection lifecycle
    lib.sqlite3_open_v2.argtypes = [c_char_p, POINTER(c_void_p), c_int, c_char_p]
    lib.sqlite3_open_v2.restype = c_int

    lib.sqlite3_close_v2.argtypes = [c_void_p]
    lib.sqlite3_close_v2.restype = c_int

    lib.sqlite3_interrupt.argtypes = [c_void_p]
    lib.sqlite3_interrupt.restype = None

    lib.sqlite3_db_readonly.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_db_readonly.restype = c_int

    lib.sqlite3_limit.argtypes = [c_void_p, c_int, c_int]
    lib.sqlite3_limit.restype = c_int

    # Errors
    lib.sqlite3_errcode.argtypes = [c_void_p]
    lib.sqlite3_errcode.restype = c_int

    lib.sqlite3_extended_errcode.argtypes = [c_void_p]
    lib.sqlite3_extended_errcode.restype = c_int

    lib.sqlite3_errmsg.argtypes = [c_void_p]
    lib.sqlite3_errmsg.restype = c_char_p

    lib.sqlite3_errstr.argtypes = [c_int]
    lib.sqlite3_errstr.restype = c_char_p

    # Only in 3.38+; error_offset() reports None without it.
    if hasattr(lib, "sqlite3_error_offset"):
        lib.sqlite3_error_offset.argtypes = [c_void_p]
        lib.sqlite3_error_offset.restype = c_int

    # Counters and state
    lib.sqlite3_changes.argtypes = [c_void_p]
    lib.sqlite3_changes.restype = c_int

    lib.sqlite3_total_changes.argtypes = [c_void_p]
    lib.sqlite3_total_changes.restype = c_int

    if hasattr(lib, "sqlite3_total_changes64"):
        lib.sqlite3_total_changes64.argtypes = [c_void_p]
        lib.sqlite3_total_changes64.restype = c_int64

    lib.sqlite3_last_insert_rowid.argtypes = [c_void_p]
    lib.sqlite3_last_insert_rowid.restype = c_int64

    lib.sqlite3_get_autocommit.argtypes = [c_void_p]
    lib.sqlite3_get_autocommit.restype = c_int

    # Statements
    lib.sqlite3_prepare_v2.argtypes = [c_void_p, c_void_p, c_int, POINTER(c_void_p), POINTER(c_void_p)]
    lib.sqlite3_prepare_v2.restype = c_int

    lib.sqlite3_step.argtypes = [c_void_p]
    lib.sqlite3_step.restype = c_int

    lib.sqlite3_reset.argtypes = [c_void_p]
    lib.sqlite3_reset.restype = c_int

    lib.sqlite3_finalize.argtypes = [c_void_p]
    lib.sqlite3_finalize.restype = c_int

    lib.sqlite3_clear_bindings.argtypes = [c_void_p]
    lib.sqlite3_clear_bindings.restype = c_int

    lib.sqlite3_stmt_busy.argtypes = [c_void_p]
    lib.sqlite3_stmt_busy.restype = c_int

    # Bindings
    lib.sqlite3_bind_parameter_count.argtypes = [c_void_p]
    lib.sqlite3_bind_parameter_count.restype = c_int

    lib.sqlite3_bind_parameter_index.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_bind_parameter_index.restype = c_int

    lib.sqlite3_bind_parameter_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_parameter_name.restype = c_char_p

    lib.sqlite3_bind_null.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_null.restype = c_int

    lib.sqlite3_bind_int64.argtypes = [c_void_p, c_int, c_int64]
    lib.sqlite3_bind_int64.restype = c_int

    lib.sqlite3_bind_double.argtypes = [c_void_p, c_int, c_double]
    lib.sqlite3_bind_double.restype = c_int

    lib.sqlite3_bind_text.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_text.restype = c_int

    lib.sqlite3_bind_blob.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_blob.restype = c_int

    # Columns
    lib.sqlite3_column_count.argtypes = [c_void_p]
    lib.sqlite3_column_count.restype = c_int

    lib.sqlite3_column_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_name.restype = c_char_p

    lib.sqlite3_column_type.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_type.restype = c_int

    lib.sqlite3_column_int64.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_int64.restype = c_int64

    lib.sqlite3_column_double.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_double.restype = c_double

    # Text and blob accessors return raw pointers; read them with
    # sqlite3_column_bytes so embedded NULs survive.
    lib.sqlite3_column_text.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_text.restype = c_void_p

    lib.sqlite3_column_blob.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_blob.restype = c_void_p

    lib.sqlite3_column_bytes.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_bytes.restype = c_int

    # Online backup
    lib.sqlite3_backup_init.argtypes = [c_void_p, c_char_p, c_void_p, c_char_p]
    lib.sqlite3_backup_init.restype = c_void_p

    lib.sqlite3_backup_step.argtypes = [c_void_p, c_int]
    lib.sqlite3_backup_step.restype = c_int

    lib.sqlite3_backup_remaining.argtypes = [c_void_p]
    lib.sqlite3_backup_remaining.restype = c_int

    lib.sqlite3_backup_pagecount.argtypes = [c_void_p]
    lib.sqlite3_backup_pagecount.restype = c_int

    lib.sqlite3_backup_finish.argtypes = [c_void_p]
    lib.sqlite3_backup_finish.restype = c_int

    _lib = lib
    return _lib


def load_releasing_library():
    """Return the GIL-releasing view, declaring only the calls that may run long."""
    global _release
    if _release is not None:
        return _release

    load_library()
    lib = ctypes.CDLL(_lib_path)

    lib.sqlite3_step.argtypes = [c_void_p]
    lib.sqlite3_step.restype = c_int

    lib.sqlite3_backup_step.argtypes = [c_void_p, c_int]
    lib.sqlite3_backup_step.restype = c_int

    _release = lib
    return _release


def sqlite3_version():
    return load_library().sqlite3_libversion().decode("ascii")
