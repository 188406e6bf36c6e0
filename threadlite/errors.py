import collections.abc
import itertools

from .native import (
    load_library,
    SQLITE_OK, SQLITE_BUSY, SQLITE_INTERRUPT,
)


class Error(Exception):
    pass


class ClosedError(Error):
    pass


class ParameterError(Error):
    pass


class ArgumentError(Error, ValueError):
    pass


class DecodeError(Error, ValueError):
    """A TEXT value read from the engine is not valid UTF-8."""

    def __init__(self, message, column=None, data=None):
        super().__init__(message)
        self.column = column
        self.data = data


class EngineError(Error):
    """A fault reported by the native engine.

    ``code`` is the extended result code, ``offset`` the byte offset into the
    SQL text when the engine can compute one. ``context`` carries the SQL and
    a capped rendering of the bound parameters for diagnostics.
    """

    def __init__(self, message, code=None, offset=None, context=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.offset = offset
        self.context = context or {}


class OpenError(EngineError):
    pass


class SQLError(EngineError):
    pass


class BusyError(EngineError):
    pass


class InterruptError(EngineError):
    pass


def describe_value(value, *, max_text=200, max_blob=64):
    """Render one bound value for an error context, capped in size.

    Binary values keep their Python type name, so a ``Blob`` built from text
    is told apart from plain ``bytes``.
    """
    if value is None or isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_text else value[:max_text] + "…"
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        rendered = {"_type": type(value).__name__, "len": len(data), "hex": data[:max_blob].hex()}
        if len(data) > max_blob:
            rendered["truncated"] = True
        return rendered
    text = repr(value)
    return text if len(text) <= max_text else text[:max_text] + "…"


def describe_params(params, *, max_items=50):
    """Capped rendering of the arguments of a query call for ``context``."""
    if isinstance(params, collections.abc.Mapping):
        out = {str(key): describe_value(value) for key, value in itertools.islice(params.items(), max_items)}
        if len(params) > max_items:
            out["_truncated"] = True
        return out
    if isinstance(params, (list, tuple)):
        out = [
            describe_params(value) if isinstance(value, (list, tuple, collections.abc.Mapping))
            else describe_value(value)
            for value in params[:max_items]
        ]
        if len(params) > max_items:
            out.append("<truncated>")
        return out
    return describe_value(params)


def capture(db_handle, rc=None):
    """Snapshot (code, message, offset) for the most recent fault on a handle.

    Must be called before anything else touches the handle, otherwise the
    snapshot belongs to the later call.
    """
    lib = load_library()
    if not db_handle:
        code = rc if rc is not None else SQLITE_OK
        msg = lib.sqlite3_errstr(code)
        return code, (msg.decode("utf-8", errors="replace") if msg else f"Unknown error {code}"), None

    code = lib.sqlite3_extended_errcode(db_handle)
    if code == SQLITE_OK and rc is not None:
        code = rc
    msg = lib.sqlite3_errmsg(db_handle)
    msg_str = msg.decode("utf-8", errors="replace") if msg else f"Unknown error {code}"

    offset = None
    if hasattr(lib, "sqlite3_error_offset"):
        raw_offset = lib.sqlite3_error_offset(db_handle)
        if raw_offset >= 0:
            offset = raw_offset
    return code, msg_str, offset


def engine_error(rc, snapshot, *, sql=None, params=None, cls=None):
    code, message, offset = snapshot
    if cls is None:
        primary = (rc if rc is not None else code) & 0xFF
        if primary == SQLITE_BUSY:
            cls = BusyError
        elif primary == SQLITE_INTERRUPT:
            cls = InterruptError
        else:
            cls = SQLError

    context = {"native_code": int(code)}
    if sql is not None:
        context["sql"] = sql
        context["params"] = describe_params(params)
    return cls(message, code=code, offset=offset, context=context)


def raise_error(db_handle, rc=None, *, sql=None, params=None, cls=None):
    raise engine_error(rc, capture(db_handle, rc), sql=sql, params=params, cls=cls)
