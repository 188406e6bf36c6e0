import ctypes
import enum

from .errors import DecodeError
from .native import (
    load_library,
    SQLITE_INTEGER, SQLITE_FLOAT, SQLITE_TEXT, SQLITE_BLOB,
)


class ResultShape(enum.Enum):
    MAPPING = "mapping"
    TUPLE = "tuple"
    SINGLE_ROW = "single_row"
    SINGLE_COLUMN = "single_column"
    SINGLE_VALUE = "single_value"
    COLUMNS = "columns"


def column_names(handle):
    lib = load_library()
    names = []
    for i in range(lib.sqlite3_column_count(handle)):
        name_ptr = lib.sqlite3_column_name(handle, i)
        names.append(name_ptr.decode("utf-8") if name_ptr else "")
    return names


def column_value(lib, handle, i):
    kind = lib.sqlite3_column_type(handle, i)
    if kind == SQLITE_INTEGER:
        return lib.sqlite3_column_int64(handle, i)
    if kind == SQLITE_FLOAT:
        return lib.sqlite3_column_double(handle, i)
    if kind == SQLITE_TEXT:
        # The pointer must be fetched before the length.
        ptr = lib.sqlite3_column_text(handle, i)
        length = lib.sqlite3_column_bytes(handle, i)
        if not ptr or length <= 0:
            return ""
        data = ctypes.string_at(ptr, length)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(
                f"Column {i} holds TEXT that is not valid UTF-8 (byte {exc.start}); cast it to BLOB to read the raw bytes",
                column=i, data=data,
            ) from exc
    if kind == SQLITE_BLOB:
        ptr = lib.sqlite3_column_blob(handle, i)
        length = lib.sqlite3_column_bytes(handle, i)
        if ptr and length > 0:
            return ctypes.string_at(ptr, length)
        return b""
    return None


def read_row(handle, count):
    lib = load_library()
    return tuple(column_value(lib, handle, i) for i in range(count))


def materialize(statement, shape):
    """Drive a freshly bound statement and shape its output.

    Single-row and single-value shapes stop after the first row and reset the
    statement so it does not keep a read lock open.
    """
    if shape is ResultShape.COLUMNS:
        return list(statement.columns)

    if shape is ResultShape.SINGLE_ROW:
        row = statement.next_tuple()
        statement.reset()
        return None if row is None else dict(zip(statement.columns, row))

    if shape is ResultShape.SINGLE_VALUE:
        row = statement.next_tuple()
        statement.reset()
        return None if row is None else row[0]

    rows = []
    while True:
        row = statement.next_tuple()
        if row is None:
            break
        rows.append(row)

    if shape is ResultShape.TUPLE:
        return rows
    if shape is ResultShape.SINGLE_COLUMN:
        return [row[0] for row in rows]
    columns = statement.columns
    return [dict(zip(columns, row)) for row in rows]
