"""Conversion of Python values into engine bind slots.

Only five value kinds can be bound: NULL, 64-bit INTEGER, 64-bit REAL, UTF-8
TEXT and BLOB. Everything else is rejected with ParameterError rather than
stringified.
"""
import collections.abc
import dataclasses

from .errors import ParameterError
from .native import (
    load_library,
    SQLITE_OK, SQLITE_RANGE, SQLITE_TRANSIENT,
)

MIN_INT64 = -(2 ** 63)
MAX_INT64 = 2 ** 63 - 1

NAME_MARKERS = (":", "@", "$")


class Blob(bytes):
    """Bytes that always bind as BLOB; a ``str`` is stored as its UTF-8 bytes."""

    def __new__(cls, value=b""):
        if isinstance(value, str):
            value = value.encode("utf-8")
        return super().__new__(cls, value)


def is_record(value):
    """True for namedtuple and dataclass instances, which bind by field name."""
    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def record_fields(value):
    if isinstance(value, tuple):
        return value._asdict()
    return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}


def bind_parameters(handle, args):
    """Bind every argument of a query call onto a compiled statement.

    Plain values take the next implicit position; lists and tuples are
    flattened one level into positions; mappings and records bind by key.
    """
    position = 1
    for arg in args:
        if isinstance(arg, collections.abc.Mapping):
            bind_mapping(handle, arg)
        elif is_record(arg):
            bind_record(handle, arg)
        elif isinstance(arg, (list, tuple)):
            for value in arg:
                bind_value(handle, position, value)
                position += 1
        else:
            bind_value(handle, position, arg)
            position += 1


def bind_mapping(handle, mapping):
    lib = load_library()
    for key, value in mapping.items():
        if isinstance(key, int) and not isinstance(key, bool):
            bind_value(handle, key, value)
        elif isinstance(key, str):
            index = parameter_index(handle, key)
            # Unknown names are ignored so one mapping can serve several statements.
            if index > 0:
                name = lib.sqlite3_bind_parameter_name(handle, index).decode("utf-8")
                bind_value(handle, index, value, name)
        else:
            raise ParameterError(f"Cannot bind parameter with a key of type {type(key).__name__}")


def bind_record(handle, record):
    lib = load_library()
    fields = record_fields(record)
    for index in range(1, lib.sqlite3_bind_parameter_count(handle) + 1):
        raw_name = lib.sqlite3_bind_parameter_name(handle, index)
        if not raw_name:
            continue
        name = raw_name.decode("utf-8")
        bind_value(handle, index, fields.get(name[1:], fields.get(name)), name)


def parameter_index(handle, name):
    lib = load_library()
    if name[:1] in NAME_MARKERS:
        candidates = [name]
    else:
        candidates = [marker + name for marker in NAME_MARKERS]
    for candidate in candidates:
        index = lib.sqlite3_bind_parameter_index(handle, candidate.encode("utf-8"))
        if index > 0:
            return index
    return 0


def bind_value(handle, index, value, name=None):
    """Bind one value to slot ``index``; ``name`` is the slot's placeholder, if named."""
    lib = load_library()
    slot = f"parameter {name}" if name else f"parameter at position {index}"
    if value is None:
        rc = lib.sqlite3_bind_null(handle, index)
    elif isinstance(value, bool):
        rc = lib.sqlite3_bind_int64(handle, index, 1 if value else 0)
    elif isinstance(value, int):
        if value < MIN_INT64 or value > MAX_INT64:
            raise ParameterError(f"Cannot bind {slot}: integer {value} is outside the 64-bit range")
        rc = lib.sqlite3_bind_int64(handle, index, value)
    elif isinstance(value, float):
        rc = lib.sqlite3_bind_double(handle, index, value)
    elif isinstance(value, str):
        b = value.encode("utf-8")
        rc = lib.sqlite3_bind_text(handle, index, b, len(b), SQLITE_TRANSIENT)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        b = bytes(value)
        rc = lib.sqlite3_bind_blob(handle, index, b, len(b), SQLITE_TRANSIENT)
    else:
        raise ParameterError(f"Cannot bind {slot} of type {type(value).__name__}")

    if rc == SQLITE_RANGE:
        count = lib.sqlite3_bind_parameter_count(handle)
        raise ParameterError(f"Cannot bind {slot}: statement has {count} parameter(s)")
    if rc != SQLITE_OK:
        raise ParameterError(f"Cannot bind {slot} (error {rc})")
