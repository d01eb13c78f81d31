"""
Production Cycle Client - Order and Result Entries

An entry is an open mapping of field name to a JSON-like value. Field names and
their meaning are configured on the controller; the queue protocol only checks
that every value is one of the supported kinds:

    str | int | float | bool | None | Mapping[str, value] | Sequence[value]
"""

from collections.abc import Mapping
from typing import Any, Dict

from .errors import EntryDecodeError, InvalidEntryError

Entry = Dict[str, Any]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _check_value(value: Any, path: str) -> Any:
    """Return a plain copy of ``value`` or raise ``TypeError`` naming the bad field."""
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, Mapping):
        copied = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path}: field name {key!r} is not a string")
            copied[key] = _check_value(item, f"{path}.{key}")
        return copied
    if isinstance(value, (list, tuple)):
        return [_check_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise TypeError(f"{path}: unsupported value type {type(value).__name__}")


def validate_entry(entry: Any) -> Entry:
    """
    Validate an order entry before it is written to a queue slot.

    Returns
    -------
    dict
        A detached copy of the entry with lists in place of tuples.

    Raises
    ------
    InvalidEntryError
        If ``entry`` is not a mapping or holds an unsupported value.
    """
    if not isinstance(entry, Mapping):
        raise InvalidEntryError(f"Order entry must be a mapping, got {type(entry).__name__}")
    try:
        return _check_value(entry, "entry")
    except TypeError as e:
        raise InvalidEntryError(f"Invalid order entry: {e}") from e


def decode_entry(value: Any, io_name: str = "") -> Entry:
    """
    Interpret a value read from a queue slot as a result entry.

    Raises
    ------
    EntryDecodeError
        If the slot does not hold a mapping of supported values.
    """
    if not isinstance(value, Mapping):
        raise EntryDecodeError(
            f"Queue slot {io_name} does not hold an entry: {value!r}", value=value
        )
    try:
        return _check_value(value, io_name or "entry")
    except TypeError as e:
        raise EntryDecodeError(f"Queue slot {io_name} holds an invalid entry: {e}", value=value) from e
