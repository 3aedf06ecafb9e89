"""
accessor.py — generic point lookup and table scan over entity tables

Every entity table has the same two columns, ``id`` and ``json``. Rows are
decoded into whatever type the caller names at the call site, using a
pydantic TypeAdapter built (and cached) per result type:

    item = get(store, "DestinyInventoryItemDefinition", 1363886209, ItemDef)
    classes = get_all(store, "DestinyClassDefinition", dict[str, Any])

Keys are unsigned 32-bit hashes in the source data but are stored as their
signed 32-bit reinterpretation; both forms are accepted here.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import sqlite3
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import DecodeError, NotFoundError, QueryError
from .store import ManifestStore, quote_table

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UINT32_RANGE = 1 << 32
_INT32_MIN = -(1 << 31)

# sqlite3 decodes TEXT values itself and fails the whole fetch on bad
# UTF-8; selecting text as a blob leaves decoding to _text().
_JSON_COLUMN = "CASE typeof(json) WHEN 'text' THEN CAST(json AS BLOB) ELSE json END"


def to_signed_key(key: int) -> int:
    """Reinterpret a 32-bit hash as the signed integer it is stored under.

    Accepts values in [-2**31, 2**32). Signed inputs come back unchanged.
    """
    if isinstance(key, bool) or not isinstance(key, int):
        raise TypeError(f"key must be an int, not {type(key).__name__}")
    if not _INT32_MIN <= key < _UINT32_RANGE:
        raise ValueError(f"key {key} is outside the 32-bit hash range")
    key &= 0xFFFFFFFF
    return key - _UINT32_RANGE if key & 0x80000000 else key


def to_unsigned_key(key: int) -> int:
    """Inverse of to_signed_key: the unsigned 32-bit hash for ``key``."""
    return to_signed_key(key) & 0xFFFFFFFF


@functools.lru_cache(maxsize=256)
def _cached_adapter(result_type) -> TypeAdapter:
    return TypeAdapter(result_type)


def _adapter(result_type) -> TypeAdapter:
    try:
        return _cached_adapter(result_type)
    except TypeError:
        # unhashable type expressions are not cacheable
        return TypeAdapter(result_type)


def _text(blob, table) -> str:
    """Return a row's JSON column as str.

    Text columns are selected as bytes (see _JSON_COLUMN), so invalid
    UTF-8 surfaces here rather than inside the sqlite3 fetch.
    """
    if isinstance(blob, str):
        return blob
    if not isinstance(blob, bytes):
        raise DecodeError(
            f"Row in {table} holds {type(blob).__name__}, not JSON text", table=table)
    try:
        return blob.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Row in {table} is not valid UTF-8: {e}",
                          table=table, cause=e) from e


def _decode(blob, table, result_type: type[T]) -> T:
    text = _text(blob, table)
    adapter = _adapter(result_type)
    try:
        return adapter.validate_json(text)
    except ValidationError as e:
        raise DecodeError(
            f"Row in {table} does not decode as {_type_name(result_type)}: "
            f"{e.error_count()} error(s)",
            table=table, cause=e) from e


def _type_name(result_type):
    return getattr(result_type, "__name__", None) or repr(result_type)


def _lookup(store, table, key):
    sql = f"SELECT {_JSON_COLUMN} FROM {quote_table(table)} WHERE id = ?"
    signed = to_signed_key(key)
    try:
        row = store.connection.execute(sql, (signed,)).fetchone()
    except sqlite3.Error as e:
        raise QueryError(f"Lookup in {table} failed: {e}") from e
    if row is None:
        raise NotFoundError(table, key)
    return row[0]


def get_raw(store: ManifestStore, table: str, key: int) -> str:
    """Return the stored JSON text for ``key`` in ``table``.

    Raises:
        NotFoundError: If no row has that key.
        DecodeError: If the stored value is not UTF-8 text.
        QueryError: If the query fails (e.g. unknown table).
    """
    return _text(_lookup(store, table, key), table)


def get(store: ManifestStore, table: str, key: int, result_type: type[T]) -> T:
    """Look up one entity by key and decode it as ``result_type``.

    Args:
        store: Open ManifestStore.
        table: Entity table name.
        key: 32-bit hash, signed or unsigned.
        result_type: Anything pydantic can validate (model, dataclass,
                     TypedDict, dict[str, Any], ...).

    Returns:
        A fresh instance of ``result_type``.

    Raises:
        NotFoundError: If no row has that key.
        DecodeError: If the row does not decode as ``result_type``.
        QueryError: If the query fails.
    """
    blob = _lookup(store, table, key)
    return _decode(blob, table, result_type)


def get_all(store: ManifestStore, table: str, result_type: type[T]) -> list[T]:
    """Decode every row of ``table`` as ``result_type``.

    Row order is whatever SQLite returns; callers must not rely on it.
    The first row that fails to decode aborts the scan.

    Raises:
        DecodeError: If any row does not decode as ``result_type``.
        QueryError: If the query fails.
    """
    sql = f"SELECT {_JSON_COLUMN} FROM {quote_table(table)}"
    values: list[Any] = []
    try:
        with contextlib.closing(store.connection.execute(sql)) as cursor:
            for (blob,) in cursor:
                values.append(_decode(blob, table, result_type))
    except sqlite3.Error as e:
        raise QueryError(f"Scan of {table} failed: {e}") from e
    logger.debug("Decoded %d row(s) from %s", len(values), table)
    return values
