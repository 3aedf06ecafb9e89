"""
Shared test fixtures for the manifest test suite.

  - manifest_db: SQLite manifest file with entity tables (id, json)
  - store: ManifestStore opened over manifest_db
  - zip_bytes: factory building in-memory ZIP archives
  - mock_response: factory building urlopen() response mocks
  - client: TestClient wired to the FastAPI app with `store` attached
"""

import io
import json
import sqlite3
import zipfile
from unittest import mock

import pytest

from destiny_manifest_core import ManifestStore


# Hashes above 2**31 are stored as negative ids
INVENTORY_ITEMS = {
    1363886209: {
        "hash": 1363886209,
        "displayProperties": {"name": "Gjallarhorn", "description": "Wolfpack rounds."},
        "itemType": 3,
    },
    3211806999: {
        "hash": 3211806999,
        "displayProperties": {"name": "Izanagi's Burden", "description": ""},
        "itemType": 3,
    },
    2907129556: {
        "hash": 2907129556,
        "displayProperties": {"name": "Sturm", "description": "A storm."},
        "itemType": 3,
    },
    17: {
        "hash": 17,
        "displayProperties": {"name": "Glimmer"},
        "itemType": 0,
    },
}

CLASSES = {
    671679327: {"hash": 671679327, "classType": 1, "displayProperties": {"name": "Hunter"}},
    2271682572: {"hash": 2271682572, "classType": 2, "displayProperties": {"name": "Warlock"}},
    3655393761: {"hash": 3655393761, "classType": 0, "displayProperties": {"name": "Titan"}},
}

# One row that does not decode as an item
BROKEN_ROWS = {
    1: {"hash": 1, "displayProperties": {"name": "Fine"}, "itemType": 1},
    2: "{not json",
}


def signed(h):
    return h - (1 << 32) if h >= (1 << 31) else h


def build_manifest_db(path, tables):
    """Write a manifest-shaped SQLite file: one (id, json) table per entity kind."""
    conn = sqlite3.connect(path)
    for table, rows in tables.items():
        conn.execute(f"CREATE TABLE {table} (id INTEGER PRIMARY KEY NOT NULL, json BLOB)")
        conn.executemany(
            f"INSERT INTO {table} (id, json) VALUES (?, ?)",
            [(signed(h), v if isinstance(v, str) else json.dumps(v))
             for h, v in rows.items()])
    # Not an entity table (no json column)
    conn.execute("CREATE TABLE metadata (key TEXT PRIMARY KEY, value TEXT)")
    conn.execute("INSERT INTO metadata VALUES ('version', '12345.67.89')")
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def manifest_db(tmp_path):
    """Build a manifest database in a scratch directory."""
    path = str(tmp_path / "src" / "world_sql_content_abc123.content")
    (tmp_path / "src").mkdir()
    return build_manifest_db(path, {
        "DestinyInventoryItemDefinition": INVENTORY_ITEMS,
        "DestinyClassDefinition": CLASSES,
        "BrokenDefinition": BROKEN_ROWS,
    })


@pytest.fixture
def store(manifest_db):
    with ManifestStore.open(manifest_db) as s:
        yield s


@pytest.fixture
def zip_bytes():
    """Return a factory: zip_bytes({name: data, ...}, compression=...) -> bytes."""
    def _make(entries, compression=zipfile.ZIP_DEFLATED):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression) as zf:
            for name, data in entries.items():
                zf.writestr(name, data)
        return buf.getvalue()
    return _make


@pytest.fixture
def mock_response():
    """Return a factory building a context-manager response for urlopen()."""
    def _make(body, status=200, headers=None):
        stream = io.BytesIO(body)
        resp = mock.MagicMock()
        resp.read = mock.MagicMock(side_effect=stream.read)
        resp.status = status
        resp.headers = headers if headers is not None else {"Content-Length": str(len(body))}
        resp.__enter__ = mock.MagicMock(return_value=resp)
        resp.__exit__ = mock.MagicMock(return_value=False)
        return resp
    return _make


@pytest.fixture
def client(store):
    """TestClient over the viewer app with `store` loaded."""
    from starlette.testclient import TestClient
    from destiny_manifest.app import app

    app.state.store = store
    with TestClient(app) as c:
        yield c
    app.state.store = None
