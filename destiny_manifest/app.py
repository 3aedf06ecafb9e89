"""
Manifest Viewer Web Interface
Read-only FastAPI application for browsing the local manifest database
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any
import logging

from destiny_manifest_core import (
    DecodeError, NotFoundError, QueryError,
    get, get_all, to_unsigned_key,
)
from destiny_manifest import __version__ as VIEWER_VERSION

logger = logging.getLogger(__name__)

app = FastAPI(title="Destiny Manifest Viewer")
# The open ManifestStore is attached by serve.create_app() (or by tests)
app.state.store = None


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------

class InfoResponse(BaseModel):
    path: str
    tables: list[str]
    viewer_version: str = ""

class TableItem(BaseModel):
    name: str
    row_count: int

class EntityResponse(BaseModel):
    table: str
    id: int
    data: dict[str, Any]

class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(message, status_code):
    return JSONResponse({'error': message}, status_code=status_code)


def _store_or_error(request: Request):
    """Return (store, None) or (None, error response)."""
    store = getattr(request.app.state, 'store', None)
    if store is None or store.closed:
        return None, _error('Manifest database not loaded', 503)
    return store, None


def _check_table(store, table):
    """Return an error response if ``table`` is not an entity table."""
    if table not in store.tables():
        return _error(f'Table not found: {table}', 404)
    return None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get('/api/info', response_model=InfoResponse,
         responses={503: {"model": ErrorResponse}})
def api_info(request: Request):
    """Path of the loaded database and its entity tables."""
    store, err = _store_or_error(request)
    if err:
        return err
    return InfoResponse(path=store.path, tables=store.tables(),
                        viewer_version=VIEWER_VERSION)


@app.get('/api/tables', response_model=list[TableItem],
         responses={503: {"model": ErrorResponse}})
def api_tables(request: Request):
    store, err = _store_or_error(request)
    if err:
        return err
    return [TableItem(name=name, row_count=store.count(name))
            for name in store.tables()]


@app.get('/api/tables/{table}', response_model=list[dict[str, Any]],
         responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
                    503: {"model": ErrorResponse}})
def api_table_entries(table: str, request: Request):
    """All entities in a table, decoded as JSON objects (unordered)."""
    store, err = _store_or_error(request)
    if err:
        return err
    err = _check_table(store, table)
    if err:
        return err
    try:
        return get_all(store, table, dict[str, Any])
    except DecodeError as e:
        logger.error("Decode failure in %s: %s", table, e)
        return _error(str(e), 500)
    except QueryError as e:
        return _error(str(e), 400)


@app.get('/api/tables/{table}/{key}', response_model=EntityResponse,
         responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse},
                    500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
def api_table_entry(table: str, key: int, request: Request):
    """One entity by hash; signed and unsigned forms are both accepted."""
    store, err = _store_or_error(request)
    if err:
        return err
    err = _check_table(store, table)
    if err:
        return err
    try:
        data = get(store, table, key, dict[str, Any])
    except ValueError as e:
        return _error(str(e), 400)
    except NotFoundError:
        return _error('Not found', 404)
    except DecodeError as e:
        logger.error("Decode failure in %s: %s", table, e)
        return _error(str(e), 500)
    except QueryError as e:
        return _error(str(e), 400)
    return EntityResponse(table=table, id=to_unsigned_key(key), data=data)
