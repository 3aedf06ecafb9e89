"""destiny_manifest_core — acquire-once, read-only access to the manifest database."""

__version__ = "0.1.0"

from .errors import (
    ManifestError, ManifestNetworkError, ManifestSSLError, MetadataError,
    ArchiveFormatError, ManifestIOError, OpenError, QueryError,
    NotFoundError, DecodeError,
)
from .transport import create_ssl_context
from .metadata_client import (
    ManifestDescriptor, DEFAULT_BASE_URL,
    fetch_manifest_descriptor, parse_manifest_response,
)
from .archive_fetcher import fetch_archive
from .cache import DEFAULT_LOCALE, cache_filename, remote_url, ensure_local_dataset
from .store import ManifestStore
from .accessor import get, get_all, get_raw, to_signed_key, to_unsigned_key
from .manifest import open_manifest
