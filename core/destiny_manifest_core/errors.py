"""
errors.py — exception hierarchy for manifest acquisition and access

Callers can tell an expected negative result (NotFoundError) apart from
malformed data (DecodeError) and from infrastructure failures
(network, archive, local I/O, database open/query).
"""


class ManifestError(Exception):
    """Base exception for manifest operations."""


class ManifestNetworkError(ManifestError):
    """Raised on transport failure or a non-success HTTP status."""


class ManifestSSLError(ManifestNetworkError):
    """Raised when an SSL certificate verification error occurs."""


class MetadataError(ManifestError):
    """Raised when the manifest metadata response is unusable."""


class ArchiveFormatError(ManifestError):
    """Raised when the downloaded body is not a single-entry ZIP archive."""


class ManifestIOError(ManifestError):
    """Raised when the local cache file cannot be created or written."""


class OpenError(ManifestError):
    """Raised when the local database file cannot be opened."""


class QueryError(ManifestError):
    """Raised when a query against the local database fails."""


class NotFoundError(ManifestError):
    """Raised when a point lookup matches no row."""

    def __init__(self, table, key):
        super().__init__(f"No entry with id {key} in table {table}")
        self.table = table
        self.key = key


class DecodeError(ManifestError):
    """Raised when a stored record does not decode into the requested type."""

    def __init__(self, message, table=None, cause=None):
        super().__init__(message)
        self.table = table
        self.cause = cause
