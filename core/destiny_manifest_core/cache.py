"""
cache.py — decide between reusing a local manifest file and fetching it

The local file is named after the basename of the remote content path, so
a new manifest version gets a new file and an existing file with the same
name is reused without any network request. No content or freshness check
is made beyond existence.
"""

import logging
import os
import posixpath
import urllib.parse

from .archive_fetcher import fetch_archive
from .errors import ManifestIOError, MetadataError
from .metadata_client import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"


def cache_filename(descriptor, locale=DEFAULT_LOCALE):
    """Return the local filename for ``locale``'s content path.

    Raises:
        MetadataError: If the locale is missing or its path has no basename.
    """
    try:
        remote_path = descriptor.content_paths[locale]
    except KeyError:
        available = ", ".join(sorted(descriptor.content_paths)) or "(none)"
        raise MetadataError(
            f"Locale '{locale}' not in manifest (available: {available})") from None

    name = posixpath.basename(urllib.parse.urlsplit(remote_path).path)
    if not name:
        raise MetadataError(f"Content path has no file name: {remote_path!r}")
    return name


def remote_url(base_url, remote_path):
    """Join the artifact host and a remote content path."""
    if urllib.parse.urlsplit(remote_path).scheme in ("http", "https"):
        return remote_path
    if not remote_path.startswith("/"):
        remote_path = "/" + remote_path
    return base_url.rstrip("/") + remote_path


def ensure_local_dataset(descriptor, cache_dir=None, locale=DEFAULT_LOCALE,
                         base_url=DEFAULT_BASE_URL, fetch=fetch_archive,
                         **fetch_kwargs):
    """Make sure the manifest database for ``descriptor`` exists locally.

    Args:
        descriptor: ManifestDescriptor naming the remote content paths.
        cache_dir: Directory holding cache files (default: working directory).
        locale: Which content path to use.
        base_url: Host prefixed to relative content paths.
        fetch: callable(url, dest_path, **fetch_kwargs) that creates dest_path.
        **fetch_kwargs: Passed through to ``fetch`` (timeout, ssl_context, ...).

    Returns:
        Path to the local database file.
    """
    filename = cache_filename(descriptor, locale)
    cache_dir = os.path.abspath(cache_dir or os.getcwd())
    local_path = os.path.join(cache_dir, filename)

    if os.path.exists(local_path):
        logger.info("Using cached manifest database %s", local_path)
        return local_path

    logger.info("Manifest database %s not cached", filename)
    try:
        os.makedirs(cache_dir, exist_ok=True)
    except OSError as e:
        raise ManifestIOError(f"Cannot create cache directory {cache_dir}: {e}") from e

    url = remote_url(base_url, descriptor.content_paths[locale])
    fetch(url, local_path, **fetch_kwargs)
    return local_path
