"""
manifest.py — open the manifest database, downloading it on first use

    with open_manifest(api_key=key) as store:
        item = get(store, "DestinyInventoryItemDefinition", 1363886209, Item)

The check-then-fetch sequence is not locked; callers that may open the
same cache directory concurrently must serialize open_manifest() calls.
"""

import logging

from .archive_fetcher import fetch_archive
from .cache import DEFAULT_LOCALE, ensure_local_dataset
from .metadata_client import DEFAULT_BASE_URL, fetch_manifest_descriptor
from .store import ManifestStore

logger = logging.getLogger(__name__)


def open_manifest(descriptor=None, *, cache_dir=None, locale=DEFAULT_LOCALE,
                  base_url=DEFAULT_BASE_URL, api_key=None, timeout=60,
                  ssl_context=None, progress_callback=None):
    """Resolve, fetch if needed, and open the manifest database.

    Args:
        descriptor: ManifestDescriptor to use. When None, the current one is
                    fetched from the metadata service at ``base_url``.
        cache_dir: Directory holding cache files (default: working directory).
        locale: Which content path to use.
        base_url: Metadata/artifact host.
        api_key: Optional X-API-Key for the metadata request.
        timeout: HTTP timeout in seconds.
        ssl_context: Optional ssl.SSLContext for both requests.
        progress_callback: Optional callable(bytes_downloaded, total_bytes).

    Returns:
        An open ManifestStore.

    Raises:
        ManifestError: Any subclass, from the first step that fails.
    """
    if descriptor is None:
        descriptor = fetch_manifest_descriptor(
            base_url=base_url, api_key=api_key,
            timeout=timeout, ssl_context=ssl_context)

    path = ensure_local_dataset(
        descriptor, cache_dir=cache_dir, locale=locale, base_url=base_url,
        fetch=fetch_archive, timeout=timeout, ssl_context=ssl_context,
        progress_callback=progress_callback)

    logger.debug("Manifest version %s -> %s", descriptor.version, path)
    return ManifestStore.open(path)
