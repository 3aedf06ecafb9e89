"""
metadata_client.py — manifest metadata service client

Asks the platform API where the current manifest database is published.
The response maps each locale to a remote content path; only one locale
is ever consumed by the open sequence.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .errors import ManifestNetworkError, MetadataError
from .transport import http_get

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.bungie.net"
MANIFEST_ENDPOINT = "/Platform/Destiny2/Manifest/"

# Platform API envelope: ErrorCode 1 == "Success"
SUCCESS_ERROR_CODE = 1


@dataclass(frozen=True)
class ManifestDescriptor:
    """Where one version of the manifest lives, per locale."""
    version: str
    content_paths: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "content_paths",
                           MappingProxyType(dict(self.content_paths)))


def parse_manifest_response(payload):
    """Build a ManifestDescriptor from a decoded platform API envelope.

    Args:
        payload: Parsed JSON body of the manifest endpoint.

    Returns:
        ManifestDescriptor

    Raises:
        MetadataError: If the envelope reports failure or lacks content paths.
    """
    if not isinstance(payload, dict):
        raise MetadataError("Manifest response is not a JSON object")

    error_code = payload.get("ErrorCode", SUCCESS_ERROR_CODE)
    if error_code != SUCCESS_ERROR_CODE:
        message = payload.get("Message") or payload.get("ErrorStatus") or "unknown error"
        raise MetadataError(f"Manifest request failed ({error_code}): {message}")

    response = payload.get("Response")
    if not isinstance(response, dict):
        raise MetadataError("Manifest response has no 'Response' object")

    paths = response.get("mobileWorldContentPaths")
    if not isinstance(paths, dict) or not paths:
        raise MetadataError("Manifest response has no mobileWorldContentPaths")

    return ManifestDescriptor(
        version=str(response.get("version", "")),
        content_paths={str(k): str(v) for k, v in paths.items()},
    )


def fetch_manifest_descriptor(base_url=DEFAULT_BASE_URL, api_key=None,
                              timeout=10, ssl_context=None):
    """Fetch the current manifest descriptor from the platform API.

    Args:
        base_url: API host, e.g. https://www.bungie.net
        api_key: Optional value for the X-API-Key header.
        timeout: HTTP request timeout in seconds.
        ssl_context: Optional ssl.SSLContext (see transport.create_ssl_context).

    Returns:
        ManifestDescriptor

    Raises:
        ManifestNetworkError: On network failure or non-2xx status.
        MetadataError: On unparseable or unsuccessful responses.
    """
    url = base_url.rstrip("/") + MANIFEST_ENDPOINT
    headers = {"Accept": "application/json"}
    if api_key:
        headers["X-API-Key"] = api_key

    logger.info("Fetching manifest metadata from %s", url)
    with http_get(url, headers=headers, timeout=timeout,
                  ssl_context=ssl_context) as resp:
        try:
            data = resp.read()
        except OSError as e:
            raise ManifestNetworkError(
                f"Failed to read manifest metadata: {e}") from e

    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MetadataError(f"Invalid manifest metadata JSON: {e}") from e

    descriptor = parse_manifest_response(payload)
    logger.info("Manifest version %s (%d locale(s))",
                descriptor.version, len(descriptor.content_paths))
    return descriptor
