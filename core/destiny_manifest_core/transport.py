"""
transport.py — blocking HTTP GET helper (stdlib urllib)

Shared by the metadata client and the archive fetcher. Non-2xx responses
are treated as failures, and urllib/SSL exceptions are translated into
ManifestNetworkError / ManifestSSLError.
"""

import contextlib
import logging
import os
import ssl
import urllib.error
import urllib.request

from .errors import ManifestNetworkError, ManifestSSLError

logger = logging.getLogger(__name__)

USER_AGENT = "DestinyManifest"


def create_ssl_context(verify=True, ca_file=None):
    """Create an SSL context for manifest HTTPS requests.

    Args:
        verify: If False, skip certificate verification entirely
                (NOT recommended outside troubleshooting).
        ca_file: Optional path to a custom CA certificate bundle (PEM).

    Returns:
        ssl.SSLContext or None (None = use urllib defaults).

    Raises:
        ManifestNetworkError: If ca_file does not exist.
    """
    if not verify:
        logger.warning(
            "SSL certificate verification disabled. "
            "This is insecure and should only be used for troubleshooting."
        )
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    if ca_file:
        if not os.path.isfile(ca_file):
            raise ManifestNetworkError(f"CA bundle not found: {ca_file}")
        logger.debug("Using custom CA bundle: %s", ca_file)
        return ssl.create_default_context(cafile=ca_file)

    return None


def is_ssl_error(exc):
    """Check whether an exception is caused by SSL certificate verification."""
    if isinstance(exc, ssl.SSLError):
        return True
    # urllib wraps SSL errors in URLError
    if isinstance(exc, urllib.error.URLError):
        return isinstance(getattr(exc, "reason", None), ssl.SSLError)
    return False


@contextlib.contextmanager
def http_get(url, headers=None, timeout=60, ssl_context=None):
    """Open ``url`` with a blocking GET and yield the response.

    The response is closed when the block exits, on success or failure.

    Raises:
        ManifestSSLError: On SSL certificate verification failure.
        ManifestNetworkError: On other transport failure or non-2xx status.
    """
    req_headers = {"User-Agent": USER_AGENT}
    if headers:
        req_headers.update(headers)
    req = urllib.request.Request(url, headers=req_headers)

    try:
        resp = urllib.request.urlopen(req, timeout=timeout, context=ssl_context)
    except urllib.error.HTTPError as e:
        raise ManifestNetworkError(f"GET {url} failed: HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        if is_ssl_error(e):
            raise ManifestSSLError(
                f"SSL certificate verification failed: {e}") from e
        raise ManifestNetworkError(f"GET {url} failed: {e}") from e

    with resp:
        status = resp.status
        if not 200 <= status < 300:
            raise ManifestNetworkError(f"GET {url} failed: HTTP {status}")
        yield resp
