"""
archive_fetcher.py — download a ZIP artifact and extract its single entry

The response body is spooled to an anonymous temporary file, opened as a
ZIP archive, and its one and only entry is stream-decompressed into a
.tmp file next to the destination. The .tmp file is renamed onto the
destination only after a complete copy, so an interrupted fetch never
leaves a truncated file under the cache name.
"""

import logging
import os
import shutil
import tempfile
import zipfile
import zlib

from .errors import ArchiveFormatError, ManifestIOError, ManifestNetworkError
from .transport import http_get

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def fetch_archive(url, dest_path, timeout=60, ssl_context=None, headers=None,
                  progress_callback=None):
    """Download a single-entry ZIP archive and extract it to ``dest_path``.

    Args:
        url: Full URL of the archive.
        dest_path: Path of the file to create. Must not exist yet.
        timeout: HTTP request timeout in seconds.
        ssl_context: Optional ssl.SSLContext (see transport.create_ssl_context).
        headers: Optional extra request headers.
        progress_callback: Optional callable(bytes_downloaded, total_bytes).
                           total_bytes may be 0 if Content-Length is absent.

    Returns:
        Absolute path of the extracted file.

    Raises:
        ManifestNetworkError: On network failure or non-2xx status.
        ArchiveFormatError: If the body is not a ZIP with exactly one entry,
                            or the entry is encrypted or fails to decompress.
        ManifestIOError: If the destination cannot be written or already exists.
    """
    dest_path = os.path.abspath(dest_path)
    logger.info("Downloading the manifest database from %s", url)

    try:
        spool = tempfile.TemporaryFile()
    except OSError as e:
        raise ManifestIOError(f"Cannot create download buffer: {e}") from e

    with spool:
        downloaded = _download(url, spool, timeout, ssl_context, headers,
                               progress_callback)
        spool.seek(0)
        size = _extract_single_entry(spool, dest_path)

    logger.info("Extracted %s (%d bytes from %d byte archive)",
                os.path.basename(dest_path), size, downloaded)
    return dest_path


def _download(url, spool, timeout, ssl_context, headers, progress_callback):
    """Stream the response body into ``spool``; return the byte count."""
    with http_get(url, headers=headers, timeout=timeout,
                  ssl_context=ssl_context) as resp:
        try:
            total = int(resp.headers.get("Content-Length", 0) or 0)
        except ValueError:
            total = 0
        downloaded = 0

        while True:
            try:
                chunk = resp.read(CHUNK_SIZE)
            except OSError as e:
                raise ManifestNetworkError(f"Download failed: {e}") from e
            if not chunk:
                break
            try:
                spool.write(chunk)
            except OSError as e:
                raise ManifestIOError(f"Cannot buffer download: {e}") from e
            downloaded += len(chunk)
            if progress_callback:
                progress_callback(downloaded, total)

    return downloaded


def _extract_single_entry(spool, dest_path):
    """Extract the sole archive entry in ``spool`` to ``dest_path``.

    Returns:
        Number of bytes written.
    """
    try:
        archive = zipfile.ZipFile(spool)
    except zipfile.BadZipFile as e:
        raise ArchiveFormatError(f"Downloaded body is not a ZIP archive: {e}") from e

    with archive:
        entries = archive.infolist()
        if len(entries) != 1:
            raise ArchiveFormatError(
                f"Expected one file in manifest archive, found {len(entries)}")
        entry = entries[0]
        if entry.flag_bits & 0x1:
            raise ArchiveFormatError(
                f"Manifest archive entry {entry.filename} is encrypted")

        if os.path.exists(dest_path):
            raise ManifestIOError(f"Refusing to overwrite existing file: {dest_path}")

        dest_dir = os.path.dirname(dest_path)
        try:
            tmp_fd, tmp_path = tempfile.mkstemp(suffix=".tmp", dir=dest_dir)
        except OSError as e:
            raise ManifestIOError(f"Cannot create file in {dest_dir}: {e}") from e

        try:
            out = os.fdopen(tmp_fd, "wb")
        except OSError as e:
            os.close(tmp_fd)
            _discard(tmp_path)
            raise ManifestIOError(f"Cannot write {dest_path}: {e}") from e

        try:
            with out, archive.open(entry) as src:
                shutil.copyfileobj(src, out, CHUNK_SIZE)
                out.flush()
                os.fsync(out.fileno())
                written = out.tell()

            if os.path.exists(dest_path):
                raise ManifestIOError(
                    f"Refusing to overwrite existing file: {dest_path}")
            os.replace(tmp_path, dest_path)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as e:
            _discard(tmp_path)
            raise ArchiveFormatError(
                f"Cannot decompress {entry.filename}: {e}") from e
        except OSError as e:
            _discard(tmp_path)
            raise ManifestIOError(f"Cannot write {dest_path}: {e}") from e
        except BaseException:
            _discard(tmp_path)
            raise

    return written


def _discard(path):
    """Remove a leftover temp file, if any."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
