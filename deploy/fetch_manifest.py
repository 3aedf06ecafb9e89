#!/usr/bin/env python3
"""
fetch_manifest.py — Warm the manifest cache at build time

Resolves the current manifest through the metadata service and downloads
it into the cache directory if it is not already there, so that server
workers start against an existing file and never race on the download.

Usage:
    python deploy/fetch_manifest.py --dest /data/
"""

import argparse
import os
import sys

from destiny_manifest_core import (
    DEFAULT_BASE_URL,
    DEFAULT_LOCALE,
    ManifestError,
    create_ssl_context,
    open_manifest,
)


def _print_progress(downloaded, total):
    if total:
        pct = downloaded * 100 // total
        print(f"\r    {downloaded:,} / {total:,} bytes ({pct}%)", end="", flush=True)


def main():
    parser = argparse.ArgumentParser(
        description="Download the current manifest database into a cache directory")
    parser.add_argument("--dest", type=str, default="/data/",
                        help="Cache directory (default: /data/)")
    parser.add_argument("--base-url", type=str,
                        default=os.environ.get("MANIFEST_BASE_URL") or DEFAULT_BASE_URL,
                        help="Metadata/artifact host")
    parser.add_argument("--locale", type=str, default=DEFAULT_LOCALE,
                        help=f"Manifest locale (default: {DEFAULT_LOCALE})")
    parser.add_argument("--timeout", type=int, default=120,
                        help="Download timeout in seconds (default: 120)")
    args = parser.parse_args()

    print("=" * 60)
    print("Manifest Cache Warmer")
    print("=" * 60)
    print(f"Destination: {args.dest}")
    print()

    ssl_verify = os.environ.get("MANIFEST_SSL_VERIFY", "1").strip() != "0"
    ssl_cert = os.environ.get("MANIFEST_SSL_CERT", "").strip() or None

    try:
        store = open_manifest(
            cache_dir=args.dest,
            locale=args.locale,
            base_url=args.base_url,
            api_key=os.environ.get("MANIFEST_API_KEY") or None,
            timeout=args.timeout,
            ssl_context=create_ssl_context(verify=ssl_verify, ca_file=ssl_cert),
            progress_callback=_print_progress,
        )
    except ManifestError as e:
        print(f"\nFATAL: {e}", file=sys.stderr)
        sys.exit(1)

    with store:
        tables = store.tables()
        size = os.path.getsize(store.path)
        print()
        print("=" * 60)
        print(f"Manifest: {os.path.basename(store.path)} ({size:,} bytes)")
        print(f"Tables:   {len(tables)}")
        print("=" * 60)


if __name__ == "__main__":
    main()
