#!/usr/bin/env python3
"""
Manifest Viewer Launcher

Opens the manifest database (downloading it on first run) and serves the
read-only API with uvicorn.

Usage:
    # Direct run
    python -m destiny_manifest.serve --port 8000

    # With gunicorn (see deploy/gunicorn.conf.py)
    gunicorn 'destiny_manifest.serve:create_app()' -c deploy/gunicorn.conf.py

Environment variables: see destiny_manifest.config.Settings.
"""

import logging
import os
import sys

from destiny_manifest_core import (
    ManifestError, ManifestStore, create_ssl_context, open_manifest,
)

from .config import Settings

logger = logging.getLogger(__name__)


def open_store(settings):
    """Open the store named by ``settings``.

    MANIFEST_DB_PATH serves a local file as-is; otherwise the current
    manifest is resolved through the metadata service and cached.
    """
    if settings.db_path:
        return ManifestStore.open(settings.db_path)

    ssl_context = create_ssl_context(verify=settings.ssl_verify,
                                     ca_file=settings.ssl_cert)
    return open_manifest(
        cache_dir=settings.cache_dir,
        locale=settings.locale,
        base_url=settings.base_url,
        api_key=settings.api_key,
        timeout=settings.timeout,
        ssl_context=ssl_context,
    )


def create_app(settings=None):
    """Application factory for uvicorn/gunicorn.

    Opens the manifest store and attaches it to the FastAPI app.
    """
    settings = settings or Settings.from_env()
    from destiny_manifest.app import app

    previous = app.state.store
    app.state.store = open_store(settings)
    if previous is not None:
        previous.close()
    return app


def main(argv=None):
    """CLI entry point: run directly with uvicorn."""
    import argparse

    parser = argparse.ArgumentParser(description='Destiny Manifest Viewer')
    parser.add_argument('--db-path', type=str, default=None,
                        help='Serve this local manifest database (skips download)')
    parser.add_argument('--cache-dir', type=str, default=None,
                        help='Directory for the downloaded manifest (default: cwd)')
    parser.add_argument('--locale', type=str, default=None,
                        help='Manifest locale (default: en)')
    parser.add_argument('--host', type=str, default='127.0.0.1',
                        help='Bind address (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=None,
                        help='Server port (overrides MANIFEST_PORT, default: 8000)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Log level (overrides MANIFEST_LOG_LEVEL, default: info)')
    args = parser.parse_args(argv)

    # CLI args override env vars
    if args.db_path:
        os.environ['MANIFEST_DB_PATH'] = os.path.abspath(args.db_path)
    if args.cache_dir:
        os.environ['MANIFEST_CACHE_DIR'] = os.path.abspath(args.cache_dir)
    if args.locale:
        os.environ['MANIFEST_LOCALE'] = args.locale
    if args.port:
        os.environ['MANIFEST_PORT'] = str(args.port)
    if args.log_level:
        os.environ['MANIFEST_LOG_LEVEL'] = args.log_level

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("Destiny Manifest Viewer")
    print("=" * 60)
    if settings.db_path:
        print(f"Database: {settings.db_path}")
    else:
        print(f"Source:   {settings.base_url} (locale: {settings.locale})")
        print(f"Cache:    {settings.cache_dir or os.getcwd()}")
    print(f"Server running at: http://{args.host}:{settings.port}")
    print("=" * 60)
    print()

    try:
        app = create_app(settings)
    except ManifestError as e:
        print(f"Error: could not open manifest: {e}", file=sys.stderr)
        return 1

    import uvicorn
    uvicorn.run(app, host=args.host, port=settings.port,
                log_level=settings.log_level)
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nShutting down Manifest Viewer...")
        sys.exit(0)
