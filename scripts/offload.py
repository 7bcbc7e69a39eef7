#!/usr/bin/env python3
"""
Operator commands for media offloading.

Runs the same sync and connection test as the API, from a shell.

Usage:
    python scripts/offload.py sync
    python scripts/offload.py sync --batch=50
    python scripts/offload.py test-connection

Requires:
    - .env file (or environment) with UPLOAD_ROOT and the S3_* settings,
      or OPTIONS_FILE pointing at settings saved through the API
"""

import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def run_sync(services, batch: int) -> bool:
    """
    Offload every file under the upload root that isn't offloaded yet.

    The upload root is scanned first so files written by the host since the
    last run are picked up.
    """
    print("Starting S3 sync...")

    services.library.scan(services.location.root)
    pending = len(services.library.list_unoffloaded())
    print(f"Found {pending} files to sync.")

    if not pending:
        print("Success: No files to sync.")
        return True

    done = 0

    def progress(asset_id: str, ok: bool) -> None:
        nonlocal done
        done += 1
        marker = "[OK]" if ok else "[ERR]"
        print(f"  {marker} {done}/{pending} {asset_id}")

    report = services.batch_sync.run(batch_size=batch, progress=progress)

    print(f"Success: {report.summary}")
    return report.failed == 0


def run_test_connection(services) -> bool:
    print("Testing S3 connection...")

    result = services.connection_tester.check()
    if result.success:
        print(f"Success: {result.message}")
    else:
        print(f"Error: {result.message}")
    return result.success


def main():
    import argparse

    from media_offload.bootstrap import build_services
    from media_offload.config.settings import get_settings

    settings = get_settings()

    parser = argparse.ArgumentParser(description='Offload media files to S3-compatible storage')
    subparsers = parser.add_subparsers(dest='command', required=True)

    sync_parser = subparsers.add_parser('sync', help='Sync existing media files to S3')
    sync_parser.add_argument(
        '--batch',
        type=int,
        default=settings.sync_batch_size,
        help='Number of files to process per batch',
    )

    subparsers.add_parser('test-connection', help='Test S3 connection')

    args = parser.parse_args()

    services = build_services(settings)

    if args.command == 'sync':
        success = run_sync(services, args.batch)
    else:
        success = run_test_connection(services)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
