# Copyright 2021-present StarRocks, Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
docsync - documentation source sync and snapshot tool

Main entry point for the command-line interface.
"""
import sys
import os
import json
import argparse
from pathlib import Path
from loguru import logger

from docsync import config
from docsync.core.versions import JsonVersionStore
from docsync.domains import factory
from docsync.errors import DocSyncError, FatalError
from docsync.models import SOURCE_TYPES, SyncOptions
from docsync.sources.registry import SourceRegistry
from docsync.tools import stats


def init_logger(log_dir: str = "logs", max_size: str = "10 MB", log_level: str = "INFO"):
    """Initialize logger with console and file output"""
    os.makedirs(log_dir, exist_ok=True)
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        colorize=True,
    )
    logger.add(
        f"{log_dir}/docsync.{{time:YYYY-MM-DD}}.log",
        level="INFO",
        rotation=max_size,
        retention="7 days",
        compression="zip",
        enqueue=True,
        encoding="utf-8",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='docsync',
        description='docsync - sync documentation sources into a snapshot repository',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync every source and push the snapshot
  %(prog)s sync --config ./conf/docsync.conf

  # Sync one source without pushing
  %(prog)s sync -s nuxt --no-push

  # Rebuild the snapshot from scratch (stale files are removed)
  %(prog)s sync --reset

  # Resume an interrupted run
  %(prog)s sync --run-id 4f2a9c01be77

  # List configured sources and recorded versions
  %(prog)s sources -t repo
  %(prog)s versions -s nuxt
        """
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (default: conf/docsync.conf)'
    )
    subparsers = parser.add_subparsers(dest='command')

    sync_parser = subparsers.add_parser('sync', help='Fetch sources and push the snapshot')
    sync_parser.add_argument('--reset', action='store_true',
                             help='Clear the docs tree and drop remote files absent from this run')
    sync_parser.add_argument('--no-push', action='store_true', help='Fetch only, do not push')
    sync_parser.add_argument('-s', '--source', type=str, default=None, help='Sync only this source id')
    sync_parser.add_argument('--run-id', type=str, default=None, help='Run id (resume an interrupted run)')
    sync_parser.add_argument('--sandbox', type=str, default=None,
                             help='Fetch inside this container instead of locally')
    sync_parser.add_argument('--json', action='store_true', help='Print the run result as JSON')

    sources_parser = subparsers.add_parser('sources', help='List configured sources')
    sources_parser.add_argument('-t', '--type', choices=SOURCE_TYPES, default=None, help='Filter by source type')

    versions_parser = subparsers.add_parser('versions', help='List recorded versions')
    versions_parser.add_argument('-s', '--source', type=str, default=None, help='Filter by source id')

    return parser


def main(argv=None):
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    try:
        if args.config is not None:
            config.reload_config(args.config)
            logger.info(f"Loaded configuration from: {args.config}")
        else:
            config.reload_config()
            logger.info("Loaded default configuration")
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    # Initialize logger
    init_logger(log_dir=config.LOG_DIR, log_level=config.LOG_LEVEL)

    if args.command is None:
        logger.warning("No command specified. Use one of: sync, sources, versions.")
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == 'sync':
            ok = sync(args)
        elif args.command == 'sources':
            ok = list_sources(args)
        else:
            ok = list_versions(args)
    except FatalError as e:
        logger.error(f"Sync aborted: {e}")
        sys.exit(1)
    except DocSyncError as e:
        logger.error(f"Execution failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Execution failed: {e}")
        sys.exit(1)

    sys.exit(0 if ok else 1)


def sync(args) -> bool:
    """Run one sync and report its outcome"""
    options = SyncOptions(reset=args.reset, push=not args.no_push, source_filter=args.source)
    logger.info("=" * 60)
    logger.info(
        f"Sync | Source: {options.source_filter or 'all'} | Reset: {options.reset} | "
        f"Push: {options.push} | Sandbox: {args.sandbox or config.SANDBOX_CONTAINER or 'No'}"
    )
    logger.info("=" * 60)

    result = factory.run_sync(options=options, run_id=args.run_id, sandbox_container=args.sandbox)

    stats.print_summary()
    stats.save_stats(Path(config.LOG_DIR) / f"stats_sync_{result.run_id}.txt")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))

    if result.success:
        logger.success(f"✓ Synced {result.summary.success} sources ({result.summary.files} files)")
    else:
        logger.error(f"Sync finished with failures: {result.summary.failed} failed source(s)"
                     f"{', push failed' if result.push is not None and not result.push.success else ''}")
    return result.success


def list_sources(args) -> bool:
    registry = SourceRegistry.from_config()
    sources = registry.list_sources_by_type(args.type) if args.type else registry.list_sources()
    for source in sources:
        location = getattr(source, 'location', '') or getattr(source, 'channel_id', '')
        print(f"{source.id:<24} {source.type:<18} {location}")
    logger.info(f"{len(sources)} source(s)")
    return True


def list_versions(args) -> bool:
    store = JsonVersionStore(config.VERSIONS_FILE)
    records = store.list(args.source)
    for record in records:
        print(f"{record.source_id:<24} {record.version_folder_name:<28} {record.synced_at.isoformat()}")
    logger.info(f"{len(records)} version(s) in {config.VERSIONS_FILE}")
    return True


if __name__ == '__main__':
    main()
