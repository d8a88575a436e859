#!/usr/bin/env python3
"""
Command-line sync between the local replica and its remote counterpart.

Runs one reconciliation pass, or with --watch keeps polling connectivity
and syncs each time the remote comes back.
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from epi.core.config import DB_PATH, REMOTE_DB_PATH, get_sync_collections, is_online, validate_sync_config
from epi.core.errors import OfflineError, StoreUnavailable, SyncInProgressError
from epi.core.store import ReplicatedStore
from epi.core.sync import SyncEngine
from epi.core.watcher import ConnectivityWatcher


def build_engine(local_path: str, remote_path: str, offline: bool = False) -> SyncEngine:
    local = ReplicatedStore.from_path(local_path, label="local")
    remote = ReplicatedStore.from_path(remote_path, label="remote")
    local.initialize()
    if offline:
        signal = lambda: False
    else:
        signal = lambda: is_online(remote_path)
    return SyncEngine(local, remote, signal, collections=get_sync_collections())


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Reconcile local and remote immunization replicas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # One sync pass using DB_PATH / REMOTE_DB_PATH
  %(prog)s --local a.db --remote b.db
  %(prog)s --watch                  # Sync on every reconnect until Ctrl+C

Environment variables:
- DB_PATH, REMOTE_DB_PATH
- SYNC_COLLECTIONS=children,records (default)
- OFFLINE_MODE=true forces the connectivity signal off
        """
    )
    parser.add_argument("--local", default=DB_PATH, help="Local replica database")
    parser.add_argument("--remote", default=REMOTE_DB_PATH, help="Remote replica database")
    parser.add_argument("--offline", action="store_true", help="Treat the remote as unreachable")
    parser.add_argument("--watch", "-w", action="store_true", help="Sync on every offline -> online transition")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show per-collection statistics")

    args = parser.parse_args(argv)

    issues = validate_sync_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    try:
        engine = build_engine(args.local, args.remote, offline=args.offline)
    except StoreUnavailable as e:
        print(f"ERROR: {e}")
        return 1

    if args.watch:
        watcher = ConnectivityWatcher(engine)
        watcher.start()
        print("Watching connectivity (Ctrl+C to stop)")
        try:
            while watcher.running:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopping watcher")
        finally:
            watcher.stop()
        return 0

    try:
        result = engine.sync()
    except OfflineError as e:
        print(f"ERROR: {e}")
        return 2
    except SyncInProgressError as e:
        print(f"ERROR: {e}")
        return 3
    except StoreUnavailable as e:
        print(f"ERROR: Sync failed: {e}")
        return 1

    print(f"Sync completed at {result.finished_at.isoformat()}")
    for name, stats in result.collections.items():
        if args.verbose:
            print(f"  {name}: local={stats.local_count} remote={stats.remote_count} "
                  f"merged={stats.merged_count} pushed={stats.pushed} pulled={stats.pulled}")
        else:
            print(f"  {name}: {stats.merged_count} entities")
    return 0


if __name__ == "__main__":
    sys.exit(main())
