#!/usr/bin/env python3
"""
Print children with overdue vaccinations from the local replica.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from epi.core.config import DB_PATH
from epi.core.errors import StoreUnavailable
from epi.core.progress import list_defaulters
from epi.core.store import ReplicatedStore


def main(argv=None):
    parser = argparse.ArgumentParser(description="List immunization defaulters")
    parser.add_argument("--db", default=DB_PATH, help="Replica database to read")
    parser.add_argument("--facility", "-f", help="Only children registered at this facility")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    args = parser.parse_args(argv)

    try:
        store = ReplicatedStore.from_path(args.db)
        summaries = list_defaulters(store.children.list(), store.records.list(), facility=args.facility)
    except StoreUnavailable as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        print(json.dumps([
            {
                "child_id": s.child.id,
                "full_name": s.child.full_name,
                "health_center": s.child.health_center,
                "missed": [entry.to_dict() for entry in s.missed],
            }
            for s in summaries
        ], indent=2))
        return 0

    if not summaries:
        print("No defaulters")
        return 0

    for s in summaries:
        print(f"{s.child.full_name} ({s.child.health_center}) - {len(s.missed)} overdue, "
              f"up to {s.most_days_overdue} days")
        for entry in s.missed:
            print(f"    {entry.vaccine_name:<20} {entry.group_name:<24} {entry.days_overdue} days")
    return 0


if __name__ == "__main__":
    sys.exit(main())
