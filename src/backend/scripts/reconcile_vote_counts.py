"""
Vote count reconciliation script.

Recomputes vote-count aggregates from the vote log and overwrites any that
drifted. Run with: python -m scripts.reconcile_vote_counts 42 [43 ...]

Use --dry-run to report drift without writing, and --contestant to repair a
single aggregate.
"""

import asyncio
import sys

import scripts._common  # noqa: F401
from scripts._common import script_store
from services.reconciliation_service import ReconciliationResult, ReconciliationService


def _print_result(result: ReconciliationResult) -> None:
    marker = "*" if result.changed else " "
    print(
        f" {marker} contestant {result.contestant_id}: "
        f"{result.before_total} -> {result.after_total} "
        f"(online {result.online_count}, in-person {result.in_person_count})"
    )


async def reconcile(
    competition_ids: list[int],
    contestant_id: int | None = None,
    authoritative_total: int | None = None,
    dry_run: bool = False,
) -> int:
    """Reconcile the given competitions. Returns the number of drifted aggregates."""
    drifted = 0

    async with script_store() as store:
        service = ReconciliationService(store)

        for competition_id in competition_ids:
            print(f"Competition {competition_id}" + (" (dry run)" if dry_run else ""))
            print("=" * 50)

            if contestant_id is not None:
                if dry_run:
                    print("  --dry-run is not supported together with --contestant")
                    return drifted
                results = [await service.sync_count(competition_id, contestant_id, authoritative_total)]
            else:
                results = await service.reconcile_competition(competition_id, dry_run=dry_run)

            for result in results:
                _print_result(result)

            changed = sum(1 for r in results if r.changed)
            drifted += changed
            print(f"  {len(results)} aggregate(s) checked, {changed} drifted\n")

    return drifted


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Reconcile vote-count aggregates with the vote log")
    parser.add_argument("competition_ids", type=int, nargs="+", help="Competition IDs to reconcile")
    parser.add_argument("--contestant", type=int, help="Only repair this contestant's aggregate")
    parser.add_argument(
        "--expected-total",
        type=int,
        help="Total reported elsewhere for --contestant; a mismatch is logged, the vote log still wins",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drift without overwriting aggregates",
    )
    args = parser.parse_args()

    drifted = asyncio.run(
        reconcile(
            args.competition_ids,
            contestant_id=args.contestant,
            authoritative_total=args.expected_total,
            dry_run=args.dry_run,
        )
    )
    sys.exit(1 if drifted and args.dry_run else 0)
