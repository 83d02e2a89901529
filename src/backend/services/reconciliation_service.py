"""
Aggregate Reconciliation Service

Recomputes vote-count aggregates from the vote log and overwrites them. The
vote log is authoritative; any aggregate that drifted (a failed post-commit
increment, manual edits) is repaired to match it.

Operator tool only: run from the admin API or scripts/reconcile_vote_counts.py.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Optional

import structlog

from db.store import DocumentStore
from models.documents import VoteSource
from repositories.vote_count_repository import VoteCountRepository
from repositories.vote_repository import VoteRepository

logger = structlog.get_logger(__name__)


@dataclass
class ReconciliationResult:
    """Before/after totals for one (competition, contestant) aggregate."""

    competition_id: int
    contestant_id: int
    before_total: int
    after_total: int
    online_count: int
    in_person_count: int

    @property
    def drift(self) -> int:
        return self.after_total - self.before_total

    @property
    def changed(self) -> bool:
        return self.drift != 0

    def to_dict(self) -> dict:
        return {
            "competition_id": self.competition_id,
            "contestant_id": self.contestant_id,
            "before_total": self.before_total,
            "after_total": self.after_total,
            "online_count": self.online_count,
            "in_person_count": self.in_person_count,
            "drift": self.drift,
        }


class ReconciliationService:
    """Repairs vote-count aggregates from the vote log."""

    def __init__(self, store: DocumentStore):
        self.votes = VoteRepository(store)
        self.counts = VoteCountRepository(store)

    async def sync_count(
        self,
        competition_id: int,
        contestant_id: int,
        authoritative_total: Optional[int] = None,
    ) -> ReconciliationResult:
        """
        Recount one contestant's votes and overwrite their aggregate.

        If authoritative_total is given and disagrees with the log, the log
        still wins; the disagreement is only logged.
        """
        online = await self.votes.count_for_contestant(competition_id, contestant_id, VoteSource.ONLINE)
        in_person = await self.votes.count_for_contestant(competition_id, contestant_id, VoteSource.IN_PERSON)

        if authoritative_total is not None and authoritative_total != online + in_person:
            logger.warning(
                "authoritative_total_mismatch",
                competition_id=competition_id,
                contestant_id=contestant_id,
                authoritative_total=authoritative_total,
                scanned_total=online + in_person,
            )

        return await self._overwrite(competition_id, contestant_id, online, in_person)

    async def reconcile_competition(self, competition_id: int, dry_run: bool = False) -> list[ReconciliationResult]:
        """
        Recount every aggregate of a competition from a single log scan.

        Covers contestants that have votes and contestants that only have an
        aggregate (which are reset to zero). With dry_run the drift is
        reported but nothing is written.
        """
        online: Counter[int] = Counter()
        in_person: Counter[int] = Counter()
        for vote in await self.votes.list_for_competition(competition_id):
            if vote.source == VoteSource.IN_PERSON.value:
                in_person[vote.contestant_id] += 1
            else:
                online[vote.contestant_id] += 1

        contestant_ids = set(online) | set(in_person)
        contestant_ids.update(c.contestant_id for c in await self.counts.list_for_competition(competition_id))

        results = []
        for contestant_id in sorted(contestant_ids):
            results.append(
                await self._overwrite(
                    competition_id,
                    contestant_id,
                    online[contestant_id],
                    in_person[contestant_id],
                    dry_run=dry_run,
                )
            )

        logger.info(
            "competition_reconciled",
            competition_id=competition_id,
            dry_run=dry_run,
            aggregates=len(results),
            repaired=sum(1 for r in results if r.changed),
        )
        return results

    async def _overwrite(
        self,
        competition_id: int,
        contestant_id: int,
        online: int,
        in_person: int,
        dry_run: bool = False,
    ) -> ReconciliationResult:
        before = await self.counts.get(competition_id, contestant_id)
        before_total = before.total_count if before else 0

        if not dry_run:
            await self.counts.overwrite(competition_id, contestant_id, online, in_person)
        result = ReconciliationResult(
            competition_id=competition_id,
            contestant_id=contestant_id,
            before_total=before_total,
            after_total=online + in_person,
            online_count=online,
            in_person_count=in_person,
        )
        if result.changed and not dry_run:
            logger.warning("vote_count_drift_repaired", **result.to_dict())
        return result
