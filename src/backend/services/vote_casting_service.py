"""
Vote Casting Service

Orchestrates single and bulk vote casts and the count reads built on them.

Write order for every cast is: vote log, then aggregate counters, then
referral stats. The vote log append is the commit point. Failures after it
are logged and left for reconciliation, so a partial failure can only ever
under-count an aggregate, never over-count it.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import (
    CompetitionNotFound,
    ContestantNotInCompetition,
    InvalidVoteRequest,
    VotingClosed,
)
from core.security import normalize_referral_code
from db.store import DocumentStore
from models.documents import (
    CompetitionDocument,
    ContestantDocument,
    PurchaseDocument,
    VoteDocument,
    VoteSource,
)
from repositories.competition_repository import CompetitionRepository
from repositories.referral_repository import ReferralRepository
from repositories.vote_count_repository import VoteCountRepository
from repositories.vote_quota_repository import VoteQuotaRepository
from repositories.vote_repository import VoteRepository
from services.rate_limiter import RateLimiter, resolve_identity
from services.referral_service import ReferralService
from services.sequencer import VOTES, Sequencer

logger = structlog.get_logger(__name__)


@dataclass
class VoteRequest:
    """A single vote as submitted by a caller."""

    competition_id: int
    contestant_id: int
    source: VoteSource = VoteSource.ONLINE
    voter_ip: Optional[str] = None
    account_id: Optional[str] = None
    venue_token: Optional[str] = None  # In-person votes only
    referral_code: Optional[str] = None


@dataclass
class VoteBreakdown:
    """Online / in-person split of a vote total."""

    online: int = 0
    in_person: int = 0

    @property
    def total(self) -> int:
        return self.online + self.in_person

    def to_dict(self) -> dict:
        return {"online": self.online, "in_person": self.in_person, "total": self.total}


@dataclass
class LeaderboardEntry:
    rank: int
    contestant_id: int
    vote_count: int
    vote_percentage: float
    talent_profile_id: Optional[int] = None
    display_name: Optional[str] = None


@dataclass
class Leaderboard:
    competition_id: int
    total_votes: int
    entries: list[LeaderboardEntry] = field(default_factory=list)


def vote_percentage(count: int, total: int) -> float:
    """Share of total as a percentage rounded half-up to 2 decimals."""
    if total <= 0:
        return 0.0
    return math.floor(count * 10000 / total + 0.5) / 100


class VoteCastingService:
    """
    Service for casting votes and reading vote counts.

    Usage:
        service = VoteCastingService(store)
        vote = await service.cast_vote(VoteRequest(competition_id=1, contestant_id=7, voter_ip="203.0.113.9"))
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.votes = VoteRepository(store)
        self.counts = VoteCountRepository(store)
        self.competitions = CompetitionRepository(store)
        self.sequencer = Sequencer(store)
        self.quotas = VoteQuotaRepository(store)
        self.rate_limiter = RateLimiter(self.votes, self.quotas)
        self.referrals = ReferralService(ReferralRepository(store))

    # =========================================================================
    # Validation
    # =========================================================================

    async def validate_target(
        self,
        competition_id: int,
        contestant_id: int,
    ) -> tuple[CompetitionDocument, ContestantDocument]:
        """
        Check that a contestant can receive votes in a competition.

        Raises:
            CompetitionNotFound: if the competition does not exist.
            VotingClosed: if the competition is not accepting votes.
            ContestantNotInCompetition: if the contestant is not entered in it.
        """
        competition = await self.competitions.get_competition(competition_id)
        if competition is None:
            raise CompetitionNotFound(competition_id)
        if not competition.is_voting_open:
            raise VotingClosed(competition_id, competition.status)

        contestant = await self.competitions.get_contestant(contestant_id)
        if contestant is None or contestant.competition_id != competition_id:
            raise ContestantNotInCompetition(contestant_id, competition_id)

        return competition, contestant

    # =========================================================================
    # Casting
    # =========================================================================

    async def cast_vote(self, request: VoteRequest) -> VoteDocument:
        """
        Cast one free vote.

        Nothing is written unless the target is valid and the voter's daily
        quota admits the vote. Once the vote row is written the cast has
        succeeded, whatever happens to the counters afterwards.

        Raises:
            CompetitionNotFound, VotingClosed, ContestantNotInCompetition,
            InvalidVoteRequest, RateLimitExceeded, TransactionConflict
        """
        competition, _ = await self.validate_target(request.competition_id, request.contestant_id)
        source = VoteSource(request.source)
        identity_field, identity = resolve_identity(
            source,
            voter_ip=request.voter_ip,
            account_id=request.account_id,
            venue_token=request.venue_token,
        )

        referral_code = normalize_referral_code(request.referral_code)

        await self.rate_limiter.admit(competition, identity, identity_field)

        vote = VoteDocument(
            id=await self.sequencer.next_id(VOTES),
            competition_id=request.competition_id,
            contestant_id=request.contestant_id,
            voter_ip=request.voter_ip,
            account_id=request.account_id,
            venue_token=request.venue_token if source == VoteSource.IN_PERSON else None,
            source=source,
            referral_code=referral_code,
        )
        await self.votes.append(vote)

        logger.info(
            "vote_cast",
            vote_id=vote.id,
            competition_id=vote.competition_id,
            contestant_id=vote.contestant_id,
            source=source.value,
        )

        online, in_person = (0, 1) if source == VoteSource.IN_PERSON else (1, 0)
        await self._increment_counts(vote.competition_id, vote.contestant_id, online, in_person)

        if referral_code:
            await self._track_referral(referral_code, identity, 1, vote_id=vote.id)

        return vote

    async def cast_bulk_votes(
        self,
        purchase: PurchaseDocument,
        referral_code: Optional[str] = None,
    ) -> int:
        """
        Cast every vote unit of a confirmed purchase.

        Writes purchase.vote_count vote rows tagged with the purchase id,
        bypassing the daily limit, then increments the aggregate once by the
        number of rows written. A failed row stops the remaining units; the
        counters still reflect the rows that made it into the log and the
        error is re-raised.

        Returns:
            Number of votes cast.
        """
        if purchase.vote_count <= 0:
            raise InvalidVoteRequest("A purchase must contain at least one vote")

        referral_code = normalize_referral_code(referral_code or purchase.referral_code)
        chunk_size = max(1, settings.BULK_CAST_CHUNK_SIZE)
        written = 0
        failure: Optional[BaseException] = None

        for start in range(0, purchase.vote_count, chunk_size):
            size = min(chunk_size, purchase.vote_count - start)
            results = await asyncio.gather(
                *(self._append_purchased_vote(purchase, referral_code) for _ in range(size)),
                return_exceptions=True,
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            written += size - len(errors)
            if errors:
                failure = errors[0]
                logger.error(
                    "bulk_cast_aborted",
                    purchase_id=purchase.id,
                    written=written,
                    requested=purchase.vote_count,
                    error=str(failure),
                )
                break

        if written:
            await self._increment_counts(purchase.competition_id, purchase.contestant_id, written, 0)
            if referral_code:
                payer = purchase.payer_account_id or purchase.guest_email or f"purchase:{purchase.id}"
                await self._track_referral(referral_code, payer, written, purchase_id=purchase.id)

        if failure is not None:
            raise failure

        logger.info(
            "bulk_votes_cast",
            purchase_id=purchase.id,
            competition_id=purchase.competition_id,
            contestant_id=purchase.contestant_id,
            votes=written,
        )
        return written

    async def _append_purchased_vote(self, purchase: PurchaseDocument, referral_code: Optional[str]) -> VoteDocument:
        vote = VoteDocument(
            id=await self.sequencer.next_id(VOTES),
            competition_id=purchase.competition_id,
            contestant_id=purchase.contestant_id,
            account_id=purchase.payer_account_id,
            purchase_id=purchase.id,
            source=VoteSource.ONLINE,
            referral_code=referral_code,
        )
        return await self.votes.append(vote)

    async def _increment_counts(self, competition_id: int, contestant_id: int, online: int, in_person: int) -> None:
        try:
            await self.counts.increment(competition_id, contestant_id, online=online, in_person=in_person)
        except Exception as e:
            logger.error(
                "vote_counter_update_failed",
                competition_id=competition_id,
                contestant_id=contestant_id,
                online=online,
                in_person=in_person,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _track_referral(self, code: str, identity: str, count: int, **context) -> None:
        try:
            await self.referrals.track_referral_vote(code, identity, count)
        except Exception as e:
            logger.error(
                "referral_tracking_failed",
                code=code,
                votes=count,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_vote_count(self, contestant_id: int, competition_id: Optional[int] = None) -> int:
        """Aggregate votes for a contestant in one competition, or across all of them."""
        if competition_id is not None:
            count = await self.counts.get(competition_id, contestant_id)
            return count.total_count if count else 0

        counts = await self.counts.list_for_contestant(contestant_id)
        return sum(c.total_count for c in counts)

    async def get_total_votes(self, competition_id: int) -> int:
        counts = await self.counts.list_for_competition(competition_id)
        return sum(c.total_count for c in counts)

    async def get_total_platform_votes(self) -> int:
        counts = await self.counts.list_all()
        return sum(c.total_count for c in counts)

    async def get_vote_breakdown(self, competition_id: int, contestant_id: Optional[int] = None) -> VoteBreakdown:
        """Online / in-person split for a competition, or for one contestant in it."""
        if contestant_id is not None:
            count = await self.counts.get(competition_id, contestant_id)
            counts = [count] if count else []
        else:
            counts = await self.counts.list_for_competition(competition_id)

        return VoteBreakdown(
            online=sum(c.online_count for c in counts),
            in_person=sum(c.in_person_count for c in counts),
        )

    async def get_leaderboard(self, competition_id: int) -> Leaderboard:
        """
        Rank a competition's contestants by votes.

        Raises:
            CompetitionNotFound: if the competition does not exist.
        """
        if await self.competitions.get_competition(competition_id) is None:
            raise CompetitionNotFound(competition_id)

        contestants = {c.id: c for c in await self.competitions.list_contestants(competition_id)}
        totals = {c.contestant_id: c.total_count for c in await self.counts.list_for_competition(competition_id)}
        for contestant_id in contestants:
            totals.setdefault(contestant_id, 0)

        total_votes = sum(totals.values())
        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))

        entries = []
        for index, (contestant_id, count) in enumerate(ranked):
            contestant = contestants.get(contestant_id)
            entries.append(
                LeaderboardEntry(
                    rank=index + 1,
                    contestant_id=contestant_id,
                    vote_count=count,
                    vote_percentage=vote_percentage(count, total_votes),
                    talent_profile_id=contestant.talent_profile_id if contestant else None,
                    display_name=contestant.display_name if contestant else None,
                )
            )

        return Leaderboard(competition_id=competition_id, total_votes=total_votes, entries=entries)

    # =========================================================================
    # Teardown
    # =========================================================================

    async def teardown_competition(self, competition_id: int) -> dict[str, int]:
        """
        Delete a competition's vote log, aggregates and daily quotas.

        The competition document itself belongs to the directory and is left
        alone. Counters go last so a partial teardown can be re-run.
        """
        votes_deleted = await self.votes.delete_for_competition(competition_id)
        quotas_deleted = await self.quotas.delete_for_competition(competition_id)
        counts_deleted = await self.counts.delete_for_competition(competition_id)

        logger.info(
            "competition_ledger_deleted",
            competition_id=competition_id,
            votes_deleted=votes_deleted,
            vote_counts_deleted=counts_deleted,
            vote_quotas_deleted=quotas_deleted,
        )
        return {
            "votes_deleted": votes_deleted,
            "vote_counts_deleted": counts_deleted,
            "vote_quotas_deleted": quotas_deleted,
        }
