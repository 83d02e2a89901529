"""
Daily free-vote rate limiting.

A voter's usage is the number of free votes they cast in the competition
since the start of the current vote day. Purchased votes never count.
Each free vote is admitted through an atomic conditional increment on the
voter's quota document before it is written to the vote log.
"""

from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from core.config import settings
from core.exceptions import InvalidVoteRequest, RateLimitExceeded
from core.security import hash_voter_identity
from db.retry import run_with_retry
from db.store import ConditionNotMetError, DocumentExistsError, DocumentNotFoundError
from models.documents import CompetitionDocument, VoteQuotaDocument, VoteSource, vote_quota_id
from repositories.vote_quota_repository import VoteQuotaRepository
from repositories.vote_repository import VoteRepository

logger = structlog.get_logger(__name__)


def start_of_vote_day(now: Optional[datetime] = None) -> datetime:
    """Midnight of the current day in VOTE_DAY_TIMEZONE, as an aware datetime."""
    tz = ZoneInfo(settings.VOTE_DAY_TIMEZONE)
    local_now = (now or datetime.now(tz)).astimezone(tz)
    return datetime.combine(local_now.date(), time.min, tzinfo=tz)


def resolve_identity(
    source: str,
    voter_ip: Optional[str] = None,
    account_id: Optional[str] = None,
    venue_token: Optional[str] = None,
) -> tuple[str, str]:
    """
    Pick the identity a vote is rate limited by.

    Online votes are keyed by IP, or by account id when no IP is known.
    In-person votes are keyed by the token the venue terminal supplies.

    Returns:
        (vote field name, identity value)
    """
    if VoteSource(source) == VoteSource.IN_PERSON:
        if venue_token:
            return "venue_token", venue_token
        raise InvalidVoteRequest("In-person votes require a venue identity token")

    if voter_ip:
        return "voter_ip", voter_ip
    if account_id:
        return "account_id", account_id
    raise InvalidVoteRequest("A voter IP address or account id is required")


class RateLimiter:
    """
    Enforces a competition's daily free-vote cap.

    Admission is decided by the voter's quota document for the day. A quota
    is seeded from the vote log the first time it is needed, so votes cast
    before the quota existed still count.
    """

    def __init__(self, votes: VoteRepository, quotas: VoteQuotaRepository):
        self.votes = votes
        self.quotas = quotas

    async def votes_today(
        self,
        competition_id: int,
        identity: str,
        identity_field: str = "voter_ip",
        now: Optional[datetime] = None,
    ) -> int:
        """Free votes the identity cast in the competition today, read from the vote log."""
        return await self.votes.count_free_votes_since(
            competition_id,
            identity_field,
            identity,
            start_of_vote_day(now),
        )

    async def admit(
        self,
        competition: CompetitionDocument,
        identity: str,
        identity_field: str = "voter_ip",
        now: Optional[datetime] = None,
    ) -> int:
        """
        Take one free vote from the identity's allowance for today.

        Must succeed before the vote is appended to the log. An admitted vote
        whose append then fails is lost from the allowance, never added.

        Returns:
            Free votes used today, this one included.

        Raises:
            RateLimitExceeded: if the allowance is used up.
            TransactionConflict: if contention persisted past STORE_MAX_ATTEMPTS.
        """
        limit = competition.max_votes_per_day
        day_start = start_of_vote_day(now)
        vote_day = day_start.date().isoformat()
        identity_hash = hash_voter_identity(identity, f"quota:{identity_field}")
        quota_id = vote_quota_id(competition.id, vote_day, identity_hash)

        async def take() -> int:
            try:
                return await self.quotas.take(quota_id, limit)
            except DocumentNotFoundError:
                pass

            used = await self.votes.count_free_votes_since(competition.id, identity_field, identity, day_start)
            if used >= limit:
                raise RateLimitExceeded(limit, used)

            quota = VoteQuotaDocument(
                id=quota_id,
                competition_id=competition.id,
                vote_day=vote_day,
                identity_field=identity_field,
                identity_hash=identity_hash,
                used=used + 1,
            )
            try:
                await self.quotas.create(quota)
            except DocumentExistsError:
                logger.debug("vote_quota_create_race", competition_id=competition.id, vote_day=vote_day)
                return await self.quotas.take(quota_id, limit)
            return quota.used

        try:
            return await run_with_retry(f"admit vote {quota_id}", take)
        except ConditionNotMetError:
            quota = await self.quotas.get(quota_id)
            used = quota.used if quota else limit
        except RateLimitExceeded as e:
            used = e.votes_today

        logger.info(
            "daily_vote_limit_reached",
            competition_id=competition.id,
            identity_field=identity_field,
            votes_today=used,
            limit=limit,
        )
        raise RateLimitExceeded(limit, used)
