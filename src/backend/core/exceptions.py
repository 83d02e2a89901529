"""
Vote ledger error taxonomy.

Every error the ledger raises to its callers derives from LedgerError and
carries the HTTP status the API layer should answer with.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for vote ledger errors."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidVoteRequest(LedgerError):
    """The request is malformed (missing identity, non-positive count, ...)."""

    status_code = 400


class NotFoundError(LedgerError):
    """A competition, contestant or referral code does not exist."""

    status_code = 404


class CompetitionNotFound(NotFoundError):
    def __init__(self, competition_id: int):
        super().__init__(f"Competition {competition_id} not found")
        self.competition_id = competition_id


class ContestantNotInCompetition(NotFoundError):
    def __init__(self, contestant_id: int, competition_id: int):
        super().__init__(f"Contestant {contestant_id} is not part of competition {competition_id}")
        self.contestant_id = contestant_id
        self.competition_id = competition_id


class ReferralCodeNotFound(NotFoundError):
    def __init__(self, code: str):
        super().__init__(f"Referral code {code} not found")
        self.code = code


class GuestPurchasesNotFound(NotFoundError):
    def __init__(self):
        super().__init__("No purchases found for that name and email")


class InvalidStateError(LedgerError):
    """The target is not in a state that allows the operation."""

    status_code = 400


class VotingClosed(InvalidStateError):
    def __init__(self, competition_id: int, status: str):
        super().__init__("Voting is not open for this competition")
        self.competition_id = competition_id
        self.status = status


class RateLimitExceeded(LedgerError):
    """
    The voter already used today's free votes.

    Callers recover by waiting for the next day; the ledger never retries.
    """

    status_code = 429

    def __init__(self, limit: int, votes_today: int):
        super().__init__(f"Daily vote limit reached ({limit} per day)")
        self.limit = limit
        self.votes_today = votes_today


class TransactionConflict(LedgerError):
    """Store contention persisted after the bounded retries."""

    status_code = 503

    def __init__(self, operation: str, attempts: int):
        super().__init__(f"{operation} failed after {attempts} attempts due to contention")
        self.operation = operation
        self.attempts = attempts


class UpstreamPaymentFailure(LedgerError):
    """The payment collaborator declined or failed; nothing was written."""

    status_code = 402

    def __init__(self, message: str, transaction_reference: Optional[str] = None):
        super().__init__(f"Payment failed: {message}")
        self.transaction_reference = transaction_reference
