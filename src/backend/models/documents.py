"""
Document models for the StageVote vote ledger.

These Pydantic models define the document structure stored in the document
store. Integer ids are issued by the sequencer and rendered as strings on
write, because Cosmos DB requires string ids.

Container Strategy:
- competitions: competition directory, read-only here (partition: /id)
- contestants: contestant entries, read-only here (partition: /id)
- counters: one sequencer counter per namespace (partition: /id)
- votes: the append-only vote log (partition: /competition_id)
- vote-counts: per (competition, contestant) aggregates (partition: /id)
- vote-purchases: confirmed purchases (partition: /id)
- referral-codes: referral codes, id is the code (partition: /id)
- referral-stats: per-code aggregates, id is the code (partition: /id)
- referral-voters: dedup markers, one per (code, voter) (partition: /code)
- vote-quotas: free votes taken per (competition, voter, vote day) (partition: /id)
- platform-settings: vote packages and sales tax, one "global" document (partition: /id)
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as a fixed-width UTC ISO-8601 string.

    Fixed width keeps lexicographic order equal to chronological order, which
    range queries on stored timestamps rely on.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json")]


# ============================================================================
# Enums
# ============================================================================


class CompetitionStatus(str, Enum):
    """Competition lifecycle status (owned by the competition directory)."""

    DRAFT = "draft"
    ACTIVE = "active"
    VOTING = "voting"
    COMPLETED = "completed"


VOTING_OPEN_STATUSES = frozenset({CompetitionStatus.ACTIVE.value, CompetitionStatus.VOTING.value})


class VoteSource(str, Enum):
    """Where a vote was collected."""

    ONLINE = "online"
    IN_PERSON = "in_person"  # Collected by a host terminal at the venue


class OwnerType(str, Enum):
    """Kind of account that owns a referral code."""

    TALENT = "talent"
    HOST = "host"
    ADMIN = "admin"
    CUSTOM = "custom"


class CallerLevel(IntEnum):
    """Permission levels assigned by the identity service."""

    VIEWER = 1
    TALENT = 2
    HOST = 3
    ADMIN = 4


# ============================================================================
# Base Document Model
# ============================================================================


class LedgerDocument(BaseModel):
    """
    Base class for stored documents.

    Extra fields are allowed so store system properties (_ts, _etag, ...)
    survive a read/write round trip.
    """

    model_config = ConfigDict(extra="allow", use_enum_values=True, validate_default=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize for the document store."""
        data = self.model_dump(mode="json")
        data["id"] = str(data["id"])
        return data


# ============================================================================
# Competition Directory (read-only)
# ============================================================================


class CompetitionDocument(LedgerDocument):
    """The subset of a competition the ledger needs for validation."""

    id: int
    title: str = ""
    category: Optional[str] = None
    status: CompetitionStatus = CompetitionStatus.DRAFT
    max_votes_per_day: int = 10

    @property
    def is_voting_open(self) -> bool:
        return self.status in VOTING_OPEN_STATUSES


class ContestantDocument(LedgerDocument):
    """A talent's entry in a competition."""

    id: int
    competition_id: int
    talent_profile_id: Optional[int] = None
    display_name: Optional[str] = None
    application_status: str = "pending"


# ============================================================================
# Sequencer
# ============================================================================


class CounterDocument(LedgerDocument):
    """Last issued integer for one sequencer namespace. id is the namespace."""

    id: str
    value: int = 0


# ============================================================================
# Vote Log and Aggregates
# ============================================================================


class VoteDocument(LedgerDocument):
    """
    One cast vote. Immutable once written.

    Exactly one of voter_ip, account_id or venue_token identifies the voter
    for rate limiting; purchased votes carry purchase_id and no IP.
    """

    id: int
    competition_id: int
    contestant_id: int
    voter_ip: Optional[str] = None
    account_id: Optional[str] = None
    venue_token: Optional[str] = None
    purchase_id: Optional[int] = None
    source: VoteSource = VoteSource.ONLINE
    referral_code: Optional[str] = None
    cast_at: Timestamp = Field(default_factory=utc_now)


def vote_count_id(competition_id: int, contestant_id: int) -> str:
    return f"{competition_id}_{contestant_id}"


class VoteCountDocument(LedgerDocument):
    """
    Denormalized vote totals for one contestant in one competition.

    A cache of the vote log: total_count == online_count + in_person_count,
    and the log always wins on disagreement.
    """

    id: str
    competition_id: int
    contestant_id: int
    online_count: int = 0
    in_person_count: int = 0
    total_count: int = 0
    updated_at: Timestamp = Field(default_factory=utc_now)


def vote_quota_id(competition_id: int, vote_day: str, identity_hash: str) -> str:
    return f"{competition_id}_{vote_day}_{identity_hash}"


class VoteQuotaDocument(LedgerDocument):
    """
    Free votes one voter identity has taken in a competition on one vote day.

    `used` only grows through a conditional increment that requires it to be
    below the competition's daily limit, so concurrent casts cannot exceed
    the limit. The identity is stored as a keyed hash.
    """

    id: str
    competition_id: int
    vote_day: str  # ISO date in VOTE_DAY_TIMEZONE
    identity_field: str
    identity_hash: str
    used: int = 0
    updated_at: Timestamp = Field(default_factory=utc_now)


# ============================================================================
# Purchases
# ============================================================================


class PurchaseDocument(LedgerDocument):
    """A confirmed, already-charged vote purchase. Owns vote_count vote rows."""

    id: int
    payer_account_id: Optional[str] = None
    guest_email: Optional[str] = None
    guest_name: Optional[str] = None
    competition_id: int
    contestant_id: int
    vote_count: int  # Units purchased including bonus votes
    amount_charged: int  # Cents, tax included
    subtotal_cents: int = 0  # Package price before tax
    tax_cents: int = 0
    payment_reference: Optional[str] = None
    referral_code: Optional[str] = None
    purchased_at: Timestamp = Field(default_factory=utc_now)


class VotePackage(BaseModel):
    """A purchasable bundle of votes. Prices are integer cents, before tax."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str
    vote_count: int = Field(..., gt=0)
    bonus_votes: int = Field(0, ge=0)
    price_cents: int = Field(..., ge=0)
    is_active: bool = True

    @property
    def units(self) -> int:
        """Votes delivered, bonus included."""
        return self.vote_count + self.bonus_votes


PLATFORM_SETTINGS_ID = "global"


class PlatformSettingsDocument(LedgerDocument):
    """Platform-wide purchase settings. A single document with id "global"."""

    id: str = PLATFORM_SETTINGS_ID
    vote_packages: list[VotePackage] = Field(default_factory=list)
    sales_tax_percent: float = Field(0.0, ge=0, le=100)
    updated_at: Timestamp = Field(default_factory=utc_now)


# ============================================================================
# Referrals
# ============================================================================


class ReferralCodeDocument(LedgerDocument):
    """A referral code. id and code are the same value."""

    id: str
    code: str
    owner_id: str
    owner_type: OwnerType
    owner_name: str
    owner_email: Optional[str] = None
    talent_profile_id: Optional[int] = None
    competition_id: Optional[int] = None
    contestant_id: Optional[int] = None
    created_at: Timestamp = Field(default_factory=utc_now)


class ReferralStatsDocument(LedgerDocument):
    """Aggregates for one referral code. Created and deleted with the code."""

    id: str
    code: str
    owner_id: str
    owner_type: OwnerType
    owner_name: str
    total_votes_driven: int = 0
    unique_voters: int = 0
    updated_at: Timestamp = Field(default_factory=utc_now)


class ReferralVoterDocument(LedgerDocument):
    """Membership marker: this (hashed) voter identity has voted via this code."""

    id: str
    code: str
    identity_hash: str
    first_seen_at: Timestamp = Field(default_factory=utc_now)


def referral_voter_id(code: str, identity_hash: str) -> str:
    return f"{code}:{identity_hash}"
