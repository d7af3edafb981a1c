"""
Point-in-Time Membership Resolver.

Only each membership's latest ``status`` and ``end_date`` are stored, so
"who was a member on March 1st?" has to be reconstructed from the dates:
a membership is active at instant T iff ``start_date <= T`` and it has no
``end_date`` or ``end_date >= T``.

Two bucket-level predicates are deliberately separate functions:

- ``active_through_bucket``: overlaps the bucket at all. Used for stock metrics
  (MRR, member count) as they stood in that period.
- ``active_at_bucket_start``: active at the first instant of the bucket. Used as
  the churn-rate denominator ("of those who could have churned this period").

Swapping one for the other silently changes churn rates.
"""

from datetime import datetime
from typing import Iterable, Optional

from coachboard.models.analytics import Bucket
from coachboard.models.enums import MembershipStatus, MembershipTier, ProgramType, SegmentDimension
from coachboard.models.records import MembershipRecord
from coachboard.utils.dates import to_instant


def _starts_by(membership: MembershipRecord, instant: datetime) -> bool:
    return to_instant(membership.start_date) <= instant


def _not_ended_before(membership: MembershipRecord, instant: datetime) -> bool:
    return membership.end_date is None or to_instant(membership.end_date) >= instant


def is_active_at(membership: MembershipRecord, instant: datetime) -> bool:
    moment = to_instant(instant)
    return _starts_by(membership, moment) and _not_ended_before(membership, moment)


def active_at(
    memberships: Iterable[MembershipRecord], instant: datetime
) -> list[MembershipRecord]:
    """Memberships active at ``instant``, judged from dates only."""
    return [m for m in memberships if is_active_at(m, instant)]


def active_through_bucket(
    memberships: Iterable[MembershipRecord], bucket: Bucket
) -> list[MembershipRecord]:
    """Memberships active at any point of ``bucket`` (stock metrics)."""
    return [
        m
        for m in memberships
        if _starts_by(m, bucket.end) and _not_ended_before(m, bucket.start)
    ]


def active_at_bucket_start(
    memberships: Iterable[MembershipRecord], bucket: Bucket
) -> list[MembershipRecord]:
    """Memberships active at the first instant of ``bucket`` (churn denominators)."""
    return active_at(memberships, bucket.start)


def currently_active(memberships: Iterable[MembershipRecord]) -> list[MembershipRecord]:
    """Memberships whose stored status is active; authoritative for "right now"."""
    return [m for m in memberships if m.status == MembershipStatus.ACTIVE]


def program_type_of(membership: MembershipRecord) -> ProgramType:
    """Program type, with legacy rows mapped to ``DEFAULT_PROGRAM_TYPE``."""
    return membership.effective_program_type


def segment_key(membership: MembershipRecord, dimension: SegmentDimension) -> str:
    if dimension == SegmentDimension.TIER:
        return membership.tier.value
    return program_type_of(membership).value


def segment_values(dimension: SegmentDimension) -> list[str]:
    """Every value of ``dimension``, in declaration order."""
    if dimension == SegmentDimension.TIER:
        return [t.value for t in MembershipTier]
    return [p.value for p in ProgramType]


def filter_by_program(
    memberships: Iterable[MembershipRecord], program_type: ProgramType
) -> list[MembershipRecord]:
    return [m for m in memberships if program_type_of(m) == program_type]


def filter_by_tier(
    memberships: Iterable[MembershipRecord], tier: MembershipTier
) -> list[MembershipRecord]:
    return [m for m in memberships if m.tier == tier]


def filter_segment(
    memberships: Iterable[MembershipRecord],
    dimension: Optional[SegmentDimension],
    value: Optional[str],
) -> list[MembershipRecord]:
    if dimension is None or value is None:
        return list(memberships)
    if dimension == SegmentDimension.TIER:
        return filter_by_tier(memberships, MembershipTier(value))
    return filter_by_program(memberships, ProgramType(value))
