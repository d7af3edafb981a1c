"""
Enumeration types for the analytics engine.

All enums inherit from str to keep JSON serialization trivial and to compare
equal to the raw values stored by the record store.
"""

from enum import Enum


class MembershipTier(str, Enum):
    """Membership price tiers sold by the coaching business."""

    FREE = "free"
    ESSENTIAL = "essential"
    PREMIUM = "premium"
    ELITE = "elite"


class ProgramType(str, Enum):
    """Coaching track a membership belongs to."""

    WELLNESS = "wellness"
    SLEEP = "sleep"
    MENTAL_PERFORMANCE = "mental_performance"
    BUNDLE = "bundle"


# Memberships written before program types existed carry no program_type.
DEFAULT_PROGRAM_TYPE = ProgramType.WELLNESS


class MembershipStatus(str, Enum):
    """Lifecycle state of a membership as currently stored."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


CHURNED_STATUSES = frozenset({MembershipStatus.CANCELLED, MembershipStatus.EXPIRED})


class PurchaseType(str, Enum):
    """Purchase types as recorded at checkout."""

    SUBSCRIPTION = "subscription"
    SUPPLEMENT = "supplement"
    LAB_TESTING = "lab_testing"
    SERVICE = "service"
    ONE_TIME = "one_time"


class RevenueCategory(str, Enum):
    """Reporting categories used by revenue charts and the forecast."""

    MEMBERSHIP = "membership"
    SUPPLEMENT = "supplement"
    LAB_TESTING = "lab_testing"
    SERVICE = "service"


PURCHASE_CATEGORY = {
    PurchaseType.SUBSCRIPTION: RevenueCategory.MEMBERSHIP,
    PurchaseType.SUPPLEMENT: RevenueCategory.SUPPLEMENT,
    PurchaseType.LAB_TESTING: RevenueCategory.LAB_TESTING,
    PurchaseType.SERVICE: RevenueCategory.SERVICE,
    PurchaseType.ONE_TIME: RevenueCategory.SERVICE,
}


class MarketingStatus(str, Enum):
    """Funnel stage of a client."""

    LEAD = "lead"
    PROSPECT = "prospect"
    CUSTOMER = "customer"
    VIP = "vip"
    CHURNED = "churned"


class Granularity(str, Enum):
    """Bucket width chosen by the interval generator."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ComparisonMode(str, Enum):
    """How the comparison window is derived from the primary window."""

    PREVIOUS_PERIOD = "previous_period"
    PREVIOUS_YEAR = "previous_year"
    CUSTOM = "custom"


class SegmentDimension(str, Enum):
    """Membership attribute used to split metrics into segments."""

    TIER = "tier"
    PROGRAM_TYPE = "program_type"


class DrillDownKind(str, Enum):
    """What a drill-down request selects."""

    NEW_CLIENTS = "new_clients"
    CUMULATIVE_CLIENTS = "cumulative_clients"
    REVENUE = "revenue"
    MARKETING_STATUS = "marketing_status"
    PURCHASE_TYPE = "purchase_type"
