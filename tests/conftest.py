"""
Pytest configuration and shared fixtures for the Coachboard analytics test suite.

Record factories, an in-memory repository fixture, environment isolation and
reusable fixtures across all test types (unit, integration, golden,
property-based).
"""

import os
import tempfile
import uuid as _uuid
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

import pytest

# Set testing environment BEFORE importing app
# Use temp path (must not exist - DuckDB creates the file). :memory: causes
# per-connection DB which breaks multi-threaded tests.
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"coachboard_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["LOG_FORMAT"] = "console"


# ---------------------------------------------------------------------------
# Record factories, reusable across all test suites
# ---------------------------------------------------------------------------

from coachboard.config import get_settings
from coachboard.models.enums import (
    MarketingStatus,
    MembershipStatus,
    MembershipTier,
    ProgramType,
    PurchaseType,
)
from coachboard.models.records import ClientRecord, MembershipRecord, PurchaseRecord
from coachboard.services.analytics_service import AnalyticsService
from coachboard.storage.memory_storage import InMemoryRepository

# Anchor shared by the golden and integration fixtures.
NOW = datetime(2024, 3, 20)


def make_membership(
    tier: MembershipTier = MembershipTier.PREMIUM,
    status: MembershipStatus = MembershipStatus.ACTIVE,
    monthly_price: Optional[float] = 200.0,
    start_date: date = date(2024, 1, 1),
    end_date: Optional[date] = None,
    program_type: Optional[ProgramType] = ProgramType.WELLNESS,
    **overrides,
) -> MembershipRecord:
    """Factory function for creating test MembershipRecord objects."""
    defaults = dict(
        id=str(uuid4()),
        client_id=f"client_{uuid4().hex[:8]}",
        tier=tier,
        program_type=program_type,
        status=status,
        monthly_price=monthly_price,
        start_date=start_date,
        end_date=end_date,
        renewal_date=None,
    )
    defaults.update(overrides)
    return MembershipRecord(**defaults)


def make_purchase(
    amount: float = 100.0,
    purchased_at: datetime = datetime(2024, 3, 1, 12, 0),
    purchase_type: PurchaseType = PurchaseType.SUPPLEMENT,
    **overrides,
) -> PurchaseRecord:
    """Factory function for creating test PurchaseRecord objects."""
    defaults = dict(
        id=str(uuid4()),
        client_id=f"client_{uuid4().hex[:8]}",
        purchase_type=purchase_type,
        amount=amount,
        purchased_at=purchased_at,
        product_name=None,
    )
    defaults.update(overrides)
    return PurchaseRecord(**defaults)


def make_client(
    created_at: datetime = datetime(2024, 3, 1, 9, 0),
    marketing_status: Optional[MarketingStatus] = MarketingStatus.CUSTOMER,
    **overrides,
) -> ClientRecord:
    """Factory function for creating test ClientRecord objects."""
    client_id = overrides.pop("id", f"client_{uuid4().hex[:8]}")
    defaults = dict(
        id=client_id,
        full_name=f"Client {client_id[-4:]}",
        email=f"{client_id}@example.com",
        created_at=created_at,
        marketing_status=marketing_status,
    )
    defaults.update(overrides)
    return ClientRecord(**defaults)


def make_monthly_purchases(
    amounts: list[float],
    purchase_type: PurchaseType,
    last_month: datetime = NOW,
) -> list[PurchaseRecord]:
    """One purchase per month, oldest first, the last one in ``last_month``."""
    from coachboard.utils.dates import add_months, start_of_month

    first = add_months(start_of_month(last_month), -(len(amounts) - 1))
    return [
        make_purchase(
            amount=amount,
            purchased_at=add_months(first, i).replace(day=10),
            purchase_type=purchase_type,
        )
        for i, amount in enumerate(amounts)
        if amount > 0
    ]


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def churn_scenario():
    """Premium 200/mo active, essential 100/mo cancelled five days before NOW."""
    return [
        make_membership(
            id="m_premium",
            tier=MembershipTier.PREMIUM,
            monthly_price=200.0,
            start_date=date(2024, 1, 1),
        ),
        make_membership(
            id="m_essential",
            tier=MembershipTier.ESSENTIAL,
            status=MembershipStatus.CANCELLED,
            monthly_price=100.0,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 3, 15),
            program_type=ProgramType.SLEEP,
        ),
    ]


@pytest.fixture
def sample_memberships():
    """A mixed population spread across tiers, programs and statuses."""
    return [
        make_membership(
            id="m1",
            tier=MembershipTier.ELITE,
            monthly_price=400.0,
            start_date=date(2023, 1, 10),
            program_type=ProgramType.BUNDLE,
            renewal_date=date(2024, 4, 1),
        ),
        make_membership(
            id="m2",
            tier=MembershipTier.PREMIUM,
            monthly_price=200.0,
            start_date=date(2023, 9, 1),
            program_type=ProgramType.SLEEP,
            renewal_date=date(2024, 3, 1),
        ),
        make_membership(
            id="m3",
            tier=MembershipTier.ESSENTIAL,
            monthly_price=100.0,
            start_date=date(2024, 3, 5),
            program_type=None,
        ),
        make_membership(
            id="m4",
            tier=MembershipTier.ESSENTIAL,
            status=MembershipStatus.CANCELLED,
            monthly_price=100.0,
            start_date=date(2023, 6, 1),
            end_date=date(2024, 3, 10),
            program_type=ProgramType.MENTAL_PERFORMANCE,
            renewal_date=date(2024, 2, 1),
        ),
        make_membership(
            id="m5",
            tier=MembershipTier.PREMIUM,
            status=MembershipStatus.EXPIRED,
            monthly_price=200.0,
            start_date=date(2023, 2, 1),
            end_date=date(2023, 12, 31),
            program_type=ProgramType.WELLNESS,
        ),
        make_membership(
            id="m6",
            tier=MembershipTier.FREE,
            status=MembershipStatus.PAUSED,
            monthly_price=None,
            start_date=date(2024, 2, 1),
            program_type=ProgramType.WELLNESS,
        ),
    ]


@pytest.fixture
def sample_clients():
    return [
        make_client(id="c1", created_at=datetime(2024, 3, 1, 9, 0)),
        make_client(id="c2", created_at=datetime(2024, 3, 1, 17, 30), marketing_status=None),
        make_client(
            id="c3",
            created_at=datetime(2024, 3, 8, 23, 59, 59),
            marketing_status=MarketingStatus.LEAD,
        ),
        make_client(id="c4", created_at=datetime(2024, 2, 20, 12, 0)),
        make_client(
            id="c5", created_at=datetime(2024, 3, 15, 0, 0), marketing_status=MarketingStatus.VIP
        ),
    ]


@pytest.fixture
def sample_purchases():
    return [
        make_purchase(
            id="p1",
            amount=400.0,
            purchased_at=datetime(2024, 3, 1, 0, 0),
            purchase_type=PurchaseType.SUBSCRIPTION,
        ),
        make_purchase(id="p2", amount=59.5, purchased_at=datetime(2024, 3, 1, 23, 59, 59)),
        make_purchase(
            id="p3",
            amount=250.0,
            purchased_at=datetime(2024, 3, 9, 10, 0),
            purchase_type=PurchaseType.LAB_TESTING,
        ),
        make_purchase(
            id="p4",
            amount=80.0,
            purchased_at=datetime(2024, 3, 9, 10, 0),
            purchase_type=PurchaseType.ONE_TIME,
        ),
        make_purchase(
            id="p5",
            amount=150.0,
            purchased_at=datetime(2024, 2, 14, 8, 0),
            purchase_type=PurchaseType.SERVICE,
        ),
    ]


@pytest.fixture
def memory_repository(sample_memberships, sample_purchases, sample_clients):
    return InMemoryRepository(
        memberships=sample_memberships,
        purchases=sample_purchases,
        clients=sample_clients,
    )


@pytest.fixture
def analytics_service(memory_repository):
    return AnalyticsService(repository=memory_repository, settings=get_settings())
