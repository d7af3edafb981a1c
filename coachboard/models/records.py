"""
Source record models.

Memberships, purchases and clients are owned by the CRM layer; the analytics
engine only reads them. Models are frozen so nothing downstream can mutate a
record mid-pass. Decoding from storage goes through these models, which is
where malformed rows (unparseable dates, unknown enum values) are rejected.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coachboard.utils.dates import as_naive_utc

from .enums import (
    DEFAULT_PROGRAM_TYPE,
    PURCHASE_CATEGORY,
    MarketingStatus,
    MembershipStatus,
    MembershipTier,
    ProgramType,
    PurchaseType,
    RevenueCategory,
)


def _coerce_calendar_date(v: Any) -> Any:
    """Accept full ISO timestamps for date columns, keeping only the day."""
    if isinstance(v, datetime):
        return as_naive_utc(v).date()
    if isinstance(v, str) and "T" in v:
        return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
    return v


class MembershipRecord(BaseModel):
    """
    A client's membership in one tier of one coaching program.

    ``status`` is what the CRM currently stores. Historical questions ("was this
    membership active on March 1st?") must be answered from the date fields,
    since only the latest status survives.

    Attributes:
        id: Membership identifier
        client_id: Owning client
        tier: Price tier
        program_type: Coaching track; absent on legacy rows
        status: Current lifecycle state
        monthly_price: Recurring price, null stored as 0
        start_date: First day of the membership
        end_date: Day the membership left the active state, if it has
        renewal_date: Next (or last) scheduled renewal
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    client_id: str
    tier: MembershipTier
    program_type: Optional[ProgramType] = Field(
        default=None, description="Coaching track; None on legacy rows"
    )
    status: MembershipStatus
    monthly_price: float = Field(default=0.0, ge=0.0, description="Monthly recurring price")
    start_date: date
    end_date: Optional[date] = None
    renewal_date: Optional[date] = None

    @field_validator("monthly_price", mode="before")
    @classmethod
    def null_price_is_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("start_date", "end_date", "renewal_date", mode="before")
    @classmethod
    def parse_calendar_date(cls, v: Any) -> Any:
        return _coerce_calendar_date(v)

    @property
    def effective_program_type(self) -> ProgramType:
        """Program type with the legacy default applied."""
        return self.program_type or DEFAULT_PROGRAM_TYPE


class PurchaseRecord(BaseModel):
    """A single purchase (subscription charge, supplement order, lab panel, ...)."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    client_id: str
    purchase_type: PurchaseType
    amount: float = Field(ge=0.0, description="Charged amount")
    purchased_at: datetime
    product_name: Optional[str] = None

    @field_validator("purchased_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @property
    def category(self) -> RevenueCategory:
        return PURCHASE_CATEGORY[self.purchase_type]


class ClientRecord(BaseModel):
    """A CRM client as needed by drill-downs."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    full_name: str
    email: str
    created_at: datetime
    marketing_status: Optional[MarketingStatus] = None

    @field_validator("created_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_naive_utc(v)
